"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import AppError
from app.core.logging_config import configure_logging
from app.core.storage.database import init_db, close_db
from app.core.tools import McpClientsManager, WorkflowRegistry
from app.api.routes import chat, files, mcp, projects, storage, threads

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    configure_logging()
    logger.info("Initializing database...")
    await init_db()
    logger.info("Database initialized successfully")

    # MCP clients and workflows are registered by the hosting process
    app.state.mcp_manager = McpClientsManager()
    app.state.workflow_registry = WorkflowRegistry()

    yield

    # Shutdown
    logger.info("Closing database connections...")
    await close_db()
    logger.info("Application shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Forge Chat Backend",
    description="Backend API for Forge Chat",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Map application errors to their HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Include routers
app.include_router(chat.router, prefix="/api/v1")
app.include_router(threads.router, prefix="/api/v1")
app.include_router(projects.router, prefix="/api/v1")
app.include_router(files.router, prefix="/api/v1")
app.include_router(storage.router, prefix="/api/v1")
app.include_router(mcp.router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Forge Chat Backend",
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
    )
