"""MCP server customization API routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.core.storage.database import get_db
from app.models.database import User
from app.models.schemas.mcp import McpCustomizationResponse, McpCustomizationUpdate
from app.repositories import McpCustomizationRepository

router = APIRouter(prefix="/mcp", tags=["mcp"])


@router.get("/customizations/{server_name}", response_model=McpCustomizationResponse)
async def get_customization(
    server_name: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Get the user's customization for a server; empty when none is saved."""
    customization = await McpCustomizationRepository(db).get(user.id, server_name)
    if customization is None:
        return McpCustomizationResponse(server_name=server_name)
    return McpCustomizationResponse(
        server_name=server_name,
        prompt=customization.prompt,
        tools=dict(customization.tool_prompts or {}),
    )


@router.put("/customizations/{server_name}", response_model=McpCustomizationResponse)
async def save_customization(
    server_name: str,
    data: McpCustomizationUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Create or replace the user's customization for a server."""
    customization = await McpCustomizationRepository(db).upsert(
        user.id, server_name, data.prompt, data.tools
    )
    return McpCustomizationResponse(
        server_name=server_name,
        prompt=customization.prompt,
        tools=dict(customization.tool_prompts or {}),
    )
