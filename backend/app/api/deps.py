"""Request dependencies: session user resolution."""

from datetime import datetime
from typing import Optional

from fastapi import Depends, Request, WebSocket
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.errors import AuthenticationError
from app.core.storage.database import get_db
from app.models.database import User, UserSession

bearer_scheme = HTTPBearer(auto_error=False)


async def resolve_session_user(db: AsyncSession, token: Optional[str]) -> Optional[User]:
    """User of an unexpired session token, or None."""
    if not token:
        return None

    result = await db.execute(
        select(UserSession)
        .where(UserSession.token == token)
        .options(selectinload(UserSession.user))
    )
    session = result.scalar_one_or_none()
    if session is None or session.expires_at <= datetime.utcnow():
        return None
    return session.user


def _request_token(request: Request, creds: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if creds is not None and creds.scheme.lower() == "bearer":
        return creds.credentials
    return request.cookies.get(settings.session_cookie_name)


async def get_optional_user(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Session user from the Bearer token or the session cookie, if any."""
    return await resolve_session_user(db, _request_token(request, creds))


async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    """Session user; 401 when there is no valid session."""
    if user is None:
        raise AuthenticationError("Unauthorized")
    return user


async def get_websocket_user(websocket: WebSocket, db: AsyncSession) -> Optional[User]:
    """Session user of a WebSocket handshake (cookie, or ?token= for non-browser clients)."""
    token = websocket.cookies.get(settings.session_cookie_name) or websocket.query_params.get("token")
    return await resolve_session_user(db, token)
