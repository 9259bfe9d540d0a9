"""Tests for session user resolution."""

from datetime import datetime, timedelta

import pytest

from app.api.deps import resolve_session_user
from app.models.database import UserSession


@pytest.mark.unit
class TestResolveSessionUser:
    """Test cases for resolve_session_user."""

    @pytest.mark.asyncio
    async def test_valid_token(self, db_session, sample_user):
        user = await resolve_session_user(db_session, "test-session-token")

        assert user.id == sample_user.id

    @pytest.mark.asyncio
    async def test_missing_or_unknown_token(self, db_session, sample_user):
        assert await resolve_session_user(db_session, None) is None
        assert await resolve_session_user(db_session, "") is None
        assert await resolve_session_user(db_session, "nope") is None

    @pytest.mark.asyncio
    async def test_expired_token(self, db_session, sample_user):
        db_session.add(
            UserSession(token="expired", user_id=sample_user.id, expires_at=datetime.utcnow() - timedelta(minutes=1))
        )
        await db_session.commit()

        assert await resolve_session_user(db_session, "expired") is None
