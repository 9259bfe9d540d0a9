"""Per-user MCP server customizations."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.database import McpServerCustomization


class McpCustomizationRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: str, server_name: str) -> McpServerCustomization | None:
        result = await self.db.execute(
            select(McpServerCustomization).where(
                McpServerCustomization.user_id == user_id,
                McpServerCustomization.server_name == server_name,
            )
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        user_id: str,
        server_name: str,
        prompt: str | None,
        tool_prompts: dict[str, str] | None = None,
    ) -> McpServerCustomization:
        customization = await self.get(user_id, server_name)
        if customization is None:
            customization = McpServerCustomization(user_id=user_id, server_name=server_name)
            self.db.add(customization)

        customization.prompt = prompt
        customization.tool_prompts = dict(tool_prompts or {})

        await self.db.commit()
        await self.db.refresh(customization)
        return customization

    async def select_by_user_id(self, user_id: str) -> dict[str, dict]:
        """All customizations of a user as ``{server: {"prompt", "tools"}}``."""
        result = await self.db.execute(
            select(McpServerCustomization).where(McpServerCustomization.user_id == user_id)
        )
        return {
            row.server_name: {"prompt": row.prompt, "tools": dict(row.tool_prompts or {})}
            for row in result.scalars().all()
        }
