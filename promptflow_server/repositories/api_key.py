"""Repository layer for provider API keys."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from promptflow_server.models.db import ApiKeyModel


class ApiKeyRepository:
    """Data access layer for API keys."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        user_id: str,
        provider: str,
        key: str,
        is_default: bool = False,
    ) -> ApiKeyModel:
        api_key = ApiKeyModel(user_id=user_id, provider=provider, key=key, is_default=is_default)
        self.session.add(api_key)
        await self.session.flush()
        return api_key

    async def get_key_for_provider(self, user_id: str, provider: str) -> Optional[str]:
        """The user's default key for ``provider``, else any key for it."""
        result = await self.session.execute(
            select(ApiKeyModel)
            .where(ApiKeyModel.user_id == user_id, ApiKeyModel.provider == provider)
            .order_by(ApiKeyModel.is_default.desc(), ApiKeyModel.created_at.asc())
            .limit(1)
        )
        api_key = result.scalar_one_or_none()
        return api_key.key if api_key else None
