"""Repository layer for saved prompts and their versions."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from promptflow_server.models.db import PromptModel, PromptVersionModel


class PromptRepository:
    """Data access layer for prompts."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user_id: str, title: str, content: str) -> PromptModel:
        """Create a prompt with an initial current version."""
        prompt = PromptModel(user_id=user_id, title=title)
        self.session.add(prompt)
        await self.session.flush()
        self.session.add(PromptVersionModel(
            prompt_id=prompt.id, version=1, content=content, is_current=True,
        ))
        await self.session.flush()
        return prompt

    async def add_version(self, prompt_id: str, content: str) -> PromptVersionModel:
        """Add a version and make it the current one."""
        result = await self.session.execute(
            select(PromptVersionModel).where(PromptVersionModel.prompt_id == prompt_id)
        )
        versions = list(result.scalars().all())
        for existing in versions:
            existing.is_current = False
        version = PromptVersionModel(
            prompt_id=prompt_id,
            version=max((v.version for v in versions), default=0) + 1,
            content=content,
            is_current=True,
        )
        self.session.add(version)
        await self.session.flush()
        return version

    async def get_current_version_content(self, prompt_id: str) -> Optional[str]:
        """Content of the current version, falling back to the newest one.

        Returns:
            The content, or None if the prompt has no versions
        """
        result = await self.session.execute(
            select(PromptVersionModel)
            .where(PromptVersionModel.prompt_id == prompt_id)
            .order_by(PromptVersionModel.is_current.desc(), PromptVersionModel.version.desc())
            .limit(1)
        )
        version = result.scalar_one_or_none()
        return version.content if version else None
