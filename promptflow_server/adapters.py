"""Database-backed implementations of the engine's collaborator protocols.

Each adapter opens its own short-lived session per call, so one run's writes
are committed as it progresses and never share a session with the request
that started it.
"""

from __future__ import annotations

from typing import Any, AsyncContextManager, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from promptflow.engine.coordinator import ExecutionRun
from promptflow.engine.errors import PromptNotFoundError
from promptflow_server.database import get_session_ctx
from promptflow_server.repositories.api_key import ApiKeyRepository
from promptflow_server.repositories.execution_log import ExecutionLogRepository
from promptflow_server.repositories.prompt import PromptRepository

SessionContext = Callable[[], AsyncContextManager[AsyncSession]]


class DatabaseRunSink:
    """RunSink writing run state into the execution_logs row."""

    def __init__(self, session_ctx: SessionContext = get_session_ctx):
        self._session_ctx = session_ctx

    async def save(self, run: ExecutionRun) -> None:
        record = run.to_record()
        record.pop("id")
        async with self._session_ctx() as session:
            await ExecutionLogRepository(session).update(str(run.id), **record)


class DatabasePromptStore:
    def __init__(self, session_ctx: SessionContext = get_session_ctx):
        self._session_ctx = session_ctx

    async def get_prompt_current_version_content(self, prompt_id: Any) -> str:
        async with self._session_ctx() as session:
            content = await PromptRepository(session).get_current_version_content(str(prompt_id))
        if content is None:
            raise PromptNotFoundError(prompt_id)
        return content


class DatabaseCredentials:
    """CredentialResolver scoped to one user; prefers the default key."""

    def __init__(self, user_id: str, session_ctx: SessionContext = get_session_ctx):
        self.user_id = user_id
        self._session_ctx = session_ctx

    async def get_api_key(self, provider: str) -> Optional[str]:
        async with self._session_ctx() as session:
            return await ApiKeyRepository(session).get_key_for_provider(self.user_id, provider)
