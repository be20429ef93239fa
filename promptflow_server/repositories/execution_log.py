"""Repository layer for execution logs (one row per workflow run)."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from promptflow_server.models.db import ExecutionLogModel


class ExecutionLogRepository:
    """Data access layer for execution logs."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        workflow_id: str,
        user_id: str,
        input_data: Optional[Dict[str, Any]] = None,
    ) -> ExecutionLogModel:
        """Create a pending execution log.

        Args:
            workflow_id: Workflow being executed
            user_id: Owner of the run
            input_data: Initial variables

        Returns:
            Created ExecutionLogModel
        """
        log = ExecutionLogModel(
            workflow_id=workflow_id,
            user_id=user_id,
            status="pending",
            input_data=input_data or {},
        )
        self.session.add(log)
        await self.session.flush()
        return log

    async def get(self, execution_id: str) -> Optional[ExecutionLogModel]:
        result = await self.session.execute(
            select(ExecutionLogModel).where(ExecutionLogModel.id == execution_id)
        )
        return result.scalar_one_or_none()

    async def list_for_workflow(self, workflow_id: str, limit: int = 20) -> List[ExecutionLogModel]:
        result = await self.session.execute(
            select(ExecutionLogModel)
            .where(ExecutionLogModel.workflow_id == workflow_id)
            .order_by(ExecutionLogModel.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def update(self, execution_id: str, **kwargs: Any) -> Optional[ExecutionLogModel]:
        """Update an execution log with arbitrary fields.

        Returns:
            Updated ExecutionLogModel or None if not found
        """
        log = await self.get(execution_id)
        if not log:
            return None
        for key, value in kwargs.items():
            if hasattr(log, key):
                setattr(log, key, value)
        await self.session.flush()
        return log
