"""Repository layer for workflow definitions."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from promptflow_server.models.db import WorkflowModel


class WorkflowRepository:
    """Data access layer for workflows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        user_id: str,
        name: str,
        nodes: List[Dict[str, Any]],
        edges: List[Dict[str, Any]],
        description: Optional[str] = None,
        settings: Optional[Dict[str, Any]] = None,
        is_active: bool = True,
    ) -> WorkflowModel:
        workflow = WorkflowModel(
            user_id=user_id,
            name=name,
            description=description,
            nodes=nodes,
            edges=edges,
            settings=settings,
            is_active=is_active,
        )
        self.session.add(workflow)
        await self.session.flush()
        return workflow

    async def get(self, workflow_id: str) -> Optional[WorkflowModel]:
        result = await self.session.execute(
            select(WorkflowModel).where(WorkflowModel.id == workflow_id)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: str) -> List[WorkflowModel]:
        result = await self.session.execute(
            select(WorkflowModel)
            .where(WorkflowModel.user_id == user_id)
            .order_by(WorkflowModel.updated_at.desc())
        )
        return list(result.scalars().all())
