"""Workflow execution, status and SSE streaming endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from promptflow.engine.events import execution_channel, user_channel

from promptflow_server.database import get_session
from promptflow_server.event_bus import STOP_EVENTS, get_event_bus
from promptflow_server.jobs import execute_workflow_job
from promptflow_server.repositories.execution_log import ExecutionLogRepository
from promptflow_server.schemas import ExecuteWorkflowRequest, ExecuteWorkflowResponse, ExecutionStatusResponse
from promptflow_server.routes.deps import get_current_user_id
from promptflow_server.routes.workflows import get_owned_workflow

router = APIRouter(prefix="/api", tags=["execution"])

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post(
    "/workflows/{workflow_id}/execute",
    response_model=ExecuteWorkflowResponse,
    status_code=202,
)
async def execute_workflow(
    workflow_id: str,
    background_tasks: BackgroundTasks,
    payload: Optional[ExecuteWorkflowRequest] = None,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """Create a pending execution log and run it in the background."""
    workflow = await get_owned_workflow(workflow_id, user_id, session)
    if not workflow.is_active:
        raise HTTPException(status_code=400, detail="Workflow is not active")

    log = await ExecutionLogRepository(session).create(
        workflow_id=workflow.id,
        user_id=user_id,
        input_data=payload.input_data if payload else {},
    )
    # The job reads the log from its own session
    await session.commit()

    background_tasks.add_task(execute_workflow_job, log.id)
    return ExecuteWorkflowResponse(execution_id=log.id, status=log.status)


async def _get_owned_execution(execution_id: str, user_id: str, session: AsyncSession):
    log = await ExecutionLogRepository(session).get(execution_id)
    if not log:
        raise HTTPException(status_code=404, detail="Execution not found")
    if log.user_id != user_id:
        raise HTTPException(status_code=403, detail="Unauthorized")
    return log


@router.get("/executions/{execution_id}", response_model=ExecutionStatusResponse)
async def get_execution_status(
    execution_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    log = await _get_owned_execution(execution_id, user_id, session)
    return ExecutionStatusResponse.model_validate(log)


@router.get("/executions/{execution_id}/stream")
async def stream_execution(
    execution_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """SSE stream of node progress and the completion event for one run."""
    await _get_owned_execution(execution_id, user_id, session)
    return StreamingResponse(
        get_event_bus().subscribe(execution_channel(execution_id), stop_events=STOP_EVENTS),
        media_type="text/event-stream",
        headers=_SSE_HEADERS,
    )


@router.get("/users/me/events")
async def stream_user_events(user_id: str = Depends(get_current_user_id)):
    """SSE stream of completion events for every run the user owns."""
    return StreamingResponse(
        get_event_bus().subscribe(user_channel(user_id)),
        media_type="text/event-stream",
        headers=_SSE_HEADERS,
    )
