"""Background execution of workflow runs.

execute_workflow_job() is what the execute endpoint schedules. It loads the
pending execution log and its workflow, wires the database-backed
collaborators into an ExecutionCoordinator and runs it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from promptflow.engine.context import NodeServices
from promptflow.engine.coordinator import ExecutionCoordinator, ExecutionRun, RunOutcome, RunStatus
from promptflow.engine.errors import InvalidRunStateError
from promptflow.engine.events import WorkflowExecutionFailed
from promptflow.engine.graph import WorkflowGraph
from promptflow.integrations.providers import ProviderClient
from promptflow.logging_config import get_engine_logger
from promptflow_server.adapters import (
    DatabaseCredentials,
    DatabasePromptStore,
    DatabaseRunSink,
    SessionContext,
)
from promptflow_server.database import get_session_ctx
from promptflow_server.event_bus import EventBusNotifier, node_progress_listener
from promptflow_server.repositories.execution_log import ExecutionLogRepository
from promptflow_server.repositories.workflow import WorkflowRepository

logger = get_engine_logger()


def build_services(user_id: str, session_ctx: SessionContext = get_session_ctx) -> NodeServices:
    return NodeServices(
        provider=ProviderClient(DatabaseCredentials(user_id, session_ctx)),
        prompt_store=DatabasePromptStore(session_ctx),
    )


async def execute_workflow_job(
    execution_id: str,
    session_ctx: SessionContext = get_session_ctx,
    services: Optional[NodeServices] = None,
) -> Optional[RunOutcome]:
    """Run the pending execution ``execution_id`` to completion.

    Returns:
        The RunOutcome, or None when the execution could not be started
    """
    logger.info(f"Starting workflow execution job: {execution_id}")
    notifier = EventBusNotifier()

    async with session_ctx() as session:
        log = await ExecutionLogRepository(session).get(execution_id)
        workflow = await WorkflowRepository(session).get(log.workflow_id) if log else None

    if log is None:
        logger.error(f"Execution log not found: {execution_id}")
        return None

    status = RunStatus(log.status)
    if status is not RunStatus.PENDING:
        logger.warning(f"Execution {execution_id} is {status.value}, not pending; skipping")
        return None

    try:
        if workflow is None:
            raise LookupError(f"Workflow not found: {log.workflow_id}")
        graph = WorkflowGraph.from_parts(workflow.nodes or [], workflow.edges or [])
    except (LookupError, ValueError) as e:
        logger.error(f"Workflow execution job failed for {execution_id}: {e}")
        await _mark_failed(execution_id, log.workflow_id, log.user_id, str(e), session_ctx, notifier)
        return None

    run = ExecutionRun(
        id=log.id,
        workflow_id=log.workflow_id,
        user_id=log.user_id,
        graph=graph,
        status=status,
        input_data=dict(log.input_data or {}),
        started_at=log.started_at,
    )
    owned_services = services is None
    services = services or build_services(log.user_id, session_ctx)
    coordinator = ExecutionCoordinator(
        services=services,
        sink=DatabaseRunSink(session_ctx),
        notifier=notifier,
        node_listener=node_progress_listener(log.id),
    )
    try:
        outcome = await coordinator.execute(run)
    except InvalidRunStateError as e:
        logger.warning(f"Workflow execution job skipped: {e}")
        return None
    finally:
        if owned_services:
            await services.aclose()

    logger.info(f"Workflow execution job finished: {execution_id} ({outcome.status.value})")
    return outcome


async def _mark_failed(execution_id, workflow_id, user_id, error, session_ctx, notifier) -> None:
    completed_at = datetime.now(timezone.utc)
    async with session_ctx() as session:
        repo = ExecutionLogRepository(session)
        log = await repo.get(execution_id)
        if log is None or RunStatus(log.status).is_terminal:
            logger.warning(f"Execution {execution_id} already finished; not marking failed")
            return
        await repo.update(
            execution_id, status="failed", error=error, completed_at=completed_at,
        )
    await notifier.publish(WorkflowExecutionFailed(
        execution_id=execution_id,
        workflow_id=workflow_id,
        user_id=user_id,
        completed_at=completed_at.isoformat(),
        error=error,
    ))
