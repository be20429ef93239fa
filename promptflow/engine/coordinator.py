"""Execution Coordinator

Owns a run's lifecycle: pending -> running -> completed | failed. Terminal
states are final. Every transition is written through a RunSink, and the
terminal state is announced through an ExecutionNotifier.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from .context import ExecutionContext, NodeServices
from .errors import InvalidRunStateError, WorkflowExecutionError
from .events import (
    ExecutionEvent,
    ExecutionNotifier,
    NullNotifier,
    WorkflowExecutionCompleted,
    WorkflowExecutionFailed,
)
from .executor import GraphExecutor, NodeListener
from .graph import WorkflowGraph

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


@dataclass
class ExecutionRun:
    """One invocation of a workflow. Created pending by the caller."""

    id: Any
    workflow_id: Any
    graph: WorkflowGraph
    user_id: Any = None
    status: RunStatus = RunStatus.PENDING
    input_data: Dict[str, Any] = field(default_factory=dict)
    output_data: Optional[Dict[str, Any]] = None
    node_results: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def to_record(self) -> Dict[str, Any]:
        """Persistence columns; JSON-serializable except the datetimes."""
        return {
            "id": self.id,
            "workflow_id": self.workflow_id,
            "user_id": self.user_id,
            "status": self.status.value,
            "input_data": self.input_data,
            "output_data": self.output_data,
            "node_results": self.node_results,
            "error": self.error,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }


@dataclass
class RunOutcome:
    success: bool
    status: RunStatus
    variables: Dict[str, Any] = field(default_factory=dict)
    node_results: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {
                "success": True,
                "variables": self.variables,
                "node_results": self.node_results,
            }
        return {
            "success": False,
            "error": self.error,
            "node_results": self.node_results,
        }


class RunSink(Protocol):
    async def save(self, run: ExecutionRun) -> None:
        ...


class InMemoryRunSink:
    """Keeps a snapshot of every saved state, in order."""

    def __init__(self):
        self.snapshots: List[Dict[str, Any]] = []

    async def save(self, run: ExecutionRun) -> None:
        self.snapshots.append(copy.deepcopy(run.to_record()))

    @property
    def statuses(self) -> List[str]:
        return [snapshot["status"] for snapshot in self.snapshots]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class ExecutionCoordinator:
    """Runs ExecutionRuns through the traversal engine.

    Args:
        services: Collaborators for node executors.
        sink: Receives the run on every status transition.
        notifier: Receives WorkflowExecutionCompleted / WorkflowExecutionFailed.
        node_listener: Optional per-node progress callback for the engine.
    """

    def __init__(
        self,
        services: Optional[NodeServices] = None,
        sink: Optional[RunSink] = None,
        notifier: Optional[ExecutionNotifier] = None,
        node_listener: Optional[NodeListener] = None,
    ):
        self.services = services or NodeServices()
        self.sink = sink or InMemoryRunSink()
        self.notifier = notifier or NullNotifier()
        self.executor = GraphExecutor(self.services, node_listener=node_listener)

    async def execute(
        self,
        run: ExecutionRun,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RunOutcome:
        """Execute a pending run to a terminal state.

        Raises:
            InvalidRunStateError: If the run is not pending
        """
        if run.status is not RunStatus.PENDING:
            raise InvalidRunStateError(
                f"Run {run.id} cannot be executed from status '{run.status.value}'"
            )

        run.status = RunStatus.RUNNING
        run.started_at = run.started_at or _utcnow()
        await self.sink.save(run)
        logger.info(f"Run {run.id} started for workflow {run.workflow_id}")

        context = ExecutionContext(
            variables=dict(run.input_data or {}),
            services=self.services,
            cancel_event=cancel_event,
            run_id=str(run.id),
        )

        try:
            await self.executor.run(run.graph, context=context)
        except WorkflowExecutionError as e:
            logger.error(f"Run {run.id} failed: {e}")
            return await self._fail(run, context, str(e))
        except Exception as e:
            logger.exception(f"Run {run.id} failed with unexpected error: {e}")
            return await self._fail(run, context, str(e) or type(e).__name__)

        run.status = RunStatus.COMPLETED
        run.output_data = context.variables
        run.node_results = context.results_as_dict()
        run.completed_at = _utcnow()
        await self.sink.save(run)
        logger.info(f"Run {run.id} completed ({len(run.node_results)} nodes executed)")

        await self._publish(WorkflowExecutionCompleted(
            execution_id=run.id,
            workflow_id=run.workflow_id,
            user_id=run.user_id,
            completed_at=_isoformat(run.completed_at),
            output_data=run.output_data,
        ))
        return RunOutcome(
            success=True,
            status=run.status,
            variables=run.output_data,
            node_results=run.node_results,
        )

    async def _fail(self, run: ExecutionRun, context: ExecutionContext, error: str) -> RunOutcome:
        run.status = RunStatus.FAILED
        run.error = error
        run.node_results = context.results_as_dict()
        run.completed_at = _utcnow()
        await self.sink.save(run)

        await self._publish(WorkflowExecutionFailed(
            execution_id=run.id,
            workflow_id=run.workflow_id,
            user_id=run.user_id,
            completed_at=_isoformat(run.completed_at),
            error=error,
        ))
        return RunOutcome(
            success=False,
            status=run.status,
            variables=context.variables,
            node_results=run.node_results,
            error=error,
        )

    async def _publish(self, event: ExecutionEvent) -> None:
        try:
            await self.notifier.publish(event)
        except Exception as e:
            logger.error(f"Failed to publish {event.event_type} for run {event.execution_id}: {e}")
