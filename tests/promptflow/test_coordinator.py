"""Tests for the run lifecycle (promptflow/engine/coordinator.py).

Covers:
- pending -> running -> completed | failed transitions through the sink
- Partial node results on failure
- Completion/failure notifications on both channels
- Cancellation and invalid starting states
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from promptflow.engine.context import NodeServices
from promptflow.engine.coordinator import (
    ExecutionCoordinator,
    ExecutionRun,
    InMemoryRunSink,
    RunStatus,
)
from promptflow.engine.errors import InvalidRunStateError
from promptflow.engine.events import ExecutionEvent, WorkflowExecutionCompleted, WorkflowExecutionFailed
from promptflow.engine.graph import WorkflowGraph
from promptflow.integrations.providers import ProviderClient, StaticCredentials
from promptflow.integrations.scraper import ScraperClient


class RecordingNotifier:
    def __init__(self):
        self.events = []

    async def publish(self, event):
        self.events.append(event)


def _run(nodes, edges=(), input_data=None, **kwargs):
    return ExecutionRun(
        id="run-1",
        workflow_id="wf-1",
        user_id="user-1",
        graph=WorkflowGraph.from_parts(nodes, edges),
        input_data=input_data or {},
        **kwargs,
    )


SIMPLE_NODES = [
    {"id": "in", "type": "input", "data": {"variable": "topic", "default_value": "cats"}},
    {"id": "out", "type": "output", "data": {"variables": ["topic"]}},
]
SIMPLE_EDGES = [{"source": "in", "target": "out"}]


@pytest.fixture
def sink():
    return InMemoryRunSink()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def coordinator(sink, notifier):
    return ExecutionCoordinator(services=NodeServices(), sink=sink, notifier=notifier)


class TestCompletedRun:

    @pytest.mark.asyncio
    async def test_status_transitions(self, coordinator, sink):
        run = _run(SIMPLE_NODES, SIMPLE_EDGES)
        outcome = await coordinator.execute(run)

        assert outcome.success is True
        assert outcome.status is RunStatus.COMPLETED
        assert sink.statuses == ["running", "completed"]
        assert sink.snapshots[0]["started_at"] is not None
        assert sink.snapshots[0]["completed_at"] is None
        assert sink.snapshots[-1]["completed_at"] is not None

    @pytest.mark.asyncio
    async def test_output_data_is_final_variables(self, coordinator):
        run = _run(SIMPLE_NODES, SIMPLE_EDGES, input_data={"extra": 1})
        outcome = await coordinator.execute(run)

        assert run.output_data == {"extra": 1, "topic": "cats"}
        assert run.input_data == {"extra": 1}
        assert run.node_results["out"] == {"success": True, "output": {"topic": "cats"}}
        assert outcome.to_dict() == {
            "success": True,
            "variables": {"extra": 1, "topic": "cats"},
            "node_results": run.node_results,
        }

    @pytest.mark.asyncio
    async def test_completion_event(self, coordinator, notifier):
        await coordinator.execute(_run(SIMPLE_NODES, SIMPLE_EDGES))

        assert len(notifier.events) == 1
        event = notifier.events[0]
        assert isinstance(event, WorkflowExecutionCompleted)
        assert event.channels() == ["workflow-execution.run-1", "user.user-1"]
        payload = event.payload()
        assert payload["status"] == "completed"
        assert payload["output_data"]["topic"] == "cats"

    @pytest.mark.asyncio
    async def test_notifier_failure_is_logged_only(self, sink):
        notifier = AsyncMock()
        notifier.publish.side_effect = RuntimeError("bus down")
        coordinator = ExecutionCoordinator(services=NodeServices(), sink=sink, notifier=notifier)

        outcome = await coordinator.execute(_run(SIMPLE_NODES, SIMPLE_EDGES))
        assert outcome.success is True
        assert sink.statuses[-1] == "completed"

    @pytest.mark.asyncio
    async def test_node_listener_forwarded(self, sink):
        seen = []

        async def listener(event, node_id, payload):
            seen.append(node_id)

        coordinator = ExecutionCoordinator(services=NodeServices(), sink=sink, node_listener=listener)
        await coordinator.execute(_run(SIMPLE_NODES, SIMPLE_EDGES))
        assert seen == ["in", "in", "out", "out"]

    @pytest.mark.asyncio
    async def test_input_default_reaches_output(self, coordinator):
        """Capitalized type names from the editor run like lowercase ones."""
        run = _run(
            [
                {"id": "in", "type": "Input", "data": {"variable": "x", "default_value": "5"}},
                {"id": "out", "type": "Output", "data": {"variables": ["x"]}},
            ],
            [{"source": "in", "target": "out"}],
        )
        outcome = await coordinator.execute(run)

        assert run.status is RunStatus.COMPLETED
        assert run.output_data == {"x": "5"}
        assert outcome.node_results["out"]["output"] == {"x": "5"}

    @pytest.mark.asyncio
    async def test_unconfigured_scraper_does_not_fail_run(self, sink):
        services = NodeServices(scraper=ScraperClient(service_url=""))
        coordinator = ExecutionCoordinator(services=services, sink=sink)
        run = _run(
            [
                {"id": "s", "type": "scraper", "data": {
                    "url": "https://shop.test",
                    "container_selector": ".product",
                    "field_selectors": [{"name": "title", "selector": "h2"}],
                }},
                {"id": "out", "type": "output", "data": {"variables": ["scraped_data"]}},
            ],
            [{"source": "s", "target": "out"}],
        )
        await coordinator.execute(run)

        assert run.status is RunStatus.COMPLETED
        assert run.node_results["s"]["success"] is False
        assert "error" in run.output_data["scraped_data"]


class TestFailedRun:

    @pytest.mark.asyncio
    async def test_fatal_error_keeps_partial_results(self, coordinator, sink, notifier):
        nodes = SIMPLE_NODES + [{"id": "bad", "type": "loop"}]
        edges = SIMPLE_EDGES + [{"source": "out", "target": "bad"}]
        run = _run(nodes, edges)

        outcome = await coordinator.execute(run)

        assert outcome.success is False
        assert outcome.error == "Unsupported node type: loop"
        assert sink.statuses == ["running", "failed"]
        assert run.error == "Unsupported node type: loop"
        assert set(run.node_results) == {"in", "out"}
        assert run.output_data is None
        assert outcome.to_dict()["success"] is False

        event = notifier.events[0]
        assert isinstance(event, WorkflowExecutionFailed)
        assert event.payload()["error"] == "Unsupported node type: loop"

    @pytest.mark.asyncio
    async def test_provider_failure_fails_run(self, sink):
        services = NodeServices(provider=ProviderClient(StaticCredentials({})))
        coordinator = ExecutionCoordinator(services=services, sink=sink)
        run = _run([{"id": "p", "type": "prompt", "data": {"content": "Hi"}}])

        outcome = await coordinator.execute(run)
        assert outcome.error == "AI service error: No API key found for provider: openai"
        assert run.status is RunStatus.FAILED

    @pytest.mark.asyncio
    async def test_unexpected_exception(self, coordinator, sink):
        with patch(
            "promptflow.engine.executor.GraphExecutor.run",
            AsyncMock(side_effect=RuntimeError("boom")),
        ):
            outcome = await coordinator.execute(_run(SIMPLE_NODES))

        assert outcome.success is False
        assert outcome.error == "boom"
        assert sink.statuses == ["running", "failed"]

    @pytest.mark.asyncio
    async def test_cancellation(self, coordinator):
        cancel = asyncio.Event()
        cancel.set()
        outcome = await coordinator.execute(_run(SIMPLE_NODES, SIMPLE_EDGES), cancel_event=cancel)
        assert outcome.status is RunStatus.FAILED
        assert outcome.error == "Execution cancelled"
        assert outcome.node_results == {}


class TestRunState:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [RunStatus.RUNNING, RunStatus.COMPLETED, RunStatus.FAILED])
    async def test_only_pending_runs_execute(self, coordinator, sink, status):
        run = _run(SIMPLE_NODES, status=status)
        with pytest.raises(InvalidRunStateError):
            await coordinator.execute(run)
        assert sink.snapshots == []

    def test_terminal_states(self):
        assert RunStatus.COMPLETED.is_terminal
        assert RunStatus.FAILED.is_terminal
        assert not RunStatus.RUNNING.is_terminal

    def test_to_record(self):
        record = _run(SIMPLE_NODES).to_record()
        assert record["status"] == "pending"
        assert record["workflow_id"] == "wf-1"
        assert "graph" not in record

    def test_event_base_requires_payload(self):
        with pytest.raises(TypeError):
            ExecutionEvent(execution_id="run-1", workflow_id="wf-1", user_id=None, completed_at=None)
