"""Per-run execution state.

An ExecutionContext is owned by exactly one in-flight run. Node executors read
and write ``variables`` in place; later writes are visible to every node that
runs afterwards and are never rolled back. ``node_results`` doubles as the
"already executed" marker used for idempotent skips.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Set

from ..integrations.http_client import HttpClient
from ..integrations.providers import ProviderClient
from ..integrations.scraper import ScraperClient
from .errors import ExecutionCancelled
from .graph import WorkflowGraph


class PromptStore(Protocol):
    """Read-only access to saved prompts."""

    async def get_prompt_current_version_content(self, prompt_id: Any) -> str:
        """Raises PromptNotFoundError when the prompt does not exist."""
        ...


@dataclass
class NodeResult:
    """Write-once outcome of one node execution.

    ``extra`` carries the type-specific fields (status_code, condition_met,
    path_taken, ...) flattened into ``to_dict()``.
    """

    success: bool
    output: Any = None
    output_variable: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success, "output": self.output}
        if self.output_variable is not None:
            result["output_variable"] = self.output_variable
        if self.error is not None:
            result["error"] = self.error
        if self.error_type is not None:
            result["error_type"] = self.error_type
        result.update(self.extra)
        return result


@dataclass
class NodeServices:
    """External collaborators available to node executors."""

    provider: ProviderClient = field(default_factory=ProviderClient)
    http: HttpClient = field(default_factory=HttpClient)
    scraper: ScraperClient = field(default_factory=ScraperClient)
    prompt_store: Optional[PromptStore] = None

    async def aclose(self) -> None:
        await self.provider.close()
        await self.http.close()
        await self.scraper.close()


Dispatch = Callable[[str], Awaitable[Optional[NodeResult]]]


@dataclass
class ExecutionContext:
    variables: Dict[str, Any] = field(default_factory=dict)
    services: NodeServices = field(default_factory=NodeServices)
    node_results: Dict[str, NodeResult] = field(default_factory=dict)
    execution_order: List[str] = field(default_factory=list)
    cancel_event: Optional[asyncio.Event] = None
    run_id: Optional[str] = None
    graph: Optional[WorkflowGraph] = None
    _dispatch: Optional[Dispatch] = field(default=None, repr=False)
    _executing: Set[str] = field(default_factory=set, repr=False)

    def bind(self, graph: WorkflowGraph, dispatch: Dispatch) -> None:
        """Attach the graph and the engine callback used for branch dispatch."""
        self.graph = graph
        self._dispatch = dispatch

    async def execute_branch(self, node_id: str) -> Optional[NodeResult]:
        """Execute ``node_id`` (and its successors) through the engine."""
        if self._dispatch is None:
            raise RuntimeError("ExecutionContext is not bound to a running engine")
        return await self._dispatch(node_id)

    def has_result(self, node_id: str) -> bool:
        return node_id in self.node_results

    def record_result(self, node_id: str, result: NodeResult) -> None:
        if node_id in self.node_results:
            raise RuntimeError(f"Result already recorded for node: {node_id}")
        self.node_results[node_id] = result
        self.execution_order.append(node_id)

    def is_executing(self, node_id: str) -> bool:
        return node_id in self._executing

    def mark_executing(self, node_id: str) -> None:
        self._executing.add(node_id)

    def clear_executing(self, node_id: str) -> None:
        self._executing.discard(node_id)

    def check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise ExecutionCancelled()

    def results_as_dict(self) -> Dict[str, Dict[str, Any]]:
        return {node_id: result.to_dict() for node_id, result in self.node_results.items()}
