"""Graph Traversal Engine

Walks a WorkflowGraph depth-first in pre-order:

1. Start nodes are the nodes no edge targets, run in graph order.
2. After a node executes, the targets of its outgoing edges run in edge
   order. Condition nodes are the exception: they dispatch their own single
   branch and their edges are not followed.
3. A node with a recorded result is never executed again; the cached result
   is returned. This is the only cycle guard: once every node on a cycle has
   a result, re-entry stops. A node reached again while it is still running
. Successor chains recurse; a chain deeper than the interpreter recursion
   limit fails the run with GraphDepthExceededError.

Runs are strictly sequential. Separate runs share nothing and may execute
concurrently in separate tasks.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from .. import nodes  # noqa: F401 - registers node types
from ..nodes.registry import create_node
from .context import ExecutionContext, NodeResult, NodeServices
from .errors import GraphDepthExceededError, NodeNotFoundError, UnsupportedNodeTypeError
from .graph import NodeType, WorkflowGraph
from .validation import validate_graph

logger = logging.getLogger(__name__)

# (event, node_id, payload) with event in {"node_started", "node_completed", "node_skipped"}
NodeListener = Callable[[str, str, Dict[str, Any]], Awaitable[None]]


@dataclass
class TraversalResult:
    variables: Dict[str, Any]
    node_results: Dict[str, NodeResult]

    def results_as_dict(self) -> Dict[str, Dict[str, Any]]:
        return {node_id: result.to_dict() for node_id, result in self.node_results.items()}


class GraphExecutor:
    """Executes workflow graphs.

    Args:
        services: Collaborators handed to node executors when a run does not
            bring its own context.
        node_listener: Optional async callback for per-node progress events.
            Listener failures are logged and never affect the run.
    """

    def __init__(
        self,
        services: Optional[NodeServices] = None,
        node_listener: Optional[NodeListener] = None,
    ):
        self.services = services
        self.node_listener = node_listener

    async def run(
        self,
        graph: WorkflowGraph,
        initial_variables: Optional[Dict[str, Any]] = None,
        context: Optional[ExecutionContext] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TraversalResult:
        """Run every start node and everything reachable from it.

        ``context.variables`` and ``context.node_results`` hold the partial
        state if a WorkflowExecutionError propagates.
        """
        if context is None:
            context = ExecutionContext(
                variables=dict(initial_variables or {}),
                services=self.services or NodeServices(),
            )
        elif initial_variables:
            context.variables.update(initial_variables)
        if cancel_event is not None:
            context.cancel_event = cancel_event

        context.bind(graph, lambda node_id: self.execute_node(node_id, context))

        for issue in validate_graph(graph).issues:
            logger.warning(f"Graph validation [{issue.code}]: {issue.message}")

        start_nodes = graph.start_nodes()
        logger.info(
            f"Running graph with {len(graph.nodes)} nodes, {len(graph.edges)} edges, "
            f"start nodes: {start_nodes}"
        )
        try:
            for node_id in start_nodes:
                await self.execute_node(node_id, context)
        except RecursionError as e:
            raise GraphDepthExceededError(len(context.node_results)) from e

        return TraversalResult(variables=context.variables, node_results=context.node_results)

    async def execute_node(self, node_id: str, context: ExecutionContext) -> Optional[NodeResult]:
        """Execute ``node_id`` and then its successors.

        Returns:
            The node's result, the cached result when it already ran, or None
            when the node is still running further up the call stack.

        Raises:
            NodeNotFoundError: If ``node_id`` is not in the graph
            UnsupportedNodeTypeError: If the node's type has no executor
        """
        graph = context.graph
        node = graph.get_node(node_id) if graph is not None else None
        if node is None:
            raise NodeNotFoundError(node_id)

        if context.has_result(node_id):
            logger.debug(f"Node {node_id} already executed, skipping")
            await self._notify("node_skipped", node_id, {"reason": "already_executed"})
            return context.node_results[node_id]

        if context.is_executing(node_id):
            logger.debug(f"Node {node_id} is already running, skipping re-entry")
            await self._notify("node_skipped", node_id, {"reason": "in_progress"})
            return None

        context.check_cancelled()

        node_type = node.node_type
        if node_type is None:
            raise UnsupportedNodeTypeError(node.type, node_id)
        executor = create_node(node.id, node_type, node.data)

        logger.info(f"Executing node: {node_id} of type: {node_type.value}")
        await self._notify("node_started", node_id, {"type": node_type.value})

        context.mark_executing(node_id)
        try:
            result = await executor.execute(context)
        finally:
            context.clear_executing(node_id)

        context.record_result(node_id, result)
        await self._notify("node_completed", node_id, result.to_dict())

        if node_type is not NodeType.CONDITION:
            for target in graph.successors(node_id):
                await self.execute_node(target, context)

        return result

    async def _notify(self, event: str, node_id: str, payload: Dict[str, Any]) -> None:
        if self.node_listener is None:
            return
        try:
            await self.node_listener(event, node_id, payload)
        except Exception as e:
            logger.error(f"Node listener failed for {event} on {node_id}: {e}")
