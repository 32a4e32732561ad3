"""Node Executor: runs a flow's node list for one run.

Nodes run strictly in list order, one at a time. Each node's outcome is
stored in the run's result map under the node id. The first node that
fails stops the run: nodes after it are never executed and never appear
in the result map.

Node types outside the built-in set are skipped with a warning. They get
no result entry and do not affect the final state.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import structlog

from core.constants import RunState
from tasks.base_task import NodeContext
from tasks.registry import NodeHandlerRegistry
from workflow.nodes import NodeDefinition, UnknownNode

logger = structlog.get_logger(__name__)


@dataclass
class ExecutionResult:
    """Terminal state and result map produced by one execution."""

    state: RunState
    result: dict[str, dict[str, Any]] = field(default_factory=dict)
    failed_node_id: Optional[str] = None


class NodeExecutor:
    """Execute decoded node lists against a run's payload."""

    def __init__(self, handlers: NodeHandlerRegistry):
        self.handlers = handlers

    async def execute(self, run: Any, nodes: Sequence[NodeDefinition]) -> ExecutionResult:
        """Execute ``nodes`` for ``run`` and return its terminal outcome.

        Args:
            run: Anything with ``id`` and ``payload`` attributes (normally a
                ``db.models.Run``)
            nodes: Decoded node list of the run's flow

        Returns:
            ExecutionResult with ``completed`` or ``failed`` state
        """
        context = NodeContext(run_id=run.id, payload=run.payload)
        log = logger.bind(run_id=run.id)
        result: dict[str, dict[str, Any]] = {}

        for index, node in enumerate(nodes):
            handler = None if isinstance(node, UnknownNode) else self.handlers.get(node.type)
            if handler is None:
                log.warning(
                    "Skipping node of unknown type",
                    node_id=node.id,
                    node_type=node.type,
                    position=index,
                )
                continue

            outcome = await handler.run(node, context)
            result[node.id] = outcome.to_dict()

            if outcome.failed:
                log.warning(
                    "Run failed at node",
                    node_id=node.id,
                    position=index,
                    error=outcome.error,
                )
                return ExecutionResult(
                    state=RunState.FAILED,
                    result=result,
                    failed_node_id=node.id,
                )

        return ExecutionResult(state=RunState.COMPLETED, result=result)
