"""
Base handler interface for node implementations.

Every node type (http_request, delay, log) has one handler that
inherits from BaseNodeHandler and implements execute().
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import structlog

from core.constants import NodeStatus

logger = structlog.get_logger(__name__)


@dataclass
class NodeContext:
    """What a node can see of the run executing it."""

    run_id: str
    payload: Any = None


class NodeOutcome:
    """Result of executing one node, as stored in a run's result map.

    Serializes to ``{"status": "ok", ...extra}`` or
    ``{"status": "error", "error": <message>}``.
    """

    def __init__(
        self,
        status: NodeStatus,
        fields: Optional[Dict[str, Any]] = None,
        duration_ms: float = 0,
    ):
        self.status = NodeStatus(status)
        self.fields = fields or {}
        self.duration_ms = duration_ms

    @classmethod
    def ok(cls, **fields: Any) -> "NodeOutcome":
        return cls(NodeStatus.OK, fields)

    @classmethod
    def failure(cls, message: str) -> "NodeOutcome":
        return cls(NodeStatus.ERROR, {"error": message})

    @property
    def failed(self) -> bool:
        return self.status == NodeStatus.ERROR

    @property
    def error(self) -> Optional[str]:
        return self.fields.get("error")

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value, **self.fields}


class BaseNodeHandler(ABC):
    """
    Abstract base class for node handlers.

    Subclasses must implement:
    - execute(node, context) -> NodeOutcome
    - node_type (class attribute)
    """

    node_type: str = "base"

    @abstractmethod
    async def execute(self, node: Any, context: NodeContext) -> NodeOutcome:
        """
        Execute the node's side effect.

        Args:
            node: Decoded node definition of this handler's type
            context: Run id and payload of the run being executed

        Returns:
            NodeOutcome with captured output or an error message
        """
        pass

    async def run(self, node: Any, context: NodeContext) -> NodeOutcome:
        """
        Run the node with timing and error handling.

        This is the entry point called by the node executor. An exception
        escaping execute() becomes an error outcome for this node only.
        """
        start = time.monotonic()
        try:
            logger.debug(
                "Node starting",
                run_id=context.run_id,
                node_id=node.id,
                node_type=self.node_type,
            )
            outcome = await self.execute(node, context)
            outcome.duration_ms = (time.monotonic() - start) * 1000

            logger.info(
                "Node finished",
                run_id=context.run_id,
                node_id=node.id,
                node_type=self.node_type,
                status=outcome.status.value,
                duration_ms=round(outcome.duration_ms, 2),
            )
            return outcome

        except Exception as e:
            duration_ms = (time.monotonic() - start) * 1000
            logger.error(
                "Node crashed",
                run_id=context.run_id,
                node_id=node.id,
                node_type=self.node_type,
                error=str(e),
                duration_ms=round(duration_ms, 2),
            )
            outcome = NodeOutcome.failure(str(e) or e.__class__.__name__)
            outcome.duration_ms = duration_ms
            return outcome
