"""Log node handler."""

import json

import structlog

from core.constants import NodeType
from tasks.base_task import BaseNodeHandler, NodeContext, NodeOutcome
from workflow.nodes import LogNode

# Operational log stream that log nodes write to.
run_logger = structlog.get_logger("flowrunner.run")


class LogHandler(BaseNodeHandler):
    """Write the node's message to the run log stream. Never fails.

    Without a message, the run payload is logged as JSON instead.
    """

    node_type = NodeType.LOG.value

    async def execute(self, node: LogNode, context: NodeContext) -> NodeOutcome:
        message = node.message or json.dumps(context.payload, default=str)
        run_logger.info(message, run_id=context.run_id, node_id=node.id)
        return NodeOutcome.ok()
