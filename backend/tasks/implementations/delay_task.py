"""Delay node handler."""

import asyncio

from core.constants import NodeType
from tasks.base_task import BaseNodeHandler, NodeContext, NodeOutcome
from workflow.nodes import DelayNode


class DelayHandler(BaseNodeHandler):
    """Suspend the run for the node's duration. Never fails."""

    node_type = NodeType.DELAY.value

    async def execute(self, node: DelayNode, context: NodeContext) -> NodeOutcome:
        await asyncio.sleep(node.ms / 1000)
        return NodeOutcome.ok(slept=node.ms)
