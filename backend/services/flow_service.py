"""Flow store: flow definitions read by the run engine."""

import logging
from typing import Any, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import NotFoundError
from db.models.flow import Flow
from services.base import BaseService
from workflow.nodes import FlowDefinition, decode_nodes, encode_nodes

logger = logging.getLogger(__name__)


class FlowService(BaseService[Flow]):
    """Service for flow definitions."""

    def __init__(self, db: AsyncSession):
        super().__init__(Flow, db)

    async def get_flow(self, flow_id: str) -> FlowDefinition:
        """Load a flow and decode its node list.

        Raises:
            NotFoundError: If no flow has this id
            ValidationError: If the stored node list is malformed
        """
        flow = await self.get_by_id(flow_id)
        if not flow:
            raise NotFoundError(f"Flow {flow_id} not found")
        return FlowDefinition(
            id=flow.id,
            name=flow.name,
            version=flow.version or 1,
            nodes=decode_nodes(flow.nodes, strict=False),
        )

    async def create_flow(self, name: str, nodes: Any = None) -> Flow:
        """Create a flow at version 1. Unknown node types are rejected."""
        decoded = decode_nodes(nodes or [], strict=True)
        flow = await self.create({
            "name": name,
            "nodes": encode_nodes(decoded),
            "version": 1,
        })
        logger.info(f"Flow {flow.id} created with {len(decoded)} node(s)")
        return flow

    async def list_flows(self, offset: int = 0, limit: int = 50) -> Sequence[Flow]:
        return await self.list(offset=offset, limit=limit)

    async def update_nodes(self, flow_id: str, nodes: Any) -> Flow:
        """Replace a flow's node list and bump its version."""
        flow = await self.get_by_id(flow_id)
        if not flow:
            raise NotFoundError(f"Flow {flow_id} not found")

        decoded = decode_nodes(nodes, strict=True)
        flow.nodes = encode_nodes(decoded)
        flow.version = (flow.version or 1) + 1
        await self.db.flush()
        await self.db.refresh(flow)
        logger.info(f"Flow {flow_id} updated to version {flow.version}")
        return flow
