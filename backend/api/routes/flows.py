"""Flow endpoints: create, list, update, trigger."""

from typing import Any, List

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from api.schemas.flow import FlowCreate, FlowResponse, FlowUpdate
from api.schemas.run import TriggerResponse
from app.dependencies import get_db, get_dispatcher
from services.flow_service import FlowService
from workflow.dispatcher import Dispatcher

logger = logging.getLogger(__name__)

router = APIRouter(tags=["flows"])


@router.post("/", response_model=FlowResponse, status_code=status.HTTP_201_CREATED)
async def create_flow(
    body: FlowCreate,
    db: AsyncSession = Depends(get_db),
) -> FlowResponse:
    """
    Create a flow. Nodes with an unknown type are rejected with 422.
    """
    flow = await FlowService(db).create_flow(name=body.name, nodes=body.nodes)
    return FlowResponse.model_validate(flow)


@router.get("/", response_model=List[FlowResponse])
async def list_flows(
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> List[FlowResponse]:
    flows = await FlowService(db).list_flows(offset=offset, limit=limit)
    return [FlowResponse.model_validate(f) for f in flows]


@router.put("/{flow_id}", response_model=FlowResponse)
async def update_flow(
    flow_id: str,
    body: FlowUpdate,
    db: AsyncSession = Depends(get_db),
) -> FlowResponse:
    """
    Replace the node list of a flow and bump its version.
    """
    flow = await FlowService(db).update_nodes(flow_id, body.nodes)
    return FlowResponse.model_validate(flow)


@router.post("/{flow_id}/trigger", response_model=TriggerResponse)
async def trigger_flow(
    flow_id: str,
    payload: Any = Body(default=None),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> TriggerResponse:
    """
    Queue a run of the flow. The request body is the run payload.

    Returns 404 if the flow does not exist and 503 if the run was stored
    but the queue could not be reached.
    """
    run_id = await dispatcher.submit(flow_id, payload if payload is not None else {})
    return TriggerResponse(runId=run_id)
