"""Run endpoints: read-only view of run records."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.run import RunResponse
from app.dependencies import get_db
from services.run_service import RunService

router = APIRouter(tags=["runs"])


@router.get("/", response_model=List[RunResponse])
async def list_runs(
    flow_id: Optional[str] = Query(None, description="Filter by flow ID"),
    state: Optional[str] = Query(None, description="Filter by run state"),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> List[RunResponse]:
    runs = await RunService(db).list_runs(flow_id=flow_id, state=state, offset=offset, limit=limit)
    return [RunResponse.model_validate(r) for r in runs]


@router.get("/{run_id}", response_model=RunResponse)
async def get_run(
    run_id: str,
    db: AsyncSession = Depends(get_db),
) -> RunResponse:
    run = await RunService(db).get_run(run_id)
    return RunResponse.model_validate(run)
