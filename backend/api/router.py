"""Aggregated API router, mounted under ``API_PREFIX`` in main.py."""

from fastapi import APIRouter

from api.routes import flows, health, runs

api_router = APIRouter()

api_router.include_router(health.router)

api_router.include_router(
    flows.router,
    prefix="/flows",
    tags=["Flows"],
)

api_router.include_router(
    runs.router,
    prefix="/runs",
    tags=["Runs"],
)
