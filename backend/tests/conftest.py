"""Shared pytest fixtures for the flow runner test suite.

Provides:
- A temp-file async SQLite database per test (no PostgreSQL needed)
- Session factory, in-memory run queue, dispatcher and worker loop
- An httpx client whose transport answers from a fake set of hosts
- FastAPI test client (httpx.AsyncClient over ASGI)
"""

import asyncio
import json
import os
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Override settings BEFORE any app imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RUN_QUEUE_BACKEND", "memory")
os.environ.setdefault("ENVIRONMENT", "testing")

from app.config import Settings  # noqa: E402
from app.resources import Resources  # noqa: E402
from core.constants import TERMINAL_RUN_STATES, RunState  # noqa: E402
from db.database import create_db_engine, create_session_factory, init_db  # noqa: E402
from db.models.flow import Flow  # noqa: E402
from services.run_service import RunService  # noqa: E402
from tasks.registry import NodeHandlerRegistry  # noqa: E402
from worker.loop import WorkerLoop  # noqa: E402
from workflow.dispatcher import Dispatcher  # noqa: E402
from workflow.engine import NodeExecutor  # noqa: E402
from workflow.queue import InMemoryRunQueue  # noqa: E402


# ---------------------------------------------------------------------------
# Fake HTTP upstreams
# ---------------------------------------------------------------------------

def fake_upstream(request: httpx.Request) -> httpx.Response:
    """Answer requests by host name.

    ok.test      -> 200 JSON echo of method and body
    text.test    -> 200 plain text
    fail.test    -> 500
    missing.test -> 404
    anything else -> connection error
    """
    host = request.url.host
    if host == "ok.test":
        body = json.loads(request.content) if request.content else None
        return httpx.Response(200, json={"method": request.method, "received": body})
    if host == "text.test":
        return httpx.Response(200, text="plain response")
    if host == "fail.test":
        return httpx.Response(500, text="upstream exploded")
    if host == "missing.test":
        return httpx.Response(404, text="no such thing")
    raise httpx.ConnectError(f"Name or service not known: {host}", request=request)


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'flowrunner.db'}",
        RUN_QUEUE_BACKEND="memory",
        ENVIRONMENT="testing",
        WORKER_POLL_INTERVAL=0.01,
        WORKER_ERROR_BACKOFF=0.02,
    )


@pytest_asyncio.fixture
async def db_engine(settings):
    """Create an engine on a fresh database file with all tables."""
    engine = create_db_engine(settings)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def queue() -> InMemoryRunQueue:
    return InMemoryRunQueue()


@pytest_asyncio.fixture
async def http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_upstream)) as client:
        yield client


@pytest.fixture
def registry(http_client) -> NodeHandlerRegistry:
    return NodeHandlerRegistry(http_client)


@pytest.fixture
def executor(registry) -> NodeExecutor:
    return NodeExecutor(registry)


@pytest.fixture
def dispatcher(session_factory, queue) -> Dispatcher:
    return Dispatcher(session_factory, queue)


@pytest.fixture
def worker(session_factory, queue, executor, settings) -> WorkerLoop:
    return WorkerLoop(
        session_factory=session_factory,
        queue=queue,
        executor=executor,
        poll_interval=settings.WORKER_POLL_INTERVAL,
        error_backoff=settings.WORKER_ERROR_BACKOFF,
        name="test-worker",
    )


# ---------------------------------------------------------------------------
# Data helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def make_flow(session_factory):
    """Insert a flow row as-is, without node validation.

    Stored rows can hold node types the API would reject today, so tests
    write them directly.
    """

    async def _make_flow(nodes: list, name: str = "test flow", version: int = 1) -> str:
        async with session_factory() as session:
            flow = Flow(name=name, nodes=nodes, version=version)
            session.add(flow)
            await session.commit()
            return flow.id

    return _make_flow


@pytest.fixture
def load_run(session_factory):
    async def _load_run(run_id: str):
        async with session_factory() as session:
            return await RunService(session).get_run(run_id)

    return _load_run


@pytest.fixture
def wait_for_terminal(load_run):
    """Poll a run until it reaches completed/failed (or time out)."""

    async def _wait(run_id: str, timeout: float = 5.0):
        deadline = asyncio.get_running_loop().time() + timeout
        while True:
            run = await load_run(run_id)
            if RunState(run.state) in TERMINAL_RUN_STATES:
                return run
            if asyncio.get_running_loop().time() > deadline:
                raise AssertionError(f"run {run_id} still {run.state} after {timeout}s")
            await asyncio.sleep(0.01)

    return _wait


# ---------------------------------------------------------------------------
# App / HTTP client fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def resources(settings, db_engine, session_factory, queue, http_client) -> Resources:
    return Resources(
        settings=settings,
        db_engine=db_engine,
        session_factory=session_factory,
        queue=queue,
        http_client=http_client,
    )


@pytest_asyncio.fixture
async def client(resources) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client wired to the test resources."""
    from app.main import create_app

    app = create_app(resources)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac
