"""Tests for the worker loop, including its crash/lost-job behavior."""

import asyncio

import pytest
import structlog

from app.config import Settings
from core.constants import RunState
from core.exceptions import MalformedJobError, QueueUnavailableError
from db.models.flow import Flow
from worker.loop import WorkerLoop
from worker.main import build_workers
from workflow.engine import ExecutionResult


class BlockingExecutor:
    """Executor that never finishes, to simulate a worker killed mid-run."""

    def __init__(self):
        self.started = asyncio.Event()

    async def execute(self, run, nodes):
        self.started.set()
        await asyncio.Event().wait()


class FlakyQueue:
    """Queue whose first poll fails like an unreachable Redis."""

    def __init__(self, inner):
        self.inner = inner
        self.polls = 0

    async def enqueue(self, run_id):
        await self.inner.enqueue(run_id)

    async def dequeue(self):
        self.polls += 1
        if self.polls == 1:
            raise QueueUnavailableError("Connection refused")
        return await self.inner.dequeue()


async def _stop(worker: WorkerLoop, task: asyncio.Task) -> None:
    worker.stop()
    await asyncio.wait_for(task, timeout=2)


@pytest.mark.integration
class TestWorkerRunOnce:

    async def test_empty_queue(self, worker):
        assert await worker.run_once() is False

    async def test_completes_run_and_persists_result(self, worker, dispatcher, make_flow, load_run):
        flow_id = await make_flow([
            {"id": "n1", "type": "log", "message": "hi"},
            {"id": "n2", "type": "delay", "ms": 10},
        ])
        run_id = await dispatcher.submit(flow_id, {})

        assert await worker.run_once() is True

        run = await load_run(run_id)
        assert run.state == "completed"
        assert run.result == {"n1": {"status": "ok"}, "n2": {"status": "ok", "slept": 10}}
        assert run.error_message is None

    async def test_failed_node_fails_run(self, worker, dispatcher, make_flow, load_run):
        flow_id = await make_flow([
            {"id": "n1", "type": "http_request", "method": "GET", "url": "https://bad-url.invalid/"},
            {"id": "n2", "type": "log", "message": "unreachable"},
        ])
        run_id = await dispatcher.submit(flow_id, {})

        await worker.run_once()

        run = await load_run(run_id)
        assert run.state == "failed"
        assert list(run.result) == ["n1"]
        assert run.result["n1"]["status"] == "error"
        assert run.result["n1"]["error"]

    async def test_run_is_marked_running_before_nodes_execute(self, session_factory, queue, dispatcher, make_flow, load_run):
        seen_states = []

        class StateRecorder:
            async def execute(self, run, nodes):
                seen_states.append((await load_run(run.id)).state)
                return ExecutionResult(state=RunState.COMPLETED, result={})

        worker = WorkerLoop(session_factory, queue, StateRecorder())
        run_id = await dispatcher.submit(await make_flow([]), {})
        await worker.run_once()

        assert seen_states == ["running"]
        assert (await load_run(run_id)).state == "completed"

    async def test_run_context_is_bound_while_processing(self, session_factory, queue, dispatcher, make_flow):
        seen = {}

        class ContextRecorder:
            async def execute(self, run, nodes):
                seen.update(structlog.contextvars.get_contextvars())
                return ExecutionResult(state=RunState.COMPLETED, result={})

        worker = WorkerLoop(session_factory, queue, ContextRecorder(), name="worker-7")
        run_id = await dispatcher.submit(await make_flow([]), {})
        await worker.run_once()

        assert seen == {"worker": "worker-7", "run_id": run_id}
        assert "run_id" not in structlog.contextvars.get_contextvars()

    async def test_missing_run_is_dropped(self, worker, queue):
        await queue.enqueue("no-such-run")
        assert await worker.run_once() is True
        assert await queue.length() == 0

    async def test_terminal_run_is_not_reprocessed(self, worker, queue, dispatcher, make_flow, load_run):
        run_id = await dispatcher.submit(await make_flow([{"id": "n1", "type": "log"}]), {})
        await worker.run_once()
        before = await load_run(run_id)

        await queue.enqueue(run_id)
        await worker.run_once()

        after = await load_run(run_id)
        assert after.state == "completed"
        assert after.result == before.result
        assert after.updated_at == before.updated_at

    async def test_deleted_flow_fails_run_with_message(self, worker, dispatcher, make_flow, session_factory, load_run):
        flow_id = await make_flow([{"id": "n1", "type": "log"}])
        run_id = await dispatcher.submit(flow_id, {})
        async with session_factory() as session:
            await session.delete(await session.get(Flow, flow_id))
            await session.commit()

        await worker.run_once()

        run = await load_run(run_id)
        assert run.state == "failed"
        assert run.result == {}
        assert "not found" in run.error_message

    async def test_invalid_stored_flow_fails_run(self, worker, dispatcher, make_flow, session_factory, load_run):
        flow_id = await make_flow([{"id": "n1", "type": "log"}])
        run_id = await dispatcher.submit(flow_id, {})
        async with session_factory() as session:
            flow = await session.get(Flow, flow_id)
            flow.nodes = [{"id": "n1", "type": "http_request"}]
            await session.commit()

        await worker.run_once()

        run = await load_run(run_id)
        assert run.state == "failed"
        assert "http_request" in run.error_message

    async def test_non_string_node_type_fails_run(self, worker, dispatcher, make_flow, session_factory, load_run):
        flow_id = await make_flow([{"id": "n1", "type": "log"}])
        run_id = await dispatcher.submit(flow_id, {})
        async with session_factory() as session:
            flow = await session.get(Flow, flow_id)
            flow.nodes = [{"id": "n1", "type": {"k": 1}}]
            await session.commit()

        assert await worker.run_once() is True

        run = await load_run(run_id)
        assert run.state == "failed"
        assert run.result == {}
        assert "non-string type" in run.error_message

    async def test_executes_current_node_list_not_trigger_time_version(self, worker, dispatcher, make_flow, session_factory, load_run):
        flow_id = await make_flow([{"id": "old", "type": "log"}])
        run_id = await dispatcher.submit(flow_id, {})
        async with session_factory() as session:
            flow = await session.get(Flow, flow_id)
            flow.nodes = [{"id": "new", "type": "log"}]
            flow.version = 2
            await session.commit()

        await worker.run_once()

        run = await load_run(run_id)
        assert run.version == 1
        assert list(run.result) == ["new"]

    async def test_malformed_job_raises(self, worker, queue):
        queue._entries.append("{not json")
        with pytest.raises(MalformedJobError):
            await worker.run_once()

    async def test_concurrent_runs_of_same_flow_are_independent(
        self, session_factory, queue, executor, dispatcher, make_flow, load_run
    ):
        flow_id = await make_flow([
            {"id": "n1", "type": "http_request", "method": "POST", "url": "https://ok.test/"},
            {"id": "n2", "type": "delay", "ms": 20},
        ])
        first = await dispatcher.submit(flow_id, {"who": "first"})
        second = await dispatcher.submit(flow_id, {"who": "second"})

        workers = [WorkerLoop(session_factory, queue, executor, name=f"w{i}") for i in range(2)]
        await asyncio.gather(*(w.run_once() for w in workers))

        run_a, run_b = await load_run(first), await load_run(second)
        assert run_a.state == run_b.state == "completed"
        assert run_a.result["n1"]["data"]["received"] == {"who": "first"}
        assert run_b.result["n1"]["data"]["received"] == {"who": "second"}


@pytest.mark.integration
class TestWorkerRunForever:

    async def test_drains_queue_in_background(self, worker, dispatcher, make_flow, wait_for_terminal):
        flow_id = await make_flow([{"id": "n1", "type": "log"}])
        task = asyncio.create_task(worker.run_forever())
        try:
            run_ids = [await dispatcher.submit(flow_id, {"i": i}) for i in range(3)]
            runs = [await wait_for_terminal(run_id) for run_id in run_ids]
        finally:
            await _stop(worker, task)

        assert [r.state for r in runs] == ["completed"] * 3

    async def test_survives_malformed_job(self, worker, queue, dispatcher, make_flow, wait_for_terminal):
        flow_id = await make_flow([{"id": "n1", "type": "log"}])
        queue._entries.append("garbage")
        run_id = await dispatcher.submit(flow_id, {})

        task = asyncio.create_task(worker.run_forever())
        try:
            run = await wait_for_terminal(run_id)
        finally:
            await _stop(worker, task)

        assert run.state == "completed"

    async def test_survives_queue_outage(self, session_factory, queue, executor, dispatcher, make_flow, wait_for_terminal):
        run_id = await dispatcher.submit(await make_flow([{"id": "n1", "type": "log"}]), {})
        flaky = FlakyQueue(queue)
        worker = WorkerLoop(session_factory, flaky, executor, poll_interval=0.01, error_backoff=0.01)

        task = asyncio.create_task(worker.run_forever())
        try:
            run = await wait_for_terminal(run_id)
        finally:
            await _stop(worker, task)

        assert flaky.polls >= 2
        assert run.state == "completed"

    async def test_stop_wakes_idle_worker(self, session_factory, queue, executor):
        worker = WorkerLoop(session_factory, queue, executor, poll_interval=30)
        task = asyncio.create_task(worker.run_forever())
        await asyncio.sleep(0.05)

        await _stop(worker, task)
        assert task.done()


@pytest.mark.integration
class TestLostJobs:
    """A dequeued job is gone from the queue; a crash after that loses it."""

    async def test_crash_mid_run_leaves_run_running_forever(
        self, session_factory, queue, executor, dispatcher, make_flow, load_run
    ):
        run_id = await dispatcher.submit(await make_flow([{"id": "n1", "type": "delay", "ms": 1}]), {})
        blocking = BlockingExecutor()
        doomed = WorkerLoop(session_factory, queue, blocking, poll_interval=0.01)

        task = asyncio.create_task(doomed.run_forever())
        await asyncio.wait_for(blocking.started.wait(), timeout=2)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert (await load_run(run_id)).state == "running"
        assert await queue.length() == 0

        survivor = WorkerLoop(session_factory, queue, executor)
        assert await survivor.run_once() is False
        run = await load_run(run_id)
        assert run.state == "running"
        assert run.result is None

    async def test_crash_right_after_dequeue_leaves_run_queued_forever(
        self, session_factory, queue, executor, dispatcher, make_flow, load_run
    ):
        run_id = await dispatcher.submit(await make_flow([{"id": "n1", "type": "log"}]), {})

        # The consumer takes the entry and dies before touching the run row.
        assert await queue.dequeue() == run_id

        survivor = WorkerLoop(session_factory, queue, executor)
        assert await survivor.run_once() is False
        assert (await load_run(run_id)).state == "queued"


@pytest.mark.unit
class TestBuildWorkers:

    def test_builds_configured_number_of_loops(self, resources):
        resources.settings = Settings(RUN_QUEUE_BACKEND="memory", WORKER_CONCURRENCY=3, WORKER_POLL_INTERVAL=0.2)
        workers = build_workers(resources)

        assert [w.name for w in workers] == ["worker-1", "worker-2", "worker-3"]
        assert all(w.queue is resources.queue for w in workers)
        assert all(w.poll_interval == 0.2 for w in workers)

    def test_default_timing_settings(self):
        settings = Settings()
        assert settings.WORKER_POLL_INTERVAL == 0.5
        assert settings.WORKER_ERROR_BACKOFF == 1.0
