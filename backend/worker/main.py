"""Worker process entry point.

Usage::

    flowrunner-worker            # or: python -m worker.main

Starts ``WORKER_CONCURRENCY`` worker loops sharing one set of resource
handles and stops them on SIGINT / SIGTERM.
"""

import asyncio
import logging
import signal
from typing import Optional

from app.config import Settings, get_settings
from app.resources import Resources
from core.logging_config import setup_logging
from db.database import init_db
from tasks.registry import NodeHandlerRegistry
from worker.loop import WorkerLoop
from workflow.engine import NodeExecutor

logger = logging.getLogger(__name__)


def build_workers(resources: Resources) -> list[WorkerLoop]:
    settings = resources.settings
    executor = NodeExecutor(NodeHandlerRegistry(resources.http_client))
    return [
        WorkerLoop(
            session_factory=resources.session_factory,
            queue=resources.queue,
            executor=executor,
            poll_interval=settings.WORKER_POLL_INTERVAL,
            error_backoff=settings.WORKER_ERROR_BACKOFF,
            name=f"worker-{i + 1}",
        )
        for i in range(max(1, settings.WORKER_CONCURRENCY))
    ]


async def main(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    setup_logging(settings, component="worker")

    resources = Resources.open(settings)
    try:
        await init_db(resources.db_engine)
        workers = build_workers(resources)

        def _shutdown() -> None:
            logger.info("Shutdown requested, stopping workers")
            for worker in workers:
                worker.stop()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _shutdown)

        logger.info(f"Starting {len(workers)} worker loop(s)")
        await asyncio.gather(*(worker.run_forever() for worker in workers))
    finally:
        await resources.aclose()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
