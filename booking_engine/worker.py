"""
Entrypoint del worker de reintentos.

Uso: python -m booking_engine.worker
"""

import asyncio
import logging

from booking_engine.api.dependencies import (
    _in_memory_bundle,
    build_blob_store,
    build_notifier,
    build_use_cases,
    get_clock,
)
from booking_engine.api.deps import AsyncSessionLocal
from booking_engine.application.dtos.transition_dto import ProcessRetryJobsResult
from booking_engine.config import Settings, get_settings
from booking_engine.infrastructure.db.repositories.booking_repo_sql import BookingRepoSQL
from booking_engine.infrastructure.db.repositories.retry_job_repo_sql import RetryJobRepoSQL
from booking_engine.infrastructure.db.engine import session_scope
from booking_engine.infrastructure.db.retry import retry_on_deadlock
from booking_engine.infrastructure.db.transaction_manager import SQLAlchemyTransactionManager
from booking_engine.infrastructure.messaging.retry_worker import RetryWorker

logger = logging.getLogger(__name__)


def make_batch_runner(settings: Settings):
    """Cada lote usa su propia sesión y confirma al terminar."""
    clock = get_clock()

    async def run_in_memory(worker_id: str) -> ProcessRetryJobsResult:
        use_cases = build_use_cases(settings=settings, clock=clock, **_in_memory_bundle())
        return await use_cases["process_retry_jobs"].execute(worker_id=worker_id)

    async def run_with_session(worker_id: str) -> ProcessRetryJobsResult:
        async with session_scope(AsyncSessionLocal) as session:
            use_cases = build_use_cases(
                settings=settings,
                clock=clock,
                booking_repo=BookingRepoSQL(session),
                retry_job_repo=RetryJobRepoSQL(session),
                blob_store=build_blob_store(settings),
                notifier=build_notifier(settings),
                tx_manager=SQLAlchemyTransactionManager(session),
            )
            return await use_cases["process_retry_jobs"].execute(worker_id=worker_id)

    if settings.use_in_memory:
        return run_in_memory

    async def run_batch(worker_id: str) -> ProcessRetryJobsResult:
        return await retry_on_deadlock(lambda: run_with_session(worker_id))

    return run_batch


async def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    worker = RetryWorker(
        run_batch=make_batch_runner(settings),
        poll_interval_seconds=settings.retry_worker_poll_seconds,
    )
    try:
        await worker.start()
    finally:
        await worker.stop()


if __name__ == "__main__":
    asyncio.run(main())
