import logging
from collections.abc import Awaitable, Callable
from typing import Any
from uuid import uuid4

from booking_engine.application.dtos.transition_dto import ProcessRetryJobsResult
from booking_engine.application.interfaces.blob_store import BlobStore
from booking_engine.application.interfaces.clock import Clock
from booking_engine.application.interfaces.notification_dispatcher import NotificationDispatcher
from booking_engine.application.interfaces.retry_job_repo import RetryJobRepo
from booking_engine.domain.constants import JOB_DELETE_ORPHANED_BLOB, JOB_DISPATCH_NOTIFICATION
from booking_engine.domain.entities.retry_job import RetryJob, RetryJobStatus

JobHandler = Callable[[dict[str, Any]], Awaitable[None]]


class ProcessRetryJobsUseCase:
    """
    Reclama y ejecuta un lote de jobs vencidos.

    Semántica al-menos-una-vez: un job puede ejecutarse más de una vez si el
    worker muere después del efecto pero antes de marcarlo, por eso los
    handlers son idempotentes (eliminar un archivo inexistente no falla).
    """

    def __init__(
        self,
        retry_job_repo: RetryJobRepo,
        blob_store: BlobStore,
        notifier: NotificationDispatcher,
        clock: Clock,
        batch_size: int = 10,
        lock_seconds: int = 300,
    ) -> None:
        self._retry_job_repo = retry_job_repo
        self._clock = clock
        self._batch_size = batch_size
        self._lock_seconds = lock_seconds
        self._logger = logging.getLogger(__name__)
        self._handlers: dict[str, JobHandler] = {
            JOB_DELETE_ORPHANED_BLOB: lambda payload: blob_store.delete(payload["evidence_ref"]),
            JOB_DISPATCH_NOTIFICATION: lambda payload: notifier.notify(
                payload["event"], payload.get("booking", {})
            ),
        }

    def register_handler(self, job_type: str, handler: JobHandler) -> None:
        self._handlers[job_type] = handler

    async def execute(self, worker_id: str | None = None) -> ProcessRetryJobsResult:
        worker_id = worker_id or f"worker-{uuid4().hex[:8]}"
        jobs = await self._retry_job_repo.claim_due(
            worker_id=worker_id,
            now=self._clock.now(),
            limit=self._batch_size,
            lock_seconds=self._lock_seconds,
        )

        result = ProcessRetryJobsResult(claimed=len(jobs))
        for job in jobs:
            if not await self._run(job, worker_id):
                result.stale += 1
            elif job.status == RetryJobStatus.SUCCEEDED:
                result.succeeded += 1
            elif job.status == RetryJobStatus.DEAD:
                result.dead += 1
            else:
                result.retried += 1
        return result

    async def _run(self, job: RetryJob, worker_id: str) -> bool:
        """Ejecuta un job; devuelve False si el resultado se descartó por lease vencido."""
        handler = self._handlers.get(job.type)
        try:
            if handler is None:
                raise LookupError(f"No hay handler para el tipo de job '{job.type}'")
            await handler(job.payload)
        except Exception as exc:
            job.mark_retry(self._clock.now(), error=str(exc) or exc.__class__.__name__)
            if not await self._retry_job_repo.save(job, worker_id=worker_id):
                self._log_stale(job, worker_id)
                return False
            if job.status == RetryJobStatus.DEAD:
                self._logger.error(
                    "Job agotó sus reintentos",
                    exc_info=exc,
                    extra={"job_id": job.id, "job_type": job.type, "attempts": job.attempts},
                )
            else:
                self._logger.warning(
                    "Job fallido, reprogramado",
                    extra={
                        "job_id": job.id,
                        "job_type": job.type,
                        "attempts": job.attempts,
                        "next_run_at": job.next_run_at.isoformat() if job.next_run_at else None,
                    },
                )
            return True

        job.mark_succeeded(self._clock.now())
        if not await self._retry_job_repo.save(job, worker_id=worker_id):
            self._log_stale(job, worker_id)
            return False
        self._logger.info("Job completado", extra={"job_id": job.id, "job_type": job.type})
        return True

    def _log_stale(self, job: RetryJob, worker_id: str) -> None:
        self._logger.warning(
            "Lease vencido, otro worker reclamó el job; resultado descartado",
            extra={"job_id": job.id, "job_type": job.type, "worker_id": worker_id},
        )
