from datetime import datetime
from typing import Any

from booking_engine.domain.entities.retry_job import RetryJob


class RetryJobRepo:
    async def enqueue(
        self,
        job_type: str,
        payload: dict[str, Any],
        priority: int,
        max_attempts: int,
        now: datetime,
    ) -> RetryJob:
        raise NotImplementedError

    async def get_by_id(self, job_id: str) -> RetryJob | None:
        raise NotImplementedError

    async def claim_due(
        self,
        worker_id: str,
        now: datetime,
        limit: int = 10,
        lock_seconds: int = 300,
    ) -> list[RetryJob]:
        """
        Reclama jobs pendientes y vencidos, ordenados por (priority, next_run_at).

        Un job con lease expirado vuelve a ser reclamable.
        """
        raise NotImplementedError

    async def save(self, job: RetryJob, worker_id: str | None = None) -> bool:
        """
        Persiste el estado mutable del job (status, attempts, lease...).

        Con `worker_id` la escritura solo se aplica si ese worker conserva el
        lease; si otro worker reclamó el job después, la escritura se descarta.

        Returns:
            True si se escribió, False si el resultado llegó tarde.
        """
        raise NotImplementedError

    async def list_by_status(self, status: str, limit: int = 100) -> list[RetryJob]:
        raise NotImplementedError
