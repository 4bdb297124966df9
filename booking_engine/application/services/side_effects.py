"""
Efectos posteriores al commit: limpieza de comprobantes y notificaciones.

Ninguno de estos efectos puede revertir una transición ya confirmada; un
fallo se registra y se convierte en un RetryJob.
"""

import logging
from typing import Any

from booking_engine.application.interfaces.blob_store import BlobStore
from booking_engine.application.interfaces.clock import Clock
from booking_engine.application.interfaces.notification_dispatcher import NotificationDispatcher
from booking_engine.application.interfaces.retry_job_repo import RetryJobRepo
from booking_engine.domain.constants import (
    CLEANUP_JOB_MAX_ATTEMPTS,
    CLEANUP_JOB_PRIORITY,
    JOB_DELETE_ORPHANED_BLOB,
    JOB_DISPATCH_NOTIFICATION,
    NOTIFICATION_JOB_MAX_ATTEMPTS,
    NOTIFICATION_JOB_PRIORITY,
)
from booking_engine.domain.entities.retry_job import RetryJob

logger = logging.getLogger(__name__)


class SideEffects:
    def __init__(
        self,
        blob_store: BlobStore,
        notifier: NotificationDispatcher,
        retry_job_repo: RetryJobRepo,
        clock: Clock,
        cleanup_priority: int = CLEANUP_JOB_PRIORITY,
        cleanup_max_attempts: int = CLEANUP_JOB_MAX_ATTEMPTS,
        notification_priority: int = NOTIFICATION_JOB_PRIORITY,
        notification_max_attempts: int = NOTIFICATION_JOB_MAX_ATTEMPTS,
    ) -> None:
        self._blob_store = blob_store
        self._notifier = notifier
        self._retry_job_repo = retry_job_repo
        self._clock = clock
        self._cleanup_priority = cleanup_priority
        self._cleanup_max_attempts = cleanup_max_attempts
        self._notification_priority = notification_priority
        self._notification_max_attempts = notification_max_attempts

    async def schedule_cleanup(
        self, evidence_ref: str, booking_id: str, reason: str
    ) -> RetryJob | None:
        """
        Elimina un comprobante huérfano o encola su eliminación.

        Returns:
            None si el archivo se eliminó en línea, o el RetryJob encolado.
        """
        try:
            await self._blob_store.delete(evidence_ref)
        except Exception as exc:
            logger.warning(
                "Fallo al eliminar comprobante, se encola reintento",
                exc_info=exc,
                extra={"booking_id": booking_id, "evidence_ref": evidence_ref, "reason": reason},
            )
            return await self._retry_job_repo.enqueue(
                job_type=JOB_DELETE_ORPHANED_BLOB,
                payload={
                    "evidence_ref": evidence_ref,
                    "booking_id": booking_id,
                    "reason": reason,
                },
                priority=self._cleanup_priority,
                max_attempts=self._cleanup_max_attempts,
                now=self._clock.now(),
            )

        logger.info(
            "Comprobante eliminado",
            extra={"booking_id": booking_id, "evidence_ref": evidence_ref, "reason": reason},
        )
        return None

    async def notify(self, event: str, payload: dict[str, Any]) -> RetryJob | None:
        try:
            await self._notifier.notify(event, payload)
        except Exception as exc:
            logger.warning(
                "Fallo al notificar, se encola reintento",
                exc_info=exc,
                extra={"event": event, "booking_id": payload.get("id")},
            )
            return await self._retry_job_repo.enqueue(
                job_type=JOB_DISPATCH_NOTIFICATION,
                payload={"event": event, "booking": payload},
                priority=self._notification_priority,
                max_attempts=self._notification_max_attempts,
                now=self._clock.now(),
            )
        return None
