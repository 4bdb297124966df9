"""Entidad RetryJob - trabajo durable de la cola de reintentos."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from booking_engine.domain.constants import RETRY_BACKOFF_SECONDS


class RetryJobStatus(str, Enum):
    """Estados de un job en la cola de reintentos."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    DEAD = "dead"


@dataclass
class RetryJob:
    """
    Unidad de trabajo diferido (limpieza de archivos huérfanos, notificaciones).

    Los jobs se procesan al menos una vez: los handlers deben ser idempotentes.
    Un job `dead` permanece visible para remediación manual.
    """

    id: str
    type: str
    payload: dict[str, Any] = field(default_factory=dict)

    # Prioridad: menor valor se ejecuta primero
    priority: int = 5

    # Reintentos
    attempts: int = 0
    max_attempts: int = 3
    next_run_at: datetime | None = None
    last_error: str | None = None

    status: RetryJobStatus = RetryJobStatus.PENDING

    # Lease del worker que reclamó el job
    locked_by: str | None = None
    lock_expires_at: datetime | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None

    # === Propiedades ===

    @property
    def can_retry(self) -> bool:
        return self.attempts < self.max_attempts

    @property
    def is_final(self) -> bool:
        return self.status in (RetryJobStatus.SUCCEEDED, RetryJobStatus.DEAD)

    def is_due(self, now: datetime) -> bool:
        """Verifica si el job puede ser reclamado en el instante `now`."""
        if self.status != RetryJobStatus.PENDING:
            return False
        if self.next_run_at and now < self.next_run_at:
            return False
        if self.locked_by and self.lock_expires_at and now < self.lock_expires_at:
            return False
        return True

    # === Métodos de negocio ===

    def claim(self, worker_id: str, now: datetime, lock_seconds: int) -> None:
        self.locked_by = worker_id
        self.lock_expires_at = now + timedelta(seconds=lock_seconds)
        self.updated_at = now

    def release_lock(self) -> None:
        self.locked_by = None
        self.lock_expires_at = None

    def mark_succeeded(self, now: datetime) -> None:
        self.status = RetryJobStatus.SUCCEEDED
        self.last_error = None
        self.updated_at = now
        self.release_lock()

    def mark_retry(self, now: datetime, error: str) -> None:
        """
        Registra un intento fallido.

        Incrementa `attempts`; si se agotó el presupuesto el job pasa a `dead`,
        si no se reprograma con el backoff de la tabla RETRY_BACKOFF_SECONDS.

        Args:
            now: Instante del fallo.
            error: Descripción del error (se guarda para diagnóstico).
        """
        self.attempts += 1
        self.last_error = error
        self.updated_at = now
        self.release_lock()

        if not self.can_retry:
            self.status = RetryJobStatus.DEAD
            return

        index = min(self.attempts - 1, len(RETRY_BACKOFF_SECONDS) - 1)
        self.next_run_at = now + timedelta(seconds=RETRY_BACKOFF_SECONDS[index])

    def requeue(self, now: datetime) -> None:
        """Reinicia un job `dead` con un presupuesto de intentos nuevo."""
        self.status = RetryJobStatus.PENDING
        self.attempts = 0
        self.next_run_at = now
        self.updated_at = now
        self.release_lock()

    def to_wire(self) -> dict[str, Any]:
        """Forma persistida/intercambiada del job."""
        return {
            "id": self.id,
            "type": self.type,
            "payload": self.payload,
            "priority": self.priority,
            "attempts": self.attempts,
            "maxAttempts": self.max_attempts,
            "nextRunAt": self.next_run_at.isoformat() if self.next_run_at else None,
            "status": self.status.value,
            "lastError": self.last_error,
        }
