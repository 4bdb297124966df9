"""DTOs para transiciones de estado y procesos en lote."""

from dataclasses import dataclass, field
from typing import Any

from booking_engine.domain.entities.booking import Booking
from booking_engine.domain.entities.retry_job import RetryJob
from booking_engine.domain.entities.status_history import StatusHistoryEntry


@dataclass
class TransitionRequestDTO:
    """
    Solicitud de cambio de estado.

    `extra_payload` transporta los datos propios de cada acción: fechas nuevas
    para `change_date` (start_date, end_date, start_time, end_time,
    as_proposal) o `deposit_evidence_ref` para `submit_deposit`.
    """

    booking_id: str
    requested_status: str
    action: str | None = None
    actor: str | None = None
    reason: str | None = None
    admin_notes: str | None = None
    acknowledge_warnings: bool = False
    extra_payload: dict[str, Any] = field(default_factory=dict)

    # Solo para acciones autenticadas con token del cliente
    token: str | None = None
    token_grace_seconds: int | None = None

    @property
    def via_token(self) -> bool:
        return self.token is not None


@dataclass
class TransitionResultDTO:
    """Resultado de una transición confirmada."""

    booking: Booking
    status_history: StatusHistoryEntry
    warnings: list[str] = field(default_factory=list)
    retry_jobs: list[RetryJob] = field(default_factory=list)


@dataclass
class AutoUpdateResult:
    cancelled: list[str] = field(default_factory=list)
    finished: list[str] = field(default_factory=list)
    skipped: list[dict[str, str]] = field(default_factory=list)


@dataclass
class ProcessRetryJobsResult:
    claimed: int = 0
    succeeded: int = 0
    retried: int = 0
    dead: int = 0
    stale: int = 0
