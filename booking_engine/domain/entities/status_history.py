"""Entidad StatusHistoryEntry - registro de auditoría de transiciones."""

from dataclasses import dataclass
from datetime import datetime
from uuid import uuid4

from booking_engine.domain.entities.booking import BookingStatus


@dataclass(frozen=True)
class StatusHistoryEntry:
    """
    Registro append-only de una transición exitosa.

    Se crea exactamente una vez por transición y nunca se modifica; solo se
    elimina en cascada cuando la reserva es purgada administrativamente.
    """

    id: str
    booking_id: str
    previous_status: BookingStatus
    new_status: BookingStatus
    created_at: datetime
    actor: str | None = None
    reason: str | None = None

    @classmethod
    def record(
        cls,
        booking_id: str,
        previous_status: BookingStatus,
        new_status: BookingStatus,
        created_at: datetime,
        actor: str | None = None,
        reason: str | None = None,
    ) -> "StatusHistoryEntry":
        """Factory para registrar una transición."""
        return cls(
            id=str(uuid4()),
            booking_id=booking_id,
            previous_status=previous_status,
            new_status=new_status,
            created_at=created_at,
            actor=actor,
            reason=reason,
        )
