"""Entidad Booking - Agregado raíz del dominio."""

from dataclasses import dataclass, fields, replace
from datetime import date, datetime, time
from enum import Enum
from typing import Any

from booking_engine.domain.constants import (
    BOOKING_STATUS_CANCELLED,
    BOOKING_STATUS_CONFIRMED,
    BOOKING_STATUS_FINISHED,
    BOOKING_STATUS_PAID_DEPOSIT,
    BOOKING_STATUS_PENDING,
    BOOKING_STATUS_PENDING_DEPOSIT,
)
from booking_engine.domain.value_objects.reference_number import ReferenceNumber


class BookingStatus(str, Enum):
    """Estados posibles de una reserva (conjunto cerrado)."""

    PENDING = BOOKING_STATUS_PENDING
    PENDING_DEPOSIT = BOOKING_STATUS_PENDING_DEPOSIT
    PAID_DEPOSIT = BOOKING_STATUS_PAID_DEPOSIT
    CONFIRMED = BOOKING_STATUS_CONFIRMED
    CANCELLED = BOOKING_STATUS_CANCELLED
    FINISHED = BOOKING_STATUS_FINISHED

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.CANCELLED, BookingStatus.FINISHED)


# Campos que nunca se modifican a través de un compare-and-swap
IMMUTABLE_FIELDS = frozenset({"id", "reference_number", "created_at", "updated_at"})


@dataclass(frozen=True)
class Schedule:
    """Fechas y horas civiles de una reserva (sin zona horaria)."""

    start_date: date
    end_date: date | None = None
    start_time: time | None = None
    end_time: time | None = None

    @property
    def is_multi_day(self) -> bool:
        return self.end_date is not None and self.end_date != self.start_date


@dataclass
class Booking:
    """
    Entidad principal del dominio - Agregado Raíz.

    Representa una solicitud/contrato de reserva del espacio. Solo se muta a
    través del orquestador de transiciones; `updated_at` funciona a la vez
    como versión para el bloqueo optimista.
    """

    # Identificadores
    id: str
    reference_number: str

    # Programación (civil, interpretada en la zona horaria configurada)
    start_date: date
    end_date: date | None = None
    start_time: time | None = None
    end_time: time | None = None

    # Fechas propuestas (renegociación)
    proposed_start_date: date | None = None
    proposed_end_date: date | None = None
    proposed_start_time: time | None = None
    proposed_end_time: time | None = None

    # Estado
    status: BookingStatus = BookingStatus.PENDING

    # Contacto mínimo
    name: str = ""
    email: str = ""

    # Token de acción
    response_token: str | None = None
    token_expires_at: datetime | None = None

    # Depósito
    deposit_evidence_ref: str | None = None
    deposit_verified_at: datetime | None = None
    deposit_verified_by: str | None = None
    deposit_verified_other_channel: bool = False

    # Metadata administrativa
    admin_notes: str | None = None
    user_response: str | None = None
    user_response_at: datetime | None = None

    # Timestamps (updated_at = versión)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        ReferenceNumber(self.reference_number)

    # === Propiedades calculadas ===

    @property
    def schedule(self) -> Schedule:
        """Fechas actuales como Value Object."""
        return Schedule(
            start_date=self.start_date,
            end_date=self.end_date,
            start_time=self.start_time,
            end_time=self.end_time,
        )

    @property
    def proposed_schedule(self) -> Schedule | None:
        if self.proposed_start_date is None:
            return None
        return Schedule(
            start_date=self.proposed_start_date,
            end_date=self.proposed_end_date,
            start_time=self.proposed_start_time if self.proposed_start_time else self.start_time,
            end_time=self.proposed_end_time if self.proposed_end_time else self.end_time,
        )

    @property
    def has_deposit_evidence(self) -> bool:
        return bool(self.deposit_evidence_ref)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def version(self) -> datetime | None:
        """Versión usada por el compare-and-swap."""
        return self.updated_at

    # === Métodos de negocio ===

    def summary(self) -> dict[str, Any]:
        """Información mínima para identificar la reserva en conflictos."""
        return {
            "id": self.id,
            "reference_number": self.reference_number,
            "name": self.name,
            "status": self.status.value,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "start_time": self.start_time.strftime("%H:%M") if self.start_time else None,
            "end_time": self.end_time.strftime("%H:%M") if self.end_time else None,
        }

    def with_changes(self, changes: dict[str, Any], updated_at: datetime) -> "Booking":
        """
        Retorna una copia con los cambios aplicados y la nueva versión.

        Raises:
            ValueError: Si se intenta modificar un campo inmutable o inexistente.
        """
        validate_change_keys(changes)
        return replace(self, **changes, updated_at=updated_at)


_FIELD_NAMES = frozenset(f.name for f in fields(Booking))


def validate_change_keys(changes: dict[str, Any]) -> None:
    unknown = set(changes) - _FIELD_NAMES
    if unknown:
        raise ValueError(f"Campos desconocidos en la mutación: {sorted(unknown)}")
    forbidden = set(changes) & IMMUTABLE_FIELDS
    if forbidden:
        raise ValueError(f"Campos inmutables en la mutación: {sorted(forbidden)}")
