"""
Capa de Dominio - Motor de ciclo de vida de reservas.

Esta capa contiene la lógica de negocio pura, sin dependencias de frameworks.

Estructura:
- entities/: Entidades del dominio (Booking, StatusHistoryEntry, RetryJob)
- value_objects/: Objetos de valor inmutables (InstantRange, ReferenceNumber)
- state_machine.py: Tabla de transiciones y acciones disponibles
- errors.py: Excepciones específicas del dominio
- constants.py: Constantes del dominio
"""

from booking_engine.domain.entities import (
    Booking,
    BookingStatus,
    RetryJob,
    RetryJobStatus,
    Schedule,
    StatusHistoryEntry,
)
from booking_engine.domain.errors import (
    BookingNotFoundError,
    BookingOverlapError,
    DomainError,
    IllegalTransitionError,
    NotFoundError,
    OptimisticLockError,
    RetryJobNotFoundError,
    TokenExpiredError,
    TokenNotFoundError,
    ValidationError,
    WarningsNotAcknowledgedError,
)
from booking_engine.domain.state_machine import ActionDefinition, AdminAction, UserAction
from booking_engine.domain.value_objects import InstantRange, ReferenceNumber

__all__ = [
    # Entities
    "Booking",
    "BookingStatus",
    "RetryJob",
    "RetryJobStatus",
    "Schedule",
    "StatusHistoryEntry",
    # State machine
    "ActionDefinition",
    "AdminAction",
    "UserAction",
    # Value objects
    "InstantRange",
    "ReferenceNumber",
    # Errors
    "BookingNotFoundError",
    "BookingOverlapError",
    "DomainError",
    "IllegalTransitionError",
    "NotFoundError",
    "OptimisticLockError",
    "RetryJobNotFoundError",
    "TokenExpiredError",
    "TokenNotFoundError",
    "ValidationError",
    "WarningsNotAcknowledgedError",
]
