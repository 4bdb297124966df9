"""Excepciones de dominio para el motor de ciclo de vida de reservas."""

from typing import Any


class DomainError(Exception):
    """Clase base para todos los errores de dominio."""

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Representación serializable para la capa API."""
        return {"code": self.code, "message": self.message}


# === Errores de búsqueda ===


class NotFoundError(DomainError):
    """El recurso solicitado no existe."""


class BookingNotFoundError(NotFoundError):
    """La reserva no existe."""

    def __init__(self, booking_id: str):
        super().__init__(
            message=f"Reserva no encontrada: {booking_id}",
            code="BOOKING_NOT_FOUND",
        )
        self.booking_id = booking_id


class TokenNotFoundError(NotFoundError):
    """El token no corresponde a ninguna reserva (link inválido, no expirado)."""

    def __init__(self) -> None:
        super().__init__(
            message="El enlace no es válido: el token no corresponde a ninguna reserva",
            code="TOKEN_NOT_FOUND",
        )


class RetryJobNotFoundError(NotFoundError):
    """El job de reintento no existe."""

    def __init__(self, job_id: str):
        super().__init__(
            message=f"Job de reintento no encontrado: {job_id}",
            code="RETRY_JOB_NOT_FOUND",
        )
        self.job_id = job_id


# === Errores del ciclo de vida ===


class IllegalTransitionError(DomainError):
    """El estado solicitado no es alcanzable desde el estado actual."""

    def __init__(self, current_status: str, requested_status: str, legal_targets: list[str]):
        allowed = ", ".join(legal_targets) if legal_targets else "ninguno"
        super().__init__(
            message=f"Transición ilegal: '{current_status}' -> '{requested_status}'. "
            f"Destinos permitidos: {allowed}",
            code="ILLEGAL_TRANSITION",
        )
        self.current_status = current_status
        self.requested_status = requested_status
        self.legal_targets = legal_targets

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["legal_targets"] = self.legal_targets
        return data


class BookingOverlapError(DomainError):
    """El rango candidato se superpone con una reserva bloqueante."""

    def __init__(self, booking_id: str | None, conflicts: list[dict[str, Any]], final_check: bool = False):
        names = ", ".join(
            f"{c.get('reference_number')} ({c.get('name') or 'sin nombre'})" for c in conflicts
        )
        prefix = (
            "La fecha ya no está disponible, se confirmó otra reserva recientemente"
            if final_check
            else "El rango de fechas se superpone con reservas confirmadas"
        )
        super().__init__(message=f"{prefix}: {names}", code="BOOKING_OVERLAP")
        self.booking_id = booking_id
        self.conflicts = conflicts
        self.final_check = final_check

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["conflicts"] = self.conflicts
        return data


class TokenExpiredError(DomainError):
    """El token superó su expiración más el periodo de gracia."""

    def __init__(self, booking_id: str, expired_at: str, grace_seconds: int):
        super().__init__(
            message=f"El enlace expiró el {expired_at} (gracia de {grace_seconds // 60} minutos). "
            "Solicite un nuevo enlace",
            code="TOKEN_EXPIRED",
        )
        self.booking_id = booking_id
        self.expired_at = expired_at
        self.grace_seconds = grace_seconds


class OptimisticLockError(DomainError):
    """Conflicto de concurrencia al actualizar la reserva."""

    def __init__(self, booking_id: str, expected_version: str):
        super().__init__(
            message=f"Conflicto de concurrencia en reserva {booking_id}: fue modificada por "
            f"otro proceso (versión esperada {expected_version}). Recargue e intente de nuevo",
            code="OPTIMISTIC_LOCK_CONFLICT",
        )
        self.booking_id = booking_id
        self.expected_version = expected_version


class WarningsNotAcknowledgedError(DomainError):
    """La acción tiene advertencias que requieren confirmación explícita."""

    def __init__(self, booking_id: str, warnings: list[str]):
        super().__init__(
            message="La acción requiere confirmación: " + " | ".join(warnings),
            code="WARNINGS_NOT_ACKNOWLEDGED",
        )
        self.booking_id = booking_id
        self.warnings = warnings

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["warnings"] = self.warnings
        return data


# === Errores de Validación ===


class ValidationError(DomainError):
    """Error de validación de datos de entrada."""

    def __init__(self, field: str, message: str):
        super().__init__(
            message=f"Validación fallida en '{field}': {message}",
            code="VALIDATION_ERROR",
        )
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["field"] = self.field
        return data
