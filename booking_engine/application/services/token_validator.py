"""Emisión y validación de tokens de acción con periodo de gracia."""

import logging
import secrets
from datetime import datetime, timedelta

from booking_engine.application.services.civil_clock import CivilClock
from booking_engine.domain.constants import (
    TOKEN_BYTES,
    TOKEN_EXTENDED_GRACE_SECONDS,
    TOKEN_GRACE_SECONDS,
)
from booking_engine.domain.entities.booking import Booking, Schedule
from booking_engine.domain.errors import TokenExpiredError

logger = logging.getLogger(__name__)


class TokenValidator:
    """
    Los tokens expiran en el instante de inicio de la reserva. Se aceptan
    hasta `grace_seconds` después para absorber desfases de reloj y
    formularios abiertos al momento del vencimiento.
    """

    def __init__(
        self,
        civil_clock: CivilClock,
        grace_seconds: int = TOKEN_GRACE_SECONDS,
        extended_grace_seconds: int = TOKEN_EXTENDED_GRACE_SECONDS,
    ) -> None:
        self._civil_clock = civil_clock
        self.grace_seconds = grace_seconds
        self.extended_grace_seconds = extended_grace_seconds

    def expiry_for(self, schedule: Schedule) -> datetime:
        return self._civil_clock.to_instant(schedule.start_date, schedule.start_time)

    def issue(self, booking: Booking, schedule: Schedule | None = None) -> tuple[str, datetime]:
        """
        Genera un token nuevo para la reserva.

        Args:
            booking: Reserva destinataria.
            schedule: Fechas a usar para la expiración (por defecto las actuales).

        Returns:
            Tupla (token, expires_at).
        """
        token = secrets.token_hex(TOKEN_BYTES)
        expires_at = self.expiry_for(schedule or booking.schedule)
        return token, expires_at

    def is_expired(self, booking: Booking, grace_seconds: int | None = None) -> bool:
        if booking.token_expires_at is None:
            return False
        grace = self.grace_seconds if grace_seconds is None else grace_seconds
        return self._civil_clock.now() > booking.token_expires_at + timedelta(seconds=grace)

    def validate(self, booking: Booking, grace_seconds: int | None = None) -> None:
        """
        Raises:
            TokenExpiredError: Si now > token_expires_at + gracia.
        """
        grace = self.grace_seconds if grace_seconds is None else grace_seconds
        if self.is_expired(booking, grace):
            logger.info(
                "Token expirado",
                extra={
                    "booking_id": booking.id,
                    "token_expires_at": booking.token_expires_at.isoformat(),
                    "grace_seconds": grace,
                },
            )
            raise TokenExpiredError(
                booking_id=booking.id,
                expired_at=booking.token_expires_at.isoformat(),
                grace_seconds=grace,
            )
