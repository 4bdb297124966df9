"""Compare-and-swap sobre la versión (`updated_at`) de una reserva."""

import logging
from datetime import datetime, timedelta
from typing import Any

from booking_engine.application.interfaces.booking_repo import BookingRepo
from booking_engine.application.interfaces.clock import Clock
from booking_engine.domain.entities.booking import Booking, validate_change_keys
from booking_engine.domain.errors import OptimisticLockError

logger = logging.getLogger(__name__)

VERSION_STEP = timedelta(microseconds=1)


class ConcurrencyGuard:
    """
    Único punto de escritura de reservas.

    La nueva versión siempre es estrictamente mayor que la esperada, aun si el
    reloj retrocede o dos escrituras caen en el mismo microsegundo.
    """

    def __init__(self, booking_repo: BookingRepo, clock: Clock) -> None:
        self._booking_repo = booking_repo
        self._clock = clock

    def next_version(self, expected_version: datetime) -> datetime:
        return max(self._clock.now(), expected_version + VERSION_STEP)

    async def compare_and_swap(
        self,
        booking_id: str,
        expected_version: datetime,
        mutation: dict[str, Any],
    ) -> Booking:
        """
        Aplica `mutation` solo si la versión almacenada es `expected_version`.

        Raises:
            OptimisticLockError: Si otra escritura ganó la carrera.
        """
        validate_change_keys(mutation)
        new_version = self.next_version(expected_version)
        updated = await self._booking_repo.update_if_version(
            booking_id=booking_id,
            expected_version=expected_version,
            changes=mutation,
            new_version=new_version,
        )
        if updated is None:
            logger.warning(
                "Conflicto de bloqueo optimista",
                extra={"booking_id": booking_id, "expected_version": expected_version.isoformat()},
            )
            raise OptimisticLockError(booking_id, expected_version.isoformat())
        return updated
