"""Detección de superposición de reservas sobre instantes absolutos."""

import logging
from collections.abc import Iterable
from datetime import date, time, timedelta

from booking_engine.application.interfaces.booking_repo import BookingRepo
from booking_engine.application.services.civil_clock import CivilClock
from booking_engine.domain.constants import BLOCKING_STATUSES
from booking_engine.domain.entities.booking import Booking, Schedule
from booking_engine.domain.errors import BookingOverlapError

logger = logging.getLogger(__name__)


class OverlapDetector:
    def __init__(self, booking_repo: BookingRepo, civil_clock: CivilClock) -> None:
        self._booking_repo = booking_repo
        self._civil_clock = civil_clock

    async def find_overlapping(
        self,
        exclude_booking_id: str | None,
        start_date: date | str,
        end_date: date | str | None = None,
        start_time: time | str | None = None,
        end_time: time | str | None = None,
        blocking_statuses: Iterable[str] = BLOCKING_STATUSES,
    ) -> list[Booking]:
        """
        Reservas bloqueantes cuyo rango [start, end) intersecta el candidato.

        El repositorio pre-filtra por fechas civiles con un día de margen; la
        decisión final se toma aquí con instantes.
        """
        candidate = self._civil_clock.booking_range(start_date, end_date, start_time, end_time)
        first_day = self._civil_clock.parse_date(start_date, "start_date")
        last_day = self._civil_clock.parse_date(end_date, "end_date") if end_date else first_day

        candidates = await self._booking_repo.find_overlap_candidates(
            from_date=first_day - timedelta(days=1),
            to_date=last_day + timedelta(days=1),
            statuses=[str(getattr(s, "value", s)) for s in blocking_statuses],
            exclude_booking_id=exclude_booking_id,
        )
        return [
            other
            for other in candidates
            if other.id != exclude_booking_id
            and self._civil_clock.schedule_range(other.schedule).overlaps_with(candidate)
        ]

    async def ensure_available(
        self,
        booking_id: str | None,
        schedule: Schedule,
        final_check: bool = False,
    ) -> None:
        """
        Raises:
            BookingOverlapError: Si existe al menos una reserva bloqueante superpuesta.
        """
        conflicts = await self.find_overlapping(
            booking_id,
            schedule.start_date,
            schedule.end_date,
            schedule.start_time,
            schedule.end_time,
        )
        if conflicts:
            logger.warning(
                "Superposición detectada",
                extra={
                    "booking_id": booking_id,
                    "conflicts": [c.id for c in conflicts],
                    "final_check": final_check,
                },
            )
            raise BookingOverlapError(
                booking_id=booking_id,
                conflicts=[c.summary() for c in conflicts],
                final_check=final_check,
            )
