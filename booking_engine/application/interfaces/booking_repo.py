from collections.abc import Iterable
from datetime import date, datetime
from typing import Any

from booking_engine.domain.entities.booking import Booking, BookingStatus
from booking_engine.domain.entities.status_history import StatusHistoryEntry


class BookingRepo:
    async def add(self, booking: Booking) -> Booking:
        raise NotImplementedError

    async def get_by_id(self, booking_id: str) -> Booking | None:
        raise NotImplementedError

    async def get_by_token(self, token: str) -> Booking | None:
        raise NotImplementedError

    async def list_by_statuses(self, statuses: Iterable[BookingStatus]) -> list[Booking]:
        raise NotImplementedError

    async def find_overlap_candidates(
        self,
        from_date: date,
        to_date: date,
        statuses: Iterable[str],
        exclude_booking_id: str | None = None,
    ) -> list[Booking]:
        """
        Reservas en `statuses` cuyo rango civil [start_date, end_date] toca
        [from_date, to_date]. El filtro exacto por instantes lo hace el detector.
        """
        raise NotImplementedError

    async def update_if_version(
        self,
        booking_id: str,
        expected_version: datetime,
        changes: dict[str, Any],
        new_version: datetime,
    ) -> Booking | None:
        """
        Compare-and-swap sobre `updated_at`.

        Returns:
            La reserva actualizada, o None si ninguna fila coincidió.
        """
        raise NotImplementedError

    async def add_history(self, entry: StatusHistoryEntry) -> None:
        raise NotImplementedError

    async def list_history(self, booking_id: str) -> list[StatusHistoryEntry]:
        raise NotImplementedError

    async def delete(self, booking_id: str) -> bool:
        """Elimina la reserva y su historial. Retorna False si no existía."""
        raise NotImplementedError
