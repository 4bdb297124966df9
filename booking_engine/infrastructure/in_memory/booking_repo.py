import asyncio
from collections.abc import Iterable
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Any

from booking_engine.application.interfaces.booking_repo import BookingRepo
from booking_engine.domain.entities.booking import Booking, BookingStatus
from booking_engine.domain.entities.status_history import StatusHistoryEntry


class InMemoryBookingRepo(BookingRepo):
    def __init__(self) -> None:
        self.bookings: dict[str, Booking] = {}
        self.history: dict[str, list[StatusHistoryEntry]] = {}
        self._lock = asyncio.Lock()

    async def add(self, booking: Booking) -> Booking:
        if booking.id in self.bookings:
            raise ValueError("Booking id already exists")
        now = datetime.now(timezone.utc)
        stored = replace(
            booking,
            created_at=booking.created_at or now,
            updated_at=booking.updated_at or now,
        )
        self.bookings[booking.id] = stored
        self.history.setdefault(booking.id, [])
        return replace(stored)

    async def get_by_id(self, booking_id: str) -> Booking | None:
        booking = self.bookings.get(booking_id)
        return replace(booking) if booking else None

    async def get_by_token(self, token: str) -> Booking | None:
        for booking in self.bookings.values():
            if booking.response_token and booking.response_token == token:
                return replace(booking)
        return None

    async def list_by_statuses(self, statuses: Iterable[BookingStatus]) -> list[Booking]:
        wanted = {BookingStatus(s) for s in statuses}
        return [replace(b) for b in self.bookings.values() if b.status in wanted]

    async def find_overlap_candidates(
        self,
        from_date: date,
        to_date: date,
        statuses: Iterable[str],
        exclude_booking_id: str | None = None,
    ) -> list[Booking]:
        wanted = {BookingStatus(s) for s in statuses}
        result = []
        for booking in self.bookings.values():
            if booking.id == exclude_booking_id or booking.status not in wanted:
                continue
            last_day = booking.end_date or booking.start_date
            if booking.start_date <= to_date and last_day >= from_date:
                result.append(replace(booking))
        return result

    async def update_if_version(
        self,
        booking_id: str,
        expected_version: datetime,
        changes: dict[str, Any],
        new_version: datetime,
    ) -> Booking | None:
        async with self._lock:
            current = self.bookings.get(booking_id)
            if current is None or current.updated_at != expected_version:
                return None
            updated = current.with_changes(changes, updated_at=new_version)
            self.bookings[booking_id] = updated
            return replace(updated)

    async def add_history(self, entry: StatusHistoryEntry) -> None:
        self.history.setdefault(entry.booking_id, []).append(entry)

    async def list_history(self, booking_id: str) -> list[StatusHistoryEntry]:
        return sorted(self.history.get(booking_id, []), key=lambda e: e.created_at)

    async def delete(self, booking_id: str) -> bool:
        if booking_id not in self.bookings:
            return False
        del self.bookings[booking_id]
        self.history.pop(booking_id, None)
        return True
