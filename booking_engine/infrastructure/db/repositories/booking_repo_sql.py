import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.application.interfaces.booking_repo import BookingRepo
from booking_engine.domain.entities.booking import Booking, BookingStatus
from booking_engine.domain.entities.status_history import StatusHistoryEntry
from booking_engine.infrastructure.db.tables import booking_status_history, bookings
from booking_engine.infrastructure.db.timestamps import from_db, to_db

logger = logging.getLogger(__name__)

INSTANT_COLUMNS = frozenset(
    {
        "token_expires_at",
        "deposit_verified_at",
        "user_response_at",
        "created_at",
        "updated_at",
    }
)


def _to_row_values(values: dict[str, Any]) -> dict[str, Any]:
    row: dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, Enum):
            value = value.value
        elif key in INSTANT_COLUMNS:
            value = to_db(value)
        row[key] = value
    return row


def _row_to_booking(row) -> Booking:
    data = dict(row._mapping)
    for key in INSTANT_COLUMNS:
        data[key] = from_db(data.get(key))
    data["status"] = BookingStatus(data["status"])
    data["deposit_verified_other_channel"] = bool(data.get("deposit_verified_other_channel"))
    return Booking(**data)


class BookingRepoSQL(BookingRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, booking: Booking) -> Booking:
        now = datetime.now(timezone.utc)
        booking = replace(
            booking,
            created_at=booking.created_at or now,
            updated_at=booking.updated_at or now,
        )
        values = {column.name: getattr(booking, column.name) for column in bookings.columns}
        await self._session.execute(insert(bookings).values(**_to_row_values(values)))
        return booking

    async def get_by_id(self, booking_id: str) -> Booking | None:
        result = await self._session.execute(select(bookings).where(bookings.c.id == booking_id))
        row = result.first()
        return _row_to_booking(row) if row else None

    async def get_by_token(self, token: str) -> Booking | None:
        result = await self._session.execute(
            select(bookings).where(bookings.c.response_token == token)
        )
        row = result.first()
        return _row_to_booking(row) if row else None

    async def list_by_statuses(self, statuses: Iterable[BookingStatus]) -> list[Booking]:
        values = [BookingStatus(s).value for s in statuses]
        result = await self._session.execute(
            select(bookings).where(bookings.c.status.in_(values)).order_by(bookings.c.start_date)
        )
        return [_row_to_booking(row) for row in result]

    async def find_overlap_candidates(
        self,
        from_date: date,
        to_date: date,
        statuses: Iterable[str],
        exclude_booking_id: str | None = None,
    ) -> list[Booking]:
        last_day = func.coalesce(bookings.c.end_date, bookings.c.start_date)
        stmt = select(bookings).where(
            bookings.c.status.in_(list(statuses)),
            bookings.c.start_date <= to_date,
            last_day >= from_date,
        )
        if exclude_booking_id is not None:
            stmt = stmt.where(bookings.c.id != exclude_booking_id)
        result = await self._session.execute(stmt)
        return [_row_to_booking(row) for row in result]

    async def update_if_version(
        self,
        booking_id: str,
        expected_version: datetime,
        changes: dict[str, Any],
        new_version: datetime,
    ) -> Booking | None:
        stmt = (
            update(bookings)
            .where(
                bookings.c.id == booking_id,
                bookings.c.updated_at == to_db(expected_version),
            )
            .values(**_to_row_values({**changes, "updated_at": new_version}))
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            logger.info(
                "Compare-and-swap sin filas afectadas",
                extra={"booking_id": booking_id},
            )
            return None
        return await self.get_by_id(booking_id)

    async def add_history(self, entry: StatusHistoryEntry) -> None:
        await self._session.execute(
            insert(booking_status_history).values(
                id=entry.id,
                booking_id=entry.booking_id,
                previous_status=entry.previous_status.value,
                new_status=entry.new_status.value,
                actor=entry.actor,
                reason=entry.reason,
                created_at=to_db(entry.created_at),
            )
        )

    async def list_history(self, booking_id: str) -> list[StatusHistoryEntry]:
        result = await self._session.execute(
            select(booking_status_history)
            .where(booking_status_history.c.booking_id == booking_id)
            .order_by(booking_status_history.c.created_at)
        )
        return [
            StatusHistoryEntry(
                id=row.id,
                booking_id=row.booking_id,
                previous_status=BookingStatus(row.previous_status),
                new_status=BookingStatus(row.new_status),
                created_at=from_db(row.created_at),
                actor=row.actor,
                reason=row.reason,
            )
            for row in result
        ]

    async def delete(self, booking_id: str) -> bool:
        await self._session.execute(
            delete(booking_status_history).where(booking_status_history.c.booking_id == booking_id)
        )
        result = await self._session.execute(delete(bookings).where(bookings.c.id == booking_id))
        return result.rowcount > 0
