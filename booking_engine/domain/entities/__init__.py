"""Entidades del dominio."""

from booking_engine.domain.entities.booking import Booking, BookingStatus, Schedule
from booking_engine.domain.entities.retry_job import RetryJob, RetryJobStatus
from booking_engine.domain.entities.status_history import StatusHistoryEntry

__all__ = [
    "Booking",
    "BookingStatus",
    "RetryJob",
    "RetryJobStatus",
    "Schedule",
    "StatusHistoryEntry",
]
