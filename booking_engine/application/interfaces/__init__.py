"""Interfaces (Puertos) de la capa de aplicación."""

from booking_engine.application.interfaces.blob_store import BlobStore
from booking_engine.application.interfaces.booking_repo import BookingRepo
from booking_engine.application.interfaces.clock import Clock, FakeClock, SystemClock
from booking_engine.application.interfaces.notification_dispatcher import NotificationDispatcher
from booking_engine.application.interfaces.retry_job_repo import RetryJobRepo
from booking_engine.application.interfaces.transaction_manager import TransactionManager

__all__ = [
    # Repositories
    "BookingRepo",
    "RetryJobRepo",
    # Gateways
    "BlobStore",
    "NotificationDispatcher",
    # Services
    "Clock",
    "FakeClock",
    "SystemClock",
    "TransactionManager",
]
