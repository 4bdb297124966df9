from booking_engine.infrastructure.in_memory.blob_store import InMemoryBlobStore
from booking_engine.infrastructure.in_memory.booking_repo import InMemoryBookingRepo
from booking_engine.infrastructure.in_memory.notification_dispatcher import (
    InMemoryNotificationDispatcher,
)
from booking_engine.infrastructure.in_memory.retry_job_repo import InMemoryRetryJobRepo
from booking_engine.infrastructure.in_memory.transaction_manager import NoopTransactionManager

__all__ = [
    "InMemoryBlobStore",
    "InMemoryBookingRepo",
    "InMemoryNotificationDispatcher",
    "InMemoryRetryJobRepo",
    "NoopTransactionManager",
]
