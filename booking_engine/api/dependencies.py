from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.api.deps import AsyncSessionLocal
from booking_engine.application.interfaces.blob_store import BlobStore
from booking_engine.application.interfaces.booking_repo import BookingRepo
from booking_engine.application.interfaces.clock import Clock, SystemClock
from booking_engine.application.interfaces.notification_dispatcher import NotificationDispatcher
from booking_engine.application.interfaces.retry_job_repo import RetryJobRepo
from booking_engine.application.interfaces.transaction_manager import TransactionManager
from booking_engine.application.services.civil_clock import CivilClock
from booking_engine.application.services.concurrency_guard import ConcurrencyGuard
from booking_engine.application.services.overlap_detector import OverlapDetector
from booking_engine.application.services.side_effects import SideEffects
from booking_engine.application.services.token_validator import TokenValidator
from booking_engine.application.use_cases.auto_update_bookings import AutoUpdateBookingsUseCase
from booking_engine.application.use_cases.delete_booking import DeleteBookingUseCase
from booking_engine.application.use_cases.get_available_actions import GetAvailableActionsUseCase
from booking_engine.application.use_cases.process_retry_jobs import ProcessRetryJobsUseCase
from booking_engine.application.use_cases.request_transition import RequestTransitionUseCase
from booking_engine.application.use_cases.requeue_retry_job import (
    ListDeadRetryJobsUseCase,
    RequeueRetryJobUseCase,
)
from booking_engine.application.use_cases.token_actions import (
    CancelByTokenUseCase,
    SubmitDepositUseCase,
)
from booking_engine.config import Settings, get_settings
from booking_engine.infrastructure.db.repositories.booking_repo_sql import BookingRepoSQL
from booking_engine.infrastructure.db.repositories.retry_job_repo_sql import RetryJobRepoSQL
from booking_engine.infrastructure.db.transaction_manager import SQLAlchemyTransactionManager
from booking_engine.infrastructure.gateways.http_blob_store import HttpBlobStore
from booking_engine.infrastructure.gateways.webhook_notifier import WebhookNotificationDispatcher
from booking_engine.infrastructure.in_memory.blob_store import InMemoryBlobStore
from booking_engine.infrastructure.in_memory.booking_repo import InMemoryBookingRepo
from booking_engine.infrastructure.in_memory.notification_dispatcher import (
    InMemoryNotificationDispatcher,
)
from booking_engine.infrastructure.in_memory.retry_job_repo import InMemoryRetryJobRepo
from booking_engine.infrastructure.in_memory.transaction_manager import NoopTransactionManager


async def get_session(settings: Settings = Depends(get_settings)) -> AsyncSession | None:
    if settings.use_in_memory:
        yield None
        return
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        if session.in_transaction():
            await session.commit()


@lru_cache(maxsize=1)
def get_clock() -> Clock:
    return SystemClock()


@lru_cache(maxsize=1)
def _in_memory_bundle():
    return {
        "booking_repo": InMemoryBookingRepo(),
        "retry_job_repo": InMemoryRetryJobRepo(),
        "blob_store": InMemoryBlobStore(),
        "notifier": InMemoryNotificationDispatcher(),
        "tx_manager": NoopTransactionManager(),
    }


def build_blob_store(settings: Settings) -> BlobStore:
    if settings.blob_store_base_url:
        return HttpBlobStore(
            base_url=settings.blob_store_base_url,
            api_token=settings.blob_store_api_token,
            timeout_seconds=settings.blob_store_timeout_seconds,
        )
    return InMemoryBlobStore()


def build_notifier(settings: Settings) -> NotificationDispatcher:
    if settings.notification_webhook_url:
        return WebhookNotificationDispatcher(
            webhook_url=settings.notification_webhook_url,
            timeout_seconds=settings.notification_timeout_seconds,
        )
    return InMemoryNotificationDispatcher()


def build_use_cases(
    settings: Settings,
    clock: Clock,
    booking_repo: BookingRepo,
    retry_job_repo: RetryJobRepo,
    blob_store: BlobStore,
    notifier: NotificationDispatcher,
    tx_manager: TransactionManager,
) -> dict:
    """Composition root: every collaborator is passed explicitly."""
    civil_clock = CivilClock(clock, settings.civil_timezone)
    token_validator = TokenValidator(
        civil_clock,
        grace_seconds=settings.token_grace_seconds,
        extended_grace_seconds=settings.token_extended_grace_seconds,
    )
    side_effects = SideEffects(
        blob_store=blob_store,
        notifier=notifier,
        retry_job_repo=retry_job_repo,
        clock=clock,
        cleanup_priority=settings.cleanup_job_priority,
        cleanup_max_attempts=settings.cleanup_job_max_attempts,
        notification_priority=settings.notification_job_priority,
        notification_max_attempts=settings.notification_job_max_attempts,
    )
    request_transition = RequestTransitionUseCase(
        booking_repo=booking_repo,
        transaction_manager=tx_manager,
        civil_clock=civil_clock,
        overlap_detector=OverlapDetector(booking_repo, civil_clock),
        token_validator=token_validator,
        concurrency_guard=ConcurrencyGuard(booking_repo, clock),
        side_effects=side_effects,
    )
    return {
        "request_transition": request_transition,
        "get_available_actions": GetAvailableActionsUseCase(booking_repo, civil_clock),
        "submit_deposit": SubmitDepositUseCase(booking_repo, token_validator, request_transition),
        "cancel_by_token": CancelByTokenUseCase(booking_repo, token_validator, request_transition),
        "delete_booking": DeleteBookingUseCase(booking_repo, tx_manager, side_effects),
        "auto_update": AutoUpdateBookingsUseCase(booking_repo, civil_clock, request_transition),
        "process_retry_jobs": ProcessRetryJobsUseCase(
            retry_job_repo=retry_job_repo,
            blob_store=blob_store,
            notifier=notifier,
            clock=clock,
            batch_size=settings.retry_worker_batch_size,
            lock_seconds=settings.retry_job_lock_seconds,
        ),
        "list_dead_retry_jobs": ListDeadRetryJobsUseCase(retry_job_repo),
        "requeue_retry_job": RequeueRetryJobUseCase(retry_job_repo, clock),
    }


def get_use_cases(
    settings: Settings = Depends(get_settings),
    session: AsyncSession | None = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    if settings.use_in_memory:
        bundle = _in_memory_bundle()
        return build_use_cases(settings=settings, clock=clock, **bundle)

    if not session:
        raise RuntimeError("DB session not available")

    return build_use_cases(
        settings=settings,
        clock=clock,
        booking_repo=BookingRepoSQL(session),
        retry_job_repo=RetryJobRepoSQL(session),
        blob_store=build_blob_store(settings),
        notifier=build_notifier(settings),
        tx_manager=SQLAlchemyTransactionManager(session),
    )
