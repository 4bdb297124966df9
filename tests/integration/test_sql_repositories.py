"""
Integration tests for the SQL repositories (SQLite in-memory via aiosqlite).

Verifica:
- Round trip de reservas con instantes en UTC
- Compare-and-swap sobre updated_at
- Pre-filtro de candidatos de superposición
- Cola de reintentos: claim con lease, orden por prioridad, jobs dead
- El orquestador completo sobre SQLAlchemy
"""

from datetime import date, time, timedelta

import pytest

from booking_engine.api.dependencies import build_use_cases
from booking_engine.application.dtos.transition_dto import TransitionRequestDTO
from booking_engine.application.services.concurrency_guard import ConcurrencyGuard
from booking_engine.domain.constants import JOB_DELETE_ORPHANED_BLOB, JOB_DISPATCH_NOTIFICATION
from booking_engine.domain.entities.booking import BookingStatus
from booking_engine.domain.entities.retry_job import RetryJobStatus
from booking_engine.domain.entities.status_history import StatusHistoryEntry
from booking_engine.domain.errors import OptimisticLockError
from booking_engine.domain.value_objects import ReferenceNumber
from booking_engine.infrastructure.db.repositories.booking_repo_sql import BookingRepoSQL
from booking_engine.infrastructure.db.repositories.retry_job_repo_sql import RetryJobRepoSQL
from booking_engine.infrastructure.db.transaction_manager import SQLAlchemyTransactionManager
from booking_engine.infrastructure.in_memory import (
    InMemoryBlobStore,
    InMemoryNotificationDispatcher,
)
from tests.factories import NOW, make_booking

pytestmark = [pytest.mark.asyncio, pytest.mark.integration]


class TestBookingRepoSQL:
    async def test_round_trip(self, db_session):
        repo = BookingRepoSQL(db_session)
        booking = make_booking(
            status=BookingStatus.PENDING_DEPOSIT,
            response_token="a" * 64,
            token_expires_at=NOW + timedelta(days=9, microseconds=123),
            proposed_start_date=date(2026, 3, 12),
        )
        await repo.add(booking)

        stored = await repo.get_by_id(booking.id)
        assert stored == booking
        assert stored.reference_number == str(ReferenceNumber.from_string(booking.reference_number))
        assert stored.reference_number.startswith(ReferenceNumber.PREFIX)
        assert stored.token_expires_at.tzinfo is not None
        assert (await repo.get_by_token("a" * 64)).id == booking.id
        assert await repo.get_by_token("b" * 64) is None

    async def test_update_if_version(self, db_session):
        repo = BookingRepoSQL(db_session)
        booking = await repo.add(make_booking())

        updated = await repo.update_if_version(
            booking.id, booking.updated_at, {"status": BookingStatus.CANCELLED}, NOW
        )
        assert updated.status == BookingStatus.CANCELLED
        assert updated.updated_at == NOW

        stale = await repo.update_if_version(
            booking.id, booking.updated_at, {"status": BookingStatus.PENDING}, NOW + timedelta(seconds=1)
        )
        assert stale is None
        assert (await repo.get_by_id(booking.id)).status == BookingStatus.CANCELLED

    async def test_overlap_candidates_prefilter(self, db_session):
        repo = BookingRepoSQL(db_session)
        inside = await repo.add(
            make_booking(status=BookingStatus.CONFIRMED, start_date=date(2026, 3, 8), end_date=date(2026, 3, 10))
        )
        await repo.add(make_booking(status=BookingStatus.CONFIRMED, start_date=date(2026, 4, 1)))
        await repo.add(make_booking(status=BookingStatus.PENDING, start_date=date(2026, 3, 10)))

        found = await repo.find_overlap_candidates(
            date(2026, 3, 9), date(2026, 3, 11), ["confirmed"], exclude_booking_id=None
        )
        assert [b.id for b in found] == [inside.id]

        excluded = await repo.find_overlap_candidates(
            date(2026, 3, 9), date(2026, 3, 11), ["confirmed"], exclude_booking_id=inside.id
        )
        assert excluded == []

    async def test_history_and_delete(self, db_session):
        repo = BookingRepoSQL(db_session)
        booking = await repo.add(make_booking())
        entry = StatusHistoryEntry.record(
            booking_id=booking.id,
            previous_status=BookingStatus.PENDING,
            new_status=BookingStatus.CANCELLED,
            created_at=NOW,
            actor="admin",
        )
        await repo.add_history(entry)
        assert await repo.list_history(booking.id) == [entry]

        assert await repo.delete(booking.id) is True
        assert await repo.get_by_id(booking.id) is None
        assert await repo.list_history(booking.id) == []
        assert await repo.delete(booking.id) is False

    async def test_list_by_statuses(self, db_session):
        repo = BookingRepoSQL(db_session)
        pending = await repo.add(make_booking())
        await repo.add(make_booking(status=BookingStatus.CONFIRMED))
        found = await repo.list_by_statuses([BookingStatus.PENDING, BookingStatus.PAID_DEPOSIT])
        assert [b.id for b in found] == [pending.id]


class TestRetryJobRepoSQL:
    async def test_claim_respects_priority_and_lease(self, db_session):
        repo = RetryJobRepoSQL(db_session)
        cleanup = await repo.enqueue(JOB_DELETE_ORPHANED_BLOB, {"evidence_ref": "r"}, 5, 3, NOW)
        notify = await repo.enqueue(JOB_DISPATCH_NOTIFICATION, {"event": "e"}, 3, 5, NOW)

        first = await repo.claim_due("w1", NOW, limit=1, lock_seconds=60)
        assert [j.id for j in first] == [notify.id]
        assert first[0].locked_by == "w1"

        second = await repo.claim_due("w2", NOW, limit=10, lock_seconds=60)
        assert [j.id for j in second] == [cleanup.id]

        # Lease expirado: otro worker puede reclamar
        again = await repo.claim_due("w3", NOW + timedelta(seconds=60), limit=10, lock_seconds=60)
        assert {j.id for j in again} == {cleanup.id, notify.id}

    async def test_save_and_list_dead(self, db_session):
        repo = RetryJobRepoSQL(db_session)
        job = await repo.enqueue(JOB_DELETE_ORPHANED_BLOB, {"evidence_ref": "r"}, 5, 1, NOW)
        job.mark_retry(NOW, "boom")
        await repo.save(job)

        dead = await repo.list_by_status("dead")
        assert [j.id for j in dead] == [job.id]
        assert dead[0].last_error == "boom"
        assert dead[0].payload == {"evidence_ref": "r"}
        assert await repo.claim_due("w1", NOW + timedelta(days=1)) == []

    async def test_save_requires_current_lease(self, db_session):
        repo = RetryJobRepoSQL(db_session)
        job = await repo.enqueue(JOB_DELETE_ORPHANED_BLOB, {"evidence_ref": "r"}, 5, 3, NOW)
        (held_by_a,) = await repo.claim_due("worker-a", NOW, lock_seconds=300)

        later = NOW + timedelta(seconds=301)
        (held_by_b,) = await repo.claim_due("worker-b", later, lock_seconds=300)
        held_by_b.mark_succeeded(later)
        assert await repo.save(held_by_b, worker_id="worker-b") is True

        held_by_a.mark_retry(later, "timeout")
        assert await repo.save(held_by_a, worker_id="worker-a") is False

        stored = await repo.get_by_id(job.id)
        assert stored.status == RetryJobStatus.SUCCEEDED
        assert stored.attempts == 0
        assert stored.last_error is None


class TestOrchestratorOnSQL:
    def _use_cases(self, db_session, settings, clock, blob_store):
        return build_use_cases(
            settings=settings,
            clock=clock,
            booking_repo=BookingRepoSQL(db_session),
            retry_job_repo=RetryJobRepoSQL(db_session),
            blob_store=blob_store,
            notifier=InMemoryNotificationDispatcher(),
            tx_manager=SQLAlchemyTransactionManager(db_session),
        )

    async def test_reject_deposit_with_failed_cleanup(self, db_session, settings, clock):
        use_cases = self._use_cases(db_session, settings, clock, InMemoryBlobStore(fail_deletes=True))
        repo = BookingRepoSQL(db_session)
        booking = await repo.add(
            make_booking(status=BookingStatus.PENDING_DEPOSIT, deposit_evidence_ref="evidence/old.jpg")
        )
        await db_session.commit()

        result = await use_cases["request_transition"].execute(
            TransitionRequestDTO(booking_id=booking.id, requested_status="pending_deposit", actor="admin")
        )
        await db_session.commit()

        stored = await repo.get_by_id(booking.id)
        assert stored.deposit_evidence_ref is None
        assert stored.response_token == result.booking.response_token
        assert len(await repo.list_history(booking.id)) == 1
        jobs = await RetryJobRepoSQL(db_session).list_by_status(RetryJobStatus.PENDING.value)
        assert [j.type for j in jobs] == [JOB_DELETE_ORPHANED_BLOB]

    async def test_stale_version_is_rejected(self, db_session, clock):
        repo = BookingRepoSQL(db_session)
        booking = await repo.add(make_booking(start_time=time(9, 0)))
        await db_session.commit()

        # Otra escritura cambia la versión entre la lectura y el commit
        await repo.update_if_version(booking.id, booking.updated_at, {"admin_notes": "x"}, NOW)
        await db_session.commit()

        guard = ConcurrencyGuard(repo, clock)
        with pytest.raises(OptimisticLockError):
            await guard.compare_and_swap(booking.id, booking.updated_at, {"admin_notes": "y"})
