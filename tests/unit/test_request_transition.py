from datetime import date, datetime, time, timedelta, timezone

import pytest

from booking_engine.api.dependencies import build_use_cases
from booking_engine.application.dtos.transition_dto import TransitionRequestDTO
from booking_engine.domain.constants import JOB_DELETE_ORPHANED_BLOB, JOB_DISPATCH_NOTIFICATION
from booking_engine.domain.entities.booking import BookingStatus
from booking_engine.domain.errors import (
    BookingNotFoundError,
    BookingOverlapError,
    IllegalTransitionError,
    TokenExpiredError,
    ValidationError,
    WarningsNotAcknowledgedError,
)
from booking_engine.infrastructure.in_memory import InMemoryBookingRepo
from tests.factories import NOW, make_booking


def _request(booking, status, **kwargs) -> TransitionRequestDTO:
    kwargs.setdefault("actor", "admin@venue.test")
    return TransitionRequestDTO(booking_id=booking.id, requested_status=status, **kwargs)


@pytest.fixture
def transition(use_cases):
    return use_cases["request_transition"].execute


@pytest.mark.asyncio
class TestLegality:
    async def test_unknown_booking(self, transition):
        with pytest.raises(BookingNotFoundError):
            await transition(TransitionRequestDTO(booking_id="missing", requested_status="cancelled"))

    async def test_unknown_status(self, booking_repo, transition):
        booking = await booking_repo.add(make_booking())
        with pytest.raises(ValidationError) as exc:
            await transition(_request(booking, "archived"))
        assert exc.value.field == "requested_status"

    async def test_finished_is_terminal(self, booking_repo, transition):
        booking = await booking_repo.add(make_booking(status=BookingStatus.FINISHED))
        with pytest.raises(IllegalTransitionError) as exc:
            await transition(_request(booking, "pending"))
        assert exc.value.legal_targets == []
        assert (await booking_repo.get_by_id(booking.id)).status == BookingStatus.FINISHED

    async def test_illegal_lists_offered_targets(self, booking_repo, transition):
        booking = await booking_repo.add(make_booking())
        with pytest.raises(IllegalTransitionError) as exc:
            await transition(_request(booking, "confirmed"))
        assert exc.value.legal_targets == ["cancelled", "pending_deposit"]

    async def test_accept_hidden_once_started(self, booking_repo, transition):
        booking = await booking_repo.add(make_booking(start_date=date(2026, 2, 28)))
        with pytest.raises(IllegalTransitionError):
            await transition(_request(booking, "pending_deposit"))


@pytest.mark.asyncio
class TestAccept:
    async def test_accept_issues_token(self, booking_repo, notifier, civil_clock, transition):
        booking = await booking_repo.add(make_booking())

        result = await transition(_request(booking, "pending_deposit", reason="ok"))

        updated = result.booking
        assert updated.status == BookingStatus.PENDING_DEPOSIT
        assert len(updated.response_token) == 64
        assert updated.token_expires_at == civil_clock.start_instant(booking)
        assert updated.updated_at > booking.updated_at

        history = await booking_repo.list_history(booking.id)
        assert len(history) == 1
        assert history[0].previous_status == BookingStatus.PENDING
        assert history[0].new_status == BookingStatus.PENDING_DEPOSIT
        assert history[0].actor == "admin@venue.test"
        assert history[0].reason == "ok"

        assert notifier.sent[0][0] == "booking.accept"
        assert notifier.sent[0][1]["id"] == booking.id
        assert result.retry_jobs == []

    async def test_accept_promotes_proposed_dates(self, booking_repo, civil_clock, transition):
        booking = await booking_repo.add(
            make_booking(proposed_start_date=date(2026, 3, 20), proposed_start_time=time(13, 0))
        )

        updated = (await transition(_request(booking, "pending_deposit"))).booking

        assert updated.start_date == date(2026, 3, 20)
        assert updated.start_time == time(13, 0)
        assert updated.end_time == time(17, 0)
        assert updated.proposed_start_date is None
        assert updated.token_expires_at == civil_clock.to_instant(date(2026, 3, 20), time(13, 0))

    async def test_accept_rejects_past_proposal(self, booking_repo, transition):
        booking = await booking_repo.add(make_booking(proposed_start_date=date(2026, 2, 1)))
        with pytest.raises(ValidationError) as exc:
            await transition(_request(booking, "pending_deposit"))
        assert exc.value.field == "start_date"
        assert await booking_repo.list_history(booking.id) == []


@pytest.mark.asyncio
class TestConfirm:
    async def test_overlap_scenario(self, clock, booking_repo, transition):
        clock.set_time(datetime(2025, 5, 1, tzinfo=timezone.utc))
        day = date(2025, 6, 1)
        x = await booking_repo.add(
            make_booking(
                status=BookingStatus.CONFIRMED,
                start_date=day,
                start_time=time(9, 0),
                end_time=time(12, 0),
            )
        )
        y = await booking_repo.add(
            make_booking(
                status=BookingStatus.PENDING_DEPOSIT,
                start_date=day,
                start_time=time(11, 0),
                end_time=time(13, 0),
            )
        )
        z = await booking_repo.add(
            make_booking(
                status=BookingStatus.PENDING_DEPOSIT,
                start_date=day,
                start_time=time(12, 0),
                end_time=time(13, 0),
            )
        )

        with pytest.raises(BookingOverlapError) as exc:
            await transition(_request(y, "confirmed"))
        assert [c["id"] for c in exc.value.conflicts] == [x.id]
        assert (await booking_repo.get_by_id(y.id)).status == BookingStatus.PENDING_DEPOSIT

        result = await transition(_request(z, "confirmed"))
        assert result.booking.status == BookingStatus.CONFIRMED

    async def test_confirm_other_channel(self, booking_repo, transition):
        booking = await booking_repo.add(make_booking(status=BookingStatus.PENDING_DEPOSIT))
        updated = (await transition(_request(booking, "confirmed"))).booking
        assert updated.deposit_verified_other_channel is True
        assert updated.deposit_verified_by == "admin@venue.test"
        assert updated.deposit_verified_at == NOW

    async def test_accept_deposit(self, booking_repo, transition):
        booking = await booking_repo.add(
            make_booking(status=BookingStatus.PAID_DEPOSIT, deposit_evidence_ref="evidence/1.jpg")
        )
        updated = (await transition(_request(booking, "confirmed", action="accept_deposit"))).booking
        assert updated.deposit_verified_other_channel is False
        assert updated.deposit_evidence_ref == "evidence/1.jpg"

    async def test_accept_deposit_requires_evidence(self, booking_repo, transition):
        booking = await booking_repo.add(make_booking(status=BookingStatus.PAID_DEPOSIT))
        with pytest.raises(ValidationError) as exc:
            await transition(_request(booking, "confirmed", action="accept_deposit"))
        assert exc.value.field == "deposit_evidence_ref"


@pytest.mark.asyncio
class TestWarnings:
    async def test_past_start_needs_acknowledgement(self, booking_repo, transition):
        booking = await booking_repo.add(
            make_booking(status=BookingStatus.PENDING_DEPOSIT, start_date=date(2026, 3, 1))
        )

        with pytest.raises(WarningsNotAcknowledgedError) as exc:
            await transition(_request(booking, "confirmed"))
        assert len(exc.value.warnings) == 1
        assert (await booking_repo.get_by_id(booking.id)).status == BookingStatus.PENDING_DEPOSIT
        assert await booking_repo.list_history(booking.id) == []

        result = await transition(_request(booking, "confirmed", acknowledge_warnings=True))
        assert result.booking.status == BookingStatus.CONFIRMED
        assert result.warnings == exc.value.warnings

    async def test_recent_user_response(self, booking_repo, transition):
        booking = await booking_repo.add(
            make_booking(
                status=BookingStatus.PAID_DEPOSIT,
                deposit_evidence_ref="evidence/1.jpg",
                user_response="deposit_submitted",
                user_response_at=NOW - timedelta(seconds=60),
            )
        )
        with pytest.raises(WarningsNotAcknowledgedError) as exc:
            await transition(_request(booking, "confirmed", action="accept_deposit"))
        assert "recientemente" in exc.value.warnings[0]

    async def test_old_user_response_is_fine(self, booking_repo, transition):
        booking = await booking_repo.add(
            make_booking(
                status=BookingStatus.PAID_DEPOSIT,
                deposit_evidence_ref="evidence/1.jpg",
                user_response_at=NOW - timedelta(seconds=300),
            )
        )
        result = await transition(_request(booking, "confirmed", action="accept_deposit"))
        assert result.warnings == []


@pytest.mark.asyncio
class TestDepositRejection:
    async def _pending_with_evidence(self, booking_repo):
        return await booking_repo.add(
            make_booking(
                status=BookingStatus.PENDING_DEPOSIT,
                deposit_evidence_ref="evidence/old.jpg",
                response_token="c" * 64,
                token_expires_at=NOW + timedelta(days=9),
            )
        )

    async def test_evidence_deleted_inline(self, booking_repo, blob_store, retry_job_repo, transition):
        booking = await self._pending_with_evidence(booking_repo)

        result = await transition(_request(booking, "pending_deposit"))

        assert result.booking.status == BookingStatus.PENDING_DEPOSIT
        assert result.booking.deposit_evidence_ref is None
        assert result.booking.response_token != booking.response_token
        assert len(await booking_repo.list_history(booking.id)) == 1
        assert blob_store.deleted == ["evidence/old.jpg"]
        assert retry_job_repo.jobs == {}

    async def test_failed_delete_enqueues_one_job(
        self, booking_repo, blob_store, retry_job_repo, transition
    ):
        blob_store.fail_deletes = True
        booking = await self._pending_with_evidence(booking_repo)

        result = await transition(_request(booking, "pending_deposit"))

        assert result.booking.deposit_evidence_ref is None
        assert len(await booking_repo.list_history(booking.id)) == 1
        assert len(retry_job_repo.jobs) == 1
        job = result.retry_jobs[0]
        assert job.type == JOB_DELETE_ORPHANED_BLOB
        assert job.payload["evidence_ref"] == "evidence/old.jpg"
        assert job.payload["booking_id"] == booking.id
        assert job.priority == 5
        assert job.max_attempts == 3


@pytest.mark.asyncio
class TestCancel:
    async def test_cancel_clears_token_and_evidence(self, booking_repo, blob_store, transition):
        booking = await booking_repo.add(
            make_booking(
                status=BookingStatus.PAID_DEPOSIT,
                deposit_evidence_ref="evidence/1.jpg",
                response_token="d" * 64,
                token_expires_at=NOW + timedelta(days=9),
            )
        )
        updated = (await transition(_request(booking, "cancelled"))).booking
        assert updated.status == BookingStatus.CANCELLED
        assert updated.response_token is None
        assert updated.deposit_evidence_ref is None
        assert blob_store.deleted == ["evidence/1.jpg"]

    async def test_notification_failure_enqueues_job(self, booking_repo, notifier, transition):
        notifier.fail = True
        booking = await booking_repo.add(make_booking())

        result = await transition(_request(booking, "cancelled", action="cancel"))

        assert result.booking.status == BookingStatus.CANCELLED
        job = result.retry_jobs[0]
        assert job.type == JOB_DISPATCH_NOTIFICATION
        assert job.payload["event"] == "booking.cancel"
        assert job.payload["booking"]["id"] == booking.id
        assert job.priority == 3


@pytest.mark.asyncio
class TestChangeDate:
    async def _confirmed(self, booking_repo, **overrides):
        return await booking_repo.add(make_booking(status=BookingStatus.CONFIRMED, **overrides))

    async def test_change_date_in_place(self, booking_repo, transition):
        booking = await self._confirmed(booking_repo)
        result = await transition(
            _request(
                booking,
                "confirmed",
                action="change_date",
                extra_payload={"start_date": "2026-03-15", "start_time": "10:00", "end_time": "12:00"},
            )
        )
        assert result.booking.start_date == date(2026, 3, 15)
        assert result.booking.end_time == time(12, 0)
        assert result.status_history.previous_status == BookingStatus.CONFIRMED
        assert result.status_history.new_status == BookingStatus.CONFIRMED

    async def test_change_date_checks_overlap(self, booking_repo, transition):
        other = await self._confirmed(booking_repo, start_date=date(2026, 3, 15))
        booking = await self._confirmed(booking_repo)
        with pytest.raises(BookingOverlapError) as exc:
            await transition(
                _request(
                    booking,
                    "confirmed",
                    action="change_date",
                    extra_payload={"start_date": "2026-03-15", "start_time": "16:00", "end_time": "18:00"},
                )
            )
        assert exc.value.conflicts[0]["id"] == other.id

    async def test_change_date_as_proposal(self, booking_repo, transition):
        booking = await self._confirmed(booking_repo)
        updated = (
            await transition(
                _request(
                    booking,
                    "confirmed",
                    action="change_date",
                    extra_payload={"start_date": "2026-03-20", "as_proposal": True},
                )
            )
        ).booking
        assert updated.start_date == date(2026, 3, 10)
        assert updated.proposed_start_date == date(2026, 3, 20)

    async def test_change_date_rejects_invalid_date(self, booking_repo, transition):
        booking = await self._confirmed(booking_repo)
        with pytest.raises(ValidationError):
            await transition(
                _request(
                    booking,
                    "confirmed",
                    action="change_date",
                    extra_payload={"start_date": "2026-02-30"},
                )
            )

    async def test_change_date_to_past_warns(self, booking_repo, transition):
        booking = await self._confirmed(booking_repo)
        with pytest.raises(WarningsNotAcknowledgedError):
            await transition(
                _request(
                    booking,
                    "confirmed",
                    action="change_date",
                    extra_payload={"start_date": "2026-02-20"},
                )
            )


@pytest.mark.asyncio
async def test_finish_after_end(clock, booking_repo, transition):
    booking = await booking_repo.add(make_booking(status=BookingStatus.CONFIRMED, response_token="e" * 64))
    with pytest.raises(IllegalTransitionError):
        await transition(_request(booking, "finished"))

    clock.set_time(datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc))
    updated = (await transition(_request(booking, "finished"))).booking
    assert updated.status == BookingStatus.FINISHED
    assert updated.response_token is None


class CompetingConfirmationRepo(InMemoryBookingRepo):
    """Confirma otra reserva justo después de la primera búsqueda de superposición."""

    def __init__(self) -> None:
        super().__init__()
        self.competitor_id: str | None = None

    async def find_overlap_candidates(self, *args, **kwargs):
        found = await super().find_overlap_candidates(*args, **kwargs)
        if self.competitor_id is not None:
            competitor = self.bookings[self.competitor_id]
            competitor.status = BookingStatus.CONFIRMED
            self.competitor_id = None
        return found


class ExpiringTokenRepo(InMemoryBookingRepo):
    """Adelanta el reloj en la relectura previa al commit."""

    def __init__(self, clock, seconds: int) -> None:
        super().__init__()
        self._clock = clock
        self._seconds = seconds
        self.reads = 0

    async def get_by_id(self, booking_id):
        self.reads += 1
        if self.reads == 2:
            self._clock.advance(seconds=self._seconds)
        return await super().get_by_id(booking_id)


@pytest.mark.asyncio
class TestCommitTimeChecks:
    async def test_booking_confirmed_after_validation_blocks_commit(
        self, settings, clock, bundle
    ):
        booking_repo = CompetingConfirmationRepo()
        bundle["booking_repo"] = booking_repo
        transition = build_use_cases(settings=settings, clock=clock, **bundle)["request_transition"]
        competitor = await booking_repo.add(
            make_booking(status=BookingStatus.PENDING_DEPOSIT, start_time=time(9, 0), end_time=time(12, 0))
        )
        booking = await booking_repo.add(
            make_booking(status=BookingStatus.PENDING_DEPOSIT, start_time=time(11, 0), end_time=time(13, 0))
        )
        booking_repo.competitor_id = competitor.id

        with pytest.raises(BookingOverlapError) as exc:
            await transition.execute(_request(booking, "confirmed"))

        assert exc.value.final_check is True
        assert exc.value.code == "BOOKING_OVERLAP"
        assert [c["id"] for c in exc.value.conflicts] == [competitor.id]
        stored = await booking_repo.get_by_id(booking.id)
        assert stored.status == BookingStatus.PENDING_DEPOSIT
        assert stored.updated_at == booking.updated_at
        assert await booking_repo.list_history(booking.id) == []

    async def test_token_expiring_before_commit_is_rejected(
        self, settings, clock, bundle, civil_clock
    ):
        booking_repo = ExpiringTokenRepo(clock, seconds=301)
        bundle["booking_repo"] = booking_repo
        use_cases = build_use_cases(settings=settings, clock=clock, **bundle)
        token = "a" * 64
        # Comienza justo ahora: el token vence al fin de la gracia de 300 s
        booking = make_booking(
            status=BookingStatus.PENDING,
            start_date=date(2026, 3, 1),
            start_time=time(10, 0),
            response_token=token,
        )
        booking.token_expires_at = civil_clock.start_instant(booking)
        booking = await booking_repo.add(booking)

        with pytest.raises(TokenExpiredError):
            await use_cases["cancel_by_token"].execute(token)

        assert booking_repo.reads == 2
        stored = await booking_repo.get_by_id(booking.id)
        assert stored.status == BookingStatus.PENDING
        assert stored.response_token == token
        assert await booking_repo.list_history(booking.id) == []
