import asyncio
from datetime import timedelta

import pytest

from booking_engine.api.dependencies import build_use_cases
from booking_engine.application.dtos.transition_dto import TransitionRequestDTO
from booking_engine.application.services.concurrency_guard import VERSION_STEP, ConcurrencyGuard
from booking_engine.domain.entities.booking import BookingStatus
from booking_engine.domain.errors import OptimisticLockError
from booking_engine.infrastructure.in_memory import InMemoryBookingRepo
from tests.factories import NOW, make_booking


@pytest.fixture
def guard(booking_repo, clock) -> ConcurrencyGuard:
    return ConcurrencyGuard(booking_repo, clock)


class TestNextVersion:
    def test_uses_now_when_ahead(self, guard):
        assert guard.next_version(NOW - timedelta(hours=1)) == NOW

    def test_strictly_increases_when_clock_lags(self, guard):
        ahead = NOW + timedelta(seconds=5)
        assert guard.next_version(ahead) == ahead + VERSION_STEP

    def test_same_microsecond(self, guard):
        assert guard.next_version(NOW) > NOW


@pytest.mark.asyncio
class TestCompareAndSwap:
    async def test_applies_mutation(self, booking_repo, guard):
        booking = await booking_repo.add(make_booking())
        updated = await guard.compare_and_swap(
            booking.id, booking.updated_at, {"admin_notes": "llamar antes"}
        )
        assert updated.admin_notes == "llamar antes"
        assert updated.updated_at > booking.updated_at

    async def test_stale_version_conflicts(self, booking_repo, guard):
        booking = await booking_repo.add(make_booking())
        await guard.compare_and_swap(booking.id, booking.updated_at, {"admin_notes": "uno"})

        with pytest.raises(OptimisticLockError) as exc:
            await guard.compare_and_swap(booking.id, booking.updated_at, {"admin_notes": "dos"})
        assert exc.value.booking_id == booking.id
        assert (await booking_repo.get_by_id(booking.id)).admin_notes == "uno"

    async def test_rejects_immutable_fields(self, booking_repo, guard):
        booking = await booking_repo.add(make_booking())
        with pytest.raises(ValueError):
            await guard.compare_and_swap(booking.id, booking.updated_at, {"reference_number": "X"})


class InterleavingBookingRepo(InMemoryBookingRepo):
    """Cede el control después de cada lectura para que dos escrituras se intercalen."""

    async def get_by_id(self, booking_id):
        booking = await super().get_by_id(booking_id)
        await asyncio.sleep(0)
        return booking


@pytest.mark.asyncio
async def test_concurrent_transitions_exactly_one_wins(settings, clock, bundle):
    booking_repo = InterleavingBookingRepo()
    bundle["booking_repo"] = booking_repo
    use_cases = build_use_cases(settings=settings, clock=clock, **bundle)
    booking = await booking_repo.add(make_booking())
    accept = TransitionRequestDTO(
        booking_id=booking.id, requested_status="pending_deposit", actor="admin-a"
    )
    reject = TransitionRequestDTO(
        booking_id=booking.id, requested_status="cancelled", action="reject", actor="admin-b"
    )

    results = await asyncio.gather(
        use_cases["request_transition"].execute(accept),
        use_cases["request_transition"].execute(reject),
        return_exceptions=True,
    )

    conflicts = [r for r in results if isinstance(r, OptimisticLockError)]
    winners = [r for r in results if not isinstance(r, Exception)]
    assert len(conflicts) == 1
    assert len(winners) == 1

    stored = await booking_repo.get_by_id(booking.id)
    assert stored.status == winners[0].booking.status
    assert stored.updated_at == winners[0].booking.updated_at
    if stored.status == BookingStatus.CANCELLED:
        assert stored.response_token is None
    assert len(await booking_repo.list_history(booking.id)) == 1
