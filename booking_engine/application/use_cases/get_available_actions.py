from booking_engine.application.interfaces.booking_repo import BookingRepo
from booking_engine.application.services.civil_clock import CivilClock
from booking_engine.domain.entities.booking import Booking, BookingStatus
from booking_engine.domain.errors import BookingNotFoundError
from booking_engine.domain.state_machine import ActionDefinition, available_actions


def actions_for_booking(booking: Booking, civil_clock: CivilClock) -> list[ActionDefinition]:
    """
    Acciones administrativas para una reserva concreta.

    Para reservas confirmadas "pasado" significa que la reserva terminó; para
    el resto, que ya comenzó.
    """
    if booking.status == BookingStatus.CONFIRMED:
        is_past = civil_clock.has_ended(booking)
    else:
        is_past = civil_clock.has_started(booking)
    return available_actions(booking.status, booking.has_deposit_evidence, is_past)


class GetAvailableActionsUseCase:
    def __init__(self, booking_repo: BookingRepo, civil_clock: CivilClock) -> None:
        self._booking_repo = booking_repo
        self._civil_clock = civil_clock

    async def execute(self, booking_id: str) -> list[ActionDefinition]:
        booking = await self._booking_repo.get_by_id(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return actions_for_booking(booking, self._civil_clock)
