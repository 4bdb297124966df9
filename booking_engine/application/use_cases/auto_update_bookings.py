import logging
from collections.abc import Callable

from booking_engine.application.dtos.transition_dto import AutoUpdateResult, TransitionRequestDTO
from booking_engine.application.interfaces.booking_repo import BookingRepo
from booking_engine.application.services.civil_clock import CivilClock
from booking_engine.application.use_cases.request_transition import RequestTransitionUseCase
from booking_engine.domain.constants import SYSTEM_ACTOR
from booking_engine.domain.entities.booking import Booking, BookingStatus
from booking_engine.domain.errors import DomainError
from booking_engine.domain.state_machine import AdminAction

UNCONFIRMED_STATUSES = (
    BookingStatus.PENDING,
    BookingStatus.PENDING_DEPOSIT,
    BookingStatus.PAID_DEPOSIT,
)


class AutoUpdateBookingsUseCase:
    """
    Barrido periódico:
    - cancela reservas no confirmadas cuyo inicio ya pasó;
    - finaliza reservas confirmadas cuyo fin ya pasó.

    Cada cambio pasa por el orquestador como actor del sistema. Un conflicto
    en una reserva se registra y no detiene el barrido.
    """

    def __init__(
        self,
        booking_repo: BookingRepo,
        civil_clock: CivilClock,
        request_transition: RequestTransitionUseCase,
    ) -> None:
        self._booking_repo = booking_repo
        self._civil_clock = civil_clock
        self._request_transition = request_transition
        self._logger = logging.getLogger(__name__)

    async def execute(self) -> AutoUpdateResult:
        result = AutoUpdateResult()

        for booking in await self._booking_repo.list_by_statuses(UNCONFIRMED_STATUSES):
            if await self._apply(
                booking,
                self._civil_clock.has_started,
                BookingStatus.CANCELLED,
                AdminAction.CANCEL,
                "Cancelada automáticamente: la fecha de inicio pasó sin confirmación",
                result,
            ):
                result.cancelled.append(booking.id)

        for booking in await self._booking_repo.list_by_statuses([BookingStatus.CONFIRMED]):
            if await self._apply(
                booking,
                self._civil_clock.has_ended,
                BookingStatus.FINISHED,
                AdminAction.FINISH,
                "Finalizada automáticamente: la reserva terminó",
                result,
            ):
                result.finished.append(booking.id)

        self._logger.info(
            "Auto-update completado",
            extra={
                "cancelled": len(result.cancelled),
                "finished": len(result.finished),
                "skipped": len(result.skipped),
            },
        )
        return result

    async def _apply(
        self,
        booking: Booking,
        is_due: Callable[[Booking], bool],
        target: BookingStatus,
        action: AdminAction,
        reason: str,
        result: AutoUpdateResult,
    ) -> bool:
        """Aplica la transición si corresponde; una reserva con datos inválidos se omite."""
        try:
            if not is_due(booking):
                return False
            await self._request_transition.execute(
                TransitionRequestDTO(
                    booking_id=booking.id,
                    requested_status=target.value,
                    action=action.value,
                    actor=SYSTEM_ACTOR,
                    reason=reason,
                    acknowledge_warnings=True,
                )
            )
        except DomainError as exc:
            self._logger.warning(
                "Auto-update omitido",
                extra={"booking_id": booking.id, "code": exc.code, "error": exc.message},
            )
            result.skipped.append({"booking_id": booking.id, "code": exc.code})
            return False
        return True
