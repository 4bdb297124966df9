import logging

from booking_engine.application.interfaces.booking_repo import BookingRepo
from booking_engine.application.interfaces.transaction_manager import TransactionManager
from booking_engine.application.services.side_effects import SideEffects
from booking_engine.domain.errors import BookingNotFoundError


class DeleteBookingUseCase:
    """
    Purga administrativa de una reserva y su historial.

    El comprobante de depósito se limpia igual que en una cancelación.
    """

    def __init__(
        self,
        booking_repo: BookingRepo,
        transaction_manager: TransactionManager,
        side_effects: SideEffects,
    ) -> None:
        self._booking_repo = booking_repo
        self._transaction_manager = transaction_manager
        self._side_effects = side_effects
        self._logger = logging.getLogger(__name__)

    async def execute(self, booking_id: str, actor: str | None = None) -> dict:
        async with self._transaction_manager.start():
            booking = await self._booking_repo.get_by_id(booking_id)
            if booking is None:
                raise BookingNotFoundError(booking_id)
            await self._booking_repo.delete(booking_id)

        self._logger.warning(
            "Reserva eliminada",
            extra={
                "booking_id": booking_id,
                "reference_number": booking.reference_number,
                "actor": actor,
            },
        )

        cleanup_job = None
        if booking.deposit_evidence_ref:
            cleanup_job = await self._side_effects.schedule_cleanup(
                booking.deposit_evidence_ref, booking_id, reason="delete"
            )

        return {
            "booking_id": booking_id,
            "deleted": True,
            "cleanup_job_id": cleanup_job.id if cleanup_job else None,
        }
