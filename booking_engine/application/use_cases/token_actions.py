"""Acciones del cliente autenticadas con el token enviado por correo."""

import logging

from booking_engine.application.dtos.transition_dto import TransitionRequestDTO, TransitionResultDTO
from booking_engine.application.interfaces.booking_repo import BookingRepo
from booking_engine.application.services.token_validator import TokenValidator
from booking_engine.application.use_cases.request_transition import RequestTransitionUseCase
from booking_engine.domain.entities.booking import Booking, BookingStatus
from booking_engine.domain.errors import TokenNotFoundError
from booking_engine.domain.state_machine import UserAction

USER_ACTOR = "user"


async def _resolve_token(booking_repo: BookingRepo, token: str) -> Booking:
    booking = await booking_repo.get_by_token(token) if token else None
    if booking is None:
        raise TokenNotFoundError()
    return booking


class SubmitDepositUseCase:
    """
    El cliente sube su comprobante de depósito.

    Usa la gracia extendida: subir un archivo puede tomar más tiempo que
    responder un formulario.
    """

    def __init__(
        self,
        booking_repo: BookingRepo,
        token_validator: TokenValidator,
        request_transition: RequestTransitionUseCase,
    ) -> None:
        self._booking_repo = booking_repo
        self._token_validator = token_validator
        self._request_transition = request_transition
        self._logger = logging.getLogger(__name__)

    async def execute(self, token: str, deposit_evidence_ref: str) -> TransitionResultDTO:
        booking = await _resolve_token(self._booking_repo, token)
        grace = self._token_validator.extended_grace_seconds
        self._token_validator.validate(booking, grace)

        self._logger.info("Depósito recibido", extra={"booking_id": booking.id})
        return await self._request_transition.execute(
            TransitionRequestDTO(
                booking_id=booking.id,
                requested_status=BookingStatus.PAID_DEPOSIT.value,
                action=UserAction.SUBMIT_DEPOSIT.value,
                actor=USER_ACTOR,
                reason="Comprobante de depósito enviado por el cliente",
                extra_payload={"deposit_evidence_ref": deposit_evidence_ref},
                token=token,
                token_grace_seconds=grace,
            )
        )


class CancelByTokenUseCase:
    def __init__(
        self,
        booking_repo: BookingRepo,
        token_validator: TokenValidator,
        request_transition: RequestTransitionUseCase,
    ) -> None:
        self._booking_repo = booking_repo
        self._token_validator = token_validator
        self._request_transition = request_transition

    async def execute(self, token: str, reason: str | None = None) -> TransitionResultDTO:
        booking = await _resolve_token(self._booking_repo, token)
        self._token_validator.validate(booking)

        return await self._request_transition.execute(
            TransitionRequestDTO(
                booking_id=booking.id,
                requested_status=BookingStatus.CANCELLED.value,
                action=UserAction.CANCEL.value,
                actor=USER_ACTOR,
                reason=reason or "Cancelada por el cliente",
                token=token,
            )
        )
