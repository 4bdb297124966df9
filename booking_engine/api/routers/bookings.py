from fastapi import APIRouter, Depends, status

from booking_engine.api.dependencies import get_use_cases
from booking_engine.api.schemas.bookings import (
    ActionResponse,
    CancelByTokenRequest,
    DeleteBookingResponse,
    SubmitDepositRequest,
    TransitionRequest,
    TransitionResponse,
)
from booking_engine.application.dtos.transition_dto import TransitionRequestDTO
from booking_engine.infrastructure.db.retry import retry_on_deadlock

router = APIRouter()


@router.post(
    "/bookings/{booking_id}/transitions",
    response_model=TransitionResponse,
    status_code=status.HTTP_200_OK,
)
async def request_transition(
    booking_id: str,
    payload: TransitionRequest,
    use_cases=Depends(get_use_cases),
) -> TransitionResponse:
    request = TransitionRequestDTO(
        booking_id=booking_id,
        requested_status=payload.requested_status,
        action=payload.action,
        actor=payload.actor,
        reason=payload.reason,
        admin_notes=payload.admin_notes,
        acknowledge_warnings=payload.acknowledge_warnings,
        extra_payload=payload.extra_payload,
    )

    async def execute():
        return await use_cases["request_transition"].execute(request)

    result = await retry_on_deadlock(execute, max_attempts=3, base_delay=0.1)
    return TransitionResponse.from_result(result)


@router.get(
    "/bookings/{booking_id}/actions",
    response_model=list[ActionResponse],
    status_code=status.HTTP_200_OK,
)
async def get_available_actions(
    booking_id: str,
    use_cases=Depends(get_use_cases),
) -> list[ActionResponse]:
    actions = await use_cases["get_available_actions"].execute(booking_id)
    return [ActionResponse.from_definition(action) for action in actions]


@router.post(
    "/bookings/token/{token}/deposit",
    response_model=TransitionResponse,
    status_code=status.HTTP_200_OK,
)
async def submit_deposit(
    token: str,
    payload: SubmitDepositRequest,
    use_cases=Depends(get_use_cases),
) -> TransitionResponse:
    result = await use_cases["submit_deposit"].execute(
        token=token, deposit_evidence_ref=payload.deposit_evidence_ref
    )
    return TransitionResponse.from_result(result)


@router.post(
    "/bookings/token/{token}/cancel",
    response_model=TransitionResponse,
    status_code=status.HTTP_200_OK,
)
async def cancel_by_token(
    token: str,
    payload: CancelByTokenRequest | None = None,
    use_cases=Depends(get_use_cases),
) -> TransitionResponse:
    result = await use_cases["cancel_by_token"].execute(
        token=token, reason=payload.reason if payload else None
    )
    return TransitionResponse.from_result(result)


@router.delete(
    "/bookings/{booking_id}",
    response_model=DeleteBookingResponse,
    status_code=status.HTTP_200_OK,
)
async def delete_booking(
    booking_id: str,
    use_cases=Depends(get_use_cases),
) -> DeleteBookingResponse:
    result = await use_cases["delete_booking"].execute(booking_id)
    return DeleteBookingResponse(**result)
