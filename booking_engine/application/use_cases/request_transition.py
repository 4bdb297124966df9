import logging
from datetime import timedelta
from typing import Any

from booking_engine.application.dtos.transition_dto import TransitionRequestDTO, TransitionResultDTO
from booking_engine.application.interfaces.booking_repo import BookingRepo
from booking_engine.application.interfaces.transaction_manager import TransactionManager
from booking_engine.application.services.civil_clock import CivilClock
from booking_engine.application.services.concurrency_guard import ConcurrencyGuard
from booking_engine.application.services.overlap_detector import OverlapDetector
from booking_engine.application.services.side_effects import SideEffects
from booking_engine.application.services.token_validator import TokenValidator
from booking_engine.application.use_cases.get_available_actions import actions_for_booking
from booking_engine.domain.constants import RECENT_USER_RESPONSE_SECONDS, SYSTEM_ACTOR
from booking_engine.domain.entities.booking import Booking, BookingStatus, Schedule
from booking_engine.domain.entities.status_history import StatusHistoryEntry
from booking_engine.domain.errors import (
    BookingNotFoundError,
    IllegalTransitionError,
    TokenNotFoundError,
    ValidationError,
    WarningsNotAcknowledgedError,
)
from booking_engine.domain.state_machine import (
    ActionDefinition,
    AdminAction,
    UserAction,
    find_action,
    user_actions,
)

CONFIRM_ACTIONS = frozenset(
    {
        AdminAction.ACCEPT_DEPOSIT,
        AdminAction.ACCEPT_DEPOSIT_OTHER_CHANNEL,
        AdminAction.CONFIRM_OTHER_CHANNEL,
    }
)
# Acciones que convierten las fechas propuestas en fechas reales
PROMOTING_ACTIONS = CONFIRM_ACTIONS | {AdminAction.ACCEPT}
OVERLAP_CHECKED_ACTIONS = PROMOTING_ACTIONS | {AdminAction.CHANGE_DATE}

SCHEDULE_FIELDS = ("start_date", "end_date", "start_time", "end_time")


def _parse_action(value: str | None) -> AdminAction | UserAction | None:
    if value is None:
        return None
    for enum_cls in (AdminAction, UserAction):
        try:
            return enum_cls(value)
        except ValueError:
            continue
    raise ValidationError("action", f"acción desconocida '{value}'")


def _parse_status(value: str) -> BookingStatus:
    try:
        return BookingStatus(value)
    except ValueError as exc:
        raise ValidationError("requested_status", f"estado desconocido '{value}'") from exc


def _schedule_after(booking: Booking, changes: dict[str, Any]) -> Schedule:
    """Fechas contra las que se valida: las propuestas si se están proponiendo."""
    if changes.get("proposed_start_date") is not None:
        return Schedule(
            start_date=changes["proposed_start_date"],
            end_date=changes.get("proposed_end_date"),
            start_time=changes.get("proposed_start_time") or booking.start_time,
            end_time=changes.get("proposed_end_time") or booking.end_time,
        )
    values = {
        name: changes[name] if name in changes else getattr(booking, name)
        for name in SCHEDULE_FIELDS
    }
    return Schedule(**values)


class RequestTransitionUseCase:
    """
    Orquestador de transiciones de estado.

    Validación -> (advertencias sin confirmar | commit) -> efectos posteriores.
    Todo lo previo al commit es libre de efectos secundarios; el commit
    revalida contra una lectura fresca y escribe vía compare-and-swap junto
    con el historial en la misma transacción.
    """

    def __init__(
        self,
        booking_repo: BookingRepo,
        transaction_manager: TransactionManager,
        civil_clock: CivilClock,
        overlap_detector: OverlapDetector,
        token_validator: TokenValidator,
        concurrency_guard: ConcurrencyGuard,
        side_effects: SideEffects,
    ) -> None:
        self._booking_repo = booking_repo
        self._transaction_manager = transaction_manager
        self._civil_clock = civil_clock
        self._overlap_detector = overlap_detector
        self._token_validator = token_validator
        self._concurrency_guard = concurrency_guard
        self._side_effects = side_effects
        self._logger = logging.getLogger(__name__)

    async def execute(self, request: TransitionRequestDTO) -> TransitionResultDTO:
        booking = await self._load(request.booking_id)
        requested = _parse_status(request.requested_status)
        action = self._resolve_action(booking, requested, request)

        if request.via_token:
            self._check_token(booking, request)

        changes = self._build_changes(booking, action, request)
        warnings = await self._validate(booking, action, changes)
        if warnings and not request.acknowledge_warnings:
            raise WarningsNotAcknowledgedError(booking.id, warnings)

        async with self._transaction_manager.start():
            fresh = await self._load(booking.id)
            if request.via_token:
                self._check_token(fresh, request)
            if action.id in OVERLAP_CHECKED_ACTIONS:
                await self._overlap_detector.ensure_available(
                    fresh.id, _schedule_after(fresh, changes), final_check=True
                )

            updated = await self._concurrency_guard.compare_and_swap(
                booking_id=booking.id,
                expected_version=booking.updated_at,
                mutation=changes,
            )
            history = StatusHistoryEntry.record(
                booking_id=updated.id,
                previous_status=fresh.status,
                new_status=updated.status,
                created_at=updated.updated_at,
                actor=request.actor,
                reason=request.reason,
            )
            await self._booking_repo.add_history(history)

        self._logger.info(
            "Transición confirmada",
            extra={
                "booking_id": updated.id,
                "action": action.id.value,
                "previous_status": fresh.status.value,
                "new_status": updated.status.value,
                "actor": request.actor or SYSTEM_ACTOR,
            },
        )

        retry_jobs = await self._run_side_effects(fresh, updated, action)
        return TransitionResultDTO(
            booking=updated,
            status_history=history,
            warnings=warnings,
            retry_jobs=retry_jobs,
        )

    async def _load(self, booking_id: str) -> Booking:
        booking = await self._booking_repo.get_by_id(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking

    def _resolve_action(
        self, booking: Booking, requested: BookingStatus, request: TransitionRequestDTO
    ) -> ActionDefinition:
        if request.via_token:
            actions = user_actions(booking.status)
        else:
            actions = actions_for_booking(booking, self._civil_clock)

        action = find_action(actions, requested, _parse_action(request.action))
        if action is None:
            legal = sorted(
                {a.target_status.value for a in actions if a.id != AdminAction.CHANGE_DATE}
            )
            raise IllegalTransitionError(booking.status.value, requested.value, legal)
        return action

    def _check_token(self, booking: Booking, request: TransitionRequestDTO) -> None:
        if not booking.response_token or booking.response_token != request.token:
            raise TokenNotFoundError()
        self._token_validator.validate(booking, request.token_grace_seconds)

    def _build_changes(
        self, booking: Booking, action: ActionDefinition, request: TransitionRequestDTO
    ) -> dict[str, Any]:
        now = self._civil_clock.now()
        changes: dict[str, Any] = {"status": action.target_status}
        if request.admin_notes is not None:
            changes["admin_notes"] = request.admin_notes

        if action.id == AdminAction.CHANGE_DATE:
            changes.update(self._date_changes(booking, request.extra_payload))
            return changes

        schedule = booking.schedule
        proposed = booking.proposed_schedule
        if action.id in PROMOTING_ACTIONS and proposed is not None:
            changes.update(
                start_date=proposed.start_date,
                end_date=proposed.end_date,
                start_time=proposed.start_time,
                end_time=proposed.end_time,
                proposed_start_date=None,
                proposed_end_date=None,
                proposed_start_time=None,
                proposed_end_time=None,
            )
            schedule = proposed
            if booking.response_token:
                changes["token_expires_at"] = self._token_validator.expiry_for(schedule)

        if action.id == AdminAction.ACCEPT:
            token, expires_at = self._token_validator.issue(booking, schedule)
            changes.update(response_token=token, token_expires_at=expires_at)

        elif action.id == AdminAction.REJECT_DEPOSIT:
            token, expires_at = self._token_validator.issue(booking, schedule)
            changes.update(
                deposit_evidence_ref=None,
                deposit_verified_at=None,
                deposit_verified_by=None,
                deposit_verified_other_channel=False,
                response_token=token,
                token_expires_at=expires_at,
            )

        elif action.id in CONFIRM_ACTIONS:
            changes.update(
                deposit_verified_at=now,
                deposit_verified_by=request.actor or SYSTEM_ACTOR,
                deposit_verified_other_channel=action.id != AdminAction.ACCEPT_DEPOSIT,
            )

        elif action.id == UserAction.SUBMIT_DEPOSIT:
            evidence_ref = request.extra_payload.get("deposit_evidence_ref")
            if not evidence_ref:
                raise ValidationError("deposit_evidence_ref", "el comprobante es obligatorio")
            changes.update(
                deposit_evidence_ref=evidence_ref,
                user_response="deposit_submitted",
                user_response_at=now,
            )

        elif action.id == UserAction.CANCEL:
            changes.update(user_response="cancelled", user_response_at=now)

        if action.target_status in (BookingStatus.CANCELLED, BookingStatus.FINISHED):
            changes.update(response_token=None, token_expires_at=None)
        if action.target_status == BookingStatus.CANCELLED and booking.deposit_evidence_ref:
            changes["deposit_evidence_ref"] = None

        return changes

    def _date_changes(self, booking: Booking, payload: dict[str, Any]) -> dict[str, Any]:
        if not payload.get("start_date"):
            raise ValidationError("start_date", "start_date es obligatorio para cambiar la fecha")

        start_date = self._civil_clock.parse_date(payload["start_date"], "start_date")
        end_date = (
            self._civil_clock.parse_date(payload["end_date"], "end_date")
            if payload.get("end_date")
            else None
        )
        start_time = self._civil_clock.parse_time(payload.get("start_time"), "start_time")
        end_time = self._civil_clock.parse_time(payload.get("end_time"), "end_time")
        self._civil_clock.booking_range(start_date, end_date, start_time, end_time)

        if payload.get("as_proposal"):
            return {
                "proposed_start_date": start_date,
                "proposed_end_date": end_date,
                "proposed_start_time": start_time,
                "proposed_end_time": end_time,
            }

        changes: dict[str, Any] = {
            "start_date": start_date,
            "end_date": end_date,
            "start_time": start_time,
            "end_time": end_time,
            "proposed_start_date": None,
            "proposed_end_date": None,
            "proposed_start_time": None,
            "proposed_end_time": None,
        }
        if booking.response_token:
            changes["token_expires_at"] = self._token_validator.expiry_for(
                Schedule(start_date, end_date, start_time, end_time)
            )
        return changes

    async def _validate(
        self, booking: Booking, action: ActionDefinition, changes: dict[str, Any]
    ) -> list[str]:
        """
        Ejecuta las validaciones de la acción.

        Los errores se lanzan como excepciones; las advertencias se retornan
        y el llamador decide si fueron confirmadas.
        """
        if not action.requires_validation:
            return []

        warnings: list[str] = []
        schedule = _schedule_after(booking, changes)
        start = self._civil_clock.to_instant(schedule.start_date, schedule.start_time)
        start_passed = self._civil_clock.is_past(start)

        if action.id == AdminAction.ACCEPT and start_passed:
            raise ValidationError(
                "start_date", "no se puede aceptar una reserva cuyo inicio ya pasó"
            )
        if action.id == AdminAction.ACCEPT_DEPOSIT and not booking.has_deposit_evidence:
            raise ValidationError(
                "deposit_evidence_ref", "no hay comprobante de depósito para verificar"
            )

        if action.id in OVERLAP_CHECKED_ACTIONS:
            await self._overlap_detector.ensure_available(booking.id, schedule)

        if action.id in CONFIRM_ACTIONS and start_passed:
            warnings.append("La fecha de inicio de la reserva ya pasó.")
        if action.id == AdminAction.CHANGE_DATE and start_passed:
            warnings.append("La nueva fecha de inicio ya pasó.")

        if booking.user_response_at is not None:
            elapsed = self._civil_clock.now() - booking.user_response_at
            if elapsed < timedelta(seconds=RECENT_USER_RESPONSE_SECONDS):
                warnings.append(
                    "El usuario respondió recientemente; cambiar el estado ahora "
                    "podría interrumpir su acción en curso."
                )
        return warnings

    async def _run_side_effects(
        self, before: Booking, updated: Booking, action: ActionDefinition
    ) -> list:
        retry_jobs = []
        old_ref = before.deposit_evidence_ref
        if old_ref and old_ref != updated.deposit_evidence_ref:
            job = await self._side_effects.schedule_cleanup(
                old_ref, updated.id, reason=action.id.value
            )
            if job is not None:
                retry_jobs.append(job)

        job = await self._side_effects.notify(f"booking.{action.id.value}", updated.summary())
        if job is not None:
            retry_jobs.append(job)
        return retry_jobs
