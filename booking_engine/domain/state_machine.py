"""
Máquina de estados del ciclo de vida de una reserva.

Tabla única de transiciones: cualquier otro componente consulta aquí si un
cambio de estado es legal y qué acciones se ofrecen al administrador.
"""

from dataclasses import dataclass
from enum import Enum

from booking_engine.domain.entities.booking import BookingStatus


class AdminAction(str, Enum):
    """Acciones que puede solicitar un administrador (o el sistema)."""

    ACCEPT = "accept"
    REJECT = "reject"
    ACCEPT_DEPOSIT = "accept_deposit"
    ACCEPT_DEPOSIT_OTHER_CHANNEL = "accept_deposit_other_channel"
    REJECT_DEPOSIT = "reject_deposit"
    CONFIRM_OTHER_CHANNEL = "confirm_other_channel"
    CANCEL = "cancel"
    CHANGE_DATE = "change_date"
    FINISH = "finish"


class UserAction(str, Enum):
    """Acciones que el cliente ejecuta con su token."""

    SUBMIT_DEPOSIT = "submit_deposit"
    CANCEL = "user_cancel"


@dataclass(frozen=True)
class ActionDefinition:
    """Descripción de una acción disponible para una reserva."""

    id: AdminAction | UserAction
    label: str
    target_status: BookingStatus
    is_destructive: bool
    requires_validation: bool
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id.value,
            "label": self.label,
            "target_status": self.target_status.value,
            "is_destructive": self.is_destructive,
            "requires_validation": self.requires_validation,
            "description": self.description,
        }


# Tabla autoritativa de transiciones (incluye la subida de depósito por el usuario)
TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.PENDING_DEPOSIT, BookingStatus.CANCELLED}),
    BookingStatus.PENDING_DEPOSIT: frozenset(
        {
            BookingStatus.PENDING_DEPOSIT,
            BookingStatus.PAID_DEPOSIT,
            BookingStatus.CONFIRMED,
            BookingStatus.CANCELLED,
        }
    ),
    BookingStatus.PAID_DEPOSIT: frozenset(
        {BookingStatus.PENDING_DEPOSIT, BookingStatus.CONFIRMED, BookingStatus.CANCELLED}
    ),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED, BookingStatus.FINISHED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.FINISHED: frozenset(),
}


_ACCEPT = ActionDefinition(
    id=AdminAction.ACCEPT,
    label="Aceptar",
    target_status=BookingStatus.PENDING_DEPOSIT,
    is_destructive=False,
    requires_validation=True,
    description="Aprobar la solicitud; el usuario podrá subir el depósito",
)
_REJECT = ActionDefinition(
    id=AdminAction.REJECT,
    label="Rechazar",
    target_status=BookingStatus.CANCELLED,
    is_destructive=True,
    requires_validation=False,
    description="Rechazar la solicitud",
)
_CANCEL = ActionDefinition(
    id=AdminAction.CANCEL,
    label="Cancelar",
    target_status=BookingStatus.CANCELLED,
    is_destructive=True,
    requires_validation=False,
    description="Cancelar la reserva",
)
_ACCEPT_DEPOSIT = ActionDefinition(
    id=AdminAction.ACCEPT_DEPOSIT,
    label="Aceptar depósito",
    target_status=BookingStatus.CONFIRMED,
    is_destructive=False,
    requires_validation=True,
    description="Verificar el comprobante de depósito y confirmar",
)
_ACCEPT_DEPOSIT_OTHER_CHANNEL = ActionDefinition(
    id=AdminAction.ACCEPT_DEPOSIT_OTHER_CHANNEL,
    label="Aceptar depósito (otro canal)",
    target_status=BookingStatus.CONFIRMED,
    is_destructive=False,
    requires_validation=True,
    description="Confirmar con depósito verificado fuera del sistema",
)
_REJECT_DEPOSIT = ActionDefinition(
    id=AdminAction.REJECT_DEPOSIT,
    label="Rechazar depósito",
    target_status=BookingStatus.PENDING_DEPOSIT,
    is_destructive=True,
    requires_validation=False,
    description="Descartar el comprobante; el usuario puede subir uno nuevo",
)
_CONFIRM_OTHER_CHANNEL = ActionDefinition(
    id=AdminAction.CONFIRM_OTHER_CHANNEL,
    label="Confirmar (otro canal)",
    target_status=BookingStatus.CONFIRMED,
    is_destructive=False,
    requires_validation=True,
    description="Confirmar con pago acordado por otro canal",
)
_FINISH = ActionDefinition(
    id=AdminAction.FINISH,
    label="Finalizar",
    target_status=BookingStatus.FINISHED,
    is_destructive=False,
    requires_validation=False,
    description="Marcar la reserva como finalizada",
)


def change_date_action(status: BookingStatus) -> ActionDefinition:
    """El cambio de fecha modifica la reserva sin cambiar su estado."""
    return ActionDefinition(
        id=AdminAction.CHANGE_DATE,
        label="Cambiar fecha",
        target_status=status,
        is_destructive=False,
        requires_validation=True,
        description="Modificar las fechas (se revalida la superposición)",
    )


def available_actions(
    status: BookingStatus,
    has_deposit_evidence: bool = False,
    is_past: bool = False,
) -> list[ActionDefinition]:
    """
    Acciones ofrecidas para una reserva según su estado.

    Args:
        status: Estado actual.
        has_deposit_evidence: Si la reserva tiene comprobante de depósito.
        is_past: Para `pending` indica si el inicio ya pasó (oculta `accept`);
            para `confirmed` indica si el fin ya pasó (habilita `finish`).

    Returns:
        Lista ordenada de acciones. Las destructivas siempre se incluyen.
    """
    status = BookingStatus(status)

    if status == BookingStatus.PENDING:
        actions = [] if is_past else [_ACCEPT]
        return actions + [_REJECT, _CANCEL]

    if status == BookingStatus.PENDING_DEPOSIT:
        actions = []
        if has_deposit_evidence:
            actions += [_ACCEPT_DEPOSIT, _REJECT_DEPOSIT]
        return actions + [_CONFIRM_OTHER_CHANNEL, _CANCEL]

    if status == BookingStatus.PAID_DEPOSIT:
        return [_ACCEPT_DEPOSIT, _ACCEPT_DEPOSIT_OTHER_CHANNEL, _REJECT_DEPOSIT, _CANCEL]

    if status == BookingStatus.CONFIRMED:
        actions = [change_date_action(status), _CANCEL]
        if is_past:
            actions.append(_FINISH)
        return actions

    return []


def is_legal(current: BookingStatus, target: BookingStatus) -> bool:
    """Verifica si `current -> target` existe en la tabla de transiciones."""
    return BookingStatus(target) in TRANSITIONS[BookingStatus(current)]


def legal_targets(current: BookingStatus) -> list[str]:
    return sorted(s.value for s in TRANSITIONS[BookingStatus(current)])


def find_action(
    actions: list[ActionDefinition],
    target: BookingStatus,
    action_id: AdminAction | UserAction | None = None,
) -> ActionDefinition | None:
    """
    Selecciona la acción que lleva a `target`.

    Si se indica `action_id` debe coincidir exactamente; si no, se toma la
    primera acción no de cambio de fecha que apunte a `target`.
    """
    for action in actions:
        if action_id is not None:
            if action.id == action_id and action.target_status == target:
                return action
        elif action.target_status == target and action.id != AdminAction.CHANGE_DATE:
            return action
    return None


_SUBMIT_DEPOSIT = ActionDefinition(
    id=UserAction.SUBMIT_DEPOSIT,
    label="Enviar depósito",
    target_status=BookingStatus.PAID_DEPOSIT,
    is_destructive=False,
    requires_validation=False,
    description="Subir el comprobante de depósito",
)
_USER_CANCEL = ActionDefinition(
    id=UserAction.CANCEL,
    label="Cancelar reserva",
    target_status=BookingStatus.CANCELLED,
    is_destructive=True,
    requires_validation=False,
    description="El cliente cancela su reserva",
)


def user_actions(status: BookingStatus) -> list[ActionDefinition]:
    """Acciones disponibles para el titular del token."""
    status = BookingStatus(status)
    if status == BookingStatus.PENDING_DEPOSIT:
        return [_SUBMIT_DEPOSIT, _USER_CANCEL]
    if status in (BookingStatus.PENDING, BookingStatus.PAID_DEPOSIT):
        return [_USER_CANCEL]
    return []
