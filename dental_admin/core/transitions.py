"""Appointment status transition table and guard.

The table is plain data shared by every surface that offers a status
change. The remote API enforces the same rules; this module only keeps
illegal transitions from being submitted.
"""

from types import MappingProxyType

from dental_admin.schemas.appointments import AppointmentStatus, StatusOption

ALLOWED_TRANSITIONS: MappingProxyType[AppointmentStatus, frozenset[AppointmentStatus]] = (
    MappingProxyType(
        {
            AppointmentStatus.PENDING: frozenset(
                {AppointmentStatus.SCHEDULED, AppointmentStatus.CANCELLED}
            ),
            AppointmentStatus.SCHEDULED: frozenset(
                {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}
            ),
            AppointmentStatus.COMPLETED: frozenset(),
            AppointmentStatus.CANCELLED: frozenset(),
        }
    )
)

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

STATUS_LABELS: MappingProxyType[str, str] = MappingProxyType(
    {
        "pending": "Pendiente",
        "scheduled": "Aprobada",
        "completed": "Completada",
        "cancelled": "Cancelada",
        "paid": "Pagado",
        "refunded": "Reembolsado",
    }
)


def _coerce(status: AppointmentStatus | str) -> AppointmentStatus | None:
    try:
        return AppointmentStatus(status)
    except ValueError:
        return None


def status_label(status: AppointmentStatus | str) -> str:
    """Spanish label for an appointment or payment status."""
    value = status.value if isinstance(status, AppointmentStatus) else status
    return STATUS_LABELS.get(value, value)


def allowed_targets(current: AppointmentStatus | str) -> frozenset[AppointmentStatus]:
    """Statuses reachable from ``current`` in one step."""
    status = _coerce(current)
    if status is None:
        return frozenset()
    return ALLOWED_TRANSITIONS[status]


def can_transition(current: AppointmentStatus | str, target: AppointmentStatus | str) -> bool:
    """
    Check whether ``current -> target`` is a listed transition.

    Staying in the same status is not a transition and returns False;
    unknown statuses are never allowed.
    """
    target_status = _coerce(target)
    if target_status is None:
        return False
    return target_status in allowed_targets(current)


def is_frozen(status: AppointmentStatus | str) -> bool:
    """Terminal statuses freeze the appointment."""
    return _coerce(status) in TERMINAL_STATUSES


def status_options(current: AppointmentStatus | str) -> list[StatusOption]:
    """
    Build the entries of a status selector.

    The current status is shown as selected but not selectable; every
    other status is selectable only when the guard allows it.
    """
    current_status = _coerce(current)
    return [
        StatusOption(
            status=status,
            label=status_label(status),
            current=status == current_status,
            selectable=can_transition(current, status),
        )
        for status in AppointmentStatus
    ]


def transition_hint(current: AppointmentStatus | str) -> str | None:
    """Helper text shown under the selector of a non-terminal appointment."""
    targets = allowed_targets(current)
    if not targets:
        return None
    ordered = [status_label(s) for s in AppointmentStatus if s in targets]
    return f"{status_label(current)} → solo puede pasar a {' o '.join(ordered)}"
