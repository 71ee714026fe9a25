"""Tests for the appointment transition guard."""

import itertools

import pytest

from dental_admin.core.transitions import (
    ALLOWED_TRANSITIONS,
    allowed_targets,
    can_transition,
    is_frozen,
    status_label,
    status_options,
    transition_hint,
)
from dental_admin.schemas.appointments import AppointmentStatus

LEGAL = {
    (AppointmentStatus.PENDING, AppointmentStatus.SCHEDULED),
    (AppointmentStatus.PENDING, AppointmentStatus.CANCELLED),
    (AppointmentStatus.SCHEDULED, AppointmentStatus.COMPLETED),
    (AppointmentStatus.SCHEDULED, AppointmentStatus.CANCELLED),
}


@pytest.mark.parametrize(
    ("current", "target"),
    list(itertools.product(AppointmentStatus, AppointmentStatus)),
)
def test_can_transition_matches_table(
    current: AppointmentStatus, target: AppointmentStatus
) -> None:
    """Only the four listed transitions are allowed."""
    assert can_transition(current, target) is ((current, target) in LEGAL)


def test_identity_is_not_a_transition() -> None:
    """Staying in the same status is rejected for every status."""
    for status in AppointmentStatus:
        assert can_transition(status, status) is False


def test_unknown_status_is_never_allowed() -> None:
    """Unknown values on either side are rejected."""
    assert can_transition("archived", "pending") is False
    assert can_transition("pending", "archived") is False
    assert allowed_targets("archived") == frozenset()


def test_string_values_are_accepted() -> None:
    """Raw status strings from the API work like the enum."""
    assert can_transition("pending", "scheduled") is True
    assert can_transition("completed", "cancelled") is False


def test_table_is_read_only() -> None:
    """The transition table cannot be modified at runtime."""
    with pytest.raises(TypeError):
        ALLOWED_TRANSITIONS[AppointmentStatus.COMPLETED] = frozenset(  # type: ignore[index]
            {AppointmentStatus.PENDING}
        )


def test_terminal_statuses_are_frozen() -> None:
    """Completed and cancelled freeze the appointment."""
    assert is_frozen(AppointmentStatus.COMPLETED)
    assert is_frozen(AppointmentStatus.CANCELLED)
    assert not is_frozen(AppointmentStatus.PENDING)
    assert not is_frozen(AppointmentStatus.SCHEDULED)


def test_status_options_disable_illegal_targets() -> None:
    """Illegal targets are not selectable and the current status is marked."""
    options = {o.status: o for o in status_options(AppointmentStatus.PENDING)}

    assert options[AppointmentStatus.PENDING].current is True
    assert options[AppointmentStatus.PENDING].selectable is False
    assert options[AppointmentStatus.SCHEDULED].selectable is True
    assert options[AppointmentStatus.CANCELLED].selectable is True
    assert options[AppointmentStatus.COMPLETED].selectable is False
    assert options[AppointmentStatus.SCHEDULED].label == "Aprobada"


def test_status_options_of_frozen_appointment() -> None:
    """Nothing is selectable once the appointment is terminal."""
    assert not any(o.selectable for o in status_options(AppointmentStatus.COMPLETED))


def test_transition_hint() -> None:
    """Hint lists the reachable statuses; terminal statuses have none."""
    assert transition_hint(AppointmentStatus.PENDING) == (
        "Pendiente → solo puede pasar a Aprobada o Cancelada"
    )
    assert transition_hint(AppointmentStatus.SCHEDULED) == (
        "Aprobada → solo puede pasar a Completada o Cancelada"
    )
    assert transition_hint(AppointmentStatus.CANCELLED) is None


def test_status_labels() -> None:
    """Labels cover appointment and payment statuses."""
    assert status_label(AppointmentStatus.CANCELLED) == "Cancelada"
    assert status_label("paid") == "Pagado"
    assert status_label("refunded") == "Reembolsado"
    assert status_label("unknown") == "unknown"
