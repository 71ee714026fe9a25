"""Tests for the cancellation workflow."""

import json

import pytest

from dental_admin.core.cancellation_reasons import CANCELLATION_LABELS
from dental_admin.core.exceptions import TransitionNotAllowedException
from dental_admin.schemas.appointments import AppointmentStatus
from dental_admin.schemas.cancellation import CatalogSource
from dental_admin.schemas.notices import NoticeLevel
from dental_admin.services.cancellation_service import (
    ALREADY_CANCELLED_NOTICE,
    CANCEL_FAILED_NOTICE,
    CANCELLED_NOTICE,
    REASON_REQUIRED,
    REASON_UNKNOWN,
    SERVER_ERROR_NOTICE,
    CancellationOutcome,
    is_already_cancelled_message,
)
from dental_admin.workspace import AdminWorkspace
from fakes import FakeClinicApi

CANCEL_PATH = "/admin/appointments/2"


@pytest.mark.asyncio
async def test_reasons_loaded_from_server(workspace: AdminWorkspace) -> None:
    """The server catalog is used when available."""
    reasons = await workspace.cancellation.load_reasons()

    assert [r.code for r in reasons] == ["no_show", "patient_request", "other"]
    assert workspace.cancellation.catalog_source == CatalogSource.SERVER


@pytest.mark.asyncio
@pytest.mark.parametrize("failure", ["status", "empty", "malformed"])
async def test_reasons_fall_back_to_hardcoded_catalog(
    workspace: AdminWorkspace, fake_api: FakeClinicApi, failure: str
) -> None:
    """Any catalog failure yields exactly the eight fallback codes."""
    if failure == "status":
        fake_api.reasons = None
    elif failure == "empty":
        fake_api.reasons = []
    else:
        fake_api.override("GET", "/appointments/cancellation-reasons", 200, {"unexpected": True})

    reasons = await workspace.cancellation.load_reasons()

    assert [r.code for r in reasons] == list(CANCELLATION_LABELS)
    assert len(reasons) == 8
    assert all(r.description == "" for r in reasons)
    assert workspace.cancellation.catalog_source == CatalogSource.FALLBACK


@pytest.mark.asyncio
async def test_catalog_is_loaded_once(workspace: AdminWorkspace, fake_api: FakeClinicApi) -> None:
    """Later loads reuse the catalog unless forced."""
    await workspace.cancellation.load_reasons()
    await workspace.cancellation.load_reasons()
    await workspace.cancellation.load_reasons(force=True)

    assert len(fake_api.calls("GET", "/appointments/cancellation-reasons")) == 2


@pytest.mark.asyncio
async def test_open_requires_a_legal_transition(workspace: AdminWorkspace) -> None:
    """Terminal appointments cannot enter the workflow."""
    with pytest.raises(TransitionNotAllowedException):
        workspace.cancellation.open(3, AppointmentStatus.COMPLETED)

    assert not workspace.cancellation.is_open


@pytest.mark.asyncio
async def test_confirm_without_reason_never_reaches_network(
    mounted_workspace: AdminWorkspace, fake_api: FakeClinicApi
) -> None:
    """An empty reason is a local field error."""
    workflow = mounted_workspace.cancellation
    workflow.open(2, AppointmentStatus.SCHEDULED)

    result = await workflow.confirm()

    assert result.outcome == CancellationOutcome.INVALID
    assert workflow.error == REASON_REQUIRED
    assert workflow.is_open
    assert fake_api.calls("PUT") == []


@pytest.mark.asyncio
async def test_confirm_with_unknown_reason(
    mounted_workspace: AdminWorkspace, fake_api: FakeClinicApi
) -> None:
    """Codes outside the loaded catalog are rejected locally."""
    workflow = mounted_workspace.cancellation
    workflow.open(2, AppointmentStatus.SCHEDULED)
    workflow.select_reason("bored")

    result = await workflow.confirm()

    assert result.outcome == CancellationOutcome.INVALID
    assert workflow.error == REASON_UNKNOWN
    assert fake_api.calls("PUT") == []


@pytest.mark.asyncio
async def test_editing_the_form_clears_the_error(mounted_workspace: AdminWorkspace) -> None:
    """Selecting a reason removes the previous field error."""
    workflow = mounted_workspace.cancellation
    workflow.open(2, AppointmentStatus.SCHEDULED)
    await workflow.confirm()
    assert workflow.error

    workflow.select_reason("no_show")

    assert workflow.error == ""
    assert workflow.reason_description() == "El paciente no asistió"


@pytest.mark.asyncio
async def test_successful_cancel_updates_cache_and_filtered_page(
    mounted_workspace: AdminWorkspace, fake_api: FakeClinicApi
) -> None:
    """A confirmed no_show cancellation leaves a scheduled-filtered page."""
    reconciler = mounted_workspace.reconciler
    await reconciler.set_filter(AppointmentStatus.SCHEDULED)
    assert [a.id for a in reconciler.appointments] == [2]

    workflow = mounted_workspace.cancellation
    workflow.open(2, AppointmentStatus.SCHEDULED)
    workflow.select_reason("no_show")
    result = await workflow.confirm(base=reconciler.find(2))

    assert result.outcome == CancellationOutcome.CANCELLED
    assert result.appointment.status == AppointmentStatus.CANCELLED
    assert result.appointment.cancellation_reason == "no_show"
    assert reconciler.find(2) is None
    assert reconciler.summary.cancelled == 2
    assert not workflow.is_open
    assert mounted_workspace.notifications.history[-1].message == CANCELLED_NOTICE


@pytest.mark.asyncio
async def test_successful_cancel_keeps_row_without_filter(
    mounted_workspace: AdminWorkspace,
) -> None:
    """Without a filter the row stays on the page with its new status."""
    workflow = mounted_workspace.cancellation
    workflow.open(1, AppointmentStatus.PENDING)
    workflow.select_reason("patient_request")
    workflow.set_notes("  Viaja fuera de la ciudad  ")

    await workflow.confirm()

    cached = mounted_workspace.reconciler.find(1)
    assert cached.status == AppointmentStatus.CANCELLED
    assert cached.cancellation_reason == "patient_request"
    assert cached.cancellation_notes == "Viaja fuera de la ciudad"


@pytest.mark.asyncio
async def test_blank_notes_are_not_sent(
    mounted_workspace: AdminWorkspace, fake_api: FakeClinicApi
) -> None:
    """The body carries status and reason, and notes only when filled in."""
    workflow = mounted_workspace.cancellation
    workflow.open(2, AppointmentStatus.SCHEDULED)
    workflow.select_reason("no_show")
    workflow.set_notes("   ")

    await workflow.confirm()

    body = json.loads(fake_api.calls("PUT", CANCEL_PATH)[0].content)
    assert body == {"status": "cancelled", "cancellation_reason": "no_show"}


@pytest.mark.asyncio
async def test_double_cancellation_gives_one_success_and_no_error(
    mounted_workspace: AdminWorkspace,
) -> None:
    """A second cancel of the same appointment is reported as informational."""
    workflow = mounted_workspace.cancellation
    notifications = mounted_workspace.notifications

    workflow.open(2, AppointmentStatus.SCHEDULED)
    workflow.select_reason("no_show")
    first = await workflow.confirm()

    # Another tab still shows the appointment as scheduled
    workflow.open(2, AppointmentStatus.SCHEDULED)
    workflow.select_reason("no_show")
    second = await workflow.confirm()

    assert first.outcome == CancellationOutcome.CANCELLED
    assert second.outcome == CancellationOutcome.ALREADY_CANCELLED
    assert notifications.count(NoticeLevel.SUCCESS) == 1
    assert notifications.count(NoticeLevel.ERROR) == 0
    assert notifications.history[-1].message == ALREADY_CANCELLED_NOTICE
    assert not workflow.is_open


@pytest.mark.asyncio
async def test_cancelled_elsewhere_reloads_the_page(
    mounted_workspace: AdminWorkspace, fake_api: FakeClinicApi
) -> None:
    """A stale row cancelled by someone else is refreshed from the server."""
    fake_api.appointments[2]["status"] = "cancelled"
    reconciler = mounted_workspace.reconciler
    workflow = mounted_workspace.cancellation
    workflow.open(2, AppointmentStatus.SCHEDULED)
    workflow.select_reason("no_show")

    result = await workflow.confirm()

    assert result.outcome == CancellationOutcome.ALREADY_CANCELLED
    assert reconciler.find(2).status == AppointmentStatus.CANCELLED
    assert reconciler.summary.cancelled == 2
    assert reconciler.summary.scheduled == 0


@pytest.mark.asyncio
async def test_other_400_becomes_field_error(
    mounted_workspace: AdminWorkspace, fake_api: FakeClinicApi
) -> None:
    """A validation message from the server keeps the form open."""
    fake_api.override("PUT", CANCEL_PATH, 400, {"error": "Motivo no permitido para esta cita"})
    workflow = mounted_workspace.cancellation
    workflow.open(2, AppointmentStatus.SCHEDULED)
    workflow.select_reason("no_show")

    result = await workflow.confirm()

    assert result.outcome == CancellationOutcome.INVALID
    assert workflow.error == "Motivo no permitido para esta cita"
    assert workflow.is_open
    assert mounted_workspace.reconciler.find(2).status == AppointmentStatus.SCHEDULED


@pytest.mark.asyncio
async def test_server_error_keeps_form_open_for_retry(
    mounted_workspace: AdminWorkspace, fake_api: FakeClinicApi
) -> None:
    """A 5xx produces a transient notice and no local change."""
    fake_api.override("PUT", CANCEL_PATH, 500, {"error": "db down"})
    workflow = mounted_workspace.cancellation
    workflow.open(2, AppointmentStatus.SCHEDULED)
    workflow.select_reason("no_show")

    result = await workflow.confirm()

    assert result.outcome == CancellationOutcome.FAILED
    assert workflow.is_open
    assert workflow.saving is False
    assert mounted_workspace.notifications.history[-1].message == SERVER_ERROR_NOTICE
    assert mounted_workspace.reconciler.find(2).status == AppointmentStatus.SCHEDULED


@pytest.mark.asyncio
async def test_unexpected_status_is_a_generic_failure(
    mounted_workspace: AdminWorkspace, fake_api: FakeClinicApi
) -> None:
    """Statuses without a specific meaning produce the generic notice."""
    fake_api.override("PUT", CANCEL_PATH, 404, {"error": "not found"})
    workflow = mounted_workspace.cancellation
    workflow.open(2, AppointmentStatus.SCHEDULED)
    workflow.select_reason("no_show")

    result = await workflow.confirm()

    assert result.outcome == CancellationOutcome.FAILED
    assert mounted_workspace.notifications.history[-1].message == CANCEL_FAILED_NOTICE


@pytest.mark.asyncio
async def test_cancel_works_with_fallback_catalog(
    mounted_workspace: AdminWorkspace, fake_api: FakeClinicApi
) -> None:
    """The fallback catalog supports the full workflow."""
    fake_api.reasons = None
    workflow = mounted_workspace.cancellation
    await workflow.load_reasons(force=True)
    assert workflow.catalog_source == CatalogSource.FALLBACK

    workflow.open(1, AppointmentStatus.PENDING)
    workflow.select_reason("clinic_decision")
    result = await workflow.confirm()

    assert result.outcome == CancellationOutcome.CANCELLED
    assert fake_api.appointments[1]["cancellation_reason"] == "clinic_decision"


def test_already_cancelled_markers() -> None:
    """Spanish and English server messages are recognised."""
    assert is_already_cancelled_message("La cita ya está cancelada")
    assert is_already_cancelled_message("Esta cita YA SE ENCUENTRA CANCELADA")
    assert is_already_cancelled_message("Appointment already canceled")
    assert not is_already_cancelled_message("Motivo requerido")
