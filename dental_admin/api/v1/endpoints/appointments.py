"""Appointment endpoints."""

from fastapi import APIRouter, Query, status

from dental_admin.dependencies import CurrentWorkspace
from dental_admin.schemas.actions import ActionResponse
from dental_admin.schemas.appointments import (
    AppointmentControls,
    AppointmentEdit,
    AppointmentPage,
    AppointmentStatus,
    AppointmentSummary,
    BookingForm,
    PatientLookup,
    StatusChangeRequest,
)
from dental_admin.services.appointment_service import MutationOutcome

router = APIRouter()


@router.get(
    "",
    response_model=AppointmentPage,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Appointments table",
)
async def list_appointments(
    workspace: CurrentWorkspace,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    page: int | None = Query(None, ge=1),
    limit: int | None = Query(None, ge=1, le=100),
    search: str = Query(""),
) -> AppointmentPage:
    """
    Current page of the appointments table.

    Args:
        workspace: Operator workspace
        status_filter: Filter by status; changing it goes back to page 1
        page: Page number
        limit: Items per page; changing it goes back to page 1
        search: Local filter by patient name, document or email

    Returns:
        Page state
    """
    return await workspace.appointments.page(
        page=page, limit=limit, status_filter=status_filter, search=search
    )


@router.get(
    "/summary",
    response_model=AppointmentSummary,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Appointment counters by status",
)
async def get_summary(workspace: CurrentWorkspace) -> AppointmentSummary:
    """Status counters, refetched from the clinic API."""
    return await workspace.appointments.summary()


@router.get(
    "/patients/{document_number}",
    response_model=PatientLookup,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Look a patient up by document number",
)
async def lookup_patient(document_number: str, workspace: CurrentWorkspace) -> PatientLookup:
    """Known patients come back locked; anything else is a new patient."""
    return await workspace.appointments.lookup_patient(document_number)


@router.post(
    "",
    response_model=ActionResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Book a new appointment",
)
async def create_appointment(form: BookingForm, workspace: CurrentWorkspace) -> ActionResponse:
    """
    Submit the booking form.

    Args:
        form: Booking form values
        workspace: Operator workspace

    Returns:
        Booking outcome with the created appointment
    """
    await workspace.appointments.ensure_mounted()
    result = await workspace.appointments.create_booking(form)
    return ActionResponse(
        outcome=result.outcome.value,
        message=result.message,
        appointment=result.appointment,
        notices=workspace.notifications.active(),
    )


@router.get(
    "/{appointment_id}/controls",
    response_model=AppointmentControls,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Edit dialog state",
)
async def get_controls(appointment_id: int, workspace: CurrentWorkspace) -> AppointmentControls:
    """
    Edit dialog of one appointment of the current page.

    Frozen appointments come back with every control disabled.
    """
    await workspace.appointments.ensure_mounted()
    return workspace.appointments.controls(appointment_id)


@router.post(
    "/{appointment_id}/status",
    response_model=ActionResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Change appointment status",
)
async def change_status(
    appointment_id: int,
    data: StatusChangeRequest,
    workspace: CurrentWorkspace,
) -> ActionResponse:
    """
    Move an appointment to another status.

    A request for ``cancelled`` opens the cancellation workflow; the
    response then carries its state and the reason must be confirmed
    through ``/cancellations/confirm``.

    Args:
        appointment_id: Appointment ID
        data: Requested status
        workspace: Operator workspace

    Returns:
        Mutation outcome
    """
    await workspace.appointments.ensure_mounted()
    result = await workspace.appointments.change_status(appointment_id, data.status)
    return ActionResponse(
        outcome=result.outcome.value,
        message=result.message,
        field=result.field,
        appointment=result.appointment,
        cancellation=(
            workspace.cancellation.state()
            if result.outcome == MutationOutcome.NEEDS_REASON
            else None
        ),
        notices=workspace.notifications.active(),
    )


@router.put(
    "/{appointment_id}",
    response_model=ActionResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Save the edit dialog",
)
async def update_appointment(
    appointment_id: int,
    data: AppointmentEdit,
    workspace: CurrentWorkspace,
) -> ActionResponse:
    """
    Save specialist, service, times and status of one appointment.

    Only fields that differ from the cached appointment are sent.

    Args:
        appointment_id: Appointment ID
        data: Edit form values
        workspace: Operator workspace

    Returns:
        Mutation outcome
    """
    await workspace.appointments.ensure_mounted()
    result = await workspace.appointments.save_edit(appointment_id, data)
    return ActionResponse(
        outcome=result.outcome.value,
        message=result.message,
        field=result.field,
        appointment=result.appointment,
        cancellation=(
            workspace.cancellation.state()
            if result.outcome == MutationOutcome.NEEDS_REASON
            else None
        ),
        notices=workspace.notifications.active(),
    )
