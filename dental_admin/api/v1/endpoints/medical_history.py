"""Medical history endpoints."""

from fastapi import APIRouter, Query, Response, status

from dental_admin.dependencies import CurrentWorkspace
from dental_admin.schemas.actions import ActionResponse
from dental_admin.schemas.medical_history import (
    MedicalHistoryCreateRequest,
    MedicalHistoryForm,
    MedicalHistoryRecord,
)
from dental_admin.services.medical_history_service import search_records

router = APIRouter()


@router.get(
    "",
    response_model=list[MedicalHistoryRecord],
    status_code=status.HTTP_200_OK,
    tags=["Medical History"],
    summary="List medical history records",
)
async def list_records(
    workspace: CurrentWorkspace,
    search: str = Query(""),
) -> list[MedicalHistoryRecord]:
    """Records filtered by patient, document, diagnosis or specialist."""
    return search_records(await workspace.histories.list_records(), search)


@router.post(
    "",
    response_model=ActionResponse,
    status_code=status.HTTP_200_OK,
    tags=["Medical History"],
    summary="Create a medical history record",
)
async def create_record(
    data: MedicalHistoryCreateRequest,
    workspace: CurrentWorkspace,
) -> ActionResponse:
    """
    Create the record of a completed appointment of the current page.

    Args:
        data: Appointment id and form values
        workspace: Operator workspace

    Returns:
        Creation outcome with the record
    """
    await workspace.appointments.ensure_mounted()
    form = MedicalHistoryForm.model_validate(data.model_dump(exclude={"appointment_id"}))
    result = await workspace.appointments.create_history(data.appointment_id, form)
    return ActionResponse(
        outcome=result.outcome.value,
        message=result.message,
        record=result.record,
        notices=workspace.notifications.active(),
    )


@router.get(
    "/patients/{patient_id}/pdf",
    status_code=status.HTTP_200_OK,
    tags=["Medical History"],
    summary="Clinical history PDF",
    response_class=Response,
)
async def download_pdf(patient_id: int, workspace: CurrentWorkspace) -> Response:
    """Clinical history of a patient rendered by the clinic API."""
    content = await workspace.histories.download_pdf(patient_id)
    return Response(content=content, media_type="application/pdf")
