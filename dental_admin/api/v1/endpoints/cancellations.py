"""Cancellation workflow endpoints."""

from fastapi import APIRouter, status

from dental_admin.dependencies import CurrentWorkspace
from dental_admin.schemas.actions import ActionResponse
from dental_admin.schemas.cancellation import CancellationConfirmRequest, CancellationState

router = APIRouter()


@router.get(
    "/reasons",
    response_model=CancellationState,
    status_code=status.HTTP_200_OK,
    tags=["Cancellations"],
    summary="Cancellation reason catalog",
)
async def get_reasons(workspace: CurrentWorkspace) -> CancellationState:
    """Workflow state with the loaded catalog and where it came from."""
    await workspace.cancellation.load_reasons()
    return workspace.cancellation.state()


@router.post(
    "/{appointment_id}/open",
    response_model=CancellationState,
    status_code=status.HTTP_200_OK,
    tags=["Cancellations"],
    summary="Open the reason capture",
)
async def open_cancellation(appointment_id: int, workspace: CurrentWorkspace) -> CancellationState:
    """
    Open the reason capture for an appointment of the current page.

    Raises:
        TransitionNotAllowedException: If the appointment cannot be cancelled
    """
    await workspace.appointments.ensure_mounted()
    return workspace.appointments.open_cancellation(appointment_id)


@router.post(
    "/confirm",
    response_model=ActionResponse,
    status_code=status.HTTP_200_OK,
    tags=["Cancellations"],
    summary="Confirm the cancellation",
)
async def confirm_cancellation(
    data: CancellationConfirmRequest,
    workspace: CurrentWorkspace,
) -> ActionResponse:
    """
    Submit the captured reason and notes.

    Args:
        data: Reason code and optional notes
        workspace: Operator workspace

    Returns:
        Outcome, the cancelled appointment and the workflow state
    """
    result = await workspace.appointments.confirm_cancellation(data.reason, data.notes)
    state = workspace.cancellation.state()
    return ActionResponse(
        outcome=result.outcome.value,
        message=state.error,
        field="reason" if state.error else None,
        appointment=result.appointment,
        cancellation=state,
        notices=workspace.notifications.active(),
    )


@router.delete(
    "",
    response_model=CancellationState,
    status_code=status.HTTP_200_OK,
    tags=["Cancellations"],
    summary="Discard the reason capture",
)
async def close_cancellation(workspace: CurrentWorkspace) -> CancellationState:
    """Close the form without submitting."""
    return workspace.appointments.close_cancellation()
