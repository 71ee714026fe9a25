"""Operator notice endpoints."""

from fastapi import APIRouter, Response, status

from dental_admin.dependencies import CurrentWorkspace
from dental_admin.schemas.notices import Notice

router = APIRouter()


@router.get(
    "",
    response_model=list[Notice],
    status_code=status.HTTP_200_OK,
    tags=["Notices"],
    summary="Notices still on screen",
)
async def get_notices(workspace: CurrentWorkspace) -> list[Notice]:
    """Notices whose display time has not elapsed."""
    return workspace.notifications.active()


@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Notices"],
    summary="Dismiss every notice",
)
async def clear_notices(workspace: CurrentWorkspace) -> Response:
    """Drop every notice of the operator."""
    workspace.notifications.clear()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
