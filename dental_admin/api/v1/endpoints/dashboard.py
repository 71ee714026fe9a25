"""Dashboard endpoints."""

from fastapi import APIRouter, status

from dental_admin.dependencies import CurrentWorkspace
from dental_admin.schemas.dashboard import DashboardSnapshot

router = APIRouter()


@router.get(
    "",
    response_model=DashboardSnapshot,
    status_code=status.HTTP_200_OK,
    tags=["Dashboard"],
    summary="Dashboard figures",
)
async def get_dashboard(workspace: CurrentWorkspace) -> DashboardSnapshot:
    """
    Recompute every dashboard figure from the full collections.

    Returns:
        KPIs, monthly income, service distribution and cancellation analytics
    """
    return await workspace.dashboard.refresh()
