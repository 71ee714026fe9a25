"""Dashboard page."""

from datetime import UTC, datetime, tzinfo

import structlog
from pydantic import ValidationError

from dental_admin.config import settings
from dental_admin.core.api_client import ApiClient
from dental_admin.core.exceptions import AppException, SessionExpiredException, raise_for_response
from dental_admin.schemas.appointments import Appointment
from dental_admin.schemas.dashboard import DashboardSnapshot
from dental_admin.services.analytics_service import build_dashboard
from dental_admin.services.payment_service import PaymentService
from dental_admin.services.reconciler import AppointmentReconciler

logger = structlog.get_logger(__name__)


class DashboardController:
    """Fetch full collections and recompute every dashboard figure."""

    def __init__(
        self,
        api: ApiClient,
        payments: PaymentService,
        reconciler: AppointmentReconciler,
        tz: tzinfo | None = None,
        months: int | None = None,
    ):
        """Initialize controller with its data sources."""
        self.api = api
        self.payments = payments
        self.reconciler = reconciler
        self.tz = tz or settings.tzinfo
        self.months = months or settings.dashboard_months
        self.snapshot: DashboardSnapshot | None = None

    async def _all_appointments(self) -> list[Appointment]:
        try:
            response = await self.api.get("/appointments")
            raise_for_response(response)
            return [Appointment.model_validate(item) for item in response.json() or []]
        except SessionExpiredException:
            raise
        except (AppException, ValidationError, ValueError) as e:
            logger.warning("dashboard_appointments_fetch_failed", error=str(e))
            return []

    async def refresh(self) -> DashboardSnapshot:
        """Recompute the dashboard; failed sources count as empty."""
        appointments = await self._all_appointments()
        payments = await self.payments.list_payments()
        summary = await self.reconciler.refresh_summary()

        today = datetime.now(UTC).astimezone(self.tz).date()
        self.snapshot = build_dashboard(
            appointments,
            payments,
            today=today,
            tz=self.tz,
            months=self.months,
            summary=summary if summary.total else None,
        )
        logger.info(
            "dashboard_refreshed",
            appointments=len(appointments),
            payments=len(payments),
        )
        return self.snapshot
