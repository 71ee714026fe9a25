"""Local appointment page cache and its reconciliation with the server."""

from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from dental_admin.config import settings
from dental_admin.core.api_client import ApiClient
from dental_admin.core.exceptions import AppException, SessionExpiredException
from dental_admin.schemas.appointments import (
    Appointment,
    AppointmentPage,
    AppointmentStatus,
    AppointmentSummary,
    PaginatedAppointments,
)

logger = structlog.get_logger(__name__)


class AppointmentReconciler:
    """
    Keep the displayed appointment page and the status summary in line
    with the server after every mutation.

    The page is a cache: it is only written from confirmed server
    responses, and summary counts are always refetched rather than
    adjusted locally.
    """

    def __init__(self, api: ApiClient, limit: int | None = None):
        """Initialize an empty page."""
        self.api = api
        self.appointments: list[Appointment] = []
        self.page = 1
        self.limit = limit or settings.default_page_limit
        self.total = 0
        self.total_pages = 1
        self.status_filter: AppointmentStatus | None = None
        self.paginated = True
        self.loading = False
        self.summary = AppointmentSummary()

    async def fetch_page(
        self,
        page: int,
        limit: int,
        status_filter: AppointmentStatus | None,
    ) -> AppointmentPage:
        """
        Load one page of appointments.

        Falls back to the unfiltered full collection shown as a single
        page when the paginated endpoint answers with an error. Never
        raises for remote failures; the page is emptied instead.

        Args:
            page: 1-based page number
            limit: Page size
            status_filter: Status to filter by, or None for all

        Returns:
            The resulting page state
        """
        self.loading = True
        self.status_filter = status_filter
        self.limit = limit
        try:
            params: dict[str, str | int] = {"page": page, "limit": limit}
            if status_filter is not None:
                params["status"] = status_filter.value

            response = await self.api.get("/appointments/paginated", params=params)
            if response.is_success:
                result = PaginatedAppointments.model_validate(response.json())
                self.appointments = result.data
                self.total = result.total
                self.total_pages = max(result.total_pages, 1)
                self.page = result.page
                self.paginated = True
            else:
                logger.warning(
                    "paginated_appointments_unavailable",
                    status_code=response.status_code,
                )
                await self._fetch_unpaginated()
        except SessionExpiredException:
            raise
        except (AppException, ValidationError, ValueError) as e:
            logger.warning("appointments_fetch_failed", error=str(e))
            self._reset_page()
        finally:
            self.loading = False

        return self.snapshot()

    async def _fetch_unpaginated(self) -> None:
        response = await self.api.get("/appointments")
        data = response.json() if response.is_success else []
        self.appointments = [Appointment.model_validate(item) for item in data or []]
        self.total = len(self.appointments)
        self.total_pages = 1
        self.page = 1
        self.paginated = False

    def _reset_page(self) -> None:
        self.appointments = []
        self.total = 0
        self.total_pages = 1
        self.page = 1

    async def reload(self) -> AppointmentPage:
        """Re-fetch the current page with the current filter."""
        return await self.fetch_page(self.page, self.limit, self.status_filter)

    async def set_filter(self, status_filter: AppointmentStatus | None) -> AppointmentPage:
        """Switch the status filter and go back to page 1."""
        return await self.fetch_page(1, self.limit, status_filter)

    async def set_limit(self, limit: int) -> AppointmentPage:
        """Change the page size and go back to page 1."""
        return await self.fetch_page(1, limit, self.status_filter)

    async def go_to_page(self, page: int) -> AppointmentPage:
        """Move to another page, clamped to the known range."""
        target = min(max(page, 1), self.total_pages)
        return await self.fetch_page(target, self.limit, self.status_filter)

    async def refresh_summary(self) -> AppointmentSummary:
        """
        Refetch the status counters from the server.

        On failure the previous counters are kept.
        """
        try:
            response = await self.api.get("/appointments/summary")
            if response.is_success:
                self.summary = AppointmentSummary.model_validate(response.json())
            else:
                logger.warning("summary_unavailable", status_code=response.status_code)
        except SessionExpiredException:
            raise
        except (AppException, ValidationError, ValueError) as e:
            logger.warning("summary_fetch_failed", error=str(e))
        return self.summary

    def find(self, appointment_id: int) -> Appointment | None:
        """Cached appointment by id, if it is on the current page."""
        return next((a for a in self.appointments if a.id == appointment_id), None)

    def confirmed(
        self,
        appointment_id: int,
        response: httpx.Response,
        changes: dict[str, Any],
        base: Appointment | None = None,
    ) -> Appointment | None:
        """
        Build the appointment as the server now holds it.

        Uses the response body when it is an appointment; otherwise the
        confirmed ``changes`` are merged into the cached copy (``base`` or
        the page entry). Returns None when neither is available.
        """
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and body.get("id") == appointment_id:
            try:
                server_copy = Appointment.model_validate(body)
            except ValidationError:
                server_copy = None
            if server_copy is not None:
                missing = {k: v for k, v in changes.items() if getattr(server_copy, k) is None}
                return server_copy.model_copy(update=missing) if missing else server_copy

        cached = base or self.find(appointment_id)
        if cached is None:
            return None
        return cached.model_copy(update=changes)

    def apply_update(self, appointment: Appointment) -> bool:
        """
        Write a confirmed appointment into the page.

        When a status filter is active and the appointment no longer
        matches it, it is removed from the displayed page; the next fetch
        of that filter is authoritative.

        Returns:
            True if the appointment is still displayed
        """
        visible = self.status_filter is None or appointment.status == self.status_filter
        updated: list[Appointment] = []
        for cached in self.appointments:
            if cached.id != appointment.id:
                updated.append(cached)
            elif visible:
                updated.append(appointment)
        self.appointments = updated
        return visible and any(a.id == appointment.id for a in updated)

    def search(self, query: str) -> list[Appointment]:
        """Filter the current page by patient name, document number or email."""
        q = query.strip().lower()
        if not q:
            return list(self.appointments)
        return [a for a in self.appointments if _matches(a, q)]

    def snapshot(self) -> AppointmentPage:
        """Current page state."""
        return AppointmentPage(
            appointments=list(self.appointments),
            total=self.total,
            page=self.page,
            limit=self.limit,
            total_pages=self.total_pages,
            status_filter=self.status_filter,
            paginated=self.paginated,
            loading=self.loading,
        )


def _matches(appointment: Appointment, query: str) -> bool:
    patient = appointment.patient
    if patient is None:
        return False
    return (
        query in patient.full_name.lower()
        or query in (patient.document_number or "")
        or query in (patient.email or "").lower()
    )
