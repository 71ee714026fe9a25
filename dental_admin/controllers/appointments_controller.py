"""Appointments page: orchestrates guard, workflows, mutations and the page cache."""

import structlog

from dental_admin.core.exceptions import NotFoundException
from dental_admin.core.transitions import status_options, transition_hint
from dental_admin.schemas.appointments import (
    Appointment,
    AppointmentControls,
    AppointmentEdit,
    AppointmentPage,
    AppointmentStatus,
    AppointmentSummary,
    BookingForm,
    PatientLookup,
)
from dental_admin.schemas.cancellation import CancellationState
from dental_admin.schemas.medical_history import MedicalHistoryForm
from dental_admin.services.appointment_service import (
    AppointmentService,
    MutationOutcome,
    MutationResult,
)
from dental_admin.services.booking_service import BookingResult, BookingService
from dental_admin.services.cancellation_service import (
    CancellationOutcome,
    CancellationResult,
    CancellationWorkflow,
)
from dental_admin.services.catalog_service import CatalogService
from dental_admin.services.medical_history_service import HistoryResult, MedicalHistoryService
from dental_admin.services.reconciler import AppointmentReconciler

logger = structlog.get_logger(__name__)


class AppointmentsController:
    """
    Action boundary of the appointments page.

    Each action resolves the appointment from the page cache, runs the
    matching workflow and leaves exactly one notice behind.
    """

    def __init__(
        self,
        reconciler: AppointmentReconciler,
        mutations: AppointmentService,
        cancellation: CancellationWorkflow,
        booking: BookingService,
        histories: MedicalHistoryService,
        catalogs: CatalogService,
    ):
        """Initialize controller with the page collaborators."""
        self.reconciler = reconciler
        self.mutations = mutations
        self.cancellation = cancellation
        self.booking = booking
        self.histories = histories
        self.catalogs = catalogs
        self.selected: Appointment | None = None
        self.mounted = False

    async def mount(self) -> AppointmentPage:
        """Load summary, first page, catalogs, record set and reason catalog."""
        await self.reconciler.refresh_summary()
        page = await self.reconciler.fetch_page(1, self.reconciler.limit, None)
        await self.catalogs.load()
        await self.histories.load_done()
        await self.cancellation.load_reasons()
        self.mounted = True
        logger.info("appointments_page_mounted", total=page.total)
        return page

    async def ensure_mounted(self) -> None:
        """Mount on first use."""
        if not self.mounted:
            await self.mount()

    def get(self, appointment_id: int) -> Appointment:
        """
        Cached appointment of the current page.

        Raises:
            NotFoundException: If it is not displayed
        """
        appointment = self.reconciler.find(appointment_id)
        if appointment is None:
            raise NotFoundException(f"Appointment {appointment_id} is not on the current page")
        return appointment

    async def page(
        self,
        page: int | None = None,
        limit: int | None = None,
        status_filter: AppointmentStatus | None = None,
        search: str = "",
    ) -> AppointmentPage:
        """
        Current page state after applying navigation changes.

        A new filter or page size goes back to page 1; a search only
        narrows the rows already loaded.
        """
        await self.ensure_mounted()
        if status_filter != self.reconciler.status_filter:
            snapshot = await self.reconciler.set_filter(status_filter)
        elif limit is not None and limit != self.reconciler.limit:
            snapshot = await self.reconciler.set_limit(limit)
        elif page is not None and page != self.reconciler.page:
            snapshot = await self.reconciler.go_to_page(page)
        else:
            snapshot = self.reconciler.snapshot()

        if search.strip():
            snapshot = snapshot.model_copy(update={"appointments": self.reconciler.search(search)})
        return snapshot

    async def summary(self) -> AppointmentSummary:
        """Refetched status counters."""
        return await self.reconciler.refresh_summary()

    def controls(self, appointment_id: int) -> AppointmentControls:
        """Open the edit dialog of one appointment."""
        appointment = self.get(appointment_id)
        self.selected = appointment
        return AppointmentControls(
            appointment_id=appointment.id,
            frozen=appointment.is_frozen,
            controls=self.mutations.edit_controls(appointment),
            status_options=status_options(appointment.status),
            hint=transition_hint(appointment.status),
            form=self.mutations.edit_form(appointment),
            can_create_history=self.histories.can_create(appointment),
        )

    async def change_status(
        self, appointment_id: int, new_status: AppointmentStatus
    ) -> MutationResult:
        """Status selector of the table row."""
        appointment = self.get(appointment_id)
        return await self.mutations.submit_status_change(
            appointment.id, new_status, appointment.status, base=appointment
        )

    async def save_edit(self, appointment_id: int, edit: AppointmentEdit) -> MutationResult:
        """Save button of the edit dialog; the dialog closes on success."""
        appointment = self.get(appointment_id)
        result = await self.mutations.submit_field_edit(appointment, edit)
        if result.outcome == MutationOutcome.UPDATED:
            self.selected = None
        return result

    def open_cancellation(self, appointment_id: int) -> CancellationState:
        """Open the reason capture for one displayed appointment."""
        appointment = self.get(appointment_id)
        self.cancellation.open(appointment.id, appointment.status)
        return self.cancellation.state()

    async def confirm_cancellation(self, reason: str, notes: str = "") -> CancellationResult:
        """Submit the reason capture form."""
        self.cancellation.select_reason(reason)
        self.cancellation.set_notes(notes)
        base = None
        if self.cancellation.target is not None:
            base = self.reconciler.find(self.cancellation.target.appointment_id)
        result = await self.cancellation.confirm(base)
        if result.outcome in (CancellationOutcome.CANCELLED, CancellationOutcome.ALREADY_CANCELLED):
            self.selected = None
        return result

    def close_cancellation(self) -> CancellationState:
        """Discard the reason capture form."""
        self.cancellation.close()
        return self.cancellation.state()

    async def lookup_patient(self, document_number: str) -> PatientLookup:
        """Document number lookup of the booking form."""
        return await self.booking.lookup_patient(document_number)

    async def create_booking(self, form: BookingForm) -> BookingResult:
        """Submit the booking form, autofilling the end time when it is empty."""
        if not form.end_time.strip():
            form = self.booking.autofill_end_time(form)
        return await self.booking.create_booking(form)

    async def create_history(
        self, appointment_id: int, form: MedicalHistoryForm
    ) -> HistoryResult:
        """Create the clinical record of a completed appointment."""
        appointment = self.get(appointment_id)
        return await self.histories.create(appointment, form)
