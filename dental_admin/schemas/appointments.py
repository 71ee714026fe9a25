"""Appointment schemas for remote payloads and local view state."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PersonRef(BaseModel):
    """Embedded patient or specialist as returned by the remote API."""

    id: int | None = None
    first_name: str = ""
    last_name: str = ""
    document_number: str | None = None
    phone: str | None = None
    email: str | None = None

    model_config = ConfigDict(extra="ignore")

    @property
    def full_name(self) -> str:
        """First and last name, or an em dash when both are empty."""
        return f"{self.first_name} {self.last_name}".strip() or "—"


class ServiceRef(BaseModel):
    """Embedded service as returned by the remote API."""

    id: int | None = None
    name: str = ""
    price: Decimal | None = None
    duration_minutes: int | None = None
    is_active: bool = True

    model_config = ConfigDict(extra="ignore")


class SpecialistRef(PersonRef):
    """Embedded specialist."""

    specialty: str | None = None
    license_number: str | None = None
    is_active: bool = True


class Appointment(BaseModel):
    """Appointment as cached by the admin views."""

    id: int
    patient_id: int | None = None
    patient: PersonRef | None = None
    specialist_id: int | None = None
    specialist: SpecialistRef | None = None
    service_id: int | None = None
    service: ServiceRef | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    status: AppointmentStatus
    notes: str | None = None
    cancellation_reason: str | None = None
    cancellation_notes: str | None = None
    historical_price: Decimal = Decimal("0")
    modification_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(extra="ignore")

    @property
    def is_frozen(self) -> bool:
        """Terminal appointments accept no further changes."""
        return self.status in (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED)

    @property
    def patient_name(self) -> str:
        """Display name of the patient."""
        return self.patient.full_name if self.patient else "—"


class AppointmentPatch(BaseModel):
    """
    Partial update for ``PUT /admin/appointments/{id}``.

    A field is either absent (never assigned) or present with a value.
    ``to_body`` omits absent fields, so nothing is overwritten with an
    empty value by accident.
    """

    status: AppointmentStatus | None = None
    specialist_id: int | None = None
    service_id: int | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    cancellation_reason: str | None = None
    cancellation_notes: str | None = None

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def check_cancellation_fields(self) -> "AppointmentPatch":
        """A cancellation reason travels only with status=cancelled, and vice versa."""
        cancelling = self.status == AppointmentStatus.CANCELLED
        if cancelling and not self.cancellation_reason:
            raise ValueError("cancellation_reason is required when cancelling")
        if not cancelling and (
            self.cancellation_reason is not None or self.cancellation_notes is not None
        ):
            raise ValueError("cancellation fields are only valid with status=cancelled")
        return self

    @property
    def is_empty(self) -> bool:
        """True when no field was set."""
        return not self.model_fields_set

    def to_body(self) -> dict:
        """JSON body with absent fields omitted."""
        return self.model_dump(mode="json", exclude_unset=True)


class AppointmentEdit(BaseModel):
    """Values of the edit form; times are naive local ``YYYY-MM-DDTHH:MM`` strings."""

    specialist_id: int | None = None
    service_id: int | None = None
    start_time: str | None = None
    end_time: str | None = None
    status: AppointmentStatus | None = None


class EditControls(BaseModel):
    """Which edit controls are interactive for one appointment."""

    status: bool
    specialist: bool
    service: bool
    start_time: bool
    end_time: bool
    save: bool


class StatusOption(BaseModel):
    """One entry of a status selector."""

    status: AppointmentStatus
    label: str
    current: bool
    selectable: bool


class AppointmentSummary(BaseModel):
    """Counts of appointments by status, owned by the server."""

    total: int = 0
    pending: int = 0
    scheduled: int = 0
    completed: int = 0
    cancelled: int = 0


class PaginatedAppointments(BaseModel):
    """Response of ``GET /appointments/paginated``."""

    data: list[Appointment] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10
    total_pages: int = 1

    @model_validator(mode="before")
    @classmethod
    def null_data_as_empty(cls, values: dict) -> dict:
        """The remote API sends ``data: null`` for empty pages."""
        if isinstance(values, dict) and values.get("data") is None:
            values = {**values, "data": []}
        return values


class AppointmentPage(BaseModel):
    """State of the appointments table as shown to the operator."""

    appointments: list[Appointment]
    total: int
    page: int
    limit: int
    total_pages: int
    status_filter: AppointmentStatus | None = None
    paginated: bool = True
    loading: bool = False


class PatientInput(BaseModel):
    """Patient block of a booking request."""

    document_number: str
    first_name: str
    last_name: str
    phone: str
    email: str | None = None


class BookingCreate(BaseModel):
    """Body of ``POST /appointments``."""

    patient: PatientInput
    specialist_id: int
    service_id: int
    start_time: datetime
    end_time: datetime
    notes: str | None = None

    @model_validator(mode="after")
    def validate_end_time(self) -> "BookingCreate":
        """Validate end time is after start time."""
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        return self


class BookingForm(BaseModel):
    """Values of the new-appointment form, all as typed by the operator."""

    document_number: str = ""
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    email: str = ""
    specialist_id: int | None = None
    service_id: int | None = None
    start_time: str = ""
    end_time: str = ""
    notes: str = ""


class StatusChangeRequest(BaseModel):
    """BFF request to move an appointment to another status."""

    status: AppointmentStatus


class PatientLookupStatus(str, Enum):
    """Result of looking a patient up by document number."""

    FOUND = "found"
    NEW = "new"


class PatientLookup(BaseModel):
    """Patient block of the booking form after a lookup."""

    status: PatientLookupStatus
    locked: bool = False
    document_number: str
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    email: str = ""


class AppointmentControls(BaseModel):
    """Edit dialog state of one appointment."""

    appointment_id: int
    frozen: bool
    controls: EditControls
    status_options: list[StatusOption]
    hint: str | None = None
    form: AppointmentEdit
    can_create_history: bool = False
