"""Cancellation workflow schemas."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from dental_admin.schemas.appointments import AppointmentStatus


class CancellationReason(BaseModel):
    """Entry of the cancellation reason catalog."""

    code: str
    label: str
    description: str = ""

    model_config = ConfigDict(extra="ignore")


class CatalogSource(str, Enum):
    """Where the loaded reason catalog came from."""

    SERVER = "server"
    FALLBACK = "fallback"


class CancellationForm(BaseModel):
    """Values of the cancellation capture form."""

    reason: str = ""
    notes: str = ""


class CancellationTarget(BaseModel):
    """Appointment the workflow was opened for."""

    appointment_id: int
    current_status: AppointmentStatus


class CancellationState(BaseModel):
    """Snapshot of the workflow for the views."""

    open: bool
    target: CancellationTarget | None = None
    form: CancellationForm = Field(default_factory=CancellationForm)
    error: str = ""
    saving: bool = False
    reasons: list[CancellationReason] = Field(default_factory=list)
    catalog_source: CatalogSource | None = None
    reason_description: str = ""


class CancellationConfirmRequest(BaseModel):
    """BFF request carrying the captured form."""

    reason: str = ""
    notes: str = ""
