"""Medical history schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from dental_admin.schemas.appointments import PersonRef


class HistoryAppointmentRef(BaseModel):
    """Appointment block embedded in a medical history record."""

    patient: PersonRef | None = None
    specialist: PersonRef | None = None

    model_config = ConfigDict(extra="ignore")


class MedicalHistoryRecord(BaseModel):
    """Clinical record attached to one completed appointment."""

    id: int
    appointment_id: int
    diagnosis: str
    treatment: str
    doctor_notes: str | None = None
    attachments: str | None = None
    next_appointment_date: datetime | None = None
    created_at: datetime | None = None
    appointment: HistoryAppointmentRef | None = None

    model_config = ConfigDict(extra="ignore")


class MedicalHistoryForm(BaseModel):
    """Values of the clinical record form."""

    diagnosis: str = ""
    treatment: str = ""
    doctor_notes: str = ""
    attachments: str = ""
    next_appointment_date: str = ""


class MedicalHistoryCreateRequest(MedicalHistoryForm):
    """BFF request to create a record for an appointment."""

    appointment_id: int
