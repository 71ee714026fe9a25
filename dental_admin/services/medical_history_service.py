"""Clinical records attached to completed appointments."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import tzinfo
from enum import Enum

import structlog
from pydantic import ValidationError

from dental_admin.config import settings
from dental_admin.core.api_client import ApiClient
from dental_admin.core.exceptions import (
    AppException,
    SessionExpiredException,
    exception_from_response,
    extract_error_message,
    raise_for_response,
)
from dental_admin.core.timeutils import parse_local_input
from dental_admin.schemas.appointments import Appointment, AppointmentStatus
from dental_admin.schemas.medical_history import MedicalHistoryForm, MedicalHistoryRecord
from dental_admin.services.notification_service import NotificationService

logger = structlog.get_logger(__name__)

REQUIRED_FIELDS_NOTICE = "Diagnóstico y tratamiento son obligatorios"
NOT_ALLOWED_NOTICE = "Solo las citas completadas sin historia clínica admiten una nueva"
INVALID_DATA_NOTICE = "Datos inválidos"
INVALID_DATE_NOTICE = "Fecha de próxima cita no válida"
CREATED_NOTICE = "Historia clínica creada correctamente"
CREATE_FAILED_NOTICE = "Error al crear la historia clínica"


class HistoryOutcome(str, Enum):
    """Result of submitting the clinical record form."""

    CREATED = "created"
    INVALID = "invalid"
    FAILED = "failed"


@dataclass
class HistoryResult:
    """Outcome plus the created record, when the server returned it."""

    outcome: HistoryOutcome
    record: MedicalHistoryRecord | None = None
    message: str = ""


class MedicalHistoryService:
    """
    Create and list medical history records.

    ``done`` holds the ids of appointments that already have a record;
    at most one record exists per appointment.
    """

    def __init__(
        self,
        api: ApiClient,
        notifications: NotificationService,
        tz: tzinfo | None = None,
    ):
        """Initialize service with an empty done set."""
        self.api = api
        self.notifications = notifications
        self.tz = tz or settings.tzinfo
        self.done: set[int] = set()
        self.saving = False

    async def list_records(self) -> list[MedicalHistoryRecord]:
        """Fetch every record; failures yield an empty list."""
        try:
            response = await self.api.get("/medical-history")
            raise_for_response(response)
            data = response.json()
            if not isinstance(data, list):
                return []
            return [MedicalHistoryRecord.model_validate(item) for item in data]
        except SessionExpiredException:
            raise
        except (AppException, ValidationError, ValueError) as e:
            logger.warning("medical_history_fetch_failed", error=str(e))
            return []

    async def load_done(self) -> set[int]:
        """Rebuild the set of appointment ids that have a record."""
        self.done = {record.appointment_id for record in await self.list_records()}
        return self.done

    def can_create(self, appointment: Appointment) -> bool:
        """Only completed appointments without a record accept a new one."""
        return (
            appointment.status == AppointmentStatus.COMPLETED
            and appointment.id not in self.done
        )

    def build_body(self, appointment_id: int, form: MedicalHistoryForm) -> dict:
        """
        Request body with optional fields only when filled in.

        Raises:
            ValueError: If the next appointment date is not a valid local input
        """
        body: dict = {
            "appointment_id": appointment_id,
            "diagnosis": form.diagnosis.strip(),
            "treatment": form.treatment.strip(),
        }
        if form.doctor_notes.strip():
            body["doctor_notes"] = form.doctor_notes.strip()
        if form.attachments.strip():
            body["attachments"] = form.attachments.strip()
        if form.next_appointment_date.strip():
            body["next_appointment_date"] = parse_local_input(
                form.next_appointment_date, self.tz
            ).isoformat()
        return body

    async def create(self, appointment: Appointment, form: MedicalHistoryForm) -> HistoryResult:
        """
        Create the record of a completed appointment.

        Args:
            appointment: Owning appointment
            form: Values typed by the operator

        Returns:
            ``CREATED`` with the record, or ``INVALID``/``FAILED`` with the
            message already shown as a notice
        """
        if not self.can_create(appointment):
            self.notifications.error(NOT_ALLOWED_NOTICE)
            return HistoryResult(HistoryOutcome.INVALID, message=NOT_ALLOWED_NOTICE)

        if not form.diagnosis.strip() or not form.treatment.strip():
            self.notifications.error(REQUIRED_FIELDS_NOTICE)
            return HistoryResult(HistoryOutcome.INVALID, message=REQUIRED_FIELDS_NOTICE)

        try:
            body = self.build_body(appointment.id, form)
        except ValueError:
            self.notifications.error(INVALID_DATE_NOTICE)
            return HistoryResult(HistoryOutcome.INVALID, message=INVALID_DATE_NOTICE)

        self.saving = True
        try:
            response = await self.api.post("/medical-history", json=body)
            if response.status_code == 400:
                message = extract_error_message(response) or INVALID_DATA_NOTICE
                self.notifications.error(message)
                return HistoryResult(HistoryOutcome.INVALID, message=message)
            if not response.is_success:
                raise exception_from_response(response)

            try:
                record = MedicalHistoryRecord.model_validate(response.json())
            except ValueError:
                record = None

            self.done.add(appointment.id)
            logger.info("medical_history_created", appointment_id=appointment.id)
            self.notifications.success(CREATED_NOTICE)
            return HistoryResult(HistoryOutcome.CREATED, record)
        except SessionExpiredException:
            self.notifications.error(CREATE_FAILED_NOTICE)
            raise
        except AppException as e:
            logger.warning(
                "medical_history_create_failed",
                appointment_id=appointment.id,
                error=str(e),
            )
            self.notifications.error(CREATE_FAILED_NOTICE)
            return HistoryResult(HistoryOutcome.FAILED, message=CREATE_FAILED_NOTICE)
        finally:
            self.saving = False

    async def download_pdf(self, patient_id: int) -> bytes:
        """
        Fetch the clinical history of a patient as a PDF document.

        Raises:
            AppException: If the server cannot render it
        """
        response = await self.api.get(f"/patients/{patient_id}/medical-history/pdf")
        raise_for_response(response)
        return response.content


def search_records(
    records: Iterable[MedicalHistoryRecord], query: str
) -> list[MedicalHistoryRecord]:
    """Filter records by patient name or document, diagnosis or specialist name."""
    q = query.strip().lower()
    if not q:
        return list(records)

    result = []
    for record in records:
        patient = record.appointment.patient if record.appointment else None
        specialist = record.appointment.specialist if record.appointment else None
        if (
            (patient is not None and q in patient.full_name.lower())
            or (patient is not None and q in (patient.document_number or ""))
            or q in record.diagnosis.lower()
            or (specialist is not None and q in specialist.full_name.lower())
        ):
            result.append(record)
    return result
