"""New appointment booking with patient lookup by document number."""

from dataclasses import dataclass
from datetime import tzinfo
from enum import Enum

import structlog
from pydantic import ValidationError

from dental_admin.config import settings
from dental_admin.core.api_client import ApiClient
from dental_admin.core.exceptions import (
    AppException,
    ConflictException,
    SessionExpiredException,
    exception_from_response,
    extract_error_message,
)
from dental_admin.core.timeutils import add_minutes_local, parse_local_input
from dental_admin.schemas.appointments import (
    Appointment,
    BookingCreate,
    BookingForm,
    PatientInput,
    PatientLookup,
    PatientLookupStatus,
)
from dental_admin.services.catalog_service import CatalogService
from dental_admin.services.notification_service import NotificationService
from dental_admin.services.reconciler import AppointmentReconciler

logger = structlog.get_logger(__name__)

REQUIRED_FIELDS_NOTICE = "Completa todos los campos obligatorios"
INVALID_TIMES_NOTICE = "La hora de fin debe ser posterior a la de inicio"
INVALID_DATE_NOTICE = "Fecha u hora inválida"
SLOT_TAKEN_NOTICE = "El horario seleccionado ya no está disponible"
BOOKING_CREATED_NOTICE = "Cita creada correctamente"
BOOKING_FAILED_NOTICE = "Error al crear la cita"


class BookingOutcome(str, Enum):
    """Result of submitting the booking form."""

    CREATED = "created"
    INVALID = "invalid"
    CONFLICT = "conflict"
    FAILED = "failed"


@dataclass
class BookingResult:
    """Outcome and, when the server returned it, the new appointment."""

    outcome: BookingOutcome
    appointment: Appointment | None = None
    message: str = ""


def compute_end_time(start_local: str, duration_minutes: int | None) -> str | None:
    """
    Autofill the end of an appointment from the service duration.

    Args:
        start_local: Start as a naive local input value
        duration_minutes: Duration of the selected service

    Returns:
        The end as a naive local input value, or None when it cannot be derived
    """
    if not start_local or not duration_minutes:
        return None
    try:
        return add_minutes_local(start_local, duration_minutes)
    except ValueError:
        return None


class BookingService:
    """Create appointments from the booking form."""

    def __init__(
        self,
        api: ApiClient,
        reconciler: AppointmentReconciler,
        notifications: NotificationService,
        catalogs: CatalogService,
        tz: tzinfo | None = None,
    ):
        """Initialize service with its collaborators."""
        self.api = api
        self.reconciler = reconciler
        self.notifications = notifications
        self.catalogs = catalogs
        self.tz = tz or settings.tzinfo
        self.saving = False

    async def lookup_patient(self, document_number: str) -> PatientLookup:
        """
        Look a patient up by document number.

        A known patient fills and locks the patient fields; anything else
        (404, transport error, malformed body) leaves them empty and editable.
        """
        document_number = document_number.strip()
        try:
            response = await self.api.get(f"/patients/document/{document_number}")
            if response.is_success:
                data = response.json()
                return PatientLookup(
                    status=PatientLookupStatus.FOUND,
                    locked=True,
                    document_number=document_number,
                    first_name=data.get("first_name") or "",
                    last_name=data.get("last_name") or "",
                    phone=data.get("phone") or "",
                    email=data.get("email") or "",
                )
        except SessionExpiredException:
            raise
        except (AppException, ValueError, AttributeError) as e:
            logger.info("patient_lookup_failed", error=str(e))

        return PatientLookup(status=PatientLookupStatus.NEW, document_number=document_number)

    def autofill_end_time(self, form: BookingForm) -> BookingForm:
        """Recompute the end time after the start or the service changed."""
        service = self.catalogs.find_service(form.service_id)
        end = compute_end_time(form.start_time, service.duration_minutes if service else None)
        if end is None:
            return form
        return form.model_copy(update={"end_time": end})

    def build_booking(self, form: BookingForm) -> BookingCreate | None:
        """Validate the form and build the request body; None if a required field is missing."""
        required = (
            form.document_number,
            form.first_name,
            form.last_name,
            form.phone,
            form.start_time,
            form.end_time,
        )
        if not all(value.strip() for value in required):
            return None
        if form.specialist_id is None or form.service_id is None:
            return None

        email = form.email.strip()
        notes = form.notes.strip()
        return BookingCreate(
            patient=PatientInput(
                document_number=form.document_number.strip(),
                first_name=form.first_name.strip(),
                last_name=form.last_name.strip(),
                phone=form.phone.strip(),
                email=email or None,
            ),
            specialist_id=form.specialist_id,
            service_id=form.service_id,
            start_time=parse_local_input(form.start_time, self.tz),
            end_time=parse_local_input(form.end_time, self.tz),
            notes=notes or None,
        )

    async def create_booking(self, form: BookingForm) -> BookingResult:
        """
        Submit the booking form.

        Missing required fields and unparseable or inverted times are rejected
        without a request. A 400 from the server is shown with its own message.
        On success the table goes back to page 1 and the summary is refetched.
        """
        try:
            booking = self.build_booking(form)
        except ValidationError:
            self.notifications.error(INVALID_TIMES_NOTICE)
            return BookingResult(BookingOutcome.INVALID, message=INVALID_TIMES_NOTICE)
        except ValueError:
            self.notifications.error(INVALID_DATE_NOTICE)
            return BookingResult(BookingOutcome.INVALID, message=INVALID_DATE_NOTICE)
        if booking is None:
            self.notifications.error(REQUIRED_FIELDS_NOTICE)
            return BookingResult(BookingOutcome.INVALID, message=REQUIRED_FIELDS_NOTICE)

        self.saving = True
        try:
            response = await self.api.post(
                "/appointments",
                json=booking.model_dump(mode="json", exclude_none=True),
            )
            if response.status_code == 400:
                message = extract_error_message(response) or BOOKING_FAILED_NOTICE
                logger.info("appointment_booking_rejected", message=message)
                self.notifications.error(message)
                return BookingResult(BookingOutcome.INVALID, message=message)
            if not response.is_success:
                raise exception_from_response(response)

            try:
                created = Appointment.model_validate(response.json())
            except ValueError:
                created = None

            logger.info(
                "appointment_booked",
                appointment_id=created.id if created else None,
                specialist_id=booking.specialist_id,
                service_id=booking.service_id,
            )
            reconciler = self.reconciler
            await reconciler.fetch_page(1, reconciler.limit, reconciler.status_filter)
            await reconciler.refresh_summary()
            self.notifications.success(BOOKING_CREATED_NOTICE)
            return BookingResult(BookingOutcome.CREATED, created)
        except SessionExpiredException:
            self.notifications.error(BOOKING_FAILED_NOTICE)
            raise
        except ConflictException as e:
            message = e.message if e.message != "Conflict" else SLOT_TAKEN_NOTICE
            self.notifications.error(message)
            return BookingResult(BookingOutcome.CONFLICT, message=message)
        except AppException as e:
            logger.warning("appointment_booking_failed", error=str(e))
            self.notifications.error(BOOKING_FAILED_NOTICE)
            return BookingResult(BookingOutcome.FAILED, message=BOOKING_FAILED_NOTICE)
        finally:
            self.saving = False
