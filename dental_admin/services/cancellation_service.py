"""Cancellation workflow: reason capture and submission."""

from dataclasses import dataclass
from enum import Enum

import structlog
from pydantic import ValidationError

from dental_admin.core.api_client import ApiClient
from dental_admin.core.cancellation_reasons import fallback_reasons
from dental_admin.core.exceptions import (
    AppException,
    SessionExpiredException,
    TransitionNotAllowedException,
    exception_from_response,
    extract_error_message,
)
from dental_admin.core.transitions import can_transition
from dental_admin.schemas.appointments import Appointment, AppointmentPatch, AppointmentStatus
from dental_admin.schemas.cancellation import (
    CancellationForm,
    CancellationReason,
    CancellationState,
    CancellationTarget,
    CatalogSource,
)
from dental_admin.services.notification_service import NotificationService
from dental_admin.services.reconciler import AppointmentReconciler

logger = structlog.get_logger(__name__)

REASON_REQUIRED = "Debes seleccionar un motivo de cancelación"
REASON_UNKNOWN = "Motivo de cancelación no válido"
ALREADY_CANCELLED_NOTICE = "Esta cita ya se encuentra cancelada"
SERVER_ERROR_NOTICE = "Error interno del servidor"
CANCEL_FAILED_NOTICE = "Error al cancelar la cita"
CANCELLED_NOTICE = "Cita cancelada correctamente"

_ALREADY_CANCELLED_MARKERS = (
    "ya está cancelada",
    "ya esta cancelada",
    "ya se encuentra cancelada",
    "already cancelled",
    "already canceled",
)


def is_already_cancelled_message(message: str) -> bool:
    """Whether a 400 message says the appointment was cancelled before."""
    lowered = message.lower()
    return any(marker in lowered for marker in _ALREADY_CANCELLED_MARKERS)


class CancellationOutcome(str, Enum):
    """Result of confirming the cancellation form."""

    CANCELLED = "cancelled"
    ALREADY_CANCELLED = "already_cancelled"
    INVALID = "invalid"
    FAILED = "failed"
    NOT_OPEN = "not_open"


@dataclass
class CancellationResult:
    """Outcome plus the appointment as the server now holds it."""

    outcome: CancellationOutcome
    appointment: Appointment | None = None


class CancellationWorkflow:
    """
    Capture a mandatory reason before an appointment is cancelled.

    The reason catalog is loaded once from the server and replaced by the
    hardcoded table when that fails; the workflow behaves the same with
    either.
    """

    def __init__(
        self,
        api: ApiClient,
        reconciler: AppointmentReconciler,
        notifications: NotificationService,
    ):
        """Initialize a closed workflow with no catalog loaded."""
        self.api = api
        self.reconciler = reconciler
        self.notifications = notifications
        self.reasons: list[CancellationReason] = []
        self.catalog_source: CatalogSource | None = None
        self.target: CancellationTarget | None = None
        self.form = CancellationForm()
        self.error = ""
        self.saving = False

    @property
    def is_open(self) -> bool:
        """True while the capture form is shown."""
        return self.target is not None

    async def load_reasons(self, force: bool = False) -> list[CancellationReason]:
        """
        Load the reason catalog.

        Any failure (transport, status, body) substitutes the fallback
        table. Subsequent calls reuse the loaded catalog unless ``force``.
        """
        if self.reasons and not force:
            return self.reasons

        try:
            response = await self.api.get("/appointments/cancellation-reasons")
            if not response.is_success:
                raise exception_from_response(response)
            reasons = [CancellationReason.model_validate(item) for item in response.json()]
            if not reasons:
                raise ValueError("empty cancellation reason catalog")
            self.reasons = reasons
            self.catalog_source = CatalogSource.SERVER
        except SessionExpiredException:
            raise
        except (AppException, ValidationError, ValueError, TypeError) as e:
            logger.warning("cancellation_reasons_fallback", error=str(e))
            self.reasons = fallback_reasons()
            self.catalog_source = CatalogSource.FALLBACK

        return self.reasons

    def open(self, appointment_id: int, current_status: AppointmentStatus) -> None:
        """
        Open the form for one appointment.

        Raises:
            TransitionNotAllowedException: If the appointment cannot be cancelled
        """
        if not can_transition(current_status, AppointmentStatus.CANCELLED):
            raise TransitionNotAllowedException(
                AppointmentStatus(current_status).value, AppointmentStatus.CANCELLED.value
            )
        self.target = CancellationTarget(
            appointment_id=appointment_id, current_status=current_status
        )
        self.form = CancellationForm()
        self.error = ""

    def select_reason(self, code: str) -> None:
        """Choose a reason code; clears the field error."""
        self.form = self.form.model_copy(update={"reason": code})
        self.error = ""

    def set_notes(self, notes: str) -> None:
        """Edit the optional free-text notes."""
        self.form = self.form.model_copy(update={"notes": notes})

    def close(self) -> None:
        """Discard the form."""
        self.target = None
        self.form = CancellationForm()
        self.error = ""

    def reason_description(self) -> str:
        """Description of the selected reason, empty for fallback entries."""
        return next(
            (r.description for r in self.reasons if r.code == self.form.reason),
            "",
        )

    def _validate_form(self) -> str | None:
        reason = self.form.reason.strip()
        if not reason:
            return REASON_REQUIRED
        if reason not in {r.code for r in self.reasons}:
            return REASON_UNKNOWN
        return None

    async def confirm(self, base: Appointment | None = None) -> CancellationResult:
        """
        Submit the cancellation.

        Empty or unknown reasons are rejected locally without a request.
        A 400 saying the appointment is already cancelled closes the form
        with an informational notice and reloads the page and counters so
        the cached row shows the server state; other 400s become the field error.
        Server and transport failures keep the form open for a retry.

        Args:
            base: Cached copy of the appointment, when it is not on the page

        Returns:
            The outcome and, on success, the cancelled appointment
        """
        if self.target is None:
            return CancellationResult(CancellationOutcome.NOT_OPEN)

        if not self.reasons:
            await self.load_reasons()

        error = self._validate_form()
        if error:
            self.error = error
            return CancellationResult(CancellationOutcome.INVALID)

        appointment_id = self.target.appointment_id
        reason = self.form.reason.strip()
        notes = self.form.notes.strip()
        changes: dict = {
            "status": AppointmentStatus.CANCELLED,
            "cancellation_reason": reason,
            "cancellation_notes": notes or None,
        }
        patch_fields = {"status": AppointmentStatus.CANCELLED, "cancellation_reason": reason}
        if notes:
            patch_fields["cancellation_notes"] = notes
        patch = AppointmentPatch(**patch_fields)

        self.saving = True
        try:
            response = await self.api.put(
                f"/admin/appointments/{appointment_id}", json=patch.to_body()
            )

            if response.status_code == 400:
                message = extract_error_message(response)
                if is_already_cancelled_message(message):
                    logger.info("appointment_already_cancelled", appointment_id=appointment_id)
                    self.notifications.info(ALREADY_CANCELLED_NOTICE)
                    self.close()
                    await self.reconciler.reload()
                    await self.reconciler.refresh_summary()
                    return CancellationResult(CancellationOutcome.ALREADY_CANCELLED)
                self.error = message or REASON_REQUIRED
                return CancellationResult(CancellationOutcome.INVALID)

            if response.status_code >= 500:
                logger.error(
                    "appointment_cancel_server_error",
                    appointment_id=appointment_id,
                    status_code=response.status_code,
                )
                self.notifications.error(SERVER_ERROR_NOTICE)
                return CancellationResult(CancellationOutcome.FAILED)

            if not response.is_success:
                raise exception_from_response(response)

            cancelled = self.reconciler.confirmed(appointment_id, response, changes, base)
            if cancelled is not None:
                self.reconciler.apply_update(cancelled)
            await self.reconciler.refresh_summary()

            logger.info(
                "appointment_cancelled",
                appointment_id=appointment_id,
                reason=reason,
            )
            self.notifications.success(CANCELLED_NOTICE)
            self.close()
            return CancellationResult(CancellationOutcome.CANCELLED, cancelled)
        except SessionExpiredException:
            self.notifications.error(CANCEL_FAILED_NOTICE)
            raise
        except AppException as e:
            logger.warning("appointment_cancel_failed", appointment_id=appointment_id, error=str(e))
            self.notifications.error(CANCEL_FAILED_NOTICE)
            return CancellationResult(CancellationOutcome.FAILED)
        finally:
            self.saving = False

    def state(self) -> CancellationState:
        """Snapshot for the views."""
        return CancellationState(
            open=self.is_open,
            target=self.target,
            form=self.form,
            error=self.error,
            saving=self.saving,
            reasons=list(self.reasons),
            catalog_source=self.catalog_source,
            reason_description=self.reason_description(),
        )
