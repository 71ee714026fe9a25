"""Appointment mutation service: the single path for status and field changes."""

from dataclasses import dataclass
from datetime import datetime, tzinfo
from enum import Enum
from typing import Any

import structlog

from dental_admin.config import settings
from dental_admin.core.api_client import ApiClient
from dental_admin.core.exceptions import (
    AppException,
    BadRequestException,
    ConflictException,
    FrozenAppointmentException,
    ServerErrorException,
    SessionExpiredException,
    TransitionNotAllowedException,
    ValidationException,
    exception_from_response,
)
from dental_admin.core.timeutils import format_local_input, parse_local_input, same_minute
from dental_admin.core.transitions import can_transition
from dental_admin.schemas.appointments import (
    Appointment,
    AppointmentEdit,
    AppointmentPatch,
    AppointmentStatus,
    EditControls,
)
from dental_admin.services.cancellation_service import CancellationWorkflow
from dental_admin.services.catalog_service import CatalogService
from dental_admin.services.notification_service import NotificationService
from dental_admin.services.payment_service import PaymentService
from dental_admin.services.reconciler import AppointmentReconciler

logger = structlog.get_logger(__name__)

STATUS_UPDATED_NOTICE = "Estado actualizado correctamente"
STATUS_UPDATE_FAILED_NOTICE = "Error al actualizar el estado"
CHANGES_SAVED_NOTICE = "Cambios guardados correctamente"
CHANGES_FAILED_NOTICE = "Error al guardar los cambios"
SERVER_ERROR_NOTICE = "Error interno del servidor"
INVALID_DATA_NOTICE = "Datos inválidos"
PENDING_PAYMENT_NOTICE = "Pago pendiente generado para la cita"
PENDING_PAYMENT_FAILED_NOTICE = "No se pudo generar el pago pendiente de la cita"


class MutationOutcome(str, Enum):
    """Result of a status change or field edit."""

    UPDATED = "updated"
    NO_OP = "no_op"
    REJECTED = "rejected"
    NEEDS_REASON = "needs_reason"
    INVALID = "invalid"
    FAILED = "failed"


@dataclass
class MutationResult:
    """Outcome, the confirmed appointment and an optional field message."""

    outcome: MutationOutcome
    appointment: Appointment | None = None
    message: str = ""
    field: str | None = None


class AppointmentService:
    """
    Submit appointment changes to the remote API.

    Every change is checked against the transition guard first, only
    fields that actually changed are sent, and the local cache is written
    only after the server confirmed the change.
    """

    def __init__(
        self,
        api: ApiClient,
        reconciler: AppointmentReconciler,
        cancellation: CancellationWorkflow,
        payments: PaymentService,
        notifications: NotificationService,
        catalogs: CatalogService | None = None,
        tz: tzinfo | None = None,
    ):
        """Initialize service with its collaborators."""
        self.api = api
        self.reconciler = reconciler
        self.cancellation = cancellation
        self.payments = payments
        self.notifications = notifications
        self.catalogs = catalogs
        self.tz = tz or settings.tzinfo
        self.saving = False

    async def submit_status_change(
        self,
        appointment_id: int,
        new_status: AppointmentStatus,
        current_status: AppointmentStatus,
        base: Appointment | None = None,
    ) -> MutationResult:
        """
        Move an appointment to another status.

        Args:
            appointment_id: Appointment ID
            new_status: Requested status
            current_status: Status the operator sees
            base: Cached copy, when the appointment is not on the page

        Returns:
            ``NO_OP`` for the current status, ``REJECTED`` for an illegal
            transition, ``NEEDS_REASON`` when the cancellation workflow was
            opened instead, otherwise the submission outcome
        """
        new_status = AppointmentStatus(new_status)
        current_status = AppointmentStatus(current_status)

        if new_status == current_status:
            return MutationResult(MutationOutcome.NO_OP, base)

        if not can_transition(current_status, new_status):
            logger.debug(
                "status_transition_rejected",
                appointment_id=appointment_id,
                current=current_status.value,
                target=new_status.value,
            )
            return MutationResult(MutationOutcome.REJECTED, base)

        if new_status == AppointmentStatus.CANCELLED:
            self.cancellation.open(appointment_id, current_status)
            return MutationResult(MutationOutcome.NEEDS_REASON, base)

        result = await self._submit(
            appointment_id,
            AppointmentPatch(status=new_status),
            {"status": new_status},
            base,
            STATUS_UPDATED_NOTICE,
            STATUS_UPDATE_FAILED_NOTICE,
        )
        if result.outcome == MutationOutcome.UPDATED:
            logger.info(
                "appointment_status_updated",
                appointment_id=appointment_id,
                old_status=current_status.value,
                new_status=new_status.value,
            )
            if new_status == AppointmentStatus.COMPLETED:
                await self._create_pending_payment(appointment_id)
        return result

    def edit_form(self, appointment: Appointment) -> AppointmentEdit:
        """Prefill the edit form, times as local input values."""
        return AppointmentEdit(
            specialist_id=appointment.specialist_id,
            service_id=appointment.service_id,
            start_time=format_local_input(appointment.start_time, self.tz),
            end_time=format_local_input(appointment.end_time, self.tz),
            status=appointment.status,
        )

    @staticmethod
    def edit_controls(appointment: Appointment) -> EditControls:
        """Every edit control is disabled once the appointment is frozen."""
        editable = not appointment.is_frozen
        return EditControls(
            status=editable,
            specialist=editable,
            service=editable,
            start_time=editable,
            end_time=editable,
            save=editable,
        )

    def build_patch(
        self, appointment: Appointment, edit: AppointmentEdit
    ) -> tuple[AppointmentPatch, dict[str, Any]]:
        """
        Compute the patch for an edit form.

        Returns:
            The patch and the typed changes to merge into the cache

        Raises:
            FrozenAppointmentException: If the appointment is terminal
            TransitionNotAllowedException: If the status change is illegal
            ValidationException: If a time input is invalid
        """
        if appointment.is_frozen:
            raise FrozenAppointmentException(appointment.id)

        changes: dict[str, Any] = {}

        if edit.status is not None and edit.status != appointment.status:
            if not can_transition(appointment.status, edit.status):
                raise TransitionNotAllowedException(appointment.status.value, edit.status.value)
            changes["status"] = edit.status

        if edit.specialist_id is not None and edit.specialist_id != appointment.specialist_id:
            changes["specialist_id"] = edit.specialist_id
        if edit.service_id is not None and edit.service_id != appointment.service_id:
            changes["service_id"] = edit.service_id

        start = self._parse_time(edit.start_time, "start_time")
        end = self._parse_time(edit.end_time, "end_time")
        if start is not None and not same_minute(start, appointment.start_time):
            changes["start_time"] = start
        if end is not None and not same_minute(end, appointment.end_time):
            changes["end_time"] = end

        effective_start = changes.get("start_time", appointment.start_time)
        effective_end = changes.get("end_time", appointment.end_time)
        if (
            ("start_time" in changes or "end_time" in changes)
            and effective_start is not None
            and effective_end is not None
            and effective_end <= effective_start
        ):
            raise ValidationException(
                "La hora de fin debe ser posterior a la de inicio", field="end_time"
            )

        return AppointmentPatch(**changes), changes

    def _parse_time(self, value: str | None, field: str) -> datetime | None:
        if not value or not value.strip():
            return None
        try:
            return parse_local_input(value, self.tz)
        except ValueError as e:
            raise ValidationException("Fecha y hora no válidas", field=field) from e

    async def submit_field_edit(
        self, appointment: Appointment, edit: AppointmentEdit
    ) -> MutationResult:
        """
        Save the edit form of one appointment.

        Only changed fields are transmitted. Frozen appointments and
        illegal status changes are rejected without a request; a change to
        ``cancelled`` opens the cancellation workflow instead of saving.
        """
        try:
            patch, changes = self.build_patch(appointment, edit)
        except (FrozenAppointmentException, TransitionNotAllowedException) as e:
            logger.debug(
                "appointment_edit_rejected", appointment_id=appointment.id, error=e.message
            )
            return MutationResult(MutationOutcome.REJECTED, appointment)
        except ValidationException as e:
            return MutationResult(MutationOutcome.INVALID, appointment, e.message, e.field)
        except ValueError:
            # status=cancelled without a reason
            self.cancellation.open(appointment.id, appointment.status)
            return MutationResult(MutationOutcome.NEEDS_REASON, appointment)

        if patch.is_empty:
            return MutationResult(MutationOutcome.NO_OP, appointment)

        changes.update(self._embedded_refs(changes))
        result = await self._submit(
            appointment.id,
            patch,
            changes,
            appointment,
            CHANGES_SAVED_NOTICE,
            CHANGES_FAILED_NOTICE,
        )
        if result.outcome == MutationOutcome.UPDATED:
            logger.info(
                "appointment_edited",
                appointment_id=appointment.id,
                fields=sorted(patch.model_fields_set),
            )
            if changes.get("status") == AppointmentStatus.COMPLETED:
                await self._create_pending_payment(appointment.id)
        return result

    def _embedded_refs(self, changes: dict[str, Any]) -> dict[str, Any]:
        if self.catalogs is None:
            return {}
        refs: dict[str, Any] = {}
        if "specialist_id" in changes:
            refs["specialist"] = self.catalogs.find_specialist(changes["specialist_id"])
        if "service_id" in changes:
            refs["service"] = self.catalogs.find_service(changes["service_id"])
        return refs

    async def _submit(
        self,
        appointment_id: int,
        patch: AppointmentPatch,
        changes: dict[str, Any],
        base: Appointment | None,
        success_notice: str,
        failure_notice: str,
    ) -> MutationResult:
        self.saving = True
        try:
            response = await self.api.put(
                f"/admin/appointments/{appointment_id}", json=patch.to_body()
            )
            if not response.is_success:
                raise exception_from_response(response)

            updated = self.reconciler.confirmed(appointment_id, response, changes, base)
            if updated is not None:
                self.reconciler.apply_update(updated)
            await self.reconciler.refresh_summary()

            self.notifications.success(success_notice)
            return MutationResult(MutationOutcome.UPDATED, updated)
        except SessionExpiredException:
            self.notifications.error(failure_notice)
            raise
        except (BadRequestException, ConflictException) as e:
            logger.info(
                "appointment_update_refused",
                appointment_id=appointment_id,
                status_code=e.status_code,
                error=e.message,
            )
            message = e.message or INVALID_DATA_NOTICE
            self.notifications.error(message)
            return MutationResult(MutationOutcome.INVALID, base, message)
        except ServerErrorException as e:
            logger.error(
                "appointment_update_server_error",
                appointment_id=appointment_id,
                status_code=e.status_code,
            )
            self.notifications.error(SERVER_ERROR_NOTICE)
            return MutationResult(MutationOutcome.FAILED, base)
        except AppException as e:
            logger.warning("appointment_update_failed", appointment_id=appointment_id, error=str(e))
            self.notifications.error(failure_notice)
            return MutationResult(MutationOutcome.FAILED, base)
        finally:
            self.saving = False

    async def _create_pending_payment(self, appointment_id: int) -> None:
        # Failure here never undoes the status change
        try:
            await self.payments.create_pending_for_completion(appointment_id)
        except SessionExpiredException:
            raise
        except AppException as e:
            logger.warning(
                "pending_payment_creation_failed",
                appointment_id=appointment_id,
                error=str(e),
            )
            self.notifications.warning(PENDING_PAYMENT_FAILED_NOTICE)
            return
        self.notifications.info(PENDING_PAYMENT_NOTICE)
