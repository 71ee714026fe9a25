"""BFF responses of operator actions."""

from decimal import Decimal

from pydantic import BaseModel, Field

from dental_admin.schemas.appointments import Appointment
from dental_admin.schemas.cancellation import CancellationState
from dental_admin.schemas.medical_history import MedicalHistoryRecord
from dental_admin.schemas.notices import Notice
from dental_admin.schemas.payments import Payment


class ActionResponse(BaseModel):
    """Outcome of one action and the notices it left behind."""

    outcome: str
    message: str = ""
    field: str | None = None
    appointment: Appointment | None = None
    record: MedicalHistoryRecord | None = None
    cancellation: CancellationState | None = None
    notices: list[Notice] = Field(default_factory=list)


class PaymentListResponse(BaseModel):
    """Payments listing with the total of paid amounts."""

    payments: list[Payment]
    total_paid: Decimal
