"""Dashboard view schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from dental_admin.schemas.appointments import Appointment, AppointmentSummary
from dental_admin.schemas.payments import Payment


class MonthlyAmount(BaseModel):
    """Income of one calendar month."""

    month: str  # YYYY-MM
    amount: Decimal = Decimal("0")


class MonthlyCount(BaseModel):
    """Number of events in one calendar month."""

    month: str
    count: int = 0


class LabelCount(BaseModel):
    """Count keyed by a display label."""

    label: str
    count: int


class ReasonCount(BaseModel):
    """Cancellations for one reason code."""

    code: str
    label: str
    count: int


class DashboardSnapshot(BaseModel):
    """Every aggregate shown on the dashboard, recomputed on each refresh."""

    total_patients: int = 0
    appointments_this_month: int = 0
    paid_income: Decimal = Decimal("0")
    pending_appointments: int = 0
    today: list[Appointment] = Field(default_factory=list)
    monthly_income: list[MonthlyAmount] = Field(default_factory=list)
    appointments_per_service: list[LabelCount] = Field(default_factory=list)
    cancellations_by_month: list[MonthlyCount] = Field(default_factory=list)
    cancellations_by_reason: list[ReasonCount] = Field(default_factory=list)
    top_patients: list[LabelCount] = Field(default_factory=list)
    recent_payments: list[Payment] = Field(default_factory=list)
    status_counts: AppointmentSummary = Field(default_factory=AppointmentSummary)
    generated_at: datetime | None = None
