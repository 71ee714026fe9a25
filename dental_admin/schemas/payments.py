"""Payment schemas."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

from dental_admin.schemas.appointments import PersonRef, ServiceRef


class PaymentMethod(str, Enum):
    """Payment method enumeration."""

    PENDING = "pending"
    CASH = "cash"
    NEQUI = "nequi"
    LOYALTY = "loyalty"


# Methods settled through an external system that issues a reference code
TRACEABLE_METHODS = frozenset({PaymentMethod.NEQUI})


class PaymentStatus(str, Enum):
    """Status of a recorded payment."""

    PAID = "paid"
    PENDING = "pending"
    REFUNDED = "refunded"


class BalanceStatus(str, Enum):
    """Settlement status of one appointment."""

    PAID = "PAID"
    PARTIAL = "PARTIAL"
    PENDING = "PENDING"


class PaymentCreate(BaseModel):
    """Body of ``POST /payments``."""

    appointment_id: int
    amount: Decimal = Field(..., ge=0)
    method: PaymentMethod
    reference: str | None = None
    notes: str | None = None

    @field_serializer("amount")
    def serialize_amount(self, amount: Decimal) -> int | float:
        """Send amounts as JSON numbers."""
        return int(amount) if amount == amount.to_integral_value() else float(amount)

    @model_validator(mode="after")
    def validate_reference(self) -> "PaymentCreate":
        """Traceable methods need the reference code of the transaction."""
        if self.method in TRACEABLE_METHODS and not (self.reference and self.reference.strip()):
            raise ValueError(f"reference is required for {self.method.value} payments")
        return self

    def to_body(self) -> dict:
        """JSON body without unset optional fields."""
        return self.model_dump(mode="json", exclude_none=True)


class Payment(BaseModel):
    """Recorded payment."""

    id: int
    appointment_id: int | None = None
    amount: Decimal = Decimal("0")
    method: str | None = Field(default=None, alias="payment_method")
    reference: str | None = None
    notes: str | None = None
    status: PaymentStatus = PaymentStatus.PENDING
    payment_date: datetime | None = None
    created_at: datetime | None = None
    patient: PersonRef | None = None
    service: ServiceRef | None = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def accept_method_key(cls, values: dict) -> dict:
        """The remote API names the column either ``method`` or ``payment_method``."""
        if isinstance(values, dict) and "payment_method" not in values and "method" in values:
            values = {**values, "payment_method": values["method"]}
        return values

    @property
    def effective_date(self) -> datetime | None:
        """Payment date, falling back to the creation date."""
        return self.payment_date or self.created_at


class Balance(BaseModel):
    """Response of ``GET /appointments/{id}/balance``."""

    total_cost: Decimal
    total_paid: Decimal
    pending_balance: Decimal
    status: BalanceStatus
