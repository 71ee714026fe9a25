"""Payment capture, balances and the payments listing."""

from collections.abc import Iterable
from decimal import Decimal

import httpx
import structlog

from dental_admin.core.api_client import ApiClient
from dental_admin.core.exceptions import (
    AppException,
    NetworkException,
    ServerErrorException,
    SessionExpiredException,
    ValidationException,
    raise_for_response,
)
from dental_admin.schemas.payments import (
    Balance,
    BalanceStatus,
    Payment,
    PaymentCreate,
    PaymentMethod,
    PaymentStatus,
)

logger = structlog.get_logger(__name__)

AUTO_PAYMENT_NOTES = "Pago pendiente - generado al completar cita"


class PaymentService:
    """Service for payments of appointments."""

    def __init__(self, api: ApiClient):
        """Initialize service with the API client."""
        self.api = api

    async def create_pending_for_completion(self, appointment_id: int) -> Payment | None:
        """
        Create the zero-amount pending payment of a completed appointment.

        Args:
            appointment_id: Appointment that just reached ``completed``

        Returns:
            The created payment, or None when the server sent no body

        Raises:
            AppException: If the server rejects the payment
        """
        data = PaymentCreate(
            appointment_id=appointment_id,
            amount=Decimal("0"),
            method=PaymentMethod.PENDING,
            notes=AUTO_PAYMENT_NOTES,
        )
        response = await self.api.post("/payments", json=data.to_body())
        raise_for_response(response)
        logger.info("pending_payment_created", appointment_id=appointment_id)
        return _payment_or_none(response)

    async def register_payment(self, data: PaymentCreate) -> Payment | None:
        """
        Register a payment captured by the operator.

        Manual payments must carry a positive amount and a settled method;
        the auto-generated pending payment does not block them.

        Raises:
            ValidationException: If the amount or method is not acceptable
            AppException: If the server rejects the payment
        """
        if data.amount <= 0:
            raise ValidationException("El monto debe ser mayor a cero", field="amount")
        if data.method == PaymentMethod.PENDING:
            raise ValidationException("Selecciona un método de pago", field="method")

        response = await self.api.post("/payments", json=data.to_body())
        raise_for_response(response)
        logger.info(
            "payment_registered",
            appointment_id=data.appointment_id,
            method=data.method.value,
            amount=str(data.amount),
        )
        return _payment_or_none(response)

    async def get_balance(
        self, appointment_id: int, historical_price: Decimal | None = None
    ) -> Balance:
        """
        Fetch the balance of one appointment.

        When the balance endpoint fails on the server side and the caller
        knows the appointment's price, the balance is derived locally from
        the appointment's payments with ``compute_balance``.

        Args:
            appointment_id: Appointment id
            historical_price: Price captured when the appointment was booked

        Raises:
            AppException: If the server cannot provide it and no local
                derivation is possible
        """
        try:
            response = await self.api.get(f"/appointments/{appointment_id}/balance")
            raise_for_response(response)
            return Balance.model_validate(response.json())
        except (ServerErrorException, NetworkException) as e:
            if historical_price is None:
                raise
            logger.warning("balance_fetch_failed", appointment_id=appointment_id, error=str(e))
            try:
                payments = await self._fetch_payments()
            except SessionExpiredException:
                raise
            except (AppException, ValueError):
                raise e from None

        own = [p for p in payments if p.appointment_id == appointment_id]
        return compute_balance(historical_price, own)

    async def _fetch_payments(self) -> list[Payment]:
        response = await self.api.get("/payments")
        raise_for_response(response)
        return [Payment.model_validate(item) for item in response.json() or []]

    async def list_payments(self) -> list[Payment]:
        """Fetch every payment; failures yield an empty list."""
        try:
            return await self._fetch_payments()
        except SessionExpiredException:
            raise
        except (AppException, ValueError) as e:
            logger.warning("payments_fetch_failed", error=str(e))
            return []


def _payment_or_none(response: httpx.Response) -> Payment | None:
    try:
        return Payment.model_validate(response.json())
    except ValueError:
        return None


def compute_balance(historical_price: Decimal, payments: Iterable[Payment]) -> Balance:
    """
    Derive the balance of one appointment locally.

    Only ``paid`` payments count: the pending placeholder created on
    completion and refunded payments never settle an appointment.

    Args:
        historical_price: Price captured when the appointment was created
        payments: Payments recorded for that appointment

    Returns:
        Balance with PAID, PARTIAL or PENDING status
    """
    paid = sum(
        (p.amount for p in payments if p.status == PaymentStatus.PAID),
        Decimal("0"),
    )
    pending = max(historical_price - paid, Decimal("0"))

    if paid >= historical_price:
        status = BalanceStatus.PAID
    elif paid > 0:
        status = BalanceStatus.PARTIAL
    else:
        status = BalanceStatus.PENDING

    return Balance(
        total_cost=historical_price,
        total_paid=paid,
        pending_balance=pending,
        status=status,
    )


def filter_payments(
    payments: Iterable[Payment],
    status: PaymentStatus | None = None,
    query: str = "",
) -> list[Payment]:
    """Payments listing filter by status and patient or service name."""
    q = query.strip().lower()
    result = []
    for payment in payments:
        if status is not None and payment.status != status:
            continue
        if q:
            patient_name = payment.patient.full_name.lower() if payment.patient else ""
            service_name = payment.service.name.lower() if payment.service else ""
            if q not in patient_name and q not in service_name:
                continue
        result.append(payment)
    return result


def total_paid(payments: Iterable[Payment]) -> Decimal:
    """Sum of the amounts of paid payments."""
    return sum(
        (p.amount for p in payments if p.status == PaymentStatus.PAID),
        Decimal("0"),
    )
