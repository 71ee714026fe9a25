"""Tests for payment capture, balances and the payments listing."""

import json
from decimal import Decimal

import pytest
from pydantic import ValidationError

from dental_admin.core.exceptions import (
    NotFoundException,
    ServerErrorException,
    ValidationException,
)
from dental_admin.schemas.payments import (
    BalanceStatus,
    Payment,
    PaymentCreate,
    PaymentMethod,
    PaymentStatus,
)
from dental_admin.services.payment_service import compute_balance, filter_payments, total_paid
from dental_admin.workspace import AdminWorkspace
from fakes import PATIENTS, SERVICES, FakeClinicApi


def _payment(payment_id: int, amount: str, status: PaymentStatus, **extra) -> Payment:
    return Payment(id=payment_id, amount=Decimal(amount), status=status, **extra)


@pytest.mark.asyncio
async def test_register_cash_payment(workspace: AdminWorkspace, fake_api: FakeClinicApi) -> None:
    """Manual payments are posted with their method and amount."""
    payment = await workspace.payments.register_payment(
        PaymentCreate(appointment_id=2, amount=Decimal("125000.50"), method=PaymentMethod.CASH)
    )

    assert payment.status == PaymentStatus.PAID
    assert payment.method == "cash"
    body = json.loads(fake_api.calls("POST", "/payments")[0].content)
    assert body == {"appointment_id": 2, "amount": 125000.5, "method": "cash"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("amount", "method", "field"),
    [
        ("0", PaymentMethod.CASH, "amount"),
        ("1000", PaymentMethod.PENDING, "method"),
    ],
)
async def test_manual_payment_validation(
    workspace: AdminWorkspace,
    fake_api: FakeClinicApi,
    amount: str,
    method: PaymentMethod,
    field: str,
) -> None:
    """Zero amounts and the pending method are reserved for the automatic payment."""
    with pytest.raises(ValidationException) as exc_info:
        await workspace.payments.register_payment(
            PaymentCreate(appointment_id=2, amount=Decimal(amount), method=method)
        )

    assert exc_info.value.field == field
    assert fake_api.calls("POST", "/payments") == []


def test_traceable_method_needs_reference() -> None:
    """Nequi payments carry the transaction reference."""
    with pytest.raises(ValidationError):
        PaymentCreate(appointment_id=1, amount=Decimal("1000"), method=PaymentMethod.NEQUI)

    payment = PaymentCreate(
        appointment_id=1, amount=Decimal("1000"), method=PaymentMethod.NEQUI, reference="NQ-1"
    )
    assert payment.to_body()["reference"] == "NQ-1"


@pytest.mark.asyncio
async def test_register_payment_server_failure(
    workspace: AdminWorkspace, fake_api: FakeClinicApi
) -> None:
    """Server failures propagate to the caller."""
    fake_api.override("POST", "/payments", 500, {"error": "boom"})

    with pytest.raises(ServerErrorException):
        await workspace.payments.register_payment(
            PaymentCreate(appointment_id=2, amount=Decimal("1000"), method=PaymentMethod.CASH)
        )


@pytest.mark.asyncio
async def test_remote_balance(workspace: AdminWorkspace) -> None:
    """The balance endpoint reports what is still owed."""
    balance = await workspace.payments.get_balance(3)

    assert balance.status == BalanceStatus.PAID
    assert balance.pending_balance == Decimal("0")


@pytest.mark.asyncio
async def test_balance_derived_from_payments_when_endpoint_fails(
    workspace: AdminWorkspace, fake_api: FakeClinicApi
) -> None:
    """With the price known, a failing balance endpoint falls back to the payments."""
    fake_api.override("GET", "/appointments/3/balance", 503, {"error": "down"})

    balance = await workspace.payments.get_balance(3, historical_price=Decimal("80000"))

    assert balance.status == BalanceStatus.PAID
    assert balance.total_paid == Decimal("80000")
    assert balance.pending_balance == Decimal("0")


@pytest.mark.asyncio
async def test_balance_failure_without_price_propagates(
    workspace: AdminWorkspace, fake_api: FakeClinicApi
) -> None:
    fake_api.override("GET", "/appointments/3/balance", 500, {"error": "boom"})

    with pytest.raises(ServerErrorException):
        await workspace.payments.get_balance(3)

    assert fake_api.calls("GET", "/payments") == []


@pytest.mark.asyncio
async def test_balance_of_unknown_appointment_is_not_derived(
    workspace: AdminWorkspace, fake_api: FakeClinicApi
) -> None:
    """Only server-side failures fall back; a 404 still surfaces."""
    with pytest.raises(NotFoundException):
        await workspace.payments.get_balance(99, historical_price=Decimal("1000"))

    assert fake_api.calls("GET", "/payments") == []


@pytest.mark.asyncio
async def test_balance_fallback_failure_raises_original_error(
    workspace: AdminWorkspace, fake_api: FakeClinicApi
) -> None:
    fake_api.override("GET", "/appointments/3/balance", 500, {"error": "boom"})
    fake_api.override("GET", "/payments", 503, {"error": "down"})

    with pytest.raises(ServerErrorException):
        await workspace.payments.get_balance(3, historical_price=Decimal("80000"))


@pytest.mark.asyncio
async def test_list_payments_failure_is_empty(
    workspace: AdminWorkspace, fake_api: FakeClinicApi
) -> None:
    """A failing listing yields no payments."""
    fake_api.override("GET", "/payments", 503, {"error": "down"})

    assert await workspace.payments.list_payments() == []


def test_compute_balance() -> None:
    """Only paid payments count; the status follows the amount paid."""
    paid = _payment(1, "30000", PaymentStatus.PAID)
    refunded = _payment(2, "50000", PaymentStatus.REFUNDED)
    placeholder = _payment(4, "20000", PaymentStatus.PENDING)

    partial = compute_balance(Decimal("80000"), [paid, refunded, placeholder])
    assert partial.status == BalanceStatus.PARTIAL
    assert partial.pending_balance == Decimal("50000")

    assert compute_balance(Decimal("80000"), []).status == BalanceStatus.PENDING
    settled = compute_balance(Decimal("80000"), [_payment(3, "90000", PaymentStatus.PAID)])
    assert settled.status == BalanceStatus.PAID
    assert settled.pending_balance == Decimal("0")


def test_filter_and_total() -> None:
    """The listing filters by status and by patient or service name."""
    payments = [
        _payment(1, "80000", PaymentStatus.PAID, patient=PATIENTS[10], service=SERVICES[0]),
        _payment(2, "0", PaymentStatus.PENDING, patient=PATIENTS[11], service=SERVICES[1]),
        _payment(3, "250000", PaymentStatus.PAID, patient=PATIENTS[11], service=SERVICES[1]),
    ]

    assert [p.id for p in filter_payments(payments, PaymentStatus.PAID)] == [1, 3]
    assert [p.id for p in filter_payments(payments, query="luis")] == [2, 3]
    assert [p.id for p in filter_payments(payments, query="LIMPIEZA")] == [1]
    assert total_paid(payments) == Decimal("330000")


def test_payment_accepts_either_method_key() -> None:
    """The method column may be named ``method`` or ``payment_method``."""
    assert Payment.model_validate({"id": 1, "method": "nequi"}).method == "nequi"
    assert Payment.model_validate({"id": 1, "payment_method": "cash"}).method == "cash"
