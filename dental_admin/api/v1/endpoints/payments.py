"""Payment endpoints."""

from fastapi import APIRouter, Query, status

from dental_admin.core.exceptions import (
    AppException,
    BadRequestException,
    SessionExpiredException,
    ValidationException,
)
from dental_admin.dependencies import CurrentWorkspace
from dental_admin.schemas.actions import PaymentListResponse
from dental_admin.schemas.payments import Balance, Payment, PaymentCreate, PaymentStatus
from dental_admin.services.payment_service import filter_payments, total_paid

router = APIRouter()

PAYMENT_REGISTERED_NOTICE = "Pago registrado correctamente"
PAYMENT_FAILED_NOTICE = "Error al registrar el pago"


@router.get(
    "",
    response_model=PaymentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Payments"],
    summary="List payments",
)
async def list_payments(
    workspace: CurrentWorkspace,
    status_filter: PaymentStatus | None = Query(None, alias="status"),
    search: str = Query(""),
) -> PaymentListResponse:
    """
    Payments listing with the total of paid amounts.

    Args:
        workspace: Operator workspace
        status_filter: Filter by payment status
        search: Filter by patient or service name

    Returns:
        Filtered payments and the paid total of the filtered rows
    """
    payments = filter_payments(await workspace.payments.list_payments(), status_filter, search)
    return PaymentListResponse(payments=payments, total_paid=total_paid(payments))


@router.post(
    "",
    response_model=Payment | None,
    status_code=status.HTTP_201_CREATED,
    tags=["Payments"],
    summary="Register a payment",
)
async def register_payment(data: PaymentCreate, workspace: CurrentWorkspace) -> Payment | None:
    """
    Register a payment captured by the operator.

    Every outcome leaves one notice: the validation or server message for
    rejected input, a generic one for other failures.

    Raises:
        ValidationException: Non-positive amount or pending method
        AppException: If the clinic API rejects the payment
    """
    try:
        payment = await workspace.payments.register_payment(data)
    except SessionExpiredException:
        raise
    except (ValidationException, BadRequestException) as e:
        workspace.notifications.error(e.message)
        raise
    except AppException:
        workspace.notifications.error(PAYMENT_FAILED_NOTICE)
        raise
    workspace.notifications.success(PAYMENT_REGISTERED_NOTICE)
    return payment


@router.get(
    "/balance/{appointment_id}",
    response_model=Balance,
    status_code=status.HTTP_200_OK,
    tags=["Payments"],
    summary="Appointment balance",
)
async def get_balance(appointment_id: int, workspace: CurrentWorkspace) -> Balance:
    """
    Balance of one appointment as computed by the clinic API.

    For an appointment on the current page, a server failure falls back
    to a balance derived from its price and payments.
    """
    cached = workspace.reconciler.find(appointment_id)
    price = cached.historical_price if cached else None
    return await workspace.payments.get_balance(appointment_id, historical_price=price)
