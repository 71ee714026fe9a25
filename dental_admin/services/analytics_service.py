"""Dashboard aggregations over appointment and payment collections.

Everything here is a pure function of its inputs; the dashboard is
recomputed from scratch on every refresh.
"""

from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import UTC, date, datetime, tzinfo
from decimal import Decimal

from dental_admin.core.cancellation_reasons import reason_label
from dental_admin.schemas.appointments import Appointment, AppointmentStatus, AppointmentSummary
from dental_admin.schemas.dashboard import (
    DashboardSnapshot,
    LabelCount,
    MonthlyAmount,
    MonthlyCount,
    ReasonCount,
)
from dental_admin.schemas.payments import Payment, PaymentStatus


def _local_date(instant: datetime | None, tz: tzinfo) -> date | None:
    if instant is None:
        return None
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant.astimezone(tz).date()


def _month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def trailing_months(today: date, months: int) -> list[str]:
    """Keys ``YYYY-MM`` of the last ``months`` calendar months, oldest first."""
    keys = []
    year, month = today.year, today.month
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


def count_distinct_patients(appointments: Iterable[Appointment]) -> int:
    """Number of different patients with at least one appointment."""
    return len({a.patient_id for a in appointments if a.patient_id is not None})


def paid_income(payments: Iterable[Payment]) -> Decimal:
    """Sum of every paid amount."""
    return sum((p.amount for p in payments if p.status == PaymentStatus.PAID), Decimal("0"))


def monthly_income(
    payments: Iterable[Payment],
    months: int,
    today: date,
    tz: tzinfo = UTC,
) -> list[MonthlyAmount]:
    """
    Paid income per calendar month over a trailing window.

    Args:
        payments: Payments to aggregate; only ``paid`` ones count
        months: Window length
        today: Last day of the window
        tz: Time zone the months are evaluated in

    Returns:
        One entry per month, oldest first, zero-filled
    """
    totals = {key: Decimal("0") for key in trailing_months(today, months)}
    for payment in payments:
        if payment.status != PaymentStatus.PAID:
            continue
        day = _local_date(payment.effective_date, tz)
        if day is None:
            continue
        key = _month_key(day)
        if key in totals:
            totals[key] += payment.amount
    return [MonthlyAmount(month=key, amount=amount) for key, amount in totals.items()]


def appointments_per_service(appointments: Iterable[Appointment]) -> list[LabelCount]:
    """Appointment count per service name, most frequent first."""
    counts: Counter[str] = Counter()
    for appointment in appointments:
        name = appointment.service.name if appointment.service and appointment.service.name else ""
        counts[name or f"Servicio {appointment.service_id}"] += 1
    return [LabelCount(label=label, count=count) for label, count in counts.most_common()]


def cancellations_by_month(
    appointments: Iterable[Appointment],
    months: int,
    today: date,
    tz: tzinfo = UTC,
) -> list[MonthlyCount]:
    """Cancelled appointments per month of their scheduled start, oldest first."""
    counts = {key: 0 for key in trailing_months(today, months)}
    for appointment in appointments:
        if appointment.status != AppointmentStatus.CANCELLED:
            continue
        day = _local_date(appointment.start_time, tz)
        if day is None:
            continue
        key = _month_key(day)
        if key in counts:
            counts[key] += 1
    return [MonthlyCount(month=key, count=count) for key, count in counts.items()]


def cancellations_by_reason(appointments: Iterable[Appointment]) -> list[ReasonCount]:
    """Cancelled appointments per reason code, most frequent first."""
    counts = Counter(
        a.cancellation_reason or "other"
        for a in appointments
        if a.status == AppointmentStatus.CANCELLED
    )
    return [
        ReasonCount(code=code, label=reason_label(code), count=count)
        for code, count in counts.most_common()
    ]


def top_patients(appointments: Iterable[Appointment], limit: int = 5) -> list[LabelCount]:
    """Patients with the most appointments."""
    counts: Counter[int] = Counter()
    names: dict[int, str] = {}
    for appointment in appointments:
        if appointment.patient_id is None:
            continue
        counts[appointment.patient_id] += 1
        names.setdefault(appointment.patient_id, appointment.patient_name)
    return [
        LabelCount(label=names[patient_id], count=count)
        for patient_id, count in counts.most_common(limit)
    ]


def appointments_in_month(
    appointments: Iterable[Appointment], today: date, tz: tzinfo = UTC
) -> int:
    """Appointments starting in the month of ``today``."""
    return sum(
        1
        for a in appointments
        if (day := _local_date(a.start_time, tz)) is not None
        and (day.year, day.month) == (today.year, today.month)
    )


def pending_count(appointments: Iterable[Appointment]) -> int:
    """Appointments waiting for approval."""
    return sum(1 for a in appointments if a.status == AppointmentStatus.PENDING)


def appointments_today(
    appointments: Iterable[Appointment], today: date, tz: tzinfo = UTC
) -> list[Appointment]:
    """Appointments starting today, in start order."""
    todays = [a for a in appointments if _local_date(a.start_time, tz) == today]
    return sorted(todays, key=lambda a: a.start_time or datetime.min.replace(tzinfo=UTC))


def recent_payments(payments: Iterable[Payment], limit: int = 5) -> list[Payment]:
    """Most recent payments first."""
    dated = [p for p in payments if p.effective_date is not None]
    dated.sort(key=lambda p: p.effective_date, reverse=True)
    return dated[:limit]


def status_counts(appointments: Sequence[Appointment]) -> AppointmentSummary:
    """Local counts by status."""
    counts = Counter(a.status for a in appointments)
    return AppointmentSummary(
        total=len(appointments),
        pending=counts[AppointmentStatus.PENDING],
        scheduled=counts[AppointmentStatus.SCHEDULED],
        completed=counts[AppointmentStatus.COMPLETED],
        cancelled=counts[AppointmentStatus.CANCELLED],
    )


def build_dashboard(
    appointments: Sequence[Appointment],
    payments: Sequence[Payment],
    today: date,
    tz: tzinfo = UTC,
    months: int = 6,
    summary: AppointmentSummary | None = None,
) -> DashboardSnapshot:
    """
    Aggregate every dashboard figure.

    Args:
        appointments: Full appointment collection
        payments: Full payment collection
        today: Reference day in the clinic time zone
        tz: Clinic time zone
        months: Length of the trailing monthly windows
        summary: Server-side counters; local counts are used when absent

    Returns:
        The dashboard snapshot
    """
    return DashboardSnapshot(
        total_patients=count_distinct_patients(appointments),
        appointments_this_month=appointments_in_month(appointments, today, tz),
        paid_income=paid_income(payments),
        pending_appointments=pending_count(appointments),
        today=appointments_today(appointments, today, tz),
        monthly_income=monthly_income(payments, months, today, tz),
        appointments_per_service=appointments_per_service(appointments),
        cancellations_by_month=cancellations_by_month(appointments, months, today, tz),
        cancellations_by_reason=cancellations_by_reason(appointments),
        top_patients=top_patients(appointments),
        recent_payments=recent_payments(payments),
        status_counts=summary or status_counts(appointments),
        generated_at=datetime.now(UTC),
    )
