"""Tests for dashboard aggregations."""

from datetime import date
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from dental_admin.schemas.appointments import Appointment, AppointmentStatus
from dental_admin.schemas.payments import Payment
from dental_admin.services.analytics_service import (
    appointments_in_month,
    appointments_per_service,
    appointments_today,
    build_dashboard,
    cancellations_by_month,
    cancellations_by_reason,
    count_distinct_patients,
    monthly_income,
    paid_income,
    recent_payments,
    top_patients,
    trailing_months,
)
from dental_admin.workspace import AdminWorkspace
from fakes import PATIENTS, FakeClinicApi, make_appointment

BOGOTA = ZoneInfo("America/Bogota")
TODAY = date(2026, 10, 19)


def _appointments(*rows: dict) -> list[Appointment]:
    return [Appointment.model_validate(row) for row in rows]


def _payment(payment_id: int, amount: int, status: str, when: str) -> Payment:
    return Payment.model_validate({
        "id": payment_id,
        "appointment_id": payment_id,
        "amount": amount,
        "payment_method": "cash",
        "status": status,
        "payment_date": when,
        "patient": PATIENTS[10],
    })


@pytest.fixture
def appointments() -> list[Appointment]:
    """A month of mixed appointments."""
    return _appointments(
        make_appointment(1, "pending", start_time="2026-10-19T15:00:00Z"),
        make_appointment(2, "scheduled", patient_id=11, service_id=2,
                         start_time="2026-10-19T13:00:00Z"),
        make_appointment(3, "completed", start_time="2026-09-10T14:00:00Z"),
        make_appointment(4, "cancelled", patient_id=12, cancellation_reason="no_show",
                         start_time="2026-09-15T14:00:00Z"),
        make_appointment(5, "cancelled", patient_id=11, cancellation_reason="no_show",
                         start_time="2026-10-02T14:00:00Z"),
        make_appointment(6, "cancelled", patient_id=10, start_time="2026-10-03T14:00:00Z"),
    )


def test_trailing_months_cross_year() -> None:
    """Windows wrap around January."""
    assert trailing_months(date(2026, 2, 5), 4) == ["2025-11", "2025-12", "2026-01", "2026-02"]


def test_distinct_patients(appointments: list[Appointment]) -> None:
    """Patients are counted once."""
    assert count_distinct_patients(appointments) == 3


def test_paid_income_ignores_other_statuses() -> None:
    """Pending and refunded payments are not income."""
    payments = [
        _payment(1, 80000, "paid", "2026-10-01T15:00:00Z"),
        _payment(2, 0, "pending", "2026-10-02T15:00:00Z"),
        _payment(3, 50000, "refunded", "2026-10-03T15:00:00Z"),
    ]

    assert paid_income(payments) == Decimal("80000")


def test_monthly_income_is_zero_filled_and_local() -> None:
    """Months without payments appear with zero; dates are read in the clinic zone."""
    payments = [
        _payment(1, 80000, "paid", "2026-10-01T03:00:00Z"),  # Sept 30 in Bogotá
        _payment(2, 20000, "paid", "2026-10-10T15:00:00Z"),
        _payment(3, 99999, "paid", "2025-01-10T15:00:00Z"),
    ]

    result = monthly_income(payments, 3, TODAY, BOGOTA)

    assert [(m.month, m.amount) for m in result] == [
        ("2026-08", Decimal("0")),
        ("2026-09", Decimal("80000")),
        ("2026-10", Decimal("20000")),
    ]


def test_appointments_per_service(appointments: list[Appointment]) -> None:
    """Counts are keyed by service name, most frequent first."""
    result = appointments_per_service(appointments)

    assert result[0].label == "Limpieza"
    assert result[0].count == 5
    assert result[1].label == "Ortodoncia"


def test_cancellations(appointments: list[Appointment]) -> None:
    """Cancellations are grouped by month and by reason."""
    by_month = cancellations_by_month(appointments, 2, TODAY, BOGOTA)
    by_reason = cancellations_by_reason(appointments)

    assert [(m.month, m.count) for m in by_month] == [("2026-09", 1), ("2026-10", 2)]
    assert [(r.code, r.label, r.count) for r in by_reason] == [
        ("no_show", "No se presentó", 2),
        ("other", "Otro motivo", 1),
    ]


def test_top_patients(appointments: list[Appointment]) -> None:
    """Patients with most appointments come first."""
    result = top_patients(appointments, limit=2)

    assert [(p.label, p.count) for p in result] == [("Ana Gómez", 3), ("Luis Pérez", 2)]


def test_today_and_month(appointments: list[Appointment]) -> None:
    """Today's agenda is sorted by start time."""
    assert [a.id for a in appointments_today(appointments, TODAY, BOGOTA)] == [2, 1]
    assert appointments_in_month(appointments, TODAY, BOGOTA) == 4


def test_recent_payments() -> None:
    """Newest payments first, capped at the limit."""
    payments = [
        _payment(i, 1000, "paid", f"2026-10-{i:02d}T12:00:00Z") for i in range(1, 8)
    ]

    assert [p.id for p in recent_payments(payments, limit=3)] == [7, 6, 5]


def test_build_dashboard_uses_local_counts_without_summary(
    appointments: list[Appointment],
) -> None:
    """Status counters fall back to the local collection."""
    snapshot = build_dashboard(appointments, [], TODAY, BOGOTA, months=6)

    assert snapshot.status_counts.total == 6
    assert snapshot.status_counts.cancelled == 3
    assert snapshot.pending_appointments == 1
    assert len(snapshot.monthly_income) == 6
    assert snapshot.generated_at is not None


@pytest.mark.asyncio
async def test_dashboard_refresh(workspace: AdminWorkspace, fake_api: FakeClinicApi) -> None:
    """The controller aggregates the full collections from the server."""
    snapshot = await workspace.dashboard.refresh()

    assert snapshot.total_patients == 3
    assert snapshot.paid_income == Decimal("80000")
    assert snapshot.status_counts.total == 4
    assert snapshot.cancellations_by_reason[0].code == "no_show"
    assert workspace.dashboard.snapshot is snapshot


@pytest.mark.asyncio
async def test_dashboard_survives_failing_sources(
    workspace: AdminWorkspace, fake_api: FakeClinicApi
) -> None:
    """Failed sources count as empty collections."""
    fake_api.override("GET", "/appointments", 500, {"error": "boom"})
    fake_api.override("GET", "/payments", 500, {"error": "boom"})
    fake_api.override("GET", "/appointments/summary", 500, {"error": "boom"})

    snapshot = await workspace.dashboard.refresh()

    assert snapshot.total_patients == 0
    assert snapshot.paid_income == Decimal("0")
    assert snapshot.status_counts.total == 0
