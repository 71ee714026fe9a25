"""Cancellation reason vocabulary.

``FALLBACK_REASONS`` is used whenever the remote catalog cannot be
loaded, so its codes must stay in sync with the server.
"""

from types import MappingProxyType

from dental_admin.schemas.cancellation import CancellationReason

CANCELLATION_LABELS: MappingProxyType[str, str] = MappingProxyType(
    {
        "no_show": "No se presentó",
        "patient_request": "Solicitud del paciente",
        "auto_expired": "Expiró sin confirmar",
        "emergency": "Emergencia del paciente",
        "scheduling_conflict": "Conflicto de horario",
        "specialist_unavailable": "Especialista no disponible",
        "clinic_decision": "Decisión administrativa",
        "other": "Otro motivo",
    }
)

FALLBACK_REASONS: tuple[CancellationReason, ...] = tuple(
    CancellationReason(code=code, label=label, description="")
    for code, label in CANCELLATION_LABELS.items()
)


def fallback_reasons() -> list[CancellationReason]:
    """Fresh copy of the hardcoded catalog."""
    return [reason.model_copy() for reason in FALLBACK_REASONS]


def reason_label(code: str | None) -> str:
    """Label for a stored reason code; unknown codes are shown as-is."""
    if not code:
        return "—"
    return CANCELLATION_LABELS.get(code, code)
