"""API v1 router configuration."""

from fastapi import APIRouter

from dental_admin.api.v1.endpoints import (
    appointments,
    auth,
    cancellations,
    dashboard,
    health,
    medical_history,
    notices,
    payments,
)

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(cancellations.router, prefix="/cancellations", tags=["Cancellations"])
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])
api_router.include_router(
    medical_history.router, prefix="/medical-history", tags=["Medical History"]
)
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
api_router.include_router(notices.router, prefix="/notices", tags=["Notices"])
