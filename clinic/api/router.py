# clinic/api/router.py
from fastapi import APIRouter
from clinic.api import (
    routes_auth,
    routes_users,
    routes_patients,
    routes_appointments,
    routes_medicines,
    routes_medical_records,
    routes_prescriptions,
    routes_dashboard,
)

api_router = APIRouter()

# ---- Core
api_router.include_router(routes_auth.router, prefix="/auth", tags=["Auth"])
api_router.include_router(routes_users.router, prefix="/users", tags=["Users"])

# ---- Front desk
api_router.include_router(routes_patients.router,
                          prefix="/patients",
                          tags=["Patients"])
api_router.include_router(routes_appointments.router,
                          prefix="/appointments",
                          tags=["Appointments"])

# ---- Clinical
api_router.include_router(routes_medical_records.router,
                          prefix="/medical-records",
                          tags=["Medical Records"])
api_router.include_router(routes_prescriptions.router,
                          prefix="/prescriptions",
                          tags=["Prescriptions"])

# ---- Pharmacy
api_router.include_router(routes_medicines.router,
                          prefix="/medicines",
                          tags=["Medicines"])

api_router.include_router(routes_dashboard.router,
                          prefix="/dashboard",
                          tags=["Dashboard"])
