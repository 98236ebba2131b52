# clinic/models/__init__.py
from .common import RecordState
from .user import User, UserRole
from .patient import Patient
from .appointment import Appointment, AppointmentStatusLog, AppointmentStatus
from .medicine import Medicine, StockTransaction, StockTxnType
from .medical_record import MedicalRecord, RecordStatus
from .prescription import Prescription, PrescriptionLine, PrescriptionStatus

__all__ = [
    "RecordState",
    "User",
    "UserRole",
    "Patient",
    "Appointment",
    "AppointmentStatusLog",
    "AppointmentStatus",
    "Medicine",
    "StockTransaction",
    "StockTxnType",
    "MedicalRecord",
    "RecordStatus",
    "Prescription",
    "PrescriptionLine",
    "PrescriptionStatus",
]
