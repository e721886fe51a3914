from .appointment_repository import AppointmentRepository
from .base_repository import BaseRepository
from .patient_repository import PatientRepository
from .schedule_repository import ScheduleRepository
from .sql_store import SqlPatientDirectory, SqlPersistenceStore

__all__ = [
    "AppointmentRepository",
    "BaseRepository",
    "PatientRepository",
    "ScheduleRepository",
    "SqlPatientDirectory",
    "SqlPersistenceStore",
]
