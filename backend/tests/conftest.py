# backend/tests/conftest.py
"""
Pytest configuration for the booking engine.

Environment is pinned BEFORE any booking_engine import so settings never
read a developer's .env database.
"""

import os
import sys

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["PAYMENT_GATEWAY_ENABLED"] = "false"
os.environ["REDIS_URL"] = ""

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)

from datetime import date, datetime  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from booking_engine.core.config import Settings  # noqa: E402
from booking_engine.database import Base, init_db  # noqa: E402
from booking_engine.integrations.notification_service import FakeNotificationService  # noqa: E402
from booking_engine.integrations.payment_gateway import FakePaymentGateway  # noqa: E402
from booking_engine.repositories.sql_store import (  # noqa: E402
    SqlPatientDirectory,
    SqlPersistenceStore,
)
from booking_engine.schemas.booking import PatientForm  # noqa: E402
from booking_engine.schemas.schedule import (  # noqa: E402
    BlockedDate,
    CancellationPolicy,
    DaySchedule,
    ScheduleConfig,
    SessionPrices,
    WeeklySchedule,
)
from booking_engine.services.booking_engine import BookingEngine  # noqa: E402

PROVIDER_ID = "provider-1"

# Monday; every fixture-driven "now" starts here unless a test says otherwise.
NOW = datetime(2024, 1, 1, 8, 0)
TUESDAY = date(2024, 1, 2)
WEDNESDAY = date(2024, 1, 3)
SATURDAY = date(2024, 1, 6)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def workday() -> DaySchedule:
    return DaySchedule(start="09:00", end="17:00", lunch_start="12:00", lunch_end="13:00")


@pytest.fixture
def weekly_schedule(workday: DaySchedule) -> WeeklySchedule:
    return WeeklySchedule(
        monday=workday,
        tuesday=workday,
        wednesday=workday,
        thursday=workday,
        friday=workday,
    )


@pytest.fixture
def policy() -> CancellationPolicy:
    return CancellationPolicy(
        cancellation_hours=24,
        rescheduling_hours=12,
        advance_booking_days=30,
        buffer_minutes=10,
        step_minutes=30,
        session_duration_minutes=50,
    )


@pytest.fixture
def prices() -> SessionPrices:
    return SessionPrices(initial=150, follow_up=120, online=100)


@pytest.fixture
def schedule_config(
    weekly_schedule: WeeklySchedule, policy: CancellationPolicy, prices: SessionPrices
) -> ScheduleConfig:
    return ScheduleConfig(
        provider_id=PROVIDER_ID,
        weekly_schedule=weekly_schedule,
        policy=policy,
        prices=prices,
    )


@pytest.fixture
def blocked_config(schedule_config: ScheduleConfig) -> ScheduleConfig:
    return schedule_config.model_copy(
        update={"exceptions": (BlockedDate(date=WEDNESDAY, reason="Holiday"),)}
    )


@pytest.fixture
def valid_form() -> PatientForm:
    return PatientForm(
        name="Maria José",
        email="maria@example.com",
        phone="(11) 99999-8888",
        birth_date=date(1990, 5, 10),
        notes="First consultation",
        is_first_time=True,
        terms_accepted=True,
    )


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False, future=True)


@pytest.fixture
def store(session_factory, blocked_config: ScheduleConfig) -> SqlPersistenceStore:
    sql_store = SqlPersistenceStore(session_factory)
    sql_store.save_schedule(blocked_config)
    return sql_store


@pytest.fixture
def patients(session_factory) -> SqlPatientDirectory:
    return SqlPatientDirectory(session_factory)


@pytest.fixture
def payments() -> FakePaymentGateway:
    return FakePaymentGateway(clock=lambda: NOW)


@pytest.fixture
def notifications() -> FakeNotificationService:
    return FakeNotificationService()


@pytest.fixture
def engine_settings() -> Settings:
    return Settings(
        environment="test",
        reservation_max_attempts=3,
        reservation_backoff_base_seconds=0,
        session_timeout_minutes=30,
    )


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def booking_engine(
    store, patients, payments, notifications, engine_settings, sleeps
) -> BookingEngine:
    return BookingEngine(
        store,
        patients,
        payments,
        notifications,
        clock=lambda: NOW,
        config=engine_settings,
        sleep=sleeps.append,
    )
