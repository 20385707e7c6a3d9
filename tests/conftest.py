import os
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from portfolio_backend.auth import jwt_handler  # noqa: E402
from portfolio_backend.database import Base, get_db  # noqa: E402
from portfolio_backend.main import app  # noqa: E402
from portfolio_backend.models.appointment import Appointment  # noqa: E402
from portfolio_backend.models.availability import AvailabilitySettings  # noqa: E402
from portfolio_backend.models.user import User  # noqa: E402
from portfolio_backend.notifications.email_service import get_notification_sink  # noqa: E402
from portfolio_backend.scheduling.clock import get_clock  # noqa: E402
from portfolio_backend.scheduling.policy import AvailabilityPolicy, DaySchedule, TimeWindow, Weekday  # noqa: E402
from portfolio_backend.scheduling.store import ensure_availability_settings, save_policy  # noqa: E402

# Thursday 2026-01-01 07:00 in New York
FIXED_NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

TABLES = [User.__table__, AvailabilitySettings.__table__, Appointment.__table__]


def build_policy(monday_windows=(('09:00', '10:00'),), **overrides) -> AvailabilityPolicy:
    """Policy open only on Mondays, with no lead time by default."""
    schedule = []
    for weekday in Weekday:
        if weekday == Weekday.MONDAY:
            windows = [TimeWindow(start=start, end=end) for start, end in monday_windows]
            schedule.append(DaySchedule(day=weekday, available=True, slots=windows))
        else:
            schedule.append(DaySchedule(day=weekday, available=False))

    values = {
        'weekly_schedule': schedule,
        'slot_duration': 30,
        'buffer_between_slots': 0,
        'min_lead_time': 0,
        'max_advance_booking': 60,
        'max_appointments_per_day': 4,
        'timezone': 'America/New_York',
    }
    values.update(overrides)
    return AvailabilityPolicy(**values)


class RecordingSink:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str, int]] = []

    def _record(self, kind: str, appointment) -> None:
        if self.fail:
            raise RuntimeError('SMTP down')
        self.sent.append((kind, appointment.id))

    def send_booking_request(self, appointment) -> None:
        self._record('request', appointment)

    def send_booking_received(self, appointment) -> None:
        self._record('received', appointment)

    def send_booking_confirmed(self, appointment) -> None:
        self._record('confirmed', appointment)


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=TABLES)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine, tables=TABLES)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


def booking_payload(**overrides) -> dict:
    payload = {
        'name': 'Ada Lovelace',
        'email': ' Ada@Example.com ',
        'topic': 'Project review',
        'details': 'Walk through the analytics dashboard.',
        'date': '2026-01-05',
        'time': '09:00',
        'timezone': 'Europe/London',
        'website': '',
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def client(session_factory, sink):
    seed = session_factory()
    try:
        ensure_availability_settings(seed)
        save_policy(seed, build_policy())
        seed.add(User(email='operator@example.com', hashed_password='', role='admin'))
        seed.add(User(email='viewer@example.com', hashed_password='', role='viewer'))
        seed.commit()
    finally:
        seed.close()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: (lambda: FIXED_NOW)
    app.dependency_overrides[get_notification_sink] = lambda: sink
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def operator_headers() -> dict:
    return {'Authorization': f'Bearer {jwt_handler.create_access_token("operator@example.com")}'}
