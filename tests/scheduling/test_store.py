from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import build_policy
from portfolio_backend.core.errors import ServiceUnavailableError
from portfolio_backend.models.appointment import Appointment
from portfolio_backend.scheduling.policy import default_policy
from portfolio_backend.scheduling.store import (
    BookingStore,
    ensure_availability_settings,
    load_policy,
    save_policy,
)

START = datetime(2026, 1, 5, 14, 0)


def make_appointment(start: datetime = START, status: str = 'pending', email: str = 'guest@example.com') -> Appointment:
    return Appointment(
        name='Guest',
        email=email,
        topic='Portfolio chat',
        start_time=start,
        end_time=start + timedelta(minutes=30),
        timezone='UTC',
        status=status,
    )


def test_unique_index_blocks_two_active_bookings_at_same_start(db) -> None:
    db.add(make_appointment())
    db.commit()

    db.add(make_appointment(status='confirmed', email='other@example.com'))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_unique_index_ignores_inactive_bookings(db) -> None:
    db.add_all([
        make_appointment(status='cancelled'),
        make_appointment(status='rejected'),
        make_appointment(status='pending'),
    ])
    db.commit()

    assert db.query(Appointment).count() == 3


def test_list_appointments_orders_newest_first(db) -> None:
    store = BookingStore(db)
    for offset in range(3):
        db.add(make_appointment(start=START + timedelta(hours=offset), email=f'guest{offset}@example.com'))
        db.commit()

    appointments, total = store.list_appointments(None, page=1, limit=2)
    second_page, _ = store.list_appointments(None, page=2, limit=2)

    assert total == 3
    assert [appointment.email for appointment in appointments] == ['guest2@example.com', 'guest1@example.com']
    assert [appointment.email for appointment in second_page] == ['guest0@example.com']


def test_count_by_status_includes_every_status(db) -> None:
    db.add_all([make_appointment(), make_appointment(status='cancelled')])
    db.commit()

    assert BookingStore(db).count_by_status() == {
        'pending': 1,
        'confirmed': 0,
        'rejected': 0,
        'cancelled': 1,
        'total': 2,
    }


def test_ensure_availability_settings_is_idempotent(db) -> None:
    first = ensure_availability_settings(db)
    save_policy(db, build_policy())

    second = ensure_availability_settings(db)

    assert first == default_policy()
    assert second == build_policy()


def test_load_policy_requires_settings_row(db) -> None:
    with pytest.raises(ServiceUnavailableError):
        load_policy(db)


def test_save_policy_round_trips_through_json_columns(db) -> None:
    ensure_availability_settings(db)
    policy = build_policy(blackout_dates=['2026-02-02', '2026-01-19'], buffer_between_slots=10)

    save_policy(db, policy)

    assert load_policy(db) == policy
    assert load_policy(db).blackout_dates == ('2026-01-19', '2026-02-02')
