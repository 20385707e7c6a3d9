from datetime import datetime, timedelta, timezone

import pytest

from conftest import booking_payload, build_policy
from portfolio_backend.core.errors import InvalidInputError, InvalidTransitionError, NotFoundError
from portfolio_backend.models.appointment import Appointment
from portfolio_backend.scheduling.admission import submit
from portfolio_backend.scheduling.lifecycle import (
    can_transition,
    delete_appointment,
    get_appointment,
    update_appointment,
)
from portfolio_backend.scheduling.store import BookingStore

LATER = datetime(2026, 1, 2, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def store(db) -> BookingStore:
    return BookingStore(db)


@pytest.fixture
def pending(store, now) -> Appointment:
    return submit(booking_payload(), build_policy(), now, store)


@pytest.mark.parametrize(
    ('current', 'target', 'allowed'),
    [
        ('pending', 'confirmed', True),
        ('pending', 'rejected', True),
        ('pending', 'cancelled', True),
        ('confirmed', 'cancelled', True),
        ('confirmed', 'rejected', True),
        ('confirmed', 'pending', False),
        ('rejected', 'confirmed', False),
        ('cancelled', 'pending', False),
        ('cancelled', 'confirmed', False),
    ],
)
def test_can_transition(current: str, target: str, allowed: bool) -> None:
    assert can_transition(current, target) is allowed


def test_confirm_stamps_time_and_notifies(store, pending, now, sink) -> None:
    updated = update_appointment(store, pending.id, now, status='confirmed', notifier=sink)

    assert updated.status == 'confirmed'
    assert updated.confirmed_at == now.replace(tzinfo=None)
    assert sink.sent == [('confirmed', pending.id)]


def test_requesting_current_status_changes_nothing(store, pending, now, sink) -> None:
    update_appointment(store, pending.id, now, status='confirmed')

    updated = update_appointment(store, pending.id, LATER, status='confirmed', notifier=sink)

    assert updated.confirmed_at == now.replace(tzinfo=None)
    assert sink.sent == []


def test_cancel_after_confirm_keeps_confirmation_stamp(store, pending, now) -> None:
    update_appointment(store, pending.id, now, status='confirmed')

    updated = update_appointment(store, pending.id, LATER, status='cancelled')

    assert updated.status == 'cancelled'
    assert updated.confirmed_at == now.replace(tzinfo=None)
    assert updated.cancelled_at == LATER.replace(tzinfo=None)


def test_rejected_appointment_cannot_be_confirmed(store, pending, now, sink) -> None:
    update_appointment(store, pending.id, now, status='rejected')

    with pytest.raises(InvalidTransitionError) as exception_info:
        update_appointment(store, pending.id, LATER, status='confirmed', notifier=sink)

    assert exception_info.value.status_code == 409
    assert get_appointment(store, pending.id).status == 'rejected'
    assert sink.sent == []


def test_unknown_status_is_invalid_input(store, pending, now) -> None:
    with pytest.raises(InvalidInputError, match='Invalid status'):
        update_appointment(store, pending.id, now, status='archived')


def test_admin_notes_are_saved_without_status_change(store, pending, now) -> None:
    updated = update_appointment(store, pending.id, now, admin_notes='Bring the Q3 numbers.')

    assert updated.status == 'pending'
    assert updated.admin_notes == 'Bring the Q3 numbers.'


def test_admin_notes_length_is_capped(store, pending, now) -> None:
    with pytest.raises(InvalidInputError):
        update_appointment(store, pending.id, now, admin_notes='x' * 2001)


def test_missing_appointment_is_not_found(store, now) -> None:
    with pytest.raises(NotFoundError):
        update_appointment(store, 999, now, status='confirmed')
    with pytest.raises(NotFoundError):
        delete_appointment(store, 999)


def test_cancelled_slot_can_be_booked_again(store, pending, now) -> None:
    update_appointment(store, pending.id, now, status='cancelled')

    replacement = submit(booking_payload(email='second@example.com'), build_policy(), now, store)

    assert replacement.start_time == pending.start_time
    assert replacement.end_time - replacement.start_time == timedelta(minutes=30)


def test_delete_removes_appointment(store, pending, db) -> None:
    delete_appointment(store, pending.id)

    assert db.query(Appointment).count() == 0
