"""Operator-driven status changes for existing appointments."""

import logging
from datetime import datetime

from portfolio_backend.core.errors import InvalidInputError, InvalidTransitionError, NotFoundError
from portfolio_backend.models.appointment import APPOINTMENT_STATUSES, Appointment
from portfolio_backend.notifications.email_service import NotificationSink, notify_safely
from portfolio_backend.scheduling.clock import to_storage
from portfolio_backend.scheduling.store import BookingStore

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    'pending': frozenset({'confirmed', 'rejected', 'cancelled'}),
    'confirmed': frozenset({'rejected', 'cancelled'}),
    'rejected': frozenset(),
    'cancelled': frozenset(),
}

STATUS_TIMESTAMP_FIELDS = {
    'confirmed': 'confirmed_at',
    'rejected': 'rejected_at',
    'cancelled': 'cancelled_at',
}

MAX_ADMIN_NOTES_LENGTH = 2000


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def get_appointment(store: BookingStore, appointment_id: int) -> Appointment:
    appointment = store.find_by_id(appointment_id)
    if appointment is None:
        raise NotFoundError('Appointment not found')
    return appointment


def update_appointment(
    store: BookingStore,
    appointment_id: int,
    now: datetime,
    status: str | None = None,
    admin_notes: str | None = None,
    notifier: NotificationSink | None = None,
) -> Appointment:
    """Apply a status change and/or a notes edit.

    Requesting the current status is a no-op. A ``*_at`` field is stamped only
    when it is still empty, so the first entry into a state is what is kept.
    """
    if status is not None and status not in APPOINTMENT_STATUSES:
        raise InvalidInputError(
            'Invalid status. Must be one of: ' + ', '.join(APPOINTMENT_STATUSES)
        )
    if admin_notes is not None and len(admin_notes) > MAX_ADMIN_NOTES_LENGTH:
        raise InvalidInputError(f'Admin notes must be {MAX_ADMIN_NOTES_LENGTH} characters or fewer')

    appointment = get_appointment(store, appointment_id)
    previous_status = appointment.status
    changes: dict = {}

    if status is not None and status != previous_status:
        if not can_transition(previous_status, status):
            raise InvalidTransitionError(f'Cannot change appointment status from {previous_status} to {status}')
        changes['status'] = status
        stamp_field = STATUS_TIMESTAMP_FIELDS.get(status)
        if stamp_field and getattr(appointment, stamp_field) is None:
            changes[stamp_field] = to_storage(now)

    if admin_notes is not None:
        changes['admin_notes'] = admin_notes

    if not changes:
        return appointment

    appointment = store.update_status(appointment, changes)

    if 'status' in changes:
        logger.info('Appointment %s moved from %s to %s.', appointment.id, previous_status, appointment.status)
        if appointment.status == 'confirmed' and notifier is not None:
            notify_safely(notifier.send_booking_confirmed, appointment)

    return appointment


def delete_appointment(store: BookingStore, appointment_id: int) -> None:
    if not store.delete_by_id(appointment_id):
        raise NotFoundError('Appointment not found')
    logger.info('Deleted appointment %s.', appointment_id)
