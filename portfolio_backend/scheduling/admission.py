"""Validate and admit new appointment requests.

``submit`` is the only code path that creates appointments. Every check runs
before the insert, and the insert itself re-checks overlap and day capacity
under a lock, so a failed submission never leaves a record behind.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ValidationError, field_validator

from portfolio_backend.core.errors import (
    ConflictError,
    DateNotAvailableError,
    DayCapacityError,
    InvalidInputError,
    SlotConflictError,
    SlotNotAvailableError,
    validation_message,
)
from portfolio_backend.models.appointment import Appointment
from portfolio_backend.notifications.email_service import NotificationSink, notify_safely
from portfolio_backend.scheduling.clock import day_bounds, local_datetime, to_storage
from portfolio_backend.scheduling.date_gate import is_bookable
from portfolio_backend.scheduling.policy import AvailabilityPolicy
from portfolio_backend.scheduling.slots import generate_slots
from portfolio_backend.scheduling.store import BookingStore

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
DATE_INPUT_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
TIME_INPUT_PATTERN = re.compile(r'^\d{2}:\d{2}(:\d{2})?$')
REQUIRED_FIELDS = ('name', 'email', 'topic', 'date', 'time', 'timezone')
HONEYPOT_FIELD = 'website'
MAX_DETAILS_LENGTH = 1000


@dataclass(frozen=True)
class ClientInfo:
    ip_address: str = ''
    user_agent: str = ''


class BookingRequest(BaseModel):
    name: str
    email: str
    topic: str
    details: str | None = None
    date: str
    time: str
    timezone: str

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not 2 <= len(normalized) <= 100:
            raise ValueError('Name must be between 2 and 100 characters')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not EMAIL_PATTERN.match(normalized):
            raise ValueError('Invalid email format')
        return normalized

    @field_validator('topic')
    @classmethod
    def validate_topic(cls, value: str) -> str:
        normalized = value.strip()
        if not 3 <= len(normalized) <= 200:
            raise ValueError('Topic must be between 3 and 200 characters')
        return normalized

    @field_validator('details')
    @classmethod
    def validate_details(cls, value: str | None) -> str:
        normalized = (value or '').strip()
        if len(normalized) > MAX_DETAILS_LENGTH:
            raise ValueError(f'Details must be {MAX_DETAILS_LENGTH} characters or fewer')
        return normalized

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        normalized = value.strip()
        try:
            ZoneInfo(normalized)
        except (ZoneInfoNotFoundError, ValueError, OSError):
            raise ValueError('Invalid timezone') from None
        return normalized


def parse_request(payload: Mapping[str, Any]) -> BookingRequest:
    """Run the honeypot and field checks, in that order."""
    honeypot = payload.get(HONEYPOT_FIELD)
    if isinstance(honeypot, str):
        filled = bool(honeypot.strip())
    else:
        filled = honeypot is not None
    if filled:
        logger.warning('Rejected booking request with filled honeypot field.')
        raise InvalidInputError('Invalid request')

    missing = [
        field_name for field_name in REQUIRED_FIELDS
        if not isinstance(payload.get(field_name), str) or not payload[field_name].strip()
    ]
    if missing:
        raise InvalidInputError('All required fields must be provided')

    try:
        return BookingRequest.model_validate(dict(payload))
    except ValidationError as exc:
        raise InvalidInputError(validation_message(exc)) from exc


def parse_slot(request: BookingRequest) -> tuple[date, str]:
    """Return the requested calendar day and its normalized ``HH:MM`` start."""
    try:
        if not DATE_INPUT_PATTERN.match(request.date) or not TIME_INPUT_PATTERN.match(request.time):
            raise ValueError
        slot_date = date.fromisoformat(request.date)
        slot_time = time.fromisoformat(request.time)
    except ValueError:
        raise InvalidInputError('Invalid date or time format') from None

    if slot_time.second:
        raise SlotNotAvailableError()
    return slot_date, f'{slot_time:%H:%M}'


def submit(
    payload: Mapping[str, Any],
    policy: AvailabilityPolicy,
    now: datetime,
    store: BookingStore,
    notifier: NotificationSink | None = None,
    client: ClientInfo | None = None,
) -> Appointment:
    """Admit one booking request and return the new pending appointment.

    ``date`` and ``time`` are read in the policy's time zone; the submitter's
    ``timezone`` is stored for display only.
    """
    request = parse_request(payload)
    slot_date, slot_hhmm = parse_slot(request)
    start_time = local_datetime(slot_date, slot_hhmm, policy)

    if not is_bookable(start_time, policy, now):
        raise DateNotAvailableError()

    if slot_hhmm not in generate_slots(slot_date, policy, now):
        raise SlotNotAvailableError()

    end_time = start_time + timedelta(minutes=policy.slot_duration)

    if store.find_overlapping(start_time, end_time) is not None:
        raise SlotConflictError()

    day_start, day_end = day_bounds(slot_date, policy)
    if store.count_by_day(day_start, day_end) >= policy.max_appointments_per_day:
        raise DayCapacityError()

    client = client or ClientInfo()
    appointment = Appointment(
        name=request.name,
        email=request.email,
        topic=request.topic,
        details=request.details or '',
        start_time=to_storage(start_time),
        end_time=to_storage(end_time),
        timezone=request.timezone,
        status='pending',
        ip_address=client.ip_address,
        user_agent=client.user_agent,
        admin_notes='',
    )

    try:
        store.insert(
            appointment,
            day_start=day_start,
            day_end=day_end,
            max_per_day=policy.max_appointments_per_day,
        )
    except ConflictError as exc:
        logger.warning('Booking for %s %s lost a concurrent race.', slot_date, slot_hhmm)
        raise SlotConflictError() from exc

    logger.info('Admitted appointment %s for %s %s (%s).', appointment.id, slot_date, slot_hhmm, policy.timezone)

    if notifier is not None:
        notify_safely(notifier.send_booking_request, appointment)
        notify_safely(notifier.send_booking_received, appointment)

    return appointment
