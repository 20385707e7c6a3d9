from datetime import date, timedelta
from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portfolio_backend.auth.dependencies import require_operator
from portfolio_backend.core.errors import InvalidInputError, ServiceUnavailableError, validation_message
from portfolio_backend.database import get_db
from portfolio_backend.routes.schemas import AvailableDatesResponse, BookedSlotsResponse, OpenSlotsResponse
from portfolio_backend.scheduling.clock import Clock, day_bounds, from_storage, get_clock, local_datetime
from portfolio_backend.scheduling.date_gate import available_dates, is_bookable
from portfolio_backend.scheduling.policy import AvailabilityPolicy, merge_policy
from portfolio_backend.scheduling.slots import generate_slots
from portfolio_backend.scheduling.store import BookingStore, load_policy, save_policy

router = APIRouter(tags=['availability'])

DEFAULT_DATE_RANGE_DAYS = 31


def parse_date_param(value: str | None) -> date:
    if not value or not value.strip():
        raise InvalidInputError('Date parameter is required')
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise InvalidInputError('Date must be in YYYY-MM-DD format') from None


def booked_slot_labels(day: date, policy: AvailabilityPolicy, store: BookingStore) -> list[str]:
    day_start, day_end = day_bounds(day, policy)
    return [
        f'{from_storage(start_time).astimezone(policy.zone):%H:%M}'
        for start_time in store.booked_starts(day_start, day_end)
    ]


@router.get('/availability-settings', response_model=AvailabilityPolicy)
def get_availability_settings(db: Session = Depends(get_db)):
    try:
        return load_policy(db)
    except SQLAlchemyError as exc:
        raise ServiceUnavailableError() from exc


@router.put(
    '/availability-settings',
    response_model=AvailabilityPolicy,
    dependencies=[Depends(require_operator)],
)
def update_availability_settings(
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
):
    try:
        current = load_policy(db)
        try:
            policy = merge_policy(current, payload)
        except ValidationError as exc:
            raise InvalidInputError(validation_message(exc)) from exc

        return save_policy(db, policy)
    except SQLAlchemyError as exc:
        db.rollback()
        raise ServiceUnavailableError() from exc


@router.get('/availability-slots', response_model=BookedSlotsResponse)
def list_booked_slots(
    date: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    day = parse_date_param(date)

    try:
        policy = load_policy(db)
        return BookedSlotsResponse(booked_slots=booked_slot_labels(day, policy, BookingStore(db)))
    except SQLAlchemyError as exc:
        raise ServiceUnavailableError() from exc


@router.get('/availability-slots/open', response_model=OpenSlotsResponse)
def list_open_slots(
    date: str | None = Query(default=None),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    day = parse_date_param(date)
    now = clock()

    try:
        policy = load_policy(db)
        booked = set(booked_slot_labels(day, policy, BookingStore(db)))
    except SQLAlchemyError as exc:
        raise ServiceUnavailableError() from exc

    slots = sorted(
        slot for slot in generate_slots(day, policy, now)
        if slot not in booked and is_bookable(local_datetime(day, slot, policy), policy, now)
    )
    return OpenSlotsResponse(date=day, slots=slots)


@router.get('/available-dates', response_model=AvailableDatesResponse)
def list_available_dates(
    start: str | None = Query(default=None),
    end: str | None = Query(default=None),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    now = clock()

    try:
        policy = load_policy(db)
    except SQLAlchemyError as exc:
        raise ServiceUnavailableError() from exc

    today = now.astimezone(policy.zone).date()
    range_start = parse_date_param(start) if start else today
    range_end = parse_date_param(end) if end else range_start + timedelta(days=DEFAULT_DATE_RANGE_DAYS - 1)

    try:
        dates = available_dates(range_start, range_end, policy, now)
    except ValueError as exc:
        raise InvalidInputError(str(exc)) from exc
    return AvailableDatesResponse(dates=dates)
