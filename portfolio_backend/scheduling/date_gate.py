"""Decide whether a day, or a concrete start instant, is open for booking."""

from datetime import date, datetime, timedelta

from portfolio_backend.scheduling.clock import day_bounds, ensure_aware
from portfolio_backend.scheduling.policy import AvailabilityPolicy, Weekday

MAX_DATE_RANGE_DAYS = 366


def is_bookable(when: date | datetime, policy: AvailabilityPolicy, now: datetime) -> bool:
    """Apply the past, lead-time, advance-window, blackout and weekday rules.

    ``when`` may be a calendar date or an aware start instant. A date passes the
    time rules when any part of that day (in the policy time zone) falls inside
    ``[now + min_lead_time, now + max_advance_booking]``; an instant must itself
    fall inside that range.
    """
    now = ensure_aware(now)
    earliest_allowed = now + timedelta(hours=policy.min_lead_time)
    latest_allowed = now + timedelta(days=policy.max_advance_booking)

    if isinstance(when, datetime):
        instant = ensure_aware(when)
        day = instant.astimezone(policy.zone).date()
        if instant < now or instant < earliest_allowed or instant > latest_allowed:
            return False
    else:
        day = when
        day_start, day_end = day_bounds(day, policy)
        if day_end <= now or day_end <= earliest_allowed or day_start > latest_allowed:
            return False

    if policy.is_blacked_out(day):
        return False

    return policy.day_schedule(Weekday.of(day)).available


def available_dates(start: date, end: date, policy: AvailabilityPolicy, now: datetime) -> list[date]:
    if end < start:
        raise ValueError('End date must not be before start date.')
    if (end - start).days >= MAX_DATE_RANGE_DAYS:
        raise ValueError(f'Date range must be at most {MAX_DATE_RANGE_DAYS} days.')

    dates = []
    current = start
    while current <= end:
        if is_bookable(current, policy, now):
            dates.append(current)
        current += timedelta(days=1)
    return dates
