from datetime import date, datetime, time, timedelta, timezone
from typing import Callable

from portfolio_backend.scheduling.policy import AvailabilityPolicy, parse_hhmm

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_clock() -> Clock:
    return utc_now


def ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_storage(value: datetime) -> datetime:
    """Convert an aware instant to the naive UTC form stored in the database."""
    return ensure_aware(value).astimezone(timezone.utc).replace(tzinfo=None)


def from_storage(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc)


def local_datetime(day: date, hhmm: str, policy: AvailabilityPolicy) -> datetime:
    minutes = parse_hhmm(hhmm)
    return datetime.combine(day, time(minutes // 60, minutes % 60), tzinfo=policy.zone)


def day_bounds(day: date, policy: AvailabilityPolicy) -> tuple[datetime, datetime]:
    """Return the ``[start, end)`` instants of ``day`` in the policy's time zone."""
    start = datetime.combine(day, time(0, 0), tzinfo=policy.zone)
    end = datetime.combine(day + timedelta(days=1), time(0, 0), tzinfo=policy.zone)
    return start, end
