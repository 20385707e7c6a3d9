from datetime import date, datetime

from portfolio_backend.scheduling.date_gate import is_bookable
from portfolio_backend.scheduling.policy import AvailabilityPolicy, Weekday, format_minutes


def iterate_window_starts(start_minutes: int, end_minutes: int, duration: int, buffer: int):
    cursor = start_minutes
    while cursor + duration <= end_minutes:
        yield cursor
        cursor += duration + buffer


def generate_slots(day: date, policy: AvailabilityPolicy, now: datetime) -> list[str]:
    """Return the bookable ``HH:MM`` starts for ``day``.

    Windows are walked in policy order and the result is not re-sorted, so
    overlapping or out-of-order windows show up as authored.
    """
    if not is_bookable(day, policy, now):
        return []

    schedule = policy.day_schedule(Weekday.of(day))
    slots: list[str] = []
    for window in schedule.slots:
        for minutes in iterate_window_starts(
            window.start_minutes,
            window.end_minutes,
            policy.slot_duration,
            policy.buffer_between_slots,
        ):
            slots.append(format_minutes(minutes))

    return slots
