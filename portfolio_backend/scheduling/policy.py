"""The operator's availability policy.

The policy is validated once, on construction, and is immutable afterwards.
Wire names are camelCase (``weeklySchedule``, ``slotDuration`` ...); Python code
uses the snake_case attribute names.
"""

import re
from datetime import date
from enum import IntEnum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, field_validator, model_validator
from pydantic.alias_generators import to_camel

from portfolio_backend.core import config
from portfolio_backend.core.errors import InvalidInputError

HHMM_PATTERN = re.compile(r'^([01][0-9]|2[0-3]):[0-5][0-9]$')
DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')

POLICY_BOUNDS = {
    'slot_duration': (15, 120, 'Slot duration must be between 15 and 120 minutes'),
    'buffer_between_slots': (0, 60, 'Buffer between slots must be between 0 and 60 minutes'),
    'min_lead_time': (0, 168, 'Minimum lead time must be between 0 and 168 hours'),
    'max_advance_booking': (1, 365, 'Maximum advance booking must be between 1 and 365 days'),
    'max_appointments_per_day': (1, 50, 'Maximum appointments per day must be between 1 and 50'),
}


class Weekday(IntEnum):
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @classmethod
    def of(cls, day: date) -> 'Weekday':
        # date.weekday() counts from Monday
        return cls((day.weekday() + 1) % 7)


def parse_hhmm(value: str) -> int:
    """Return minutes since midnight for a strict 24-hour ``HH:MM`` string."""
    if not HHMM_PATTERN.match(value):
        raise ValueError(f'"{value}" must be in HH:MM format (24-hour)')
    hours, minutes = value.split(':')
    return int(hours) * 60 + int(minutes)


def format_minutes(total_minutes: int) -> str:
    return f'{total_minutes // 60:02d}:{total_minutes % 60:02d}'


class _PolicyModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        frozen = True


class TimeWindow(_PolicyModel):
    start: str
    end: str

    @field_validator('start', 'end')
    @classmethod
    def validate_format(cls, value: str) -> str:
        parse_hhmm(value)
        return value

    @model_validator(mode='after')
    def validate_order(self) -> 'TimeWindow':
        if self.start_minutes >= self.end_minutes:
            raise ValueError(f'Time slot {self.start}-{self.end}: start time must be before end time')
        return self

    @property
    def start_minutes(self) -> int:
        return parse_hhmm(self.start)

    @property
    def end_minutes(self) -> int:
        return parse_hhmm(self.end)


class DaySchedule(_PolicyModel):
    day: Weekday
    available: bool = False
    slots: tuple[TimeWindow, ...] = ()


class AvailabilityPolicy(_PolicyModel):
    weekly_schedule: tuple[DaySchedule, ...]
    blackout_dates: tuple[str, ...] = ()
    slot_duration: int = 30
    buffer_between_slots: int = 15
    min_lead_time: int = 24
    max_advance_booking: int = 60
    max_appointments_per_day: int = 4
    timezone: str = config.DEFAULT_TIMEZONE

    @field_validator('weekly_schedule')
    @classmethod
    def validate_weekly_schedule(cls, value: tuple[DaySchedule, ...]) -> tuple[DaySchedule, ...]:
        if len(value) != len(Weekday) or any(entry.day != index for index, entry in enumerate(value)):
            raise ValueError('Weekly schedule must contain exactly 7 days (0-6) in order')
        return value

    @field_validator('blackout_dates')
    @classmethod
    def validate_blackout_dates(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for item in value:
            try:
                if not DATE_PATTERN.match(item):
                    raise ValueError
                date.fromisoformat(item)
            except ValueError:
                raise ValueError(f'Blackout date "{item}" must be in YYYY-MM-DD format') from None
        return tuple(sorted(set(value)))

    @field_validator(*POLICY_BOUNDS)
    @classmethod
    def validate_bounds(cls, value: int, info) -> int:
        low, high, message = POLICY_BOUNDS[info.field_name]
        if not low <= value <= high:
            raise ValueError(message)
        return value

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError, OSError):
            raise ValueError(f'Unknown timezone "{value}"') from None
        return value

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def day_schedule(self, weekday: Weekday) -> DaySchedule:
        return self.weekly_schedule[weekday]

    def is_blacked_out(self, day: date) -> bool:
        return day.isoformat() in self.blackout_dates


def default_policy() -> AvailabilityPolicy:
    weekday_windows = [TimeWindow(start='09:00', end='12:00'), TimeWindow(start='14:00', end='17:00')]
    friday_windows = [TimeWindow(start='09:00', end='12:00')]

    schedule = []
    for weekday in Weekday:
        if weekday in (Weekday.SUNDAY, Weekday.SATURDAY):
            schedule.append(DaySchedule(day=weekday, available=False))
        elif weekday == Weekday.FRIDAY:
            schedule.append(DaySchedule(day=weekday, available=True, slots=friday_windows))
        else:
            schedule.append(DaySchedule(day=weekday, available=True, slots=weekday_windows))

    return AvailabilityPolicy(weekly_schedule=schedule)


def merge_policy(current: AvailabilityPolicy, changes: dict) -> AvailabilityPolicy:
    """Apply a full or partial settings payload on top of ``current``.

    Keys may use the camelCase wire names or the snake_case field names. Unknown
    keys are rejected rather than ignored.
    """
    aliases = {}
    for field_name, field in AvailabilityPolicy.model_fields.items():
        alias = field.alias or field_name
        aliases[field_name] = alias
        aliases[alias] = alias

    unknown = sorted(key for key in changes if key not in aliases)
    if unknown:
        raise InvalidInputError('Unknown availability setting: ' + ', '.join(unknown))

    merged = current.model_dump(by_alias=True, mode='json')
    for key, value in changes.items():
        if value is not None:
            merged[aliases[key]] = value
    return AvailabilityPolicy.model_validate(merged)
