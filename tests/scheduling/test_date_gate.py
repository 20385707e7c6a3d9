from datetime import date, datetime, timezone

import pytest

from conftest import build_policy
from portfolio_backend.scheduling.clock import local_datetime
from portfolio_backend.scheduling.date_gate import available_dates, is_bookable

MONDAY = date(2026, 1, 5)


@pytest.mark.parametrize(
    ('day', 'overrides', 'expected'),
    [
        (MONDAY, {}, True),
        (date(2025, 12, 29), {}, False),
        (date(2026, 1, 6), {}, False),
        (MONDAY, {'blackout_dates': ['2026-01-05']}, False),
        (MONDAY, {'min_lead_time': 168}, False),
        (date(2026, 1, 12), {'min_lead_time': 168}, True),
        (MONDAY, {'max_advance_booking': 3}, False),
        (MONDAY, {'max_advance_booking': 4}, True),
        (date(2026, 3, 9), {'max_advance_booking': 60}, False),
    ],
)
def test_is_bookable_for_calendar_days(now: datetime, day: date, overrides: dict, expected: bool) -> None:
    assert is_bookable(day, build_policy(**overrides), now) is expected


def test_instant_is_held_to_exact_lead_time(now: datetime) -> None:
    start = local_datetime(MONDAY, '09:00', build_policy())

    assert is_bookable(start, build_policy(min_lead_time=96), now) is True
    assert is_bookable(start, build_policy(min_lead_time=100), now) is False
    # the day itself is still open later that evening
    assert is_bookable(MONDAY, build_policy(min_lead_time=100), now) is True


def test_instant_in_the_past_is_rejected() -> None:
    policy = build_policy()
    later = datetime(2026, 1, 5, 15, 0, tzinfo=timezone.utc)

    assert is_bookable(local_datetime(MONDAY, '09:00', policy), policy, later) is False
    assert is_bookable(local_datetime(MONDAY, '11:00', policy), policy, later) is True


def test_weekday_is_resolved_in_policy_timezone(now: datetime) -> None:
    policy = build_policy(timezone='Asia/Tokyo')
    # Sunday 20:00 UTC is already Monday morning in Tokyo
    instant = datetime(2026, 1, 4, 20, 0, tzinfo=timezone.utc)

    assert is_bookable(instant, policy, now) is True


def test_naive_now_is_treated_as_utc() -> None:
    assert is_bookable(MONDAY, build_policy(), datetime(2026, 1, 1, 12, 0)) is True


def test_available_dates_lists_open_mondays(now: datetime) -> None:
    dates = available_dates(date(2026, 1, 1), date(2026, 1, 31), build_policy(blackout_dates=['2026-01-19']), now)

    assert dates == [date(2026, 1, 5), date(2026, 1, 12), date(2026, 1, 26)]


def test_available_dates_rejects_inverted_or_oversized_ranges(now: datetime) -> None:
    with pytest.raises(ValueError):
        available_dates(date(2026, 2, 1), date(2026, 1, 1), build_policy(), now)
    with pytest.raises(ValueError):
        available_dates(date(2026, 1, 1), date(2027, 1, 2), build_policy(), now)
