from datetime import date, timedelta
from zoneinfo import ZoneInfo

import pytest
from django.core.exceptions import ValidationError

from apps.availability.recurrence import MAX_OCCURRENCES, generate_occurrences, validate_recurrence_config

from .utils.factories import utc

HOUR = timedelta(hours=1)


def config(**overrides):
    values = {
        'type': 'weekly',
        'interval': 1,
        'days_of_week': ['Mon'],
        'day_of_month': None,
        'end_type': 'count',
        'count': 3,
        'end_date': None,
    }
    values.update(overrides)
    return values


def test_weekly_series_uses_days_of_week():
    occurrences = generate_occurrences(
        utc(2030, 1, 7, 10), HOUR, config(days_of_week=['Mon', 'Wed'], count=4), ZoneInfo('UTC')
    )
    assert [start for start, _ in occurrences] == [
        utc(2030, 1, 7, 10), utc(2030, 1, 9, 10), utc(2030, 1, 14, 10), utc(2030, 1, 16, 10)
    ]
    assert all(end - start == HOUR for start, end in occurrences)


def test_daily_series_with_interval():
    occurrences = generate_occurrences(utc(2030, 1, 7, 10), HOUR, config(type='daily', interval=2), ZoneInfo('UTC'))
    assert [start.day for start, _ in occurrences] == [7, 9, 11]


def test_monthly_series_clamps_to_month_end():
    occurrences = generate_occurrences(
        utc(2030, 1, 31, 10), HOUR, config(type='monthly', count=3), ZoneInfo('UTC')
    )
    assert [start.date() for start, _ in occurrences] == [date(2030, 1, 31), date(2030, 2, 28), date(2030, 3, 31)]


def test_series_stops_at_end_date():
    occurrences = generate_occurrences(
        utc(2030, 1, 7, 10), HOUR, config(end_type='date', count=None, end_date=date(2030, 1, 21)), ZoneInfo('UTC')
    )
    assert len(occurrences) == 3


def test_series_keeps_wall_clock_time_across_dst():
    zone = ZoneInfo('Europe/Berlin')
    # Monday 10:00 CET, the week before clocks move forward
    occurrences = generate_occurrences(utc(2030, 3, 25, 9), HOUR, config(count=2), zone)
    assert [start.astimezone(zone).hour for start, _ in occurrences] == [10, 10]
    assert occurrences[1][0] - occurrences[0][0] == timedelta(days=7, hours=-1)


def test_series_is_capped():
    occurrences = generate_occurrences(
        utc(2030, 1, 7, 10), HOUR, config(type='daily', end_type='date', count=None, end_date=date(2035, 1, 1)),
        ZoneInfo('UTC')
    )
    assert len(occurrences) == MAX_OCCURRENCES


class TestValidateRecurrenceConfig:
    
    def test_valid(self):
        validate_recurrence_config(config())
    
    @pytest.mark.parametrize('overrides, message', [
        ({'type': 'yearly'}, 'Unsupported recurrence type'),
        ({'interval': 0}, 'Interval'),
        ({'count': MAX_OCCURRENCES + 1}, 'cannot exceed'),
        ({'days_of_week': []}, 'day of the week'),
        ({'end_type': 'date', 'end_date': None}, 'End date is required'),
    ])
    def test_invalid(self, overrides, message):
        with pytest.raises(ValidationError, match=message):
            validate_recurrence_config(config(**overrides))
    
    def test_end_date_in_past(self):
        with pytest.raises(ValidationError, match='future'):
            validate_recurrence_config(
                config(end_type='date', end_date=date(2029, 1, 1)), today=date(2030, 1, 1)
            )
