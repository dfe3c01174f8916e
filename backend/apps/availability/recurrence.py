"""
Recurring booking series generation.

A recurring pattern turns one booked slot into a series of occurrences at the
same wall-clock time in the pattern's timezone.
"""
import calendar
from datetime import date, timedelta

from django.core.exceptions import ValidationError

from .time_utils import WEEKDAY_CODES, localize

MAX_OCCURRENCES = 365

RECURRENCE_TYPES = ['daily', 'weekly', 'monthly', 'custom']
RECURRENCE_END_TYPES = ['count', 'date']


def validate_recurrence_config(config, today=None):
    """
    Validate a recurrence configuration dict.
    
    Keys: type, interval, days_of_week, day_of_month, end_type, count, end_date.
    
    Raises:
        ValidationError: describing the first problem found
    """
    recurrence_type = config.get('type')
    if not recurrence_type:
        raise ValidationError("Recurrence type is required")
    if recurrence_type not in RECURRENCE_TYPES:
        raise ValidationError(f"Unsupported recurrence type '{recurrence_type}'")
    
    interval = config.get('interval')
    if not interval or interval < 1:
        raise ValidationError("Interval must be at least 1")
    
    end_type = config.get('end_type')
    if not end_type:
        raise ValidationError("End type is required")
    if end_type not in RECURRENCE_END_TYPES:
        raise ValidationError(f"Unsupported recurrence end type '{end_type}'")
    
    if end_type == 'count':
        count = config.get('count')
        if not count or count < 1:
            raise ValidationError("Count must be at least 1")
        if count > MAX_OCCURRENCES:
            raise ValidationError(f"Count cannot exceed {MAX_OCCURRENCES} occurrences")
    
    if end_type == 'date':
        end_date = config.get('end_date')
        if not end_date:
            raise ValidationError("End date is required")
        if today is not None and end_date < today:
            raise ValidationError("End date must be in the future")
    
    if recurrence_type == 'weekly':
        days = config.get('days_of_week') or []
        if not days:
            raise ValidationError("At least one day of the week is required for weekly recurrence")
        for code in days:
            if code not in WEEKDAY_CODES:
                raise ValidationError(f"Unknown weekday code '{code}'")
    
    if recurrence_type == 'monthly':
        day_of_month = config.get('day_of_month')
        if day_of_month and not 1 <= day_of_month <= 31:
            raise ValidationError("Day of month must be between 1 and 31")


def _add_months(day, months, day_of_month=None):
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    target = day_of_month or day.day
    return date(year, month, min(target, calendar.monthrange(year, month)[1]))


def _candidate_dates(first_date, config):
    """Yield occurrence dates after the first one, in ascending order."""
    recurrence_type = config['type']
    interval = config['interval']
    
    if recurrence_type in ('daily', 'custom'):
        current = first_date
        while True:
            current += timedelta(days=interval)
            yield current
    
    elif recurrence_type == 'weekly':
        weekdays = sorted(WEEKDAY_CODES.index(code) for code in config['days_of_week'])
        week_start = first_date - timedelta(days=first_date.weekday())
        while True:
            for weekday in weekdays:
                candidate = week_start + timedelta(days=weekday)
                if candidate > first_date:
                    yield candidate
            week_start += timedelta(weeks=interval)
    
    elif recurrence_type == 'monthly':
        step = 1
        while True:
            yield _add_months(first_date, interval * step, config.get('day_of_month'))
            step += 1


def generate_occurrences(first_start, duration, config, zone):
    """
    Generate (start, end) instants for a recurring series.
    
    The first occurrence is ``first_start`` itself. Later occurrences keep the
    first occurrence's wall-clock time in ``zone``; dates where that wall time
    does not exist are skipped. The series stops at the configured count or
    end date, and never exceeds MAX_OCCURRENCES.
    """
    local_first = first_start.astimezone(zone)
    wall_time = local_first.time().replace(tzinfo=None)
    occurrences = [(first_start, first_start + duration)]
    
    end_type = config['end_type']
    limit = min(config.get('count') or MAX_OCCURRENCES, MAX_OCCURRENCES) if end_type == 'count' else MAX_OCCURRENCES
    end_date = config.get('end_date') if end_type == 'date' else None
    
    for candidate in _candidate_dates(local_first.date(), config):
        if len(occurrences) >= limit:
            break
        if end_date and candidate > end_date:
            break
        start = localize(candidate, wall_time, zone)
        if start is None:
            continue
        occurrences.append((start, start + duration))
    
    return occurrences
