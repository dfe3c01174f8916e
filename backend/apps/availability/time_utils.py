"""
Date and time-range helpers shared by pattern validation and slot expansion.
"""
from datetime import datetime, time, timedelta, timezone as dt_timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.core.exceptions import ValidationError

WEEKDAY_CODES = ['Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun']


def weekday_code(day):
    """Return the Mon..Sun code for a date."""
    return WEEKDAY_CODES[day.weekday()]


def parse_time_of_day(value):
    """
    Parse an "HH:mm" string into a time.
    
    Raises:
        ValidationError: if the value is not a valid 24-hour time
    """
    if isinstance(value, time):
        return value
    try:
        hours, minutes = str(value).split(':')
        if len(hours) != 2 or len(minutes) != 2:
            raise ValueError(value)
        return time(int(hours), int(minutes))
    except (ValueError, TypeError):
        raise ValidationError(f"Invalid time of day '{value}', expected HH:mm")


def minutes_between(start, end):
    """Minutes from one time of day to a later one on the same day."""
    return (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)


def intervals_overlap(start_a, end_a, start_b, end_b):
    """Half-open interval overlap: touching endpoints do not overlap."""
    return start_a < end_b and start_b < end_a


def get_zone(timezone_name):
    try:
        return ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown timezone '{timezone_name}'")


def validate_timezone(timezone_name):
    """Return True if the name is a known IANA timezone."""
    try:
        get_zone(timezone_name)
        return True
    except ValidationError:
        return False


def localize(day, time_of_day, zone):
    """
    Attach a wall-clock date and time to a zone.
    
    Returns None when the wall time does not exist in that zone (it falls in
    a daylight-saving gap), detected by a round trip through UTC.
    """
    naive = datetime.combine(day, time_of_day)
    aware = naive.replace(tzinfo=zone)
    round_trip = aware.astimezone(dt_timezone.utc).astimezone(zone)
    if round_trip.replace(tzinfo=None) != naive:
        return None
    return aware


def to_utc(value):
    return value.astimezone(dt_timezone.utc)


def date_range(start_date, end_date):
    """Yield each date in [start_date, end_date)."""
    current = start_date
    while current < end_date:
        yield current
        current += timedelta(days=1)


def parse_day_ranges(ranges):
    """Parse a list of {"start", "end"} dicts into sorted (time, time) tuples."""
    parsed = []
    for item in ranges:
        if not isinstance(item, dict) or 'start' not in item or 'end' not in item:
            raise ValidationError("Each time range needs 'start' and 'end'")
        parsed.append((parse_time_of_day(item['start']), parse_time_of_day(item['end'])))
    return sorted(parsed)


def validate_weekly_schedule(weekly_schedule, duration_minutes):
    """
    Validate a weekly schedule mapping weekday codes to time ranges.
    
    Every range must have start < end, ranges within a day must not overlap,
    and the slot duration must fit at least once in the shortest range.
    
    Raises:
        ValidationError: describing the first problem found
    """
    if not isinstance(weekly_schedule, dict):
        raise ValidationError("Weekly schedule must be a mapping of weekday to time ranges")
    if not duration_minutes or duration_minutes <= 0:
        raise ValidationError("Duration must be a positive number of minutes")
    
    total_ranges = 0
    for code, ranges in weekly_schedule.items():
        if code not in WEEKDAY_CODES:
            raise ValidationError(f"Unknown weekday code '{code}'")
        if not isinstance(ranges, list):
            raise ValidationError(f"Time ranges for {code} must be a list")
        
        parsed = parse_day_ranges(ranges)
        previous_end = None
        for start, end in parsed:
            if start >= end:
                raise ValidationError(f"{code}: range start {start:%H:%M} must be before end {end:%H:%M}")
            if previous_end is not None and start < previous_end:
                raise ValidationError(f"{code}: time ranges overlap")
            if minutes_between(start, end) < duration_minutes:
                raise ValidationError(
                    f"{code}: range {start:%H:%M}-{end:%H:%M} is shorter than the {duration_minutes} minute slot"
                )
            previous_end = end
            total_ranges += 1
    
    if total_ranges == 0:
        raise ValidationError("Weekly schedule must contain at least one time range")
