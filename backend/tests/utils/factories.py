"""
Helpers for building users, patterns, bookings and connections in tests.
"""
from datetime import date, datetime, timedelta, timezone as dt_timezone
import itertools

from apps.availability.models import AvailabilityPattern
from apps.bookings.models import Booking
from apps.integrations.models import OAuthConnection
from apps.users.models import User

_sequence = itertools.count(1)

# Tuesday; every test pattern starts after this instant
NOW = datetime(2030, 1, 1, 0, 0, tzinfo=dt_timezone.utc)
MONDAY = date(2030, 1, 7)
WEDNESDAY = date(2030, 1, 9)

WEEKDAY_MORNINGS = {
    'Mon': [{'start': '09:00', 'end': '12:00'}],
    'Wed': [{'start': '09:00', 'end': '12:00'}],
}


def utc(year, month, day, hour=0, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=dt_timezone.utc)


def make_user(role=User.ROLE_MEMBER, email=None, **extra):
    email = email or f"user{next(_sequence)}@example.com"
    return User.objects.create_user(email=email, password='password123', role=role, **extra)


def make_admin(**extra):
    return make_user(role=User.ROLE_ADMIN, **extra)


def make_pattern(owner, **overrides):
    fields = {
        'title': 'Office hours',
        'duration_minutes': 60,
        'weekly_schedule': WEEKDAY_MORNINGS,
        'start_date': date(2030, 1, 1),
        'timezone_name': 'UTC',
        'meeting_type': 'manual_link',
        'meeting_config': {'manualValue': 'https://meet.example.com/office-hours'},
    }
    fields.update(overrides)
    return AvailabilityPattern.objects.create(owner=owner, **fields)


def make_booking(pattern=None, owner=None, member=None, start_time=None, duration=60, **overrides):
    start_time = start_time or utc(2030, 1, 7, 10)
    owner = owner or pattern.owner
    fields = {
        'pattern': pattern,
        'owner': owner,
        'member': member,
        'guest_name': '' if member else 'Grace Guest',
        'guest_email': '' if member else 'grace@example.com',
        'title': 'Catch up',
        'start_time': start_time,
        'end_time': start_time + timedelta(minutes=duration),
        'meeting_type': pattern.meeting_type if pattern else 'manual_link',
        'meeting_config': dict(pattern.meeting_config) if pattern else {},
    }
    fields.update(overrides)
    return Booking.objects.create(**fields)


def make_connection(user, provider='zoom', expires_at=None, refresh_token='refresh-1', **overrides):
    fields = {
        'access_token': 'access-1',
        'refresh_token': refresh_token,
        'token_expires_at': expires_at,
        'is_active': True,
    }
    fields.update(overrides)
    return OAuthConnection.objects.create(user=user, provider=provider, **fields)
