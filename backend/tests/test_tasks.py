from datetime import timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone

from apps.bookings.models import Booking
from apps.bookings.tasks import auto_complete_bookings, delete_remote_meeting, provision_booking_meeting
from apps.integrations.base import MeetingResult, TokenResult
from apps.integrations.models import OAuthConnection
from apps.integrations.tasks import refresh_expiring_connections

from .utils.factories import make_booking, make_connection, make_pattern, utc

pytestmark = pytest.mark.django_db


def test_auto_complete_task(pattern):
    booking = make_booking(pattern, start_time=timezone.now() - timedelta(hours=2))
    
    result = auto_complete_bookings.delay()
    
    assert result.get() == "Completed 1 bookings"
    assert Booking.objects.get(id=booking.id).status == 'completed'


def test_provision_task_retries_failed_booking(admin_user):
    pattern = make_pattern(admin_user, meeting_type='zoom', meeting_config={})
    booking = make_booking(pattern, start_time=utc(2030, 1, 7, 10), meeting_status='failed')
    make_connection(admin_user)
    meeting = MeetingResult(meeting_url='https://zoom.us/j/9', meeting_id='9', provider='zoom')
    
    with patch('apps.integrations.zoom_client.ZoomProvider.create_meeting', return_value=meeting):
        message = provision_booking_meeting.delay(str(booking.id)).get()
    
    assert message.endswith('provisioned')
    assert Booking.objects.get(id=booking.id).meeting_url == 'https://zoom.us/j/9'


def test_provision_task_reports_failure(admin_user):
    pattern = make_pattern(admin_user, meeting_type='zoom', meeting_config={})
    booking = make_booking(pattern, start_time=utc(2030, 1, 7, 10))
    
    message = provision_booking_meeting.delay(str(booking.id)).get()
    
    assert message.startswith('Provisioning failed')
    assert Booking.objects.get(id=booking.id).meeting_status == 'failed'


def test_delete_remote_meeting_task(admin_user):
    pattern = make_pattern(admin_user, meeting_type='zoom', meeting_config={})
    booking = make_booking(pattern, status='cancelled', provider_meeting_id='9')
    make_connection(admin_user)
    
    with patch('apps.integrations.zoom_client.ZoomProvider.delete_meeting') as delete_meeting:
        message = delete_remote_meeting.delay(str(booking.id)).get()
    
    delete_meeting.assert_called_once_with('access-1', '9')
    assert message.startswith('Deleted')


def test_refresh_expiring_connections(admin_user, member_user):
    expiring = make_connection(admin_user, expires_at=timezone.now() + timedelta(minutes=3))
    make_connection(member_user, expires_at=timezone.now() + timedelta(hours=2))
    tokens = TokenResult(access_token='access-2', expires_at=timezone.now() + timedelta(hours=1))
    
    with patch('apps.integrations.zoom_client.ZoomProvider.refresh_token', return_value=tokens) as refresh:
        message = refresh_expiring_connections.delay().get()
    
    assert message == "Refreshed 1 connections, 0 failed"
    refresh.assert_called_once_with('refresh-1')
    assert OAuthConnection.objects.get(id=expiring.id).access_token == 'access-2'
