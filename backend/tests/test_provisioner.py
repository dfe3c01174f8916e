from datetime import date, timedelta
from unittest.mock import Mock

import pytest

from apps.bookings.models import Booking
from apps.bookings.utils import ROLE_ADMIN, handle_booking_cancellation
from apps.integrations.base import MeetingResult, TokenResult
from apps.integrations.exceptions import MeetingProviderError, NoActiveConnection, TokenRefreshFailed
from apps.integrations.models import IntegrationLog, OAuthConnection
from apps.integrations.provisioner import MeetingProvisioner

from .utils.factories import NOW, make_booking, make_connection, make_pattern, utc

pytestmark = pytest.mark.django_db


def fake_provider(name='zoom'):
    provider = Mock()
    provider.name = name
    provider.find_meeting.return_value = None
    provider.create_meeting.side_effect = lambda token, details: MeetingResult(
        meeting_url=f'https://{name}.example.com/j/{details.request_key}',
        meeting_id=f'meeting-{details.request_key}',
        provider=name
    )
    return provider


@pytest.fixture
def zoom_pattern(admin_user):
    return make_pattern(admin_user, meeting_type='zoom', meeting_config={})


@pytest.fixture
def zoom_booking(zoom_pattern):
    return make_booking(zoom_pattern, start_time=utc(2030, 1, 7, 10))


def provisioner_for(provider, now=NOW):
    return MeetingProvisioner(providers={provider.name: provider}, clock=lambda: now)


class TestResolveAccessToken:
    
    def test_fresh_token_is_used_without_refresh(self, admin_user):
        make_connection(admin_user, expires_at=NOW + timedelta(minutes=10))
        provider = fake_provider()
        
        token = provisioner_for(provider).resolve_access_token(admin_user, 'zoom')
        
        assert token == 'access-1'
        provider.refresh_token.assert_not_called()
    
    def test_token_inside_margin_is_refreshed_and_stored(self, admin_user):
        make_connection(admin_user, expires_at=NOW + timedelta(minutes=2))
        provider = fake_provider()
        provider.refresh_token.return_value = TokenResult(
            access_token='access-2', refresh_token='', expires_at=NOW + timedelta(hours=1)
        )
        
        token = provisioner_for(provider).resolve_access_token(admin_user, 'zoom')
        
        assert token == 'access-2'
        provider.refresh_token.assert_called_once_with('refresh-1')
        stored = OAuthConnection.objects.get(user=admin_user, provider='zoom')
        assert stored.access_token == 'access-2'
        assert stored.refresh_token == 'refresh-1'
        assert stored.token_expires_at == NOW + timedelta(hours=1)
    
    def test_token_without_expiry_is_never_refreshed(self, admin_user):
        make_connection(admin_user, expires_at=None)
        provider = fake_provider()
        assert provisioner_for(provider).resolve_access_token(admin_user, 'zoom') == 'access-1'
        provider.refresh_token.assert_not_called()
    
    def test_missing_connection(self, admin_user):
        with pytest.raises(NoActiveConnection):
            provisioner_for(fake_provider()).resolve_access_token(admin_user, 'zoom')
    
    def test_inactive_connection_counts_as_missing(self, admin_user):
        make_connection(admin_user, is_active=False)
        with pytest.raises(NoActiveConnection):
            provisioner_for(fake_provider()).resolve_access_token(admin_user, 'zoom')
    
    def test_expiring_token_without_refresh_token(self, admin_user):
        make_connection(admin_user, expires_at=NOW + timedelta(minutes=1), refresh_token='')
        with pytest.raises(TokenRefreshFailed) as excinfo:
            provisioner_for(fake_provider()).resolve_access_token(admin_user, 'zoom')
        assert excinfo.value.reason == 'no_refresh_token'
    
    def test_refresh_failure(self, admin_user):
        make_connection(admin_user, expires_at=NOW + timedelta(minutes=1))
        provider = fake_provider()
        provider.refresh_token.side_effect = MeetingProviderError('zoom', 'invalid_grant', 'Invalid refresh token', 400)
        
        with pytest.raises(TokenRefreshFailed):
            provisioner_for(provider).resolve_access_token(admin_user, 'zoom')
        
        assert OAuthConnection.objects.get(user=admin_user).access_token == 'access-1'
        assert IntegrationLog.objects.filter(user=admin_user, log_type='token_refreshed', success=False).exists()
    
    def test_lost_refresh_race_uses_winning_token(self, admin_user):
        connection = make_connection(admin_user, expires_at=NOW + timedelta(minutes=1))
        provider = fake_provider()
        
        def refresh_after_competitor(refresh_token):
            OAuthConnection.objects.filter(id=connection.id).update(
                access_token='access-winner', token_expires_at=NOW + timedelta(hours=1)
            )
            return TokenResult(access_token='access-loser', expires_at=NOW + timedelta(hours=1, seconds=5))
        
        provider.refresh_token.side_effect = refresh_after_competitor
        
        token = provisioner_for(provider).resolve_access_token(admin_user, 'zoom')
        
        assert token == 'access-winner'
        assert OAuthConnection.objects.get(id=connection.id).access_token == 'access-winner'
    
    def test_refresh_error_after_competitor_refreshed(self, admin_user):
        connection = make_connection(admin_user, expires_at=NOW + timedelta(minutes=1))
        provider = fake_provider()
        
        def competitor_rotated(refresh_token):
            OAuthConnection.objects.filter(id=connection.id).update(
                access_token='access-winner', token_expires_at=NOW + timedelta(hours=1)
            )
            raise MeetingProviderError('zoom', 'invalid_grant', 'Refresh token already used', 400)
        
        provider.refresh_token.side_effect = competitor_rotated
        
        assert provisioner_for(provider).resolve_access_token(admin_user, 'zoom') == 'access-winner'


class TestProvisionMeeting:
    
    def test_refreshed_token_is_stored_before_meeting_call(self, admin_user, zoom_booking):
        make_connection(admin_user, expires_at=NOW + timedelta(minutes=3))
        provider = fake_provider()
        provider.refresh_token.return_value = TokenResult(access_token='access-2', expires_at=NOW + timedelta(hours=1))
        seen = {}
        
        def create(token, details):
            seen['stored_token'] = OAuthConnection.objects.get(user=admin_user).access_token
            seen['token'] = token
            return MeetingResult(meeting_url='https://zoom.example.com/j/1', meeting_id='1', provider='zoom')
        
        provider.create_meeting.side_effect = create
        
        result = provisioner_for(provider).provision_meeting(zoom_booking)
        
        assert seen == {'stored_token': 'access-2', 'token': 'access-2'}
        assert result.meeting_url == 'https://zoom.example.com/j/1'
        booking = Booking.objects.get(id=zoom_booking.id)
        assert booking.meeting_status == 'provisioned'
        assert booking.provider_meeting_id == '1'
    
    def test_meeting_details_come_from_booking(self, admin_user, zoom_booking):
        make_connection(admin_user)
        provider = fake_provider()
        
        provisioner_for(provider).provision_meeting(zoom_booking)
        
        token, details = provider.create_meeting.call_args.args
        assert token == 'access-1'
        assert details.title == zoom_booking.title
        assert details.start_time == utc(2030, 1, 7, 10)
        assert details.duration_minutes == 60
        assert details.attendees == ['grace@example.com', admin_user.email]
        assert details.request_key == Booking.objects.get(id=zoom_booking.id).provisioning_key
    
    def test_provider_error_marks_booking_failed(self, admin_user, zoom_booking):
        make_connection(admin_user)
        provider = fake_provider()
        provider.create_meeting.side_effect = MeetingProviderError('zoom', '124', 'Invalid access token', 401)
        
        with pytest.raises(MeetingProviderError):
            provisioner_for(provider).provision_meeting(zoom_booking)
        
        booking = Booking.objects.get(id=zoom_booking.id)
        assert booking.status == 'upcoming'
        assert booking.meeting_status == 'failed'
        assert booking.meeting_url == ''
        assert 'Invalid access token' in booking.meeting_error
    
    def test_retry_recovers_meeting_from_timed_out_attempt(self, admin_user, zoom_booking):
        make_connection(admin_user)
        provider = fake_provider()
        provider.create_meeting.side_effect = MeetingProviderError('zoom', 'timeout', 'Request timed out')
        provisioner = provisioner_for(provider)
        
        with pytest.raises(MeetingProviderError):
            provisioner.provision_meeting(zoom_booking)
        
        timed_out = Booking.objects.get(id=zoom_booking.id)
        key = timed_out.provisioning_key
        assert key
        assert timed_out.meeting_status == 'pending'
        assert 'timeout' in timed_out.meeting_error
        provider.find_meeting.return_value = MeetingResult(
            meeting_url='https://zoom.example.com/j/77', meeting_id='77', provider='zoom'
        )
        
        booking = Booking.objects.get(id=zoom_booking.id)
        result = provisioner.provision_meeting(booking)
        
        assert result.meeting_id == '77'
        assert provider.create_meeting.call_count == 1
        assert provider.find_meeting.call_args.args[1].request_key == key
        assert Booking.objects.get(id=zoom_booking.id).meeting_status == 'provisioned'
    
    def test_provisioned_booking_is_not_created_again(self, admin_user, zoom_booking):
        make_connection(admin_user)
        provider = fake_provider()
        provisioner = provisioner_for(provider)
        
        first = provisioner.provision_meeting(zoom_booking)
        second = provisioner.provision_meeting(Booking.objects.get(id=zoom_booking.id))
        
        assert second.meeting_url == first.meeting_url
        assert provider.create_meeting.call_count == 1
    
    def test_manual_link_needs_no_connection(self, pattern):
        booking = make_booking(pattern)
        result = MeetingProvisioner().provision_meeting(booking)
        assert result.provider == 'manual'
        assert booking.meeting_url == 'https://meet.example.com/office-hours'


class TestCancelWithRemoteMeeting:
    
    def test_cancel_succeeds_when_remote_delete_fails(self, admin_user, zoom_booking):
        make_connection(admin_user)
        zoom_booking.provider_meeting_id = '55'
        zoom_booking.meeting_status = 'provisioned'
        zoom_booking.save()
        provider = fake_provider()
        provider.delete_meeting.side_effect = MeetingProviderError('zoom', 'network_error', 'Connection reset')
        
        booking, remote_deleted = handle_booking_cancellation(
            zoom_booking.id, admin_user, ROLE_ADMIN, provisioner=provisioner_for(provider)
        )
        
        assert remote_deleted is False
        assert Booking.objects.get(id=booking.id).status == 'cancelled'
        assert IntegrationLog.objects.filter(log_type='meeting_deleted', success=False).exists()
    
    def test_cancel_deletes_remote_meeting(self, admin_user, zoom_booking):
        make_connection(admin_user)
        zoom_booking.provider_meeting_id = '55'
        zoom_booking.save()
        provider = fake_provider()
        
        _, remote_deleted = handle_booking_cancellation(
            zoom_booking.id, admin_user, ROLE_ADMIN, provisioner=provisioner_for(provider)
        )
        
        assert remote_deleted is True
        provider.delete_meeting.assert_called_once_with('access-1', '55')
    
    def test_cancel_without_connection_still_cancels(self, admin_user, zoom_booking):
        zoom_booking.provider_meeting_id = '55'
        zoom_booking.save()
        
        booking, remote_deleted = handle_booking_cancellation(
            zoom_booking.id, admin_user, ROLE_ADMIN, provisioner=provisioner_for(fake_provider())
        )
        
        assert remote_deleted is False
        assert booking.status == 'cancelled'


def test_update_meeting_skips_unprovisioned_bookings(zoom_booking):
    provider = fake_provider()
    assert provisioner_for(provider).update_meeting(zoom_booking, utc(2030, 1, 9, 9), utc(2030, 1, 9, 10)) is False
    provider.update_meeting.assert_not_called()


def test_busy_intervals_are_cached(admin_user):
    make_connection(admin_user, provider='google')
    provider = fake_provider('google')
    provider.get_busy_intervals.return_value = [(utc(2030, 1, 7, 10), utc(2030, 1, 7, 11))]
    provisioner = provisioner_for(provider)
    
    first = provisioner.get_busy_intervals(admin_user, date(2030, 1, 7), date(2030, 1, 8))
    second = provisioner.get_busy_intervals(admin_user, date(2030, 1, 7), date(2030, 1, 8))
    
    assert first == second == [(utc(2030, 1, 7, 10), utc(2030, 1, 7, 11))]
    provider.get_busy_intervals.assert_called_once()
    log = IntegrationLog.objects.get(log_type='calendar_busy_check')
    assert log.success is True
    assert log.provider == 'google'


def test_busy_interval_failure_is_logged_and_raised(admin_user):
    make_connection(admin_user, provider='google')
    provider = fake_provider('google')
    provider.get_busy_intervals.side_effect = MeetingProviderError('google', 'http_error', 'Backend Error', 503)

    with pytest.raises(MeetingProviderError):
        provisioner_for(provider).get_busy_intervals(admin_user, date(2030, 1, 7), date(2030, 1, 8))

    log = IntegrationLog.objects.get(log_type='calendar_busy_check')
    assert log.success is False
    assert log.details['status_code'] == 503


def test_disconnect_revokes_and_deactivates(admin_user):
    make_connection(admin_user)
    provider = fake_provider()
    provider.revoke.side_effect = MeetingProviderError('zoom', 'network_error', 'unreachable')
    provisioner = provisioner_for(provider)
    
    assert provisioner.disconnect(admin_user, 'zoom') is True
    assert not OAuthConnection.objects.get(user=admin_user).is_active
    assert provisioner.disconnect(admin_user, 'zoom') is False
