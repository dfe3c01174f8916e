from unittest.mock import patch

import pytest
from django.urls import reverse

from apps.bookings.models import Booking
from apps.integrations.base import TokenResult
from apps.integrations.models import OAuthConnection

from .utils.factories import make_booking, make_user, utc

pytestmark = pytest.mark.django_db

MONDAY_10 = '2030-01-07T10:00:00Z'


def slots_url(pattern):
    return reverse('availability:pattern-slots', args=[pattern.id])


class TestPatternViews:
    
    def test_admin_creates_pattern(self, api_client, admin_user):
        api_client.force_authenticate(admin_user)
        response = api_client.post(reverse('availability:pattern-list'), {
            'title': 'Mentoring',
            'duration_minutes': 30,
            'weekly_schedule': {'Tue': [{'start': '14:00', 'end': '16:00'}]},
            'start_date': '2030-01-01',
            'timezone_name': 'Europe/Berlin',
            'meeting_type': 'manual_link',
            'meeting_config': {'manualValue': 'https://meet.example.com/mentoring'},
        }, format='json')
        
        assert response.status_code == 201
        assert response.data['owner'] == admin_user.id
    
    def test_invalid_schedule_is_rejected(self, api_client, admin_user):
        api_client.force_authenticate(admin_user)
        response = api_client.post(reverse('availability:pattern-list'), {
            'title': 'Broken',
            'duration_minutes': 60,
            'weekly_schedule': {'Tue': [{'start': '14:00', 'end': '14:30'}]},
            'start_date': '2030-01-01',
            'meeting_type': 'location',
            'meeting_config': {'manualValue': '1 Main St'},
        }, format='json')
        
        assert response.status_code == 400
        assert 'weekly_schedule' in response.data
    
    def test_members_cannot_create_patterns(self, api_client, member_user):
        api_client.force_authenticate(member_user)
        response = api_client.post(reverse('availability:pattern-list'), {}, format='json')
        assert response.status_code == 403
    
    def test_slots_are_public(self, api_client, pattern):
        make_booking(pattern)
        
        response = api_client.get(slots_url(pattern), {'start': '2030-01-07', 'end': '2030-01-14'})
        
        assert response.status_code == 200
        assert response.data['total_slots'] == 6
        blocked = [slot for slot in response.data['slots'] if not slot['bookable']]
        assert [slot['start_time'] for slot in blocked] == ['2030-01-07T10:00:00+00:00']
        assert response.data['calendar_checked'] is False
    
    def test_slot_window_is_limited(self, api_client, pattern):
        response = api_client.get(slots_url(pattern), {'start': '2030-01-01', 'end': '2031-01-01'})
        assert response.status_code == 400
    
    def test_calendar_check_without_connection_is_skipped(self, api_client, pattern):
        response = api_client.get(slots_url(pattern), {'start': '2030-01-07', 'end': '2030-01-14', 'include_calendar': 'true'})
        assert response.status_code == 200
        assert response.data['calendar_checked'] is False


class TestBookingViews:
    
    def test_guest_books_slot(self, api_client, pattern):
        response = api_client.post(reverse('bookings:booking-create'), {
            'pattern_id': str(pattern.id),
            'start_time': MONDAY_10,
            'guest_name': 'Grace Guest',
            'guest_email': 'grace@example.com',
        }, format='json')
        
        assert response.status_code == 201
        assert len(response.data['bookings']) == 1
        assert response.data['bookings'][0]['meeting_url'] == 'https://meet.example.com/office-hours'
        assert response.data['meeting_errors'] == []
    
    def test_double_booking_returns_conflict(self, api_client, pattern):
        make_booking(pattern)
        response = api_client.post(reverse('bookings:booking-create'), {
            'pattern_id': str(pattern.id),
            'start_time': MONDAY_10,
            'guest_name': 'Second Guest',
            'guest_email': 'second@example.com',
        }, format='json')
        
        assert response.status_code == 409
        assert response.data['code'] == 'slot_already_booked'
    
    def test_unknown_pattern_returns_not_found(self, api_client):
        response = api_client.post(reverse('bookings:booking-create'), {
            'pattern_id': '00000000-0000-4000-8000-000000000000',
            'start_time': MONDAY_10,
            'guest_name': 'Grace Guest',
            'guest_email': 'grace@example.com',
        }, format='json')
        assert response.status_code == 404
    
    def test_member_lists_own_bookings(self, api_client, pattern, member_user):
        make_booking(pattern, member=member_user)
        make_booking(pattern, member=make_user(), start_time=utc(2030, 1, 7, 11))
        api_client.force_authenticate(member_user)
        
        response = api_client.get(reverse('bookings:booking-list'))
        
        assert response.status_code == 200
        assert response.data['count'] == 1
    
    def test_reschedule(self, api_client, pattern, admin_user):
        booking = make_booking(pattern)
        api_client.force_authenticate(admin_user)
        
        response = api_client.post(
            reverse('bookings:booking-reschedule', args=[booking.id]),
            {'start_time': '2030-01-09T11:00:00Z'}, format='json'
        )
        
        assert response.status_code == 200
        assert response.data['start_time'].startswith('2030-01-09T11:00:00')
    
    def test_member_cannot_cancel_someone_elses_booking(self, api_client, pattern, member_user):
        booking = make_booking(pattern, member=make_user())
        api_client.force_authenticate(member_user)
        
        response = api_client.post(reverse('bookings:booking-cancel', args=[booking.id]), {}, format='json')
        
        assert response.status_code == 403
        assert Booking.objects.get(id=booking.id).status == 'upcoming'
    
    def test_cancel_then_complete_is_rejected(self, api_client, pattern, admin_user):
        booking = make_booking(pattern)
        api_client.force_authenticate(admin_user)
        
        response = api_client.post(reverse('bookings:booking-cancel', args=[booking.id]), {'reason': 'Conflict'}, format='json')
        assert response.status_code == 200
        assert response.data['status'] == 'cancelled'
        assert response.data['remote_meeting_deleted'] is True
        
        response = api_client.post(reverse('bookings:booking-complete', args=[booking.id]))
        assert response.status_code == 400
        assert response.data['code'] == 'invalid_status_transition'
    
    def test_audit_trail(self, api_client, pattern, admin_user):
        booking = make_booking(pattern)
        api_client.force_authenticate(admin_user)
        api_client.post(reverse('bookings:booking-cancel', args=[booking.id]), {}, format='json')
        
        response = api_client.get(reverse('bookings:booking-audit', args=[booking.id]))
        
        assert response.status_code == 200
        assert [entry['action'] for entry in response.data['results']] == ['booking_cancelled']


class TestIntegrationViews:
    
    def test_oauth_round_trip(self, api_client, admin_user):
        api_client.force_authenticate(admin_user)
        
        initiate = api_client.post(reverse('integrations:oauth-initiate'), {'provider': 'zoom'}, format='json')
        assert initiate.status_code == 200
        assert initiate.data['authorization_url'].startswith('https://zoom.us/oauth/authorize?')
        
        tokens = TokenResult(access_token='access-1', refresh_token='refresh-1')
        with patch('apps.integrations.zoom_client.ZoomProvider.exchange_code', return_value=tokens), \
                patch('apps.integrations.zoom_client.ZoomProvider.get_user_info',
                      return_value={'id': 'zoom-user', 'email': 'ada@zoom.example.com'}):
            callback = api_client.post(reverse('integrations:oauth-callback'), {
                'provider': 'zoom',
                'code': 'auth-code',
                'state': f"zoom:{initiate.data['state']}",
            }, format='json')
        
        assert callback.status_code == 200
        connection = OAuthConnection.objects.get(user=admin_user, provider='zoom')
        assert connection.provider_email == 'ada@zoom.example.com'
        assert connection.is_active
        
        check = api_client.get(reverse('integrations:connection-check'), {'provider': 'zoom'})
        assert check.data['connected'] is True
    
    def test_callback_rejects_wrong_state(self, api_client, admin_user):
        api_client.force_authenticate(admin_user)
        api_client.post(reverse('integrations:oauth-initiate'), {'provider': 'google'}, format='json')
        
        response = api_client.post(reverse('integrations:oauth-callback'), {
            'provider': 'google', 'code': 'auth-code', 'state': 'google:forged',
        }, format='json')
        
        assert response.status_code == 400
        assert not OAuthConnection.objects.exists()
    
    def test_disconnect_without_connection(self, api_client, admin_user):
        api_client.force_authenticate(admin_user)
        response = api_client.post(reverse('integrations:connection-disconnect'), {'provider': 'zoom'}, format='json')
        assert response.status_code == 404
