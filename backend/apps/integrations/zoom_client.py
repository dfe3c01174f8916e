"""
Zoom integration client for video conferencing.
"""
import logging
import urllib.parse
from django.conf import settings
from .base import MeetingProvider, MeetingResult
from .exceptions import MeetingProviderError
from .utils import make_api_request, token_result_from_payload

logger = logging.getLogger(__name__)


class ZoomProvider(MeetingProvider):
    """Client for Zoom OAuth and meeting APIs."""
    name = 'zoom'
    
    authorize_url = "https://zoom.us/oauth/authorize"
    token_url = "https://zoom.us/oauth/token"
    revoke_url = "https://zoom.us/oauth/revoke"
    base_url = "https://api.zoom.us/v2"
    scopes = ['meeting:write:meeting', 'user:read:user']
    
    def _client_auth(self):
        return (settings.ZOOM_CLIENT_ID, settings.ZOOM_CLIENT_SECRET)
    
    def _get_headers(self, access_token):
        return {
            'Authorization': f'Bearer {access_token}',
            'Content-Type': 'application/json'
        }
    
    def authorization_url(self, state):
        return self.authorize_url + "?" + urllib.parse.urlencode({
            'client_id': settings.ZOOM_CLIENT_ID,
            'redirect_uri': settings.ZOOM_REDIRECT_URI,
            'response_type': 'code',
            'scope': ' '.join(self.scopes),
            'state': state
        })
    
    def exchange_code(self, code):
        response = make_api_request(
            'POST', self.token_url, provider=self.name,
            data={
                'grant_type': 'authorization_code',
                'code': code,
                'redirect_uri': settings.ZOOM_REDIRECT_URI
            },
            auth=self._client_auth(),
            timeout=self.timeout
        )
        return token_result_from_payload(response.json())
    
    def refresh_token(self, refresh_token):
        response = make_api_request(
            'POST', self.token_url, provider=self.name,
            data={
                'grant_type': 'refresh_token',
                'refresh_token': refresh_token
            },
            auth=self._client_auth(),
            timeout=self.timeout
        )
        return token_result_from_payload(response.json())
    
    def get_user_info(self, access_token):
        response = make_api_request(
            'GET', f"{self.base_url}/users/me", provider=self.name,
            headers=self._get_headers(access_token),
            timeout=self.timeout
        )
        data = response.json()
        return {'id': str(data.get('id', '')), 'email': data.get('email', '')}
    
    def revoke(self, access_token):
        make_api_request(
            'POST', self.revoke_url, provider=self.name,
            params={'token': access_token},
            auth=self._client_auth(),
            timeout=self.timeout
        )
    
    def _meeting_body(self, details):
        agenda = details.description or ''
        if details.reference_marker:
            agenda = f"{agenda}\n\n{details.reference_marker}".strip()
        
        return {
            'topic': details.title,
            'type': 2,  # Scheduled meeting
            'start_time': details.start_time.strftime('%Y-%m-%dT%H:%M:%SZ'),
            'duration': details.duration_minutes,
            'timezone': details.timezone_name,
            'agenda': agenda,
            'settings': {
                'host_video': True,
                'participant_video': True,
                'join_before_host': False,
                'mute_upon_entry': True,
                'approval_type': 0,  # Automatically approve
                'audio': 'both',
                'auto_recording': 'cloud' if details.enable_recording else 'none',
                'waiting_room': True,
                'meeting_invitees': [{'email': email} for email in details.attendees]
            }
        }
    
    def _to_result(self, meeting):
        return MeetingResult(
            meeting_url=meeting['join_url'],
            meeting_id=str(meeting['id']),
            provider=self.name,
            host_url=meeting.get('start_url', ''),
            password=meeting.get('password', '')
        )
    
    def create_meeting(self, access_token, details):
        response = make_api_request(
            'POST', f"{self.base_url}/users/me/meetings", provider=self.name,
            headers=self._get_headers(access_token),
            json_data=self._meeting_body(details),
            timeout=self.timeout
        )
        meeting = response.json()
        if not meeting.get('join_url'):
            raise MeetingProviderError(self.name, 'no_meeting_link', "Zoom did not return a join URL", payload=meeting)
        return self._to_result(meeting)
    
    def update_meeting(self, access_token, meeting_id, details):
        body = self._meeting_body(details)
        make_api_request(
            'PATCH', f"{self.base_url}/meetings/{meeting_id}", provider=self.name,
            headers=self._get_headers(access_token),
            json_data={
                'topic': body['topic'],
                'start_time': body['start_time'],
                'duration': body['duration'],
                'timezone': body['timezone']
            },
            timeout=self.timeout
        )
    
    def delete_meeting(self, access_token, meeting_id):
        try:
            make_api_request(
                'DELETE', f"{self.base_url}/meetings/{meeting_id}", provider=self.name,
                headers=self._get_headers(access_token),
                timeout=self.timeout
            )
        except MeetingProviderError as e:
            # Zoom answers 404 with code 3001 for meetings that are already gone
            if e.is_not_found or e.code == '3001':
                logger.info(f"Zoom meeting {meeting_id} already deleted")
                return
            raise
    
    def find_meeting(self, access_token, details):
        """Look through upcoming meetings for one tagged with the request key."""
        marker = details.reference_marker
        if not marker:
            return None
        
        params = {'type': 'upcoming', 'page_size': 300}
        while True:
            response = make_api_request(
                'GET', f"{self.base_url}/users/me/meetings", provider=self.name,
                headers=self._get_headers(access_token),
                params=params,
                timeout=self.timeout
            )
            data = response.json()
            for meeting in data.get('meetings', []):
                if marker in (meeting.get('agenda') or ''):
                    if not meeting.get('join_url'):
                        # The listing omits join_url for some account types
                        detail = make_api_request(
                            'GET', f"{self.base_url}/meetings/{meeting['id']}", provider=self.name,
                            headers=self._get_headers(access_token),
                            timeout=self.timeout
                        )
                        meeting = detail.json()
                    return self._to_result(meeting)
            
            next_page = data.get('next_page_token')
            if not next_page:
                return None
            params = dict(params, next_page_token=next_page)
