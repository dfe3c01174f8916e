"""
Google Meet integration client.

Meetings are Google Calendar events with a Meet conference attached.
"""
import json
import logging
import urllib.parse
import httplib2
from django.conf import settings
from django.utils.dateparse import parse_datetime
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from .base import MeetingProvider, MeetingResult
from .exceptions import MeetingProviderError
from .utils import make_api_request, token_result_from_payload

logger = logging.getLogger(__name__)


class GoogleMeetProvider(MeetingProvider):
    """Client for Google OAuth and Calendar/Meet APIs."""
    name = 'google'
    
    authorize_url = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url = "https://oauth2.googleapis.com/token"
    revoke_url = "https://oauth2.googleapis.com/revoke"
    userinfo_url = "https://www.googleapis.com/oauth2/v2/userinfo"
    scopes = [
        'https://www.googleapis.com/auth/calendar.events',
        'https://www.googleapis.com/auth/calendar.freebusy',
        'https://www.googleapis.com/auth/userinfo.email',
    ]
    calendar_id = 'primary'
    
    def _get_service(self, access_token):
        """Get an authenticated Google Calendar service."""
        credentials = Credentials(
            token=access_token,
            token_uri=self.token_url,
            client_id=settings.GOOGLE_OAUTH_CLIENT_ID,
            client_secret=settings.GOOGLE_OAUTH_CLIENT_SECRET
        )
        http = AuthorizedHttp(credentials, http=httplib2.Http(timeout=self.timeout))
        return build('calendar', 'v3', http=http, cache_discovery=False)
    
    def _wrap_http_error(self, error):
        status_code = error.resp.status
        try:
            payload = json.loads(error.content.decode('utf-8'))
        except (ValueError, AttributeError):
            payload = {}
        
        detail = payload.get('error') if isinstance(payload.get('error'), dict) else {}
        return MeetingProviderError(
            provider=self.name,
            code=str(detail.get('status') or status_code),
            message=detail.get('message') or str(error.reason or error),
            status_code=status_code,
            payload=payload
        )
    
    def _execute(self, request):
        try:
            return request.execute()
        except HttpError as e:
            raise self._wrap_http_error(e)
        except TimeoutError as e:
            raise MeetingProviderError(self.name, 'timeout', f"Request timed out: {e}")
        except (httplib2.HttpLib2Error, OSError) as e:
            raise MeetingProviderError(self.name, 'network_error', str(e))
    
    def authorization_url(self, state):
        return self.authorize_url + "?" + urllib.parse.urlencode({
            'client_id': settings.GOOGLE_OAUTH_CLIENT_ID,
            'redirect_uri': settings.GOOGLE_OAUTH_REDIRECT_URI,
            'scope': ' '.join(self.scopes),
            'response_type': 'code',
            'access_type': 'offline',
            'prompt': 'consent',
            'state': state
        })
    
    def exchange_code(self, code):
        response = make_api_request(
            'POST', self.token_url, provider=self.name,
            data={
                'client_id': settings.GOOGLE_OAUTH_CLIENT_ID,
                'client_secret': settings.GOOGLE_OAUTH_CLIENT_SECRET,
                'code': code,
                'grant_type': 'authorization_code',
                'redirect_uri': settings.GOOGLE_OAUTH_REDIRECT_URI
            },
            timeout=self.timeout
        )
        return token_result_from_payload(response.json())
    
    def refresh_token(self, refresh_token):
        response = make_api_request(
            'POST', self.token_url, provider=self.name,
            data={
                'client_id': settings.GOOGLE_OAUTH_CLIENT_ID,
                'client_secret': settings.GOOGLE_OAUTH_CLIENT_SECRET,
                'refresh_token': refresh_token,
                'grant_type': 'refresh_token'
            },
            timeout=self.timeout
        )
        return token_result_from_payload(response.json())
    
    def get_user_info(self, access_token):
        response = make_api_request(
            'GET', self.userinfo_url, provider=self.name,
            headers={'Authorization': f'Bearer {access_token}'},
            timeout=self.timeout
        )
        data = response.json()
        return {'id': str(data.get('id', '')), 'email': data.get('email', '')}
    
    def revoke(self, access_token):
        make_api_request(
            'POST', self.revoke_url, provider=self.name,
            params={'token': access_token},
            headers={'Content-Type': 'application/x-www-form-urlencoded'},
            timeout=self.timeout
        )
    
    def _event_body(self, details):
        return {
            'summary': details.title,
            'description': details.description,
            'start': {
                'dateTime': details.start_time.isoformat(),
                'timeZone': details.timezone_name,
            },
            'end': {
                'dateTime': details.end_time.isoformat(),
                'timeZone': details.timezone_name,
            },
            'attendees': [{'email': email} for email in details.attendees],
            'reminders': {
                'useDefault': False,
                'overrides': [
                    {'method': 'email', 'minutes': 24 * 60},
                    {'method': 'popup', 'minutes': 15},
                ]
            },
        }
    
    def _to_result(self, event):
        meeting_url = ''
        for entry_point in event.get('conferenceData', {}).get('entryPoints', []):
            if entry_point.get('entryPointType') == 'video':
                meeting_url = entry_point.get('uri', '')
                break
        meeting_url = meeting_url or event.get('hangoutLink', '')
        
        if not meeting_url:
            raise MeetingProviderError(
                self.name, 'no_meeting_link',
                "Google Calendar event was created without a Meet link",
                payload={'event_id': event.get('id')}
            )
        
        return MeetingResult(
            meeting_url=meeting_url,
            meeting_id=event['id'],
            provider=self.name,
            host_url=event.get('htmlLink', '')
        )
    
    def create_meeting(self, access_token, details):
        """
        Create a calendar event with a Meet link.
        
        The request key doubles as the event id, so repeating a create that
        already succeeded returns the existing event instead of a duplicate.
        """
        service = self._get_service(access_token)
        body = self._event_body(details)
        body['conferenceData'] = {
            'createRequest': {
                'requestId': details.request_key or details.start_time.isoformat(),
                'conferenceSolutionKey': {'type': 'hangoutsMeet'}
            }
        }
        if details.request_key:
            body['id'] = details.request_key
        
        try:
            event = self._execute(service.events().insert(
                calendarId=self.calendar_id,
                body=body,
                conferenceDataVersion=1,
                sendUpdates='all'
            ))
        except MeetingProviderError as e:
            if e.status_code != 409 or not details.request_key:
                raise
            logger.info(f"Google event {details.request_key} already exists, reusing it")
            event = self._execute(service.events().get(
                calendarId=self.calendar_id,
                eventId=details.request_key
            ))
            if event.get('status') == 'cancelled':
                raise MeetingProviderError(
                    self.name, 'event_cancelled',
                    "The calendar event for this booking was already cancelled",
                    status_code=409
                )
        
        return self._to_result(event)
    
    def update_meeting(self, access_token, meeting_id, details):
        service = self._get_service(access_token)
        body = self._event_body(details)
        self._execute(service.events().patch(
            calendarId=self.calendar_id,
            eventId=meeting_id,
            body={
                'summary': body['summary'],
                'description': body['description'],
                'start': body['start'],
                'end': body['end'],
            },
            sendUpdates='all'
        ))
    
    def delete_meeting(self, access_token, meeting_id):
        service = self._get_service(access_token)
        try:
            self._execute(service.events().delete(
                calendarId=self.calendar_id,
                eventId=meeting_id,
                sendUpdates='all'
            ))
        except MeetingProviderError as e:
            if e.is_not_found:
                logger.info(f"Google event {meeting_id} already deleted")
                return
            raise
    
    def find_meeting(self, access_token, details):
        if not details.request_key:
            return None
        
        service = self._get_service(access_token)
        try:
            event = self._execute(service.events().get(
                calendarId=self.calendar_id,
                eventId=details.request_key
            ))
        except MeetingProviderError as e:
            if e.is_not_found:
                return None
            raise
        
        if event.get('status') == 'cancelled':
            return None
        return self._to_result(event)
    
    def get_busy_intervals(self, access_token, time_min, time_max):
        """
        Busy (start, end) intervals from the primary calendar.
        
        Args:
            time_min: aware datetime lower bound
            time_max: aware datetime upper bound
        """
        service = self._get_service(access_token)
        result = self._execute(service.freebusy().query(body={
            'timeMin': time_min.isoformat(),
            'timeMax': time_max.isoformat(),
            'items': [{'id': self.calendar_id}]
        }))
        
        calendar = result.get('calendars', {}).get(self.calendar_id, {})
        intervals = []
        for busy in calendar.get('busy', []):
            start = parse_datetime(busy['start'])
            end = parse_datetime(busy['end'])
            if start and end:
                intervals.append((start, end))
        return intervals
