import json
from unittest.mock import MagicMock, patch

import httplib2
import pytest
from googleapiclient.errors import HttpError

from apps.integrations.base import MeetingDetails
from apps.integrations.exceptions import MeetingProviderError
from apps.integrations.google_client import GoogleMeetProvider

from .utils.factories import utc

EVENT = {
    'id': 'abc123',
    'status': 'confirmed',
    'htmlLink': 'https://calendar.google.com/event?eid=abc123',
    'conferenceData': {
        'entryPoints': [
            {'entryPointType': 'phone', 'uri': 'tel:+1-555-0100'},
            {'entryPointType': 'video', 'uri': 'https://meet.google.com/abc-defg-hij'},
        ]
    },
}


def http_error(status, message='error', reason='ERROR'):
    content = json.dumps({'error': {'code': status, 'message': message, 'status': reason}}).encode('utf-8')
    return HttpError(httplib2.Response({'status': status}), content)


def details(**overrides):
    fields = {
        'title': 'Catch up',
        'start_time': utc(2030, 1, 7, 10),
        'end_time': utc(2030, 1, 7, 11),
        'attendees': ['grace@example.com', 'ada@example.com'],
        'timezone_name': 'Europe/Berlin',
        'request_key': 'abc123',
    }
    fields.update(overrides)
    return MeetingDetails(**fields)


@pytest.fixture
def service():
    service = MagicMock()
    with patch('apps.integrations.google_client.build', return_value=service):
        yield service


def test_create_meeting_requests_meet_conference(service):
    service.events.return_value.insert.return_value.execute.return_value = EVENT
    
    result = GoogleMeetProvider().create_meeting('token-1', details())
    
    assert result.meeting_url == 'https://meet.google.com/abc-defg-hij'
    assert result.meeting_id == 'abc123'
    kwargs = service.events.return_value.insert.call_args.kwargs
    assert kwargs['conferenceDataVersion'] == 1
    assert kwargs['body']['id'] == 'abc123'
    assert kwargs['body']['conferenceData']['createRequest']['requestId'] == 'abc123'
    assert kwargs['body']['attendees'] == [{'email': 'grace@example.com'}, {'email': 'ada@example.com'}]


def test_create_meeting_reuses_existing_event(service):
    events = service.events.return_value
    events.insert.return_value.execute.side_effect = http_error(409, 'The requested identifier already exists.', 'ALREADY_EXISTS')
    events.get.return_value.execute.return_value = EVENT
    
    result = GoogleMeetProvider().create_meeting('token-1', details())
    
    assert result.meeting_id == 'abc123'
    events.get.assert_called_once_with(calendarId='primary', eventId='abc123')


def test_create_meeting_rejects_cancelled_duplicate(service):
    events = service.events.return_value
    events.insert.return_value.execute.side_effect = http_error(409)
    events.get.return_value.execute.return_value = dict(EVENT, status='cancelled')
    
    with pytest.raises(MeetingProviderError) as excinfo:
        GoogleMeetProvider().create_meeting('token-1', details())
    assert excinfo.value.code == 'event_cancelled'


def test_event_without_meet_link_is_an_error(service):
    service.events.return_value.insert.return_value.execute.return_value = {'id': 'abc123'}
    with pytest.raises(MeetingProviderError) as excinfo:
        GoogleMeetProvider().create_meeting('token-1', details())
    assert excinfo.value.code == 'no_meeting_link'


def test_http_errors_are_wrapped(service):
    service.events.return_value.insert.return_value.execute.side_effect = http_error(403, 'Insufficient Permission', 'PERMISSION_DENIED')
    
    with pytest.raises(MeetingProviderError) as excinfo:
        GoogleMeetProvider().create_meeting('token-1', details())
    
    assert excinfo.value.status_code == 403
    assert excinfo.value.code == 'PERMISSION_DENIED'
    assert excinfo.value.message == 'Insufficient Permission'


def test_timeouts_are_wrapped(service):
    service.events.return_value.insert.return_value.execute.side_effect = TimeoutError('timed out')
    with pytest.raises(MeetingProviderError) as excinfo:
        GoogleMeetProvider().create_meeting('token-1', details())
    assert excinfo.value.outcome_unknown


def test_delete_tolerates_gone_event(service):
    service.events.return_value.delete.return_value.execute.side_effect = http_error(410, 'Resource has been deleted')
    GoogleMeetProvider().delete_meeting('token-1', 'abc123')


def test_find_meeting(service):
    events = service.events.return_value
    events.get.return_value.execute.side_effect = http_error(404, 'Not Found', 'NOT_FOUND')
    assert GoogleMeetProvider().find_meeting('token-1', details()) is None
    
    events.get.return_value.execute.side_effect = None
    events.get.return_value.execute.return_value = EVENT
    assert GoogleMeetProvider().find_meeting('token-1', details()).meeting_id == 'abc123'


def test_update_meeting_patches_times(service):
    GoogleMeetProvider().update_meeting('token-1', 'abc123', details(start_time=utc(2030, 1, 9, 11), end_time=utc(2030, 1, 9, 12)))
    
    kwargs = service.events.return_value.patch.call_args.kwargs
    assert kwargs['eventId'] == 'abc123'
    assert kwargs['body']['start'] == {'dateTime': '2030-01-09T11:00:00+00:00', 'timeZone': 'Europe/Berlin'}


def test_busy_intervals(service):
    service.freebusy.return_value.query.return_value.execute.return_value = {
        'calendars': {'primary': {'busy': [{'start': '2030-01-07T10:00:00Z', 'end': '2030-01-07T11:30:00Z'}]}}
    }
    
    intervals = GoogleMeetProvider().get_busy_intervals('token-1', utc(2030, 1, 7), utc(2030, 1, 8))
    
    assert intervals == [(utc(2030, 1, 7, 10), utc(2030, 1, 7, 11, 30))]
