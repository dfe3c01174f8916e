"""
Provider-neutral types and the MeetingProvider interface.
"""
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from django.conf import settings

REQUEST_KEY_MARKER = '[ref:{key}]'


@dataclass
class MeetingDetails:
    title: str
    start_time: datetime
    end_time: datetime
    description: str = ''
    attendees: List[str] = field(default_factory=list)
    timezone_name: str = 'UTC'
    enable_recording: bool = False
    request_key: str = ''
    
    @property
    def duration_minutes(self):
        return math.ceil((self.end_time - self.start_time).total_seconds() / 60)
    
    @property
    def reference_marker(self):
        return REQUEST_KEY_MARKER.format(key=self.request_key) if self.request_key else ''


@dataclass
class MeetingResult:
    meeting_url: str
    meeting_id: str
    provider: str
    host_url: str = ''
    password: str = ''


@dataclass
class TokenResult:
    access_token: str
    refresh_token: str = ''
    expires_at: Optional[datetime] = None
    token_type: str = 'Bearer'
    scope: str = ''


class MeetingProvider(ABC):
    """
    One implementation per OAuth meeting provider.
    
    Implementations raise MeetingProviderError for any non-2xx response or
    transport failure and never return a partial success.
    """
    name = None
    
    def __init__(self, timeout=None):
        self.timeout = timeout or getattr(settings, 'MEETING_PROVIDER_TIMEOUT', 30)
    
    @abstractmethod
    def authorization_url(self, state):
        """URL the user is sent to in order to grant access."""
    
    @abstractmethod
    def exchange_code(self, code):
        """Trade an authorization code for a TokenResult."""
    
    @abstractmethod
    def refresh_token(self, refresh_token):
        """Obtain a new TokenResult from a refresh token."""
    
    @abstractmethod
    def get_user_info(self, access_token):
        """Return {'id': ..., 'email': ...} for the connected account."""
    
    @abstractmethod
    def revoke(self, access_token):
        """Revoke a token upstream."""
    
    @abstractmethod
    def create_meeting(self, access_token, details):
        """Create a meeting and return a MeetingResult."""
    
    @abstractmethod
    def update_meeting(self, access_token, meeting_id, details):
        """Move or retitle an existing meeting."""
    
    @abstractmethod
    def delete_meeting(self, access_token, meeting_id):
        """Delete a meeting. A meeting that no longer exists counts as deleted."""
    
    @abstractmethod
    def find_meeting(self, access_token, details):
        """Return the meeting created for ``details.request_key``, or None."""
