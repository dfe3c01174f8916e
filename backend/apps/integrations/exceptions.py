"""
Errors raised while talking to meeting providers.

Every failure that prevents a meeting link from being provisioned is a
MeetingServiceError, so callers can keep the booking and report the reason.
"""


class MeetingServiceError(Exception):
    code = 'meeting_service_error'
    
    def __init__(self, message, provider=None):
        super().__init__(message)
        self.message = message
        self.provider = provider
    
    def to_dict(self):
        return {
            'code': self.code,
            'provider': self.provider,
            'message': self.message,
        }


class NoActiveConnection(MeetingServiceError):
    """The user has no active OAuth connection for the provider."""
    code = 'no_connection'


class TokenRefreshFailed(MeetingServiceError):
    """The access token was near expiry and could not be refreshed."""
    code = 'refresh_failed'
    
    def __init__(self, message, provider=None, reason='refresh_failed'):
        super().__init__(message, provider=provider)
        self.reason = reason
    
    def to_dict(self):
        data = super().to_dict()
        data['reason'] = self.reason
        return data


class MeetingProviderError(MeetingServiceError):
    """The provider rejected a request or could not be reached."""
    
    def __init__(self, provider, code, message, status_code=None, payload=None):
        super().__init__(message, provider=provider)
        self.code = code
        self.status_code = status_code
        self.payload = payload or {}
    
    def __str__(self):
        if self.status_code:
            return f"{self.provider} error {self.status_code} ({self.code}): {self.message}"
        return f"{self.provider} error ({self.code}): {self.message}"
    
    @property
    def is_not_found(self):
        return self.status_code in (404, 410)
    
    @property
    def outcome_unknown(self):
        """True when the request may have succeeded remotely (timeouts)."""
        return self.code == 'timeout'
    
    def to_dict(self):
        data = super().to_dict()
        data['status_code'] = self.status_code
        return data
