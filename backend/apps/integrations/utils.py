"""
Shared HTTP and logging helpers for provider integrations.
"""
import logging
import requests
from django.conf import settings
from .exceptions import MeetingProviderError

logger = logging.getLogger(__name__)


def _error_from_response(provider, response):
    try:
        payload = response.json()
    except ValueError:
        payload = {'raw': response.text[:500]}
    
    if not isinstance(payload, dict):
        payload = {'raw': payload}
    
    error = payload.get('error')
    if isinstance(error, dict):
        # Google style: {"error": {"code": 404, "message": "...", "status": "NOT_FOUND"}}
        code = str(error.get('status') or error.get('code') or response.status_code)
        message = error.get('message') or response.reason
    else:
        code = str(payload.get('code') or error or response.status_code)
        message = payload.get('message') or payload.get('error_description') or payload.get('reason') or response.reason
    
    return MeetingProviderError(
        provider=provider,
        code=code,
        message=message or f"HTTP {response.status_code}",
        status_code=response.status_code,
        payload=payload
    )


def make_api_request(method, url, provider, headers=None, json_data=None, data=None,
                     params=None, auth=None, timeout=None):
    """
    Make an HTTP request to a provider API.
    
    Args:
        method: HTTP method
        url: Request URL
        provider: Provider name used in errors and logs
        timeout: Seconds before giving up; defaults to MEETING_PROVIDER_TIMEOUT
    
    Returns:
        requests.Response for any 2xx response
    
    Raises:
        MeetingProviderError: for non-2xx responses, timeouts and network errors
    """
    timeout = timeout or getattr(settings, 'MEETING_PROVIDER_TIMEOUT', 30)
    
    try:
        response = requests.request(
            method, url,
            headers=headers,
            json=json_data,
            data=data,
            params=params,
            auth=auth,
            timeout=timeout
        )
    except requests.Timeout as e:
        logger.warning(f"{provider} {method} {url} timed out after {timeout}s")
        raise MeetingProviderError(provider, 'timeout', f"Request timed out: {e}")
    except requests.RequestException as e:
        logger.error(f"{provider} {method} {url} failed: {str(e)}")
        raise MeetingProviderError(provider, 'network_error', str(e))
    
    if not 200 <= response.status_code < 300:
        error = _error_from_response(provider, response)
        if not error.is_not_found:
            logger.error(f"{provider} {method} {url} returned {response.status_code}: {error.message}")
        raise error
    
    return response


def log_integration_activity(user, log_type, provider, message, success=True, booking=None, details=None):
    """
    Record an IntegrationLog row.
    
    Args:
        user: User the activity belongs to
        log_type: One of IntegrationLog.LOG_TYPES
        provider: Provider name
        message: Human readable summary
        success: Whether the activity succeeded
        booking: Optional Booking instance
        details: Optional JSON-serializable dict
    """
    from .models import IntegrationLog
    
    return IntegrationLog.objects.create(
        user=user,
        log_type=log_type,
        provider=provider or '',
        message=message,
        success=success,
        booking=booking,
        details=details or {}
    )


def get_provider(name, timeout=None):
    """Return the MeetingProvider implementation for an OAuth provider name."""
    from .google_client import GoogleMeetProvider
    from .zoom_client import ZoomProvider
    
    providers = {
        'zoom': ZoomProvider,
        'google': GoogleMeetProvider,
    }
    if name not in providers:
        raise ValueError(f"Unsupported provider: {name}")
    return providers[name](timeout=timeout)


def token_result_from_payload(payload):
    """Build a TokenResult from a standard OAuth token endpoint response."""
    from datetime import timedelta
    from django.utils import timezone
    from .base import TokenResult
    
    expires_in = payload.get('expires_in')
    return TokenResult(
        access_token=payload['access_token'],
        refresh_token=payload.get('refresh_token', ''),
        expires_at=timezone.now() + timedelta(seconds=int(expires_in)) if expires_in else None,
        token_type=payload.get('token_type', 'Bearer'),
        scope=payload.get('scope', '')
    )
