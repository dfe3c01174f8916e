"""
Meeting link provisioning.

Each attempt moves a booking through not_requested -> pending -> provisioned
or failed. Token resolution always finishes, and refreshed tokens are always
persisted, before any meeting call is made.
"""
import logging
import uuid
from datetime import datetime, time, timedelta

from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

from .base import MeetingDetails, MeetingResult
from .exceptions import MeetingProviderError, NoActiveConnection, TokenRefreshFailed
from .token_store import DjangoTokenStore
from .utils import get_provider, log_integration_activity

logger = logging.getLogger(__name__)


class MeetingProvisioner:
    """Create, update and delete provider meetings for bookings."""
    
    def __init__(self, token_store=None, providers=None, clock=None, refresh_margin=None):
        """
        Args:
            token_store: TokenStore, defaults to the ORM-backed store
            providers: optional {name: MeetingProvider} overrides
            clock: callable returning the current aware datetime
            refresh_margin: timedelta before expiry at which tokens are refreshed
        """
        self.token_store = token_store or DjangoTokenStore()
        self.providers = dict(providers or {})
        self.clock = clock or timezone.now
        if refresh_margin is None:
            refresh_margin = timedelta(seconds=getattr(settings, 'MEETING_TOKEN_REFRESH_MARGIN_SECONDS', 300))
        self.refresh_margin = refresh_margin
    
    def get_provider(self, name):
        if name not in self.providers:
            self.providers[name] = get_provider(name)
        return self.providers[name]
    
    # Tokens
    
    def resolve_access_token(self, user, provider_name):
        """
        Return a usable access token for (user, provider).
        
        Refreshes the token when it expires within the refresh margin. A
        refreshed token is stored before it is returned.
        
        Raises:
            NoActiveConnection: the user never connected or disconnected
            TokenRefreshFailed: a refresh was needed and did not succeed
        """
        connection = self.token_store.get_active_connection(user.id, provider_name)
        if connection is None:
            raise NoActiveConnection(
                f"No active {provider_name} connection. Please connect your {provider_name} account.",
                provider=provider_name
            )
        
        now = self.clock()
        if not connection.needs_refresh(now, self.refresh_margin):
            self.token_store.mark_used(connection)
            return connection.access_token
        
        if not connection.refresh_token:
            raise TokenRefreshFailed(
                f"{provider_name} token is expiring and no refresh token is stored. Please reconnect.",
                provider=provider_name,
                reason='no_refresh_token'
            )
        
        provider = self.get_provider(provider_name)
        try:
            tokens = provider.refresh_token(connection.refresh_token)
        except MeetingProviderError as e:
            # A concurrent worker may have refreshed with the same refresh token first
            current = self.token_store.get_active_connection(user.id, provider_name)
            if current is not None and not current.needs_refresh(self.clock(), self.refresh_margin):
                logger.info(f"Using {provider_name} token refreshed concurrently for user {user.id}")
                return current.access_token
            
            logger.error(f"Failed to refresh {provider_name} token for user {user.id}: {str(e)}")
            log_integration_activity(
                user=user,
                log_type='token_refreshed',
                provider=provider_name,
                message=f"Token refresh failed: {e.message}",
                success=False,
                details=e.to_dict()
            )
            raise TokenRefreshFailed(
                f"Failed to refresh {provider_name} token: {e.message}",
                provider=provider_name
            )
        
        if self.token_store.rotate_tokens(connection, tokens):
            log_integration_activity(
                user=user,
                log_type='token_refreshed',
                provider=provider_name,
                message=f"Refreshed {provider_name} access token",
                details={'expires_at': tokens.expires_at.isoformat() if tokens.expires_at else None}
            )
            return connection.access_token
        
        # Lost the race: another worker stored its refreshed token first
        current = self.token_store.get_active_connection(user.id, provider_name)
        if current is None:
            raise NoActiveConnection(
                f"{provider_name} connection was removed while refreshing",
                provider=provider_name
            )
        logger.info(f"{provider_name} token for user {user.id} was refreshed concurrently")
        return current.access_token
    
    # Meetings
    
    def build_meeting_details(self, booking, start_time=None, end_time=None):
        return MeetingDetails(
            title=booking.title,
            description=booking.description,
            start_time=start_time or booking.start_time,
            end_time=end_time or booking.end_time,
            attendees=booking.attendee_emails(),
            timezone_name=booking.timezone_name,
            enable_recording=bool((booking.meeting_config or {}).get('enableRecording')),
            request_key=booking.provisioning_key
        )
    
    def provision_meeting(self, booking):
        """
        Attach a meeting to a booking.
        
        Manual links are copied from the pattern config and physical
        locations need nothing. Provider meetings go through token resolution
        and a remote create. A booking that already has a provisioned meeting
        is returned unchanged.
        
        Returns:
            MeetingResult, or None when the booking needs no link
        
        Raises:
            MeetingServiceError: the booking is marked failed and keeps no link
        """
        if booking.meeting_type == 'manual_link':
            manual_value = (booking.meeting_config or {}).get('manualValue', '')
            result = MeetingResult(meeting_url=manual_value, meeting_id='', provider='manual')
            booking.mark_meeting_provisioned(result)
            return result
        
        provider_name = booking.provider
        if provider_name is None:
            return None
        
        if booking.meeting_status == 'provisioned' and booking.meeting_url:
            return MeetingResult(
                meeting_url=booking.meeting_url,
                meeting_id=booking.provider_meeting_id,
                provider=booking.meeting_provider
            )
        
        # The key is stored before any remote call so a retry can find the first attempt
        is_retry = bool(booking.provisioning_key)
        if not is_retry:
            booking.provisioning_key = uuid.uuid4().hex
        booking.mark_meeting_pending()
        
        try:
            access_token = self.resolve_access_token(booking.owner, provider_name)
            provider = self.get_provider(provider_name)
            details = self.build_meeting_details(booking)
            
            result = None
            if is_retry:
                result = provider.find_meeting(access_token, details)
                if result:
                    logger.info(f"Recovered existing {provider_name} meeting {result.meeting_id} for booking {booking.id}")
            if result is None:
                result = provider.create_meeting(access_token, details)
        except (NoActiveConnection, TokenRefreshFailed, MeetingProviderError) as e:
            if isinstance(e, MeetingProviderError) and e.outcome_unknown:
                # The meeting may exist upstream; stay pending so a retry looks it up by key
                logger.warning(f"Meeting provisioning outcome unknown for booking {booking.id}: {str(e)}")
                booking.mark_meeting_outcome_unknown(e)
            else:
                logger.error(f"Meeting provisioning failed for booking {booking.id}: {str(e)}")
                booking.mark_meeting_failed(e)
            log_integration_activity(
                user=booking.owner,
                log_type='meeting_created',
                provider=provider_name,
                message=f"Failed to create {provider_name} meeting: {e.message}",
                success=False,
                booking=booking,
                details=e.to_dict()
            )
            raise
        
        booking.mark_meeting_provisioned(result)
        log_integration_activity(
            user=booking.owner,
            log_type='meeting_created',
            provider=provider_name,
            message=f"Created {provider_name} meeting for booking {booking.id}",
            booking=booking,
            details={'meeting_id': result.meeting_id, 'meeting_url': result.meeting_url}
        )
        return result
    
    def update_meeting(self, booking, start_time, end_time):
        """
        Move a provisioned meeting to new times.
        
        Returns False when the booking has no remote meeting to update.
        
        Raises:
            MeetingServiceError: the remote meeting could not be updated
        """
        provider_name = booking.provider
        if provider_name is None or not booking.provider_meeting_id:
            return False
        
        try:
            access_token = self.resolve_access_token(booking.owner, provider_name)
            details = self.build_meeting_details(booking, start_time=start_time, end_time=end_time)
            self.get_provider(provider_name).update_meeting(access_token, booking.provider_meeting_id, details)
        except (NoActiveConnection, TokenRefreshFailed, MeetingProviderError) as e:
            logger.error(f"Error updating {provider_name} meeting for booking {booking.id}: {str(e)}")
            log_integration_activity(
                user=booking.owner,
                log_type='meeting_updated',
                provider=provider_name,
                message=f"Failed to update {provider_name} meeting: {e.message}",
                success=False,
                booking=booking,
                details=e.to_dict()
            )
            raise
        
        log_integration_activity(
            user=booking.owner,
            log_type='meeting_updated',
            provider=provider_name,
            message=f"Updated {provider_name} meeting for booking {booking.id}",
            booking=booking,
            details={'start_time': start_time.isoformat(), 'end_time': end_time.isoformat()}
        )
        return True
    
    def delete_meeting(self, booking):
        """
        Delete a booking's remote meeting.
        
        A meeting that is already gone counts as deleted. Failures are logged
        and reported as False rather than raised.
        
        Returns:
            bool: True if nothing remains upstream
        """
        provider_name = booking.provider
        meeting_id = booking.provider_meeting_id
        if provider_name is None or not meeting_id:
            return True
        
        try:
            access_token = self.resolve_access_token(booking.owner, provider_name)
            self.get_provider(provider_name).delete_meeting(access_token, meeting_id)
        except (NoActiveConnection, TokenRefreshFailed, MeetingProviderError) as e:
            logger.error(f"Error deleting {provider_name} meeting {meeting_id}: {str(e)}")
            log_integration_activity(
                user=booking.owner,
                log_type='meeting_deleted',
                provider=provider_name,
                message=f"Failed to delete {provider_name} meeting: {e.message}",
                success=False,
                booking=booking,
                details=dict(e.to_dict(), meeting_id=meeting_id)
            )
            return False
        
        log_integration_activity(
            user=booking.owner,
            log_type='meeting_deleted',
            provider=provider_name,
            message=f"Deleted {provider_name} meeting {meeting_id}",
            booking=booking,
            details={'meeting_id': meeting_id}
        )
        return True
    
    # Calendar
    
    def get_busy_intervals(self, user, start_date, end_date, timezone_name='UTC'):
        """
        Busy intervals from the user's Google calendar for [start_date, end_date).
        
        Results are cached for CALENDAR_BUSY_CACHE_TIMEOUT seconds.
        """
        from zoneinfo import ZoneInfo
        
        cache_key = f"calendar_busy:{user.id}:{start_date}:{end_date}:{timezone_name}"
        cached = cache.get(cache_key)
        if cached is not None:
            return cached
        
        access_token = self.resolve_access_token(user, 'google')
        zone = ZoneInfo(timezone_name)
        time_min = datetime.combine(start_date, time.min).replace(tzinfo=zone)
        time_max = datetime.combine(end_date, time.min).replace(tzinfo=zone)
        try:
            intervals = self.get_provider('google').get_busy_intervals(access_token, time_min, time_max)
        except MeetingProviderError as e:
            logger.error(f"Error fetching busy times for user {user.id}: {str(e)}")
            log_integration_activity(
                user=user,
                log_type='calendar_busy_check',
                provider='google',
                message=f"Failed to fetch busy times: {e.message}",
                success=False,
                details=e.to_dict()
            )
            raise

        log_integration_activity(
            user=user,
            log_type='calendar_busy_check',
            provider='google',
            message=f"Fetched {len(intervals)} busy intervals",
            details={'start_date': start_date.isoformat(), 'end_date': end_date.isoformat()}
        )
        cache.set(cache_key, intervals, timeout=getattr(settings, 'CALENDAR_BUSY_CACHE_TIMEOUT', 300))
        return intervals
    
    # Connections
    
    def connect(self, user, provider_name, code):
        """Exchange an authorization code and store the resulting connection."""
        provider = self.get_provider(provider_name)
        tokens = provider.exchange_code(code)
        user_info = provider.get_user_info(tokens.access_token)
        
        connection = self.token_store.save_connection(
            user.id, provider_name, tokens,
            provider_user_id=user_info.get('id', ''),
            provider_email=user_info.get('email', '')
        )
        log_integration_activity(
            user=user,
            log_type='oauth_connected',
            provider=provider_name,
            message=f"Connected {provider_name} account {user_info.get('email', '')}",
            details={'provider_user_id': user_info.get('id', '')}
        )
        return connection
    
    def disconnect(self, user, provider_name):
        """
        Revoke upstream (best-effort) and deactivate the local connection.
        
        Returns:
            bool: True if an active connection was deactivated
        """
        connection = self.token_store.get_active_connection(user.id, provider_name)
        if connection is None:
            return False
        
        try:
            self.get_provider(provider_name).revoke(connection.access_token)
        except MeetingProviderError as e:
            logger.warning(f"Failed to revoke {provider_name} token for user {user.id}: {str(e)}")
        
        deactivated = self.token_store.deactivate(user.id, provider_name)
        log_integration_activity(
            user=user,
            log_type='oauth_disconnected',
            provider=provider_name,
            message=f"Disconnected {provider_name} account",
            success=deactivated
        )
        return deactivated
