from celery import shared_task
from django.conf import settings
from django.utils import timezone
from datetime import timedelta
import logging

from .exceptions import MeetingServiceError
from .models import OAuthConnection
from .provisioner import MeetingProvisioner

logger = logging.getLogger(__name__)


@shared_task
def refresh_expiring_connections():
    """Refresh tokens that will expire soon so request handlers rarely have to."""
    margin = timedelta(seconds=getattr(settings, 'MEETING_TOKEN_REFRESH_MARGIN_SECONDS', 300))
    horizon = timezone.now() + margin * 2
    
    connections = OAuthConnection.objects.filter(
        is_active=True,
        token_expires_at__isnull=False,
        token_expires_at__lte=horizon
    ).exclude(refresh_token='').select_related('user')
    
    # A wider margin makes resolve_access_token refresh everything inside the horizon
    provisioner = MeetingProvisioner(refresh_margin=margin * 2)
    refreshed = 0
    failed = 0
    
    for connection in connections:
        try:
            provisioner.resolve_access_token(connection.user, connection.provider)
            refreshed += 1
        except MeetingServiceError as e:
            failed += 1
            logger.warning(f"Proactive refresh failed for connection {connection.id}: {str(e)}")
    
    return f"Refreshed {refreshed} connections, {failed} failed"
