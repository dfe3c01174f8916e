"""
Persistence contract for OAuth connections.
"""
import logging
from abc import ABC, abstractmethod

from django.db import transaction
from django.utils import timezone

logger = logging.getLogger(__name__)


class TokenStore(ABC):
    
    @abstractmethod
    def get_active_connection(self, user_id, provider):
        """Return the active connection for (user, provider), or None."""
    
    @abstractmethod
    def save_connection(self, user_id, provider, tokens, provider_user_id='', provider_email=''):
        """Create or replace the single connection for (user, provider)."""
    
    @abstractmethod
    def rotate_tokens(self, connection, tokens):
        """
        Store refreshed tokens if nobody else refreshed first.
        
        The write only applies while the stored expiry still equals
        ``connection.token_expires_at``. Returns True if this call won.
        """
    
    @abstractmethod
    def deactivate(self, user_id, provider):
        """Mark the connection inactive. Returns True if one was active."""
    
    @abstractmethod
    def mark_used(self, connection):
        """Record that the connection's token was just used."""


class DjangoTokenStore(TokenStore):
    """TokenStore backed by the OAuthConnection table."""
    
    def get_active_connection(self, user_id, provider):
        from .models import OAuthConnection
        
        return OAuthConnection.objects.filter(
            user_id=user_id,
            provider=provider,
            is_active=True
        ).first()
    
    def save_connection(self, user_id, provider, tokens, provider_user_id='', provider_email=''):
        from .models import OAuthConnection
        
        with transaction.atomic():
            connection, created = OAuthConnection.objects.update_or_create(
                user_id=user_id,
                provider=provider,
                defaults={
                    'access_token': tokens.access_token,
                    'refresh_token': tokens.refresh_token or '',
                    'token_type': tokens.token_type or 'Bearer',
                    'scope': tokens.scope or '',
                    'token_expires_at': tokens.expires_at,
                    'provider_user_id': provider_user_id or '',
                    'provider_email': provider_email or '',
                    'is_active': True,
                }
            )
        
        logger.info(f"{'Created' if created else 'Replaced'} {provider} connection for user {user_id}")
        return connection
    
    def rotate_tokens(self, connection, tokens):
        from .models import OAuthConnection
        
        now = timezone.now()
        updated = OAuthConnection.objects.filter(
            id=connection.id,
            is_active=True,
            token_expires_at=connection.token_expires_at
        ).update(
            access_token=tokens.access_token,
            # Providers that do not rotate refresh tokens return none
            refresh_token=tokens.refresh_token or connection.refresh_token,
            token_expires_at=tokens.expires_at,
            scope=tokens.scope or connection.scope,
            last_used_at=now,
            updated_at=now
        )
        
        if updated:
            connection.access_token = tokens.access_token
            connection.refresh_token = tokens.refresh_token or connection.refresh_token
            connection.token_expires_at = tokens.expires_at
            connection.scope = tokens.scope or connection.scope
            connection.last_used_at = now
        return bool(updated)
    
    def deactivate(self, user_id, provider):
        from .models import OAuthConnection
        
        updated = OAuthConnection.objects.filter(
            user_id=user_id,
            provider=provider,
            is_active=True
        ).update(is_active=False, updated_at=timezone.now())
        return bool(updated)
    
    def mark_used(self, connection):
        from .models import OAuthConnection
        
        now = timezone.now()
        OAuthConnection.objects.filter(id=connection.id).update(last_used_at=now)
        connection.last_used_at = now
