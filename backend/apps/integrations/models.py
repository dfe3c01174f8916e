from django.db import models
from django.utils import timezone
import uuid


class OAuthConnection(models.Model):
    """OAuth credentials a user granted to a meeting provider."""
    PROVIDER_CHOICES = [
        ('google', 'Google'),
        ('zoom', 'Zoom'),
    ]
    
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey('users.User', on_delete=models.CASCADE, related_name='oauth_connections')
    provider = models.CharField(max_length=20, choices=PROVIDER_CHOICES)
    
    # OAuth tokens
    access_token = models.TextField()
    refresh_token = models.TextField(blank=True)
    token_type = models.CharField(max_length=20, default='Bearer')
    scope = models.TextField(blank=True)
    token_expires_at = models.DateTimeField(null=True, blank=True)
    
    # Provider-specific data
    provider_user_id = models.CharField(max_length=200, blank=True)
    provider_email = models.EmailField(blank=True)
    
    is_active = models.BooleanField(default=True)
    last_used_at = models.DateTimeField(null=True, blank=True)
    
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    
    class Meta:
        db_table = 'oauth_connections'
        verbose_name = 'OAuth Connection'
        verbose_name_plural = 'OAuth Connections'
        constraints = [
            models.UniqueConstraint(fields=['user', 'provider'], name='unique_oauth_connection_per_provider'),
        ]
        indexes = [
            models.Index(fields=['is_active', 'token_expires_at'], name='oauth_conne_is_acti_4d7e2a_idx'),
        ]
    
    def __str__(self):
        return f"{self.user.email} - {self.get_provider_display()}"
    
    @property
    def is_token_expired(self):
        """Check if the access token is expired."""
        if not self.token_expires_at:
            return False
        return timezone.now() >= self.token_expires_at
    
    def needs_refresh(self, now, margin):
        """True when the token expires within ``margin`` of ``now``."""
        if not self.token_expires_at:
            return False
        return self.token_expires_at - now < margin


class IntegrationLog(models.Model):
    """Log model for tracking integration activities."""
    LOG_TYPES = [
        ('oauth_connected', 'OAuth Connected'),
        ('oauth_disconnected', 'OAuth Disconnected'),
        ('token_refreshed', 'Token Refreshed'),
        ('meeting_created', 'Meeting Created'),
        ('meeting_updated', 'Meeting Updated'),
        ('meeting_deleted', 'Meeting Deleted'),
        ('calendar_busy_check', 'Calendar Busy Check'),
        ('error', 'Error'),
    ]
    
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey('users.User', on_delete=models.CASCADE, related_name='integration_logs')
    log_type = models.CharField(max_length=30, choices=LOG_TYPES)
    
    # Related objects
    booking = models.ForeignKey('bookings.Booking', on_delete=models.SET_NULL, null=True, blank=True)
    provider = models.CharField(max_length=20, blank=True)
    
    # Log details
    message = models.TextField()
    details = models.JSONField(default=dict, blank=True)
    
    success = models.BooleanField(default=True)
    
    created_at = models.DateTimeField(auto_now_add=True)
    
    class Meta:
        db_table = 'integration_logs'
        verbose_name = 'Integration Log'
        verbose_name_plural = 'Integration Logs'
        ordering = ['-created_at']
    
    def __str__(self):
        return f"{self.user.email} - {self.get_log_type_display()} - {self.created_at}"
