from rest_framework import serializers
from .models import OAuthConnection, IntegrationLog


class OAuthConnectionSerializer(serializers.ModelSerializer):
    provider_display = serializers.CharField(source='get_provider_display', read_only=True)
    is_token_expired = serializers.ReadOnlyField()
    
    class Meta:
        model = OAuthConnection
        fields = [
            'id', 'provider', 'provider_display', 'provider_email', 'provider_user_id', 'scope',
            'is_active', 'is_token_expired', 'token_expires_at', 'last_used_at', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class IntegrationLogSerializer(serializers.ModelSerializer):
    log_type_display = serializers.CharField(source='get_log_type_display', read_only=True)
    booking_id = serializers.UUIDField(source='booking.id', read_only=True, default=None)
    
    class Meta:
        model = IntegrationLog
        fields = [
            'id', 'log_type', 'log_type_display', 'provider',
            'booking_id', 'message', 'details', 'success', 'created_at'
        ]
        read_only_fields = fields


class ProviderSerializer(serializers.Serializer):
    provider = serializers.ChoiceField(choices=[choice[0] for choice in OAuthConnection.PROVIDER_CHOICES])


class OAuthCallbackSerializer(ProviderSerializer):
    """Serializer for OAuth callback."""
    code = serializers.CharField()
    state = serializers.CharField()
