from rest_framework import generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from .exceptions import MeetingProviderError
from .models import OAuthConnection, IntegrationLog
from .provisioner import MeetingProvisioner
from .serializers import (
    OAuthConnectionSerializer, IntegrationLogSerializer, ProviderSerializer, OAuthCallbackSerializer
)
import logging
import secrets

logger = logging.getLogger(__name__)


class OAuthConnectionListView(generics.ListAPIView):
    serializer_class = OAuthConnectionSerializer
    permission_classes = [permissions.IsAuthenticated]
    
    def get_queryset(self):
        return OAuthConnection.objects.filter(user=self.request.user).order_by('provider')


class IntegrationLogListView(generics.ListAPIView):
    serializer_class = IntegrationLogSerializer
    permission_classes = [permissions.IsAuthenticated]
    
    def get_queryset(self):
        queryset = IntegrationLog.objects.filter(user=self.request.user)
        provider = self.request.query_params.get('provider')
        if provider:
            queryset = queryset.filter(provider=provider)
        return queryset


@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def initiate_oauth(request):
    """Start the OAuth flow for a meeting provider."""
    serializer = ProviderSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    
    provider = serializer.validated_data['provider']
    
    # Generate state parameter for security
    state = secrets.token_urlsafe(32)
    request.session[f'oauth_state_{provider}'] = state
    
    auth_url = MeetingProvisioner().get_provider(provider).authorization_url(f"{provider}:{state}")
    
    return Response({
        'authorization_url': auth_url,
        'provider': provider,
        'state': state
    })


@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def oauth_callback(request):
    """Handle OAuth callback and store tokens."""
    serializer = OAuthCallbackSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    
    provider = serializer.validated_data['provider']
    code = serializer.validated_data['code']
    state = serializer.validated_data['state']
    
    # Verify state parameter
    expected_state = request.session.get(f'oauth_state_{provider}')
    if not expected_state or not secrets.compare_digest(state.split(':')[-1], expected_state):
        return Response(
            {'error': 'Invalid state parameter'},
            status=status.HTTP_400_BAD_REQUEST
        )
    
    try:
        connection = MeetingProvisioner().connect(request.user, provider, code)
    except MeetingProviderError as e:
        logger.error(f"OAuth callback error for {provider}: {str(e)}")
        return Response(
            {'error': f'Failed to connect {provider}', 'details': e.to_dict()},
            status=status.HTTP_502_BAD_GATEWAY
        )
    
    request.session.pop(f'oauth_state_{provider}', None)
    
    return Response({
        'message': f'{provider.title()} connected successfully',
        'connection': OAuthConnectionSerializer(connection).data
    })


@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated])
def check_connection(request):
    """Report whether the user has an active connection for a provider."""
    serializer = ProviderSerializer(data=request.query_params)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    
    provider = serializer.validated_data['provider']
    connection = OAuthConnection.objects.filter(
        user=request.user, provider=provider, is_active=True
    ).first()
    
    return Response({
        'provider': provider,
        'connected': connection is not None,
        'provider_email': connection.provider_email if connection else None,
    })


@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def disconnect(request):
    """Revoke and deactivate a provider connection."""
    serializer = ProviderSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    
    provider = serializer.validated_data['provider']
    if not MeetingProvisioner().disconnect(request.user, provider):
        return Response(
            {'error': f'No active {provider} connection'},
            status=status.HTTP_404_NOT_FOUND
        )
    
    return Response({'message': f'{provider.title()} disconnected', 'provider': provider})
