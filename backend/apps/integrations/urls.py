from django.urls import path
from . import views

app_name = 'integrations'

urlpatterns = [
    # OAuth
    path('oauth/initiate/', views.initiate_oauth, name='oauth-initiate'),
    path('oauth/callback/', views.oauth_callback, name='oauth-callback'),
    
    # Connections
    path('connections/', views.OAuthConnectionListView.as_view(), name='connection-list'),
    path('connections/check/', views.check_connection, name='connection-check'),
    path('connections/disconnect/', views.disconnect, name='connection-disconnect'),
    
    # Integration Logs
    path('logs/', views.IntegrationLogListView.as_view(), name='log-list'),
]
