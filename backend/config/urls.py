"""
URL configuration for meeting_scheduler project.
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    
    # API endpoints
    path('api/v1/users/', include('apps.users.urls')),
    path('api/v1/availability/', include('apps.availability.urls')),
    path('api/v1/bookings/', include('apps.bookings.urls')),
    path('api/v1/integrations/', include('apps.integrations.urls')),
]
