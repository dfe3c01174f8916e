from django.urls import path
from . import views

app_name = 'bookings'

urlpatterns = [
    path('', views.BookingListView.as_view(), name='booking-list'),
    path('create/', views.create_booking, name='booking-create'),
    path('adhoc/', views.create_adhoc, name='booking-adhoc'),
    path('<uuid:pk>/', views.BookingDetailView.as_view(), name='booking-detail'),
    path('<uuid:pk>/reschedule/', views.reschedule_booking, name='booking-reschedule'),
    path('<uuid:pk>/cancel/', views.cancel_booking, name='booking-cancel'),
    path('<uuid:pk>/complete/', views.complete, name='booking-complete'),
    path('<uuid:pk>/meeting/', views.provision_meeting, name='booking-meeting'),
    path('<uuid:pk>/audit/', views.BookingAuditLogListView.as_view(), name='booking-audit'),
]
