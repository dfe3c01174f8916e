from django.urls import path
from . import views

app_name = 'availability'

urlpatterns = [
    path('patterns/', views.AvailabilityPatternListCreateView.as_view(), name='pattern-list'),
    path('patterns/<uuid:pk>/', views.AvailabilityPatternDetailView.as_view(), name='pattern-detail'),
    path('patterns/<uuid:pk>/slots/', views.pattern_slots, name='pattern-slots'),
]
