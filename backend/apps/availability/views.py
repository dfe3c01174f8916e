from rest_framework import generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from django.shortcuts import get_object_or_404
from .models import AvailabilityPattern
from .serializers import AvailabilityPatternSerializer, SlotQuerySerializer
from .utils import get_pattern_slots
import logging

logger = logging.getLogger(__name__)


class IsPatternOwner(permissions.BasePermission):
    """Write access only for the admin who owns the pattern."""
    
    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return True
        return request.user.is_authenticated and request.user.is_admin_role
    
    def has_object_permission(self, request, view, obj):
        if request.method in permissions.SAFE_METHODS:
            return True
        return obj.owner_id == request.user.id


class AvailabilityPatternListCreateView(generics.ListCreateAPIView):
    serializer_class = AvailabilityPatternSerializer
    permission_classes = [permissions.IsAuthenticated, IsPatternOwner]
    
    def get_queryset(self):
        user = self.request.user
        if user.is_admin_role:
            return AvailabilityPattern.objects.filter(owner=user)
        return AvailabilityPattern.objects.filter(is_active=True)
    
    def perform_create(self, serializer):
        pattern = serializer.save(owner=self.request.user)
        logger.info(f"Created availability pattern {pattern.id} for {self.request.user.email}")


class AvailabilityPatternDetailView(generics.RetrieveUpdateDestroyAPIView):
    serializer_class = AvailabilityPatternSerializer
    permission_classes = [permissions.IsAuthenticated, IsPatternOwner]
    
    def get_queryset(self):
        user = self.request.user
        if user.is_admin_role:
            return AvailabilityPattern.objects.filter(owner=user)
        return AvailabilityPattern.objects.filter(is_active=True)
    
    def perform_destroy(self, instance):
        # Bookings keep their own times; their pattern reference is cleared
        logger.info(f"Deleting availability pattern {instance.id}")
        instance.delete()


@api_view(['GET'])
@permission_classes([permissions.AllowAny])
def pattern_slots(request, pk):
    """Expanded slots for a pattern, marked bookable or blocked."""
    pattern = get_object_or_404(AvailabilityPattern, pk=pk, is_active=True)
    
    query = SlotQuerySerializer(data=request.query_params)
    if not query.is_valid():
        return Response(query.errors, status=status.HTTP_400_BAD_REQUEST)
    
    start_date = query.validated_data['start']
    end_date = query.validated_data['end']
    
    busy_intervals = None
    if query.validated_data['include_calendar']:
        busy_intervals = get_owner_busy_intervals(pattern, start_date, end_date)
    
    slots = get_pattern_slots(pattern, start_date, end_date, busy_intervals=busy_intervals)
    
    return Response({
        'pattern_id': str(pattern.id),
        'timezone': pattern.timezone_name,
        'duration_minutes': pattern.duration_minutes,
        'slots': [item.to_dict(pattern.timezone_name) for item in slots],
        'total_slots': len(slots),
        'calendar_checked': busy_intervals is not None,
    })


def get_owner_busy_intervals(pattern, start_date, end_date):
    """
    Busy intervals from the owner's Google calendar, or None when unavailable.
    
    Calendar data is advisory, so any failure here only means the slot list is
    returned without it.
    """
    from apps.integrations.exceptions import MeetingServiceError
    from apps.integrations.provisioner import MeetingProvisioner
    
    try:
        return MeetingProvisioner().get_busy_intervals(pattern.owner, start_date, end_date, pattern.timezone_name)
    except MeetingServiceError as e:
        logger.warning(f"Skipping calendar busy check for pattern {pattern.id}: {e}")
        return None
