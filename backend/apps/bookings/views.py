from rest_framework import generics, permissions, status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from django.core.exceptions import ValidationError
from datetime import datetime
import logging

from apps.integrations.exceptions import MeetingServiceError

from .exceptions import BookingPermissionDenied, InvalidStatusTransition, NotFound, SlotAlreadyBooked
from .models import Booking, BookingAuditLog
from .serializers import (
    BookingSerializer, BookingCreateSerializer, AdhocBookingCreateSerializer,
    BookingRescheduleSerializer, BookingCancelSerializer, BookingAuditLogSerializer
)
from .tasks import provision_booking_meeting
from .utils import (
    check_booking_access, create_booking_with_validation, create_adhoc_booking,
    handle_booking_rescheduling, handle_booking_cancellation, complete_booking,
    retry_meeting_provisioning
)

logger = logging.getLogger(__name__)


def booking_error_response(error):
    """Translate a booking or meeting error into an API response."""
    if isinstance(error, SlotAlreadyBooked):
        return Response(
            {'error': error.message, 'code': error.code},
            status=status.HTTP_409_CONFLICT
        )
    if isinstance(error, NotFound):
        return Response({'error': error.message, 'code': error.code}, status=status.HTTP_404_NOT_FOUND)
    if isinstance(error, BookingPermissionDenied):
        return Response({'error': error.message, 'code': error.code}, status=status.HTTP_403_FORBIDDEN)
    if isinstance(error, InvalidStatusTransition):
        return Response({'error': error.message, 'code': error.code}, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(error, ValidationError):
        return Response({'errors': error.messages}, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(error, MeetingServiceError):
        return Response(
            {'error': error.message, 'meeting_error': error.to_dict()},
            status=status.HTTP_502_BAD_GATEWAY
        )
    raise error


def _meeting_failures_payload(failures):
    return [
        {'booking_id': str(booking.id), **error.to_dict()}
        for booking, error in failures
    ]


def _role(request):
    return request.user.role if request.user.is_authenticated else None


class BookingListView(generics.ListAPIView):
    serializer_class = BookingSerializer
    permission_classes = [permissions.IsAuthenticated]
    
    def get_queryset(self):
        user = self.request.user
        if user.is_admin_role:
            queryset = Booking.objects.filter(owner=user)
        else:
            queryset = Booking.objects.filter(member=user)
        queryset = queryset.select_related('owner', 'member').order_by('-start_time')
        
        # Filter by status
        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        
        # Filter by date range
        start_date = self.request.query_params.get('start_date')
        end_date = self.request.query_params.get('end_date')
        
        if start_date:
            try:
                start_date_obj = datetime.strptime(start_date, '%Y-%m-%d').date()
                queryset = queryset.filter(start_time__date__gte=start_date_obj)
            except ValueError:
                pass
        
        if end_date:
            try:
                end_date_obj = datetime.strptime(end_date, '%Y-%m-%d').date()
                queryset = queryset.filter(start_time__date__lte=end_date_obj)
            except ValueError:
                pass
        
        return queryset


class BookingDetailView(generics.RetrieveAPIView):
    serializer_class = BookingSerializer
    permission_classes = [permissions.IsAuthenticated]
    
    def get_queryset(self):
        user = self.request.user
        if user.is_admin_role:
            return Booking.objects.filter(owner=user)
        return Booking.objects.filter(member=user)


class BookingAuditLogListView(generics.ListAPIView):
    serializer_class = BookingAuditLogSerializer
    permission_classes = [permissions.IsAuthenticated]
    
    def get_queryset(self):
        user = self.request.user
        owner_field = 'booking__owner' if user.is_admin_role else 'booking__member'
        return BookingAuditLog.objects.filter(
            booking_id=self.kwargs['pk'], **{owner_field: user}
        ).select_related('actor')


class BookingThrottle(AnonRateThrottle):
    scope = 'booking'


@api_view(['POST'])
@permission_classes([permissions.AllowAny])
@throttle_classes([BookingThrottle])
def create_booking(request):
    """Book a pattern slot as the signed-in member or as a guest."""
    serializer = BookingCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    
    data = serializer.validated_data
    actor = request.user if request.user.is_authenticated else None
    
    try:
        bookings, failures = create_booking_with_validation(
            pattern_id=data['pattern_id'],
            start_time=data['start_time'],
            actor=actor,
            role=_role(request),
            guest_name=data['guest_name'],
            guest_email=data['guest_email'],
            title=data['title'],
            description=data['description'],
            notes=data['notes']
        )
    except SlotAlreadyBooked as e:
        logger.info(f"Slot conflict on pattern {data['pattern_id']} at {data['start_time']}")
        return booking_error_response(e)
    except (NotFound, ValidationError) as e:
        return booking_error_response(e)
    
    return Response({
        'bookings': BookingSerializer(bookings, many=True).data,
        'meeting_errors': _meeting_failures_payload(failures),
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def create_adhoc(request):
    """Admin booking at an arbitrary time, outside any pattern."""
    serializer = AdhocBookingCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    
    data = serializer.validated_data
    try:
        booking, failures = create_adhoc_booking(
            actor=request.user,
            role=_role(request),
            start_time=data['start_time'],
            end_time=data['end_time'],
            title=data['title'],
            guest_name=data['guest_name'],
            guest_email=data['guest_email'],
            member=data['member_id'],
            description=data['description'],
            notes=data['notes'],
            meeting_type=data['meeting_type'],
            meeting_config=data['meeting_config'],
            timezone_name=data['timezone_name'] or None
        )
    except (BookingPermissionDenied, ValidationError) as e:
        return booking_error_response(e)
    
    return Response({
        'booking': BookingSerializer(booking).data,
        'meeting_errors': _meeting_failures_payload(failures),
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def reschedule_booking(request, pk):
    serializer = BookingRescheduleSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    
    try:
        booking = handle_booking_rescheduling(
            pk, serializer.validated_data['start_time'], request.user, _role(request)
        )
    except (SlotAlreadyBooked, NotFound, BookingPermissionDenied, ValidationError, MeetingServiceError) as e:
        return booking_error_response(e)
    
    return Response(BookingSerializer(booking).data)


@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def cancel_booking(request, pk):
    serializer = BookingCancelSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    
    try:
        booking, remote_deleted = handle_booking_cancellation(
            pk, request.user, _role(request),
            reason=serializer.validated_data['reason'],
            defer_remote=request.query_params.get('async') == 'true'
        )
    except (NotFound, BookingPermissionDenied, InvalidStatusTransition) as e:
        return booking_error_response(e)
    
    response_data = BookingSerializer(booking).data
    response_data['remote_meeting_deleted'] = remote_deleted
    return Response(response_data)


@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def complete(request, pk):
    try:
        booking = complete_booking(pk, request.user, _role(request))
    except (NotFound, BookingPermissionDenied, InvalidStatusTransition) as e:
        return booking_error_response(e)
    
    return Response(BookingSerializer(booking).data)


@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def provision_meeting(request, pk):
    """Retry meeting provisioning for a booking that has no link."""
    if request.query_params.get('async') == 'true':
        booking = Booking.objects.filter(pk=pk).first()
        if booking is None:
            return booking_error_response(NotFound(f"Booking {pk} not found"))
        try:
            check_booking_access(booking, request.user, _role(request))
        except BookingPermissionDenied as e:
            return booking_error_response(e)
        provision_booking_meeting.delay(str(booking.id))
        return Response({'message': 'Provisioning scheduled'}, status=status.HTTP_202_ACCEPTED)
    
    try:
        booking = retry_meeting_provisioning(pk, request.user, _role(request))
    except (NotFound, BookingPermissionDenied, ValidationError, MeetingServiceError) as e:
        return booking_error_response(e)
    
    return Response(BookingSerializer(booking).data)
