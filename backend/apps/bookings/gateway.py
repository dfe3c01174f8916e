"""
Persistence contract for patterns and bookings.

``create_booking_if_slot_free`` is the only guard against double booking:
slot annotation shown to users is an optimistic hint.
"""
import logging
from abc import ABC, abstractmethod

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from .exceptions import NotFound, SlotAlreadyBooked

logger = logging.getLogger(__name__)


class BookingGateway(ABC):
    
    @abstractmethod
    def get_pattern(self, pattern_id, active_only=True):
        """Return a pattern or raise NotFound."""
    
    @abstractmethod
    def get_booking(self, booking_id):
        """Return a booking or raise NotFound."""
    
    @abstractmethod
    def list_bookings_for_pattern(self, pattern_id, statuses=None):
        """Bookings of a pattern, optionally limited to some statuses."""
    
    @abstractmethod
    def is_slot_taken(self, pattern_id, start_time, exclude_id=None):
        """True if a non-cancelled booking holds the pattern slot."""
    
    @abstractmethod
    def create_booking_if_slot_free(self, **fields):
        """Atomically insert a booking unless its pattern slot is taken."""
    
    @abstractmethod
    def create_series_if_slots_free(self, series):
        """Atomically insert several bookings; all or none are created."""
    
    @abstractmethod
    def move_booking(self, booking, start_time, end_time):
        """Change a booking's times unless the new pattern slot is taken."""


class DjangoBookingGateway(BookingGateway):
    """BookingGateway backed by the Django ORM and database constraints."""
    
    def get_pattern(self, pattern_id, active_only=True):
        from apps.availability.models import AvailabilityPattern
        
        queryset = AvailabilityPattern.objects.select_related('owner')
        if active_only:
            queryset = queryset.filter(is_active=True)
        try:
            return queryset.get(id=pattern_id)
        except (AvailabilityPattern.DoesNotExist, ValidationError, ValueError):
            raise NotFound(f"Availability pattern {pattern_id} not found")
    
    def get_booking(self, booking_id):
        from .models import Booking
        
        try:
            return Booking.objects.select_related('owner', 'member', 'pattern').get(id=booking_id)
        except (Booking.DoesNotExist, ValidationError, ValueError):
            raise NotFound(f"Booking {booking_id} not found")
    
    def list_bookings_for_pattern(self, pattern_id, statuses=None):
        from .models import Booking
        
        queryset = Booking.objects.filter(pattern_id=pattern_id)
        if statuses:
            queryset = queryset.filter(status__in=statuses)
        return list(queryset.order_by('start_time'))
    
    def is_slot_taken(self, pattern_id, start_time, exclude_id=None):
        from .models import Booking
        
        if pattern_id is None:
            return False
        queryset = Booking.objects.filter(pattern_id=pattern_id, start_time=start_time).exclude(status='cancelled')
        if exclude_id:
            queryset = queryset.exclude(id=exclude_id)
        return queryset.exists()
    
    def _insert(self, fields):
        from .models import Booking
        
        pattern_id = fields.get('pattern_id') or getattr(fields.get('pattern'), 'id', None)
        start_time = fields['start_time']
        if self.is_slot_taken(pattern_id, start_time):
            raise SlotAlreadyBooked(pattern_id, start_time)
        
        try:
            with transaction.atomic():
                return Booking.objects.create(**fields)
        except IntegrityError:
            # Lost a race with a concurrent insert; anything else is a real error
            if self.is_slot_taken(pattern_id, start_time):
                raise SlotAlreadyBooked(pattern_id, start_time)
            raise
    
    def create_booking_if_slot_free(self, **fields):
        booking = self._insert(fields)
        logger.info(f"Booked slot {booking.start_time.isoformat()} of pattern {booking.pattern_id}")
        return booking
    
    def create_series_if_slots_free(self, series):
        with transaction.atomic():
            return [self._insert(fields) for fields in series]
    
    def move_booking(self, booking, start_time, end_time):
        from .models import Booking
        
        if self.is_slot_taken(booking.pattern_id, start_time, exclude_id=booking.id):
            raise SlotAlreadyBooked(booking.pattern_id, start_time)
        
        try:
            with transaction.atomic():
                Booking.objects.filter(id=booking.id).update(
                    start_time=start_time, end_time=end_time, updated_at=timezone.now()
                )
        except IntegrityError:
            if self.is_slot_taken(booking.pattern_id, start_time, exclude_id=booking.id):
                raise SlotAlreadyBooked(booking.pattern_id, start_time)
            raise
        
        booking.start_time = start_time
        booking.end_time = end_time
        return booking
