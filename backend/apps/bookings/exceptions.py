"""
Booking errors handled as ordinary control flow by views and tasks.
"""


class BookingError(Exception):
    code = 'booking_error'
    
    def __init__(self, message):
        super().__init__(message)
        self.message = message


class NotFound(BookingError):
    code = 'not_found'


class SlotAlreadyBooked(BookingError):
    """Another non-cancelled booking already holds this pattern slot."""
    code = 'slot_already_booked'
    
    def __init__(self, pattern_id, start_time):
        super().__init__(f"The slot at {start_time.isoformat()} is already booked")
        self.pattern_id = pattern_id
        self.start_time = start_time


class InvalidStatusTransition(BookingError):
    code = 'invalid_status_transition'
    
    def __init__(self, current_status, new_status):
        super().__init__(f"Cannot change booking status from {current_status} to {new_status}")
        self.current_status = current_status
        self.new_status = new_status


class BookingPermissionDenied(BookingError):
    code = 'permission_denied'
