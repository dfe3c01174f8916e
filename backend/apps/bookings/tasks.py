from celery import shared_task
import logging

from apps.integrations.exceptions import MeetingServiceError

from .exceptions import NotFound
from .gateway import DjangoBookingGateway
from .utils import auto_complete_past_bookings, create_booking_audit_log, retry_meeting_provisioning

logger = logging.getLogger(__name__)


@shared_task
def provision_booking_meeting(booking_id):
    """Retry meeting provisioning for a booking in the background."""
    try:
        booking = retry_meeting_provisioning(booking_id)
    except NotFound:
        return f"Booking {booking_id} not found"
    except MeetingServiceError as e:
        logger.error(f"Background provisioning failed for booking {booking_id}: {str(e)}")
        return f"Provisioning failed for booking {booking_id}: {e.message}"
    
    return f"Booking {booking_id} meeting status: {booking.meeting_status}"


@shared_task
def delete_remote_meeting(booking_id):
    """Best-effort deletion of a cancelled booking's remote meeting."""
    from apps.integrations.provisioner import MeetingProvisioner
    
    try:
        booking = DjangoBookingGateway().get_booking(booking_id)
    except NotFound:
        return f"Booking {booking_id} not found"
    
    if MeetingProvisioner().delete_meeting(booking):
        create_booking_audit_log(booking, 'meeting_deleted', "Remote meeting deleted")
        return f"Deleted remote meeting for booking {booking_id}"
    return f"Could not delete remote meeting for booking {booking_id}"


@shared_task
def auto_complete_bookings():
    """Mark upcoming bookings whose end time has passed as completed."""
    completed = auto_complete_past_bookings()
    return f"Completed {completed} bookings"
