"""
Booking lifecycle: create, reschedule, cancel, complete.

The acting user and their role are always passed in explicitly. Slot claims
are written before any meeting is provisioned, so a provider failure leaves
a booking without a link rather than a link without a booking.
"""
import logging
import uuid

from django.core.exceptions import ValidationError
from django.utils import timezone

from apps.availability.time_utils import get_zone
from apps.availability.utils import find_slot
from apps.integrations.exceptions import MeetingServiceError

from .exceptions import BookingPermissionDenied, SlotAlreadyBooked
from .gateway import DjangoBookingGateway
from .models import Booking, BookingAuditLog

logger = logging.getLogger(__name__)

ROLE_ADMIN = 'admin'
ROLE_MEMBER = 'member'


def create_booking_audit_log(booking, action, description, actor=None, metadata=None):
    """Create an audit log entry for a booking."""
    return BookingAuditLog.objects.create(
        booking=booking,
        action=action,
        description=description,
        actor=actor if getattr(actor, 'is_authenticated', False) else None,
        metadata=metadata or {}
    )


def _get_provisioner(provisioner):
    if provisioner is None:
        from apps.integrations.provisioner import MeetingProvisioner
        provisioner = MeetingProvisioner()
    return provisioner


def check_booking_access(booking, actor, role):
    """
    Admins manage bookings of their own patterns, members only their own.
    
    Raises:
        BookingPermissionDenied
    """
    if role == ROLE_ADMIN and booking.owner_id == actor.id:
        return
    if role == ROLE_MEMBER and booking.member_id == actor.id:
        return
    raise BookingPermissionDenied("You do not have access to this booking")


def _identity_fields(actor, role, guest_name, guest_email):
    if actor is not None and role == ROLE_MEMBER:
        return {'member': actor, 'guest_name': '', 'guest_email': ''}
    if not guest_name or not guest_email:
        raise ValidationError("Guest bookings require a name and an email")
    return {'member': None, 'guest_name': guest_name, 'guest_email': guest_email}


def provision_booking_meetings(bookings, provisioner=None, actor=None):
    """
    Provision meetings for freshly created bookings.
    
    Failures are recorded on each booking and returned; the bookings stay.
    
    Returns:
        list of (booking, MeetingServiceError) pairs for failed bookings
    """
    provisioner = _get_provisioner(provisioner)
    failures = []
    for booking in bookings:
        try:
            result = provisioner.provision_meeting(booking)
        except MeetingServiceError as e:
            failures.append((booking, e))
            create_booking_audit_log(
                booking, 'meeting_failed', f"Meeting link could not be created: {e.message}",
                actor=actor, metadata=e.to_dict()
            )
            continue
        if result is not None:
            create_booking_audit_log(
                booking, 'meeting_provisioned', f"Meeting link attached ({result.provider})",
                actor=actor, metadata={'meeting_id': result.meeting_id}
            )
    return failures


def create_booking_with_validation(pattern_id, start_time, actor=None, role=None, guest_name='',
                                   guest_email='', title='', description='', notes='', now=None,
                                   gateway=None, provisioner=None, provision=True):
    """
    Book a slot of a pattern.
    
    The requested start must be one of the pattern's future slots. Recurring
    patterns book the whole series or nothing.
    
    Returns:
        tuple: (list of created bookings, list of (booking, error) meeting failures)
    
    Raises:
        NotFound: unknown or inactive pattern
        ValidationError: start time is not an offered slot or identity is incomplete
        SlotAlreadyBooked: the slot (or any slot of the series) is taken
    """
    gateway = gateway or DjangoBookingGateway()
    now = now or timezone.now()
    pattern = gateway.get_pattern(pattern_id)
    
    slot = find_slot(pattern, start_time, now=now)
    if slot is None:
        raise ValidationError("The requested time is not an available slot for this pattern")
    
    base_fields = {
        'pattern': pattern,
        'owner': pattern.owner,
        'title': title or pattern.title,
        'description': description or pattern.description,
        'notes': notes,
        'timezone_name': pattern.timezone_name,
        'meeting_type': pattern.meeting_type,
        'meeting_config': dict(pattern.meeting_config or {}),
    }
    base_fields.update(_identity_fields(actor, role, guest_name, guest_email))
    if pattern.meeting_type == 'location' and not notes:
        base_fields['notes'] = (pattern.meeting_config or {}).get('manualValue', '')
    
    if pattern.is_recurring:
        from apps.availability.recurrence import generate_occurrences
        
        group_id = uuid.uuid4()
        occurrences = generate_occurrences(
            slot.start_time, slot.duration, pattern.recurrence_config, get_zone(pattern.timezone_name)
        )
        series = [
            dict(base_fields, start_time=start, end_time=end, recurrence_group_id=group_id, recurrence_index=index)
            for index, (start, end) in enumerate(occurrences)
        ]
        bookings = gateway.create_series_if_slots_free(series)
    else:
        bookings = [gateway.create_booking_if_slot_free(
            start_time=slot.start_time, end_time=slot.end_time, **base_fields
        )]
    
    for booking in bookings:
        create_booking_audit_log(
            booking, 'booking_created', f"Booking created for {booking.invitee_email}",
            actor=actor, metadata={'recurrence_index': booking.recurrence_index}
        )
    logger.info(f"Created {len(bookings)} booking(s) on pattern {pattern.id} starting {slot.start_time.isoformat()}")
    
    failures = provision_booking_meetings(bookings, provisioner, actor) if provision else []
    return bookings, failures


def create_adhoc_booking(actor, role, start_time, end_time, title, guest_name='', guest_email='',
                         member=None, description='', notes='', meeting_type='manual_link',
                         meeting_config=None, timezone_name=None, provisioner=None, provision=True):
    """
    Admin-created booking outside any pattern.
    
    Returns:
        tuple: (booking, list of (booking, error) meeting failures)
    """
    if role != ROLE_ADMIN:
        raise BookingPermissionDenied("Only admins can create ad hoc bookings")
    if start_time >= end_time:
        raise ValidationError("End time must be after start time")
    if member is None and not (guest_name and guest_email):
        raise ValidationError("Ad hoc bookings need a member or a guest name and email")
    if meeting_type == 'manual_link' and not (meeting_config or {}).get('manualValue'):
        raise ValidationError("Manual link meetings require meeting_config.manualValue")
    
    booking = DjangoBookingGateway().create_booking_if_slot_free(
        pattern=None,
        owner=actor,
        member=member,
        guest_name='' if member else guest_name,
        guest_email='' if member else guest_email,
        title=title,
        description=description,
        notes=notes,
        start_time=start_time,
        end_time=end_time,
        timezone_name=timezone_name or actor.timezone_name,
        meeting_type=meeting_type,
        meeting_config=meeting_config or {}
    )
    create_booking_audit_log(booking, 'booking_created', "Ad hoc booking created", actor=actor)
    
    failures = provision_booking_meetings([booking], provisioner, actor) if provision else []
    return booking, failures


def handle_booking_rescheduling(booking_id, new_start_time, actor, role, now=None, gateway=None,
                                provisioner=None):
    """
    Move an upcoming booking to a new start time.
    
    Pattern bookings must move onto another free slot of the same pattern.
    A provisioned remote meeting is updated first; if that fails the booking
    keeps its old times. If the slot is claimed concurrently after the remote
    update, the remote meeting is moved back.
    
    Raises:
        NotFound, BookingPermissionDenied, ValidationError, SlotAlreadyBooked,
        MeetingServiceError
    """
    gateway = gateway or DjangoBookingGateway()
    provisioner = _get_provisioner(provisioner)
    now = now or timezone.now()
    
    booking = gateway.get_booking(booking_id)
    check_booking_access(booking, actor, role)
    if booking.status != 'upcoming':
        raise ValidationError(f"Only upcoming bookings can be rescheduled (status: {booking.status})")
    
    if booking.pattern_id:
        slot = find_slot(booking.pattern, new_start_time, now=now)
        if slot is None:
            raise ValidationError("The requested time is not an available slot for this pattern")
        new_start, new_end = slot.start_time, slot.end_time
    else:
        if new_start_time <= now:
            raise ValidationError("Bookings cannot be moved into the past")
        new_start = new_start_time
        new_end = new_start_time + (booking.end_time - booking.start_time)
    
    old_start, old_end = booking.start_time, booking.end_time
    if new_start == old_start:
        return booking
    
    if gateway.is_slot_taken(booking.pattern_id, new_start, exclude_id=booking.id):
        raise SlotAlreadyBooked(booking.pattern_id, new_start)
    
    remote_updated = provisioner.update_meeting(booking, new_start, new_end)
    
    try:
        gateway.move_booking(booking, new_start, new_end)
    except SlotAlreadyBooked:
        if remote_updated:
            try:
                provisioner.update_meeting(booking, old_start, old_end)
            except MeetingServiceError as e:
                logger.error(f"Could not move meeting for booking {booking.id} back after conflict: {str(e)}")
        raise
    
    create_booking_audit_log(
        booking, 'booking_rescheduled', "Booking rescheduled",
        actor=actor, metadata={
            'old_start_time': old_start.isoformat(),
            'new_start_time': new_start.isoformat(),
            'remote_meeting_updated': remote_updated,
        }
    )
    logger.info(f"Rescheduled booking {booking.id} from {old_start.isoformat()} to {new_start.isoformat()}")
    return booking


def handle_booking_cancellation(booking_id, actor, role, reason='', now=None, gateway=None,
                                provisioner=None, defer_remote=False):
    """
    Cancel a booking.
    
    The local status change always happens. Remote meeting deletion is
    attempted afterwards and only logged when it fails.
    
    Returns:
        tuple: (booking, remote_deleted) where remote_deleted is None when
        deletion was deferred to a task
    """
    gateway = gateway or DjangoBookingGateway()
    booking = gateway.get_booking(booking_id)
    check_booking_access(booking, actor, role)
    
    booking.mark_cancelled(reason=reason, now=now)
    create_booking_audit_log(
        booking, 'booking_cancelled', f"Booking cancelled by {role}",
        actor=actor, metadata={'reason': reason}
    )
    
    if not booking.provider_meeting_id or booking.provider is None:
        return booking, True
    
    if defer_remote:
        from .tasks import delete_remote_meeting
        delete_remote_meeting.delay(str(booking.id))
        return booking, None
    
    remote_deleted = _get_provisioner(provisioner).delete_meeting(booking)
    if remote_deleted:
        create_booking_audit_log(booking, 'meeting_deleted', "Remote meeting deleted", actor=actor)
    else:
        logger.warning(f"Booking {booking.id} cancelled but its remote meeting could not be deleted")
    return booking, remote_deleted


def complete_booking(booking_id, actor, role, now=None, gateway=None):
    """Mark an upcoming booking as completed. Admin only."""
    gateway = gateway or DjangoBookingGateway()
    booking = gateway.get_booking(booking_id)
    if role != ROLE_ADMIN:
        raise BookingPermissionDenied("Only admins can complete bookings")
    check_booking_access(booking, actor, role)
    
    booking.mark_completed(now=now)
    create_booking_audit_log(booking, 'booking_completed', "Booking marked completed", actor=actor)
    return booking


def retry_meeting_provisioning(booking_id, actor=None, role=None, gateway=None, provisioner=None):
    """
    Re-attempt provisioning for a booking that has no meeting link.
    
    Safe to repeat: the booking's provisioning key lets the provider
    return a meeting an earlier attempt already created.
    """
    gateway = gateway or DjangoBookingGateway()
    booking = gateway.get_booking(booking_id)
    if actor is not None:
        check_booking_access(booking, actor, role)
    if booking.status != 'upcoming':
        raise ValidationError("Meetings can only be provisioned for upcoming bookings")
    
    result = _get_provisioner(provisioner).provision_meeting(booking)
    if result is not None:
        create_booking_audit_log(
            booking, 'meeting_provisioned', f"Meeting link attached ({result.provider})",
            actor=actor, metadata={'meeting_id': result.meeting_id}
        )
    return booking


def auto_complete_past_bookings(now=None):
    """
    Complete upcoming bookings whose end time has passed.
    
    Returns:
        int: number of bookings completed
    """
    now = now or timezone.now()
    due = list(Booking.objects.filter(status='upcoming', end_time__lte=now).select_related('owner'))
    
    completed = 0
    for booking in due:
        # Re-check under update so a concurrent cancel wins
        updated = Booking.objects.filter(id=booking.id, status='upcoming').update(
            status='completed', completed_at=now, updated_at=now
        )
        if updated:
            completed += 1
            create_booking_audit_log(booking, 'booking_completed', "Booking completed automatically")
    
    if completed:
        logger.info(f"Auto-completed {completed} past bookings")
    return completed
