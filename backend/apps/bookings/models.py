from django.db import models
from django.db.models import Q
from django.core.exceptions import ValidationError
from django.utils import timezone
from datetime import timedelta
import uuid

from .exceptions import InvalidStatusTransition


class Booking(models.Model):
    """A reserved pattern slot, or an ad hoc time, for a member or a guest."""
    STATUS_CHOICES = [
        ('upcoming', 'Upcoming'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]
    
    # Status changes only move forward; completed and cancelled are terminal
    STATUS_TRANSITIONS = {
        'upcoming': {'completed', 'cancelled'},
        'completed': set(),
        'cancelled': set(),
    }
    
    MEETING_STATUS_CHOICES = [
        ('not_requested', 'Not Requested'),
        ('pending', 'Pending'),
        ('provisioned', 'Provisioned'),
        ('failed', 'Failed'),
    ]
    
    MEETING_TYPE_CHOICES = [
        ('zoom', 'Zoom'),
        ('google_meet', 'Google Meet'),
        ('manual_link', 'Manual Link'),
        ('location', 'Physical Location'),
    ]
    
    MEETING_TYPE_PROVIDERS = {
        'zoom': 'zoom',
        'google_meet': 'google',
    }
    
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    pattern = models.ForeignKey(
        'availability.AvailabilityPattern',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='bookings'
    )
    owner = models.ForeignKey('users.User', on_delete=models.CASCADE, related_name='owned_bookings')
    
    # Exactly one of member or guest name/email
    member = models.ForeignKey(
        'users.User',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='member_bookings'
    )
    guest_name = models.CharField(max_length=200, blank=True)
    guest_email = models.EmailField(blank=True)
    
    # Booking details
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    timezone_name = models.CharField(max_length=50, default='UTC')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='upcoming')
    
    # Meeting details
    meeting_type = models.CharField(max_length=20, choices=MEETING_TYPE_CHOICES, default='manual_link')
    meeting_config = models.JSONField(default=dict, blank=True)
    meeting_url = models.CharField(max_length=500, blank=True)
    meeting_provider = models.CharField(max_length=20, blank=True)
    provider_meeting_id = models.CharField(max_length=200, blank=True)
    provisioning_key = models.CharField(
        max_length=64,
        blank=True,
        help_text="Idempotency key stored before the first remote create call"
    )
    meeting_status = models.CharField(max_length=20, choices=MEETING_STATUS_CHOICES, default='not_requested')
    meeting_error = models.TextField(blank=True)
    meeting_provisioned_at = models.DateTimeField(null=True, blank=True)
    
    # Recurring series
    recurrence_group_id = models.UUIDField(null=True, blank=True, help_text="Links recurring bookings together")
    recurrence_index = models.IntegerField(default=0)
    
    # Tracking
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True)
    
    class Meta:
        db_table = 'bookings'
        verbose_name = 'Booking'
        verbose_name_plural = 'Bookings'
        ordering = ['start_time']
        constraints = [
            models.UniqueConstraint(
                fields=['pattern', 'start_time'],
                condition=Q(pattern__isnull=False) & ~Q(status='cancelled'),
                name='unique_active_booking_per_slot'
            ),
            models.CheckConstraint(
                condition=(
                    (Q(member__isnull=False) & Q(guest_email=''))
                    | (Q(member__isnull=True) & ~Q(guest_email='') & ~Q(guest_name=''))
                ),
                name='booking_member_xor_guest'
            ),
            models.CheckConstraint(
                condition=Q(end_time__gt=models.F('start_time')),
                name='booking_end_after_start'
            ),
        ]
        indexes = [
            models.Index(fields=['owner', 'start_time'], name='bookings_owner_i_5a2d1b_idx'),
            models.Index(fields=['status', 'end_time'], name='bookings_status_7e4c9a_idx'),
            models.Index(fields=['recurrence_group_id'], name='bookings_recurre_1b8f2d_idx'),
        ]
    
    def __str__(self):
        return f"{self.invitee_name} - {self.title} - {self.start_time}"
    
    def clean(self):
        """Validate booking data."""
        super().clean()
        
        if self.start_time and self.end_time and self.start_time >= self.end_time:
            raise ValidationError("End time must be after start time")
        
        if self.member_id and (self.guest_name or self.guest_email):
            raise ValidationError("A booking belongs to either a member or a guest, not both")
        if not self.member_id and not (self.guest_name and self.guest_email):
            raise ValidationError("Guest bookings require a name and an email")
        
        if self.pattern_id and self.start_time and self.end_time:
            expected_duration = timedelta(minutes=self.pattern.duration_minutes)
            if self.end_time - self.start_time != expected_duration:
                raise ValidationError("Booking duration must match pattern duration")
    
    @property
    def duration_minutes(self):
        """Calculate booking duration in minutes."""
        return int((self.end_time - self.start_time).total_seconds() / 60)
    
    @property
    def invitee_name(self):
        if self.member_id:
            return self.member.get_full_name()
        return self.guest_name
    
    @property
    def invitee_email(self):
        if self.member_id:
            return self.member.email
        return self.guest_email
    
    @property
    def provider(self):
        """OAuth provider that hosts this booking's meeting, or None."""
        return self.MEETING_TYPE_PROVIDERS.get(self.meeting_type)
    
    def attendee_emails(self):
        emails = [self.invitee_email, self.owner.email]
        return [email for index, email in enumerate(emails) if email and email not in emails[:index]]
    
    def can_transition_to(self, new_status):
        return new_status in self.STATUS_TRANSITIONS.get(self.status, set())
    
    def _transition(self, new_status, now, **fields):
        """
        Move to ``new_status`` only if the stored row still allows it.

        The check is part of the UPDATE, so a booking finished by another
        request or task since this instance was loaded is never overwritten.
        """
        if not self.can_transition_to(new_status):
            raise InvalidStatusTransition(self.status, new_status)

        allowed_from = [status for status, targets in self.STATUS_TRANSITIONS.items() if new_status in targets]
        updated = Booking.objects.filter(id=self.id, status__in=allowed_from).update(
            status=new_status, updated_at=now, **fields
        )
        if not updated:
            self.refresh_from_db(fields=['status', 'completed_at', 'cancelled_at', 'cancellation_reason'])
            raise InvalidStatusTransition(self.status, new_status)

        self.status = new_status
        self.updated_at = now
        for name, value in fields.items():
            setattr(self, name, value)

    def mark_completed(self, now=None):
        now = now or timezone.now()
        self._transition('completed', now, completed_at=now)

    def mark_cancelled(self, reason='', now=None):
        now = now or timezone.now()
        self._transition('cancelled', now, cancelled_at=now, cancellation_reason=reason)
    
    def mark_meeting_pending(self):
        self.meeting_status = 'pending'
        self.meeting_error = ''
        self.save(update_fields=['provisioning_key', 'meeting_status', 'meeting_error', 'updated_at'])
    
    def mark_meeting_provisioned(self, result):
        self.meeting_url = result.meeting_url
        self.provider_meeting_id = result.meeting_id
        self.meeting_provider = result.provider
        self.meeting_status = 'provisioned'
        self.meeting_error = ''
        self.meeting_provisioned_at = timezone.now()
        self.save(update_fields=[
            'meeting_url', 'provider_meeting_id', 'meeting_provider', 'meeting_status',
            'meeting_error', 'meeting_provisioned_at', 'updated_at'
        ])
    
    def mark_meeting_outcome_unknown(self, error):
        """Keep the attempt pending; the remote create may or may not have happened."""
        self.meeting_status = 'pending'
        self.meeting_error = str(error)
        self.save(update_fields=['meeting_status', 'meeting_error', 'updated_at'])

    def mark_meeting_failed(self, error):
        self.meeting_status = 'failed'
        self.meeting_error = str(error)
        self.save(update_fields=['meeting_status', 'meeting_error', 'updated_at'])


class BookingAuditLog(models.Model):
    """Append-only record of booking lifecycle actions."""
    ACTION_CHOICES = [
        ('booking_created', 'Booking Created'),
        ('booking_rescheduled', 'Booking Rescheduled'),
        ('booking_cancelled', 'Booking Cancelled'),
        ('booking_completed', 'Booking Completed'),
        ('meeting_provisioned', 'Meeting Provisioned'),
        ('meeting_failed', 'Meeting Provisioning Failed'),
        ('meeting_deleted', 'Meeting Deleted'),
    ]
    
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='audit_logs')
    action = models.CharField(max_length=30, choices=ACTION_CHOICES)
    description = models.TextField()
    actor = models.ForeignKey('users.User', on_delete=models.SET_NULL, null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    
    class Meta:
        db_table = 'booking_audit_logs'
        verbose_name = 'Booking Audit Log'
        verbose_name_plural = 'Booking Audit Logs'
        ordering = ['-created_at']
    
    def __str__(self):
        return f"{self.booking_id} - {self.get_action_display()} - {self.created_at}"
