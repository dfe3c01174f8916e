from rest_framework import serializers
from apps.users.models import User
from .models import Booking, BookingAuditLog


class BookingSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    invitee_name = serializers.CharField(read_only=True)
    invitee_email = serializers.EmailField(read_only=True)
    duration_minutes = serializers.IntegerField(read_only=True)
    owner_email = serializers.EmailField(source='owner.email', read_only=True)
    
    class Meta:
        model = Booking
        fields = [
            'id', 'pattern', 'owner', 'owner_email', 'member', 'guest_name', 'guest_email',
            'invitee_name', 'invitee_email', 'title', 'description', 'notes',
            'start_time', 'end_time', 'duration_minutes', 'timezone_name', 'status', 'status_display',
            'meeting_type', 'meeting_url', 'meeting_provider', 'provider_meeting_id',
            'meeting_status', 'meeting_error', 'recurrence_group_id', 'recurrence_index',
            'cancelled_at', 'cancellation_reason', 'completed_at', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class BookingCreateSerializer(serializers.Serializer):
    """Booking a pattern slot as a member or a guest."""
    pattern_id = serializers.UUIDField()
    start_time = serializers.DateTimeField()
    guest_name = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    guest_email = serializers.EmailField(required=False, allow_blank=True, default='')
    title = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    description = serializers.CharField(required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class AdhocBookingCreateSerializer(serializers.Serializer):
    """Admin booking outside any pattern."""
    title = serializers.CharField(max_length=200)
    start_time = serializers.DateTimeField()
    end_time = serializers.DateTimeField()
    member_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    guest_name = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    guest_email = serializers.EmailField(required=False, allow_blank=True, default='')
    description = serializers.CharField(required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    meeting_type = serializers.ChoiceField(choices=Booking.MEETING_TYPE_CHOICES, default='manual_link')
    meeting_config = serializers.JSONField(required=False, default=dict)
    timezone_name = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    
    def validate_member_id(self, value):
        if value is None:
            return None
        try:
            return User.objects.get(id=value, role=User.ROLE_MEMBER, is_active=True)
        except User.DoesNotExist:
            raise serializers.ValidationError("Member not found")
    
    def validate(self, attrs):
        if attrs['end_time'] <= attrs['start_time']:
            raise serializers.ValidationError("End time must be after start time")
        return attrs


class BookingRescheduleSerializer(serializers.Serializer):
    start_time = serializers.DateTimeField()


class BookingCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class BookingAuditLogSerializer(serializers.ModelSerializer):
    action_display = serializers.CharField(source='get_action_display', read_only=True)
    actor_email = serializers.EmailField(source='actor.email', read_only=True, default=None)
    
    class Meta:
        model = BookingAuditLog
        fields = ['id', 'action', 'action_display', 'description', 'actor_email', 'metadata', 'created_at']
        read_only_fields = fields
