from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers
from .models import AvailabilityPattern
from .recurrence import validate_recurrence_config
from .time_utils import validate_timezone, validate_weekly_schedule


class AvailabilityPatternSerializer(serializers.ModelSerializer):
    owner_email = serializers.EmailField(source='owner.email', read_only=True)
    meeting_type_display = serializers.CharField(source='get_meeting_type_display', read_only=True)
    requires_generation = serializers.BooleanField(read_only=True)
    
    class Meta:
        model = AvailabilityPattern
        fields = [
            'id', 'owner', 'owner_email', 'title', 'description', 'duration_minutes',
            'weekly_schedule', 'start_date', 'end_date', 'timezone_name',
            'meeting_type', 'meeting_type_display', 'meeting_config', 'requires_generation',
            'is_recurring', 'recurrence_type', 'recurrence_interval', 'recurrence_days_of_week',
            'recurrence_day_of_month', 'recurrence_end_type', 'recurrence_count', 'recurrence_end_date',
            'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'owner', 'created_at', 'updated_at']
    
    def validate_timezone_name(self, value):
        if not validate_timezone(value):
            raise serializers.ValidationError(f"Unknown timezone '{value}'")
        return value
    
    def validate(self, attrs):
        instance = self.instance
        
        def current(name, default=None):
            if name in attrs:
                return attrs[name]
            return getattr(instance, name, default) if instance else default
        
        try:
            validate_weekly_schedule(current('weekly_schedule', {}), current('duration_minutes', 30))
        except DjangoValidationError as e:
            raise serializers.ValidationError({'weekly_schedule': e.messages})
        
        start_date = current('start_date')
        end_date = current('end_date')
        if start_date and end_date and end_date < start_date:
            raise serializers.ValidationError({'end_date': "End date cannot be before start date"})
        
        meeting_config = current('meeting_config') or {}
        if current('meeting_type', 'manual_link') == 'manual_link' and not meeting_config.get('manualValue'):
            raise serializers.ValidationError(
                {'meeting_config': "Manual link meetings require meeting_config.manualValue"}
            )
        
        if current('is_recurring', False):
            config = {
                'type': current('recurrence_type'),
                'interval': current('recurrence_interval', 1),
                'days_of_week': current('recurrence_days_of_week') or [],
                'day_of_month': current('recurrence_day_of_month'),
                'end_type': current('recurrence_end_type'),
                'count': current('recurrence_count'),
                'end_date': current('recurrence_end_date'),
            }
            try:
                validate_recurrence_config(config)
            except DjangoValidationError as e:
                raise serializers.ValidationError({'recurrence': e.messages})
        
        return attrs


class SlotQuerySerializer(serializers.Serializer):
    """Query parameters for slot listing."""
    start = serializers.DateField()
    end = serializers.DateField()
    include_calendar = serializers.BooleanField(default=False)
    
    def validate(self, attrs):
        from django.conf import settings
        
        if attrs['end'] <= attrs['start']:
            raise serializers.ValidationError("end must be after start")
        max_days = getattr(settings, 'AVAILABILITY_MAX_WINDOW_DAYS', 62)
        if (attrs['end'] - attrs['start']).days > max_days:
            raise serializers.ValidationError(f"Window cannot exceed {max_days} days")
        return attrs
