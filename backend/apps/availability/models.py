from django.db import models
from django.core.validators import MinValueValidator, MaxValueValidator
from django.core.exceptions import ValidationError
import uuid

from .recurrence import RECURRENCE_TYPES, RECURRENCE_END_TYPES, validate_recurrence_config
from .time_utils import validate_timezone, validate_weekly_schedule


class AvailabilityPattern(models.Model):
    """Recurring weekly availability published by an admin."""
    MEETING_TYPE_CHOICES = [
        ('zoom', 'Zoom'),
        ('google_meet', 'Google Meet'),
        ('manual_link', 'Manual Link'),
        ('location', 'Physical Location'),
    ]
    
    # Meeting type -> OAuth provider used to generate the link
    MEETING_TYPE_PROVIDERS = {
        'zoom': 'zoom',
        'google_meet': 'google',
    }
    
    RECURRENCE_TYPE_CHOICES = [(value, value.title()) for value in RECURRENCE_TYPES]
    RECURRENCE_END_TYPE_CHOICES = [(value, value.title()) for value in RECURRENCE_END_TYPES]
    
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey('users.User', on_delete=models.CASCADE, related_name='availability_patterns')
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    duration_minutes = models.IntegerField(
        default=30,
        validators=[MinValueValidator(1), MaxValueValidator(24 * 60)],
        help_text="Slot length in minutes"
    )
    weekly_schedule = models.JSONField(
        default=dict,
        help_text='Weekday code to time ranges, e.g. {"Mon": [{"start": "09:00", "end": "12:00"}]}'
    )
    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True, help_text="Leave empty for an open-ended pattern")
    timezone_name = models.CharField(max_length=50, default='UTC')
    
    # Meeting settings
    meeting_type = models.CharField(max_length=20, choices=MEETING_TYPE_CHOICES, default='manual_link')
    meeting_config = models.JSONField(
        default=dict,
        blank=True,
        help_text="manualValue holds the link or address for manual_link and location meetings"
    )
    
    # Recurring series settings
    is_recurring = models.BooleanField(default=False)
    recurrence_type = models.CharField(max_length=20, choices=RECURRENCE_TYPE_CHOICES, blank=True)
    recurrence_interval = models.IntegerField(default=1, validators=[MinValueValidator(1)])
    recurrence_days_of_week = models.JSONField(default=list, blank=True)
    recurrence_day_of_month = models.IntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(31)]
    )
    recurrence_end_type = models.CharField(max_length=10, choices=RECURRENCE_END_TYPE_CHOICES, blank=True)
    recurrence_count = models.IntegerField(null=True, blank=True, validators=[MinValueValidator(1)])
    recurrence_end_date = models.DateField(null=True, blank=True)
    
    is_active = models.BooleanField(default=True)
    
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    
    class Meta:
        db_table = 'availability_patterns'
        verbose_name = 'Availability Pattern'
        verbose_name_plural = 'Availability Patterns'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['owner', 'is_active'], name='availabilit_owner_i_3c1f0e_idx'),
        ]
    
    def __str__(self):
        return f"{self.owner.email} - {self.title}"
    
    def clean(self):
        """Validate schedule, date range, timezone and meeting settings."""
        super().clean()
        
        validate_weekly_schedule(self.weekly_schedule, self.duration_minutes)
        
        if self.end_date and self.start_date and self.end_date < self.start_date:
            raise ValidationError("End date cannot be before start date")
        
        if not validate_timezone(self.timezone_name):
            raise ValidationError(f"Unknown timezone '{self.timezone_name}'")
        
        if self.meeting_type == 'manual_link' and not (self.meeting_config or {}).get('manualValue'):
            raise ValidationError("Manual link meetings require meeting_config.manualValue")
        
        if self.is_recurring:
            validate_recurrence_config(self.recurrence_config)
    
    @property
    def provider(self):
        """OAuth provider needed for this pattern's meetings, or None."""
        return self.MEETING_TYPE_PROVIDERS.get(self.meeting_type)
    
    @property
    def requires_generation(self):
        return self.provider is not None
    
    @property
    def recurrence_config(self):
        if not self.is_recurring:
            return None
        return {
            'type': self.recurrence_type,
            'interval': self.recurrence_interval,
            'days_of_week': self.recurrence_days_of_week or [],
            'day_of_month': self.recurrence_day_of_month,
            'end_type': self.recurrence_end_type,
            'count': self.recurrence_count,
            'end_date': self.recurrence_end_date,
        }
    
    def covers_date(self, day):
        """Check whether a date falls inside the pattern's date range."""
        if day < self.start_date:
            return False
        if self.end_date and day > self.end_date:
            return False
        return True
