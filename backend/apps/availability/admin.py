from django.contrib import admin
from .models import AvailabilityPattern


@admin.register(AvailabilityPattern)
class AvailabilityPatternAdmin(admin.ModelAdmin):
    list_display = ('title', 'owner', 'duration_minutes', 'meeting_type', 'timezone_name', 'is_active', 'created_at')
    list_filter = ('meeting_type', 'is_active', 'is_recurring', 'created_at')
    search_fields = ('title', 'owner__email')
    readonly_fields = ('created_at', 'updated_at')
    
    fieldsets = (
        ('Pattern', {
            'fields': ('owner', 'title', 'description', 'is_active')
        }),
        ('Schedule', {
            'fields': ('duration_minutes', 'weekly_schedule', 'start_date', 'end_date', 'timezone_name')
        }),
        ('Meeting', {
            'fields': ('meeting_type', 'meeting_config')
        }),
        ('Recurrence', {
            'fields': (
                'is_recurring', 'recurrence_type', 'recurrence_interval', 'recurrence_days_of_week',
                'recurrence_day_of_month', 'recurrence_end_type', 'recurrence_count', 'recurrence_end_date'
            ),
            'classes': ('collapse',)
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
