from django.contrib import admin
from .models import Booking, BookingAuditLog


class BookingAuditLogInline(admin.TabularInline):
    model = BookingAuditLog
    extra = 0
    readonly_fields = ('action', 'description', 'actor', 'metadata', 'created_at')
    can_delete = False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ('title', 'owner', 'invitee_email', 'start_time', 'status', 'meeting_status', 'created_at')
    list_filter = ('status', 'meeting_status', 'meeting_type', 'created_at')
    search_fields = ('title', 'owner__email', 'member__email', 'guest_email', 'guest_name')
    readonly_fields = (
        'created_at', 'updated_at', 'provisioning_key', 'meeting_provisioned_at',
        'cancelled_at', 'completed_at'
    )
    inlines = [BookingAuditLogInline]
    
    fieldsets = (
        ('Booking', {
            'fields': ('pattern', 'owner', 'title', 'description', 'notes', 'status')
        }),
        ('Invitee', {
            'fields': ('member', 'guest_name', 'guest_email')
        }),
        ('Schedule', {
            'fields': ('start_time', 'end_time', 'timezone_name', 'recurrence_group_id', 'recurrence_index')
        }),
        ('Meeting', {
            'fields': (
                'meeting_type', 'meeting_config', 'meeting_url', 'meeting_provider', 'provider_meeting_id',
                'meeting_status', 'meeting_error', 'provisioning_key', 'meeting_provisioned_at'
            )
        }),
        ('Lifecycle', {
            'fields': ('cancelled_at', 'cancellation_reason', 'completed_at', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(BookingAuditLog)
class BookingAuditLogAdmin(admin.ModelAdmin):
    list_display = ('booking', 'action', 'actor', 'created_at')
    list_filter = ('action', 'created_at')
    search_fields = ('booking__title', 'description')
    readonly_fields = ('booking', 'action', 'description', 'actor', 'metadata', 'created_at')
