from django.contrib import admin
from .models import OAuthConnection, IntegrationLog


@admin.register(OAuthConnection)
class OAuthConnectionAdmin(admin.ModelAdmin):
    list_display = ('user', 'provider', 'provider_email', 'is_active', 'token_expires_at', 'last_used_at')
    list_filter = ('provider', 'is_active', 'created_at')
    search_fields = ('user__email', 'provider_email')
    readonly_fields = ('created_at', 'updated_at', 'token_expires_at', 'last_used_at')
    
    fieldsets = (
        ('Connection Details', {
            'fields': ('user', 'provider', 'is_active')
        }),
        ('Provider Information', {
            'fields': ('provider_user_id', 'provider_email', 'scope')
        }),
        ('OAuth Tokens', {
            'fields': ('access_token', 'refresh_token', 'token_type', 'token_expires_at'),
            'classes': ('collapse',)
        }),
        ('Timestamps', {
            'fields': ('last_used_at', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(IntegrationLog)
class IntegrationLogAdmin(admin.ModelAdmin):
    list_display = ('user', 'log_type', 'provider', 'success', 'created_at')
    list_filter = ('log_type', 'provider', 'success', 'created_at')
    search_fields = ('user__email', 'message')
    readonly_fields = ('user', 'log_type', 'provider', 'booking', 'message', 'details', 'success', 'created_at')
    
    def has_add_permission(self, request):
        return False
