import django.db.models.deletion
import uuid
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('availability', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Booking',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('guest_name', models.CharField(blank=True, max_length=200)),
                ('guest_email', models.EmailField(blank=True, max_length=254)),
                ('title', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('notes', models.TextField(blank=True)),
                ('start_time', models.DateTimeField()),
                ('end_time', models.DateTimeField()),
                ('timezone_name', models.CharField(default='UTC', max_length=50)),
                ('status', models.CharField(choices=[('upcoming', 'Upcoming'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='upcoming', max_length=20)),
                ('meeting_type', models.CharField(choices=[('zoom', 'Zoom'), ('google_meet', 'Google Meet'), ('manual_link', 'Manual Link'), ('location', 'Physical Location')], default='manual_link', max_length=20)),
                ('meeting_config', models.JSONField(blank=True, default=dict)),
                ('meeting_url', models.CharField(blank=True, max_length=500)),
                ('meeting_provider', models.CharField(blank=True, max_length=20)),
                ('provider_meeting_id', models.CharField(blank=True, max_length=200)),
                ('provisioning_key', models.CharField(blank=True, help_text='Idempotency key stored before the first remote create call', max_length=64)),
                ('meeting_status', models.CharField(choices=[('not_requested', 'Not Requested'), ('pending', 'Pending'), ('provisioned', 'Provisioned'), ('failed', 'Failed')], default='not_requested', max_length=20)),
                ('meeting_error', models.TextField(blank=True)),
                ('meeting_provisioned_at', models.DateTimeField(blank=True, null=True)),
                ('recurrence_group_id', models.UUIDField(blank=True, help_text='Links recurring bookings together', null=True)),
                ('recurrence_index', models.IntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('cancellation_reason', models.TextField(blank=True)),
                ('member', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='member_bookings', to=settings.AUTH_USER_MODEL)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='owned_bookings', to=settings.AUTH_USER_MODEL)),
                ('pattern', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='bookings', to='availability.availabilitypattern')),
            ],
            options={
                'verbose_name': 'Booking',
                'verbose_name_plural': 'Bookings',
                'db_table': 'bookings',
                'ordering': ['start_time'],
                'indexes': [
                    models.Index(fields=['owner', 'start_time'], name='bookings_owner_i_5a2d1b_idx'),
                    models.Index(fields=['status', 'end_time'], name='bookings_status_7e4c9a_idx'),
                    models.Index(fields=['recurrence_group_id'], name='bookings_recurre_1b8f2d_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('pattern__isnull', False), models.Q(('status', 'cancelled'), _negated=True)), fields=('pattern', 'start_time'), name='unique_active_booking_per_slot'),
                    models.CheckConstraint(condition=models.Q(models.Q(('member__isnull', False), ('guest_email', '')), models.Q(('member__isnull', True), models.Q(('guest_email', ''), _negated=True), models.Q(('guest_name', ''), _negated=True)), _connector='OR'), name='booking_member_xor_guest'),
                    models.CheckConstraint(condition=models.Q(('end_time__gt', models.F('start_time'))), name='booking_end_after_start'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BookingAuditLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('action', models.CharField(choices=[('booking_created', 'Booking Created'), ('booking_rescheduled', 'Booking Rescheduled'), ('booking_cancelled', 'Booking Cancelled'), ('booking_completed', 'Booking Completed'), ('meeting_provisioned', 'Meeting Provisioned'), ('meeting_failed', 'Meeting Provisioning Failed'), ('meeting_deleted', 'Meeting Deleted')], max_length=30)),
                ('description', models.TextField()),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('actor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
                ('booking', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='audit_logs', to='bookings.booking')),
            ],
            options={
                'verbose_name': 'Booking Audit Log',
                'verbose_name_plural': 'Booking Audit Logs',
                'db_table': 'booking_audit_logs',
                'ordering': ['-created_at'],
            },
        ),
    ]
