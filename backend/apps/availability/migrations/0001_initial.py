import django.core.validators
import django.db.models.deletion
import uuid
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='AvailabilityPattern',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('duration_minutes', models.IntegerField(default=30, help_text='Slot length in minutes', validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(1440)])),
                ('weekly_schedule', models.JSONField(default=dict, help_text='Weekday code to time ranges, e.g. {"Mon": [{"start": "09:00", "end": "12:00"}]}')),
                ('start_date', models.DateField()),
                ('end_date', models.DateField(blank=True, help_text='Leave empty for an open-ended pattern', null=True)),
                ('timezone_name', models.CharField(default='UTC', max_length=50)),
                ('meeting_type', models.CharField(choices=[('zoom', 'Zoom'), ('google_meet', 'Google Meet'), ('manual_link', 'Manual Link'), ('location', 'Physical Location')], default='manual_link', max_length=20)),
                ('meeting_config', models.JSONField(blank=True, default=dict, help_text='manualValue holds the link or address for manual_link and location meetings')),
                ('is_recurring', models.BooleanField(default=False)),
                ('recurrence_type', models.CharField(blank=True, choices=[('daily', 'Daily'), ('weekly', 'Weekly'), ('monthly', 'Monthly'), ('custom', 'Custom')], max_length=20)),
                ('recurrence_interval', models.IntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ('recurrence_days_of_week', models.JSONField(blank=True, default=list)),
                ('recurrence_day_of_month', models.IntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(31)])),
                ('recurrence_end_type', models.CharField(blank=True, choices=[('count', 'Count'), ('date', 'Date')], max_length=10)),
                ('recurrence_count', models.IntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(1)])),
                ('recurrence_end_date', models.DateField(blank=True, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='availability_patterns', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Availability Pattern',
                'verbose_name_plural': 'Availability Patterns',
                'db_table': 'availability_patterns',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['owner', 'is_active'], name='availabilit_owner_i_3c1f0e_idx')],
            },
        ),
    ]
