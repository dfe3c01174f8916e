import django.db.models.deletion
import uuid
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('bookings', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='OAuthConnection',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('provider', models.CharField(choices=[('google', 'Google'), ('zoom', 'Zoom')], max_length=20)),
                ('access_token', models.TextField()),
                ('refresh_token', models.TextField(blank=True)),
                ('token_type', models.CharField(default='Bearer', max_length=20)),
                ('scope', models.TextField(blank=True)),
                ('token_expires_at', models.DateTimeField(blank=True, null=True)),
                ('provider_user_id', models.CharField(blank=True, max_length=200)),
                ('provider_email', models.EmailField(blank=True, max_length=254)),
                ('is_active', models.BooleanField(default=True)),
                ('last_used_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='oauth_connections', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'OAuth Connection',
                'verbose_name_plural': 'OAuth Connections',
                'db_table': 'oauth_connections',
                'indexes': [models.Index(fields=['is_active', 'token_expires_at'], name='oauth_conne_is_acti_4d7e2a_idx')],
                'constraints': [models.UniqueConstraint(fields=('user', 'provider'), name='unique_oauth_connection_per_provider')],
            },
        ),
        migrations.CreateModel(
            name='IntegrationLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('log_type', models.CharField(choices=[('oauth_connected', 'OAuth Connected'), ('oauth_disconnected', 'OAuth Disconnected'), ('token_refreshed', 'Token Refreshed'), ('meeting_created', 'Meeting Created'), ('meeting_updated', 'Meeting Updated'), ('meeting_deleted', 'Meeting Deleted'), ('calendar_busy_check', 'Calendar Busy Check'), ('error', 'Error')], max_length=30)),
                ('provider', models.CharField(blank=True, max_length=20)),
                ('message', models.TextField()),
                ('details', models.JSONField(blank=True, default=dict)),
                ('success', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('booking', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to='bookings.booking')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='integration_logs', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Integration Log',
                'verbose_name_plural': 'Integration Logs',
                'db_table': 'integration_logs',
                'ordering': ['-created_at'],
            },
        ),
    ]
