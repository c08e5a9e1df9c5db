import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='ClientVerificationState',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('state', models.CharField(choices=[('unverified', 'Unverified'), ('pending_manual', 'Pending manual review'), ('verified', 'Verified'), ('locked', 'Locked')], default='unverified', max_length=20)),
                ('attempts_count', models.PositiveSmallIntegerField(default=0)),
                ('last_confidence_score', models.FloatField(blank=True, null=True)),
                ('last_attempt_at', models.DateTimeField(blank=True, null=True)),
                ('verified_at', models.DateTimeField(blank=True, null=True)),
                ('reference_id', models.CharField(blank=True, max_length=100)),
                ('client', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='verification_state', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'client_verification_states',
            },
        ),
        migrations.CreateModel(
            name='VerificationAttempt',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('id_number_hash', models.CharField(blank=True, max_length=64)),
                ('status', models.CharField(choices=[('success', 'Success'), ('failed', 'Failed'), ('pending_manual', 'Pending manual review'), ('error', 'Provider error'), ('approved', 'Approved by admin'), ('rejected', 'Rejected by admin'), ('unlocked', 'Unlocked by admin')], max_length=20)),
                ('confidence_score', models.FloatField(blank=True, null=True)),
                ('request_metadata', models.JSONField(blank=True, default=dict)),
                ('response_metadata', models.JSONField(blank=True, default=dict)),
                ('failure_reason', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('client', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='verification_attempts', to=settings.AUTH_USER_MODEL)),
                ('reviewer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='verification_reviews', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'verification_attempts',
                'ordering': ['-created_at'],
            },
        ),
    ]
