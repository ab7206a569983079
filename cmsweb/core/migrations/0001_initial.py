from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="ComponentSetting",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "namespace",
                    models.CharField(
                        help_text="Component the parameter belongs to, e.g. 'com_users'.",
                        max_length=64,
                    ),
                ),
                ("key", models.CharField(max_length=128)),
                (
                    "value",
                    models.JSONField(
                        blank=True,
                        help_text="JSON value returned instead of the settings default.",
                        null=True,
                    ),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["namespace", "key"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("namespace", "key"),
                        name="componentsetting_namespace_key_uniq",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="SecurityLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "timestamp",
                    models.DateTimeField(
                        default=django.utils.timezone.now,
                        help_text="When the security event occurred.",
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        choices=[
                            ("PROFILE_UPDATED", "Profile updated"),
                            ("TWO_FACTOR_ENABLED", "Two-factor enabled"),
                            ("TWO_FACTOR_DISABLED", "Two-factor disabled"),
                            ("EMERGENCY_CODES_GENERATED", "Emergency codes generated"),
                        ],
                        help_text="Type of security event (profile change, 2FA change, etc.).",
                        max_length=32,
                    ),
                ),
                (
                    "ip_address",
                    models.GenericIPAddressField(
                        blank=True,
                        help_text="Best-effort IP address captured with the event.",
                        null=True,
                    ),
                ),
                (
                    "user_agent",
                    models.TextField(
                        blank=True,
                        help_text="Recorded User-Agent string for additional context.",
                    ),
                ),
                (
                    "description",
                    models.TextField(
                        blank=True,
                        help_text="Human readable explanation of what occurred.",
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        help_text="Optional structured payload for downstream analysis.",
                        null=True,
                    ),
                ),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        help_text="Authenticated user who triggered the event (if known).",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="security_events",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "target_user",
                    models.ForeignKey(
                        blank=True,
                        help_text="Account affected by the change (can differ from actor).",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="security_events_target",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-timestamp"],
                "indexes": [
                    models.Index(fields=["timestamp"], name="securitylog_ts_idx"),
                    models.Index(fields=["event_type"], name="securitylog_event_idx"),
                ],
            },
        ),
    ]
