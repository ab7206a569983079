from django.conf import settings
from django.db import models
from django.utils import timezone


class ComponentSetting(models.Model):
    """Administrator-managed override for a component parameter."""

    namespace = models.CharField(
        max_length=64,
        help_text="Component the parameter belongs to, e.g. 'com_users'.",
    )
    key = models.CharField(max_length=128)
    value = models.JSONField(
        blank=True,
        null=True,
        help_text="JSON value returned instead of the settings default.",
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["namespace", "key"]
        constraints = [
            models.UniqueConstraint(
                fields=["namespace", "key"],
                name="componentsetting_namespace_key_uniq",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.namespace}.{self.key}"


class SecurityLog(models.Model):
    """Capture account and two-factor related security events."""

    class EventType(models.TextChoices):
        """Enumerate the security-sensitive activities we monitor."""

        PROFILE_UPDATED = "PROFILE_UPDATED", "Profile updated"
        TWO_FACTOR_ENABLED = "TWO_FACTOR_ENABLED", "Two-factor enabled"
        TWO_FACTOR_DISABLED = "TWO_FACTOR_DISABLED", "Two-factor disabled"
        EMERGENCY_CODES_GENERATED = (
            "EMERGENCY_CODES_GENERATED",
            "Emergency codes generated",
        )

    timestamp = models.DateTimeField(
        default=timezone.now,
        help_text="When the security event occurred.",
    )
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="security_events",
        blank=True,
        null=True,
        help_text="Authenticated user who triggered the event (if known).",
    )
    target_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="security_events_target",
        blank=True,
        null=True,
        help_text="Account affected by the change (can differ from actor).",
    )
    event_type = models.CharField(
        max_length=32,
        choices=EventType.choices,
        help_text="Type of security event (profile change, 2FA change, etc.).",
    )
    ip_address = models.GenericIPAddressField(
        blank=True,
        null=True,
        help_text="Best-effort IP address captured with the event.",
    )
    user_agent = models.TextField(
        blank=True,
        help_text="Recorded User-Agent string for additional context.",
    )
    description = models.TextField(
        blank=True,
        help_text="Human readable explanation of what occurred.",
    )
    metadata = models.JSONField(
        blank=True,
        null=True,
        help_text="Optional structured payload for downstream analysis.",
    )

    class Meta:
        ordering = ["-timestamp"]
        indexes = [
            models.Index(fields=["timestamp"], name="securitylog_ts_idx"),
            models.Index(fields=["event_type"], name="securitylog_event_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover - representational helper
        return f"{self.get_event_type_display()} @ {self.timestamp:%Y-%m-%d %H:%M}"
