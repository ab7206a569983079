"""Profile models and signal handlers for administrator accounts."""
from __future__ import annotations

import json
import logging

from cryptography.fernet import Fernet, InvalidToken
from django.conf import settings
from django.db import models
from django.db.models.signals import post_save
from django.dispatch import receiver

logger = logging.getLogger(__name__)

TWO_FACTOR_NONE = "none"


def _fernet() -> Fernet:
    return Fernet(settings.OTP_ENCRYPTION_KEY.encode())


class Profile(models.Model):
    """Preferences and two-factor state that augment the built-in user model."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        related_name="profile",
        on_delete=models.CASCADE,
    )
    language = models.CharField(
        max_length=16,
        blank=True,
        help_text="Preferred site language; blank uses the site default.",
    )
    admin_language = models.CharField(
        max_length=16,
        blank=True,
        help_text="Preferred administrator panel language; blank uses the default.",
    )
    timezone = models.CharField(max_length=64, blank=True)
    require_reset = models.BooleanField(
        default=False,
        help_text="Force the user to choose a new password on the next profile save.",
    )
    # 2FA
    two_factor_method = models.CharField(
        max_length=32,
        default=TWO_FACTOR_NONE,
        help_text="Identifier of the configured two-factor provider, or 'none'.",
    )
    two_factor_secret = models.TextField(
        blank=True,
        help_text="Encrypted, provider-specific two-factor configuration.",
    )

    class Meta:
        indexes = [
            models.Index(fields=["user"], name="profile_user_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover - representational helper
        return f"Profile<{self.user_id}>"

    @property
    def two_factor_enabled(self) -> bool:
        return self.two_factor_method != TWO_FACTOR_NONE

    def get_two_factor_config(self) -> dict:
        """Decrypt the stored provider configuration."""
        if not self.two_factor_secret:
            return {}
        try:
            raw = _fernet().decrypt(self.two_factor_secret.encode())
        except InvalidToken:
            logger.warning(
                "Two-factor configuration of user %s could not be decrypted", self.user_id
            )
            return {}
        return json.loads(raw.decode())

    def set_two_factor_config(self, config: dict) -> None:
        """Encrypt and store ``config``; an empty mapping clears the field."""
        if not config:
            self.two_factor_secret = ""
            return
        payload = json.dumps(config, sort_keys=True).encode()
        self.two_factor_secret = _fernet().encrypt(payload).decode()


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def ensure_profile(sender, instance, created, **kwargs):
    """Guarantee every user has an attached profile row."""
    if created:
        Profile.objects.get_or_create(user=instance)
