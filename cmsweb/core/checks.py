"""Django system checks for the core app.

These checks surface misconfigurations of the two-factor setup that would
otherwise only show up when an administrator saves their profile.
"""

from __future__ import annotations

from django.conf import settings
from django.core import checks
from django.utils.module_loading import import_string


@checks.register()
def otp_encryption_key_configured(app_configs, **kwargs):
    """Warn when two-factor secrets are encrypted with a throwaway key."""

    messages: list[checks.CheckMessage] = []

    if not getattr(settings, "OTP_ENCRYPTION_KEY_CONFIGURED", False):
        messages.append(
            checks.Warning(
                "OTP_ENCRYPTION_KEY is not set.",
                hint=(
                    "Two-factor configuration is encrypted with a key generated at"
                    " start-up and becomes unreadable after a restart. Set the"
                    " OTP_ENCRYPTION_KEY env var to a Fernet key."
                ),
                id="cmsweb.W001",
            )
        )

    return messages


@checks.register()
def two_factor_providers_importable(app_configs, **kwargs):
    """Report configured two-factor providers that cannot be imported."""

    messages: list[checks.CheckMessage] = []

    for dotted_path in getattr(settings, "TWO_FACTOR_PROVIDERS", []):
        try:
            import_string(dotted_path)
        except ImportError as exc:
            messages.append(
                checks.Error(
                    f"Two-factor provider {dotted_path!r} could not be imported.",
                    hint=str(exc),
                    id="cmsweb.E001",
                )
            )

    return messages
