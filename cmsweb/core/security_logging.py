"""Signal handlers that persist security-sensitive audit events."""

from __future__ import annotations

import logging

from django.dispatch import receiver

from cmsweb.accounts.signals import (
    emergency_codes_generated,
    profile_saved,
    two_factor_changed,
)

from .models import SecurityLog

logger = logging.getLogger(__name__)


def _request_details(context) -> dict:
    """Pull the request metadata captured on a profile context."""

    return {
        "actor": getattr(context, "actor", None),
        "ip_address": getattr(context, "ip_address", None),
        "user_agent": getattr(context, "user_agent", "") or "",
    }


@receiver(profile_saved)
def log_profile_saved(sender, user, context=None, changed_fields=(), **kwargs):
    """Record every successful profile update."""

    changed = sorted(changed_fields)
    SecurityLog.objects.create(
        target_user=user,
        event_type=SecurityLog.EventType.PROFILE_UPDATED,
        description=f"{user.get_username()} updated their profile.",
        metadata={"fields": changed},
        **_request_details(context),
    )
    logger.info("Profile of user %s updated (%s)", user.pk, ", ".join(changed) or "no changes")


@receiver(two_factor_changed)
def log_two_factor_change(sender, user, context=None, previous_method="none", method="none", **kwargs):
    """Capture two-factor method switches for administrators to review."""

    if method == "none":
        event_type = SecurityLog.EventType.TWO_FACTOR_DISABLED
        description = f"Two-factor authentication disabled for {user.get_username()}."
    else:
        event_type = SecurityLog.EventType.TWO_FACTOR_ENABLED
        description = f"Two-factor method '{method}' configured for {user.get_username()}."

    SecurityLog.objects.create(
        target_user=user,
        event_type=event_type,
        description=description,
        metadata={"previous_method": previous_method, "method": method},
        **_request_details(context),
    )


@receiver(emergency_codes_generated)
def log_emergency_codes(sender, user, context=None, count=0, **kwargs):
    """Track when a new set of one-time emergency passwords is issued."""

    SecurityLog.objects.create(
        target_user=user,
        event_type=SecurityLog.EventType.EMERGENCY_CODES_GENERATED,
        description=f"{count} emergency codes generated for {user.get_username()}.",
        metadata={"count": count},
        **_request_details(context),
    )
