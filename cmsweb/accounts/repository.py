"""Storage access for user records and their two-factor state."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import DatabaseError, transaction
from django.forms import BaseForm
from django_otp.plugins.otp_static.models import StaticDevice, StaticToken

from .exceptions import ProfileBindError, ProfileError, ProfilePersistenceError
from .forms import profile_form_data
from .models import TWO_FACTOR_NONE, Profile

logger = logging.getLogger(__name__)

User = get_user_model()

EMERGENCY_DEVICE_NAME = "emergency"


@dataclass
class TwoFactorConfig:
    """Two-factor method, its opaque configuration and the emergency codes."""

    method: str = TWO_FACTOR_NONE
    config: Dict[str, Any] = field(default_factory=dict)
    otep: List[str] = field(default_factory=list)


def _error_message(form: BaseForm) -> str:
    messages = []
    for name, errors in form.errors.items():
        label = form.fields[name].label if name in form.fields else None
        text = " ".join(str(error) for error in errors)
        messages.append(f"{label}: {text}" if label else text)
    return " ".join(messages) or "The submitted data is invalid."


class UserRepository:
    """Load, bind and persist user records for the profile screen."""

    def load(self, pk) -> User:
        try:
            user = User.objects.get(pk=pk)
            Profile.objects.get_or_create(user=user)
        except User.DoesNotExist as exc:
            raise ProfileError(f"User {pk} does not exist.") from exc
        except DatabaseError as exc:
            raise ProfilePersistenceError(f"Could not load user {pk}: {exc}") from exc
        return user

    def form_data(self, user) -> Dict[str, Any]:
        return profile_form_data(user)

    def bind(self, form: BaseForm) -> BaseForm:
        """Validate ``form`` so its cleaned data can be saved onto the record."""
        if not form.is_valid():
            raise ProfileBindError(_error_message(form))
        return form

    def save(self, form: BaseForm):
        try:
            with transaction.atomic():
                return form.save()
        except DatabaseError as exc:
            raise ProfilePersistenceError(f"Could not save the user: {exc}") from exc

    # ------------------------------------------------------------ two-factor
    def emergency_codes(self, pk) -> List[str]:
        device = StaticDevice.objects.filter(user_id=pk, name=EMERGENCY_DEVICE_NAME).first()
        if device is None:
            return []
        return list(device.token_set.order_by("id").values_list("token", flat=True))

    def get_otp_config(self, pk) -> TwoFactorConfig:
        try:
            profile, _ = Profile.objects.get_or_create(user_id=pk)
            method = profile.two_factor_method or TWO_FACTOR_NONE
            config = profile.get_two_factor_config() if method != TWO_FACTOR_NONE else {}
            otep = self.emergency_codes(pk)
        except DatabaseError as exc:
            raise ProfilePersistenceError(
                f"Could not load the two-factor configuration: {exc}"
            ) from exc
        return TwoFactorConfig(method=method, config=config, otep=otep)

    def set_otp_config(self, pk, otp_config: TwoFactorConfig) -> None:
        """Store ``otp_config``; the ``none`` method also drops emergency codes."""
        try:
            with transaction.atomic():
                profile, _ = Profile.objects.select_for_update().get_or_create(user_id=pk)
                profile.two_factor_method = otp_config.method or TWO_FACTOR_NONE
                if profile.two_factor_method == TWO_FACTOR_NONE:
                    profile.set_two_factor_config({})
                    StaticDevice.objects.filter(user_id=pk, name=EMERGENCY_DEVICE_NAME).delete()
                    otp_config.otep = []
                else:
                    profile.set_two_factor_config(otp_config.config)
                profile.save(update_fields=["two_factor_method", "two_factor_secret"])
        except DatabaseError as exc:
            raise ProfilePersistenceError(
                f"Could not save the two-factor configuration: {exc}"
            ) from exc

    def generate_oteps(self, pk, count: int | None = None) -> List[str]:
        """Replace the emergency codes of user ``pk`` with ``count`` fresh ones."""
        if count is None:
            count = int(getattr(settings, "TWO_FACTOR_EMERGENCY_CODES", 10))
        try:
            with transaction.atomic():
                user = User.objects.get(pk=pk)
                device, _ = StaticDevice.objects.get_or_create(
                    user=user,
                    name=EMERGENCY_DEVICE_NAME,
                    defaults={"confirmed": True},
                )
                device.token_set.all().delete()
                tokens = [StaticToken.random_token() for _ in range(count)]
                StaticToken.objects.bulk_create(
                    [StaticToken(device=device, token=token) for token in tokens]
                )
        except DatabaseError as exc:
            raise ProfilePersistenceError(
                f"Could not generate emergency codes: {exc}"
            ) from exc
        logger.info("Generated %d emergency codes for user %s", count, pk)
        return tokens
