"""Two-factor authentication providers and their registry.

Each provider owns one method identifier (``"totp"`` for authenticator
apps) and knows how to render its setup panel and how to turn the submitted
setup payload into a stored configuration.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import quote, urlencode

from django.conf import settings
from django.utils.module_loading import import_string
from django_otp.oath import TOTP
from django_otp.util import random_hex

from cmsweb.core.utils import generate_qr_data_uri

from .models import TWO_FACTOR_NONE, Profile

logger = logging.getLogger(__name__)


@dataclass
class TwoFactorReply:
    """Configuration produced by a provider for one method."""

    method: str
    config: Dict[str, Any] = field(default_factory=dict)


class TwoFactorProvider:
    """Base class for two-factor methods."""

    method: str = ""
    title: str = ""
    template_name: str = ""

    def show_configuration(self, user, config: Dict[str, Any]) -> Dict[str, Any]:
        """Return template context for the provider's setup panel."""
        return {}

    def apply_configuration(
        self, user, method: str, payload: Dict[str, Any]
    ) -> Optional[TwoFactorReply]:
        """Validate ``payload`` and return the configuration to store.

        ``None`` means the provider did not produce a usable configuration.
        """
        raise NotImplementedError


class TOTPProvider(TwoFactorProvider):
    """Time-based one-time passwords from an authenticator app."""

    method = "totp"
    title = "Authenticator App (TOTP)"
    template_name = "admin_portal/twofactor/totp.html"
    key_bytes = 20
    step = 30
    digits = 6
    tolerance = 1

    def _issuer(self) -> str:
        return getattr(settings, "OTP_TOTP_ISSUER", None) or getattr(
            settings, "SITE_NAME", "CMS"
        )

    def _otpauth_url(self, user, key: str) -> str:
        issuer = self._issuer()
        label = quote(f"{issuer}:{user.get_username()}")
        query = urlencode(
            {
                "secret": self.display_key(key),
                "issuer": issuer,
                "digits": self.digits,
                "period": self.step,
            }
        )
        return f"otpauth://totp/{label}?{query}"

    @staticmethod
    def display_key(key: str) -> str:
        """Render a hex key as the base32 secret authenticator apps expect."""
        return base64.b32encode(bytes.fromhex(key)).decode().rstrip("=")

    def show_configuration(self, user, config):
        existing = (config or {}).get("key", "")
        key = existing or random_hex(self.key_bytes)
        otpauth_url = self._otpauth_url(user, key)
        return {
            "configured": bool(existing),
            "key": key,
            "manual_key": self.display_key(key),
            "otpauth_url": otpauth_url,
            "qr_code_data_uri": "" if existing else generate_qr_data_uri(otpauth_url),
        }

    def apply_configuration(self, user, method, payload):
        if method != self.method:
            return None

        section = (payload or {}).get(self.method) or {}
        key = (section.get("key") or "").strip()
        # Accept codes pasted with spaces or line breaks.
        code = "".join((section.get("securitycode") or "").split())

        if not key or not code.isdigit():
            return None

        try:
            totp = TOTP(bytes.fromhex(key), step=self.step, digits=self.digits)
        except ValueError:
            logger.warning("Rejected malformed TOTP key submitted by user %s", user.pk)
            return None

        if not totp.verify(int(code), tolerance=self.tolerance):
            logger.info("TOTP verification failed for user %s", user.pk)
            return None

        # A code is accepted once per time step for a given key.
        last_t = totp.t() + totp.drift
        stored = self._stored_config(user)
        if stored.get("key") == key and stored.get("last_t", -1) >= last_t:
            logger.info("Rejected reused TOTP code for user %s", user.pk)
            return None

        return TwoFactorReply(method=self.method, config={"key": key, "last_t": last_t})

    def _stored_config(self, user) -> Dict[str, Any]:
        profile = Profile.objects.filter(user=user).first()
        if profile is None or profile.two_factor_method != self.method:
            return {}
        return profile.get_two_factor_config()


class ProviderRegistry:
    """Ordered collection of two-factor providers keyed by method name.

    Several providers may claim the same method; they are queried in
    registration order and the first usable reply wins.
    """

    none_title = "Disable Two Factor Authentication"

    def __init__(self, providers: Iterable[TwoFactorProvider] = ()):
        self._providers: List[TwoFactorProvider] = list(providers)

    @classmethod
    def from_settings(cls) -> "ProviderRegistry":
        providers = [
            import_string(path)()
            for path in getattr(settings, "TWO_FACTOR_PROVIDERS", [])
        ]
        return cls(providers)

    def register(self, provider: TwoFactorProvider) -> None:
        self._providers.append(provider)

    def providers_for(self, method: str) -> List[TwoFactorProvider]:
        return [provider for provider in self._providers if provider.method == method]

    def get(self, method: str) -> Optional[TwoFactorProvider]:
        providers = self.providers_for(method)
        return providers[0] if providers else None

    def methods(self) -> List[Tuple[str, str]]:
        choices = [(TWO_FACTOR_NONE, self.none_title)]
        seen = {TWO_FACTOR_NONE}
        for provider in self._providers:
            if provider.method in seen:
                continue
            seen.add(provider.method)
            choices.append((provider.method, provider.title or provider.method))
        return choices

    def resolve(self, user, method: str, payload: Dict[str, Any]) -> Optional[TwoFactorReply]:
        for provider in self.providers_for(method):
            reply = provider.apply_configuration(user, method, payload)
            if not isinstance(reply, TwoFactorReply):
                continue
            if reply.method != method or not reply.config:
                continue
            return reply
        return None


__all__ = [
    "ProviderRegistry",
    "TOTPProvider",
    "TwoFactorProvider",
    "TwoFactorReply",
]
