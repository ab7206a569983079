"""Prepare and save the signed-in administrator's profile form.

:class:`ProfileService` holds the rules that depend on account and
configuration state: the login-name lockdown, the multilanguage language
selector, forced password resets and the reconciliation of the two-factor
configuration through :class:`~cmsweb.accounts.twofactor.ProviderRegistry`.
Per-request values travel in an explicit :class:`ProfileContext`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from django.http import HttpRequest

from cmsweb.core.config import ComponentParams
from cmsweb.core.utils import get_client_ip, get_user_agent

from .exceptions import ProfileError, ProfileFormUnavailable
from .forms import USERNAME_LOCKED_DESCRIPTION, load_form, set_field_attribute
from .models import TWO_FACTOR_NONE
from .repository import UserRepository
from .signals import emergency_codes_generated, profile_saved, two_factor_changed
from .twofactor import ProviderRegistry
from .validators import is_username_compliant

logger = logging.getLogger(__name__)

# Keys a client must never set through the profile screen.
PROTECTED_FIELDS = (
    "id",
    "pk",
    "groups",
    "sendEmail",
    "block",
    "is_active",
    "is_staff",
    "is_superuser",
    "user_permissions",
)


@dataclass
class ProfileContext:
    """Request-scoped state shared by form preparation and saving."""

    user_id: Any
    actor: Any = None
    require_reset: bool = False
    prior_data: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: str = ""
    username_compliant: Optional[bool] = None
    subject_id: Any = None
    emergency_codes: List[str] = field(default_factory=list)

    @classmethod
    def for_user(cls, user, **kwargs) -> "ProfileContext":
        profile = getattr(user, "profile", None)
        kwargs.setdefault("require_reset", bool(getattr(profile, "require_reset", False)))
        return cls(user_id=user.pk, actor=user, **kwargs)

    @classmethod
    def from_request(cls, request: HttpRequest, prior_data=None) -> "ProfileContext":
        return cls.for_user(
            request.user,
            prior_data=prior_data,
            ip_address=get_client_ip(request),
            user_agent=get_user_agent(request),
        )


class ProfileService:
    """Build and save the profile form for the user in a :class:`ProfileContext`."""

    form_id = "admin.profile"

    def __init__(
        self,
        repository: Optional[UserRepository] = None,
        registry: Optional[ProviderRegistry] = None,
        params: Optional[ComponentParams] = None,
        form_id: Optional[str] = None,
    ):
        self.repository = repository or UserRepository()
        self.registry = registry or ProviderRegistry.from_settings()
        self.params = params or ComponentParams()
        if form_id:
            self.form_id = form_id
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def get_error(self) -> str:
        return self.errors[-1] if self.errors else ""

    def _fail(self, ctx: ProfileContext, exc: ProfileError) -> None:
        logger.warning("Profile of user %s: %s", ctx.user_id, exc)
        self.errors.append(str(exc))

    def _notify(self, signal, ctx: ProfileContext, **kwargs) -> None:
        # Receiver failures are logged; the stored change stands.
        for receiver, result in signal.send_robust(sender=self.__class__, context=ctx, **kwargs):
            if isinstance(result, Exception):
                logger.error(
                    "Receiver %r failed for user %s",
                    receiver,
                    ctx.user_id,
                    exc_info=(type(result), result, result.__traceback__),
                )

    def username_locked(self, compliant: Optional[bool]) -> bool:
        return not self.params.allow_login_name_change() and bool(compliant)

    # ------------------------------------------------------------------ form
    def get_form(self, ctx: ProfileContext, data=None):
        """Return the prepared form, or ``None`` when it cannot be loaded."""
        try:
            user = self.repository.load(ctx.user_id)
            return self._prepare_form(ctx, user, data=data)
        except ProfileError as exc:
            self._fail(ctx, exc)
            return None

    def _prepare_form(self, ctx: ProfileContext, user, data=None, initial=None):
        # The compliance flag is computed from the loaded form data only;
        # forms built for binding reuse the flag already on the context.
        if initial is None:
            initial = {**self.repository.form_data(user), **(ctx.prior_data or {})}
            ctx.username_compliant = is_username_compliant(initial.get("username"))

        form = load_form(self.form_id, data=data, initial=initial, instance=user)
        if form is None:
            raise ProfileFormUnavailable(f"The form {self.form_id!r} could not be loaded.")

        if self.username_locked(ctx.username_compliant):
            set_field_attribute(form, "username", "required", False)
            set_field_attribute(form, "username", "readonly", True)
            set_field_attribute(form, "username", "description", USERNAME_LOCKED_DESCRIPTION)

        # With multilanguage on, the site language must be a content language.
        if self.params.multilanguage_enabled():
            set_field_attribute(form, "language", "type", "frontend_language")

        if ctx.require_reset:
            set_field_attribute(form, "password", "required", True)
            set_field_attribute(form, "password2", "required", True)

        return form

    def two_factor_state(self, ctx: ProfileContext) -> Dict[str, Any]:
        """Return the current method, the selectable methods and setup panels."""
        user = self.repository.load(ctx.user_id)
        otp_config = self.repository.get_otp_config(user.pk)
        panels = []
        for method, title in self.registry.methods():
            provider = self.registry.get(method)
            if provider is None:
                continue
            config = otp_config.config if otp_config.method == method else {}
            panels.append(
                {
                    "method": method,
                    "title": title,
                    "template_name": provider.template_name,
                    "context": provider.show_configuration(user, config),
                }
            )
        return {
            "method": otp_config.method,
            "methods": self.registry.methods(),
            "panels": panels,
            "otep": otp_config.otep,
        }

    # ------------------------------------------------------------------ save
    def save(self, ctx: ProfileContext, data: Dict[str, Any]) -> bool:
        """Persist ``data`` onto the user record; ``False`` on failure.

        The failure message is available through :meth:`get_error`.
        """
        try:
            self._save(ctx, dict(data))
        except ProfileError as exc:
            self._fail(ctx, exc)
            return False
        return True

    def _save(self, ctx: ProfileContext, data: Dict[str, Any]) -> None:
        for name in PROTECTED_FIELDS:
            data.pop(name, None)

        user = self.repository.load(ctx.user_id)

        if ctx.username_compliant is None:
            ctx.username_compliant = is_username_compliant(user.get_username())
        if self.username_locked(ctx.username_compliant):
            data.pop("username", None)

        if "twofactor" in data:
            self._apply_two_factor(ctx, user, data.pop("twofactor"))
            user = self.repository.load(ctx.user_id)

        stored = self.repository.form_data(user)
        form = self._prepare_form(ctx, user, data={**stored, **data}, initial=stored)
        self.repository.bind(form)
        user = self.repository.save(form)

        ctx.subject_id = user.pk
        logger.info("Saved profile of user %s", user.pk)
        self._notify(
            profile_saved,
            ctx,
            user=user,
            changed_fields=[name for name in form.changed_data if not name.startswith("password")],
        )

    def _apply_two_factor(self, ctx: ProfileContext, user, payload) -> None:
        if not isinstance(payload, dict):
            payload = {"method": payload}
        method = str(payload.get("method") or TWO_FACTOR_NONE).strip()

        otp_config = self.repository.get_otp_config(user.pk)
        previous_method = otp_config.method
        reply = None

        if method != TWO_FACTOR_NONE:
            reply = self.registry.resolve(user, method, payload)
            if reply is not None:
                otp_config.method = reply.method
                otp_config.config = reply.config
            elif otp_config.method != method:
                self.warnings.append(
                    "The two-factor authentication setup could not be verified;"
                    " the previous configuration was kept."
                )

            self.repository.set_otp_config(user.pk, otp_config)

            # Emergency codes are issued when missing or used up.
            if otp_config.method != TWO_FACTOR_NONE and not otp_config.otep:
                ctx.emergency_codes = self.repository.generate_oteps(user.pk)
                self._notify(
                    emergency_codes_generated,
                    ctx,
                    user=user,
                    count=len(ctx.emergency_codes),
                )
        else:
            otp_config.method = TWO_FACTOR_NONE
            otp_config.config = {}
            self.repository.set_otp_config(user.pk, otp_config)

        if otp_config.method != previous_method or reply is not None:
            logger.info(
                "Two-factor method of user %s changed from %s to %s",
                user.pk,
                previous_method,
                otp_config.method,
            )
            self._notify(
                two_factor_changed,
                ctx,
                user=user,
                previous_method=previous_method,
                method=otp_config.method,
            )


__all__ = [
    "PROTECTED_FIELDS",
    "ProfileContext",
    "ProfileService",
    "is_username_compliant",
]
