"""Read component parameters from the database with settings fallbacks."""

from __future__ import annotations

import logging
from typing import Any

from django.conf import settings
from django.db.utils import OperationalError, ProgrammingError

from .models import ComponentSetting

logger = logging.getLogger(__name__)

_MISSING = object()


class ComponentParams:
    """Namespaced key/value configuration store.

    A :class:`~cmsweb.core.models.ComponentSetting` row overrides the value
    found in ``settings.COMPONENT_PARAMS[namespace][key]``, which in turn
    overrides the ``default`` passed by the caller.
    """

    def get(self, namespace: str, key: str, default: Any = None) -> Any:
        value = self._stored_value(namespace, key)
        if value is not _MISSING:
            return value

        defaults = getattr(settings, "COMPONENT_PARAMS", {}) or {}
        return (defaults.get(namespace) or {}).get(key, default)

    def _stored_value(self, namespace: str, key: str) -> Any:
        try:
            row = (
                ComponentSetting.objects.filter(namespace=namespace, key=key)
                .only("value")
                .first()
            )
        except (OperationalError, ProgrammingError) as exc:
            # Database not ready (for example before migrations ran).
            logger.warning("Could not read component setting %s.%s: %s", namespace, key, exc)
            return _MISSING
        if row is None:
            return _MISSING
        return row.value

    # Convenience accessors for the parameters the profile screen depends on.
    def allow_login_name_change(self) -> bool:
        return bool(self.get("com_users", "change_login_name", False))

    def multilanguage_enabled(self) -> bool:
        return bool(self.get("system", "multilanguage", False))

    def content_languages(self) -> list[str]:
        return list(self.get("system", "content_languages", []) or [])


__all__ = ["ComponentParams"]
