from __future__ import annotations

from django import template
from django.forms import BoundField

register = template.Library()


@register.filter(name="is_readonly")
def is_readonly(field):
    """Return True when the field renders read-only and ignores submissions."""

    return isinstance(field, BoundField) and bool(field.field.disabled)


@register.filter(name="spaced_code")
def spaced_code(value, size: int = 4):
    """Split a setup key or code into space separated groups for readability."""

    value = (value or "").replace(" ", "").upper()
    size = int(size) or 4
    return " ".join(value[i : i + size] for i in range(0, len(value), size)).strip()
