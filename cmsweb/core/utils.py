"""Utility helpers shared across the core application."""

from __future__ import annotations

import base64
from io import BytesIO
from typing import Optional

import qrcode
from django.http import HttpRequest


def get_client_ip(request: Optional[HttpRequest]) -> Optional[str]:
    """Extract the client IP address from the request object."""

    if request is None:
        return None

    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        # The left-most address is the original client in standard proxy setups.
        return x_forwarded_for.split(",")[0].strip() or None
    return request.META.get("REMOTE_ADDR") or None


def get_user_agent(request: Optional[HttpRequest]) -> str:
    """Return the User-Agent header if one was supplied."""

    if request is None:
        return ""
    return request.META.get("HTTP_USER_AGENT", "")


def generate_qr_data_uri(payload: str) -> str:
    """Return a PNG data-URI QR code encoding ``payload``.

    An empty payload yields an empty string so templates can fall back to
    the manual setup key.
    """

    payload = (payload or "").strip()
    if not payload:
        return ""

    qr = qrcode.QRCode(version=1, error_correction=qrcode.constants.ERROR_CORRECT_M, box_size=6, border=2)
    qr.add_data(payload)
    qr.make(fit=True)

    image = qr.make_image(fill_color="black", back_color="white")
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode()


__all__ = [
    "generate_qr_data_uri",
    "get_client_ip",
    "get_user_agent",
]
