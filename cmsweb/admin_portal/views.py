import logging
import re

from django.contrib import messages
from django.contrib.auth.decorators import login_required, user_passes_test
from django.shortcuts import redirect, render
from django.urls import NoReverseMatch, reverse

from cmsweb.accounts.services import ProfileContext, ProfileService

logger = logging.getLogger(__name__)

PROFILE_DATA_SESSION_KEY = "profile.edit.data"
EMERGENCY_CODES_SESSION_KEY = "profile.edit.emergency_codes"

# Submitted values never kept in the session for re-display.
_UNSAFE_PRIOR_FIELDS = {"password", "password2", "twofactor"}

_NESTED_KEY_PATTERN = re.compile(r"^(?P<root>[^\[\]]+)(?P<path>(?:\[[^\[\]]*\])+)$")


def _safe_reverse(name: str, *args, **kwargs) -> str:
    try:
        return reverse(name, args=args, kwargs=kwargs)
    except NoReverseMatch:
        return "#"


def _extract_submission(post) -> dict:
    """Turn posted fields into a dict, nesting ``a[b][c]`` style keys."""

    data: dict = {}
    for key in post.keys():
        if key == "csrfmiddlewaretoken":
            continue
        value = post.get(key)
        match = _NESTED_KEY_PATTERN.match(key)
        if match is None:
            data[key] = value
            continue

        parts = re.findall(r"\[([^\[\]]*)\]", match.group("path"))
        node = data.setdefault(match.group("root"), {})
        if not isinstance(node, dict):
            continue
        for part in parts[:-1]:
            child = node.setdefault(part, {})
            if not isinstance(child, dict):
                break
            node = child
        else:
            node[parts[-1]] = value
    return data


def _render_profile(request, service: ProfileService, ctx: ProfileContext, form):
    context = {
        "form": form,
        "user": request.user,
        "two_factor": service.two_factor_state(ctx),
        "emergency_codes": request.session.pop(EMERGENCY_CODES_SESSION_KEY, []),
        "admin_index_url": _safe_reverse("admin:index"),
        "password_change_url": _safe_reverse("admin:password_change"),
    }
    return render(request, "admin_portal/profile.html", context)


@login_required
@user_passes_test(lambda u: u.is_staff)
def admin_profile(request):
    """Edit the signed-in administrator's own account."""

    service = ProfileService()

    if request.method == "POST":
        ctx = ProfileContext.from_request(request)
        # Preparing the form records whether the login name is locked.
        form = service.get_form(ctx)
        if form is None:
            messages.error(request, service.get_error())
            return redirect(_safe_reverse("admin:index"))

        data = _extract_submission(request.POST)
        saved = service.save(ctx, data)
        for warning in service.warnings:
            messages.warning(request, warning)

        # Codes are issued before the record is bound, so a failed save may
        # still have produced them.
        if ctx.emergency_codes:
            request.session[EMERGENCY_CODES_SESSION_KEY] = ctx.emergency_codes

        if saved:
            request.session.pop(PROFILE_DATA_SESSION_KEY, None)
            messages.success(request, "Your profile was updated.")
            return redirect("admin_profile")

        request.session[PROFILE_DATA_SESSION_KEY] = {
            key: value
            for key, value in data.items()
            if key not in _UNSAFE_PRIOR_FIELDS and isinstance(value, str)
        }
        messages.error(request, f"Profile save failed: {service.get_error()}")
        return redirect("admin_profile")

    ctx = ProfileContext.from_request(
        request,
        prior_data=request.session.pop(PROFILE_DATA_SESSION_KEY, None),
    )
    form = service.get_form(ctx)
    if form is None:
        messages.error(request, service.get_error())
        return redirect(_safe_reverse("admin:index"))

    return _render_profile(request, service, ctx, form)
