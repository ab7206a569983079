from django.contrib import admin

from .models import Profile


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    """Let super administrators force password resets and inspect 2FA state."""

    list_display = ("user", "two_factor_method", "require_reset", "language", "admin_language")
    list_filter = ("two_factor_method", "require_reset")
    search_fields = ("user__username", "user__email")
    readonly_fields = ("user", "two_factor_method", "two_factor_secret")
    fields = (
        "user",
        "require_reset",
        "language",
        "admin_language",
        "timezone",
        "two_factor_method",
        "two_factor_secret",
    )
