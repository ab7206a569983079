from django.contrib import admin

from .models import ComponentSetting, SecurityLog


@admin.register(ComponentSetting)
class ComponentSettingAdmin(admin.ModelAdmin):
    """Let administrators override component parameters at runtime."""

    list_display = ("namespace", "key", "value", "updated_at")
    list_filter = ("namespace",)
    search_fields = ("namespace", "key")
    ordering = ("namespace", "key")


@admin.register(SecurityLog)
class SecurityLogAdmin(admin.ModelAdmin):
    """Expose profile and two-factor events to administrators."""

    list_display = (
        "timestamp",
        "event_type",
        "actor",
        "target_user",
        "ip_address",
    )
    list_filter = ("event_type", "timestamp")
    search_fields = (
        "actor__username",
        "actor__email",
        "target_user__username",
        "target_user__email",
        "description",
    )
    readonly_fields = (
        "timestamp",
        "event_type",
        "actor",
        "target_user",
        "ip_address",
        "user_agent",
        "description",
        "metadata",
    )
    ordering = ("-timestamp",)
