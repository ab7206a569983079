from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'cmsweb.core'

    def ready(self):
        """Register system checks and the audit signal handlers."""
        from . import checks  # noqa: F401
        from . import security_logging  # noqa: F401
