from django.apps import AppConfig


class EncodingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "encoding"

    def ready(self):
        from . import signals  # noqa: F401
        from .renditions import get_ladder

        # an inconsistent ladder stops the process here, not at submission time
        get_ladder()
