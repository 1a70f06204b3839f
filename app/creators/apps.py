from django.apps import AppConfig


class CreatorsConfig(AppConfig):
    """Configuration for the creators application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "creators"
    verbose_name = "Creators"
