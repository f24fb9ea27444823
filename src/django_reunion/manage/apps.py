"""Django app configuration for the organizer console."""

from django.apps import AppConfig


class DjangoReunionManageConfig(AppConfig):
    """Configuration for the organizer console app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "django_reunion.manage"
    label = "reunion_manage"
    verbose_name = "Reunion Management"
