"""Django app configuration for the registration app."""

from django.apps import AppConfig


class DjangoReunionRegistrationConfig(AppConfig):
    """Configuration for the registration app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "django_reunion.registration"
    label = "reunion_registration"
    verbose_name = "Registration"
