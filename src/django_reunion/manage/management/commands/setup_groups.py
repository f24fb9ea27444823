"""Management command to create default permission groups for reunion staff."""

from typing import Any

from django.contrib.auth.models import Group, Permission
from django.core.management.base import BaseCommand

from django_reunion.manage.views import ORGANIZER_GROUP_NAME

# Mapping of group name -> list of (app_label, codename) permissions.
_GROUP_PERMISSIONS: dict[str, list[tuple[str, str]]] = {
    ORGANIZER_GROUP_NAME: [
        ("reunion_registration", "add_tickettier"),
        ("reunion_registration", "change_tickettier"),
        ("reunion_registration", "view_tickettier"),
        ("reunion_registration", "view_order"),
        ("reunion_registration", "change_order"),
        ("reunion_registration", "view_orderitem"),
        ("reunion_registration", "view_attendee"),
    ],
    "Reunion: Read-Only Staff": [
        ("reunion_registration", "view_tickettier"),
        ("reunion_registration", "view_order"),
        ("reunion_registration", "view_orderitem"),
        ("reunion_registration", "view_attendee"),
    ],
}


class Command(BaseCommand):
    """Create default permission groups for reunion staff roles.

    * **Organizers** -- tier catalog edits and the organizer console
    * **Read-Only Staff** -- view-only access to tiers, orders, and attendees

    Safe to run multiple times; existing groups are updated with the defined
    permission set.
    """

    help = "Create default permission groups for reunion staff roles."

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the setup_groups command."""
        for group_name, perm_specs in _GROUP_PERMISSIONS.items():
            group, created = Group.objects.get_or_create(name=group_name)
            verb = "Created" if created else "Updated"

            permissions = Permission.objects.filter(
                content_type__app_label__in={app for app, _ in perm_specs},
            ).select_related("content_type")
            matched = [p for p in permissions if (p.content_type.app_label, p.codename) in perm_specs]
            group.permissions.set(matched)

            missing = len(perm_specs) - len(matched)
            if missing:
                self.stdout.write(self.style.WARNING(f"  {group_name}: {missing} permission(s) not found"))
            self.stdout.write(self.style.SUCCESS(f"  {verb} group: {group_name} ({len(matched)} permissions)"))
