"""Management command to create or update ticket tiers from a TOML catalog."""

from typing import Any

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError, CommandParser
from django.db import transaction

from django_reunion.config_loader import load_tier_config
from django_reunion.registration.models import TicketTier

_TIER_FIELDS: tuple[str, ...] = (
    "name",
    "description",
    "kind",
    "price_cents",
    "currency",
    "age_min",
    "age_max",
    "inventory",
    "position",
    "is_active",
)


class Command(BaseCommand):
    """Create or update ticket tiers from a TOML catalog.

    Tiers are matched by slug. Fields present in the file overwrite the
    stored values; fields left out keep theirs. Safe to run repeatedly.

    Usage::

        manage.py ensure_ticket_tiers tiers.toml
        manage.py ensure_ticket_tiers tiers.toml --dry-run
    """

    help = "Create or update ticket tiers from a TOML catalog file."

    def add_arguments(self, parser: CommandParser) -> None:
        """Define the command-line arguments accepted by this command."""
        parser.add_argument("config", help="Path to the tier catalog TOML file.")
        parser.add_argument(
            "--dry-run",
            action="store_true",
            default=False,
            help="Validate the catalog and print what would change without saving.",
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the command."""
        try:
            tiers = load_tier_config(options["config"])
        except (FileNotFoundError, TypeError, ValueError) as exc:
            raise CommandError(str(exc)) from exc

        if options["dry_run"]:
            for data in tiers:
                exists = TicketTier.objects.filter(slug=data["slug"]).exists()
                verb = "update" if exists else "create"
                self.stdout.write(f"  Would {verb} tier: {data['name']} ({data['slug']})")
            return

        try:
            with transaction.atomic():
                created, updated = self._upsert(tiers)
        except ValidationError as exc:
            raise CommandError(f"Invalid tier: {exc}") from exc

        self.stdout.write(f"Done: {created} created, {updated} updated.")

    def _upsert(self, tiers: list[dict[str, Any]]) -> tuple[int, int]:
        """Create or update each tier by slug.

        Returns:
            A tuple of (created_count, updated_count).
        """
        created = updated = 0
        for data in tiers:
            fields = {key: data[key] for key in _TIER_FIELDS if key in data}
            tier = TicketTier.objects.filter(slug=data["slug"]).first()
            if tier is None:
                tier = TicketTier(slug=data["slug"], **fields)
                verb = "Created"
                created += 1
            else:
                for attr, value in fields.items():
                    setattr(tier, attr, value)
                verb = "Updated"
                updated += 1
            tier.full_clean()
            tier.save()
            self.stdout.write(self.style.SUCCESS(f"  {verb} tier: {tier.name}"))
        return created, updated
