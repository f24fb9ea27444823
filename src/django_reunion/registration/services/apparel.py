"""Apparel aggregation and on-demand apparel tier creation.

Apparel is priced at fixed, configured price points (adult / youth) so the
amount charged never depends on which catalog rows happen to exist. Catalog
tiers are still needed so apparel purchases show up as order items for
inventory and export; :func:`ensure_apparel_tier` creates them the first
time they are needed.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from django.db import IntegrityError, transaction
from django.utils.text import slugify

from django_reunion.registration.answers import (
    ADULT_CATEGORY,
    YOUTH_CATEGORY,
    ApparelSelection,
    Participant,
)
from django_reunion.registration.models import TicketTier
from django_reunion.settings import get_config

logger = logging.getLogger(__name__)

_CATEGORY_LABELS = {ADULT_CATEGORY: "Adult", YOUTH_CATEGORY: "Youth"}


@dataclass(frozen=True, slots=True)
class ApparelTotals:
    """Apparel counts per price category and their combined price."""

    adult_count: int = 0
    youth_count: int = 0
    adult_price_cents: int = 0
    youth_price_cents: int = 0

    @property
    def subtotal_cents(self) -> int:
        """Return the combined apparel price in cents."""
        return self.adult_count * self.adult_price_cents + self.youth_count * self.youth_price_cents

    @property
    def total_count(self) -> int:
        """Return the number of apparel units across both categories."""
        return self.adult_count + self.youth_count

    def count_for(self, category: str) -> int:
        """Return the unit count for ``"adult"`` or ``"youth"``."""
        return self.youth_count if category == YOUTH_CATEGORY else self.adult_count

    def price_for(self, category: str) -> int:
        """Return the unit price for ``"adult"`` or ``"youth"``."""
        return self.youth_price_cents if category == YOUTH_CATEGORY else self.adult_price_cents


def aggregate_apparel(
    participants: Iterable[Participant],
    standalone_lines: Iterable[ApparelSelection],
) -> ApparelTotals:
    """Sum participant and standalone apparel into adult / youth counts.

    Each participant contributes at most its one selection. Rows whose
    quantity parsed to zero (missing, negative, non-numeric) are dropped.

    Args:
        participants: Parsed participants; attendance does not matter.
        standalone_lines: Apparel ordered without a participant.

    Returns:
        Counts per category priced at the configured apparel price points.
    """
    apparel = get_config().apparel
    selections = [person.apparel for person in participants if person.apparel is not None]
    selections.extend(standalone_lines)

    adult = youth = 0
    for selection in selections:
        if selection.quantity <= 0:
            continue
        if selection.price_category == YOUTH_CATEGORY:
            youth += selection.quantity
        else:
            adult += selection.quantity

    return ApparelTotals(
        adult_count=adult,
        youth_count=youth,
        adult_price_cents=apparel.adult_price_cents,
        youth_price_cents=apparel.youth_price_cents,
    )


def apparel_tier_name(category: str) -> str:
    """Return the catalog name for an apparel category, e.g. ``"Reunion T-Shirt (Youth)"``."""
    return f"{get_config().apparel.name_prefix} ({_CATEGORY_LABELS[category]})"


def _find_apparel_tier(category: str, price_cents: int) -> TicketTier | None:
    prefix = get_config().apparel.name_prefix
    return (
        TicketTier.objects.filter(
            kind=TicketTier.Kind.APPAREL,
            is_active=True,
            price_cents=price_cents,
            name__icontains=prefix,
        )
        .filter(name__icontains=_CATEGORY_LABELS[category])
        .order_by("position", "pk")
        .first()
    )


def ensure_apparel_tier(category: str) -> TicketTier:
    """Return the active apparel tier for *category*, creating it if missing.

    Lookup key is the configured price point plus the name pattern
    (``<name_prefix> ... <Adult|Youth>``). Creation is keyed by a
    deterministic unique slug so two concurrent first purchases cannot both
    insert: the loser catches the ``IntegrityError`` and re-reads the row.

    Args:
        category: ``"adult"`` or ``"youth"``.

    Returns:
        The matching ``TicketTier``.
    """
    config = get_config().apparel
    price_cents = config.youth_price_cents if category == YOUTH_CATEGORY else config.adult_price_cents

    existing = _find_apparel_tier(category, price_cents)
    if existing is not None:
        return existing

    name = apparel_tier_name(category)
    slug = f"{slugify(name)}-{price_cents}"
    try:
        with transaction.atomic():
            tier, created = TicketTier.objects.get_or_create(
                slug=slug,
                defaults={
                    "name": name,
                    "description": name,
                    "kind": TicketTier.Kind.APPAREL,
                    "price_cents": price_cents,
                    "currency": get_config().currency,
                    "position": 99 if category == YOUTH_CATEGORY else 98,
                    "is_active": True,
                },
            )
    except IntegrityError:
        tier, created = TicketTier.objects.get(slug=slug), False

    if created:
        logger.info("Created apparel tier %s at %s cents", tier.name, price_cents)
    elif not tier.is_active or tier.kind != TicketTier.Kind.APPAREL:
        # The slug is taken by a row an organizer retired or repurposed; bring it back.
        tier.is_active = True
        tier.kind = TicketTier.Kind.APPAREL
        tier.price_cents = price_cents
        tier.save(update_fields=["is_active", "kind", "price_cents", "updated_at"])
        logger.info("Reactivated apparel tier %s", tier.name)
    return tier
