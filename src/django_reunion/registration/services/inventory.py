"""Order-scoped ticket inventory decrement.

Inventory is the only shared counter the registration flow mutates. Every
decrement goes through :func:`decrement_for_order`, which first claims an
``InventoryDecrement`` ledger row keyed by ``(order, tier)`` and only then
touches the counter, so repeating it for the same order is a no-op.
"""

import logging

from django.db import IntegrityError, models, transaction

from django_reunion.registration.models import InventoryDecrement, Order, TicketTier

logger = logging.getLogger(__name__)


def decrement_for_order(order: Order) -> int:
    """Take the inventory for every limited tier purchased on *order*.

    For each tier the ledger row is inserted inside a savepoint; a unique
    constraint violation means an earlier call already decremented that tier
    for this order and it is skipped. The counter itself is updated with a
    conditional ``UPDATE ... WHERE inventory >= quantity`` so concurrent
    orders racing for the last units are serialized by the database. If the
    tier no longer has enough units the counter is clamped at zero and the
    oversell is logged; payment has already been collected at this point.

    Must be called inside ``transaction.atomic``.

    Args:
        order: The order being finalized.

    Returns:
        The number of tiers decremented by this call.
    """
    quantities: dict[int, int] = {}
    for item in order.items.filter(tier__isnull=False, tier__inventory__isnull=False):
        quantities[item.tier_id] = quantities.get(item.tier_id, 0) + item.quantity

    decremented = 0
    for tier_id, quantity in sorted(quantities.items()):
        if quantity <= 0:
            continue
        try:
            with transaction.atomic():
                InventoryDecrement.objects.create(order=order, tier_id=tier_id, quantity=quantity)
        except IntegrityError:
            logger.info("Inventory for tier %s already taken by order %s", tier_id, order.reference)
            continue

        updated = TicketTier.objects.filter(
            pk=tier_id,
            inventory__gte=quantity,
        ).update(inventory=models.F("inventory") - quantity)
        if updated != 1:
            TicketTier.objects.filter(pk=tier_id, inventory__isnull=False).update(inventory=0)
            logger.warning(
                "Tier %s oversold by order %s: %s requested with less remaining",
                tier_id,
                order.reference,
                quantity,
            )
        decremented += 1
    return decremented
