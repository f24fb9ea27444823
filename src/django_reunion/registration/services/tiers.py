"""Age-based ticket tier selection.

Maps a participant's age onto exactly one admission tier. Pure functions,
no database access: callers pass in the tiers they loaded.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from django_reunion.registration.answers import Participant
    from django_reunion.registration.models import TicketTier


def _age_span(tier: TicketTier) -> float:
    """Width of a tier's age range, treating an open bound as infinite."""
    if tier.age_min is None or tier.age_max is None:
        return math.inf
    return float(tier.age_max - tier.age_min)


def _selection_key(tier: TicketTier) -> tuple[int, float, int, int]:
    return (tier.price_cents, _age_span(tier), tier.position, tier.pk or 0)


def select_tier(tiers: Iterable[TicketTier], age: float) -> TicketTier | None:
    """Pick the tier a participant of *age* is charged for.

    A tier matches when ``age`` is inside its inclusive ``age_min`` /
    ``age_max`` range (unset bounds are open). Among matches the cheapest
    wins, then the narrowest age span; ``position`` and primary key settle
    anything left so the result is stable across calls.

    Args:
        tiers: Candidate admission tiers.
        age: The participant's parsed age.

    Returns:
        The selected tier, or ``None`` when no tier covers the age. Callers
        must treat ``None`` as a validation failure.
    """
    matches = [tier for tier in tiers if tier.matches_age(age)]
    if not matches:
        return None
    return min(matches, key=_selection_key)


def required_tier_counts(
    tiers: Sequence[TicketTier],
    participants: Iterable[Participant],
) -> tuple[Counter[int], list[Participant]]:
    """Count how many tickets of each tier the participants imply.

    Participants without an age or without a matching tier are returned
    separately instead of being counted.

    Returns:
        A ``(counts, unmatched)`` pair where ``counts`` maps tier primary
        key to required quantity.
    """
    counts: Counter[int] = Counter()
    unmatched: list[Participant] = []
    for person in participants:
        if person.age is None:
            unmatched.append(person)
            continue
        tier = select_tier(tiers, person.age)
        if tier is None:
            unmatched.append(person)
            continue
        counts[tier.pk] += 1
    return counts, unmatched
