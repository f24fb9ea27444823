"""Server-side registration validation.

The registration form computes tiers client-side for display, but the server
is the source of truth: a submission whose ticket quantities disagree with
its own participant data is rejected, never silently corrected.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError

from django_reunion.registration.models import WALLET_PAYMENT_METHODS, Order, TicketTier
from django_reunion.registration.services.tiers import required_tier_counts

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from django_reunion.registration.answers import RegistrationSubmission
    from django_reunion.registration.services.apparel import ApparelTotals
    from django_reunion.registration.services.pricing import OrderTotals


class RejectionCode(enum.StrEnum):
    """Machine-readable reasons a registration is turned away."""

    MISSING_AGE = "missing_age"
    UNMATCHED_AGE = "unmatched_age"
    QUANTITY_MISMATCH = "quantity_mismatch"
    INSUFFICIENT_INVENTORY = "insufficient_inventory"
    MISSING_PAYMENT_HANDLE = "missing_payment_handle"
    MAILING_ADDRESS_NOT_CONFIRMED = "mailing_address_not_confirmed"
    NO_TICKETS_SELECTED = "no_tickets_selected"
    TICKET_UNAVAILABLE = "ticket_unavailable"


class RegistrationRejected(ValidationError):
    """A registration failed validation; ``code`` says why, ``params`` carry detail."""

    def __init__(self, message: str, code: RejectionCode, params: dict[str, object] | None = None) -> None:
        """Build a rejection with a formatted message and its reason code."""
        super().__init__(message, code=str(code), params=params or {})

    @property
    def detail(self) -> dict[str, object]:
        """Return ``{"error", "code", **params}`` for a JSON response body."""
        return {"error": self.messages[0], "code": self.code, **self.params}


def _format_age(age: float) -> int | float:
    return int(age) if float(age).is_integer() else age


def check_inventory(tier: TicketTier, quantity: int) -> None:
    """Reject *quantity* units of *tier* when its finite inventory is too small.

    Raises:
        RegistrationRejected: With ``insufficient_inventory``.
    """
    if tier.inventory is not None and quantity > tier.inventory:
        raise RegistrationRejected(
            "%(tier)s only has %(remaining)s left, but %(required)s are needed.",
            RejectionCode.INSUFFICIENT_INVENTORY,
            {"tier": tier.name, "remaining": tier.inventory, "required": quantity},
        )


def _validate_admission(
    submission: RegistrationSubmission,
    admission_tiers: Sequence[TicketTier],
    submitted: Mapping[int, int],
) -> None:
    attending = submission.answers.attending

    for person in attending:
        if person.age is None:
            raise RegistrationRejected(
                "Enter an age for %(name)s.",
                RejectionCode.MISSING_AGE,
                {"name": person.name or f"participant {person.index + 1}"},
            )

    required, unmatched = required_tier_counts(admission_tiers, attending)
    if unmatched:
        raise RegistrationRejected(
            "No ticket is available for age %(age)s.",
            RejectionCode.UNMATCHED_AGE,
            {"age": _format_age(unmatched[0].age)},
        )

    for tier in admission_tiers:
        needed = required.get(tier.pk, 0)
        claimed = submitted.get(tier.pk, 0)
        if needed != claimed:
            raise RegistrationRejected(
                "%(tier)s tickets must match the participants' ages (%(required)s required, %(submitted)s selected).",
                RejectionCode.QUANTITY_MISMATCH,
                {"tier": tier.name, "required": needed, "submitted": claimed},
            )

    for tier in admission_tiers:
        if tier.pk in required:
            check_inventory(tier, required[tier.pk])


def validate_registration(
    submission: RegistrationSubmission,
    admission_tiers: Sequence[TicketTier],
    totals: OrderTotals,
    apparel: ApparelTotals,
    addon_selections: Sequence[tuple[TicketTier, int]] = (),
) -> None:
    """Check a submission against the tier catalog before an order is created.

    Rules run in a fixed order and the first failure wins:

    1. every attending participant has a parseable age;
    2. every such age resolves to an admission tier;
    3. the submitted quantity per admission tier equals what the
       participants require;
    4. no tier with finite inventory is asked for more than it has;
    5. wallet payments (PayPal, Venmo) name the purchaser's handle;
    6. mail-in checks confirm the mailing address.

    A submission without admission tickets is only accepted when it has no
    attending participants, is flagged ``apparel_only``, and actually orders
    apparel; such a submission skips rules 1-4.

    Args:
        submission: The parsed submission.
        admission_tiers: Active admission tiers, ordered for display.
        totals: Totals computed for the submission.
        apparel: Aggregated apparel counts.
        addon_selections: Non-admission, non-apparel tiers with the submitted
            quantity, checked against inventory.

    Raises:
        RegistrationRejected: With the code of the first rule that failed.
    """
    admission_ids = {tier.pk for tier in admission_tiers}
    submitted = {
        tier_id: quantity
        for tier_id, quantity in submission.submitted_quantities().items()
        if tier_id in admission_ids
    }
    attending = submission.answers.attending

    if not submitted:
        apparel_only = not attending and submission.answers.apparel_only and apparel.total_count > 0
        if not apparel_only:
            raise RegistrationRejected(
                "Select at least one ticket.",
                RejectionCode.NO_TICKETS_SELECTED,
            )
    else:
        _validate_admission(submission, admission_tiers, submitted)

    for tier, quantity in addon_selections:
        check_inventory(tier, quantity)

    if totals.total_cents > 0:
        method = submission.payment_method
        if method in WALLET_PAYMENT_METHODS and not submission.payment_handle.strip():
            raise RegistrationRejected(
                "Enter the %(method)s account you will pay from.",
                RejectionCode.MISSING_PAYMENT_HANDLE,
                {"method": Order.PaymentMethod(method).label},
            )
        if method == Order.PaymentMethod.CHECK and not submission.mailing_address_confirmed:
            raise RegistrationRejected(
                "Confirm that you have the mailing address for your check.",
                RejectionCode.MAILING_ADDRESS_NOT_CONFIRMED,
            )
