"""Tests for server-side registration validation."""

import pytest

from django_reunion.registration.answers import RegistrationSubmission, TicketSelection, parse_answers
from django_reunion.registration.models import Order, TicketTier
from django_reunion.registration.services.apparel import aggregate_apparel
from django_reunion.registration.services.pricing import compute_total
from django_reunion.registration.services.validation import (
    RegistrationRejected,
    RejectionCode,
    check_inventory,
    validate_registration,
)

# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def tiers():
    return [
        TicketTier(pk=1, name="Keiki (0-3)", slug="keiki-0-3", price_cents=0, age_min=0, age_max=3),
        TicketTier(pk=2, name="Keiki (4-10)", slug="keiki-4-10", price_cents=2500, age_min=4, age_max=10),
        TicketTier(pk=3, name="General (11+)", slug="general", price_cents=3500, age_min=11),
    ]


def _validate(tiers, answers, tickets, method=Order.PaymentMethod.STRIPE, addons=(), **extra):
    parsed = parse_answers(answers)
    submission = RegistrationSubmission(
        purchaser_name="Noelani",
        purchaser_email="noelani@example.com",
        payment_method=method,
        tickets=tuple(TicketSelection(tier_id=tier_id, quantity=qty) for tier_id, qty in tickets),
        answers=parsed,
        raw_answers=answers,
        **extra,
    )
    prices = {tier.pk: tier.price_cents for tier in tiers}
    prices.update({tier.pk: tier.price_cents for tier, _ in addons})
    ticket_cents = sum(prices.get(tier_id, 0) * qty for tier_id, qty in tickets)
    apparel = aggregate_apparel(parsed.people, parsed.apparel_orders)
    totals = compute_total(ticket_cents, apparel.subtotal_cents, parsed.donation_cents, method)
    validate_registration(submission, tiers, totals, apparel, list(addons))


def _code(excinfo):
    return excinfo.value.code


# =============================================================================
# Admission rules
# =============================================================================


@pytest.mark.unit
class TestAdmissionRules:
    def test_matching_quantities_pass(self, tiers):
        _validate(tiers, {"people": [{"age": 40}, {"age": 7}, {"age": 2}]}, [(3, 1), (2, 1), (1, 1)])

    def test_missing_age_is_rejected(self, tiers):
        with pytest.raises(RegistrationRejected) as excinfo:
            _validate(tiers, {"people": [{"full_name": "Kimo", "age": ""}]}, [(3, 1)])

        assert _code(excinfo) == RejectionCode.MISSING_AGE
        assert excinfo.value.params == {"name": "Kimo"}

    def test_unnamed_missing_age_is_numbered(self, tiers):
        with pytest.raises(RegistrationRejected) as excinfo:
            _validate(tiers, {"people": [{"age": 40}, {"age": None}]}, [(3, 1)])

        assert excinfo.value.params == {"name": "participant 2"}

    def test_age_without_tier_is_rejected(self, tiers):
        with pytest.raises(RegistrationRejected) as excinfo:
            _validate(tiers, {"people": [{"age": 3.5}]}, [(1, 1)])

        assert _code(excinfo) == RejectionCode.UNMATCHED_AGE
        assert excinfo.value.params == {"age": 3.5}
        assert "3.5" in excinfo.value.messages[0]

    def test_first_unmatched_age_is_reported(self, tiers):
        with pytest.raises(RegistrationRejected) as excinfo:
            _validate(tiers, {"people": [{"age": 40}, {"age": 3.5}, {"age": 10.5}]}, [(3, 1)])

        assert _code(excinfo) == RejectionCode.UNMATCHED_AGE
        assert excinfo.value.params == {"age": 3.5}

    def test_quantity_mismatch_is_rejected(self, tiers):
        with pytest.raises(RegistrationRejected) as excinfo:
            _validate(tiers, {"people": [{"age": 40}, {"age": 7}]}, [(3, 2)])

        assert _code(excinfo) == RejectionCode.QUANTITY_MISMATCH
        assert excinfo.value.params == {"tier": "Keiki (4-10)", "required": 1, "submitted": 0}

    def test_cheaper_tier_substitution_is_rejected(self, tiers):
        with pytest.raises(RegistrationRejected) as excinfo:
            _validate(tiers, {"people": [{"age": 40}]}, [(2, 1)])

        assert _code(excinfo) == RejectionCode.QUANTITY_MISMATCH

    def test_non_attending_participants_need_no_ticket(self, tiers):
        _validate(
            tiers,
            {"people": [{"age": 40}, {"age": 70, "attending": False}, {"attending": False}]},
            [(3, 1)],
        )

    def test_no_tickets_is_rejected(self, tiers):
        with pytest.raises(RegistrationRejected) as excinfo:
            _validate(tiers, {"people": [{"age": 40}]}, [])

        assert _code(excinfo) == RejectionCode.NO_TICKETS_SELECTED

    def test_apparel_only_order_is_accepted(self, tiers):
        _validate(
            tiers,
            {"apparel_only": True, "apparel_orders": [{"category": "adult", "quantity": 2}]},
            [],
        )

    def test_apparel_only_requires_apparel(self, tiers):
        with pytest.raises(RegistrationRejected) as excinfo:
            _validate(tiers, {"apparel_only": True}, [])

        assert _code(excinfo) == RejectionCode.NO_TICKETS_SELECTED

    def test_apparel_only_with_attendees_is_rejected(self, tiers):
        with pytest.raises(RegistrationRejected) as excinfo:
            _validate(
                tiers,
                {"apparel_only": True, "people": [{"age": 40}], "apparel_orders": [{"category": "adult"}]},
                [],
            )

        assert _code(excinfo) == RejectionCode.NO_TICKETS_SELECTED


# =============================================================================
# Inventory
# =============================================================================


@pytest.mark.unit
class TestInventory:
    def test_check_inventory_allows_unlimited_and_sufficient(self):
        check_inventory(TicketTier(name="Unlimited", inventory=None), 500)
        check_inventory(TicketTier(name="Limited", inventory=2), 2)

    def test_check_inventory_rejects_shortfall(self):
        with pytest.raises(RegistrationRejected) as excinfo:
            check_inventory(TicketTier(name="Lu'au Plate", inventory=1), 2)

        assert _code(excinfo) == RejectionCode.INSUFFICIENT_INVENTORY
        assert excinfo.value.params == {"tier": "Lu'au Plate", "remaining": 1, "required": 2}

    def test_admission_inventory_is_checked(self, tiers):
        tiers[2].inventory = 1

        with pytest.raises(RegistrationRejected) as excinfo:
            _validate(tiers, {"people": [{"age": 40}, {"age": 41}]}, [(3, 2)])

        assert _code(excinfo) == RejectionCode.INSUFFICIENT_INVENTORY

    def test_addon_inventory_is_checked(self, tiers):
        plate = TicketTier(pk=10, name="Plate", kind=TicketTier.Kind.ADDON, price_cents=1800, inventory=0)

        with pytest.raises(RegistrationRejected) as excinfo:
            _validate(tiers, {"people": [{"age": 40}]}, [(3, 1), (10, 1)], addons=[(plate, 1)])

        assert _code(excinfo) == RejectionCode.INSUFFICIENT_INVENTORY


# =============================================================================
# Payment method rules
# =============================================================================


@pytest.mark.unit
class TestPaymentRules:
    @pytest.mark.parametrize("method", [Order.PaymentMethod.PAYPAL, Order.PaymentMethod.VENMO])
    def test_wallet_requires_handle(self, tiers, method):
        with pytest.raises(RegistrationRejected) as excinfo:
            _validate(tiers, {"people": [{"age": 40}]}, [(3, 1)], method=method, payment_handle="  ")

        assert _code(excinfo) == RejectionCode.MISSING_PAYMENT_HANDLE

    def test_wallet_with_handle_passes(self, tiers):
        _validate(
            tiers,
            {"people": [{"age": 40}]},
            [(3, 1)],
            method=Order.PaymentMethod.VENMO,
            payment_handle="@noelani",
        )

    def test_check_requires_confirmed_mailing_address(self, tiers):
        with pytest.raises(RegistrationRejected) as excinfo:
            _validate(tiers, {"people": [{"age": 40}]}, [(3, 1)], method=Order.PaymentMethod.CHECK)

        assert _code(excinfo) == RejectionCode.MAILING_ADDRESS_NOT_CONFIRMED

    def test_check_with_confirmation_passes(self, tiers):
        _validate(
            tiers,
            {"people": [{"age": 40}]},
            [(3, 1)],
            method=Order.PaymentMethod.CHECK,
            mailing_address_confirmed=True,
        )

    def test_free_order_skips_payment_rules(self, tiers):
        _validate(tiers, {"people": [{"age": 2}]}, [(1, 1)], method=Order.PaymentMethod.PAYPAL)

    def test_age_rules_run_before_payment_rules(self, tiers):
        with pytest.raises(RegistrationRejected) as excinfo:
            _validate(tiers, {"people": [{"age": ""}]}, [(3, 1)], method=Order.PaymentMethod.PAYPAL)

        assert _code(excinfo) == RejectionCode.MISSING_AGE


@pytest.mark.unit
def test_rejection_detail_payload():
    exc = RegistrationRejected("Select at least one ticket.", RejectionCode.NO_TICKETS_SELECTED)

    assert exc.detail == {"error": "Select at least one ticket.", "code": "no_tickets_selected"}
