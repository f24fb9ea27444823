"""Tests for parsing the registration answer blob."""

import pytest

from django_reunion.registration.answers import (
    ApparelSelection,
    RegistrationSubmission,
    TicketSelection,
    order_participants,
    parse_age,
    parse_answers,
    parse_money_cents,
    parse_quantity,
)

# =============================================================================
# Scalar parsing
# =============================================================================


@pytest.mark.unit
class TestParseAge:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (7, 7.0),
            ("11", 11.0),
            (" 3.5 ", 3.5),
            (0, 0.0),
        ],
    )
    def test_parses_numbers_and_numeric_strings(self, raw, expected):
        assert parse_age(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "seven", True, float("nan"), float("inf"), [], {}])
    def test_unusable_values_are_none(self, raw):
        assert parse_age(raw) is None


@pytest.mark.unit
class TestParseQuantity:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [(2, 2), ("3", 3), (1.9, 1), (0, 0), (-4, 0), ("abc", 0), (None, 0), (True, 0)],
    )
    def test_quantity(self, raw, expected):
        assert parse_quantity(raw) == expected


@pytest.mark.unit
class TestParseMoneyCents:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("20.00", 2000), (12.345, 1235), ("$5", 500), (0, 0), ("-3", 0), ("lots", 0), (None, 0)],
    )
    def test_money(self, raw, expected):
        assert parse_money_cents(raw) == expected


# =============================================================================
# parse_answers
# =============================================================================


@pytest.mark.unit
class TestParseAnswers:
    def test_non_mapping_yields_empty_answers(self):
        answers = parse_answers(["not", "a", "dict"])

        assert answers.people == ()
        assert answers.donation_cents == 0

    def test_people_and_defaults(self):
        answers = parse_answers(
            {
                "people": [
                    {"full_name": "  Leilani K. ", "age": "7"},
                    {"name": "Kai", "age": 40, "attending": False, "refunded": True, "show_name": False},
                    "garbage",
                ]
            }
        )

        assert len(answers.people) == 2
        leilani, kai = answers.people
        assert leilani.name == "Leilani K."
        assert leilani.age == 7.0
        assert leilani.attending is True
        assert leilani.show_name is True
        assert leilani.show_photo is None
        assert kai.attending is False
        assert kai.refunded is True
        assert kai.show_name is False
        assert [person.index for person in answers.attending] == [0]

    def test_attending_only_false_when_explicitly_false(self):
        answers = parse_answers({"people": [{"age": 5, "attending": None}, {"age": 5, "attending": "no"}]})

        assert all(person.attending for person in answers.people)

    def test_apparel_and_donation(self):
        answers = parse_answers(
            {
                "people": [{"age": 9, "apparel": {"category": "Youth", "size": "M"}}],
                "apparel_orders": [{"category": "adult", "quantity": "2"}, "bad"],
                "donation": "15.50",
                "apparel_only": True,
                "photo_urls": ["https://img/1.jpg", 3],
            }
        )

        assert answers.people[0].apparel == ApparelSelection(category="Youth", size="M", quantity=1)
        assert answers.people[0].apparel.price_category == "youth"
        assert answers.apparel_orders == (ApparelSelection(category="adult", quantity=2),)
        assert answers.donation_cents == 1550
        assert answers.apparel_only is True
        assert answers.photo_urls == ("https://img/1.jpg",)

    def test_donation_cents_takes_precedence(self):
        answers = parse_answers({"donation_cents": 700, "donation": "99"})

        assert answers.donation_cents == 700

    def test_unknown_category_prices_as_adult(self):
        assert ApparelSelection(category="toddler").price_category == "adult"
        assert ApparelSelection(category="").price_category == "adult"


# =============================================================================
# order_participants
# =============================================================================


@pytest.mark.unit
class TestOrderParticipants:
    def test_numbers_unnamed_participants_and_infers_show_photo(self):
        rows = order_participants(
            {
                "people": [{"full_name": "Malia"}, {"age": 3}],
                "photo_urls": ["https://img/malia.jpg"],
            }
        )

        assert rows[0].name == "Malia"
        assert rows[0].has_photo is True
        assert rows[0].show_photo is True
        assert rows[1].name == "Participant 2"
        assert rows[1].has_photo is False
        assert rows[1].show_photo is False

    def test_explicit_show_photo_wins(self):
        rows = order_participants({"people": [{"show_photo": False}], "photo_urls": ["https://img/1.jpg"]})

        assert rows[0].show_photo is False


@pytest.mark.unit
class TestSubmittedQuantities:
    def test_sums_repeated_tiers_and_drops_zero(self):
        submission = RegistrationSubmission(
            purchaser_name="Ana",
            purchaser_email="ana@example.com",
            payment_method="stripe",
            tickets=(
                TicketSelection(tier_id=1, quantity=1),
                TicketSelection(tier_id=1, quantity=2),
                TicketSelection(tier_id=2, quantity=0),
            ),
        )

        assert submission.submitted_quantities() == {1: 3}
