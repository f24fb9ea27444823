"""Typed view of the free-form registration answer blob.

Orders keep the purchaser's answers as JSON (``Order.answers``). The shape
the registration form posts is::

    {
        "people": [
            {
                "full_name": "Leilani K.",
                "age": "7",
                "attending": true,
                "apparel": {"category": "youth", "style": "crew", "size": "M", "quantity": 1},
                ...
            }
        ],
        "apparel_orders": [{"category": "adult", "style": "v-neck", "size": "L", "quantity": 2}],
        "donation": "20.00",
        "apparel_only": false,
        "photo_urls": ["https://..."]
    }

Everything past the submission boundary works on the frozen dataclasses
below instead of raw dict access. Parsing is deliberately lenient: ages may
arrive as strings, and half-filled apparel rows are common.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

YOUTH_CATEGORY = "youth"
ADULT_CATEGORY = "adult"


@dataclass(frozen=True, slots=True)
class ApparelSelection:
    """One apparel line, either worn by a participant or ordered standalone."""

    category: str
    style: str = ""
    size: str = ""
    quantity: int = 0

    @property
    def price_category(self) -> str:
        """Return ``"youth"`` or ``"adult"``; style and size never affect price."""
        return YOUTH_CATEGORY if self.category.strip().lower() == YOUTH_CATEGORY else ADULT_CATEGORY


@dataclass(frozen=True, slots=True)
class Participant:
    """A registrant captured inside an order's answers."""

    index: int
    name: str
    age: float | None
    attending: bool = True
    refunded: bool = False
    show_name: bool = True
    show_photo: bool | None = None
    email: str = ""
    apparel: ApparelSelection | None = None
    raw: Mapping[str, object] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RegistrationAnswers:
    """The parsed answer blob of a submission or stored order."""

    people: tuple[Participant, ...] = ()
    apparel_orders: tuple[ApparelSelection, ...] = ()
    donation_cents: int = 0
    apparel_only: bool = False
    photo_urls: tuple[str, ...] = ()

    @property
    def attending(self) -> list[Participant]:
        """Return the participants who will attend."""
        return [person for person in self.people if person.attending]


@dataclass(frozen=True, slots=True)
class OrderParticipant:
    """Display row for a participant in the admin console and export."""

    index: int
    name: str
    attending: bool
    refunded: bool
    show_name: bool
    show_photo: bool
    has_photo: bool


def parse_age(raw: object) -> float | None:
    """Parse an age leniently, returning ``None`` when it is not a finite number."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int | float):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(value):
        return None
    return value


def parse_quantity(raw: object) -> int:
    """Return a non-negative whole quantity; anything unusable becomes ``0``."""
    if isinstance(raw, bool):
        return 0
    if isinstance(raw, str):
        try:
            raw = float(raw.strip())
        except ValueError:
            return 0
    if not isinstance(raw, int | float) or not math.isfinite(raw) or raw <= 0:
        return 0
    return int(raw)


def parse_money_cents(raw: object) -> int:
    """Convert a dollar amount (number or string) to non-negative cents."""
    if raw is None or isinstance(raw, bool):
        return 0
    try:
        amount = Decimal(str(raw).strip().lstrip("$"))
    except InvalidOperation:
        return 0
    if not amount.is_finite() or amount <= 0:
        return 0
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_apparel(raw: object) -> ApparelSelection | None:
    """Parse one apparel mapping; non-mappings yield ``None``.

    A row that names a category but omits the quantity means one shirt. A row
    with neither is an untouched form row and counts as zero.
    """
    if not isinstance(raw, Mapping):
        return None
    category = str(raw.get("category") or "")
    default_quantity = 1 if category.strip() else 0
    return ApparelSelection(
        category=category,
        style=str(raw.get("style") or ""),
        size=str(raw.get("size") or ""),
        quantity=parse_quantity(raw.get("quantity", default_quantity)),
    )


def get_people(answers: object) -> list[dict[str, object]]:
    """Return the raw ``people`` records of an answer blob."""
    if not isinstance(answers, Mapping):
        return []
    people = answers.get("people")
    if not isinstance(people, list):
        return []
    return [person for person in people if isinstance(person, Mapping)]


def get_photo_urls(answers: object) -> list[str]:
    """Return the photo URLs of an answer blob, dropping non-strings."""
    if not isinstance(answers, Mapping):
        return []
    photo_urls = answers.get("photo_urls")
    if not isinstance(photo_urls, list):
        return []
    return [url for url in photo_urls if isinstance(url, str)]


def participant_name(person: Mapping[str, object]) -> str:
    """Return ``full_name`` or ``name``, trimmed."""
    full_name = person.get("full_name")
    if isinstance(full_name, str) and full_name.strip():
        return full_name.strip()
    name = person.get("name")
    return name.strip() if isinstance(name, str) else ""


def is_participant_attending(person: Mapping[str, object]) -> bool:
    """Participants attend unless explicitly marked ``attending: false``."""
    return person.get("attending") is not False


def parse_participant(index: int, person: Mapping[str, object]) -> Participant:
    """Build a :class:`Participant` from one raw ``people`` record."""
    show_name = person.get("show_name")
    show_photo = person.get("show_photo")
    email = person.get("email")
    return Participant(
        index=index,
        name=participant_name(person),
        age=parse_age(person.get("age")),
        attending=is_participant_attending(person),
        refunded=person.get("refunded") is True,
        show_name=show_name if isinstance(show_name, bool) else True,
        show_photo=show_photo if isinstance(show_photo, bool) else None,
        email=email.strip() if isinstance(email, str) else "",
        apparel=parse_apparel(person.get("apparel")),
        raw=dict(person),
    )


def parse_answers(answers: object) -> RegistrationAnswers:
    """Parse a raw answer blob into :class:`RegistrationAnswers`."""
    if not isinstance(answers, Mapping):
        return RegistrationAnswers()

    people = tuple(parse_participant(index, person) for index, person in enumerate(get_people(answers)))

    raw_lines = answers.get("apparel_orders")
    lines: list[ApparelSelection] = []
    if isinstance(raw_lines, list):
        for raw_line in raw_lines:
            line = parse_apparel(raw_line)
            if line is not None:
                lines.append(line)

    if "donation_cents" in answers:
        donation = parse_quantity(answers.get("donation_cents"))
    else:
        donation = parse_money_cents(answers.get("donation"))

    return RegistrationAnswers(
        people=people,
        apparel_orders=tuple(lines),
        donation_cents=donation,
        apparel_only=answers.get("apparel_only") is True,
        photo_urls=tuple(get_photo_urls(answers)),
    )


def order_participants(answers: object) -> list[OrderParticipant]:
    """Normalize participants for display, numbering unnamed ones."""
    photo_urls = get_photo_urls(answers)
    rows = []
    for index, person in enumerate(get_people(answers)):
        has_photo = index < len(photo_urls) and bool(photo_urls[index])
        show_name = person.get("show_name")
        show_photo = person.get("show_photo")
        rows.append(
            OrderParticipant(
                index=index,
                name=participant_name(person) or f"Participant {index + 1}",
                attending=is_participant_attending(person),
                refunded=person.get("refunded") is True,
                show_name=show_name if isinstance(show_name, bool) else True,
                show_photo=show_photo if isinstance(show_photo, bool) else has_photo,
                has_photo=has_photo,
            )
        )
    return rows


@dataclass(frozen=True, slots=True)
class TicketSelection:
    """A ``{tier_id, quantity}`` pair as selected on the registration form."""

    tier_id: int
    quantity: int


@dataclass(frozen=True, slots=True)
class RegistrationSubmission:
    """A validated-shape registration request, ready for pricing and checks."""

    purchaser_name: str
    purchaser_email: str
    payment_method: str
    tickets: tuple[TicketSelection, ...] = ()
    answers: RegistrationAnswers = field(default_factory=RegistrationAnswers)
    raw_answers: Mapping[str, object] = field(default_factory=dict)
    payment_handle: str = ""
    mailing_address_confirmed: bool = False

    def submitted_quantities(self) -> dict[int, int]:
        """Return submitted quantity per tier id, summing repeated entries."""
        quantities: dict[int, int] = {}
        for selection in self.tickets:
            if selection.quantity > 0:
                quantities[selection.tier_id] = quantities.get(selection.tier_id, 0) + selection.quantity
        return quantities
