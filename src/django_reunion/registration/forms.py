"""Forms for the registration app."""

from django import forms

from django_reunion.registration.answers import RegistrationSubmission, TicketSelection, parse_answers
from django_reunion.registration.models import Order


def _as_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


class RegistrationForm(forms.Form):
    """Shape check for a registration submission posted as JSON.

    ``tickets`` is a list of ``{"tier_id", "quantity"}`` objects
    (``ticket_type_id`` is accepted as an alias) and ``answers`` is the
    free-form answer blob holding ``people``, ``apparel_orders`` and the
    donation. Business rules are checked later by the checkout service; this
    form only rejects bodies it cannot interpret.
    """

    purchaser_name = forms.CharField(max_length=200)
    purchaser_email = forms.EmailField()
    payment_method = forms.ChoiceField(choices=Order.PaymentMethod.choices, required=False)
    payment_handle = forms.CharField(max_length=200, required=False)
    mailing_address_confirmed = forms.BooleanField(required=False)
    tickets = forms.JSONField(required=False)
    answers = forms.JSONField(required=False)

    def clean_payment_method(self) -> str:
        """Default to card checkout when no method is given."""
        return self.cleaned_data.get("payment_method") or Order.PaymentMethod.STRIPE

    def clean_tickets(self) -> tuple[TicketSelection, ...]:
        """Parse ticket selections into :class:`TicketSelection` values."""
        raw = self.cleaned_data.get("tickets")
        if raw in (None, ""):
            return ()
        if not isinstance(raw, list):
            raise forms.ValidationError("Tickets must be a list.")

        selections = []
        for entry in raw:
            if not isinstance(entry, dict):
                raise forms.ValidationError("Each ticket must be an object with a tier id and quantity.")
            tier_id = _as_int(entry.get("tier_id", entry.get("ticket_type_id")))
            quantity = _as_int(entry.get("quantity", 0))
            if tier_id is None or quantity is None or quantity < 0:
                raise forms.ValidationError("Each ticket needs a numeric tier id and a non-negative quantity.")
            selections.append(TicketSelection(tier_id=tier_id, quantity=quantity))
        return tuple(selections)

    def clean_answers(self) -> dict[str, object]:
        """Require the answer blob, when present, to be an object."""
        raw = self.cleaned_data.get("answers")
        if raw in (None, ""):
            return {}
        if not isinstance(raw, dict):
            raise forms.ValidationError("Answers must be an object.")
        return raw

    @property
    def submission(self) -> RegistrationSubmission:
        """Return the parsed submission. Only valid after ``is_valid()``."""
        data = self.cleaned_data
        return RegistrationSubmission(
            purchaser_name=data["purchaser_name"].strip(),
            purchaser_email=data["purchaser_email"],
            payment_method=data["payment_method"],
            tickets=data["tickets"],
            answers=parse_answers(data["answers"]),
            raw_answers=data["answers"],
            payment_handle=data.get("payment_handle", ""),
            mailing_address_confirmed=data.get("mailing_address_confirmed", False),
        )
