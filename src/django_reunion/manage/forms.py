"""Forms for the organizer console."""

from django import forms

from django_reunion.registration.models import Order


class OrderOverwriteForm(forms.Form):
    """Full-order editor; blank fields leave the stored value unchanged.

    ``answers`` is the replacement answer blob as JSON and ``items`` a JSON
    list of ``{"tier_id", "quantity"}`` objects.
    """

    purchaser_name = forms.CharField(max_length=200, required=False)
    purchaser_email = forms.CharField(max_length=254, required=False)
    status = forms.ChoiceField(choices=[("", "---"), *Order.Status.choices], required=False)
    payment_method = forms.ChoiceField(choices=[("", "---"), *Order.PaymentMethod.choices], required=False)
    total_cents = forms.IntegerField(min_value=0, required=False)
    stripe_session_id = forms.CharField(max_length=255, required=False)
    answers = forms.JSONField(required=False)
    items = forms.JSONField(required=False)

    def clean_answers(self) -> dict | None:
        """Require the answer blob, when given, to be an object."""
        answers = self.cleaned_data.get("answers")
        if answers is None:
            return None
        if not isinstance(answers, dict):
            raise forms.ValidationError("Answers must be a JSON object.")
        return answers

    def clean_items(self) -> list[tuple[int, int]] | None:
        """Parse ``items`` into ``(tier_id, quantity)`` pairs."""
        items = self.cleaned_data.get("items")
        if items is None:
            return None
        if not isinstance(items, list):
            raise forms.ValidationError("Items must be a JSON list.")
        pairs = []
        for entry in items:
            tier_id = entry.get("tier_id", entry.get("ticket_type_id")) if isinstance(entry, dict) else None
            quantity = entry.get("quantity") if isinstance(entry, dict) else None
            if not isinstance(tier_id, int) or not isinstance(quantity, int) or quantity < 0:
                raise forms.ValidationError("Each item needs an integer tier_id and a non-negative quantity.")
            pairs.append((tier_id, quantity))
        return pairs

    def overwrite_kwargs(self) -> dict[str, object]:
        """Return the keyword arguments for ``OrderAdminService.overwrite_order``."""
        data = self.cleaned_data
        kwargs: dict[str, object] = {}
        for name in ("purchaser_name", "purchaser_email", "status", "payment_method", "stripe_session_id"):
            if data.get(name):
                kwargs[name] = data[name]
        for name in ("total_cents", "answers", "items"):
            if data.get(name) is not None:
                kwargs[name] = data[name]
        return kwargs


class ParticipantUpdateForm(forms.Form):
    """Toggle flags on one participant, change their email, or remove them."""

    attending = forms.NullBooleanField(required=False)
    refunded = forms.NullBooleanField(required=False)
    show_name = forms.NullBooleanField(required=False)
    show_photo = forms.NullBooleanField(required=False)
    email = forms.CharField(max_length=254, required=False, strip=False)
    remove = forms.BooleanField(required=False)

    def update_kwargs(self) -> dict[str, object]:
        """Return keyword arguments for ``OrderAdminService.update_participant``.

        ``email`` is passed only when the field was submitted, so an empty
        value clears the address instead of being ignored.
        """
        data = self.cleaned_data
        kwargs: dict[str, object] = {"remove": data["remove"]}
        for name in ("attending", "refunded", "show_name", "show_photo"):
            if data.get(name) is not None:
                kwargs[name] = data[name]
        if "email" in self.data:
            kwargs["email"] = data.get("email", "")
        return kwargs


class ResendReceiptForm(forms.Form):
    """Optional override of the receipt recipient."""

    email = forms.CharField(max_length=254, required=False)
