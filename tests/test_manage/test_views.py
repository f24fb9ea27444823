"""Tests for the organizer console views."""

import json
from unittest.mock import patch

import pytest
from django.contrib.auth.models import Group, Permission, User
from django.core import mail
from django.urls import reverse

from django_reunion.manage.views import ORGANIZER_GROUP_NAME
from django_reunion.registration.models import Attendee, Order, TicketTier

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def organizer(db):
    user = User.objects.create_user(username="organizer", password="pw")
    group, _ = Group.objects.get_or_create(name=ORGANIZER_GROUP_NAME)
    user.groups.add(group)
    return user


@pytest.fixture
def organizer_client(client, organizer):
    client.force_login(organizer)
    return client


@pytest.fixture
def order(db):
    TicketTier.objects.create(name="General (11+)", slug="general", price_cents=3500, age_min=11)
    return Order.objects.create(
        reference="REU-CON00001",
        purchaser_name="Pualani",
        purchaser_email="pualani@example.com",
        payment_method=Order.PaymentMethod.CHECK,
        total_cents=7000,
        answers={
            "people": [
                {"full_name": "Pualani", "age": 52, "email": "pualani@example.com"},
                {"full_name": "Kekoa", "age": 19, "email": "kekoa@example.com"},
            ]
        },
    )


def _url(name, order=None, **kwargs):
    if order is not None:
        kwargs["reference"] = order.reference
    return reverse(f"manage:{name}", kwargs=kwargs)


# ---------------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.django_db
class TestManagePermissions:
    def test_anonymous_is_redirected_to_login(self, client, order):
        response = client.get(_url("order-list"))

        assert response.status_code == 302
        assert "/accounts/login/" in response["Location"]

    def test_user_without_permission_is_forbidden(self, client, order):
        client.force_login(User.objects.create_user(username="cousin", password="pw"))

        assert client.get(_url("order-list")).status_code == 403

    def test_change_order_permission_is_enough(self, client, order):
        user = User.objects.create_user(username="treasurer", password="pw")
        user.user_permissions.add(
            Permission.objects.get(codename="change_order", content_type__app_label="reunion_registration")
        )
        client.force_login(user)

        assert client.get(_url("order-list")).status_code == 200

    def test_superuser_is_allowed(self, client, order):
        client.force_login(User.objects.create_superuser(username="root", password="pw", email="r@example.com"))

        assert client.get(_url("order-list")).status_code == 200

    def test_unknown_reference_is_404(self, organizer_client, db):
        response = organizer_client.post(reverse("manage:order-delete", kwargs={"reference": "REU-NOPE0000"}))

        assert response.status_code == 404


# ---------------------------------------------------------------------------
# Order list and edits
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.django_db
class TestOrderViews:
    def test_order_list(self, organizer_client, order):
        data = organizer_client.get(_url("order-list")).json()

        assert len(data) == 1
        assert data[0]["reference"] == "REU-CON00001"
        assert [p["name"] for p in data[0]["participants"]] == ["Pualani", "Kekoa"]

    def test_order_list_status_filter(self, organizer_client, order):
        assert organizer_client.get(_url("order-list"), {"status": "paid"}).json() == []
        assert len(organizer_client.get(_url("order-list"), {"status": "pending"}).json()) == 1

    def test_mark_paid(self, organizer_client, order):
        response = organizer_client.post(_url("order-edit", order), {"status": "paid"})

        assert response.status_code == 200
        assert response.json()["order"]["status"] == "paid"
        assert Attendee.objects.filter(order=order).count() == 2

    def test_overwrite_answers_and_items(self, organizer_client, order):
        tier = TicketTier.objects.get(slug="general")
        response = organizer_client.post(
            _url("order-edit", order),
            {
                "answers": json.dumps({"people": [{"full_name": "Pualani", "age": 52}]}),
                "items": json.dumps([{"tier_id": tier.pk, "quantity": 1}]),
                "total_cents": "3500",
            },
        )

        assert response.status_code == 200
        order.refresh_from_db()
        assert order.total_cents == 3500
        assert len(order.answers["people"]) == 1
        assert order.items.get().quantity == 1

    def test_invalid_form_returns_400(self, organizer_client, order):
        response = organizer_client.post(_url("order-edit", order), {"items": json.dumps({"tier_id": 1})})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid input"

    def test_service_validation_error_returns_400(self, organizer_client, order):
        response = organizer_client.post(_url("order-edit", order), {"purchaser_email": "broken"})

        assert response.status_code == 400
        assert "error" in response.json()


# ---------------------------------------------------------------------------
# Participants
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.django_db
class TestParticipantUpdateView:
    def test_toggle_attendance(self, organizer_client, order):
        response = organizer_client.post(_url("participant-update", order, index=1), {"attending": "false"})

        assert response.status_code == 200
        order.refresh_from_db()
        assert order.answers["people"][1]["attending"] is False

    def test_clear_primary_email_is_rejected(self, organizer_client, order):
        response = organizer_client.post(_url("participant-update", order, index=0), {"email": ""})

        assert response.status_code == 400
        assert "Primary participant email" in response.json()["error"]

    def test_remove_primary(self, organizer_client, order):
        response = organizer_client.post(_url("participant-update", order, index=0), {"remove": "true"})

        assert response.status_code == 200
        order.refresh_from_db()
        assert order.purchaser_email == "kekoa@example.com"
        assert [p["full_name"] for p in order.answers["people"]] == ["Kekoa"]

    def test_missing_participant(self, organizer_client, order):
        response = organizer_client.post(_url("participant-update", order, index=5), {"attending": "true"})

        assert response.status_code == 400


# ---------------------------------------------------------------------------
# Delete, resend, export
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.django_db
class TestMaintenanceViews:
    def test_delete_refuses_order_with_people(self, organizer_client, order):
        response = organizer_client.post(_url("order-delete", order))

        assert response.status_code == 400
        assert Order.objects.filter(pk=order.pk).exists()

    def test_delete_empty_order(self, organizer_client, order):
        order.answers = {}
        order.save()

        response = organizer_client.post(_url("order-delete", order))

        assert response.json() == {"ok": True}
        assert not Order.objects.exists()

    def test_resend_receipt(self, organizer_client, order):
        response = organizer_client.post(_url("order-resend-receipt", order), {"email": "kekoa@example.com"})

        assert response.json() == {"ok": True, "email": "kekoa@example.com"}
        assert mail.outbox[0].to == ["kekoa@example.com"]

    def test_resend_failure_returns_502(self, organizer_client, order):
        with patch(
            "django_reunion.manage.services.resend_order_receipt",
            side_effect=ConnectionRefusedError("smtp down"),
        ):
            response = organizer_client.post(_url("order-resend-receipt", order))

        assert response.status_code == 502

    def test_export_csv(self, organizer_client, order):
        response = organizer_client.get(_url("order-export"))

        assert response.status_code == 200
        assert response["Content-Type"].startswith("text/csv")
        assert response["Content-Disposition"].startswith('attachment; filename="orders-')
        lines = response.content.decode().strip().splitlines()
        assert lines[0].startswith("Order Reference,Created At,Status")
        assert len(lines) == 3
