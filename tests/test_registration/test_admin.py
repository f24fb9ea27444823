"""Smoke tests for the registration admin."""

import pytest
from django.contrib.auth import get_user_model
from django.urls import reverse

from django_reunion.registration.models import Attendee, Order, StripeEvent, TicketTier

User = get_user_model()


@pytest.fixture
def admin_client(client, db):
    user = User.objects.create_superuser(username="admin", email="admin@example.com", password="pw")
    client.force_login(user)
    return client


@pytest.fixture
def order(db):
    tier = TicketTier.objects.create(name="General (11+)", slug="general", price_cents=3500, age_min=11)
    order = Order.objects.create(
        reference="REU-ADM00001",
        purchaser_name="Iolana",
        purchaser_email="iolana@example.com",
        status=Order.Status.PAID,
        total_cents=3636,
    )
    order.items.create(tier=tier, description=tier.name, quantity=1, unit_price_cents=3500)
    Attendee.objects.create(order=order, participant_index=0, name="Iolana", age=29)
    return order


@pytest.mark.integration
@pytest.mark.django_db
class TestRegistrationAdmin:
    def test_order_changelist_and_change_page(self, admin_client, order):
        changelist = admin_client.get(reverse("admin:reunion_registration_order_changelist"))
        change = admin_client.get(reverse("admin:reunion_registration_order_change", args=[order.pk]))

        assert changelist.status_code == 200
        assert b"REU-ADM00001" in changelist.content
        assert change.status_code == 200
        assert b"Iolana" in change.content

    def test_tier_changelist(self, admin_client, order):
        response = admin_client.get(reverse("admin:reunion_registration_tickettier_changelist"))

        assert response.status_code == 200
        assert b"General (11+)" in response.content

    def test_stripe_events_are_read_only(self, admin_client, db):
        event = StripeEvent.objects.create(stripe_id="evt_admin_1", kind="checkout.session.completed")

        assert admin_client.get(reverse("admin:reunion_registration_stripeevent_add")).status_code == 403
        response = admin_client.get(reverse("admin:reunion_registration_stripeevent_change", args=[event.pk]))
        assert response.status_code == 200
