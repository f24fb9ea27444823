"""URL configuration for the registration app.

Mount these in the host project::

    urlpatterns = [
        path("registration/", include("django_reunion.registration.urls")),
    ]

Point the Stripe dashboard webhook at ``webhooks/stripe/`` under that prefix.
"""

from django.urls import path

from django_reunion.registration.views import (
    CheckoutCompleteView,
    RegistrationSubmitView,
    RosterView,
    TicketTierListView,
)
from django_reunion.registration.webhooks import stripe_webhook

app_name = "registration"

urlpatterns = [
    path("tiers/", TicketTierListView.as_view(), name="tier-list"),
    path("register/", RegistrationSubmitView.as_view(), name="register"),
    path("checkout/complete/", CheckoutCompleteView.as_view(), name="checkout-complete"),
    path("roster/", RosterView.as_view(), name="roster"),
    path("webhooks/stripe/", stripe_webhook, name="stripe-webhook"),
]
