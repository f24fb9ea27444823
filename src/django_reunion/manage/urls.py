"""URL configuration for the organizer console.

Mount these in the host project::

    urlpatterns = [
        path("manage/", include("django_reunion.manage.urls")),
    ]
"""

from django.urls import path

from django_reunion.manage.views import (
    OrderDeleteView,
    OrderExportView,
    OrderListView,
    OrderOverwriteView,
    ParticipantUpdateView,
    ResendReceiptView,
)

app_name = "manage"

urlpatterns = [
    path("orders/", OrderListView.as_view(), name="order-list"),
    path("orders/export.csv", OrderExportView.as_view(), name="order-export"),
    path("orders/<str:reference>/edit/", OrderOverwriteView.as_view(), name="order-edit"),
    path(
        "orders/<str:reference>/participants/<int:index>/",
        ParticipantUpdateView.as_view(),
        name="participant-update",
    ),
    path("orders/<str:reference>/delete/", OrderDeleteView.as_view(), name="order-delete"),
    path("orders/<str:reference>/resend-receipt/", ResendReceiptView.as_view(), name="order-resend-receipt"),
]
