"""URL routing for the finance domain."""

from __future__ import annotations

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import KaspiWebhookView, PaymentViewSet

router = DefaultRouter()
router.register(r"payments", PaymentViewSet, basename="payment")

urlpatterns = [
    path("webhooks/kaspi/", KaspiWebhookView.as_view(), name="kaspi-webhook"),
    path("", include(router.urls)),
]
