from django.contrib import admin
from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from accounts.api import MeView
from bookings.api import BookingViewSet
from commissions.api import (
    CommissionViewSet,
    OwnerSuspendView,
    OwnerUnsuspendView,
)
from payments.api import (
    BookingCheckoutView,
    BookingQuoteView,
    CashPaymentView,
    PaymentRefreshView,
    PaymongoWebhookView,
)

router = DefaultRouter()
router.register(r"bookings", BookingViewSet, basename="booking")
router.register(r"commissions", CommissionViewSet, basename="commission")

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/auth/token/", TokenObtainPairView.as_view(), name="auth-token"),
    path("api/auth/refresh/", TokenRefreshView.as_view(), name="auth-refresh"),
    path("api/auth/me/", MeView.as_view(), name="auth-me"),
    path(
        "api/bookings/<int:booking_id>/quote/",
        BookingQuoteView.as_view(),
        name="booking-quote",
    ),
    path(
        "api/bookings/<int:booking_id>/checkout/",
        BookingCheckoutView.as_view(),
        name="booking-checkout",
    ),
    path(
        "api/bookings/<int:booking_id>/payment/refresh/",
        PaymentRefreshView.as_view(),
        name="booking-payment-refresh",
    ),
    path(
        "api/bookings/<int:booking_id>/payment/cash/",
        CashPaymentView.as_view(),
        name="booking-payment-cash",
    ),
    path(
        "api/owners/<int:owner_id>/suspend/",
        OwnerSuspendView.as_view(),
        name="owner-suspend",
    ),
    path(
        "api/owners/<int:owner_id>/unsuspend/",
        OwnerUnsuspendView.as_view(),
        name="owner-unsuspend",
    ),
    path("api/", include(router.urls)),
    path("api/webhooks/paymongo/", PaymongoWebhookView.as_view(), name="paymongo-webhook"),
]
