import logging

from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from bookings.exceptions import BookingError, OwnerSuspendedError
from bookings.models import Booking
from payments import fees
from payments.exceptions import (
    GENERIC_PAYMENT_FAILURE,
    AuthenticationRequiredError,
    GatewayError,
    PaymentExpiredError,
    PaymentInProgressError,
    ReconciliationError,
    SettlementError,
    ValidationError,
)
from payments.serializers import (
    CheckoutSerializer,
    PaymentRefreshSerializer,
    PaymentSerializer,
    QuoteQuerySerializer,
)
from payments.services.orchestrator import PaymentMethodOrchestrator

logger = logging.getLogger(__name__)


def get_orchestrator() -> PaymentMethodOrchestrator:
    return PaymentMethodOrchestrator()


def settlement_error_response(exc: Exception) -> Response:
    """Map a settlement failure to a response. Gateway text never reaches the client."""
    if isinstance(exc, OwnerSuspendedError):
        return Response({"detail": str(exc)}, status=status.HTTP_403_FORBIDDEN)
    if isinstance(exc, BookingError):
        return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, ValidationError):
        body = {"detail": exc.user_message}
        if exc.field:
            body["field"] = exc.field
        return Response(body, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, (AuthenticationRequiredError, PaymentExpiredError)):
        return Response(
            {"detail": exc.user_message, "retryable": exc.retryable},
            status=status.HTTP_402_PAYMENT_REQUIRED,
        )
    if isinstance(exc, PaymentInProgressError):
        return Response(
            {"detail": exc.user_message, "retryable": True, "intent_id": exc.intent_id},
            status=status.HTTP_409_CONFLICT,
        )
    if isinstance(exc, ReconciliationError):
        return Response({"detail": GENERIC_PAYMENT_FAILURE}, status=status.HTTP_409_CONFLICT)
    if isinstance(exc, GatewayError):
        logger.warning("Gateway failure surfaced to client: %s", exc)
        return Response(
            {"detail": GENERIC_PAYMENT_FAILURE, "retryable": exc.retryable},
            status=status.HTTP_502_BAD_GATEWAY,
        )
    logger.error("Settlement failure surfaced to client: %s", exc)
    return Response({"detail": GENERIC_PAYMENT_FAILURE}, status=status.HTTP_502_BAD_GATEWAY)


def _visible_booking(user, booking_id) -> Booking:
    queryset = Booking.objects.select_related("renter", "vehicle", "vehicle__owner")
    if not user.is_platform_admin:
        queryset = queryset.filter(Q(renter=user) | Q(vehicle__owner=user))
    return get_object_or_404(queryset, pk=booking_id)


class BookingQuoteView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, booking_id):
        booking = _visible_booking(request.user, booking_id)
        serializer = QuoteQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        quote = fees.quote_for_total(booking.rental_subtotal, booking.total_price, serializer.validated_data["method"])
        return Response(quote.as_dict())


class BookingCheckoutView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, booking_id):
        booking = _visible_booking(request.user, booking_id)
        if booking.renter_id != request.user.pk:
            return Response({"detail": "Only the renter can pay for this booking."}, status=status.HTTP_403_FORBIDDEN)

        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        billing = {key: value for key, value in (data.get("billing") or {}).items() if value} or None

        try:
            result = get_orchestrator().start_checkout(
                booking,
                data["method"],
                card=dict(data["card"]) if data.get("card") else None,
                billing=billing,
            )
        except (SettlementError, BookingError) as exc:
            return settlement_error_response(exc)

        code = status.HTTP_200_OK if result.kind == result.PAID else status.HTTP_202_ACCEPTED
        return Response(result.as_dict(), status=code)


class PaymentRefreshView(APIView):
    """Redirect returns and QR polling both land here."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, booking_id):
        booking = _visible_booking(request.user, booking_id)
        serializer = PaymentRefreshSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            payment = get_orchestrator().reconcile(booking, intent_id=serializer.validated_data.get("intent_id") or None)
        except SettlementError as exc:
            return settlement_error_response(exc)

        booking.refresh_from_db(fields=["status"])
        return Response({"booking_status": booking.status, "payment": PaymentSerializer(payment).data})


class CashPaymentView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, booking_id):
        booking = _visible_booking(request.user, booking_id)
        try:
            payment = get_orchestrator().record_cash_payment(booking, request.user)
        except SettlementError as exc:
            return settlement_error_response(exc)
        booking.refresh_from_db(fields=["status"])
        return Response(
            {"booking_status": booking.status, "payment": PaymentSerializer(payment).data},
            status=status.HTTP_201_CREATED,
        )


class PaymongoWebhookView(APIView):
    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        raw_body = request.body
        signature = request.headers.get("Paymongo-Signature")
        try:
            changed = get_orchestrator().handle_webhook(raw_body, signature)
        except ReconciliationError:
            return Response({"detail": "Invalid webhook."}, status=status.HTTP_400_BAD_REQUEST)
        return Response({"received": True, "changed": changed})
