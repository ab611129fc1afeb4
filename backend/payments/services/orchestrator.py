"""
Drives a booking's payment from checkout to `paid`.

Three online flows share one skeleton: open a Payment record, create a
PayMongo payment intent keyed by that record, then either attach a payment
method (card, redirect e-wallets) or hand the intent to the renter (QR Ph).
Whatever the flow, a booking only becomes `paid` through `finalize_paid`,
reached from a synchronous card success, `reconcile` or a verified webhook.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

from django.conf import settings
from django.core.exceptions import PermissionDenied
from django.db import transaction
from django.utils import timezone

from bookings.exceptions import OwnerSuspendedError
from bookings.models import Booking
from bookings.services.notifications import PAYMENT_RECEIVED, dispatch_confirmation
from bookings.services.settlement import owner_is_suspended
from payments import fees
from payments.exceptions import (
    AuthenticationRequiredError,
    GatewayError,
    PaymentExpiredError,
    PaymentInProgressError,
    ReconciliationError,
    SettlementError,
    ValidationError,
)
from payments.methods import PaymentFlow, PaymentMethod, flow_for
from payments.models import Payment
from payments.services.gateway import GatewayClient
from payments.services.webhooks import WebhookEvent, WebhookVerifier, parse_event

logger = logging.getLogger(__name__)

PAID_EVENTS = {"payment.paid"}
FAILED_EVENTS = {"payment.failed", "payment.expired", "payment_intent.payment_failed"}
TERMINAL_FAILURE_STATUSES = {"failed", "cancelled", "expired"}

_CARD_NUMBER_RE = re.compile(r"^\d{13,19}$")
_CVC_RE = re.compile(r"^\d{3,4}$")


@dataclass
class CheckoutResult:
    kind: str  # paid, redirect, qr or pending
    payment: Payment
    redirect_url: Optional[str] = None
    failure_url: Optional[str] = None
    intent_id: Optional[str] = None
    expires_at: Optional[datetime] = None

    PAID = "paid"
    REDIRECT = "redirect"
    QR = "qr"
    PENDING = "pending"

    @property
    def amount(self):
        return self.payment.amount

    def as_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "payment_id": self.payment.pk,
            "method": self.payment.method,
            "status": self.payment.status,
            "amount": f"{self.amount:.2f}",
            "processing_fee": f"{self.payment.processing_fee:.2f}",
            "redirect_url": self.redirect_url,
            "failure_url": self.failure_url,
            "intent_id": self.intent_id,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


def _luhn_valid(number: str) -> bool:
    total = 0
    for index, char in enumerate(reversed(number)):
        digit = int(char)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def validate_card(card) -> Dict[str, Any]:
    """Normalize raw card input for the gateway. Nothing here is ever persisted."""
    if not isinstance(card, dict):
        raise ValidationError("Card details are required.", field="card")

    number = re.sub(r"[\s-]", "", str(card.get("card_number") or ""))
    if not _CARD_NUMBER_RE.match(number) or not _luhn_valid(number):
        raise ValidationError("Enter a valid card number.", field="card_number")

    try:
        exp_month = int(card.get("exp_month"))
        exp_year = int(card.get("exp_year"))
    except (TypeError, ValueError):
        raise ValidationError("Enter a valid expiry date.", field="exp_month") from None
    if exp_year < 100:
        exp_year += 2000
    if not 1 <= exp_month <= 12:
        raise ValidationError("Enter a valid expiry date.", field="exp_month")
    today = timezone.localdate()
    if (exp_year, exp_month) < (today.year, today.month):
        raise ValidationError("This card has expired.", field="exp_year")

    cvc = str(card.get("cvc") or "").strip()
    if not _CVC_RE.match(cvc):
        raise ValidationError("Enter a valid security code.", field="cvc")

    return {"card_number": number, "exp_month": exp_month, "exp_year": exp_year, "cvc": cvc}


def parse_method(method) -> str:
    try:
        return PaymentMethod(method).value
    except ValueError:
        raise ValidationError("Unsupported payment method.", field="method") from None


def _payments_of(intent: Dict[str, Any]) -> list:
    payments = (intent.get("attributes") or {}).get("payments") or []
    return [payment for payment in payments if isinstance(payment, dict)]


def _gateway_payment_id(intent: Dict[str, Any]) -> Optional[str]:
    payments = _payments_of(intent)
    return payments[-1].get("id") if payments else None


def _redirect_url(intent: Dict[str, Any]) -> Optional[str]:
    next_action = (intent.get("attributes") or {}).get("next_action") or {}
    redirect = next_action.get("redirect") or {}
    return redirect.get("url")


def _last_error_code(intent: Dict[str, Any]) -> Optional[str]:
    error = (intent.get("attributes") or {}).get("last_payment_error")
    if isinstance(error, dict):
        return error.get("failed_code") or error.get("code") or "payment_failed"
    if error:
        return "payment_failed"
    return None


class PaymentMethodOrchestrator:
    def __init__(
        self,
        client: Optional[GatewayClient] = None,
        notifier: Optional[Callable[[str, Dict[str, Any]], None]] = None,
        verifier: Optional[WebhookVerifier] = None,
    ):
        self.client = client or GatewayClient()
        self.notifier = notifier or dispatch_confirmation
        self.verifier = verifier or WebhookVerifier()

    # Checkout

    def start_checkout(self, booking: Booking, method, card=None, billing=None) -> CheckoutResult:
        method = parse_method(method)
        flow = flow_for(method)
        if flow == PaymentFlow.OFFLINE:
            raise ValidationError("Cash payments are recorded by the vehicle owner.", field="method")
        if booking.status != Booking.PENDING:
            raise ValidationError("This booking is not awaiting payment.")
        if owner_is_suspended(booking.vehicle.owner_id):
            raise OwnerSuspendedError()

        card_details = validate_card(card) if flow == PaymentFlow.CARD else None
        settled = self._settle_open_attempts(booking)
        if settled is not None:
            return CheckoutResult(kind=CheckoutResult.PAID, payment=settled, intent_id=settled.gateway_reference)
        payment = self._open_payment(booking, method)

        try:
            intent = self._create_intent(booking, payment)
            if flow == PaymentFlow.QR:
                return self._qr_result(payment, intent)
            if flow == PaymentFlow.CARD:
                return self._attach_card(booking, payment, intent, card_details, billing)
            return self._attach_redirect(booking, payment, intent, billing)
        except GatewayError as exc:
            # No answer from the gateway proves nothing; only a definite
            # rejection closes the record.
            if not exc.retryable:
                self._mark_failed(payment, exc.code)
            raise

    def _settle_open_attempts(self, booking: Booking) -> Optional[Payment]:
        """
        Resolve every pending attempt that already reached the gateway before
        a new one is opened. Returns the attempt if it turns out to be paid.

        A GatewayError here leaves every record as it was.
        """
        open_attempts = booking.payments.filter(status=Payment.PENDING).exclude(gateway_reference="")
        for payment in open_attempts.order_by("created_at", "id"):
            intent = self.client.retrieve_payment_intent(payment.gateway_reference)
            attributes = intent.get("attributes") or {}
            status = attributes.get("status")

            if status == "succeeded":
                logger.info(
                    "Earlier attempt %s for booking %s already succeeded; no new charge.",
                    payment.pk,
                    booking.pk,
                )
                self.finalize_paid(
                    booking.pk,
                    gateway_payment_id=_gateway_payment_id(intent),
                    intent_id=payment.gateway_reference,
                )
                payment.refresh_from_db()
                return payment

            failure_code = None
            if status in TERMINAL_FAILURE_STATUSES:
                failure_code = _last_error_code(intent) or status
            elif status == "awaiting_payment_method":
                failure_code = _last_error_code(intent)
                if failure_code is None and payment.method == PaymentMethod.QRPH:
                    expires_at = payment.created_at + timedelta(minutes=settings.QR_PAYMENT_TIMEOUT_MINUTES)
                    if timezone.now() < expires_at:
                        raise PaymentInProgressError(
                            f"QR attempt {payment.pk} is still open",
                            intent_id=payment.gateway_reference,
                        )
                    failure_code = "expired"
                elif failure_code is None:
                    # Nothing was ever attached to this intent, so it cannot be charged.
                    failure_code = "superseded"
            else:
                raise PaymentInProgressError(
                    f"Intent {payment.gateway_reference} is {status}",
                    intent_id=payment.gateway_reference,
                )
            self._mark_failed(payment, failure_code)
        return None

    def _open_payment(self, booking: Booking, method: str) -> Payment:
        quote = fees.quote_for_total(booking.rental_subtotal, booking.total_price, method)
        with transaction.atomic():
            locked = Booking.objects.select_for_update().get(pk=booking.pk)
            if locked.status != Booking.PENDING:
                raise ValidationError("This booking is not awaiting payment.")

            pending = list(locked.payments.select_for_update().filter(status=Payment.PENDING))
            started = next((p for p in pending if p.gateway_reference), None)
            if started is not None:
                raise PaymentInProgressError(
                    f"Attempt {started.pk} opened concurrently",
                    intent_id=started.gateway_reference,
                )
            reusable = next(iter(pending), None)

            if reusable is not None:
                reusable.method = method
                reusable.amount = quote.amount_charged
                reusable.processing_fee = quote.processing_fee
                reusable.save(update_fields=["method", "amount", "processing_fee", "updated_at"])
                return reusable

            return Payment.objects.create(
                booking=locked,
                method=method,
                amount=quote.amount_charged,
                processing_fee=quote.processing_fee,
                currency=settings.PAYMENT_CURRENCY,
                status=Payment.PENDING,
            )

    def _create_intent(self, booking: Booking, payment: Payment) -> Dict[str, Any]:
        options = None
        if payment.method == PaymentMethod.CARD:
            options = {"card": {"request_three_d_secure": "any"}}
        intent = self.client.create_payment_intent(
            amount=payment.amount,
            payment_method_allowed=[payment.method],
            description=f"JuanRide booking #{booking.pk}",
            metadata={
                "booking_id": str(booking.pk),
                "payment_id": str(payment.pk),
                "method": payment.method,
            },
            idempotency_key=payment.idempotency_key,
            payment_method_options=options,
        )
        Payment.objects.filter(pk=payment.pk).update(gateway_reference=intent["id"], updated_at=timezone.now())
        payment.gateway_reference = intent["id"]
        logger.info("Payment %s opened intent %s for booking %s", payment.pk, intent["id"], booking.pk)
        return intent

    def _return_url(self, booking: Booking, intent_id: str, outcome: str) -> str:
        query = urlencode({"booking_id": booking.pk, "intent_id": intent_id})
        return f"{settings.PAYMENT_RETURN_URL.rstrip('/')}/{outcome}?{query}"

    def _attach_card(self, booking, payment, intent, card_details, billing) -> CheckoutResult:
        payment_method = self.client.create_payment_method(
            method_type=PaymentMethod.CARD.value,
            details=card_details,
            billing=billing,
        )
        attached = self.client.attach_payment_intent(
            intent["id"],
            payment_method_id=payment_method["id"],
            return_url=self._return_url(booking, intent["id"], "success"),
            idempotency_key=f"booking-{booking.pk}-payment-{payment.pk}-attach",
        )
        return self._result_for_attached(booking, payment, attached)

    def _attach_redirect(self, booking, payment, intent, billing) -> CheckoutResult:
        payment_method = self.client.create_payment_method(method_type=payment.method, billing=billing)
        attached = self.client.attach_payment_intent(
            intent["id"],
            payment_method_id=payment_method["id"],
            return_url=self._return_url(booking, intent["id"], "success"),
            idempotency_key=f"booking-{booking.pk}-payment-{payment.pk}-attach",
        )
        result = self._result_for_attached(booking, payment, attached)
        if result.kind == CheckoutResult.PENDING and not result.redirect_url:
            self._mark_failed(payment, "missing_redirect")
            raise SettlementError(f"Intent {intent['id']} returned no redirect for {payment.method}")
        return result

    def _result_for_attached(self, booking, payment, attached) -> CheckoutResult:
        attributes = attached.get("attributes") or {}
        status = attributes.get("status")
        intent_id = attached.get("id") or payment.gateway_reference

        if status == "succeeded":
            self.finalize_paid(
                booking.pk,
                gateway_payment_id=_gateway_payment_id(attached),
                intent_id=intent_id,
            )
            payment.refresh_from_db()
            return CheckoutResult(kind=CheckoutResult.PAID, payment=payment, intent_id=intent_id)

        if status == "awaiting_payment_method":
            code = _last_error_code(attached) or "authentication_required"
            self._mark_failed(payment, code)
            raise AuthenticationRequiredError(f"Intent {intent_id} needs a new payment method ({code})")

        if status == "awaiting_next_action":
            return CheckoutResult(
                kind=CheckoutResult.REDIRECT,
                payment=payment,
                redirect_url=_redirect_url(attached),
                failure_url=self._return_url(booking, intent_id, "failed"),
                intent_id=intent_id,
            )

        if status in TERMINAL_FAILURE_STATUSES:
            self._mark_failed(payment, _last_error_code(attached) or status)
            raise PaymentExpiredError(f"Intent {intent_id} ended as {status}")

        return CheckoutResult(kind=CheckoutResult.PENDING, payment=payment, intent_id=intent_id)

    def _qr_result(self, payment: Payment, intent: Dict[str, Any]) -> CheckoutResult:
        return CheckoutResult(
            kind=CheckoutResult.QR,
            payment=payment,
            intent_id=intent["id"],
            expires_at=payment.created_at + timedelta(minutes=settings.QR_PAYMENT_TIMEOUT_MINUTES),
        )

    # Cash

    def record_cash_payment(self, booking: Booking, actor) -> Payment:
        if not (actor.is_platform_admin or actor.pk == booking.vehicle.owner_id):
            raise PermissionDenied("Only the vehicle owner can record a cash payment.")
        if booking.status != Booking.PENDING:
            raise ValidationError("This booking is not awaiting payment.")

        payment = Payment.objects.create(
            booking=booking,
            method=PaymentMethod.CASH,
            amount=fees.amount_charged(booking.total_price, PaymentMethod.CASH),
            processing_fee=fees.processing_fee(booking.total_price, PaymentMethod.CASH),
            currency=settings.PAYMENT_CURRENCY,
            status=Payment.PENDING,
        )
        logger.info("Cash payment %s recorded for booking %s by %s", payment.pk, booking.pk, actor.pk)
        self.finalize_paid(booking.pk, payment_id=payment.pk)
        payment.refresh_from_db()
        return payment

    # Reconciliation

    def reconcile(self, booking: Booking, intent_id: Optional[str] = None) -> Payment:
        """Ask the gateway where the booking's latest online attempt stands."""
        payment = booking.payments.exclude(gateway_reference="").order_by("-created_at", "-id").first()
        if payment is None:
            raise ValidationError("This booking has no online payment to check.")
        if intent_id and intent_id != payment.gateway_reference:
            logger.warning(
                "Booking %s return carried intent %s but the active attempt is %s",
                booking.pk,
                intent_id,
                payment.gateway_reference,
            )
            raise ReconciliationError(f"Intent {intent_id} does not belong to booking {booking.pk}")

        if payment.status == Payment.PAID:
            return payment
        if payment.status == Payment.FAILED:
            raise PaymentExpiredError(f"Payment {payment.pk} already failed ({payment.failure_code})")

        intent = self.client.retrieve_payment_intent(payment.gateway_reference)
        status = (intent.get("attributes") or {}).get("status")

        if status == "succeeded":
            self.finalize_paid(
                booking.pk,
                gateway_payment_id=_gateway_payment_id(intent),
                intent_id=payment.gateway_reference,
            )
            payment.refresh_from_db()
            return payment

        failure_code = None
        if status in TERMINAL_FAILURE_STATUSES:
            failure_code = _last_error_code(intent) or status
        elif status == "awaiting_payment_method":
            failure_code = _last_error_code(intent)
        if failure_code:
            self._mark_failed(payment, failure_code)
            raise PaymentExpiredError(f"Intent {payment.gateway_reference} failed ({failure_code})")

        if payment.method == PaymentMethod.QRPH:
            expires_at = payment.created_at + timedelta(minutes=settings.QR_PAYMENT_TIMEOUT_MINUTES)
            if timezone.now() >= expires_at:
                self._mark_failed(payment, "expired")
                raise PaymentExpiredError(f"QR payment {payment.pk} expired unpaid")

        return payment

    def _mark_failed(self, payment: Payment, code: Optional[str]) -> bool:
        updated = Payment.objects.filter(pk=payment.pk, status=Payment.PENDING).update(
            status=Payment.FAILED,
            failure_code=(code or "payment_failed")[:100],
            updated_at=timezone.now(),
        )
        if updated:
            payment.status = Payment.FAILED
            payment.failure_code = (code or "payment_failed")[:100]
            logger.info("Payment %s for booking %s failed: %s", payment.pk, payment.booking_id, code)
        return bool(updated)

    # Webhooks

    def handle_webhook(self, raw_body, signature: Optional[str]) -> bool:
        """Apply a gateway event. Returns True when it changed any state."""
        if not self.verifier.verify(raw_body, signature):
            logger.warning("Rejected webhook with an invalid or stale signature.")
            raise ReconciliationError("Invalid webhook signature")

        event = parse_event(raw_body)
        logger.info("Webhook %s (%s) for %s %s", event.id, event.type, event.resource_type, event.resource_id)

        if event.type in PAID_EVENTS:
            booking_id = self._booking_for_event(event)
            if booking_id is None:
                logger.warning("Webhook %s names no known booking; ignored.", event.id)
                return False
            return self.finalize_paid(
                booking_id,
                gateway_payment_id=event.resource_id if event.resource_type == "payment" else None,
                intent_id=event.payment_intent_id,
            )

        if event.type in FAILED_EVENTS:
            payment = None
            if event.payment_intent_id:
                payment = Payment.objects.filter(gateway_reference=event.payment_intent_id).first()
            if payment is None:
                logger.warning("Webhook %s failure names no known payment; ignored.", event.id)
                return False
            code = (event.attributes.get("failed_code") or event.type.split(".")[-1])
            return self._mark_failed(payment, code)

        if "refund" in event.type:
            logger.info("Refund event %s ignored; refunds are handled outside the platform.", event.id)
            return False

        logger.info("Unhandled webhook type %s", event.type)
        return False

    def _booking_for_event(self, event: WebhookEvent) -> Optional[int]:
        if event.booking_id is not None:
            return event.booking_id
        if event.payment_intent_id:
            return (
                Payment.objects.filter(gateway_reference=event.payment_intent_id)
                .values_list("booking_id", flat=True)
                .first()
            )
        return None

    # Finalization

    def finalize_paid(
        self,
        booking_id: int,
        gateway_payment_id: Optional[str] = None,
        *,
        intent_id: Optional[str] = None,
        payment_id: Optional[int] = None,
    ) -> bool:
        """
        Record the payment as paid and move the booking from pending to paid.

        Safe to call any number of times from any source; only the first call
        that finds the booking pending returns True and notifies.
        """
        now = timezone.now()
        with transaction.atomic():
            payments = Payment.objects.select_for_update().filter(booking_id=booking_id)
            if payment_id is not None:
                payment = payments.filter(pk=payment_id).first()
            elif intent_id:
                payment = payments.filter(gateway_reference=intent_id).first()
            else:
                payment = payments.filter(status=Payment.PENDING).first()
            if payment is None:
                logger.error(
                    "No payment record matches booking %s (intent %s); not finalizing.",
                    booking_id,
                    intent_id,
                )
                return False

            payment_updated = False
            if payment.status != Payment.PAID:
                # The gateway is authoritative: money it took is recorded even
                # on an attempt we had already given up on.
                fields = {"status": Payment.PAID, "paid_at": now, "failure_code": "", "updated_at": now}
                if gateway_payment_id:
                    fields["gateway_payment_id"] = gateway_payment_id
                payment_updated = bool(
                    Payment.objects.filter(pk=payment.pk).exclude(status=Payment.PAID).update(**fields)
                )

            booking_updated = Booking.objects.filter(pk=booking_id, status=Booking.PENDING).update(
                status=Booking.PAID,
                updated_at=now,
            )

        if not booking_updated:
            if payment_updated:
                logger.warning(
                    "Payment %s settled but booking %s was no longer pending; needs manual follow-up.",
                    payment.pk,
                    booking_id,
                )
            else:
                logger.info("Booking %s already finalized; nothing to do.", booking_id)
            return False

        logger.info("Booking %s paid via payment %s", booking_id, payment.pk)
        booking = Booking.objects.select_related("renter", "vehicle__owner").get(pk=booking_id)
        payment.refresh_from_db()
        self.notifier(PAYMENT_RECEIVED, {"booking": booking, "payment": payment})
        return True
