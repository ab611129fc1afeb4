from __future__ import annotations

import logging
from typing import Any, Dict

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)

PAYMENT_RECEIVED = "payment_received"
BOOKING_CONFIRMED = "booking_confirmed"


def _booking_lines(booking) -> list[str]:
    vehicle = booking.vehicle
    return [
        f"Vehicle: {vehicle.make} {vehicle.model} ({vehicle.plate_number})",
        f"Rental dates: {booking.start_date:%B %d, %Y} to {booking.end_date:%B %d, %Y}.",
        f"Total price: PHP {booking.total_price:,.2f}",
    ]


def _payment_received(payload: Dict[str, Any]):
    booking = payload["booking"]
    payment = payload.get("payment")
    renter = booking.renter
    lines = [
        f"Hi {renter.display_name or renter.get_full_name() or renter.email},",
        "",
        "We received your payment. The owner will confirm your booking shortly.",
        "",
        *_booking_lines(booking),
    ]
    if payment is not None:
        lines.append(f"Amount charged: PHP {payment.amount:,.2f} via {payment.get_method_display()}")
    lines += ["", "The JuanRide Team"]
    recipients = [email for email in [renter.email, booking.vehicle.owner.email] if email]
    return f"Payment received for booking #{booking.pk}", lines, recipients


def _booking_confirmed(payload: Dict[str, Any]):
    booking = payload["booking"]
    renter = booking.renter
    lines = [
        f"Hi {renter.display_name or renter.get_full_name() or renter.email},",
        "",
        "Your booking has been confirmed by the owner.",
        "",
        *_booking_lines(booking),
        "",
        "The JuanRide Team",
    ]
    return f"Booking #{booking.pk} confirmed", lines, [renter.email] if renter.email else []


BUILDERS = {
    PAYMENT_RECEIVED: _payment_received,
    BOOKING_CONFIRMED: _booking_confirmed,
}


def send_confirmation(kind: str, payload: Dict[str, Any]) -> None:
    subject, body_lines, recipients = BUILDERS[kind](payload)
    if not recipients:
        return
    send_mail(
        subject,
        "\n".join(body_lines),
        settings.DEFAULT_FROM_EMAIL,
        recipients,
        fail_silently=False,
    )


def dispatch_confirmation(kind: str, payload: Dict[str, Any]) -> None:
    """Best-effort send: a failed notification never affects booking or payment state."""
    try:
        send_confirmation(kind, payload)
    except Exception:
        booking = payload.get("booking")
        logger.exception(
            "Failed to send %s notification for booking %s",
            kind,
            getattr(booking, "pk", None),
        )
