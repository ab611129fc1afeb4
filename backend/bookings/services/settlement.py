"""
Booking status transitions.

    pending -> paid -> confirmed -> active -> completed
    any non-terminal status -> cancelled

Every transition is a conditional single-row update on the expected prior
status, so two callers racing on the same booking cannot both win.
"""

from __future__ import annotations

import logging
from datetime import date

from django.core.exceptions import PermissionDenied
from django.db import DatabaseError, transaction
from django.utils import timezone

from accounts.models import User
from bookings.exceptions import BookingError, InvalidTransition, OwnerSuspendedError
from bookings.models import Booking
from bookings.services.notifications import BOOKING_CONFIRMED, dispatch_confirmation
from commissions.exceptions import CommissionError
from commissions.services.engine import create_for_booking
from payments import fees
from payments.exceptions import PartialFailure
from vehicles.models import Vehicle

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    Booking.PENDING: {Booking.PAID, Booking.CANCELLED},
    Booking.PAID: {Booking.CONFIRMED, Booking.CANCELLED},
    Booking.CONFIRMED: {Booking.ACTIVE, Booking.CANCELLED},
    Booking.ACTIVE: {Booking.COMPLETED, Booking.CANCELLED},
    Booking.COMPLETED: set(),
    Booking.CANCELLED: set(),
}


def owner_is_suspended(owner_id: int) -> bool:
    return User.objects.filter(pk=owner_id, is_suspended=True).exists()


def create_booking(*, renter, vehicle: Vehicle, start_date: date, end_date: date) -> Booking:
    # Admission control comes first: nothing is priced or charged for a
    # suspended owner's vehicle.
    if owner_is_suspended(vehicle.owner_id):
        logger.info("Rejected booking for vehicle %s: owner %s is suspended", vehicle.pk, vehicle.owner_id)
        raise OwnerSuspendedError()

    if end_date < start_date:
        raise BookingError("End date must be on or after the start date.")
    if start_date < timezone.localdate():
        raise BookingError("Start date cannot be in the past.")
    if renter.pk == vehicle.owner_id:
        raise BookingError("Owners cannot book their own vehicles.")

    with transaction.atomic():
        vehicle = Vehicle.objects.select_for_update().get(pk=vehicle.pk)
        if not vehicle.is_available:
            raise BookingError("This vehicle is not available for booking.")
        overlapping = (
            Booking.objects.filter(vehicle=vehicle)
            .exclude(status=Booking.CANCELLED)
            .filter(start_date__lte=end_date, end_date__gte=start_date)
            .exists()
        )
        if overlapping:
            raise BookingError("The vehicle is already booked for the selected dates.")

        subtotal = fees.rental_subtotal(vehicle.daily_rate, start_date, end_date)
        booking = Booking.objects.create(
            renter=renter,
            vehicle=vehicle,
            start_date=start_date,
            end_date=end_date,
            rental_subtotal=subtotal,
            service_fee=fees.service_fee(subtotal),
            total_price=fees.booking_total(subtotal),
            status=Booking.PENDING,
        )

    logger.info("Booking %s created for vehicle %s (total %s)", booking.pk, vehicle.pk, booking.total_price)
    return booking


def transition(booking: Booking, target: str, **extra_fields) -> Booking:
    """Move `booking` to `target` only if it is still in the status we loaded."""
    current = booking.status
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidTransition(current, target)

    updated = Booking.objects.filter(pk=booking.pk, status=current).update(
        status=target,
        updated_at=timezone.now(),
        **extra_fields,
    )
    if not updated:
        booking.refresh_from_db(fields=["status"])
        raise InvalidTransition(booking.status, target)

    booking.status = target
    for name, value in extra_fields.items():
        setattr(booking, name, value)
    return booking


def _ensure_owner_or_admin(booking: Booking, actor) -> None:
    if actor.is_platform_admin or actor.pk == booking.vehicle.owner_id:
        return
    raise PermissionDenied("Only the vehicle owner can manage this booking.")


def _record_commission(booking: Booking) -> None:
    try:
        with transaction.atomic():
            create_for_booking(booking)
    except (CommissionError, DatabaseError) as exc:
        raise PartialFailure(f"Commission for booking {booking.pk} was not recorded") from exc


def confirm_booking(booking: Booking, *, actor) -> Booking:
    """
    Owner accepts a paid booking. This is the one place a commission is
    created. The confirmation and the commission insert share a transaction;
    if the insert fails only its savepoint is rolled back, the confirmation
    stands and the gap is logged for reconciliation.
    """
    _ensure_owner_or_admin(booking, actor)

    with transaction.atomic():
        transition(booking, Booking.CONFIRMED, confirmed_at=timezone.now())
        try:
            _record_commission(booking)
        except PartialFailure:
            logger.exception("Booking %s confirmed without a commission; needs manual reconciliation.", booking.pk)

    logger.info("Booking %s confirmed by %s", booking.pk, actor.pk)
    dispatch_confirmation(BOOKING_CONFIRMED, {"booking": booking})
    return booking


def start_rental(booking: Booking, *, actor) -> Booking:
    _ensure_owner_or_admin(booking, actor)
    return transition(booking, Booking.ACTIVE)


def complete_rental(booking: Booking, *, actor) -> Booking:
    _ensure_owner_or_admin(booking, actor)
    return transition(booking, Booking.COMPLETED)


def cancel_booking(booking: Booking, *, actor, reason: str = "") -> Booking:
    """Cancel without any refund; payments already taken stay as they are."""
    if not (actor.is_platform_admin or actor.pk in (booking.renter_id, booking.vehicle.owner_id)):
        raise PermissionDenied("You cannot cancel this booking.")
    booking = transition(
        booking,
        Booking.CANCELLED,
        cancellation_reason=reason,
        cancelled_at=timezone.now(),
    )
    logger.info("Booking %s cancelled by %s", booking.pk, actor.pk)
    return booking
