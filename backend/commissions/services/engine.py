from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from bookings.models import Booking
from commissions.exceptions import CommissionError, InvalidCommissionTransition
from commissions.models import Commission
from payments import fees
from payments.methods import payment_type_for
from payments.models import Payment

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    Commission.UNPAID: {Commission.FOR_VERIFICATION, Commission.SUSPENDED},
    Commission.FOR_VERIFICATION: {Commission.PAID, Commission.UNPAID, Commission.SUSPENDED},
    Commission.PAID: {Commission.SUSPENDED},
    Commission.SUSPENDED: {Commission.UNPAID, Commission.PAID},
}

# Bookings that have been confirmed at some point and so owe a commission.
COMMISSIONABLE_STATUSES = (Booking.CONFIRMED, Booking.ACTIVE, Booking.COMPLETED)


def resolve_commission_percentage(owner) -> Decimal:
    """Rate for new commissions of this owner: their override, else the platform default."""
    if owner.commission_percentage is not None:
        return fees.round2(owner.commission_percentage)
    return fees.round2(settings.DEFAULT_COMMISSION_PERCENTAGE)


def create_for_booking(booking: Booking) -> Commission:
    """
    Record the owner's commission for a confirmed booking.

    At most one commission exists per booking; calling this again returns the
    existing row. The cash/cashless category comes from the paid payment and
    is never recomputed afterwards.
    """
    if booking.status not in COMMISSIONABLE_STATUSES:
        raise CommissionError(f"Booking {booking.pk} is {booking.status}; only confirmed bookings carry a commission.")

    existing = Commission.objects.filter(booking=booking).first()
    if existing is not None:
        return existing

    payment = booking.payments.filter(status=Payment.PAID).order_by("-paid_at", "-id").first()
    if payment is None:
        raise CommissionError(f"Booking {booking.pk} has no paid payment to derive a commission from.")

    owner = booking.vehicle.owner
    percentage = resolve_commission_percentage(owner)
    try:
        with transaction.atomic():
            commission = Commission.objects.create(
                booking=booking,
                owner=owner,
                rental_amount=booking.total_price,
                commission_amount=fees.commission_amount(booking.total_price, percentage),
                commission_percentage=percentage,
                payment_method=payment.method,
                payment_type=payment_type_for(payment.method),
                status=Commission.UNPAID,
            )
    except IntegrityError:
        return Commission.objects.get(booking=booking)

    logger.info(
        "Commission %s created for booking %s: %s (%s%%) owed by owner %s",
        commission.pk,
        booking.pk,
        commission.commission_amount,
        percentage,
        owner.pk,
    )
    return commission


def bookings_missing_commissions():
    return (
        Booking.objects.filter(status__in=COMMISSIONABLE_STATUSES, commission__isnull=True)
        .select_related("vehicle", "vehicle__owner")
        .order_by("id")
    )


def backfill_missing_commissions(*, dry_run: bool = False) -> Dict[str, Any]:
    """
    Create the commission rows that confirmation failed to record.

    Each booking goes through `create_for_booking`, so running this again
    creates nothing new. One booking failing does not stop the rest.
    """
    created, failed = [], []
    missing = list(bookings_missing_commissions())
    for booking in missing:
        if dry_run:
            continue
        try:
            commission = create_for_booking(booking)
        except CommissionError as exc:
            logger.warning("Backfill skipped booking %s: %s", booking.pk, exc)
            failed.append({"booking_id": booking.pk, "detail": str(exc)})
            continue
        created.append(commission)

    logger.info(
        "Commission backfill found %s bookings, created %s, failed %s%s",
        len(missing),
        len(created),
        len(failed),
        " (dry run)" if dry_run else "",
    )
    return {
        "missing": [booking.pk for booking in missing],
        "created": created,
        "failed": failed,
    }


def _apply_transition(commission: Commission, target: str, *, notes: str | None = None, actor=None) -> Commission:
    with transaction.atomic():
        locked = Commission.objects.select_for_update().select_related("owner").get(pk=commission.pk)
        previous = locked.status
        if target not in ALLOWED_TRANSITIONS.get(previous, set()):
            raise InvalidCommissionTransition(previous, target)

        locked.status = target
        if target == Commission.PAID:
            locked.verified_by = actor
            locked.verified_at = timezone.now()
        if target == Commission.UNPAID:
            locked.clear_transfer_details()
            if actor is not None:
                locked.verified_by = actor
                locked.verified_at = timezone.now()
        if notes:
            locked.verification_notes = notes
        locked.save()

        if previous == Commission.SUSPENDED and target == Commission.PAID and locked.owner.is_suspended:
            locked.owner.clear_suspension()
            logger.info(
                "Owner %s unsuspended after settling suspended commission %s",
                locked.owner_id,
                locked.pk,
            )

    logger.info("Commission %s moved from %s to %s", locked.pk, previous, target)
    return locked


def submit_payment(
    commission: Commission,
    *,
    owner,
    bank_transfer_reference: str,
    bank_name: str,
    transfer_date: date,
    payment_proof_url: str = "",
) -> Commission:
    """Owner reports a bank transfer; the commission waits for admin verification."""
    if commission.owner_id != owner.pk:
        raise CommissionError("Only the owner of this commission can submit a payment for it.")
    if commission.status != Commission.UNPAID:
        raise InvalidCommissionTransition(commission.status, Commission.FOR_VERIFICATION)

    with transaction.atomic():
        updated = Commission.objects.filter(pk=commission.pk, status=Commission.UNPAID).update(
            status=Commission.FOR_VERIFICATION,
            bank_transfer_reference=bank_transfer_reference,
            bank_name=bank_name,
            transfer_date=transfer_date,
            payment_proof_url=payment_proof_url or "",
            updated_at=timezone.now(),
        )
    if not updated:
        commission.refresh_from_db(fields=["status"])
        raise InvalidCommissionTransition(commission.status, Commission.FOR_VERIFICATION)
    commission.refresh_from_db()
    return commission


def verify_commission(commission: Commission, *, admin, notes: str = "") -> Commission:
    if commission.status != Commission.FOR_VERIFICATION:
        raise InvalidCommissionTransition(commission.status, Commission.PAID)
    return _apply_transition(commission, Commission.PAID, notes=notes, actor=admin)


def reject_commission(commission: Commission, *, admin, notes: str) -> Commission:
    if commission.status != Commission.FOR_VERIFICATION:
        raise InvalidCommissionTransition(commission.status, Commission.UNPAID)
    return _apply_transition(commission, Commission.UNPAID, notes=notes, actor=admin)


def update_status(commission: Commission, new_status: str, *, admin, notes: str = "") -> Commission:
    """Administrative status change, including the suspend/reset/override paths."""
    if new_status not in dict(Commission.STATUSES):
        raise CommissionError(f"Unknown commission status: {new_status}")
    return _apply_transition(commission, new_status, notes=notes, actor=admin)


def suspend_owner(owner, *, admin, reason: str):
    if not reason:
        raise CommissionError("A suspension reason is required.")
    owner.mark_suspended(actor=admin, reason=reason)
    logger.info("Owner %s suspended by %s: %s", owner.pk, getattr(admin, "pk", None), reason)
    return owner


def unsuspend_owner(owner):
    owner.clear_suspension()
    logger.info("Owner %s unsuspended", owner.pk)
    return owner
