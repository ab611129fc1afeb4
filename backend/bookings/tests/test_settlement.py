from datetime import timedelta
from decimal import Decimal

import pytest
from django.core import mail
from django.core.exceptions import PermissionDenied
from django.db import DatabaseError
from django.utils import timezone

from bookings.exceptions import BookingError, InvalidTransition, OwnerSuspendedError
from bookings.models import Booking
from bookings.services import settlement
from commissions.models import Commission
from payments.models import Payment


def pay(booking, method="gcash"):
    Payment.objects.create(
        booking=booking,
        method=method,
        amount=booking.total_price,
        status=Payment.PAID,
        paid_at=timezone.now(),
    )
    return settlement.transition(booking, Booking.PAID)


@pytest.mark.django_db
def test_create_booking_prices_from_daily_rate(booking):
    assert booking.status == Booking.PENDING
    assert booking.rental_subtotal == Decimal("1000.00")
    assert booking.service_fee == Decimal("50.00")
    assert booking.total_price == Decimal("1050.00")


@pytest.mark.django_db
def test_suspended_owner_blocks_new_bookings(owner, renter, vehicle, platform_admin):
    owner.mark_suspended(actor=platform_admin, reason="Unpaid commissions")
    start = timezone.localdate() + timedelta(days=3)

    with pytest.raises(OwnerSuspendedError):
        settlement.create_booking(renter=renter, vehicle=vehicle, start_date=start, end_date=start + timedelta(days=1))

    assert not Booking.objects.exists()


@pytest.mark.django_db
def test_overlapping_dates_are_rejected(booking, renter, vehicle):
    with pytest.raises(BookingError):
        settlement.create_booking(
            renter=renter,
            vehicle=vehicle,
            start_date=booking.end_date,
            end_date=booking.end_date + timedelta(days=2),
        )


@pytest.mark.django_db
def test_cancelled_booking_frees_the_dates(booking, renter, vehicle):
    settlement.cancel_booking(booking, actor=renter, reason="Change of plans")

    again = settlement.create_booking(
        renter=renter,
        vehicle=vehicle,
        start_date=booking.start_date,
        end_date=booking.end_date,
    )

    assert again.status == Booking.PENDING


@pytest.mark.django_db
def test_past_start_and_own_vehicle_are_rejected(owner, renter, vehicle):
    today = timezone.localdate()
    with pytest.raises(BookingError):
        settlement.create_booking(renter=renter, vehicle=vehicle, start_date=today - timedelta(days=1), end_date=today)
    with pytest.raises(BookingError):
        settlement.create_booking(renter=owner, vehicle=vehicle, start_date=today, end_date=today + timedelta(days=1))


@pytest.mark.django_db
def test_transition_refuses_skipping_states(booking):
    with pytest.raises(InvalidTransition):
        settlement.transition(booking, Booking.CONFIRMED)


@pytest.mark.django_db
def test_transition_loses_race_against_stale_copy(booking):
    stale = Booking.objects.get(pk=booking.pk)
    settlement.transition(booking, Booking.CANCELLED)

    with pytest.raises(InvalidTransition):
        settlement.transition(stale, Booking.PAID)

    assert Booking.objects.get(pk=booking.pk).status == Booking.CANCELLED


@pytest.mark.django_db
def test_confirm_creates_exactly_one_commission(booking, owner):
    pay(booking, method="gcash")

    settlement.confirm_booking(booking, actor=owner)

    commission = Commission.objects.get(booking=booking)
    assert Booking.objects.get(pk=booking.pk).status == Booking.CONFIRMED
    assert commission.owner == owner
    assert commission.commission_amount == Decimal("105.00")
    assert commission.payment_type == "cashless"
    assert commission.status == Commission.UNPAID
    assert len(mail.outbox) == 1
    assert "confirmed" in mail.outbox[0].subject

    with pytest.raises(InvalidTransition):
        settlement.confirm_booking(booking, actor=owner)
    assert Commission.objects.filter(booking=booking).count() == 1


@pytest.mark.django_db
def test_owner_commission_override_is_used(booking, owner):
    owner.commission_percentage = Decimal("7.50")
    owner.save(update_fields=["commission_percentage"])
    pay(booking, method="cash")

    settlement.confirm_booking(booking, actor=owner)

    commission = Commission.objects.get(booking=booking)
    assert commission.commission_percentage == Decimal("7.50")
    assert commission.commission_amount == Decimal("78.75")
    assert commission.payment_type == "cash"


@pytest.mark.django_db
def test_commission_failure_keeps_confirmation(monkeypatch, booking, owner):
    pay(booking)

    def broken(booking):
        raise DatabaseError("commission table unavailable")

    monkeypatch.setattr("bookings.services.settlement.create_for_booking", broken)

    settlement.confirm_booking(booking, actor=owner)

    assert Booking.objects.get(pk=booking.pk).status == Booking.CONFIRMED
    assert not Commission.objects.filter(booking=booking).exists()


@pytest.mark.django_db
def test_only_owner_or_admin_can_confirm(booking, renter, platform_admin):
    pay(booking)

    with pytest.raises(PermissionDenied):
        settlement.confirm_booking(booking, actor=renter)

    settlement.confirm_booking(booking, actor=platform_admin)
    assert Booking.objects.get(pk=booking.pk).status == Booking.CONFIRMED


@pytest.mark.django_db
def test_full_lifecycle_to_completed(booking, owner):
    pay(booking)
    settlement.confirm_booking(booking, actor=owner)
    settlement.start_rental(booking, actor=owner)
    settlement.complete_rental(booking, actor=owner)

    assert Booking.objects.get(pk=booking.pk).status == Booking.COMPLETED
    with pytest.raises(InvalidTransition):
        settlement.cancel_booking(booking, actor=owner)


@pytest.mark.django_db
def test_cancel_keeps_payment_untouched(booking, renter):
    pay(booking)

    settlement.cancel_booking(booking, actor=renter, reason="Flight cancelled")

    booking.refresh_from_db()
    assert booking.status == Booking.CANCELLED
    assert booking.cancellation_reason == "Flight cancelled"
    assert booking.payments.get().status == Payment.PAID
