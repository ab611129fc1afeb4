from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from accounts.models import User
from bookings.models import Booking
from commissions.models import Commission
from commissions.services.summaries import commission_summary, owner_summaries
from vehicles.models import Vehicle


def make_commission(owner, renter, amount, status, payment_type="cashless", offset=0):
    vehicle = Vehicle.objects.create(
        owner=owner,
        make="Honda",
        model="Click",
        plate_number=f"PLT-{Vehicle.objects.count() + 1:04d}",
        daily_rate=Decimal("500.00"),
    )
    start = timezone.localdate() + timedelta(days=10 + offset)
    booking = Booking.objects.create(
        renter=renter,
        vehicle=vehicle,
        start_date=start,
        end_date=start + timedelta(days=1),
        rental_subtotal=Decimal("1000.00"),
        service_fee=Decimal("50.00"),
        total_price=Decimal("1050.00"),
        status=Booking.CONFIRMED,
    )
    return Commission.objects.create(
        booking=booking,
        owner=owner,
        rental_amount=booking.total_price,
        commission_amount=Decimal(amount),
        commission_percentage=Decimal("10.00"),
        payment_method="cash" if payment_type == "cash" else "gcash",
        payment_type=payment_type,
        status=status,
    )


@pytest.fixture
def second_owner(db):
    return User.objects.create_user(
        username="fleet@example.com",
        email="fleet@example.com",
        password="examplepass",
        display_name="Fleet Co",
        role=User.OWNER,
    )


@pytest.mark.django_db
def test_commission_summary_totals(owner, renter):
    rows = [
        make_commission(owner, renter, "105.00", Commission.UNPAID),
        make_commission(owner, renter, "50.00", Commission.PAID, payment_type="cash"),
        make_commission(owner, renter, "20.00", Commission.FOR_VERIFICATION),
        make_commission(owner, renter, "10.00", Commission.SUSPENDED, payment_type="cash"),
    ]

    summary = commission_summary(rows)

    assert summary["total_commission"] == Decimal("185.00")
    assert summary["outstanding_commission"] == Decimal("135.00")
    assert summary["cashless_commission"] == Decimal("125.00")
    assert summary["cash_commission"] == Decimal("60.00")
    assert summary["unpaid_count"] == 1
    assert summary["paid_count"] == 1
    assert summary["for_verification_count"] == 1
    assert summary["suspended_count"] == 1


@pytest.mark.django_db
def test_owner_summaries_exclude_paid_from_outstanding(owner, renter):
    make_commission(owner, renter, "105.00", Commission.UNPAID)
    make_commission(owner, renter, "40.00", Commission.FOR_VERIFICATION)
    make_commission(owner, renter, "60.00", Commission.PAID)

    (row,) = owner_summaries()

    assert row["owner_id"] == owner.pk
    assert row["unpaid_commission"] == Decimal("145.00")
    assert row["total_commission"] == Decimal("145.00")
    assert row["paid_commission"] == Decimal("60.00")
    assert row["transaction_count"] == 3
    assert row["has_unpaid"] is True


@pytest.mark.django_db
def test_owner_summaries_sort_outstanding_first(owner, second_owner, renter):
    make_commission(owner, renter, "500.00", Commission.PAID)
    make_commission(second_owner, renter, "30.00", Commission.UNPAID, offset=1)
    third = User.objects.create_user(username="third@example.com", email="third@example.com", password="x")
    make_commission(third, renter, "90.00", Commission.SUSPENDED, offset=2)

    rows = owner_summaries()

    assert [row["owner_id"] for row in rows] == [third.pk, second_owner.pk, owner.pk]
    assert rows[-1]["has_unpaid"] is False
    assert rows[1]["owner_name"] == "Fleet Co"
