from datetime import timedelta

import pytest
from django.utils import timezone

from bookings.models import Booking
from bookings.services import settlement
from commissions.models import Commission
from payments.models import Payment


def dates(days_ahead=3, length=2):
    start = timezone.localdate() + timedelta(days=days_ahead)
    return start.isoformat(), (start + timedelta(days=length)).isoformat()


@pytest.mark.django_db
def test_renter_creates_booking(api_client, renter, vehicle):
    api_client.force_authenticate(renter)
    start, end = dates()

    response = api_client.post(
        "/api/bookings/",
        {"vehicle_id": vehicle.id, "start_date": start, "end_date": end},
        format="json",
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending"
    assert body["total_price"] == "1050.00"
    assert body["owner_id"] == vehicle.owner_id


@pytest.mark.django_db
def test_booking_suspended_owner_returns_403(api_client, renter, owner, vehicle, platform_admin):
    owner.mark_suspended(actor=platform_admin, reason="Overdue")
    api_client.force_authenticate(renter)
    start, end = dates()

    response = api_client.post(
        "/api/bookings/",
        {"vehicle_id": vehicle.id, "start_date": start, "end_date": end},
        format="json",
    )

    assert response.status_code == 403
    assert "not accepting bookings" in response.json()["detail"]


@pytest.mark.django_db
def test_bookings_are_scoped_to_participants(api_client, booking, renter, owner, django_user_model):
    stranger = django_user_model.objects.create_user(username="x@example.com", email="x@example.com", password="x")

    api_client.force_authenticate(stranger)
    assert api_client.get("/api/bookings/").json() == []
    assert api_client.get(f"/api/bookings/{booking.id}/").status_code == 404

    api_client.force_authenticate(owner)
    assert [row["id"] for row in api_client.get("/api/bookings/").json()] == [booking.id]


@pytest.mark.django_db
def test_owner_confirms_paid_booking(api_client, booking, owner):
    Payment.objects.create(booking=booking, method="cash", amount=booking.total_price, status=Payment.PAID)
    settlement.transition(booking, Booking.PAID)
    api_client.force_authenticate(owner)

    response = api_client.post(f"/api/bookings/{booking.id}/confirm/")

    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"
    assert Commission.objects.filter(booking=booking).count() == 1


@pytest.mark.django_db
def test_confirming_unpaid_booking_conflicts(api_client, booking, owner):
    api_client.force_authenticate(owner)

    response = api_client.post(f"/api/bookings/{booking.id}/confirm/")

    assert response.status_code == 409


@pytest.mark.django_db
def test_renter_cannot_confirm(api_client, booking, renter):
    settlement.transition(booking, Booking.PAID)
    api_client.force_authenticate(renter)

    response = api_client.post(f"/api/bookings/{booking.id}/confirm/")

    assert response.status_code == 403


@pytest.mark.django_db
def test_renter_cancels_with_reason(api_client, booking, renter):
    api_client.force_authenticate(renter)

    response = api_client.post(f"/api/bookings/{booking.id}/cancel/", {"reason": "Plans changed"}, format="json")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "cancelled"
    assert body["cancellation_reason"] == "Plans changed"
