from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from bookings.models import Booking
from bookings.services import settlement
from commissions.models import Commission
from payments.models import Payment


@pytest.fixture
def commission(booking, owner):
    Payment.objects.create(
        booking=booking,
        method="cash",
        amount=booking.total_price,
        status=Payment.PAID,
        paid_at=timezone.now(),
    )
    settlement.transition(booking, Booking.PAID)
    settlement.confirm_booking(booking, actor=owner)
    return Commission.objects.get(booking=booking)


@pytest.mark.django_db
def test_owner_lists_own_commissions(api_client, commission, owner):
    api_client.force_authenticate(owner)

    response = api_client.get("/api/commissions/")

    assert response.status_code == 200
    rows = response.json()
    assert [row["id"] for row in rows] == [commission.id]
    assert rows[0]["status_display"] == "Not Paid"
    assert rows[0]["payment_type"] == "cash"


@pytest.mark.django_db
def test_renter_cannot_list_commissions(api_client, commission, renter):
    api_client.force_authenticate(renter)

    assert api_client.get("/api/commissions/").status_code == 403


@pytest.mark.django_db
def test_admin_filters_by_status(api_client, commission, platform_admin):
    api_client.force_authenticate(platform_admin)

    unpaid = api_client.get("/api/commissions/", {"status": "unpaid"}).json()
    paid = api_client.get("/api/commissions/", {"status": "paid"}).json()

    assert [row["id"] for row in unpaid] == [commission.id]
    assert paid == []


@pytest.mark.django_db
def test_submit_verify_flow(api_client, commission, owner, platform_admin):
    api_client.force_authenticate(owner)
    submitted = api_client.post(
        f"/api/commissions/{commission.id}/submit/",
        {"bank_transfer_reference": "GC-778", "bank_name": "GCash", "transfer_date": "2026-05-02"},
        format="json",
    )
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "for_verification"

    denied = api_client.post(f"/api/commissions/{commission.id}/verify/", {}, format="json")
    assert denied.status_code == 403

    api_client.force_authenticate(platform_admin)
    verified = api_client.post(f"/api/commissions/{commission.id}/verify/", {"notes": "ok"}, format="json")
    assert verified.status_code == 200
    assert verified.json()["status"] == "paid"


@pytest.mark.django_db
def test_reject_requires_notes(api_client, commission, platform_admin):
    api_client.force_authenticate(platform_admin)

    response = api_client.post(f"/api/commissions/{commission.id}/reject/", {}, format="json")

    assert response.status_code == 400


@pytest.mark.django_db
def test_status_change_outside_graph_conflicts(api_client, commission, platform_admin):
    api_client.force_authenticate(platform_admin)

    response = api_client.post(f"/api/commissions/{commission.id}/status/", {"status": "paid"}, format="json")

    assert response.status_code == 409


@pytest.mark.django_db
def test_summary_and_owner_rows(api_client, commission, owner, platform_admin):
    api_client.force_authenticate(platform_admin)

    summary = api_client.get("/api/commissions/summary/").json()
    owners = api_client.get("/api/commissions/owners/").json()

    assert Decimal(summary["outstanding_commission"]) == Decimal("105.00")
    assert summary["unpaid_count"] == 1
    assert owners[0]["owner_id"] == owner.id
    assert owners[0]["has_unpaid"] is True


@pytest.mark.django_db
def test_owner_rows_are_admin_only(api_client, commission, owner):
    api_client.force_authenticate(owner)

    assert api_client.get("/api/commissions/owners/").status_code == 403


@pytest.mark.django_db
def test_admin_suspends_and_unsuspends_owner(api_client, owner, platform_admin):
    api_client.force_authenticate(platform_admin)

    missing_reason = api_client.post(f"/api/owners/{owner.id}/suspend/", {}, format="json")
    suspended = api_client.post(f"/api/owners/{owner.id}/suspend/", {"reason": "Overdue"}, format="json")

    assert missing_reason.status_code == 400
    assert suspended.status_code == 200
    assert suspended.json()["is_suspended"] is True

    restored = api_client.post(f"/api/owners/{owner.id}/unsuspend/")
    assert restored.json()["is_suspended"] is False


@pytest.mark.django_db
def test_owner_cannot_suspend(api_client, owner):
    api_client.force_authenticate(owner)

    assert api_client.post(f"/api/owners/{owner.id}/suspend/", {"reason": "x"}, format="json").status_code == 403


@pytest.mark.django_db
def test_summary_filters_by_created_date(api_client, commission, platform_admin):
    Commission.objects.filter(pk=commission.pk).update(created_at=timezone.now() - timedelta(days=40))
    api_client.force_authenticate(platform_admin)
    today = timezone.localdate()

    recent = api_client.get(
        "/api/commissions/summary/",
        {"start_date": (today - timedelta(days=30)).isoformat(), "end_date": today.isoformat()},
    ).json()
    older = api_client.get(
        "/api/commissions/summary/",
        {"end_date": (today - timedelta(days=30)).isoformat()},
    ).json()

    assert recent["unpaid_count"] == 0
    assert Decimal(recent["outstanding_commission"]) == Decimal("0")
    assert older["unpaid_count"] == 1
    assert Decimal(older["outstanding_commission"]) == Decimal("105.00")


@pytest.mark.django_db
def test_list_and_owner_rows_filter_by_created_date(api_client, commission, platform_admin):
    api_client.force_authenticate(platform_admin)
    tomorrow = (timezone.localdate() + timedelta(days=1)).isoformat()

    assert api_client.get("/api/commissions/", {"start_date": tomorrow}).json() == []
    assert api_client.get("/api/commissions/owners/", {"start_date": tomorrow}).json() == []
    assert len(api_client.get("/api/commissions/", {"end_date": tomorrow}).json()) == 1


@pytest.mark.django_db
def test_admin_backfills_missing_commission(api_client, commission, booking, platform_admin):
    commission.delete()
    api_client.force_authenticate(platform_admin)

    scan = api_client.get("/api/commissions/backfill/").json()
    created = api_client.post("/api/commissions/backfill/").json()
    again = api_client.post("/api/commissions/backfill/").json()

    assert scan["missing"] == [booking.id]
    assert scan["created"] == []
    assert created["created"][0]["booking"] == booking.id
    assert created["created"][0]["payment_type"] == "cash"
    assert again["missing"] == []
    assert Commission.objects.filter(booking=booking).count() == 1


@pytest.mark.django_db
def test_owner_cannot_backfill(api_client, commission, owner):
    api_client.force_authenticate(owner)

    assert api_client.post("/api/commissions/backfill/").status_code == 403
