import json
import types
from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from commissions.models import Commission
from payments.services.webhooks import WebhookVerifier


class FakePaymongo:
    """Answers the handful of PayMongo endpoints a redirect checkout touches."""

    def __init__(self):
        self.requests = []

    def __call__(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        path = url.split("/v1", 1)[1]
        if method == "POST" and path == "/payment_intents":
            data = {"id": "pi_e2e", "attributes": {"status": "awaiting_payment_method"}}
        elif method == "POST" and path == "/payment_methods":
            data = {"id": "pm_e2e", "attributes": {"type": kwargs["json"]["data"]["attributes"]["type"]}}
        elif method == "POST" and path == "/payment_intents/pi_e2e/attach":
            data = {
                "id": "pi_e2e",
                "attributes": {
                    "status": "awaiting_next_action",
                    "next_action": {"type": "redirect", "redirect": {"url": "https://pm.test/gcash/auth"}},
                },
            }
        elif method == "GET" and path == "/payment_intents/pi_e2e":
            data = {"id": "pi_e2e", "attributes": {"status": "awaiting_next_action", "payments": []}}
        else:
            raise AssertionError(f"Unexpected gateway call {method} {path}")
        return types.SimpleNamespace(status_code=200, content=b"{}", text="", json=lambda: {"data": data})


def login(username):
    client = APIClient()
    token = client.post(
        "/api/auth/token/",
        {"username": username, "password": "examplepass"},
        format="json",
    ).json()["access"]
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client


@pytest.mark.django_db
def test_end_to_end_wallet_settlement(monkeypatch, owner, renter, platform_admin, vehicle):
    paymongo = FakePaymongo()
    monkeypatch.setattr("payments.services.gateway.requests.request", paymongo)

    renter_client = login(renter.username)
    owner_client = login(owner.username)
    admin_client = login(platform_admin.username)

    # Renter books two days
    start = timezone.localdate() + timedelta(days=4)
    booking_response = renter_client.post(
        "/api/bookings/",
        {
            "vehicle_id": vehicle.id,
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=2)).isoformat(),
        },
        format="json",
    )
    assert booking_response.status_code == 201
    booking_id = booking_response.json()["id"]

    # Quote and checkout with GCash
    quote = renter_client.get(f"/api/bookings/{booking_id}/quote/", {"method": "gcash"}).json()
    assert quote["amount_charged"] == "1076.25"

    checkout = renter_client.post(f"/api/bookings/{booking_id}/checkout/", {"method": "gcash"}, format="json")
    assert checkout.status_code == 202
    assert checkout.json()["redirect_url"] == "https://pm.test/gcash/auth"
    intent_body = paymongo.requests[0][2]["json"]["data"]["attributes"]
    assert intent_body["amount"] == 107625
    assert intent_body["metadata"]["booking_id"] == str(booking_id)

    # Returning to the success page is not proof of payment
    refresh = renter_client.post(
        f"/api/bookings/{booking_id}/payment/refresh/", {"intent_id": "pi_e2e"}, format="json"
    )
    assert refresh.json()["booking_status"] == "pending"

    # Gateway confirms through the webhook
    body = json.dumps(
        {
            "data": {
                "id": "evt_e2e",
                "attributes": {
                    "type": "payment.paid",
                    "data": {
                        "id": "pay_e2e",
                        "type": "payment",
                        "attributes": {
                            "payment_intent_id": "pi_e2e",
                            "metadata": {"booking_id": str(booking_id)},
                        },
                    },
                },
            }
        }
    )
    timestamp = int(timezone.now().timestamp())
    signature = WebhookVerifier(secret="sk_test_juanride").sign(body, timestamp)
    webhook = APIClient().post(
        "/api/webhooks/paymongo/",
        body,
        content_type="application/json",
        HTTP_PAYMONGO_SIGNATURE=f"t={timestamp},v1={signature}",
    )
    assert webhook.status_code == 200
    assert renter_client.get(f"/api/bookings/{booking_id}/").json()["status"] == "paid"

    # Owner confirms; the commission appears
    confirm = owner_client.post(f"/api/bookings/{booking_id}/confirm/")
    assert confirm.json()["status"] == "confirmed"
    commission = Commission.objects.get(booking_id=booking_id)
    assert str(commission.commission_amount) == "105.00"
    assert commission.payment_type == "cashless"

    # Owner pays the platform, admin verifies
    submit = owner_client.post(
        f"/api/commissions/{commission.id}/submit/",
        {"bank_transfer_reference": "BDO-1", "bank_name": "BDO", "transfer_date": start.isoformat()},
        format="json",
    )
    assert submit.json()["status"] == "for_verification"
    verify = admin_client.post(f"/api/commissions/{commission.id}/verify/", {}, format="json")
    assert verify.json()["status"] == "paid"

    owners = admin_client.get("/api/commissions/owners/").json()
    assert owners[0]["has_unpaid"] is False
    assert owners[0]["paid_commission"] == "105.00"
