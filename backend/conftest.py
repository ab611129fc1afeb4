from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from accounts.models import User
from bookings.services.settlement import create_booking
from vehicles.models import Vehicle


@pytest.fixture(autouse=True)
def payment_settings(settings):
    settings.PAYMONGO_SECRET_KEY = "sk_test_juanride"
    settings.PAYMONGO_API_BASE = "https://api.paymongo.test/v1"
    settings.PAYMONGO_RETRY_BACKOFF_SECONDS = 0
    settings.PAYMENT_RETURN_URL = "https://app.test/payment"
    settings.DEFAULT_COMMISSION_PERCENTAGE = Decimal("10.00")
    settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
    return settings


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def owner(db):
    return User.objects.create_user(
        username="owner@example.com",
        email="owner@example.com",
        password="examplepass",
        first_name="Olivia",
        last_name="Owner",
        role=User.OWNER,
    )


@pytest.fixture
def renter(db):
    return User.objects.create_user(
        username="renter@example.com",
        email="renter@example.com",
        password="examplepass",
        first_name="Rico",
        last_name="Renter",
    )


@pytest.fixture
def platform_admin(db):
    return User.objects.create_user(
        username="admin@example.com",
        email="admin@example.com",
        password="examplepass",
        role=User.ADMIN,
    )


@pytest.fixture
def vehicle(owner):
    return Vehicle.objects.create(
        owner=owner,
        make="Toyota",
        model="Vios",
        plate_number="NBC-1234",
        daily_rate=Decimal("500.00"),
    )


@pytest.fixture
def booking(renter, vehicle):
    """Two-day pending booking: subtotal 1000.00, total 1050.00."""
    start = timezone.localdate() + timedelta(days=5)
    return create_booking(renter=renter, vehicle=vehicle, start_date=start, end_date=start + timedelta(days=2))
