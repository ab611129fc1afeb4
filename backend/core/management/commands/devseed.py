from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone

from accounts.models import User
from bookings.models import Booking
from bookings.services.settlement import confirm_booking, create_booking
from commissions.models import Commission
from payments.models import Payment
from payments.services.orchestrator import PaymentMethodOrchestrator
from vehicles.models import Vehicle


SEED_PASSWORD = "JuanRide123!"
SUPERUSER_EMAIL = "admin@juanride.test"
SUPERUSER_PASSWORD = "AdminJuanRide123!"


class Command(BaseCommand):
    help = "Populate the local development database with sample data."

    def handle(self, *args, **options):
        if not settings.DEBUG:
            raise CommandError("Refusing to seed data while DEBUG is False.")

        with transaction.atomic():
            self.stdout.write(self.style.MIGRATE_HEADING("Ensuring admin superuser"))
            admin = self._ensure_superuser()

            self.stdout.write(self.style.MIGRATE_HEADING("Creating owners & renters"))
            owner = self._ensure_user(
                email="owner@juanride.test",
                first_name="Olivia",
                last_name="Owner",
                role=User.OWNER,
            )
            discount_owner = self._ensure_user(
                email="fleet@juanride.test",
                first_name="Fidel",
                last_name="Fleet",
                role=User.OWNER,
            )
            discount_owner.commission_percentage = Decimal("7.50")
            discount_owner.save(update_fields=["commission_percentage"])
            renter = self._ensure_user(
                email="renter@juanride.test",
                first_name="Rico",
                last_name="Renter",
                role=User.RENTER,
            )

            self.stdout.write(self.style.MIGRATE_HEADING("Cleaning old booking data"))
            Commission.objects.all().delete()
            Payment.objects.all().delete()
            Booking.objects.all().delete()

            self.stdout.write(self.style.MIGRATE_HEADING("Creating vehicles"))
            scooter = self._ensure_vehicle(owner, "Honda", "Click 125i", "ABC-1234", Decimal("450.00"))
            sedan = self._ensure_vehicle(owner, "Toyota", "Vios", "NBC-5678", Decimal("1800.00"))
            van = self._ensure_vehicle(discount_owner, "Toyota", "HiAce", "DEF-9012", Decimal("3500.00"))

            self.stdout.write(self.style.MIGRATE_HEADING("Creating bookings"))
            today = timezone.localdate()
            orchestrator = PaymentMethodOrchestrator()

            create_booking(
                renter=renter,
                vehicle=scooter,
                start_date=today + timedelta(days=2),
                end_date=today + timedelta(days=4),
            )

            paid = create_booking(
                renter=renter,
                vehicle=sedan,
                start_date=today + timedelta(days=7),
                end_date=today + timedelta(days=10),
            )
            orchestrator.record_cash_payment(paid, owner)

            confirmed = create_booking(
                renter=renter,
                vehicle=van,
                start_date=today + timedelta(days=14),
                end_date=today + timedelta(days=16),
            )
            orchestrator.record_cash_payment(confirmed, discount_owner)
            confirmed.refresh_from_db()
            confirm_booking(confirmed, actor=admin)

        self.stdout.write(self.style.SUCCESS("Development seed data created."))
        self.stdout.write(self.style.NOTICE(f"Sample login accounts use password: {SEED_PASSWORD}"))
        self.stdout.write(self.style.NOTICE(f"Admin superuser {SUPERUSER_EMAIL} password: {SUPERUSER_PASSWORD}"))

    def _ensure_user(self, email: str, first_name: str, last_name: str, role: str) -> User:
        user, created = User.objects.get_or_create(
            email=email,
            defaults={
                "username": email,
                "first_name": first_name,
                "last_name": last_name,
                "display_name": f"{first_name} {last_name}",
                "role": role,
            },
        )
        if created:
            user.set_password(SEED_PASSWORD)
            user.save()
        else:
            if user.role != role:
                user.role = role
                user.save(update_fields=["role"])
            if user.is_suspended:
                user.clear_suspension()
            if not user.has_usable_password():
                user.set_password(SEED_PASSWORD)
                user.save(update_fields=["password"])
        return user

    def _ensure_vehicle(self, owner: User, make: str, model: str, plate_number: str, daily_rate: Decimal) -> Vehicle:
        vehicle, _ = Vehicle.objects.update_or_create(
            plate_number=plate_number,
            defaults={
                "owner": owner,
                "make": make,
                "model": model,
                "daily_rate": daily_rate,
                "is_available": True,
            },
        )
        return vehicle

    def _ensure_superuser(self) -> User:
        user, created = User.objects.get_or_create(
            email=SUPERUSER_EMAIL,
            defaults={
                "username": SUPERUSER_EMAIL,
                "first_name": "Admin",
                "last_name": "User",
                "display_name": "Admin User",
                "role": User.ADMIN,
                "is_staff": True,
                "is_superuser": True,
            },
        )
        flag_updates = {}
        if not user.is_staff:
            flag_updates["is_staff"] = True
        if not user.is_superuser:
            flag_updates["is_superuser"] = True
        if flag_updates:
            for attr, value in flag_updates.items():
                setattr(user, attr, value)
            user.save(update_fields=list(flag_updates.keys()))
        if created or not user.has_usable_password():
            user.set_password(SUPERUSER_PASSWORD)
            user.save(update_fields=["password"])
        return user
