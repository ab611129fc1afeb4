from django.core.management.base import BaseCommand

from commissions.services.engine import backfill_missing_commissions


class Command(BaseCommand):
    help = "Create commission records for confirmed bookings that are missing one."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only list the bookings that have no commission.",
        )

    def handle(self, *args, **options):
        result = backfill_missing_commissions(dry_run=options["dry_run"])

        self.stdout.write(f"Bookings without a commission: {len(result['missing'])}")
        for booking_id in result["missing"]:
            self.stdout.write(f"  booking {booking_id}")
        if options["dry_run"]:
            return

        for commission in result["created"]:
            self.stdout.write(
                self.style.SUCCESS(
                    f"Created commission {commission.pk} for booking {commission.booking_id}: "
                    f"{commission.commission_amount}"
                )
            )
        for failure in result["failed"]:
            self.stdout.write(self.style.WARNING(f"Booking {failure['booking_id']}: {failure['detail']}"))
        self.stdout.write(
            self.style.SUCCESS(f"Created {len(result['created'])}, failed {len(result['failed'])}.")
        )
