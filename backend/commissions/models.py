from django.conf import settings
from django.db import models

from payments.methods import PaymentMethod, PaymentType


class Commission(models.Model):
    """The platform's share of a confirmed booking, owed by the vehicle owner."""

    UNPAID = "unpaid"
    FOR_VERIFICATION = "for_verification"
    PAID = "paid"
    SUSPENDED = "suspended"
    STATUSES = [
        (UNPAID, "Not Paid"),
        (FOR_VERIFICATION, "For Verification"),
        (PAID, "Paid"),
        (SUSPENDED, "Suspended"),
    ]
    OUTSTANDING_STATUSES = (UNPAID, FOR_VERIFICATION, SUSPENDED)

    booking = models.OneToOneField(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="commission",
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="commissions",
    )
    rental_amount = models.DecimalField(max_digits=12, decimal_places=2)
    commission_amount = models.DecimalField(max_digits=12, decimal_places=2)
    commission_percentage = models.DecimalField(max_digits=5, decimal_places=2)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    payment_type = models.CharField(max_length=10, choices=PaymentType.choices)
    status = models.CharField(max_length=20, choices=STATUSES, default=UNPAID)
    bank_transfer_reference = models.CharField(max_length=120, blank=True)
    bank_name = models.CharField(max_length=120, blank=True)
    transfer_date = models.DateField(null=True, blank=True)
    payment_proof_url = models.URLField(blank=True)
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="verified_commissions",
    )
    verified_at = models.DateTimeField(null=True, blank=True)
    verification_notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"Commission {self.commission_amount} on booking {self.booking_id} ({self.status})"

    def clear_transfer_details(self):
        self.bank_transfer_reference = ""
        self.bank_name = ""
        self.transfer_date = None
        self.payment_proof_url = ""
