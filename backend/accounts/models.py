from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone


class User(AbstractUser):
    RENTER = "renter"
    OWNER = "owner"
    ADMIN = "admin"
    ROLES = [
        (RENTER, "Renter"),
        (OWNER, "Owner"),
        (ADMIN, "Admin"),
    ]

    display_name = models.CharField(max_length=120, blank=True)
    role = models.CharField(max_length=12, choices=ROLES, default=RENTER)
    is_suspended = models.BooleanField(default=False)
    suspension_reason = models.CharField(max_length=500, blank=True)
    suspended_at = models.DateTimeField(null=True, blank=True)
    suspended_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="suspended_users",
    )
    # Per-owner override; None falls back to DEFAULT_COMMISSION_PERCENTAGE.
    commission_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
    )

    @property
    def is_platform_admin(self) -> bool:
        return self.is_superuser or self.role == self.ADMIN

    def mark_suspended(self, *, actor, reason: str):
        self.is_suspended = True
        self.suspension_reason = reason
        self.suspended_at = timezone.now()
        self.suspended_by = actor
        self.save(update_fields=["is_suspended", "suspension_reason", "suspended_at", "suspended_by"])

    def clear_suspension(self):
        self.is_suspended = False
        self.suspension_reason = ""
        self.suspended_at = None
        self.suspended_by = None
        self.save(update_fields=["is_suspended", "suspension_reason", "suspended_at", "suspended_by"])
