from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


class Vehicle(models.Model):
    """Listing row the settlement flow needs: who owns it and what it costs per day."""

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="vehicles",
    )
    make = models.CharField(max_length=80)
    model = models.CharField(max_length=80)
    plate_number = models.CharField(max_length=20, unique=True)
    daily_rate = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(0)],
    )
    is_available = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["make", "model", "id"]

    def __str__(self):
        return f"{self.make} {self.model} ({self.plate_number})"
