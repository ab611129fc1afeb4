from django.contrib import admin

from .models import Vehicle


@admin.register(Vehicle)
class VehicleAdmin(admin.ModelAdmin):
    list_display = ("plate_number", "make", "model", "owner", "daily_rate", "is_available")
    list_filter = ("is_available",)
    search_fields = ("plate_number", "make", "model", "owner__email")
