from django.contrib import admin

from .models import Commission


@admin.register(Commission)
class CommissionAdmin(admin.ModelAdmin):
    list_display = ("booking", "owner", "commission_amount", "commission_percentage", "payment_type", "status")
    list_filter = ("status", "payment_type")
    search_fields = ("owner__email", "bank_transfer_reference", "booking__id")
    readonly_fields = ("rental_amount", "commission_amount", "commission_percentage", "payment_type", "verified_at")
