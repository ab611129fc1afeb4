from django.contrib import admin

from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "booking", "method", "amount", "status", "gateway_reference", "paid_at")
    list_filter = ("status", "method")
    search_fields = ("gateway_reference", "gateway_payment_id", "booking__id")
    readonly_fields = ("idempotency_key", "created_at", "updated_at")
