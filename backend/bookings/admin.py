from django.contrib import admin

from payments.models import Payment

from .models import Booking


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    fields = ("method", "amount", "processing_fee", "status", "gateway_reference", "failure_code", "paid_at")
    readonly_fields = fields
    can_delete = False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ("id", "vehicle", "renter", "start_date", "end_date", "total_price", "status")
    list_filter = ("status",)
    search_fields = ("vehicle__plate_number", "renter__email", "vehicle__owner__email")
    readonly_fields = ("rental_subtotal", "service_fee", "total_price", "confirmed_at", "cancelled_at")
    inlines = [PaymentInline]
