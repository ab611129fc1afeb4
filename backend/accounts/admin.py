from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import User


@admin.register(User)
class MarketplaceUserAdmin(UserAdmin):
    list_display = ("username", "email", "role", "is_suspended", "commission_percentage")
    list_filter = ("role", "is_suspended", "is_staff")
    search_fields = ("username", "email", "first_name", "last_name")
    fieldsets = UserAdmin.fieldsets + (
        (
            "Marketplace",
            {
                "fields": (
                    "display_name",
                    "role",
                    "commission_percentage",
                    "is_suspended",
                    "suspension_reason",
                    "suspended_at",
                    "suspended_by",
                )
            },
        ),
    )
    readonly_fields = ("suspended_at", "suspended_by")
