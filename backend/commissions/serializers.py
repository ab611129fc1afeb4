from rest_framework import serializers

from commissions.models import Commission


class CommissionSerializer(serializers.ModelSerializer):
    owner_name = serializers.SerializerMethodField()
    owner_email = serializers.EmailField(source="owner.email", read_only=True)
    booking_status = serializers.CharField(source="booking.status", read_only=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)

    class Meta:
        model = Commission
        fields = [
            "id",
            "booking",
            "booking_status",
            "owner",
            "owner_name",
            "owner_email",
            "rental_amount",
            "commission_amount",
            "commission_percentage",
            "payment_method",
            "payment_type",
            "status",
            "status_display",
            "bank_transfer_reference",
            "bank_name",
            "transfer_date",
            "payment_proof_url",
            "verified_by",
            "verified_at",
            "verification_notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_owner_name(self, obj):
        owner = obj.owner
        return owner.display_name or owner.get_full_name() or owner.username


class CommissionSubmitSerializer(serializers.Serializer):
    bank_transfer_reference = serializers.CharField(max_length=120)
    bank_name = serializers.CharField(max_length=120)
    transfer_date = serializers.DateField()
    payment_proof_url = serializers.URLField(required=False, allow_blank=True, default="")


class CommissionReviewSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class CommissionRejectSerializer(serializers.Serializer):
    notes = serializers.CharField()


class CommissionStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Commission.STATUSES)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class OwnerSuspendSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500)


class CommissionSummarySerializer(serializers.Serializer):
    total_commission = serializers.DecimalField(max_digits=14, decimal_places=2)
    outstanding_commission = serializers.DecimalField(max_digits=14, decimal_places=2)
    cashless_commission = serializers.DecimalField(max_digits=14, decimal_places=2)
    cash_commission = serializers.DecimalField(max_digits=14, decimal_places=2)
    unpaid_count = serializers.IntegerField()
    for_verification_count = serializers.IntegerField()
    paid_count = serializers.IntegerField()
    suspended_count = serializers.IntegerField()


class OwnerCommissionSummarySerializer(serializers.Serializer):
    owner_id = serializers.IntegerField()
    owner_name = serializers.CharField()
    owner_email = serializers.CharField()
    is_suspended = serializers.BooleanField()
    suspension_reason = serializers.CharField(allow_null=True)
    total_commission = serializers.DecimalField(max_digits=14, decimal_places=2)
    paid_commission = serializers.DecimalField(max_digits=14, decimal_places=2)
    unpaid_commission = serializers.DecimalField(max_digits=14, decimal_places=2)
    transaction_count = serializers.IntegerField()
    has_unpaid = serializers.BooleanField()
    latest_transaction_at = serializers.DateTimeField()
