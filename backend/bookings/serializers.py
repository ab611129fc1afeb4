from rest_framework import serializers

from bookings.models import Booking
from payments.models import Payment
from vehicles.models import Vehicle


class PaymentSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = [
            "id",
            "method",
            "amount",
            "processing_fee",
            "currency",
            "status",
            "failure_code",
            "paid_at",
            "created_at",
        ]
        read_only_fields = fields


class BookingSerializer(serializers.ModelSerializer):
    vehicle_name = serializers.SerializerMethodField()
    owner_id = serializers.IntegerField(source="vehicle.owner_id", read_only=True)
    payments = PaymentSummarySerializer(many=True, read_only=True)

    class Meta:
        model = Booking
        fields = [
            "id",
            "renter",
            "vehicle",
            "vehicle_name",
            "owner_id",
            "start_date",
            "end_date",
            "rental_subtotal",
            "service_fee",
            "total_price",
            "status",
            "cancellation_reason",
            "confirmed_at",
            "cancelled_at",
            "payments",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_vehicle_name(self, obj):
        return f"{obj.vehicle.make} {obj.vehicle.model}"


class BookingCreateSerializer(serializers.Serializer):
    vehicle_id = serializers.PrimaryKeyRelatedField(
        queryset=Vehicle.objects.select_related("owner"),
        source="vehicle",
    )
    start_date = serializers.DateField()
    end_date = serializers.DateField()

    def validate(self, attrs):
        if attrs["end_date"] < attrs["start_date"]:
            raise serializers.ValidationError({"end_date": "End date must be on or after the start date."})
        return attrs


class BookingCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
