from rest_framework import serializers

from payments.methods import PaymentMethod, online_methods
from payments.models import Payment


class QuoteQuerySerializer(serializers.Serializer):
    method = serializers.ChoiceField(choices=PaymentMethod.choices, default=PaymentMethod.CARD)


class CardSerializer(serializers.Serializer):
    card_number = serializers.CharField(max_length=32)
    exp_month = serializers.IntegerField()
    exp_year = serializers.IntegerField()
    cvc = serializers.CharField(max_length=4)


class BillingSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    phone = serializers.CharField(max_length=40, required=False, allow_blank=True)


class CheckoutSerializer(serializers.Serializer):
    method = serializers.ChoiceField(choices=[(method, method) for method in online_methods()])
    card = CardSerializer(required=False)
    billing = BillingSerializer(required=False)

    def validate(self, attrs):
        if attrs["method"] == PaymentMethod.CARD and not attrs.get("card"):
            raise serializers.ValidationError({"card": "Card details are required."})
        return attrs


class PaymentRefreshSerializer(serializers.Serializer):
    intent_id = serializers.CharField(max_length=200, required=False, allow_blank=True)


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = [
            "id",
            "booking",
            "method",
            "amount",
            "processing_fee",
            "currency",
            "status",
            "failure_code",
            "paid_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
