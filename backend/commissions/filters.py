import django_filters

from commissions.models import Commission


class CommissionFilter(django_filters.FilterSet):
    start_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    end_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")

    class Meta:
        model = Commission
        fields = ["status", "payment_type", "owner", "start_date", "end_date"]
