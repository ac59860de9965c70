import django_filters as filters

from conferences.verticals import Vertical
from payments.models import DiscountRecord, PaymentRecord
from payments.state_machines import PaymentStatus


class StatusFilterMixin:
    def filter_status(self, queryset, name, value):
        # Accept "completed" as well as "COMPLETED"
        wanted = value.upper()
        if wanted not in PaymentStatus.values:
            return queryset.none()
        return queryset.filter(status=wanted)


class PaymentRecordFilter(StatusFilterMixin, filters.FilterSet):
    vertical = filters.ChoiceFilter(choices=Vertical.choices)
    status = filters.CharFilter(method="filter_status")
    email = filters.CharFilter(field_name="customer_email", lookup_expr="iexact")
    created_after = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    created_before = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = PaymentRecord
        fields = ["vertical", "provider", "status", "email", "created_after", "created_before"]


class DiscountRecordFilter(StatusFilterMixin, filters.FilterSet):
    vertical = filters.ChoiceFilter(choices=Vertical.choices)
    status = filters.CharFilter(method="filter_status")
    email = filters.CharFilter(field_name="customer_email", lookup_expr="iexact")

    class Meta:
        model = DiscountRecord
        fields = ["vertical", "status", "email"]
