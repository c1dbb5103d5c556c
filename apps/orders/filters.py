import django_filters

from .models import Order


class TransactionFilter(django_filters.FilterSet):
    """
    Filters on the purchase-time snapshot so renamed or deleted photos still match.
    """
    event = django_filters.CharFilter(field_name='items__snap_event_name', lookup_expr='icontains', distinct=True)
    class_name = django_filters.CharFilter(field_name='items__snap_photo_class', lookup_expr='iexact', distinct=True)
    start_no = django_filters.CharFilter(field_name='items__snap_photo_start_no', distinct=True)
    email = django_filters.CharFilter(lookup_expr='icontains')
    created_after = django_filters.IsoDateTimeFilter(field_name='created_at', lookup_expr='gte')
    created_before = django_filters.IsoDateTimeFilter(field_name='created_at', lookup_expr='lte')

    class Meta:
        model = Order
        fields = ['status']
