import django_filters
from django.db.models import Q
from .models import Bill, Payment


class BillFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search', label='Search')
    status = django_filters.CharFilter(field_name='status', lookup_expr='exact')
    customer = django_filters.NumberFilter(field_name='customer_id')
    outstanding = django_filters.CharFilter(method='filter_outstanding', label='Outstanding')
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    class Meta:
        model = Bill
        fields = ['search', 'status', 'customer', 'outstanding', 'date_from', 'date_to']

    def filter_search(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(bill_number__icontains=value) |
            Q(customer__full_name__icontains=value) |
            Q(customer__business_name__icontains=value)
        )

    def filter_outstanding(self, queryset, name, value):
        if str(value).lower() in ('true', '1', 'yes'):
            return queryset.filter(balance_due__gt=0)
        if str(value).lower() in ('false', '0', 'no'):
            return queryset.filter(balance_due=0)
        return queryset


class PaymentFilter(django_filters.FilterSet):
    customer = django_filters.NumberFilter(field_name='customer_id')
    bill = django_filters.NumberFilter(field_name='bill_id')
    payment_method = django_filters.CharFilter(field_name='payment_method', lookup_expr='exact')
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    class Meta:
        model = Payment
        fields = ['customer', 'bill', 'payment_method', 'date_from', 'date_to']
