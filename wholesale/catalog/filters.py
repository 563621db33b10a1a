import django_filters
from django.db.models import Q
from .models import Product


class ProductFilter(django_filters.FilterSet):
    """Catalog filter for the product list using django-filter"""

    # Searches name, description and category
    search = django_filters.CharFilter(method='filter_search', label='Search')
    category = django_filters.CharFilter(field_name='category', lookup_expr='exact')
    is_active = django_filters.CharFilter(method='filter_active', label='Active')
    in_stock = django_filters.CharFilter(method='filter_in_stock', label='In Stock')
    min_price = django_filters.NumberFilter(field_name='price_per_meter', lookup_expr='gte')
    max_price = django_filters.NumberFilter(field_name='price_per_meter', lookup_expr='lte')

    class Meta:
        model = Product
        fields = ['search', 'category', 'is_active', 'in_stock', 'min_price', 'max_price']

    def filter_search(self, queryset, name, value):
        """Multi-word search: every word must appear in name, description or category"""
        search_words = [w.strip() for w in (value or '').split() if w.strip()]
        if not search_words:
            return queryset
        combined_query = Q()
        for word in search_words:
            combined_query &= (
                Q(name__icontains=word) |
                Q(description__icontains=word) |
                Q(category__icontains=word)
            )
        return queryset.filter(combined_query).distinct()

    def filter_active(self, queryset, name, value):
        if value is None or value == '':
            return queryset
        return queryset.filter(is_active=str(value).lower() in ('true', '1', 'yes'))

    def filter_in_stock(self, queryset, name, value):
        if str(value).lower() in ('true', '1', 'yes'):
            return queryset.exclude(stock_status='out_of_stock')
        if str(value).lower() in ('false', '0', 'no'):
            return queryset.filter(stock_status='out_of_stock')
        return queryset
