from django.contrib import admin
from .models import Product, Coupon


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'category', 'price_per_meter', 'min_order_quantity', 'stock_status', 'is_active']
    list_filter = ['category', 'stock_status', 'is_active']
    search_fields = ['name', 'description']


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ['code', 'product', 'discount_type', 'discount_value', 'is_active', 'created_at']
    list_filter = ['discount_type', 'is_active']
    search_fields = ['code', 'product__name']
