from django.contrib import admin
from .models import Customer


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['full_name', 'business_name', 'phone', 'email', 'credit_limit', 'is_active', 'created_at']
    list_filter = ['is_active', 'created_at']
    search_fields = ['full_name', 'business_name', 'phone', 'email', 'gst_number']
    raw_id_fields = ['user']
