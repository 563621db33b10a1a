from django.contrib import admin
from .models import Bill, Payment, PaymentRequest


class LedgerReadOnlyAdmin(admin.ModelAdmin):
    """Ledger rows change only through the payment recorder"""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Bill)
class BillAdmin(LedgerReadOnlyAdmin):
    list_display = ['bill_number', 'customer', 'total_amount', 'paid_amount', 'balance_due', 'status', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['bill_number', 'customer__full_name', 'customer__business_name']
    date_hierarchy = 'created_at'


@admin.register(Payment)
class PaymentAdmin(LedgerReadOnlyAdmin):
    list_display = ['id', 'bill', 'customer', 'amount', 'payment_method', 'transaction_ref', 'created_at']
    list_filter = ['payment_method', 'created_at']
    search_fields = ['bill__bill_number', 'customer__full_name', 'transaction_ref']


@admin.register(PaymentRequest)
class PaymentRequestAdmin(admin.ModelAdmin):
    list_display = ['id', 'customer', 'amount', 'status', 'created_at', 'reviewed_by', 'reviewed_at']
    list_filter = ['status']
    search_fields = ['customer__full_name', 'transaction_ref']
    readonly_fields = ['customer', 'amount', 'bills', 'status', 'reviewed_at', 'reviewed_by', 'created_at']

    def has_delete_permission(self, request, obj=None):
        return False
