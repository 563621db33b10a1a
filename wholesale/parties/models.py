from django.db import models
from django.db.models import Sum
from decimal import Decimal
from wholesale.core.models import User


def default_credit_limit():
    from wholesale.core.utils import get_ledger_setting
    return get_ledger_setting('DEFAULT_CREDIT_LIMIT')


class Customer(models.Model):
    """Trade customer buying on credit, linked to the login that places orders"""
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='customer_profile')
    full_name = models.CharField(max_length=100)
    business_name = models.CharField(max_length=200, blank=True)
    gst_number = models.CharField(max_length=20, blank=True)
    phone = models.CharField(max_length=20, blank=True, null=True, db_index=True)
    email = models.EmailField(blank=True)
    address = models.TextField(blank=True)
    credit_limit = models.DecimalField(max_digits=12, decimal_places=2, default=default_credit_limit)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.business_name or self.full_name

    def get_balance_summary(self):
        """Billed, paid and outstanding totals against the credit limit"""
        totals = self.bills.aggregate(
            total_billed=Sum('total_amount'),
            total_paid=Sum('paid_amount'),
            outstanding=Sum('balance_due'),
        )
        total_billed = totals['total_billed'] or Decimal('0.00')
        total_paid = totals['total_paid'] or Decimal('0.00')
        outstanding = totals['outstanding'] or Decimal('0.00')
        return {
            'customer_id': self.id,
            'total_billed': total_billed,
            'total_paid': total_paid,
            'outstanding': outstanding,
            'credit_limit': self.credit_limit,
            'credit_used': outstanding,
            'credit_remaining': max(Decimal('0.00'), self.credit_limit - outstanding),
            'over_limit': outstanding > self.credit_limit,
        }

    class Meta:
        db_table = 'customers'
        ordering = ['-created_at']
