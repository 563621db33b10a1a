from django.db import models
from django.utils import timezone
from decimal import Decimal
import uuid
from wholesale.core.models import User
from wholesale.parties.models import Customer
from wholesale.orders.models import Order
from .finance import balance_due, bill_status, quantize_money


def generate_bill_number():
    return f"INV-{timezone.now().strftime('%Y%m%d')}-{str(uuid.uuid4())[:8].upper()}"


class Bill(models.Model):
    """Customer bill; the unit payments are allocated against.

    Balance and status are derived from paid and total on every save and are
    never set on their own. Bills are never deleted.
    """
    STATUS_CHOICES = [
        ('unpaid', 'Unpaid'),
        ('partial', 'Partially Paid'),
        ('paid', 'Paid'),
    ]

    TAX_RATE_CHOICES = [Decimal('0'), Decimal('5'), Decimal('12'), Decimal('18'), Decimal('28')]

    bill_number = models.CharField(max_length=50, unique=True, default=generate_bill_number)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='bills')
    order = models.ForeignKey(Order, on_delete=models.PROTECT, null=True, blank=True, related_name='bills')
    line_items = models.JSONField(default=list, blank=True)
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('5.00'))
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    balance_due = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'), db_index=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='unpaid', db_index=True)
    due_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True)
    version = models.PositiveIntegerField(default=0)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='bills_created')
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.bill_number

    def recompute(self):
        self.subtotal = quantize_money(self.subtotal)
        self.tax_amount = quantize_money(self.tax_amount)
        self.total_amount = self.subtotal + self.tax_amount
        self.paid_amount = quantize_money(self.paid_amount)
        self.balance_due = balance_due(self.total_amount, self.paid_amount)
        self.status = bill_status(self.paid_amount, self.total_amount)

    def save(self, *args, **kwargs):
        self.recompute()
        update_fields = kwargs.get('update_fields')
        if update_fields is not None:
            kwargs['update_fields'] = set(update_fields) | {'total_amount', 'balance_due', 'status'}
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'bills'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['customer', 'created_at'], name='bills_custome_3f9a2c_idx'),
        ]


class Payment(models.Model):
    """Money received against one bill. Rows are never edited or deleted."""
    PAYMENT_METHOD_CHOICES = [
        ('cash', 'Cash'),
        ('upi', 'UPI'),
        ('bank_transfer', 'Bank Transfer'),
        ('cheque', 'Cheque'),
        ('card', 'Card'),
        ('other', 'Other'),
    ]

    bill = models.ForeignKey(Bill, on_delete=models.PROTECT, related_name='payments')
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='payments')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default='upi')
    transaction_ref = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='payments_recorded')
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    def __str__(self):
        return f"{self.amount} on {self.bill.bill_number}"

    class Meta:
        db_table = 'payments'
        ordering = ['-created_at']


class PaymentRequest(models.Model):
    """A customer's claim of a payment made, waiting for staff approval"""
    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
    ]

    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='payment_requests')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    bills = models.ManyToManyField(Bill, related_name='payment_requests')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    payment_method = models.CharField(max_length=20, choices=Payment.PAYMENT_METHOD_CHOICES, default='upi')
    transaction_ref = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    review_notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    reviewed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='payment_requests_reviewed')

    def __str__(self):
        return f"Payment request {self.id} ({self.status})"

    class Meta:
        db_table = 'payment_requests'
        ordering = ['-created_at']
