from decimal import Decimal
from django.utils import timezone
from rest_framework import serializers

from wholesale.parties.models import Customer
from .interest import calculate_overdue_interest
from .models import Bill, Payment, PaymentRequest
from .recorder import MODES, MODE_BULK


class BillSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.full_name', read_only=True)
    business_name = serializers.CharField(source='customer.business_name', read_only=True)
    order_number = serializers.CharField(source='order.order_number', read_only=True, default=None)

    class Meta:
        model = Bill
        fields = [
            'id', 'bill_number', 'customer', 'customer_name', 'business_name', 'order', 'order_number',
            'line_items', 'tax_rate', 'subtotal', 'tax_amount', 'total_amount', 'paid_amount',
            'balance_due', 'status', 'due_date', 'notes', 'version', 'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    bill_number = serializers.CharField(source='bill.bill_number', read_only=True)
    customer_name = serializers.CharField(source='customer.full_name', read_only=True)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = Payment
        fields = [
            'id', 'bill', 'bill_number', 'customer', 'customer_name', 'amount', 'payment_method',
            'transaction_ref', 'notes', 'created_by', 'created_by_username', 'created_at'
        ]
        read_only_fields = fields


class BillDetailSerializer(BillSerializer):
    payments = PaymentSerializer(many=True, read_only=True)
    interest = serializers.SerializerMethodField()

    class Meta(BillSerializer.Meta):
        fields = BillSerializer.Meta.fields + ['payments', 'interest']
        read_only_fields = fields

    def get_interest(self, obj):
        interest = calculate_overdue_interest(obj.balance_due, obj.created_at, timezone.now(), obj.status)
        return interest.as_dict() if interest else None


class BillLineItemSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=255)
    quantity = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.01'))
    rate = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))
    unit = serializers.CharField(max_length=20, required=False, default='m')


class OfflineBillCreateSerializer(serializers.Serializer):
    """Manual bill for a sale made outside the order flow"""
    customer = serializers.PrimaryKeyRelatedField(queryset=Customer.objects.all())
    line_items = BillLineItemSerializer(many=True, allow_empty=False)
    tax_rate = serializers.ChoiceField(choices=[(str(r), f"{r}%") for r in Bill.TAX_RATE_CHOICES], default='5')
    bill_date = serializers.DateTimeField(required=False)
    due_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    initial_payment = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True, min_value=Decimal('0'))
    payment_method = serializers.ChoiceField(choices=Payment.PAYMENT_METHOD_CHOICES, default='cash')
    transaction_ref = serializers.CharField(max_length=100, required=False, allow_blank=True)


class RecordPaymentSerializer(serializers.Serializer):
    customer = serializers.PrimaryKeyRelatedField(queryset=Customer.objects.all())
    mode = serializers.ChoiceField(choices=MODES, default=MODE_BULK)
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    bill = serializers.PrimaryKeyRelatedField(queryset=Bill.objects.all(), required=False, allow_null=True)
    payment_method = serializers.ChoiceField(choices=Payment.PAYMENT_METHOD_CHOICES, default='upi')
    transaction_ref = serializers.CharField(max_length=100, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    payment_date = serializers.DateTimeField(required=False, allow_null=True)

    def validate(self, attrs):
        bill = attrs.get('bill')
        if attrs.get('mode') == 'single' and bill is None:
            raise serializers.ValidationError({'bill': 'A bill is required for single mode'})
        if bill is not None and bill.customer_id != attrs['customer'].id:
            raise serializers.ValidationError({'bill': 'Bill does not belong to this customer'})
        return attrs


class PaymentPreviewSerializer(serializers.Serializer):
    customer = serializers.PrimaryKeyRelatedField(queryset=Customer.objects.all(), required=False)
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)


class PaymentRequestSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.full_name', read_only=True)
    bill_numbers = serializers.SerializerMethodField()
    reviewed_by_username = serializers.CharField(source='reviewed_by.username', read_only=True, default=None)

    class Meta:
        model = PaymentRequest
        fields = [
            'id', 'customer', 'customer_name', 'amount', 'bills', 'bill_numbers', 'status',
            'payment_method', 'transaction_ref', 'notes', 'review_notes', 'created_at',
            'reviewed_at', 'reviewed_by', 'reviewed_by_username'
        ]
        read_only_fields = fields

    def get_bill_numbers(self, obj):
        return [bill.bill_number for bill in obj.bills.all()]


class PaymentRequestCreateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    bills = serializers.PrimaryKeyRelatedField(queryset=Bill.objects.all(), many=True, allow_empty=False)
    payment_method = serializers.ChoiceField(choices=Payment.PAYMENT_METHOD_CHOICES, default='upi')
    transaction_ref = serializers.CharField(max_length=100, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate_bills(self, bills):
        customer = self.context['customer']
        for bill in bills:
            if bill.customer_id != customer.id:
                raise serializers.ValidationError(f"Bill {bill.bill_number} does not belong to you")
            if bill.balance_due <= 0:
                raise serializers.ValidationError(f"Bill {bill.bill_number} is already paid")
        return bills


class PaymentRequestReviewSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['approve', 'reject'])
    notes = serializers.CharField(required=False, allow_blank=True)
