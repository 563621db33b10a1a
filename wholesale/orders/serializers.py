from decimal import Decimal
from rest_framework import serializers

from wholesale.catalog.models import Product
from wholesale.parties.models import Customer
from .models import Order, OrderItem


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            'id', 'product', 'product_name', 'quantity_meters', 'price_per_meter',
            'discount_per_meter', 'total_price', 'created_at'
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.full_name', read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    bill = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'customer', 'customer_name', 'status', 'coupon_code', 'discount_amount',
            'subtotal', 'tax_amount', 'total_amount', 'notes', 'items', 'bill', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_bill(self, obj):
        bill = obj.bills.first()
        if bill is None:
            return None
        return {
            'id': bill.id,
            'bill_number': bill.bill_number,
            'status': bill.status,
            'balance_due': str(bill.balance_due),
            'due_date': bill.due_date.isoformat() if bill.due_date else None,
        }


class OrderCreateSerializer(serializers.Serializer):
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.filter(is_active=True))
    quantity_meters = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.01'))
    coupon_code = serializers.CharField(max_length=50, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    # Staff may place an order on behalf of a customer
    customer = serializers.PrimaryKeyRelatedField(queryset=Customer.objects.filter(is_active=True), required=False)

    def validate(self, attrs):
        product = attrs['product']
        if product.stock_status == 'out_of_stock':
            raise serializers.ValidationError({'product': f'{product.name} is out of stock'})
        if attrs['quantity_meters'] < product.min_order_quantity:
            raise serializers.ValidationError(
                {'quantity_meters': f'Minimum order is {product.min_order_quantity} meters'}
            )
        return attrs


class OrderUpdateSerializer(serializers.Serializer):
    quantity_meters = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.01'), required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.STATUS_CHOICES)
