from decimal import Decimal
from rest_framework import serializers
from .models import Product, Coupon


class ProductSerializer(serializers.ModelSerializer):
    price_per_meter = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.01'))
    min_order_quantity = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.01'), required=False)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'category', 'description', 'price_per_meter', 'min_order_quantity',
            'stock_status', 'image_url', 'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_at', 'updated_at']


class CouponSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    discount_value = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.01'))

    class Meta:
        model = Coupon
        fields = ['id', 'code', 'product', 'product_name', 'discount_type', 'discount_value', 'is_active', 'created_at']
        read_only_fields = ['created_at']

    def validate(self, attrs):
        discount_type = attrs.get('discount_type', getattr(self.instance, 'discount_type', 'fixed'))
        discount_value = attrs.get('discount_value', getattr(self.instance, 'discount_value', None))
        if discount_type == 'percentage' and discount_value is not None and discount_value > Decimal('100'):
            raise serializers.ValidationError({'discount_value': 'Percentage discount cannot exceed 100'})
        return attrs


class CouponValidateSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=50)
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.filter(is_active=True))
