import re
from decimal import Decimal
from rest_framework import serializers
from wholesale.core.utils import is_admin_user
from .models import Customer

PHONE_PATTERN = re.compile(r'^[\d\s+\-()]+$')


def validate_phone_number(value):
    if value and (not PHONE_PATTERN.match(value) or not 10 <= len(value) <= 20):
        raise serializers.ValidationError('Invalid phone format')
    return value


class CustomerSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True)
    outstanding = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True, required=False)

    class Meta:
        model = Customer
        fields = [
            'id', 'user', 'username', 'full_name', 'business_name', 'gst_number', 'phone', 'email',
            'address', 'credit_limit', 'outstanding', 'is_active', 'created_at', 'updated_at'
        ]
        # Credit limit changes go through their own audited endpoint
        read_only_fields = ['user', 'credit_limit', 'created_at', 'updated_at']

    def validate_full_name(self, value):
        value = value.strip()
        if not 2 <= len(value) <= 100:
            raise serializers.ValidationError('Full name must be 2-100 characters')
        return value

    def validate_phone(self, value):
        return validate_phone_number(value.strip() if value else value)

    def validate(self, attrs):
        request = self.context.get('request')
        # Only administrators activate or deactivate customers
        if 'is_active' in attrs and not (request and is_admin_user(request.user)):
            attrs.pop('is_active')
        return attrs


class CustomerCreateSerializer(serializers.Serializer):
    """Input for creating a customer together with their login"""
    full_name = serializers.CharField(max_length=500)
    business_name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    address = serializers.CharField(max_length=500, required=False, allow_blank=True)
    gst_number = serializers.CharField(max_length=20, required=False, allow_blank=True)
    credit_limit = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'), required=False)

    def validate_full_name(self, value):
        value = value.strip()
        if not 2 <= len(value) <= 100:
            raise serializers.ValidationError('Full name must be 2-100 characters')
        return value

    def validate_phone(self, value):
        return validate_phone_number(value.strip())

    def validate(self, attrs):
        if not attrs.get('phone') and not attrs.get('email'):
            raise serializers.ValidationError('Either phone or email is required')
        return attrs


class CreditLimitSerializer(serializers.Serializer):
    credit_limit = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))


class CustomerBalanceSerializer(serializers.Serializer):
    customer_id = serializers.IntegerField()
    total_billed = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_paid = serializers.DecimalField(max_digits=14, decimal_places=2)
    outstanding = serializers.DecimalField(max_digits=14, decimal_places=2)
    credit_limit = serializers.DecimalField(max_digits=12, decimal_places=2)
    credit_used = serializers.DecimalField(max_digits=14, decimal_places=2)
    credit_remaining = serializers.DecimalField(max_digits=14, decimal_places=2)
    over_limit = serializers.BooleanField()
