import logging
from decimal import Decimal

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import Q, Sum, Value, DecimalField
from django.db.models.functions import Coalesce
from django.shortcuts import get_object_or_404
from django.utils.crypto import get_random_string

from wholesale.core.models import User
from wholesale.core.model_cache import get_cached_customer_list, cache_customer_list
from wholesale.core.utils import is_admin_user, is_staff_member, create_audit_log, get_ledger_setting
from wholesale.billing.finance import format_currency
from .models import Customer
from .serializers import (
    CustomerSerializer, CustomerCreateSerializer, CreditLimitSerializer, CustomerBalanceSerializer,
)

logger = logging.getLogger(__name__)


def customer_queryset():
    return Customer.objects.select_related('user').annotate(
        outstanding=Coalesce(
            Sum('bills__balance_due'),
            Value(Decimal('0.00')),
            output_field=DecimalField(max_digits=14, decimal_places=2),
        )
    )


def can_view_customer(user, customer):
    return is_staff_member(user) or customer.user_id == user.id


def build_login_credentials(phone, email):
    """Phone numbers double as username and password; email logins get a generated password"""
    if phone and len(phone) >= 10:
        return phone, phone
    return email, f"JST{get_random_string(8)}"


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def customer_list_create(request):
    """List customers (staff) or create a customer with a login (admin)"""
    if request.method == 'GET':
        if not is_staff_member(request.user):
            return Response({'error': 'You do not have permission to view customers'}, status=status.HTTP_403_FORBIDDEN)

        search = (request.query_params.get('search') or '').strip()
        cached_data = get_cached_customer_list(search)
        if cached_data is not None:
            return Response(cached_data)

        queryset = customer_queryset().order_by('-created_at')
        if search:
            queryset = queryset.filter(
                Q(full_name__icontains=search) |
                Q(business_name__icontains=search) |
                Q(phone__icontains=search) |
                Q(email__icontains=search)
            )
        response_data = CustomerSerializer(queryset, many=True).data
        cache_customer_list(search, response_data)
        return Response(response_data)

    if not is_admin_user(request.user):
        return Response({'error': 'Only administrators can create customers'}, status=status.HTTP_403_FORBIDDEN)

    serializer = CustomerCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    phone = data.get('phone') or None
    email = data.get('email') or ''
    username, password = build_login_credentials(phone, email)
    if User.objects.filter(username=username).exists():
        return Response({'error': f'A login for {username} already exists'}, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        user = User.objects.create_user(
            username=username,
            password=password,
            email=email,
            first_name=data['full_name'][:150],
            phone=phone,
            role=User.ROLE_CUSTOMER,
        )
        customer = Customer.objects.create(
            user=user,
            full_name=data['full_name'],
            business_name=data.get('business_name', ''),
            phone=phone,
            email=email,
            address=data.get('address', ''),
            gst_number=data.get('gst_number', ''),
            credit_limit=data.get('credit_limit', get_ledger_setting('DEFAULT_CREDIT_LIMIT')),
        )

    create_audit_log(
        request=request,
        action='customer_create',
        model_name='Customer',
        object_id=str(customer.id),
        object_name=customer.full_name,
        object_reference=username,
        changes={'credit_limit': str(customer.credit_limit), 'business_name': customer.business_name},
    )
    logger.info(f"Customer {customer.id} ({customer.full_name}) created with login {username}")

    response_data = CustomerSerializer(customer_queryset().get(pk=customer.pk)).data
    # Credentials are only ever returned here
    response_data['login'] = {'username': username, 'password': password}
    return Response(response_data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def customer_detail(request, pk):
    """Retrieve or update a customer profile"""
    customer = get_object_or_404(customer_queryset(), pk=pk)
    if not can_view_customer(request.user, customer):
        return Response({'error': 'You do not have permission to view this customer'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(CustomerSerializer(customer).data)

    if not (is_admin_user(request.user) or customer.user_id == request.user.id):
        return Response({'error': 'You do not have permission to update this customer'}, status=status.HTTP_403_FORBIDDEN)

    serializer = CustomerSerializer(
        customer, data=request.data, partial=request.method == 'PATCH', context={'request': request}
    )
    if serializer.is_valid():
        serializer.save()
        return Response(CustomerSerializer(customer_queryset().get(pk=pk)).data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['PATCH', 'PUT'])
@permission_classes([IsAuthenticated])
def customer_credit_limit(request, pk):
    """Set a customer's credit limit (admin only)"""
    if not is_admin_user(request.user):
        return Response({'error': 'Only administrators can change credit limits'}, status=status.HTTP_403_FORBIDDEN)

    customer = get_object_or_404(Customer, pk=pk)
    serializer = CreditLimitSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_limit = customer.credit_limit
    customer.credit_limit = serializer.validated_data['credit_limit']
    customer.save(update_fields=['credit_limit', 'updated_at'])

    create_audit_log(
        request=request,
        action='credit_limit_change',
        model_name='Customer',
        object_id=str(customer.id),
        object_name=customer.full_name,
        changes={
            'credit_limit': {'old': str(old_limit), 'new': str(customer.credit_limit)},
            'description': f"Credit limit changed from ₹{format_currency(old_limit)} to ₹{format_currency(customer.credit_limit)}",
        },
    )
    return Response(CustomerBalanceSerializer(customer.get_balance_summary()).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def customer_balance(request, pk):
    """Billed, paid and outstanding totals with credit usage"""
    customer = get_object_or_404(Customer, pk=pk)
    if not can_view_customer(request.user, customer):
        return Response({'error': 'You do not have permission to view this customer'}, status=status.HTTP_403_FORBIDDEN)
    return Response(CustomerBalanceSerializer(customer.get_balance_summary()).data)
