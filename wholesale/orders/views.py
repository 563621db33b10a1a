import logging
from datetime import timedelta
from decimal import Decimal

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import F, Q
from django.shortcuts import get_object_or_404
from django.utils import timezone

from wholesale.billing.finance import calculate_gst, format_currency, quantize_money, ZERO
from wholesale.billing.models import Bill
from wholesale.catalog.views import find_active_coupon
from wholesale.core.utils import (
    create_audit_log, get_customer_profile, get_ledger_setting, is_admin_user, is_staff_member,
    paginated_response_data,
)
from .models import Order, OrderItem
from .serializers import OrderSerializer, OrderCreateSerializer, OrderUpdateSerializer, OrderStatusSerializer

logger = logging.getLogger(__name__)


def scoped_orders(user):
    queryset = Order.objects.select_related('customer').prefetch_related('items', 'bills')
    if is_staff_member(user):
        return queryset
    return queryset.filter(customer__user=user)


def price_order_line(quantity, price_per_meter, discount_per_meter=ZERO):
    """Subtotal, discount, GST and total for one fabric line"""
    subtotal = quantize_money(quantity * (price_per_meter - discount_per_meter))
    tax_amount = calculate_gst(subtotal)
    return {
        'subtotal': subtotal,
        'discount_amount': quantize_money(quantity * discount_per_meter),
        'tax_amount': tax_amount,
        'total_amount': subtotal + tax_amount,
    }


def bill_line_items(item):
    return [{
        'description': item.product_name,
        'quantity': str(item.quantity_meters),
        'unit': 'm',
        'rate': str(item.price_per_meter - item.discount_per_meter),
        'amount': str(item.total_price),
    }]


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def order_list_create(request):
    """List orders or place an order, which bills it at once"""
    if request.method == 'GET':
        queryset = scoped_orders(request.user)
        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        customer_id = request.query_params.get('customer')
        if customer_id:
            queryset = queryset.filter(customer_id=customer_id)
        search = (request.query_params.get('search') or '').strip()
        if search:
            queryset = queryset.filter(
                Q(order_number__icontains=search) |
                Q(customer__full_name__icontains=search) |
                Q(items__product_name__icontains=search)
            ).distinct()
        return Response(paginated_response_data(request, queryset.order_by('-created_at', '-id'), OrderSerializer))

    serializer = OrderCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    if is_staff_member(request.user):
        customer = data.get('customer')
        if customer is None:
            return Response({'customer': ['This field is required.']}, status=status.HTTP_400_BAD_REQUEST)
    else:
        customer = get_customer_profile(request.user)
        if customer is None:
            return Response({'error': 'No customer profile linked to this login'}, status=status.HTTP_403_FORBIDDEN)

    product = data['product']
    quantity = data['quantity_meters']
    coupon_code = (data.get('coupon_code') or '').strip().upper()
    discount_per_meter = ZERO
    if coupon_code:
        coupon = find_active_coupon(coupon_code, product)
        if coupon is None:
            return Response(
                {'coupon_code': ['This coupon code is not valid for this product.']},
                status=status.HTTP_400_BAD_REQUEST
            )
        discount_per_meter = coupon.discount_per_meter(product.price_per_meter)

    pricing = price_order_line(quantity, product.price_per_meter, discount_per_meter)
    gst_percent = get_ledger_setting('GST_RATE') * Decimal('100')

    with transaction.atomic():
        order = Order.objects.create(
            customer=customer,
            coupon_code=coupon_code,
            discount_amount=pricing['discount_amount'],
            subtotal=pricing['subtotal'],
            tax_amount=pricing['tax_amount'],
            total_amount=pricing['total_amount'],
            notes=data.get('notes', ''),
            created_by=request.user,
        )
        item = OrderItem.objects.create(
            order=order,
            product=product,
            product_name=product.name,
            quantity_meters=quantity,
            price_per_meter=product.price_per_meter,
            discount_per_meter=discount_per_meter,
            total_price=pricing['subtotal'],
        )
        bill = Bill.objects.create(
            customer=customer,
            order=order,
            line_items=bill_line_items(item),
            tax_rate=gst_percent,
            subtotal=pricing['subtotal'],
            tax_amount=pricing['tax_amount'],
            due_date=timezone.localdate() + timedelta(days=get_ledger_setting('BILL_DUE_DAYS')),
            created_by=request.user,
        )

    create_audit_log(
        request=request,
        action='order_create',
        model_name='Order',
        object_id=str(order.id),
        object_name=customer.full_name,
        object_reference=order.order_number,
        changes={
            'product': product.name,
            'quantity_meters': str(quantity),
            'coupon_code': coupon_code,
            'total_amount': str(order.total_amount),
            'bill_number': bill.bill_number,
        },
    )
    logger.info(f"Order {order.order_number} placed for customer {customer.id}, billed as {bill.bill_number}")

    response_data = OrderSerializer(scoped_orders(request.user).get(pk=order.pk)).data
    response_data['message'] = (
        f"Order {order.order_number} placed for {quantity}m of {product.name}. "
        f"Total ₹{format_currency(order.total_amount)} including GST."
    )
    return Response(response_data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'PUT'])
@permission_classes([IsAuthenticated])
def order_detail(request, pk):
    """Retrieve an order, or edit quantity and notes while it is still pending and unpaid"""
    order = get_object_or_404(scoped_orders(request.user), pk=pk)

    if request.method == 'GET':
        return Response(OrderSerializer(order).data)

    serializer = OrderUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        if order.status != Order.STATUS_PENDING:
            return Response({'error': 'Only pending orders can be edited'}, status=status.HTTP_400_BAD_REQUEST)

        bill = Bill.objects.select_for_update().filter(order=order).first()
        if bill is not None and (bill.paid_amount > 0 or bill.payments.exists()):
            return Response({'error': 'Orders with payments cannot be edited'}, status=status.HTTP_400_BAD_REQUEST)

        changes = {}
        item = order.items.select_related('product').first()
        quantity = data.get('quantity_meters')
        if quantity is not None and item is not None and quantity != item.quantity_meters:
            if quantity < item.product.min_order_quantity:
                return Response(
                    {'quantity_meters': [f'Minimum order is {item.product.min_order_quantity} meters']},
                    status=status.HTTP_400_BAD_REQUEST
                )
            pricing = price_order_line(quantity, item.price_per_meter, item.discount_per_meter)
            changes['quantity_meters'] = {'old': str(item.quantity_meters), 'new': str(quantity)}
            changes['total_amount'] = {'old': str(order.total_amount), 'new': str(pricing['total_amount'])}

            item.quantity_meters = quantity
            item.total_price = pricing['subtotal']
            item.save(update_fields=['quantity_meters', 'total_price'])

            order.subtotal = pricing['subtotal']
            order.discount_amount = pricing['discount_amount']
            order.tax_amount = pricing['tax_amount']
            order.total_amount = pricing['total_amount']

            if bill is not None:
                bill.subtotal = pricing['subtotal']
                bill.tax_amount = pricing['tax_amount']
                bill.line_items = bill_line_items(item)
                bill.version = F('version') + 1
                bill.save(update_fields=['subtotal', 'tax_amount', 'line_items', 'version', 'updated_at'])

        if 'notes' in data and data['notes'] != order.notes:
            changes['notes'] = {'old': order.notes, 'new': data['notes']}
            order.notes = data['notes']

        if changes:
            order.save()

    if changes:
        create_audit_log(
            request=request,
            action='order_update',
            model_name='Order',
            object_id=str(order.id),
            object_name=order.customer.full_name,
            object_reference=order.order_number,
            changes=changes,
        )
    return Response(OrderSerializer(scoped_orders(request.user).get(pk=order.pk)).data)


@api_view(['PATCH', 'POST'])
@permission_classes([IsAuthenticated])
def order_status_update(request, pk):
    """Move an order through its workflow (admin only)"""
    if not is_admin_user(request.user):
        return Response({'error': 'Only administrators can change order status'}, status=status.HTTP_403_FORBIDDEN)

    order = get_object_or_404(Order, pk=pk)
    serializer = OrderStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_status = order.status
    order.status = serializer.validated_data['status']
    order.save(update_fields=['status', 'updated_at'])

    create_audit_log(
        request=request,
        action='order_status',
        model_name='Order',
        object_id=str(order.id),
        object_name=order.customer.full_name,
        object_reference=order.order_number,
        changes={'status': {'old': old_status, 'new': order.status}},
    )
    return Response(OrderSerializer(scoped_orders(request.user).get(pk=order.pk)).data)
