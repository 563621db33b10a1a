import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Sum, Count
from django.db.models.functions import TruncMonth
from decimal import Decimal

from wholesale.billing.models import Bill, PaymentRequest
from wholesale.billing.serializers import BillSerializer
from wholesale.core.cache_utils import cached_query, REPORTS_CACHE_TTL
from wholesale.core.utils import is_staff_member
from wholesale.orders.models import Order
from wholesale.orders.serializers import OrderSerializer
from wholesale.parties.models import Customer

logger = logging.getLogger('wholesale.reports')

ZERO = Decimal('0.00')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard_summary(request):
    """Counters and recent activity for the back-office dashboard"""
    if not is_staff_member(request.user):
        return Response({'error': 'You do not have permission to view reports'}, status=status.HTTP_403_FORBIDDEN)

    outstanding = Bill.objects.filter(balance_due__gt=0)
    recent_bills = Bill.objects.select_related('customer', 'order').order_by('-created_at', '-id')[:5]
    recent_orders = Order.objects.select_related('customer').prefetch_related('items', 'bills').order_by('-created_at', '-id')[:5]

    return Response({
        'customer_count': Customer.objects.filter(is_active=True).count(),
        'unpaid_bill_count': outstanding.count(),
        'pending_order_count': Order.objects.filter(status=Order.STATUS_PENDING).count(),
        'pending_payment_request_count': PaymentRequest.objects.filter(status=PaymentRequest.STATUS_PENDING).count(),
        'total_outstanding': str(outstanding.aggregate(total=Sum('balance_due'))['total'] or ZERO),
        'recent_bills': BillSerializer(recent_bills, many=True).data,
        'recent_orders': OrderSerializer(recent_orders, many=True).data,
    })


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix='reports')
def get_sales_analytics(months=6, top=5):
    """Revenue and collection figures over every bill issued"""
    bill_totals = Bill.objects.aggregate(
        revenue=Sum('total_amount'),
        collected=Sum('paid_amount'),
        pending=Sum('balance_due'),
    )
    total_revenue = bill_totals['revenue'] or ZERO
    order_count = Order.objects.count()
    customer_count = Customer.objects.count()
    average_order_value = Order.objects.aggregate(total=Sum('total_amount'))['total'] or ZERO
    if order_count:
        average_order_value = (average_order_value / order_count).quantize(Decimal('0.01'))

    monthly_revenue = {
        row['month'].date() if hasattr(row['month'], 'date') else row['month']: row['revenue'] or ZERO
        for row in Bill.objects.annotate(month=TruncMonth('created_at'))
        .values('month').annotate(revenue=Sum('total_amount'))
    }
    monthly_orders = {
        row['month'].date() if hasattr(row['month'], 'date') else row['month']: row['orders']
        for row in Order.objects.annotate(month=TruncMonth('created_at'))
        .values('month').annotate(orders=Count('id'))
    }
    month_keys = sorted(set(monthly_revenue) | set(monthly_orders))[-months:]
    monthly = [
        {
            'month': month.strftime('%Y-%m'),
            'label': month.strftime('%b'),
            'revenue': str(monthly_revenue.get(month, ZERO)),
            'orders': monthly_orders.get(month, 0),
        }
        for month in month_keys
    ]

    top_customers = (
        Customer.objects.annotate(total_purchases=Sum('bills__total_amount'), bill_count=Count('bills'))
        .filter(total_purchases__gt=0)
        .order_by('-total_purchases', 'id')[:top]
    )

    logger.debug(f"Analytics computed: revenue={total_revenue}, orders={order_count}, months={len(monthly)}")
    return {
        'total_revenue': str(total_revenue),
        'order_count': order_count,
        'customer_count': customer_count,
        'average_order_value': str(average_order_value),
        'monthly': monthly,
        'payment_stats': {
            'collected': str(bill_totals['collected'] or ZERO),
            'pending': str(bill_totals['pending'] or ZERO),
        },
        'top_customers': [
            {
                'customer_id': customer.id,
                'name': customer.business_name or customer.full_name,
                'total_purchases': str(customer.total_purchases),
                'bill_count': customer.bill_count,
            }
            for customer in top_customers
        ],
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def sales_analytics(request):
    """Sales analytics: revenue, monthly trend, collections and top customers"""
    if not is_staff_member(request.user):
        return Response({'error': 'You do not have permission to view reports'}, status=status.HTTP_403_FORBIDDEN)

    logger.info(f"User {request.user.username} requested sales analytics")
    return Response(get_sales_analytics())
