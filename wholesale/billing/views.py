import logging
from datetime import timedelta
from decimal import Decimal

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone

from wholesale.core.utils import (
    create_audit_log, get_customer_profile, get_ledger_setting, is_admin_user, is_staff_member,
    paginated_response_data,
)
from .allocation import allocate_payment
from .exceptions import LedgerError
from .filters import BillFilter, PaymentFilter
from .finance import calculate_gst, format_currency, quantize_money, ZERO
from .interest import calculate_overdue_interest
from .models import Bill, Payment, PaymentRequest
from .recorder import PaymentRecorder, MODE_BULK, MODE_SINGLE
from .serializers import (
    BillSerializer, BillDetailSerializer, OfflineBillCreateSerializer, PaymentSerializer,
    RecordPaymentSerializer, PaymentPreviewSerializer, PaymentRequestSerializer,
    PaymentRequestCreateSerializer, PaymentRequestReviewSerializer,
)

logger = logging.getLogger(__name__)


def scoped_bills(user):
    """Staff see every bill, customers only their own"""
    queryset = Bill.objects.select_related('customer', 'order')
    if is_staff_member(user):
        return queryset
    return queryset.filter(customer__user=user)


def scoped_payments(user):
    queryset = Payment.objects.select_related('bill', 'customer', 'created_by')
    if is_staff_member(user):
        return queryset
    return queryset.filter(customer__user=user)


def ledger_error_response(exc):
    return Response({'error': str(exc)}, status=exc.status_code)


def audit_recorded_payments(request, recorded, description_prefix='Payment'):
    for payment in recorded.payments:
        create_audit_log(
            request=request,
            action='payment_add',
            model_name='Payment',
            object_id=str(payment.id),
            object_name=payment.customer.full_name,
            object_reference=payment.bill.bill_number,
            changes={
                'amount': str(payment.amount),
                'payment_method': payment.payment_method,
                'bill_id': payment.bill_id,
                'description': f"{description_prefix} of ₹{format_currency(payment.amount)} recorded against {payment.bill.bill_number}",
            },
        )


def recorded_payment_data(recorded):
    return {
        'success': True,
        'total_amount': str(recorded.total_amount),
        'allocated_count': recorded.allocated_count,
        'remainder': str(recorded.remainder),
        'allocations': [
            {'bill_id': a.bill_id, 'amount': str(a.amount_applied)} for a in recorded.allocations
        ],
        'payments': PaymentSerializer(recorded.payments, many=True).data,
    }


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def bill_list_create(request):
    """List bills or create an offline bill (admin)"""
    if request.method == 'GET':
        filterset = BillFilter(request.query_params, queryset=scoped_bills(request.user))
        queryset = filterset.qs.order_by('-created_at', '-id')
        return Response(paginated_response_data(request, queryset, BillSerializer))

    if not is_admin_user(request.user):
        return Response({'error': 'Only administrators can create bills'}, status=status.HTTP_403_FORBIDDEN)

    serializer = OfflineBillCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    customer = data['customer']

    line_items = []
    subtotal = ZERO
    for item in data['line_items']:
        amount = quantize_money(item['quantity'] * item['rate'])
        subtotal += amount
        line_items.append({
            'description': item['description'],
            'quantity': str(item['quantity']),
            'unit': item.get('unit') or 'm',
            'rate': str(item['rate']),
            'amount': str(amount),
        })

    tax_rate = Decimal(data['tax_rate'])
    created_at = data.get('bill_date') or timezone.now()
    due_date = data.get('due_date') or (
        timezone.localdate(created_at) + timedelta(days=get_ledger_setting('BILL_DUE_DAYS'))
    )
    initial_payment = data.get('initial_payment')

    try:
        with transaction.atomic():
            bill = Bill.objects.create(
                customer=customer,
                line_items=line_items,
                tax_rate=tax_rate,
                subtotal=subtotal,
                tax_amount=calculate_gst(subtotal, tax_rate / Decimal('100')),
                due_date=due_date,
                notes=data.get('notes', ''),
                created_at=created_at,
                created_by=request.user,
            )
            recorded = None
            if initial_payment:
                recorded = PaymentRecorder().record(
                    customer, initial_payment,
                    mode=MODE_SINGLE,
                    bill=bill,
                    payment_method=data['payment_method'],
                    transaction_ref=data.get('transaction_ref', ''),
                    notes='Initial payment',
                    paid_at=created_at,
                    created_by=request.user,
                )
    except LedgerError as e:
        return ledger_error_response(e)

    bill.refresh_from_db()
    create_audit_log(
        request=request,
        action='bill_create',
        model_name='Bill',
        object_id=str(bill.id),
        object_name=customer.full_name,
        object_reference=bill.bill_number,
        changes={
            'total_amount': str(bill.total_amount),
            'tax_rate': str(tax_rate),
            'description': f"Offline bill {bill.bill_number} for ₹{format_currency(bill.total_amount)}",
        },
    )
    if recorded:
        audit_recorded_payments(request, recorded, description_prefix='Initial payment')

    logger.info(f"Offline bill {bill.bill_number} created for customer {customer.id} by {request.user.username}")
    return Response(BillDetailSerializer(bill).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def bill_detail(request, pk):
    """Bill with its payments and advisory overdue interest"""
    bill = get_object_or_404(scoped_bills(request.user).prefetch_related('payments'), pk=pk)
    return Response(BillDetailSerializer(bill).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def bill_interest(request, pk):
    """Advisory overdue interest for a bill; nothing is stored"""
    bill = get_object_or_404(scoped_bills(request.user), pk=pk)
    interest = calculate_overdue_interest(bill.balance_due, bill.created_at, timezone.now(), bill.status)
    return Response({
        'bill_id': bill.id,
        'bill_number': bill.bill_number,
        'balance_due': str(bill.balance_due),
        'interest': interest.as_dict() if interest else None,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def bill_payments(request, pk):
    """Payments recorded against a bill"""
    bill = get_object_or_404(scoped_bills(request.user), pk=pk)
    payments = bill.payments.select_related('customer', 'created_by').order_by('created_at', 'id')
    return Response({
        'bill_id': bill.id,
        'bill_number': bill.bill_number,
        'total_amount': str(bill.total_amount),
        'paid_amount': str(bill.paid_amount),
        'balance_due': str(bill.balance_due),
        'status': bill.status,
        'payments': PaymentSerializer(payments, many=True).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def payment_record(request):
    """Record a payment against one bill or across the customer's bills oldest first"""
    if not is_staff_member(request.user):
        return Response({'error': 'You do not have permission to record payments'}, status=status.HTTP_403_FORBIDDEN)

    serializer = RecordPaymentSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    try:
        recorded = PaymentRecorder().record(
            data['customer'], data['amount'],
            mode=data['mode'],
            bill=data.get('bill'),
            payment_method=data['payment_method'],
            transaction_ref=data.get('transaction_ref', ''),
            notes=data.get('notes', ''),
            paid_at=data.get('payment_date'),
            created_by=request.user,
        )
    except LedgerError as e:
        logger.warning(f"Payment for customer {data['customer'].id} not recorded: {str(e)}")
        return ledger_error_response(e)

    audit_recorded_payments(request, recorded)
    return Response(recorded_payment_data(recorded), status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def payment_preview(request):
    """Show how an amount would be spread over outstanding bills without writing anything"""
    serializer = PaymentPreviewSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    if is_staff_member(request.user):
        customer = serializer.validated_data.get('customer')
        if customer is None:
            return Response({'customer': ['This field is required.']}, status=status.HTTP_400_BAD_REQUEST)
    else:
        customer = get_customer_profile(request.user)
        if customer is None:
            return Response({'error': 'No customer profile linked to this login'}, status=status.HTTP_403_FORBIDDEN)

    bills = list(
        Bill.objects.filter(customer=customer, balance_due__gt=0).order_by('created_at', 'id')
    )
    try:
        result = allocate_payment(serializer.validated_data['amount'], bills)
    except LedgerError as e:
        return ledger_error_response(e)

    bills_by_id = {bill.id: bill for bill in bills}
    total_outstanding = sum((bill.balance_due for bill in bills), ZERO)
    return Response({
        'customer': customer.id,
        'amount': str(serializer.validated_data['amount']),
        'total_outstanding': str(total_outstanding),
        'allocations': [
            {
                'bill_id': a.bill_id,
                'bill_number': bills_by_id[a.bill_id].bill_number,
                'balance_before': str(bills_by_id[a.bill_id].balance_due),
                'amount': str(a.amount_applied),
                'balance_after': str(bills_by_id[a.bill_id].balance_due - a.amount_applied),
            }
            for a in result.allocations
        ],
        'remainder': str(result.remainder),
        'no_outstanding_bills': result.is_empty,
        'overpayment_policy': get_ledger_setting('OVERPAYMENT_POLICY'),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def payment_list(request):
    """Payment history"""
    filterset = PaymentFilter(request.query_params, queryset=scoped_payments(request.user))
    queryset = filterset.qs.order_by('-created_at', '-id')
    return Response(paginated_response_data(request, queryset, PaymentSerializer))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def payment_request_list_create(request):
    """Customers submit payment claims; staff list them for review"""
    if request.method == 'GET':
        queryset = PaymentRequest.objects.select_related('customer', 'reviewed_by').prefetch_related('bills')
        if not is_staff_member(request.user):
            queryset = queryset.filter(customer__user=request.user)
        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        return Response(PaymentRequestSerializer(queryset.order_by('-created_at'), many=True).data)

    customer = get_customer_profile(request.user)
    if customer is None:
        return Response({'error': 'Only customers can submit payment requests'}, status=status.HTTP_403_FORBIDDEN)

    serializer = PaymentRequestCreateSerializer(data=request.data, context={'customer': customer})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    with transaction.atomic():
        payment_request = PaymentRequest.objects.create(
            customer=customer,
            amount=data['amount'],
            payment_method=data['payment_method'],
            transaction_ref=data.get('transaction_ref', ''),
            notes=data.get('notes', ''),
        )
        payment_request.bills.set(data['bills'])

    create_audit_log(
        request=request,
        action='payment_request_create',
        model_name='PaymentRequest',
        object_id=str(payment_request.id),
        object_name=customer.full_name,
        changes={
            'amount': str(payment_request.amount),
            'bills': [bill.bill_number for bill in data['bills']],
        },
    )
    logger.info(f"Payment request {payment_request.id} of {payment_request.amount} submitted by customer {customer.id}")
    return Response(PaymentRequestSerializer(payment_request).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def payment_request_review(request, pk):
    """Approve (records the payment) or reject a pending payment request"""
    if not is_staff_member(request.user):
        return Response({'error': 'You do not have permission to review payment requests'}, status=status.HTTP_403_FORBIDDEN)

    serializer = PaymentRequestReviewSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    action = serializer.validated_data['action']

    get_object_or_404(PaymentRequest, pk=pk)
    recorded = None
    try:
        with transaction.atomic():
            payment_request = PaymentRequest.objects.select_for_update().select_related('customer').get(pk=pk)
            if payment_request.status != PaymentRequest.STATUS_PENDING:
                return Response(
                    {'error': f'Payment request is already {payment_request.status}'},
                    status=status.HTTP_400_BAD_REQUEST
                )

            if action == 'approve':
                recorded = PaymentRecorder().record(
                    payment_request.customer, payment_request.amount,
                    mode=MODE_BULK,
                    bills=list(payment_request.bills.all()),
                    payment_method=payment_request.payment_method,
                    transaction_ref=payment_request.transaction_ref,
                    notes=f"Payment request {payment_request.id}",
                    created_by=request.user,
                )
                payment_request.status = PaymentRequest.STATUS_APPROVED
            else:
                payment_request.status = PaymentRequest.STATUS_REJECTED

            payment_request.reviewed_at = timezone.now()
            payment_request.reviewed_by = request.user
            payment_request.review_notes = serializer.validated_data.get('notes', '')
            payment_request.save(update_fields=['status', 'reviewed_at', 'reviewed_by', 'review_notes'])
    except LedgerError as e:
        logger.warning(f"Payment request {pk} could not be approved: {str(e)}")
        return ledger_error_response(e)

    create_audit_log(
        request=request,
        action=f"payment_request_{'approve' if action == 'approve' else 'reject'}",
        model_name='PaymentRequest',
        object_id=str(payment_request.id),
        object_name=payment_request.customer.full_name,
        changes={'amount': str(payment_request.amount), 'status': payment_request.status},
    )
    if recorded:
        audit_recorded_payments(request, recorded)

    response_data = PaymentRequestSerializer(payment_request).data
    if recorded:
        response_data['payment'] = recorded_payment_data(recorded)
    return Response(response_data)
