"""Utility functions for audit logging, roles and ledger settings"""
import logging
from decimal import Decimal

from django.conf import settings

from .models import AuditLog

logger = logging.getLogger(__name__)

LEDGER_DEFAULTS = {
    'GST_RATE': Decimal('0.05'),
    'INTEREST_GRACE_DAYS': 100,
    'INTEREST_WEEKLY_RATE_PERCENT': Decimal('1'),
    'DEFAULT_CREDIT_LIMIT': Decimal('50000'),
    'BILL_DUE_DAYS': 30,
    'PAYMENT_MAX_ATTEMPTS': 3,
    'OVERPAYMENT_POLICY': 'reject',
}


def get_ledger_setting(name):
    """Read a key from settings.LEDGER, falling back to the built-in default"""
    overrides = getattr(settings, 'LEDGER', None) or {}
    if name in overrides:
        return overrides[name]
    return LEDGER_DEFAULTS[name]


def is_admin_user(user):
    """True for users with the admin role and for superusers"""
    if not user or not user.is_authenticated:
        return False
    return bool(getattr(user, 'is_admin', False))


def is_staff_member(user):
    """Admins and accountants: may read every customer's billing data"""
    if not user or not user.is_authenticated:
        return False
    return is_admin_user(user) or getattr(user, 'is_accountant', False)


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, object_reference=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (bill_create, payment_add, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object (e.g., customer name, bill number)
        object_reference: Reference identifier (e.g., bill number, order number)
    """
    try:
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user

        ip_address = get_client_ip(request) if request else None

        if not action or not model_name or not object_id:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
            return None

        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            object_reference=object_reference,
            changes=changes or {},
            ip_address=ip_address
        )
    except Exception as e:
        # Audit logging must never fail the main operation
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def paginated_response_data(request, queryset, serializer_class, default_limit=50, context=None):
    """Page a queryset with django's Paginator (?page=&limit=) and serialize the page"""
    from django.core.paginator import Paginator

    try:
        page = max(int(request.query_params.get('page', 1)), 1)
        limit = min(max(int(request.query_params.get('limit', default_limit)), 1), 500)
    except (TypeError, ValueError):
        page, limit = 1, default_limit

    paginator = Paginator(queryset, limit)
    page_obj = paginator.get_page(page)
    serializer = serializer_class(page_obj, many=True, context=context or {'request': request})
    return {
        'results': serializer.data,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page_obj.number,
        'page_size': limit,
        'total_pages': paginator.num_pages,
    }


def get_customer_profile(user):
    """Customer profile linked to a login, or None for staff and unlinked users"""
    if not user or not user.is_authenticated:
        return None
    return getattr(user, 'customer_profile', None)
