"""Money helpers shared by bills, orders and payments.

All amounts are ``Decimal`` rounded half-up to paise (two places).
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from wholesale.core.utils import get_ledger_setting

ZERO = Decimal('0.00')
CENTS = Decimal('0.01')

STATUS_UNPAID = 'unpaid'
STATUS_PARTIAL = 'partial'
STATUS_PAID = 'paid'


def to_decimal(value):
    """Convert user input to a finite Decimal; raises ValueError otherwise.

    Floats go through ``str`` so 0.1 stays 0.1 and not its binary expansion.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a monetary amount: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValueError(f"Not a monetary amount: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    return result


def quantize_money(value):
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def balance_due(total_amount, paid_amount):
    """Outstanding amount, never negative"""
    return max(ZERO, to_decimal(total_amount) - to_decimal(paid_amount))


def bill_status(paid_amount, total_amount):
    """Status is a pure function of paid and total; nothing else feeds it"""
    paid = to_decimal(paid_amount)
    if paid <= 0:
        return STATUS_UNPAID
    if balance_due(total_amount, paid) == 0:
        return STATUS_PAID
    return STATUS_PARTIAL


def calculate_gst(subtotal, rate=None):
    if rate is None:
        rate = get_ledger_setting('GST_RATE')
    return quantize_money(to_decimal(subtotal) * to_decimal(rate))


def calculate_total_with_gst(subtotal, rate=None):
    return quantize_money(to_decimal(subtotal) + calculate_gst(subtotal, rate))


def format_currency(amount):
    """Indian digit grouping: 1234567.89 -> '12,34,567.89', 1000 -> '1,000'"""
    value = quantize_money(amount)
    sign = '-' if value < 0 else ''
    integer_part, _, fraction = f"{abs(value):.2f}".partition('.')
    fraction = fraction.rstrip('0')

    if len(integer_part) > 3:
        head, tail = integer_part[:-3], integer_part[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        integer_part = ','.join(groups + [tail])

    return f"{sign}{integer_part}.{fraction}" if fraction else f"{sign}{integer_part}"
