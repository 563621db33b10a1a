"""Advisory late-payment interest on overdue bills.

A bill gets a grace period (100 days by default) from issuance; after that
each started week adds a flat percentage of the balance. The figures are
shown to users and never written to the ledger.
"""
import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from wholesale.core.utils import get_ledger_setting
from .finance import to_decimal, CENTS, STATUS_PAID, ZERO


@dataclass(frozen=True)
class OverdueInterest:
    is_overdue: bool
    days_elapsed: int
    days_remaining_in_grace: Optional[int]
    days_over_grace: Optional[int]
    weeks_over_grace: int
    interest_rate_percent: Decimal
    interest_amount: Decimal
    new_total_due: Decimal

    def as_dict(self):
        return {
            'is_overdue': self.is_overdue,
            'days_elapsed': self.days_elapsed,
            'days_remaining_in_grace': self.days_remaining_in_grace,
            'days_over_grace': self.days_over_grace,
            'weeks_over_grace': self.weeks_over_grace,
            'interest_rate_percent': str(self.interest_rate_percent),
            'interest_amount': str(self.interest_amount),
            'new_total_due': str(self.new_total_due),
        }


def calculate_overdue_interest(balance_due, bill_created_at, now, status,
                               grace_days=None, weekly_rate_percent=None) -> Optional[OverdueInterest]:
    """Interest owed on a bill as of ``now``, or None when nothing is due"""
    balance = to_decimal(balance_due)
    if status == STATUS_PAID or balance <= 0:
        return None

    if grace_days is None:
        grace_days = get_ledger_setting('INTEREST_GRACE_DAYS')
    if weekly_rate_percent is None:
        weekly_rate_percent = get_ledger_setting('INTEREST_WEEKLY_RATE_PERCENT')
    weekly_rate_percent = to_decimal(weekly_rate_percent)

    days_elapsed = math.floor((now - bill_created_at).total_seconds() / 86400)
    days_over_grace = days_elapsed - grace_days

    if days_over_grace <= 0:
        return OverdueInterest(
            is_overdue=False,
            days_elapsed=days_elapsed,
            days_remaining_in_grace=grace_days - days_elapsed,
            days_over_grace=None,
            weeks_over_grace=0,
            interest_rate_percent=Decimal('0'),
            interest_amount=ZERO,
            new_total_due=balance,
        )

    weeks = math.ceil(days_over_grace / 7)
    rate_percent = weekly_rate_percent * weeks
    interest_amount = (balance * rate_percent / Decimal('100')).quantize(CENTS, rounding=ROUND_HALF_UP)
    return OverdueInterest(
        is_overdue=True,
        days_elapsed=days_elapsed,
        days_remaining_in_grace=None,
        days_over_grace=days_over_grace,
        weeks_over_grace=weeks,
        interest_rate_percent=rate_percent,
        interest_amount=interest_amount,
        new_total_due=balance + interest_amount,
    )
