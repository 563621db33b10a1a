"""FIFO allocation of a payment across a customer's outstanding bills.

Pure functions over plain values: no database access and no mutation of the
bills passed in.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Iterable, Optional, Tuple

from .exceptions import InvalidAmount
from .finance import to_decimal, ZERO


@dataclass(frozen=True)
class Allocation:
    bill_id: int
    amount_applied: Decimal


@dataclass(frozen=True)
class AllocationResult:
    allocations: Tuple[Allocation, ...]
    remainder: Decimal

    @property
    def is_empty(self) -> bool:
        return not self.allocations

    @property
    def total_applied(self) -> Decimal:
        return sum((a.amount_applied for a in self.allocations), ZERO)


def validate_amount(amount) -> Decimal:
    try:
        value = to_decimal(amount)
    except ValueError:
        raise InvalidAmount(f"Invalid payment amount: {amount!r}")
    if value <= 0:
        raise InvalidAmount()
    return value


def allocate_payment(amount, bills: Iterable, order_by: Optional[Callable] = None) -> AllocationResult:
    """Apply ``amount`` to ``bills`` oldest first.

    ``bills`` must already be in oldest-first order unless ``order_by`` is
    given. Each bill needs ``id`` and ``balance_due``; bills with nothing due
    are skipped. Whatever cannot be applied comes back as ``remainder``.
    """
    remaining = validate_amount(amount)
    ordered = sorted(bills, key=order_by) if order_by is not None else list(bills)

    allocations = []
    for bill in ordered:
        if remaining <= 0:
            break
        due = to_decimal(bill.balance_due)
        if due <= 0:
            continue
        applied = min(remaining, due)
        allocations.append(Allocation(bill_id=bill.id, amount_applied=applied))
        remaining -= applied

    return AllocationResult(allocations=tuple(allocations), remainder=remaining)
