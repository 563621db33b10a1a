"""Records a payment event against a customer's bills.

One call reads the payable bills under row locks, runs the FIFO allocator and
writes one ``Payment`` per allocation together with the matching bill update,
all inside a single transaction. Bill updates are compare-and-set on
``Bill.version``; a lost race rolls the whole batch back and the full
read-allocate-write cycle is retried.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from wholesale.core.model_cache import invalidate_ledger_caches
from wholesale.core.utils import get_ledger_setting
from .allocation import Allocation, allocate_payment, validate_amount
from .exceptions import (
    InvalidAmount, LedgerError, NoOutstandingBills, Overpayment, PersistenceConflict, PersistencePartialFailure,
)
from .finance import balance_due, bill_status, quantize_money, ZERO
from .models import Bill, Payment

logger = logging.getLogger(__name__)

MODE_BULK = 'bulk'
MODE_SINGLE = 'single'
MODES = (MODE_BULK, MODE_SINGLE)

OVERPAYMENT_REJECT = 'reject'
OVERPAYMENT_REPORT = 'report'


@dataclass(frozen=True)
class RecordedPayment:
    allocations: Tuple[Allocation, ...]
    payments: List[Payment]
    remainder: Decimal
    total_amount: Decimal

    @property
    def allocated_count(self) -> int:
        return len(self.allocations)


class PaymentRecorder:
    def __init__(self, max_attempts: Optional[int] = None, overpayment_policy: Optional[str] = None):
        if max_attempts is None:
            max_attempts = get_ledger_setting('PAYMENT_MAX_ATTEMPTS')
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.overpayment_policy = overpayment_policy or get_ledger_setting('OVERPAYMENT_POLICY')
        if self.overpayment_policy not in (OVERPAYMENT_REJECT, OVERPAYMENT_REPORT):
            raise ValueError(f"Unknown overpayment policy: {self.overpayment_policy}")

    def record(self, customer, amount, mode=MODE_BULK, bill=None, bills=None,
               payment_method='upi', transaction_ref='', notes='', paid_at=None,
               created_by=None) -> RecordedPayment:
        """Record ``amount`` for ``customer``.

        ``mode='single'`` pays only ``bill``; ``mode='bulk'`` spreads the
        amount over every outstanding bill oldest first, or over ``bills``
        when a subset is given.
        """
        amount = validate_amount(amount)
        # Bills and payments are stored in whole paise
        if amount != quantize_money(amount):
            raise InvalidAmount(f"Payment amount must have at most 2 decimal places: {amount}")
        if mode not in MODES:
            raise LedgerError("mode must be 'single' or 'bulk'")
        if mode == MODE_SINGLE and bill is None:
            raise LedgerError('A bill is required for single mode')

        bill_ids = None
        if mode == MODE_SINGLE:
            bill_ids = [getattr(bill, 'pk', bill)]
        elif bills is not None:
            bill_ids = [getattr(b, 'pk', b) for b in bills]

        attempt = 0
        while True:
            attempt += 1
            try:
                result = self._record_once(
                    customer, amount, mode, bill_ids,
                    payment_method=payment_method,
                    transaction_ref=transaction_ref or '',
                    notes=notes or '',
                    paid_at=paid_at or timezone.now(),
                    created_by=created_by,
                )
            except PersistenceConflict:
                if attempt >= self.max_attempts:
                    logger.error(f"Payment for customer {customer.id} abandoned after {attempt} conflicting attempts")
                    raise
                logger.warning(f"Bill version conflict recording payment for customer {customer.id}, retrying (attempt {attempt})")
                continue
            break

        invalidate_ledger_caches()
        logger.info(
            f"Recorded {mode} payment of {amount} for customer {customer.id}: "
            f"{result.allocated_count} allocation(s), remainder {result.remainder}"
        )
        return result

    def _record_once(self, customer, amount, mode, bill_ids, payment_method,
                     transaction_ref, notes, paid_at, created_by) -> RecordedPayment:
        try:
            with transaction.atomic():
                outstanding = self._load_outstanding_bills(customer, bill_ids)
                if not outstanding:
                    if mode == MODE_SINGLE:
                        raise NoOutstandingBills('Bill not found or not payable')
                    raise NoOutstandingBills()

                result = allocate_payment(amount, outstanding)
                if result.remainder > 0 and self.overpayment_policy == OVERPAYMENT_REJECT:
                    total_outstanding = sum((b.balance_due for b in outstanding), ZERO)
                    raise Overpayment(total_outstanding, result.remainder)

                if mode == MODE_BULK:
                    payment_notes = f"Bulk payment: {notes}".rstrip()
                else:
                    payment_notes = notes

                bills_by_id = {b.id: b for b in outstanding}
                payments = []
                for allocation in result.allocations:
                    target = bills_by_id[allocation.bill_id]
                    payments.append(Payment.objects.create(
                        bill=target,
                        customer=customer,
                        amount=allocation.amount_applied,
                        payment_method=payment_method,
                        transaction_ref=transaction_ref,
                        notes=payment_notes,
                        created_at=paid_at,
                        created_by=created_by,
                    ))
                    if not self._update_bill(target, allocation.amount_applied):
                        raise PersistenceConflict(f"Bill {target.bill_number} was modified concurrently")
        except DatabaseError as exc:
            logger.error(f"Database error recording payment for customer {customer.id}: {str(exc)}", exc_info=True)
            raise PersistencePartialFailure() from exc

        return RecordedPayment(
            allocations=result.allocations,
            payments=payments,
            remainder=result.remainder,
            total_amount=amount,
        )

    def _load_outstanding_bills(self, customer, bill_ids=None):
        queryset = Bill.objects.select_for_update().filter(customer=customer, balance_due__gt=0)
        if bill_ids is not None:
            queryset = queryset.filter(pk__in=bill_ids)
        return list(queryset.order_by('created_at', 'id'))

    def _update_bill(self, bill, applied) -> bool:
        """Compare-and-set on version; False when another writer got there first"""
        new_paid = bill.paid_amount + applied
        updated = Bill.objects.filter(pk=bill.pk, version=bill.version).update(
            paid_amount=new_paid,
            balance_due=balance_due(bill.total_amount, new_paid),
            status=bill_status(new_paid, bill.total_amount),
            version=F('version') + 1,
            updated_at=timezone.now(),
        )
        return updated == 1
