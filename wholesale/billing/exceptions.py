"""Ledger errors raised by the allocator and the payment recorder.

Views catch ``LedgerError`` and answer ``{'error': str(exc)}`` with the
exception's ``status_code``.
"""
from rest_framework import status


class LedgerError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Ledger operation failed'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)


class InvalidAmount(LedgerError):
    default_message = 'Payment amount must be a positive number'


class NoOutstandingBills(LedgerError):
    default_message = 'No outstanding bills for this customer'


class Overpayment(LedgerError):
    default_message = 'Payment exceeds the outstanding balance'

    def __init__(self, outstanding, excess):
        self.outstanding = outstanding
        self.excess = excess
        super().__init__(
            f"Payment exceeds the outstanding balance of {outstanding} by {excess}"
        )


class PersistenceConflict(LedgerError):
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Bill was modified concurrently, please retry'


class PersistencePartialFailure(LedgerError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = 'Payment not recorded, please retry'
