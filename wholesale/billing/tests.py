"""
Test suite for the billing module
Tests: FIFO allocation, overdue interest, bill status, payment recording and the billing API
"""
from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from io import StringIO
from types import SimpleNamespace
from unittest import mock

from django.core.management import call_command
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework import status

from wholesale.core.models import AuditLog
from wholesale.core.test_utils import TestDataFactory, APITestCase
from wholesale.billing.allocation import allocate_payment
from wholesale.billing.exceptions import (
    InvalidAmount, LedgerError, NoOutstandingBills, Overpayment, PersistenceConflict, PersistencePartialFailure,
)
from wholesale.billing.finance import (
    bill_status, balance_due, calculate_gst, calculate_total_with_gst, format_currency, to_decimal,
)
from wholesale.billing.interest import calculate_overdue_interest
from wholesale.billing.models import Bill, Payment, PaymentRequest
from wholesale.billing.recorder import PaymentRecorder


def bill(bill_id, due):
    return SimpleNamespace(id=bill_id, balance_due=Decimal(str(due)))


class AllocatePaymentTests(SimpleTestCase):
    """Test the FIFO allocator on plain values"""

    def assertConserved(self, amount, result):
        self.assertEqual(result.total_applied + result.remainder, Decimal(str(amount)))

    def test_spills_into_next_bill(self):
        result = allocate_payment(Decimal('120'), [bill(1, 100), bill(2, 50)])
        self.assertEqual(
            [(a.bill_id, a.amount_applied) for a in result.allocations],
            [(1, Decimal('100')), (2, Decimal('20'))]
        )
        self.assertEqual(result.remainder, Decimal('0'))
        self.assertConserved(120, result)

    def test_exact_coverage_of_all_bills(self):
        result = allocate_payment(Decimal('150'), [bill(1, 100), bill(2, 50)])
        self.assertEqual([a.amount_applied for a in result.allocations], [Decimal('100'), Decimal('50')])
        self.assertEqual(result.remainder, Decimal('0'))

    def test_partial_payment_of_single_bill(self):
        result = allocate_payment(Decimal('40'), [bill(1, 100)])
        self.assertEqual(len(result.allocations), 1)
        self.assertEqual(result.allocations[0].amount_applied, Decimal('40'))
        self.assertEqual(result.remainder, Decimal('0'))

    def test_overpayment_leaves_remainder(self):
        result = allocate_payment(Decimal('120'), [bill(1, 100)])
        self.assertEqual(result.allocations[0].amount_applied, Decimal('100'))
        self.assertEqual(result.remainder, Decimal('20'))
        self.assertConserved(120, result)

    def test_no_bills_returns_whole_amount(self):
        result = allocate_payment(Decimal('50'), [])
        self.assertTrue(result.is_empty)
        self.assertEqual(result.allocations, ())
        self.assertEqual(result.remainder, Decimal('50'))

    def test_oldest_bill_filled_first(self):
        result = allocate_payment(Decimal('30'), [bill(7, 100), bill(3, 100)])
        self.assertEqual([a.bill_id for a in result.allocations], [7])

    def test_settled_bills_are_skipped(self):
        result = allocate_payment(Decimal('30'), [bill(1, 0), bill(2, -5), bill(3, 100)])
        self.assertEqual([a.bill_id for a in result.allocations], [3])

    def test_order_by_sorts_before_allocating(self):
        bills = [
            SimpleNamespace(id=1, balance_due=Decimal('100'), created_at=2),
            SimpleNamespace(id=2, balance_due=Decimal('100'), created_at=1),
        ]
        result = allocate_payment(Decimal('50'), bills, order_by=lambda b: b.created_at)
        self.assertEqual(result.allocations[0].bill_id, 2)

    def test_no_allocation_exceeds_balance(self):
        bills = [bill(1, '10.10'), bill(2, '0.05'), bill(3, '999.99'), bill(4, '3.33')]
        for amount in ['0.01', '10.10', '10.16', '500', '1013.47', '5000']:
            result = allocate_payment(Decimal(amount), bills)
            dues = {b.id: b.balance_due for b in bills}
            for allocation in result.allocations:
                self.assertGreater(allocation.amount_applied, 0)
                self.assertLessEqual(allocation.amount_applied, dues[allocation.bill_id])
            self.assertConserved(amount, result)

    def test_float_amounts_are_exact(self):
        result = allocate_payment(0.3, [bill(1, '0.1'), bill(2, '0.2')])
        self.assertEqual(result.remainder, Decimal('0'))
        self.assertEqual(result.allocations[1].amount_applied, Decimal('0.2'))

    def test_inputs_are_not_mutated(self):
        bills = [bill(1, 100), bill(2, 50)]
        allocate_payment(Decimal('120'), bills)
        self.assertEqual([b.balance_due for b in bills], [Decimal('100'), Decimal('50')])

    def test_invalid_amounts_rejected(self):
        for amount in [0, Decimal('-1'), 'abc', Decimal('NaN'), float('inf'), None]:
            with self.assertRaises(InvalidAmount):
                allocate_payment(amount, [bill(1, 100)])


class OverdueInterestTests(SimpleTestCase):
    """Test advisory interest around the 100 day grace period"""

    def setUp(self):
        self.created = datetime(2024, 1, 1, 10, 0, tzinfo=dt_timezone.utc)

    def at(self, days, hours=0):
        return self.created + timedelta(days=days, hours=hours)

    def test_last_day_of_grace_is_not_overdue(self):
        interest = calculate_overdue_interest(Decimal('1000'), self.created, self.at(100), 'unpaid')
        self.assertFalse(interest.is_overdue)
        self.assertEqual(interest.days_elapsed, 100)
        self.assertEqual(interest.days_remaining_in_grace, 0)
        self.assertIsNone(interest.days_over_grace)
        self.assertEqual(interest.weeks_over_grace, 0)
        self.assertEqual(interest.interest_amount, Decimal('0.00'))
        self.assertEqual(interest.new_total_due, Decimal('1000'))

    def test_first_day_after_grace_charges_one_week(self):
        interest = calculate_overdue_interest(Decimal('1000'), self.created, self.at(101), 'partial')
        self.assertTrue(interest.is_overdue)
        self.assertEqual(interest.days_over_grace, 1)
        self.assertEqual(interest.weeks_over_grace, 1)
        self.assertEqual(interest.interest_rate_percent, Decimal('1'))
        self.assertEqual(interest.interest_amount, Decimal('10.00'))
        self.assertEqual(interest.new_total_due, Decimal('1010.00'))
        self.assertIsNone(interest.days_remaining_in_grace)

    def test_started_weeks_are_rounded_up(self):
        interest = calculate_overdue_interest(Decimal('1000'), self.created, self.at(108), 'unpaid')
        self.assertEqual(interest.days_over_grace, 8)
        self.assertEqual(interest.weeks_over_grace, 2)
        self.assertEqual(interest.interest_rate_percent, Decimal('2'))
        self.assertEqual(interest.interest_amount, Decimal('20.00'))

    def test_partial_days_are_floored(self):
        interest = calculate_overdue_interest(Decimal('1000'), self.created, self.at(100, hours=23), 'unpaid')
        self.assertFalse(interest.is_overdue)
        self.assertEqual(interest.days_elapsed, 100)

    def test_days_remaining_in_grace(self):
        interest = calculate_overdue_interest(Decimal('1000'), self.created, self.at(10), 'unpaid')
        self.assertEqual(interest.days_remaining_in_grace, 90)

    def test_interest_rounded_half_up_to_cents(self):
        interest = calculate_overdue_interest(Decimal('100.50'), self.created, self.at(101), 'unpaid')
        self.assertEqual(interest.interest_amount, Decimal('1.01'))

    def test_nothing_for_paid_or_settled_bills(self):
        self.assertIsNone(calculate_overdue_interest(Decimal('1000'), self.created, self.at(200), 'paid'))
        self.assertIsNone(calculate_overdue_interest(Decimal('0'), self.created, self.at(200), 'partial'))

    def test_as_dict_is_json_ready(self):
        data = calculate_overdue_interest(Decimal('1000'), self.created, self.at(101), 'unpaid').as_dict()
        self.assertEqual(data['interest_amount'], '10.00')
        self.assertTrue(data['is_overdue'])


class FinanceHelperTests(SimpleTestCase):
    """Test status mapping, GST and currency formatting"""

    def test_bill_status_mapping(self):
        self.assertEqual(bill_status(Decimal('0'), Decimal('100')), 'unpaid')
        self.assertEqual(bill_status(Decimal('40'), Decimal('100')), 'partial')
        self.assertEqual(bill_status(Decimal('100'), Decimal('100')), 'paid')
        self.assertEqual(bill_status(Decimal('120'), Decimal('100')), 'paid')
        self.assertEqual(bill_status(Decimal('0'), Decimal('0')), 'unpaid')

    def test_bill_status_is_idempotent(self):
        for paid, total in [('0', '100'), ('40', '100'), ('100', '100')]:
            first = bill_status(Decimal(paid), Decimal(total))
            self.assertEqual(bill_status(Decimal(paid), Decimal(total)), first)

    def test_balance_never_negative(self):
        self.assertEqual(balance_due(Decimal('100'), Decimal('40')), Decimal('60'))
        self.assertEqual(balance_due(Decimal('100'), Decimal('150')), Decimal('0.00'))

    def test_gst_at_five_percent(self):
        self.assertEqual(calculate_gst(Decimal('100')), Decimal('5.00'))
        self.assertEqual(calculate_gst(Decimal('1000')), Decimal('50.00'))
        self.assertEqual(calculate_total_with_gst(Decimal('500')), Decimal('525.00'))

    def test_gst_rounds_half_up(self):
        self.assertEqual(calculate_gst(Decimal('150.50')), Decimal('7.53'))
        self.assertEqual(calculate_total_with_gst(Decimal('150.50')), Decimal('158.03'))

    def test_gst_with_explicit_rate(self):
        self.assertEqual(calculate_gst(Decimal('1000'), Decimal('0.18')), Decimal('180.00'))

    def test_indian_currency_grouping(self):
        self.assertEqual(format_currency(1000), '1,000')
        self.assertEqual(format_currency(100000), '1,00,000')
        self.assertEqual(format_currency(Decimal('1234567.89')), '12,34,567.89')
        self.assertEqual(format_currency(999), '999')
        self.assertEqual(format_currency(Decimal('1000.50')), '1,000.5')
        self.assertEqual(format_currency(-1500), '-1,500')

    def test_to_decimal_rejects_non_numbers(self):
        self.assertEqual(to_decimal(0.1), Decimal('0.1'))
        for value in [None, True, 'ten', 'NaN', float('inf')]:
            with self.assertRaises(ValueError):
                to_decimal(value)


class BillModelTests(TestCase):
    """Test derived bill fields"""

    def setUp(self):
        self.customer = TestDataFactory.create_customer()

    def test_partial_payment_leaves_balance(self):
        b = TestDataFactory.create_bill(self.customer, total='100', paid='40')
        self.assertEqual(b.balance_due, Decimal('60.00'))
        self.assertEqual(b.status, 'partial')

    def test_total_is_subtotal_plus_tax(self):
        b = TestDataFactory.create_bill(self.customer, total='105', tax_amount='5')
        self.assertEqual(b.subtotal, Decimal('100.00'))
        self.assertEqual(b.total_amount, Decimal('105.00'))
        self.assertEqual(b.status, 'unpaid')

    def test_status_recomputed_on_every_save(self):
        b = TestDataFactory.create_bill(self.customer, total='100')
        b.status = 'paid'
        b.save()
        b.refresh_from_db()
        self.assertEqual(b.status, 'unpaid')
        b.paid_amount = Decimal('100')
        b.save(update_fields=['paid_amount'])
        b.refresh_from_db()
        self.assertEqual(b.status, 'paid')
        self.assertEqual(b.balance_due, Decimal('0.00'))

    def test_bill_number_format(self):
        b = TestDataFactory.create_bill(self.customer)
        self.assertRegex(b.bill_number, r'^INV-\d{8}-[0-9A-F]{8}$')
        self.assertEqual(str(b), b.bill_number)


class PaymentRecorderTests(TestCase):
    """Test atomic recording, retries and the over-payment policy"""

    def setUp(self):
        self.customer = TestDataFactory.create_customer()
        now = timezone.now()
        self.oldest = TestDataFactory.create_bill(self.customer, total='100', created_at=now - timedelta(days=3))
        self.middle = TestDataFactory.create_bill(self.customer, total='50', created_at=now - timedelta(days=2))
        self.newest = TestDataFactory.create_bill(self.customer, total='80', created_at=now - timedelta(days=1))

    def refresh(self):
        for b in (self.oldest, self.middle, self.newest):
            b.refresh_from_db()

    def test_bulk_payment_fills_oldest_first(self):
        result = PaymentRecorder().record(self.customer, Decimal('170'), payment_method='cash', notes='March dues')
        self.refresh()

        self.assertEqual(result.allocated_count, 3)
        self.assertEqual(result.remainder, Decimal('0'))
        self.assertEqual(self.oldest.status, 'paid')
        self.assertEqual(self.middle.status, 'paid')
        self.assertEqual(self.newest.status, 'partial')
        self.assertEqual(self.newest.balance_due, Decimal('60.00'))
        for b in (self.oldest, self.middle, self.newest):
            self.assertEqual(b.version, 1)
            self.assertEqual(sum(p.amount for p in b.payments.all()), b.paid_amount)
        self.assertTrue(all(p.notes == 'Bulk payment: March dues' for p in result.payments))

    def test_single_payment_only_touches_chosen_bill(self):
        result = PaymentRecorder().record(self.customer, Decimal('30'), mode='single', bill=self.newest)
        self.refresh()
        self.assertEqual(result.allocated_count, 1)
        self.assertEqual(self.newest.paid_amount, Decimal('30.00'))
        self.assertEqual(self.oldest.paid_amount, Decimal('0.00'))
        self.assertEqual(result.payments[0].notes, '')

    def test_single_mode_requires_bill(self):
        with self.assertRaises(LedgerError):
            PaymentRecorder().record(self.customer, Decimal('30'), mode='single')

    def test_single_mode_rejects_other_customers_bill(self):
        other = TestDataFactory.create_customer()
        other_bill = TestDataFactory.create_bill(other, total='100')
        with self.assertRaises(NoOutstandingBills):
            PaymentRecorder().record(self.customer, Decimal('30'), mode='single', bill=other_bill)

    def test_overpayment_rejected_without_writes(self):
        with self.assertRaises(Overpayment) as ctx:
            PaymentRecorder(overpayment_policy='reject').record(self.customer, Decimal('250'))
        self.assertEqual(ctx.exception.excess, Decimal('20'))
        self.assertEqual(ctx.exception.status_code, 400)
        self.refresh()
        self.assertEqual(Payment.objects.count(), 0)
        self.assertEqual(self.oldest.paid_amount, Decimal('0.00'))

    def test_overpayment_reported_when_configured(self):
        result = PaymentRecorder(overpayment_policy='report').record(self.customer, Decimal('250'))
        self.refresh()
        self.assertEqual(result.remainder, Decimal('20'))
        self.assertEqual(result.total_amount, Decimal('250'))
        self.assertEqual(Payment.objects.count(), 3)
        self.assertEqual(self.newest.status, 'paid')

    def test_payment_limited_to_given_bills(self):
        result = PaymentRecorder().record(self.customer, Decimal('60'), bills=[self.middle, self.newest])
        self.refresh()
        self.assertEqual([a.bill_id for a in result.allocations], [self.middle.id, self.newest.id])
        self.assertEqual(self.oldest.paid_amount, Decimal('0.00'))
        self.assertEqual(self.newest.paid_amount, Decimal('10.00'))

    def test_no_outstanding_bills(self):
        customer = TestDataFactory.create_customer()
        TestDataFactory.create_bill(customer, total='100', paid='100')
        with self.assertRaises(NoOutstandingBills):
            PaymentRecorder().record(customer, Decimal('10'))

    def test_invalid_amount_writes_nothing(self):
        for amount in [Decimal('0'), Decimal('-5'), 'abc']:
            with self.assertRaises(InvalidAmount):
                PaymentRecorder().record(self.customer, amount)
        self.assertEqual(Payment.objects.count(), 0)

    def test_fractions_of_a_paisa_rejected(self):
        for amount in [Decimal('100.004'), '0.001', Decimal('150.0050')]:
            with self.assertRaises(InvalidAmount):
                PaymentRecorder(overpayment_policy='report').record(self.customer, amount)
        self.refresh()
        self.assertEqual(Payment.objects.count(), 0)
        self.assertEqual(self.middle.paid_amount, Decimal('0.00'))
        self.assertEqual(self.middle.status, 'unpaid')

    def test_whole_paise_spill_keeps_stored_amounts_consistent(self):
        result = PaymentRecorder().record(self.customer, Decimal('100.01'))
        self.refresh()
        self.assertEqual([p.amount for p in result.payments], [Decimal('100.00'), Decimal('0.01')])
        self.assertTrue(all(p.amount > 0 for p in Payment.objects.all()))
        self.assertEqual(self.middle.paid_amount, Decimal('0.01'))
        self.assertEqual(self.middle.balance_due, Decimal('49.99'))
        self.assertEqual(self.middle.status, 'partial')

    def test_max_attempts_must_be_positive(self):
        with self.assertRaises(ValueError):
            PaymentRecorder(max_attempts=0)
        self.assertEqual(PaymentRecorder(max_attempts=1).max_attempts, 1)

    def test_version_conflict_retries_whole_cycle(self):
        original = PaymentRecorder._update_bill
        state = {'calls': 0}

        def flaky(recorder, target, applied):
            state['calls'] += 1
            if state['calls'] == 1:
                return False
            return original(recorder, target, applied)

        with mock.patch.object(PaymentRecorder, '_update_bill', autospec=True, side_effect=flaky):
            with self.assertLogs('wholesale.billing.recorder', level='WARNING'):
                result = PaymentRecorder().record(self.customer, Decimal('120'))

        self.refresh()
        self.assertEqual(result.allocated_count, 2)
        self.assertEqual(Payment.objects.count(), 2)
        self.assertEqual(self.oldest.paid_amount, Decimal('100.00'))
        self.assertEqual(self.middle.paid_amount, Decimal('20.00'))
        self.assertEqual(self.oldest.version, 1)

    def test_persistent_conflict_gives_up(self):
        with mock.patch.object(PaymentRecorder, '_update_bill', autospec=True, return_value=False) as update:
            with self.assertRaises(PersistenceConflict) as ctx:
                PaymentRecorder(max_attempts=2).record(self.customer, Decimal('120'))
        self.assertEqual(update.call_count, 2)
        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(Payment.objects.count(), 0)

    def test_database_error_rolls_back_batch(self):
        original = PaymentRecorder._update_bill
        state = {'calls': 0}

        def failing(recorder, target, applied):
            state['calls'] += 1
            if state['calls'] == 2:
                raise DatabaseError('connection lost')
            return original(recorder, target, applied)

        with mock.patch.object(PaymentRecorder, '_update_bill', autospec=True, side_effect=failing):
            with self.assertRaises(PersistencePartialFailure) as ctx:
                PaymentRecorder().record(self.customer, Decimal('120'))

        self.refresh()
        self.assertEqual(ctx.exception.status_code, 503)
        self.assertEqual(Payment.objects.count(), 0)
        self.assertEqual(self.oldest.paid_amount, Decimal('0.00'))
        self.assertEqual(self.oldest.version, 0)

    def test_back_dated_payment(self):
        paid_at = timezone.now() - timedelta(days=10)
        result = PaymentRecorder().record(self.customer, Decimal('10'), paid_at=paid_at)
        self.assertEqual(result.payments[0].created_at, paid_at)


class BillingAPITests(APITestCase):
    """Test billing endpoints and role scoping"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin()
        self.accountant = TestDataFactory.create_accountant()
        self.customer = TestDataFactory.create_customer()
        self.other_customer = TestDataFactory.create_customer()
        now = timezone.now()
        self.bill_a = TestDataFactory.create_bill(self.customer, total='100', created_at=now - timedelta(days=5))
        self.bill_b = TestDataFactory.create_bill(self.customer, total='50', created_at=now - timedelta(days=1))
        self.other_bill = TestDataFactory.create_bill(self.other_customer, total='300')

    def test_customer_sees_only_own_bills(self):
        self.client.authenticate_user(self.customer.user)
        response = self.client.get('/api/v1/bills/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

        response = self.client.get(f'/api/v1/bills/{self.other_bill.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_staff_bill_filters(self):
        self.client.authenticate_user(self.accountant)
        response = self.client.get('/api/v1/bills/', {'customer': self.other_customer.id})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/bills/', {'search': self.bill_a.bill_number})
        self.assertEqual(response.data['results'][0]['id'], self.bill_a.id)
        response = self.client.get('/api/v1/bills/', {'outstanding': 'true'})
        self.assertEqual(response.data['count'], 3)

    def test_record_bulk_payment(self):
        self.client.authenticate_user(self.accountant)
        response = self.client.post('/api/v1/payments/record/', {
            'customer': self.customer.id,
            'mode': 'bulk',
            'amount': '120.00',
            'payment_method': 'bank_transfer',
            'transaction_ref': 'NEFT001',
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['allocated_count'], 2)
        self.assertEqual(response.data['remainder'], '0.00')

        self.bill_a.refresh_from_db()
        self.bill_b.refresh_from_db()
        self.assertEqual(self.bill_a.status, 'paid')
        self.assertEqual(self.bill_b.balance_due, Decimal('30.00'))
        self.assertEqual(AuditLog.objects.filter(action='payment_add').count(), 2)

    def test_record_single_payment_on_other_customers_bill(self):
        self.client.authenticate_user(self.accountant)
        response = self.client.post('/api/v1/payments/record/', {
            'customer': self.customer.id,
            'mode': 'single',
            'bill': self.other_bill.id,
            'amount': '10',
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_overpayment_returns_400(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/payments/record/', {
            'customer': self.customer.id,
            'amount': '500',
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)
        self.assertEqual(Payment.objects.count(), 0)

    def test_zero_amount_returns_400(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/payments/record/', {'customer': self.customer.id, 'amount': '0'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_customer_cannot_record_payment(self):
        self.client.authenticate_user(self.customer.user)
        response = self.client.post('/api/v1/payments/record/', {'customer': self.customer.id, 'amount': '10'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_preview_writes_nothing(self):
        self.client.authenticate_user(self.customer.user)
        response = self.client.post('/api/v1/payments/preview/', {'amount': '120'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['allocations']), 2)
        self.assertEqual(response.data['allocations'][0]['bill_id'], self.bill_a.id)
        self.assertEqual(response.data['total_outstanding'], '150.00')
        self.assertEqual(Payment.objects.count(), 0)

    def test_bill_detail_includes_interest(self):
        old_bill = TestDataFactory.create_bill(
            self.customer, total='1000', created_at=timezone.now() - timedelta(days=120)
        )
        self.client.authenticate_user(self.customer.user)
        response = self.client.get(f'/api/v1/bills/{old_bill.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['interest']['is_overdue'])

        response = self.client.get(f'/api/v1/bills/{old_bill.id}/interest/')
        self.assertEqual(response.data['interest']['weeks_over_grace'], 3)
        self.assertEqual(response.data['interest']['interest_amount'], '30.00')
        old_bill.refresh_from_db()
        self.assertEqual(old_bill.total_amount, Decimal('1000.00'))

    def test_bill_payments_listing(self):
        PaymentRecorder().record(self.customer, Decimal('40'), mode='single', bill=self.bill_a)
        self.client.authenticate_user(self.customer.user)
        response = self.client.get(f'/api/v1/bills/{self.bill_a.id}/payments/')
        self.assertEqual(response.data['status'], 'partial')
        self.assertEqual(len(response.data['payments']), 1)

    def test_payment_history_scoped_to_customer(self):
        PaymentRecorder().record(self.customer, Decimal('40'))
        PaymentRecorder().record(self.other_customer, Decimal('40'))
        self.client.authenticate_user(self.customer.user)
        response = self.client.get('/api/v1/payments/')
        self.assertEqual(response.data['count'], 1)

        self.client.authenticate_user(self.accountant)
        response = self.client.get('/api/v1/payments/', {'payment_method': 'upi'})
        self.assertEqual(response.data['count'], 2)

    def test_offline_bill_with_initial_payment(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/bills/', {
            'customer': self.customer.id,
            'line_items': [{'description': 'Pocketing white', 'quantity': '10', 'rate': '100'}],
            'tax_rate': '12',
            'initial_payment': '500',
            'payment_method': 'cash',
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['subtotal'], '1000.00')
        self.assertEqual(response.data['tax_amount'], '120.00')
        self.assertEqual(response.data['total_amount'], '1120.00')
        self.assertEqual(response.data['status'], 'partial')
        self.assertEqual(response.data['balance_due'], '620.00')
        self.assertEqual(len(response.data['payments']), 1)
        self.assertTrue(AuditLog.objects.filter(action='bill_create').exists())

    def test_offline_bill_rejects_unknown_tax_rate(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/bills/', {
            'customer': self.customer.id,
            'line_items': [{'description': 'Lining', 'quantity': '1', 'rate': '100'}],
            'tax_rate': '7',
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_offline_bill_overpaid_initial_payment_rolls_back(self):
        self.client.authenticate_user(self.admin)
        count = Bill.objects.count()
        response = self.client.post('/api/v1/bills/', {
            'customer': self.customer.id,
            'line_items': [{'description': 'Lining', 'quantity': '1', 'rate': '100'}],
            'tax_rate': '0',
            'initial_payment': '150',
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Bill.objects.count(), count)

    def test_customer_cannot_create_bill(self):
        self.client.authenticate_user(self.customer.user)
        response = self.client.post('/api/v1/bills/', {'customer': self.customer.id})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class PaymentRequestAPITests(APITestCase):
    """Test submitting and reviewing payment requests"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin()
        self.customer = TestDataFactory.create_customer()
        now = timezone.now()
        self.bill_a = TestDataFactory.create_bill(self.customer, total='100', created_at=now - timedelta(days=5))
        self.bill_b = TestDataFactory.create_bill(self.customer, total='50', created_at=now - timedelta(days=1))

    def submit(self, amount='80', bills=None):
        self.client.authenticate_user(self.customer.user)
        return self.client.post('/api/v1/payment-requests/', {
            'amount': amount,
            'bills': bills or [self.bill_a.id, self.bill_b.id],
            'transaction_ref': 'UPI123',
        })

    def test_approval_records_payment(self):
        response = self.submit()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        request_id = response.data['id']

        self.client.authenticate_user(self.admin)
        response = self.client.post(f'/api/v1/payment-requests/{request_id}/review/', {'action': 'approve'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'approved')

        self.bill_a.refresh_from_db()
        self.assertEqual(self.bill_a.paid_amount, Decimal('80.00'))
        self.assertEqual(self.bill_a.status, 'partial')
        payment = Payment.objects.get()
        self.assertEqual(payment.transaction_ref, 'UPI123')
        self.assertEqual(payment.notes, f'Bulk payment: Payment request {request_id}')

        response = self.client.post(f'/api/v1/payment-requests/{request_id}/review/', {'action': 'approve'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Payment.objects.count(), 1)

    def test_rejection_records_nothing(self):
        request_id = self.submit().data['id']
        self.client.authenticate_user(self.admin)
        response = self.client.post(f'/api/v1/payment-requests/{request_id}/review/', {'action': 'reject'})
        self.assertEqual(response.data['status'], 'rejected')
        self.assertEqual(Payment.objects.count(), 0)
        self.assertTrue(AuditLog.objects.filter(action='payment_request_reject').exists())

    def test_overpaying_request_stays_pending(self):
        request_id = self.submit(amount='200').data['id']
        self.client.authenticate_user(self.admin)
        response = self.client.post(f'/api/v1/payment-requests/{request_id}/review/', {'action': 'approve'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(PaymentRequest.objects.get(pk=request_id).status, 'pending')
        self.assertEqual(Payment.objects.count(), 0)

    def test_request_for_someone_elses_bill(self):
        other_bill = TestDataFactory.create_bill(TestDataFactory.create_customer(), total='100')
        response = self.submit(bills=[other_bill.id])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_customer_cannot_review(self):
        request_id = self.submit().data['id']
        response = self.client.post(f'/api/v1/payment-requests/{request_id}/review/', {'action': 'approve'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_staff_list_filtered_by_status(self):
        self.submit()
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/payment-requests/', {'status': 'pending'})
        self.assertEqual(len(response.data), 1)
        response = self.client.get('/api/v1/payment-requests/', {'status': 'approved'})
        self.assertEqual(len(response.data), 0)


class RepairBillBalancesCommandTests(TestCase):
    """Test the repair_bill_balances management command"""

    def setUp(self):
        self.customer = TestDataFactory.create_customer()
        self.bill = TestDataFactory.create_bill(self.customer, total='100')
        TestDataFactory.create_payment(self.bill, '40')

    def test_dry_run_changes_nothing(self):
        out = StringIO()
        call_command('repair_bill_balances', '--dry-run', stdout=out)
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.paid_amount, Decimal('0.00'))
        self.assertIn(self.bill.bill_number, out.getvalue())

    def test_repair_recomputes_from_payments(self):
        call_command('repair_bill_balances', stdout=StringIO())
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.paid_amount, Decimal('40.00'))
        self.assertEqual(self.bill.balance_due, Decimal('60.00'))
        self.assertEqual(self.bill.status, 'partial')
        self.assertEqual(self.bill.version, 1)
