"""
Test suite for reports: dashboard counters and cached sales analytics
"""
from datetime import timedelta
from decimal import Decimal

from django.utils import timezone
from rest_framework import status

from wholesale.billing.models import PaymentRequest
from wholesale.billing.recorder import PaymentRecorder
from wholesale.core.test_utils import TestDataFactory, APITestCase


class DashboardTests(APITestCase):
    def setUp(self):
        super().setUp()
        self.accountant = TestDataFactory.create_accountant()
        self.customer = TestDataFactory.create_customer()
        self.bill = TestDataFactory.create_bill(self.customer, total='1000', created_at=timezone.now() - timedelta(days=2))
        TestDataFactory.create_bill(self.customer, total='500', paid='500')
        PaymentRequest.objects.create(customer=self.customer, amount=Decimal('100'))

    def test_dashboard_counts(self):
        self.client.authenticate_user(self.accountant)
        response = self.client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['customer_count'], 1)
        self.assertEqual(response.data['unpaid_bill_count'], 1)
        self.assertEqual(response.data['pending_order_count'], 0)
        self.assertEqual(response.data['pending_payment_request_count'], 1)
        self.assertEqual(response.data['total_outstanding'], '1000.00')
        self.assertEqual(len(response.data['recent_bills']), 2)

    def test_customers_cannot_view_reports(self):
        self.client.authenticate_user(self.customer.user)
        self.assertEqual(self.client.get('/api/v1/reports/dashboard/').status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.client.get('/api/v1/reports/analytics/').status_code, status.HTTP_403_FORBIDDEN)


class SalesAnalyticsTests(APITestCase):
    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin()
        self.customer = TestDataFactory.create_customer()
        self.bill = TestDataFactory.create_bill(self.customer, total='1000')
        self.client.authenticate_user(self.admin)

    def test_analytics_figures(self):
        response = self.client.get('/api/v1/reports/analytics/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_revenue'], '1000.00')
        self.assertEqual(response.data['payment_stats'], {'collected': '0.00', 'pending': '1000.00'})
        self.assertEqual(response.data['top_customers'][0]['customer_id'], self.customer.id)
        self.assertEqual(len(response.data['monthly']), 1)
        self.assertEqual(response.data['monthly'][0]['revenue'], '1000.00')

    def test_payments_invalidate_cached_analytics(self):
        self.client.get('/api/v1/reports/analytics/')
        PaymentRecorder().record(self.customer, Decimal('400'))

        response = self.client.get('/api/v1/reports/analytics/')
        self.assertEqual(response.data['payment_stats'], {'collected': '400.00', 'pending': '600.00'})

    def test_new_bill_invalidates_cached_analytics(self):
        self.client.get('/api/v1/reports/analytics/')
        TestDataFactory.create_bill(self.customer, total='250')

        response = self.client.get('/api/v1/reports/analytics/')
        self.assertEqual(response.data['total_revenue'], '1250.00')
