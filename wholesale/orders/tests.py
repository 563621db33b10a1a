"""
Test suite for orders
Tests: pricing with GST and coupons, order validation, billing on placement, edits and status changes
"""
from datetime import timedelta
from decimal import Decimal

from django.test import SimpleTestCase
from django.utils import timezone
from rest_framework import status

from wholesale.billing.models import Bill
from wholesale.billing.recorder import PaymentRecorder
from wholesale.core.models import AuditLog
from wholesale.core.test_utils import TestDataFactory, APITestCase
from .models import Order
from .views import price_order_line


class OrderPricingTests(SimpleTestCase):
    """Test line pricing on its own"""

    def test_gst_added_to_discounted_subtotal(self):
        pricing = price_order_line(Decimal('20'), Decimal('100'), Decimal('10'))
        self.assertEqual(pricing['subtotal'], Decimal('1800.00'))
        self.assertEqual(pricing['discount_amount'], Decimal('200.00'))
        self.assertEqual(pricing['tax_amount'], Decimal('90.00'))
        self.assertEqual(pricing['total_amount'], Decimal('1890.00'))

    def test_no_discount(self):
        pricing = price_order_line(Decimal('12.5'), Decimal('80'))
        self.assertEqual(pricing['subtotal'], Decimal('1000.00'))
        self.assertEqual(pricing['discount_amount'], Decimal('0.00'))
        self.assertEqual(pricing['total_amount'], Decimal('1050.00'))


class OrderCreateTests(APITestCase):
    """Test placing orders"""

    def setUp(self):
        super().setUp()
        self.customer = TestDataFactory.create_customer()
        self.accountant = TestDataFactory.create_accountant()
        self.product = TestDataFactory.create_product(price_per_meter=Decimal('100'), min_order_quantity=Decimal('10'))
        self.client.authenticate_user(self.customer.user)

    def place(self, **payload):
        data = {'product': self.product.id, 'quantity_meters': '20'}
        data.update(payload)
        return self.client.post('/api/v1/orders/', data)

    def test_order_is_billed_on_placement(self):
        response = self.place(notes='Deliver to godown 2')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['subtotal'], '2000.00')
        self.assertEqual(response.data['tax_amount'], '100.00')
        self.assertEqual(response.data['total_amount'], '2100.00')
        self.assertIn('2,100', response.data['message'])

        order = Order.objects.get(pk=response.data['id'])
        self.assertEqual(order.customer, self.customer)
        self.assertRegex(order.order_number, r'^ORD-\d{8}-[0-9A-F]{8}$')

        bill = Bill.objects.get(order=order)
        self.assertEqual(bill.total_amount, Decimal('2100.00'))
        self.assertEqual(bill.balance_due, Decimal('2100.00'))
        self.assertEqual(bill.status, 'unpaid')
        self.assertEqual(bill.tax_rate, Decimal('5.00'))
        self.assertEqual(bill.due_date, timezone.localdate() + timedelta(days=30))
        self.assertEqual(bill.line_items[0]['description'], self.product.name)
        self.assertEqual(response.data['bill']['bill_number'], bill.bill_number)
        self.assertTrue(AuditLog.objects.filter(action='order_create', object_reference=order.order_number).exists())

    def test_fixed_coupon(self):
        TestDataFactory.create_coupon(self.product, code='FLAT15', discount_value=Decimal('15'))
        response = self.place(coupon_code='flat15')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['coupon_code'], 'FLAT15')
        self.assertEqual(response.data['discount_amount'], '300.00')
        self.assertEqual(response.data['total_amount'], '1785.00')

    def test_percentage_coupon(self):
        TestDataFactory.create_coupon(self.product, code='TEN', discount_type='percentage', discount_value=Decimal('10'))
        response = self.place(coupon_code='TEN')
        self.assertEqual(response.data['total_amount'], '1890.00')
        self.assertEqual(response.data['items'][0]['discount_per_meter'], '10.00')

    def test_invalid_coupon(self):
        response = self.place(coupon_code='NOPE')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('coupon_code', response.data)
        self.assertEqual(Order.objects.count(), 0)

    def test_inactive_coupon(self):
        TestDataFactory.create_coupon(self.product, code='OLD', is_active=False)
        response = self.place(coupon_code='OLD')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_coupon_for_another_product(self):
        TestDataFactory.create_coupon(TestDataFactory.create_product(), code='OTHER')
        response = self.place(coupon_code='OTHER')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_below_minimum_quantity(self):
        response = self.place(quantity_meters='5')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('quantity_meters', response.data)
        self.assertEqual(Bill.objects.count(), 0)

    def test_out_of_stock_product(self):
        self.product.stock_status = 'out_of_stock'
        self.product.save()
        response = self.place()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('product', response.data)

    def test_inactive_product(self):
        self.product.is_active = False
        self.product.save()
        response = self.place()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_staff_must_name_customer(self):
        self.client.authenticate_user(self.accountant)
        response = self.place()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('customer', response.data)

        response = self.place(customer=self.customer.id)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        order = Order.objects.get(pk=response.data['id'])
        self.assertEqual(order.customer, self.customer)
        self.assertEqual(order.created_by, self.accountant)

    def test_login_without_profile(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.place()
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unauthenticated(self):
        self.client.logout()
        response = self.place()
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class OrderManageTests(APITestCase):
    """Test listing, editing and status changes"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin()
        self.customer = TestDataFactory.create_customer()
        self.other_customer = TestDataFactory.create_customer()
        self.product = TestDataFactory.create_product(price_per_meter=Decimal('100'), min_order_quantity=Decimal('10'))

        self.client.authenticate_user(self.customer.user)
        self.order_id = self.client.post(
            '/api/v1/orders/', {'product': self.product.id, 'quantity_meters': '20'}
        ).data['id']
        self.client.authenticate_user(self.other_customer.user)
        self.other_order_id = self.client.post(
            '/api/v1/orders/', {'product': self.product.id, 'quantity_meters': '10'}
        ).data['id']
        self.client.authenticate_user(self.customer.user)

    def test_customer_sees_own_orders(self):
        response = self.client.get('/api/v1/orders/')
        self.assertEqual(response.data['count'], 1)
        response = self.client.get(f'/api/v1/orders/{self.other_order_id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_staff_sees_all_orders(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/orders/')
        self.assertEqual(response.data['count'], 2)
        response = self.client.get('/api/v1/orders/', {'customer': self.other_customer.id})
        self.assertEqual(response.data['count'], 1)

    def test_edit_reprices_order_and_bill(self):
        response = self.client.patch(f'/api/v1/orders/{self.order_id}/', {'quantity_meters': '30'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_amount'], '3150.00')

        bill = Bill.objects.get(order_id=self.order_id)
        self.assertEqual(bill.subtotal, Decimal('3000.00'))
        self.assertEqual(bill.total_amount, Decimal('3150.00'))
        self.assertEqual(bill.balance_due, Decimal('3150.00'))
        self.assertEqual(bill.version, 1)
        self.assertTrue(AuditLog.objects.filter(action='order_update').exists())

    def test_edit_below_minimum(self):
        response = self.client.patch(f'/api/v1/orders/{self.order_id}/', {'quantity_meters': '2'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_edit_after_payment_rejected(self):
        bill = Bill.objects.get(order_id=self.order_id)
        PaymentRecorder().record(self.customer, Decimal('100'), mode='single', bill=bill)
        response = self.client.patch(f'/api/v1/orders/{self.order_id}/', {'quantity_meters': '30'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        bill.refresh_from_db()
        self.assertEqual(bill.total_amount, Decimal('2100.00'))

    def test_edit_only_while_pending(self):
        Order.objects.filter(pk=self.order_id).update(status='processing')
        response = self.client.patch(f'/api/v1/orders/{self.order_id}/', {'notes': 'late change'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_status_change_is_admin_only(self):
        response = self.client.patch(f'/api/v1/orders/{self.order_id}/status/', {'status': 'processing'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/orders/{self.order_id}/status/', {'status': 'processing'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'processing')
        self.assertTrue(AuditLog.objects.filter(action='order_status').exists())

    def test_cancelling_keeps_bill(self):
        self.client.authenticate_user(self.admin)
        self.client.patch(f'/api/v1/orders/{self.order_id}/status/', {'status': 'cancelled'})
        self.assertTrue(Bill.objects.filter(order_id=self.order_id).exists())

    def test_unknown_status(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/orders/{self.order_id}/status/', {'status': 'shipped'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
