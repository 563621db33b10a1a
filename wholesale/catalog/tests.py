"""
Test suite for the fabric catalog
Tests: product listing and filters, admin management, soft delete, coupons and coupon validation
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from wholesale.core.models import AuditLog
from wholesale.core.test_utils import TestDataFactory, APITestCase
from .models import Product, Coupon


class CouponModelTests(TestCase):
    """Test coupon discount rules"""

    def setUp(self):
        self.product = TestDataFactory.create_product(price_per_meter=Decimal('100.00'))

    def test_code_stored_uppercase(self):
        coupon = TestDataFactory.create_coupon(self.product, code='  monsoon ')
        self.assertEqual(coupon.code, 'MONSOON')

    def test_fixed_discount(self):
        coupon = TestDataFactory.create_coupon(self.product, discount_value=Decimal('15.00'))
        self.assertEqual(coupon.discount_per_meter(Decimal('100.00')), Decimal('15.00'))

    def test_percentage_discount(self):
        coupon = TestDataFactory.create_coupon(
            self.product, discount_type='percentage', discount_value=Decimal('12.5')
        )
        self.assertEqual(coupon.discount_per_meter(Decimal('100.00')), Decimal('12.50'))

    def test_discount_never_exceeds_price(self):
        coupon = TestDataFactory.create_coupon(self.product, discount_value=Decimal('150.00'))
        self.assertEqual(coupon.discount_per_meter(Decimal('100.00')), Decimal('100.00'))


class ProductAPITests(APITestCase):
    """Test product endpoints"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin()
        self.customer = TestDataFactory.create_customer()
        self.white = Product.objects.create(
            name='White Pocketing', category='pocketing', description='Cotton pocketing',
            price_per_meter=Decimal('45.00'),
        )
        self.satin = Product.objects.create(
            name='Satin Lining', category='lining', price_per_meter=Decimal('120.00'),
            stock_status='out_of_stock',
        )
        self.retired = Product.objects.create(
            name='Old Shirting', category='shirting', price_per_meter=Decimal('200.00'), is_active=False,
        )

    def names(self, response):
        return sorted(p['name'] for p in response.data['results'])

    def test_customer_sees_active_products(self):
        self.client.authenticate_user(self.customer.user)
        response = self.client.get('/api/v1/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.names(response), ['Satin Lining', 'White Pocketing'])

        response = self.client.get(f'/api/v1/products/{self.retired.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_admin_sees_inactive_products(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/products/', {'is_active': 'false'})
        self.assertEqual(self.names(response), ['Old Shirting'])

    def test_filters(self):
        self.client.authenticate_user(self.customer.user)
        self.assertEqual(self.names(self.client.get('/api/v1/products/', {'search': 'cotton white'})), ['White Pocketing'])
        self.assertEqual(self.names(self.client.get('/api/v1/products/', {'category': 'lining'})), ['Satin Lining'])
        self.assertEqual(self.names(self.client.get('/api/v1/products/', {'in_stock': 'true'})), ['White Pocketing'])
        self.assertEqual(self.names(self.client.get('/api/v1/products/', {'min_price': '100'})), ['Satin Lining'])
        self.assertEqual(self.names(self.client.get('/api/v1/products/', {'max_price': '50'})), ['White Pocketing'])

    def test_pagination(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/products/', {'limit': 2})
        self.assertEqual(response.data['count'], 3)
        self.assertEqual(len(response.data['results']), 2)
        self.assertEqual(response.data['next'], 2)
        self.assertEqual(response.data['total_pages'], 2)

    def test_admin_creates_product(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/products/', {
            'name': 'Poly Lining', 'category': 'lining', 'price_per_meter': '60', 'min_order_quantity': '25',
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['price_per_meter'], '60.00')
        self.assertTrue(AuditLog.objects.filter(action='create', model_name='Product').exists())

    def test_price_must_be_positive(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/products/', {'name': 'Free', 'price_per_meter': '0'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_customer_cannot_manage_products(self):
        self.client.authenticate_user(self.customer.user)
        response = self.client.post('/api/v1/products/', {'name': 'Mine', 'price_per_meter': '10'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.delete(f'/api/v1/products/{self.white.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_price_change_is_audited(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/products/{self.white.id}/', {'price_per_meter': '50'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(action='update', model_name='Product')
        self.assertEqual(log.changes['price_per_meter'], {'old': '45.00', 'new': '50.00'})

    def test_delete_deactivates(self):
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/products/{self.white.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.white.refresh_from_db()
        self.assertFalse(self.white.is_active)


class CouponAPITests(APITestCase):
    """Test coupon management and validation"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin()
        self.customer = TestDataFactory.create_customer()
        self.product = TestDataFactory.create_product(price_per_meter=Decimal('100.00'))

    def test_admin_creates_coupon(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/coupons/', {
            'code': 'save10', 'product': self.product.id, 'discount_type': 'fixed', 'discount_value': '10',
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['code'], 'SAVE10')
        self.assertEqual(response.data['product_name'], self.product.name)

    def test_percentage_over_hundred_rejected(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/coupons/', {
            'code': 'HALF', 'product': self.product.id, 'discount_type': 'percentage', 'discount_value': '150',
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_coupon_management_admin_only(self):
        self.client.authenticate_user(self.customer.user)
        self.assertEqual(self.client.get('/api/v1/coupons/').status_code, status.HTTP_403_FORBIDDEN)

    def test_deactivate_coupon(self):
        coupon = TestDataFactory.create_coupon(self.product)
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/coupons/{coupon.id}/', {'is_active': False})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Coupon.objects.get(pk=coupon.id).is_active)

    def test_validate_coupon(self):
        TestDataFactory.create_coupon(self.product, code='SAVE10')
        self.client.authenticate_user(self.customer.user)
        response = self.client.post('/api/v1/coupons/validate/', {'code': 'save10', 'product': self.product.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['valid'])
        self.assertEqual(response.data['discount_per_meter'], '10.00')
        self.assertEqual(response.data['discounted_price_per_meter'], '90.00')

    def test_validate_unknown_coupon(self):
        self.client.authenticate_user(self.customer.user)
        response = self.client.post('/api/v1/coupons/validate/', {'code': 'NOPE', 'product': self.product.id})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(response.data['valid'])
