"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from wholesale.billing.models import Bill, Payment
from wholesale.catalog.models import Product, Coupon
from wholesale.parties.models import Customer
from decimal import Decimal
from django.utils import timezone
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', role=User.ROLE_CUSTOMER, is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            role=role,
            is_superuser=is_superuser
        )

    @staticmethod
    def create_admin(username=None):
        return TestDataFactory.create_user(username=username, role=User.ROLE_ADMIN)

    @staticmethod
    def create_accountant(username=None):
        return TestDataFactory.create_user(username=username, role=User.ROLE_ACCOUNTANT)

    @staticmethod
    def create_customer(full_name=None, user=None, phone=None, credit_limit=None):
        """Create a customer profile with its own login"""
        if not full_name:
            full_name = f'Customer {TestDataFactory.random_string(6)}'
        if user is None:
            user = TestDataFactory.create_user()
        customer = Customer(
            user=user,
            full_name=full_name,
            business_name=f'{full_name} Textiles',
            phone=phone,
        )
        if credit_limit is not None:
            customer.credit_limit = credit_limit
        customer.save()
        return customer

    @staticmethod
    def create_product(name=None, price_per_meter=None, min_order_quantity=None, stock_status='in_stock', is_active=True):
        """Create a test product"""
        if not name:
            name = f'Fabric_{TestDataFactory.random_string(6)}'
        return Product.objects.create(
            name=name,
            category='pocketing',
            price_per_meter=price_per_meter if price_per_meter is not None else Decimal('100.00'),
            min_order_quantity=min_order_quantity if min_order_quantity is not None else Decimal('10.00'),
            stock_status=stock_status,
            is_active=is_active,
        )

    @staticmethod
    def create_coupon(product, code='SAVE10', discount_type='fixed', discount_value=None, is_active=True):
        return Coupon.objects.create(
            code=code,
            product=product,
            discount_type=discount_type,
            discount_value=discount_value if discount_value is not None else Decimal('10.00'),
            is_active=is_active,
        )

    @staticmethod
    def create_bill(customer, total=None, paid=None, created_at=None, tax_amount=None):
        """Create a bill whose total is ``total`` (no tax unless given)"""
        total = Decimal(str(total)) if total is not None else Decimal('100.00')
        tax_amount = Decimal(str(tax_amount)) if tax_amount is not None else Decimal('0.00')
        return Bill.objects.create(
            customer=customer,
            subtotal=total - tax_amount,
            tax_amount=tax_amount,
            tax_rate=Decimal('0'),
            paid_amount=Decimal(str(paid)) if paid is not None else Decimal('0.00'),
            created_at=created_at or timezone.now(),
        )

    @staticmethod
    def create_payment(bill, amount, payment_method='cash'):
        """Insert a payment row directly, without touching the bill"""
        return Payment.objects.create(
            bill=bill,
            customer=bill.customer,
            amount=Decimal(str(amount)),
            payment_method=payment_method,
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()


class APITestCase(TestCase):
    """TestCase with an authenticated client and a clean cache per test"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
