"""
Test suite for customers
Tests: customer creation with logins, validation, credit limits, balances and the cached directory
"""
from decimal import Decimal

from rest_framework import status

from wholesale.core.models import AuditLog, User
from wholesale.core.test_utils import TestDataFactory, APITestCase
from .models import Customer


class CustomerCreateTests(APITestCase):
    """Test creating customers together with their login"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin()
        self.client.authenticate_user(self.admin)

    def login(self, username, password):
        self.client.logout()
        return self.client.post('/api/v1/auth/login/', {'username': username, 'password': password})

    def test_phone_becomes_username_and_password(self):
        response = self.client.post('/api/v1/customers/', {
            'full_name': 'Rajesh Sharma',
            'business_name': 'Sharma Garments',
            'phone': '9876543210',
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['login'], {'username': '9876543210', 'password': '9876543210'})
        self.assertEqual(response.data['credit_limit'], '50000.00')
        self.assertEqual(response.data['outstanding'], '0.00')

        customer = Customer.objects.get(pk=response.data['id'])
        self.assertEqual(customer.user.role, User.ROLE_CUSTOMER)
        self.assertTrue(AuditLog.objects.filter(action='customer_create', object_id=str(customer.id)).exists())

        response = self.login('9876543210', '9876543210')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertEqual(response.data['role'], 'customer')
        self.assertEqual(response.data['customer_id'], customer.id)

    def test_email_login_gets_generated_password(self):
        response = self.client.post('/api/v1/customers/', {'full_name': 'Amit Patel', 'email': 'amit@example.com'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        login = response.data['login']
        self.assertEqual(login['username'], 'amit@example.com')
        self.assertTrue(login['password'].startswith('JST'))
        self.assertEqual(len(login['password']), 11)

        response = self.login(login['username'], login['password'])
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_explicit_credit_limit(self):
        response = self.client.post('/api/v1/customers/', {
            'full_name': 'Amit Patel', 'phone': '9123456780', 'credit_limit': '100000',
        })
        self.assertEqual(response.data['credit_limit'], '100000.00')

    def test_phone_or_email_required(self):
        response = self.client.post('/api/v1/customers/', {'full_name': 'No Contact'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Either phone or email is required', str(response.data))

    def test_full_name_length(self):
        for name in ['R', 'R' * 101]:
            response = self.client.post('/api/v1/customers/', {'full_name': name, 'phone': '9876543210'})
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertIn('full_name', response.data)

    def test_invalid_phone(self):
        response = self.client.post('/api/v1/customers/', {'full_name': 'Bad Phone', 'phone': 'call-me'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('phone', response.data)

    def test_duplicate_login_rejected(self):
        self.client.post('/api/v1/customers/', {'full_name': 'First', 'phone': '9876543210'})
        response = self.client.post('/api/v1/customers/', {'full_name': 'Second', 'phone': '9876543210'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Customer.objects.count(), 1)

    def test_only_admin_creates_customers(self):
        self.client.authenticate_user(TestDataFactory.create_accountant())
        response = self.client.post('/api/v1/customers/', {'full_name': 'Rajesh', 'phone': '9876543210'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class CustomerAccountTests(APITestCase):
    """Test credit limits, balances and access to customer records"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin()
        self.accountant = TestDataFactory.create_accountant()
        self.customer = TestDataFactory.create_customer(full_name='Rajesh Sharma')
        self.other_customer = TestDataFactory.create_customer()
        TestDataFactory.create_bill(self.customer, total='1000', paid='400')
        TestDataFactory.create_bill(self.customer, total='500')

    def test_default_credit_limit(self):
        self.assertEqual(self.customer.credit_limit, Decimal('50000'))

    def test_balance_summary(self):
        self.client.authenticate_user(self.customer.user)
        response = self.client.get(f'/api/v1/customers/{self.customer.id}/balance/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_billed'], '1500.00')
        self.assertEqual(response.data['total_paid'], '400.00')
        self.assertEqual(response.data['outstanding'], '1100.00')
        self.assertEqual(response.data['credit_remaining'], '48900.00')
        self.assertFalse(response.data['over_limit'])

    def test_over_limit(self):
        Customer.objects.filter(pk=self.customer.pk).update(credit_limit=Decimal('1000'))
        self.customer.refresh_from_db()
        summary = self.customer.get_balance_summary()
        self.assertTrue(summary['over_limit'])
        self.assertEqual(summary['credit_remaining'], Decimal('0.00'))

    def test_customer_cannot_see_others(self):
        self.client.authenticate_user(self.customer.user)
        response = self.client.get(f'/api/v1/customers/{self.other_customer.id}/balance/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.get(f'/api/v1/customers/{self.other_customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.get('/api/v1/customers/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_credit_limit_change_is_audited(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(
            f'/api/v1/customers/{self.customer.id}/credit-limit/', {'credit_limit': '75000'}
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['credit_limit'], '75000.00')

        log = AuditLog.objects.get(action='credit_limit_change')
        self.assertEqual(log.changes['credit_limit'], {'old': '50000.00', 'new': '75000.00'})
        self.assertIn('50,000', log.changes['description'])
        self.assertIn('75,000', log.changes['description'])

    def test_credit_limit_admin_only(self):
        self.client.authenticate_user(self.accountant)
        response = self.client.patch(
            f'/api/v1/customers/{self.customer.id}/credit-limit/', {'credit_limit': '75000'}
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_negative_credit_limit(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(
            f'/api/v1/customers/{self.customer.id}/credit-limit/', {'credit_limit': '-1'}
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_profile_update_ignores_credit_limit(self):
        self.client.authenticate_user(self.customer.user)
        response = self.client.patch(f'/api/v1/customers/{self.customer.id}/', {
            'business_name': 'Sharma Fabrics', 'credit_limit': '999999',
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.business_name, 'Sharma Fabrics')
        self.assertEqual(self.customer.credit_limit, Decimal('50000.00'))

    def test_customer_cannot_change_own_active_flag(self):
        self.client.authenticate_user(self.customer.user)
        response = self.client.patch(f'/api/v1/customers/{self.customer.id}/', {'is_active': False})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_active'])
        self.customer.refresh_from_db()
        self.assertTrue(self.customer.is_active)

        Customer.objects.filter(pk=self.customer.pk).update(is_active=False)
        response = self.client.patch(f'/api/v1/customers/{self.customer.id}/', {'is_active': True})
        self.customer.refresh_from_db()
        self.assertFalse(self.customer.is_active)

    def test_admin_deactivates_customer(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/customers/{self.customer.id}/', {'is_active': False})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])
        self.customer.refresh_from_db()
        self.assertFalse(self.customer.is_active)

    def test_accountant_cannot_edit_profile(self):
        self.client.authenticate_user(self.accountant)
        response = self.client.patch(f'/api/v1/customers/{self.customer.id}/', {'business_name': 'X'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_shows_outstanding_and_search(self):
        self.client.authenticate_user(self.accountant)
        response = self.client.get('/api/v1/customers/', {'search': 'Rajesh'})
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['outstanding'], '1100.00')

    def test_list_cache_invalidated_by_changes(self):
        self.client.authenticate_user(self.accountant)
        self.assertEqual(len(self.client.get('/api/v1/customers/').data), 2)

        TestDataFactory.create_customer()
        self.assertEqual(len(self.client.get('/api/v1/customers/').data), 3)

        TestDataFactory.create_bill(self.other_customer, total='250')
        response = self.client.get('/api/v1/customers/', {'search': self.other_customer.full_name})
        self.assertEqual(response.data[0]['outstanding'], '250.00')
