"""
Test suite for core: authentication, roles, audit logging and caching helpers
"""
from io import StringIO

from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase
from rest_framework import status

from wholesale.parties.models import Customer
from .cache_utils import cached_query, invalidate_reports_cache, make_cache_key
from .models import AuditLog, User
from .test_utils import TestDataFactory, APITestCase
from .utils import create_audit_log, is_admin_user, is_staff_member


class AuthenticationTests(APITestCase):
    """Test JWT login, refresh and the current-user endpoint"""

    def test_login_returns_role(self):
        TestDataFactory.create_user(username='ledgeradmin', role=User.ROLE_ADMIN)
        response = self.client.post('/api/v1/auth/login/', {'username': 'ledgeradmin', 'password': 'testpass123'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['role'], 'admin')
        self.assertIn('refresh', response.data)
        self.assertIsNone(response.data['customer_id'])

        response = self.client.post('/api/v1/auth/refresh/', {'refresh': response.data['refresh']})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_wrong_password(self):
        TestDataFactory.create_user(username='someone')
        response = self.client.post('/api/v1/auth/login/', {'username': 'someone', 'password': 'nope'})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_inactive_user_cannot_login(self):
        user = TestDataFactory.create_user(username='gone')
        user.is_active = False
        user.save()
        response = self.client.post('/api/v1/auth/login/', {'username': 'gone', 'password': 'testpass123'})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_invalid_refresh_token(self):
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': 'not-a-token'})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_includes_customer_id(self):
        customer = TestDataFactory.create_customer()
        self.client.authenticate_user(customer.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.data['customer_id'], customer.id)
        self.assertEqual(response.data['role'], 'customer')

        self.client.authenticate_user(TestDataFactory.create_accountant())
        response = self.client.get('/api/v1/auth/me/')
        self.assertIsNone(response.data['customer_id'])


class RoleTests(TestCase):
    def test_roles(self):
        admin = TestDataFactory.create_admin()
        accountant = TestDataFactory.create_accountant()
        customer = TestDataFactory.create_user()
        superuser = TestDataFactory.create_user(is_superuser=True)

        self.assertTrue(is_admin_user(admin))
        self.assertTrue(is_admin_user(superuser))
        self.assertFalse(is_admin_user(accountant))
        self.assertTrue(is_staff_member(accountant))
        self.assertFalse(is_staff_member(customer))
        self.assertFalse(is_staff_member(None))


class UserManagementTests(APITestCase):
    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin()

    def test_admin_creates_accountant(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/users/', {
            'username': 'clerk',
            'password': 'Ledger!Pass2024',
            'password_confirm': 'Ledger!Pass2024',
            'role': 'accountant',
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['role'], 'accountant')
        clerk = User.objects.get(username='clerk')
        self.assertTrue(clerk.check_password('Ledger!Pass2024'))
        self.assertFalse(clerk.is_staff)
        self.assertTrue(AuditLog.objects.filter(action='create', model_name='User', object_id=str(clerk.id)).exists())

    def test_customer_logins_not_created_here(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/users/', {
            'username': 'buyer',
            'password': 'Ledger!Pass2024',
            'password_confirm': 'Ledger!Pass2024',
            'role': 'customer',
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('role', response.data)
        self.assertFalse(User.objects.filter(username='buyer').exists())

    def test_list_filtered_by_role(self):
        TestDataFactory.create_accountant()
        TestDataFactory.create_customer()
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/users/', {'role': 'accountant'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([u['role'] for u in response.data], ['accountant'])

    def test_password_mismatch(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/users/', {
            'username': 'clerk', 'password': 'Ledger!Pass2024', 'password_confirm': 'other', 'role': 'accountant',
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_non_admin_cannot_list_users(self):
        self.client.authenticate_user(TestDataFactory.create_accountant())
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AuditLogTests(APITestCase):
    def test_missing_fields_skip_logging(self):
        self.assertIsNone(create_audit_log(action='payment_add', model_name='Payment'))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_log_with_explicit_user(self):
        admin = TestDataFactory.create_admin()
        log = create_audit_log(user=admin, action='bill_create', model_name='Bill', object_id=7,
                               object_reference='INV-1')
        self.assertEqual(log.user, admin)
        self.assertEqual(log.object_id, '7')
        self.assertEqual(log.changes, {})

    def test_audit_log_list_admin_only(self):
        admin = TestDataFactory.create_admin()
        create_audit_log(user=admin, action='bill_create', model_name='Bill', object_id=1, object_reference='INV-1')
        create_audit_log(user=admin, action='payment_add', model_name='Payment', object_id=2, object_reference='INV-1')

        self.client.authenticate_user(admin)
        response = self.client.get('/api/v1/audit-logs/', {'action': 'payment_add'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

        self.client.authenticate_user(TestDataFactory.create_accountant())
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class CacheUtilsTests(TestCase):
    def setUp(self):
        cache.clear()

    def test_cached_query_until_invalidated(self):
        calls = []

        @cached_query(cache_ttl=60, key_prefix='reports')
        def expensive(value):
            calls.append(value)
            return {'value': value}

        self.assertEqual(expensive(1), {'value': 1})
        self.assertEqual(expensive(1), {'value': 1})
        self.assertEqual(len(calls), 1)

        expensive(2)
        self.assertEqual(len(calls), 2)

        invalidate_reports_cache()
        expensive(1)
        self.assertEqual(len(calls), 3)

    def test_keys_change_after_invalidation(self):
        before = make_cache_key('reports', 1)
        self.assertEqual(before, make_cache_key('reports', 1))
        invalidate_reports_cache()
        self.assertNotEqual(before, make_cache_key('reports', 1))


class CreateTestUsersCommandTests(TestCase):
    def test_idempotent(self):
        call_command('create_test_users', stdout=StringIO())
        call_command('create_test_users', stdout=StringIO())

        self.assertEqual(User.objects.count(), 4)
        self.assertEqual(Customer.objects.count(), 2)
        self.assertTrue(User.objects.get(username='admin').is_admin)
        rajesh = Customer.objects.get(user__username='rajesh.sharma@test.com')
        self.assertEqual(str(rajesh.credit_limit), '75000.00')
        self.assertTrue(rajesh.user.check_password('Test@123'))
