from decimal import Decimal
from django.core.management.base import BaseCommand
from django.db import transaction
from wholesale.core.models import User
from wholesale.parties.models import Customer


STAFF_USERS = [
    {'username': 'admin', 'email': 'admin@test.com', 'first_name': 'Admin', 'role': User.ROLE_ADMIN},
    {'username': 'accountant', 'email': 'ca@test.com', 'first_name': 'Accountant', 'role': User.ROLE_ACCOUNTANT},
]

TEST_CUSTOMERS = [
    {
        'username': 'rajesh.sharma@test.com',
        'full_name': 'Rajesh Kumar Sharma',
        'business_name': 'Sharma Textiles',
        'phone': '9876543210',
        'address': '45, Gandhi Road, Cloth Market, Indore, MP 452001',
        'gst_number': '23AABCS1234F1ZK',
        'credit_limit': Decimal('75000'),
    },
    {
        'username': 'amit.patel@test.com',
        'full_name': 'Amit Patel',
        'business_name': 'Patel & Sons Fabrics',
        'phone': '9823456789',
        'address': '12, Ring Road, Textile Hub, Ahmedabad, Gujarat 380001',
        'gst_number': '24AABCP5678G2ZL',
        'credit_limit': Decimal('100000'),
    },
]


class Command(BaseCommand):
    help = 'Create admin, accountant and customer logins for local testing (safe to run repeatedly)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--password',
            default='Test@123',
            help='Password for every created user',
        )

    def handle(self, *args, **options):
        password = options['password']
        created = 0

        with transaction.atomic():
            for spec in STAFF_USERS:
                user, was_created = User.objects.get_or_create(
                    username=spec['username'],
                    defaults={
                        'email': spec['email'],
                        'first_name': spec['first_name'],
                        'role': spec['role'],
                        'is_staff': spec['role'] == User.ROLE_ADMIN,
                    }
                )
                if was_created:
                    user.set_password(password)
                    user.save()
                    created += 1
                    self.stdout.write(self.style.SUCCESS(f"Created {spec['role']} user: {user.username}"))
                else:
                    self.stdout.write(f"User already exists: {user.username}")

            for spec in TEST_CUSTOMERS:
                user, was_created = User.objects.get_or_create(
                    username=spec['username'],
                    defaults={
                        'email': spec['username'],
                        'first_name': spec['full_name'],
                        'phone': spec['phone'],
                        'role': User.ROLE_CUSTOMER,
                    }
                )
                if was_created:
                    user.set_password(password)
                    user.save()
                    created += 1

                _, profile_created = Customer.objects.get_or_create(
                    user=user,
                    defaults={
                        'full_name': spec['full_name'],
                        'business_name': spec['business_name'],
                        'phone': spec['phone'],
                        'email': spec['username'],
                        'address': spec['address'],
                        'gst_number': spec['gst_number'],
                        'credit_limit': spec['credit_limit'],
                    }
                )
                if profile_created:
                    self.stdout.write(self.style.SUCCESS(f"Created customer: {spec['full_name']} ({user.username})"))
                else:
                    self.stdout.write(f"Customer already exists: {spec['full_name']}")

        self.stdout.write(self.style.SUCCESS(f"\nDone. {created} new login(s) created."))
