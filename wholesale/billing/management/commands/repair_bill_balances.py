from django.core.management.base import BaseCommand
from django.db import transaction
from django.db.models import F, Sum
from decimal import Decimal
from wholesale.billing.finance import balance_due, bill_status
from wholesale.billing.models import Bill
from wholesale.core.model_cache import invalidate_ledger_caches


class Command(BaseCommand):
    help = 'Recomputes each bill\'s paid amount from its payments and fixes balance and status'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Perform a dry run without saving changes',
        )
        parser.add_argument(
            '--customer',
            type=int,
            help='Only repair bills of this customer id',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        if dry_run:
            self.stdout.write(self.style.WARNING("DRY RUN MODE: No changes will be saved."))

        bills = Bill.objects.select_related('customer').order_by('created_at', 'id')
        if options.get('customer'):
            bills = bills.filter(customer_id=options['customer'])
        self.stdout.write(f"Checking {bills.count()} bills...")

        mismatched = 0
        with transaction.atomic():
            for bill in bills.select_for_update():
                paid = bill.payments.aggregate(s=Sum('amount'))['s'] or Decimal('0.00')
                expected_balance = balance_due(bill.total_amount, paid)
                expected_status = bill_status(paid, bill.total_amount)

                if (bill.paid_amount, bill.balance_due, bill.status) == (paid, expected_balance, expected_status):
                    continue

                mismatched += 1
                self.stdout.write(self.style.NOTICE(
                    f"  - {bill.bill_number} ({bill.customer.full_name}): "
                    f"paid {bill.paid_amount} -> {paid}, balance {bill.balance_due} -> {expected_balance}, "
                    f"status {bill.status} -> {expected_status}"
                ))
                Bill.objects.filter(pk=bill.pk).update(
                    paid_amount=paid,
                    balance_due=expected_balance,
                    status=expected_status,
                    version=F('version') + 1,
                )

            if dry_run:
                self.stdout.write(self.style.WARNING(f"\nDry run complete: {mismatched} bill(s) would change. Rolling back changes."))
                transaction.set_rollback(True)
            else:
                self.stdout.write(self.style.SUCCESS(f"\nBill repair complete: {mismatched} bill(s) fixed."))

        if mismatched and not dry_run:
            invalidate_ledger_caches()
