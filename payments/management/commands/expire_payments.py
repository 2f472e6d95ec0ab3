from django.core.management.base import BaseCommand

from payments.services import expire_stale_transactions


class Command(BaseCommand):
    help = "Mark pending payment transactions past their expiry as expired"

    def handle(self, *args, **opts):
        count = expire_stale_transactions()
        if not count:
            self.stdout.write(self.style.SUCCESS("No stale payments to expire."))
            return
        self.stdout.write(self.style.SUCCESS(f"Expired {count} payment(s)."))
