import csv
from decimal import Decimal, InvalidOperation

from django.core.management.base import BaseCommand, CommandError

from orders.models import OrderError
from orders.services import verify_payment
from payments.services import match_transfer_amount

AMOUNT_COLUMNS = ("amount", "credit", "nominal", "jumlah")


def _parse_amount(raw):
    """``"85.237"``, ``"85,237.00"`` or ``"85.237,00"`` -> Decimal amount."""
    text = str(raw or "").strip().replace("Rp", "").replace(" ", "")
    if not text:
        return None
    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        head, tail = text.rsplit(",", 1)
        text = text.replace(",", "") if len(tail) == 3 else head.replace(",", "") + "." + tail
    elif text.count(".") > 1 or (text.count(".") == 1 and len(text.rsplit(".", 1)[1]) == 3):
        text = text.replace(".", "")
    try:
        return Decimal(text)
    except InvalidOperation:
        return None


class Command(BaseCommand):
    help = "Match incoming transfers from a bank statement CSV against pending unique amounts"

    def add_arguments(self, parser):
        parser.add_argument("statement", help="CSV file with an amount/credit column")
        parser.add_argument("--dry-run", action="store_true", help="Report matches without verifying orders")

    def handle(self, *args, **opts):
        try:
            with open(opts["statement"], newline="", encoding="utf-8-sig") as fh:
                rows = list(csv.DictReader(fh))
        except OSError as e:
            raise CommandError(f"Cannot read statement: {e}")
        if not rows:
            self.stdout.write(self.style.WARNING("Statement is empty."))
            return

        column = next((c for c in rows[0] if c and c.strip().lower() in AMOUNT_COLUMNS), None)
        if column is None:
            raise CommandError(f"No amount column found; expected one of {', '.join(AMOUNT_COLUMNS)}")

        matched = 0
        unmatched = 0
        for lineno, row in enumerate(rows, start=2):
            amount = _parse_amount(row.get(column))
            if amount is None:
                self.stdout.write(self.style.WARNING(f"Line {lineno}: unreadable amount {row.get(column)!r}"))
                unmatched += 1
                continue
            txn = match_transfer_amount(amount)
            if txn is None:
                self.stdout.write(f"Line {lineno}: no unique pending transfer for {amount}")
                unmatched += 1
                continue
            if opts["dry_run"]:
                self.stdout.write(f"Line {lineno}: {amount} matches order {txn.order.order_number}")
                matched += 1
                continue
            try:
                verify_payment(txn.order)
            except OrderError as e:
                self.stdout.write(self.style.WARNING(f"Line {lineno}: {txn.order.order_number}: {e}"))
                unmatched += 1
                continue
            matched += 1
            self.stdout.write(self.style.SUCCESS(f"Line {lineno}: {amount} -> order {txn.order.order_number} verified"))

        self.stdout.write(self.style.SUCCESS(f"Matched {matched}, unmatched {unmatched}."))
