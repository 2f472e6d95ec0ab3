import secrets
from decimal import ROUND_HALF_UP, Decimal

from django.utils import timezone


def gen_order_number():
    # e.g., KRG-241019-1432-0457
    now = timezone.now()
    return f"KRG-{now.strftime('%y%m%d-%H%M')}-{secrets.randbelow(10_000):04d}"


def gen_session_id(table_number):
    return f"table-{table_number}-{int(timezone.now().timestamp())}-{secrets.token_hex(4)}"


def round_rupiah(value) -> Decimal:
    return Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def format_rupiah(amount) -> str:
    """``85237`` -> ``"Rp 85.237"``."""
    whole = int(round_rupiah(amount))
    return "Rp " + f"{whole:,}".replace(",", ".")
