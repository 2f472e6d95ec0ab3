import os
import secrets
import string

from django.utils import timezone

ALNUM = string.ascii_uppercase + string.digits

METHOD_ALIASES = {"transfer": "bank_transfer", "bank": "bank_transfer", "tunai": "cash"}


def normalize_method(method):
    method = (method or "").strip().lower()
    return METHOD_ALIASES.get(method, method)


def gen_unique_code():
    """Transfer unique code in [1, 999]."""
    return secrets.randbelow(999) + 1


def gen_payment_reference(prefix="QR"):
    ts = timezone.now().strftime("%y%m%d%H%M%S")
    rand = "".join(secrets.choice(ALNUM) for _ in range(6))
    return f"{prefix}{ts}{rand}"


def proof_filename(order_id, original_name, content_type=""):
    """payment-proof-<order>-<epoch ms>-<random>.<ext>"""
    ext = os.path.splitext(original_name or "")[1].lstrip(".").lower()
    if not ext:
        ext = (content_type.split("/", 1)[1] if "/" in (content_type or "") else "") or "jpg"
    stamp = int(timezone.now().timestamp() * 1000)
    return f"payment-proof-{order_id}-{stamp}-{secrets.token_hex(4)}.{ext}"
