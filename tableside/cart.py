import logging
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal

from . import config

logger = logging.getLogger(__name__)

MAX_ITEMS_PER_PRODUCT = 10
MAX_TOTAL_ITEMS = 50
SESSION_TIMEOUT = timedelta(minutes=30)
MINIMUM_TOTAL = 1000


class CartError(Exception):
    pass


def cart_storage_key(table_id) -> str:
    return f"cart-storage-table-{table_id}"


def _now():
    return datetime.now(timezone.utc)


def _round(value) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def normalize_customizations(customizations) -> dict:
    """Group id -> sorted option ids, empty groups dropped."""
    normalized = {}
    for group_id, option_ids in sorted((customizations or {}).items()):
        options = sorted(str(o) for o in (option_ids or []))
        if options:
            normalized[str(group_id)] = options
    return normalized


def line_key(menu_item_id, customizations) -> str:
    parts = "|".join(f"{g}:{','.join(opts)}" for g, opts in normalize_customizations(customizations).items())
    return f"{menu_item_id}#{parts}"


@dataclass
class CartLineItem:
    menu_item_id: str
    name: str
    unit_price: int
    quantity: int = 1
    customizations: dict = field(default_factory=dict)
    notes: str = ""
    preparation_time: int = 15
    added_at: str = ""

    @property
    def key(self) -> str:
        return line_key(self.menu_item_id, self.customizations)

    @property
    def subtotal(self) -> int:
        return self.unit_price * self.quantity

    @classmethod
    def from_dict(cls, raw: dict) -> "CartLineItem":
        return cls(
            menu_item_id=str(raw["menu_item_id"]),
            name=raw.get("name", ""),
            unit_price=int(raw.get("unit_price", 0)),
            quantity=int(raw.get("quantity", 1)),
            customizations=normalize_customizations(raw.get("customizations")),
            notes=raw.get("notes", ""),
            preparation_time=int(raw.get("preparation_time", 15)),
            added_at=raw.get("added_at", ""),
        )


class CartStore:
    """The cart of one table, persisted under that table's storage key.

    Every mutation is written through to ``store``; ``replace_state`` is how
    a change made elsewhere (another tab) is taken over without writing back.
    """

    def __init__(self, table_id, store, clock=None):
        if not table_id:
            raise CartError("Nomor meja tidak valid")
        self.table_id = str(table_id)
        self.key = cart_storage_key(self.table_id)
        self.store = store
        self.clock = clock or _now
        self._lock = threading.RLock()
        self.items = []
        self.applied_promo = None
        self.last_activity = self.clock()
        self.load()

    # state
    def to_state(self) -> dict:
        with self._lock:
            return {
                "table_id": self.table_id,
                "items": [asdict(item) for item in self.items],
                "applied_promo": self.applied_promo,
                "last_activity": self.last_activity.isoformat(),
            }

    def replace_state(self, raw):
        with self._lock:
            if not raw:
                self.items = []
                self.applied_promo = None
                return
            self.items = [CartLineItem.from_dict(item) for item in raw.get("items", [])]
            self.applied_promo = raw.get("applied_promo")
            if raw.get("last_activity"):
                self.last_activity = datetime.fromisoformat(raw["last_activity"])

    def load(self):
        self.replace_state(self.store.get(self.key))

    def _persist(self):
        self.last_activity = self.clock()
        self.store.set(self.key, self.to_state())

    def is_session_valid(self, now=None) -> bool:
        return (now or self.clock()) - self.last_activity < SESSION_TIMEOUT

    def _ensure_session(self):
        if not self.is_session_valid():
            raise CartError("Sesi sudah berakhir")

    # queries
    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def find_item(self, menu_item_id, customizations=None):
        key = line_key(menu_item_id, customizations)
        return next((item for item in self.items if item.key == key), None)

    def item_quantity(self, menu_item_id) -> int:
        return sum(item.quantity for item in self.items if item.menu_item_id == str(menu_item_id))

    def summary(self) -> dict:
        with self._lock:
            subtotal = sum(item.subtotal for item in self.items)
            tax = _round(subtotal * config.TAX_RATE)
            service_fee = _round(subtotal * config.SERVICE_FEE_RATE)
            discount = int((self.applied_promo or {}).get("discount_amount", 0))
            total = max(MINIMUM_TOTAL, subtotal + tax + service_fee - discount) if self.items else 0
            return {
                "subtotal": subtotal,
                "tax": tax,
                "service_fee": service_fee,
                "discount": discount,
                "total": total,
                "item_count": self.item_count,
                "estimated_time": max((item.preparation_time for item in self.items), default=0),
            }

    def validate(self) -> dict:
        errors = []
        warnings = []
        if not self.items:
            errors.append("Keranjang kosong")
        if not self.is_session_valid():
            errors.append("Sesi sudah berakhir")
        if self.item_count > MAX_TOTAL_ITEMS:
            errors.append(f"Terlalu banyak item (maksimal {MAX_TOTAL_ITEMS})")
        for item in self.items:
            if item.quantity > MAX_ITEMS_PER_PRODUCT:
                errors.append(f"{item.name}: terlalu banyak (maksimal {MAX_ITEMS_PER_PRODUCT})")

        summary = self.summary()
        if summary["estimated_time"] > 60:
            warnings.append("Waktu persiapan lebih dari 1 jam")
        if self.items and summary["total"] < 10000:
            warnings.append("Minimum pemesanan Rp 10.000")
        if summary["total"] > 1000000:
            warnings.append("Pemesanan sangat besar - konfirmasi diperlukan")
        return {"is_valid": not errors, "errors": errors, "warnings": warnings}

    # mutations
    def add_item(self, menu_item_id, name, unit_price, quantity=1, customizations=None, notes="",
                 preparation_time=15) -> CartLineItem:
        if quantity < 1:
            raise CartError("Jumlah minimal 1")
        with self._lock:
            self._ensure_session()
            if self.item_count + quantity > MAX_TOTAL_ITEMS:
                raise CartError(f"Maksimal {MAX_TOTAL_ITEMS} item per pesanan")
            line = self.find_item(menu_item_id, customizations)
            if line is not None:
                if line.quantity + quantity > MAX_ITEMS_PER_PRODUCT:
                    raise CartError(f"Maksimal {MAX_ITEMS_PER_PRODUCT} item per menu")
                line.quantity += quantity
                if notes:
                    line.notes = notes
            else:
                if quantity > MAX_ITEMS_PER_PRODUCT:
                    raise CartError(f"Maksimal {MAX_ITEMS_PER_PRODUCT} item per menu")
                line = CartLineItem(
                    menu_item_id=str(menu_item_id),
                    name=name,
                    unit_price=int(unit_price),
                    quantity=quantity,
                    customizations=normalize_customizations(customizations),
                    notes=notes,
                    preparation_time=preparation_time,
                    added_at=self.clock().isoformat(),
                )
                self.items.append(line)
            self._persist()
            return line

    def update_quantity(self, key, quantity):
        with self._lock:
            self._ensure_session()
            line = next((item for item in self.items if item.key == key), None)
            if line is None:
                raise CartError("Item tidak ditemukan di keranjang")
            if quantity <= 0:
                self.items.remove(line)
            else:
                if quantity > MAX_ITEMS_PER_PRODUCT:
                    raise CartError(f"Maksimal {MAX_ITEMS_PER_PRODUCT} item per menu")
                if self.item_count - line.quantity + quantity > MAX_TOTAL_ITEMS:
                    raise CartError(f"Maksimal {MAX_TOTAL_ITEMS} item per pesanan")
                line.quantity = quantity
            self._persist()

    def remove_item(self, key):
        self.update_quantity(key, 0)

    def clear(self):
        """Empty the cart; this also starts a fresh session."""
        with self._lock:
            self.items = []
            self.applied_promo = None
            self._persist()

    def apply_promo(self, promo: dict):
        """Apply a validated promo (the ``/api/promo/validate`` result)."""
        if not promo or not promo.get("valid"):
            raise CartError((promo or {}).get("message") or "Kode promo tidak valid")
        with self._lock:
            self._ensure_session()
            details = promo.get("promo") or {}
            self.applied_promo = {
                "code": details.get("code") or promo.get("code", ""),
                "name": details.get("name", ""),
                "discount_amount": int(promo.get("discount_amount", 0)),
            }
            self._persist()

    def remove_promo(self):
        with self._lock:
            self.applied_promo = None
            self._persist()

    def to_payload(self, customer_name, customer_phone, customer_email=None, customer_notes=None) -> dict:
        """Request body for ``POST /api/order``; prices are decided by the server."""
        with self._lock:
            payload = {
                "table_id": self.table_id,
                "customer_name": customer_name,
                "customer_phone": customer_phone,
                "items": [
                    {
                        "menu_item_id": item.menu_item_id,
                        "quantity": item.quantity,
                        "customizations": item.customizations,
                        "notes": item.notes,
                    }
                    for item in self.items
                ],
            }
            if customer_email:
                payload["customer_email"] = customer_email
            if customer_notes:
                payload["customer_notes"] = customer_notes
            if self.applied_promo:
                payload["promo_code"] = self.applied_promo["code"]
            return payload
