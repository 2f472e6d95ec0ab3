import logging
from datetime import datetime, timedelta, timezone

from .cart import cart_storage_key

logger = logging.getLogger(__name__)

CURRENT_ORDER_KEY = "current-order-id"
PAYMENT_DATA_KEY = "payment-data"
APPLIED_PROMO_KEY = "applied-promo"
CATEGORIES_CACHE_KEY = "categories-cache"
MENU_CACHE_PREFIX = "menu-cache-"
API_CACHE_PREFIX = "api-cache-"
CUSTOMER_INFO_PREFIX = "customer-info-"

MENU_CACHE_TTL = timedelta(hours=1)
CATEGORIES_CACHE_TTL = timedelta(hours=1)
API_CACHE_TTL = timedelta(minutes=30)
CUSTOMER_INFO_MAX_AGE = timedelta(hours=2)


def _now():
    return datetime.now(timezone.utc)


def _parse_time(value):
    """Aware datetime from a stored ISO string, or None if unreadable."""
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def customer_info_key(table_id) -> str:
    return f"{CUSTOMER_INFO_PREFIX}{table_id}"


def save_customer_info(store, table_id, name, phone, email=None, now=None):
    info = {"name": name, "phone": phone, "saved_at": (now or _now()).isoformat()}
    if email:
        info["email"] = email
    store.set(customer_info_key(table_id), info)


def get_customer_info(store, table_id):
    return store.get(customer_info_key(table_id))


def save_current_order(store, order_id):
    store.set(CURRENT_ORDER_KEY, str(order_id))


def get_current_order(store):
    return store.get(CURRENT_ORDER_KEY)


def save_payment_data(store, payment: dict):
    store.set(PAYMENT_DATA_KEY, payment)


# caches
def menu_cache_key(table_id) -> str:
    return f"{MENU_CACHE_PREFIX}{table_id}"


def _save_cached(store, key, payload_name, data, now):
    store.set(key, {payload_name: data, "cached_at": (now or _now()).isoformat()})


def _get_cached(store, key, payload_name, ttl, now):
    raw = store.get(key)
    if not isinstance(raw, dict):
        return None
    cached_at = _parse_time(raw.get("cached_at"))
    if cached_at is None or (now or _now()) - cached_at > ttl:
        store.delete(key)
        return None
    return raw.get(payload_name)


def save_menu_cache(store, table_id, menu, now=None):
    _save_cached(store, menu_cache_key(table_id), "menu", menu, now)


def get_menu_cache(store, table_id, now=None):
    """The table's cached menu, or None once it is older than an hour."""
    return _get_cached(store, menu_cache_key(table_id), "menu", MENU_CACHE_TTL, now)


def save_categories_cache(store, categories, now=None):
    _save_cached(store, CATEGORIES_CACHE_KEY, "categories", categories, now)


def get_categories_cache(store, now=None):
    return _get_cached(store, CATEGORIES_CACHE_KEY, "categories", CATEGORIES_CACHE_TTL, now)


def set_api_cache(store, key, data, ttl=API_CACHE_TTL, now=None):
    now = now or _now()
    store.set(f"{API_CACHE_PREFIX}{key}", {
        "data": data,
        "cached_at": now.isoformat(),
        "expires_at": (now + ttl).isoformat(),
    })


def get_api_cache(store, key, now=None):
    cache_key = f"{API_CACHE_PREFIX}{key}"
    raw = store.get(cache_key)
    if not isinstance(raw, dict):
        return None
    expires_at = _parse_time(raw.get("expires_at"))
    if expires_at is None or (now or _now()) > expires_at:
        store.delete(cache_key)
        return None
    return raw.get("data")


def clear_all_cache(store) -> int:
    removed = 0
    for key in store.keys():
        if "cache" in key:
            store.delete(key)
            removed += 1
    return removed


def clear_expired_items(store, now=None) -> int:
    """Drop expired or unreadable API cache entries; returns how many."""
    now = now or _now()
    removed = 0
    for key in store.keys():
        if not key.startswith(API_CACHE_PREFIX):
            continue
        raw = store.get(key)
        expires_at = _parse_time(raw.get("expires_at")) if isinstance(raw, dict) else None
        if expires_at is None or now > expires_at:
            store.delete(key)
            removed += 1
    return removed


def clear_old_customer_data(store, now=None) -> int:
    """Forget customer info saved more than two hours ago, or without a timestamp."""
    cutoff = (now or _now()) - CUSTOMER_INFO_MAX_AGE
    removed = 0
    for key in store.keys():
        if not key.startswith(CUSTOMER_INFO_PREFIX):
            continue
        raw = store.get(key)
        saved_at = _parse_time(raw.get("saved_at")) if isinstance(raw, dict) else None
        if saved_at is None or saved_at < cutoff:
            store.delete(key)
            removed += 1
            logger.info("Removed old customer info %s", key)
    return removed


def clear_session_data(store, table_id, cart=None):
    """Forget everything this table's visit left in ``store``.

    ``cart`` is the caller's own in-memory cart; it is emptied too, since a
    store does not tell the handle that deleted a key about the deletion.
    """
    if cart is not None:
        cart.replace_state(None)
    for key in (
        cart_storage_key(table_id),
        customer_info_key(table_id),
        CURRENT_ORDER_KEY,
        PAYMENT_DATA_KEY,
        APPLIED_PROMO_KEY,
    ):
        store.delete(key)
    logger.info("Session data cleared for table %s", table_id)
