import logging

from .kvstore import StorageEvent

logger = logging.getLogger(__name__)


class CartSyncListener:
    """Keep an in-memory cart in step with writes made by other tabs.

    Only events for the cart's own table key are applied; the last write
    wins and a deleted key empties the cart.
    """

    def __init__(self, cart):
        self.cart = cart
        self._unsubscribe = None

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    def start(self):
        if self._unsubscribe is None:
            self._unsubscribe = self.cart.store.subscribe(self.on_storage_event)
        return self

    def stop(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def on_storage_event(self, event: StorageEvent):
        if event.key != self.cart.key:
            return
        self.cart.replace_state(event.new_value)
        logger.debug("Cart for table %s synced from another tab", self.cart.table_id)

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()
