"""Persisted key-value stores with change notifications.

A store holds JSON-compatible values. Subscribers receive a ``StorageEvent``
when the value under a key is changed by *another* handle, the way a browser
tab is told about storage writes made by other tabs but not about its own.
"""
import json
import logging
import os
import tempfile
import threading
from typing import Callable, NamedTuple
from urllib.parse import quote, unquote

from . import config

logger = logging.getLogger(__name__)

SUFFIX = ".json"


class StorageEvent(NamedTuple):
    key: str
    old_value: object
    new_value: object


class KeyValueStore:
    def __init__(self):
        self._listeners = []
        self._listeners_lock = threading.Lock()

    def get(self, key, default=None):
        raise NotImplementedError

    def set(self, key, value):
        raise NotImplementedError

    def delete(self, key):
        raise NotImplementedError

    def keys(self):
        raise NotImplementedError

    def subscribe(self, callback: Callable[[StorageEvent], None]) -> Callable[[], None]:
        """Register ``callback``; the returned function unregisters it."""
        with self._listeners_lock:
            self._listeners.append(callback)

        def unsubscribe():
            with self._listeners_lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)
        return unsubscribe

    def _notify(self, event: StorageEvent):
        with self._listeners_lock:
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback(event)
            except Exception:
                logger.exception("Storage listener failed for key %s", event.key)


def _dump(value):
    return json.dumps(value, sort_keys=True)


def _load(raw):
    return None if raw is None else json.loads(raw)


class SharedMemoryStore:
    """One in-memory backing map shared by several ``StoreView`` handles.

    Values are kept serialized so no two views ever share a mutable object.
    """

    def __init__(self):
        self._data = {}
        self._views = []
        self._lock = threading.RLock()

    def view(self) -> "StoreView":
        with self._lock:
            view = StoreView(self)
            self._views.append(view)
            return view

    def _read(self, key):
        with self._lock:
            return self._data.get(key)

    def _write(self, origin, key, raw):
        with self._lock:
            old = self._data.get(key)
            if raw is None:
                self._data.pop(key, None)
            else:
                self._data[key] = raw
            others = [v for v in self._views if v is not origin]
        if old == raw:
            return
        event = StorageEvent(key, _load(old), _load(raw))
        for view in others:
            view._notify(event)

    def _keys(self):
        with self._lock:
            return list(self._data)


class StoreView(KeyValueStore):
    def __init__(self, shared: SharedMemoryStore):
        super().__init__()
        self._shared = shared

    def get(self, key, default=None):
        raw = self._shared._read(key)
        return default if raw is None else _load(raw)

    def set(self, key, value):
        self._shared._write(self, key, _dump(value))

    def delete(self, key):
        self._shared._write(self, key, None)

    def keys(self):
        return self._shared._keys()


class FileStore(KeyValueStore):
    """JSON files in a directory, one per key.

    ``directory`` defaults to ``KURING_STATE_DIR``. Writes by other processes
    are picked up by ``poll()``, which compares the files against the last
    content this handle saw and emits events.
    """

    def __init__(self, directory=None):
        super().__init__()
        self.directory = os.fspath(directory or config.KURING_STATE_DIR)
        os.makedirs(self.directory, exist_ok=True)
        self._lock = threading.RLock()
        self._seen = self._scan()

    def _path(self, key):
        return os.path.join(self.directory, quote(key, safe="") + SUFFIX)

    def _scan(self) -> dict:
        snapshot = {}
        for name in os.listdir(self.directory):
            if not name.endswith(SUFFIX):
                continue
            path = os.path.join(self.directory, name)
            try:
                with open(path, encoding="utf-8") as fh:
                    snapshot[unquote(name[:-len(SUFFIX)])] = fh.read()
            except FileNotFoundError:
                continue
        return snapshot

    def get(self, key, default=None):
        try:
            with open(self._path(key), encoding="utf-8") as fh:
                raw = fh.read()
        except FileNotFoundError:
            return default
        try:
            return _load(raw)
        except ValueError:
            logger.warning("Ignoring unreadable value for %s", key)
            return default

    def set(self, key, value):
        raw = _dump(value)
        with self._lock:
            fd, tmp = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(raw)
            os.replace(tmp, self._path(key))
            self._seen[key] = raw

    def delete(self, key):
        with self._lock:
            try:
                os.remove(self._path(key))
            except FileNotFoundError:
                pass
            self._seen.pop(key, None)

    def keys(self):
        return list(self._scan())

    def poll(self) -> int:
        """Emit events for changes made since the last poll; returns how many."""
        with self._lock:
            current = self._scan()
            previous, self._seen = self._seen, current
        events = []
        for key in sorted(set(previous) | set(current)):
            old, new = previous.get(key), current.get(key)
            if old == new:
                continue
            try:
                events.append(StorageEvent(key, _load(old), _load(new)))
            except ValueError:
                logger.warning("Skipping unreadable change for %s", key)
        for event in events:
            self._notify(event)
        return len(events)
