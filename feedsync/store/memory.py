# feedsync/store/memory.py
"""
In-process Counter Store.

Documents carry a version number. A transaction remembers the version of
every document it read; at commit time the versions are compared under the
store lock and the transaction is re-run when any of them moved
(optimistic concurrency, the same contract Firestore offers). Subscribers are
re-evaluated after every commit that touches their collection and receive the
whole window when it changed.
"""
import copy
import logging
import threading
import uuid
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from feedsync.core.errors import Aborted, NotFound
from feedsync.models.cursor import Cursor
from feedsync.store.base import (
    CounterStore, Increment, OnError, OnNext, SERVER_TIMESTAMP, Subscription, T, Transaction
)
from feedsync.utils.datetime_utils import DateTimeUtils

logger = logging.getLogger(__name__)

_MISSING = object()


def _get_path(data: Dict[str, Any], path: str) -> Any:
    current: Any = data
    for part in path.split('.'):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _set_path(data: Dict[str, Any], path: str, value: Any) -> None:
    parts = path.split('.')
    current = data
    for part in parts[:-1]:
        current = current.setdefault(part, {})
    leaf = parts[-1]
    if isinstance(value, Increment):
        value = (current.get(leaf) or 0) + value.amount
    current[leaf] = value


def _resolve(value: Any, timestamp) -> Any:
    if value is SERVER_TIMESTAMP:
        return timestamp
    if isinstance(value, Increment):
        return value.amount
    if isinstance(value, dict):
        return {k: _resolve(v, timestamp) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve(v, timestamp) for v in value]
    return value


class _MemoryTransaction(Transaction):

    def __init__(self, store: 'MemoryCounterStore'):
        self._store = store
        self.reads: Dict[Tuple[str, str], int] = {}
        self.writes: List[Tuple[str, str, str, Optional[Dict[str, Any]]]] = []

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        if self.writes:
            raise ValueError("transaction reads must happen before writes")
        data, version = self._store._read(collection, doc_id)
        self.reads.setdefault((collection, doc_id), version)
        return data

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self.writes.append(('set', collection, doc_id, copy.deepcopy(data)))

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        self.writes.append(('update', collection, doc_id, dict(fields)))

    def delete(self, collection: str, doc_id: str) -> None:
        self.writes.append(('delete', collection, doc_id, None))


class _MemorySubscription(Subscription):

    def __init__(self, store: 'MemoryCounterStore', collection: str, query_args: Dict[str, Any],
                 on_next: OnNext, on_error: OnError):
        self._store = store
        self.collection = collection
        self._query_args = query_args
        self._on_next = on_next
        self._on_error = on_error
        self._last: Optional[List[Dict[str, Any]]] = None
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        self._store._remove_subscription(self)
        self._active = False

    def deliver(self) -> None:
        window = self._store._run_query(self.collection, **self._query_args)
        if window == self._last:
            return
        self._last = window
        try:
            self._on_next(copy.deepcopy(window))
        except Exception as e:
            logger.error(f"Subscriber callback failed (collection: {self.collection}): {e}", exc_info=True)

    def fail(self, error: Exception) -> None:
        self._active = False
        self._on_error(error)


class MemoryCounterStore(CounterStore):
    """Thread-safe in-process implementation of the Counter Store contract."""

    def __init__(self, max_attempts: int = 5):
        self.max_attempts = max_attempts
        self.conflicts = 0
        self._lock = threading.RLock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._versions: Dict[Tuple[str, str], int] = {}
        self._subscriptions: List[_MemorySubscription] = []
        self._last_timestamp = None

    # --- internal helpers (callers hold no lock) ---

    def _timestamp(self):
        """Strictly increasing commit timestamp. Caller holds the lock."""
        ts = DateTimeUtils.now()
        if self._last_timestamp is not None and ts <= self._last_timestamp:
            ts = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = ts
        return ts

    def _read(self, collection: str, doc_id: str) -> Tuple[Optional[Dict[str, Any]], int]:
        with self._lock:
            data = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(data), self._versions.get((collection, doc_id), 0)

    def _run_query(self, collection: str, where: Optional[Dict[str, Any]] = None, order_by: str = 'created_at',
                   descending: bool = True, start_after: Optional[Cursor] = None,
                   limit: Optional[int] = None) -> List[Dict[str, Any]]:
        with self._lock:
            rows = []
            for doc_id, data in self._collections.get(collection, {}).items():
                if any(_get_path(data, path) != value for path, value in (where or {}).items()):
                    continue
                order_value = _get_path(data, order_by)
                # like Firestore, documents without the ordering field never match
                if order_value is _MISSING or order_value is None:
                    continue
                rows.append(((order_value, doc_id), data))

            rows.sort(key=lambda row: row[0], reverse=descending)
            if start_after is not None:
                if descending:
                    rows = [row for row in rows if row[0] < start_after.key]
                else:
                    rows = [row for row in rows if row[0] > start_after.key]
            if limit is not None:
                rows = rows[:limit]
            return [copy.deepcopy(data) for _, data in rows]

    def _remove_subscription(self, subscription: _MemorySubscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _notify(self, collections) -> None:
        """Caller holds the lock, so deliveries keep commit order."""
        for subscription in list(self._subscriptions):
            if subscription.collection in collections and subscription.active:
                subscription.deliver()

    def _commit(self, txn: _MemoryTransaction) -> bool:
        with self._lock:
            for key, version in txn.reads.items():
                if self._versions.get(key, 0) != version:
                    return False

            timestamp = self._timestamp()
            staged: Dict[Tuple[str, str], Optional[Dict[str, Any]]] = {}
            for op, collection, doc_id, data in txn.writes:
                key = (collection, doc_id)
                if op == 'set':
                    staged[key] = _resolve(data, timestamp)
                elif op == 'delete':
                    staged[key] = None
                else:
                    current = staged[key] if key in staged else copy.deepcopy(
                        self._collections.get(collection, {}).get(doc_id))
                    if current is None:
                        raise NotFound(f"cannot update missing document {collection}/{doc_id}")
                    for path, value in data.items():
                        _set_path(current, path, value if isinstance(value, Increment) else _resolve(value, timestamp))
                    staged[key] = current

            for (collection, doc_id), data in staged.items():
                docs = self._collections.setdefault(collection, {})
                if data is None:
                    docs.pop(doc_id, None)
                else:
                    docs[doc_id] = data
                self._versions[(collection, doc_id)] = self._versions.get((collection, doc_id), 0) + 1

            self._notify({collection for collection, _ in staged})
            return True

    # --- CounterStore ---

    def new_id(self, collection: str) -> str:
        return uuid.uuid4().hex

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        data, _ = self._read(collection, doc_id)
        return data

    def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        def _create(txn: Transaction) -> None:
            txn.set(collection, doc_id, data)
        self.transact(_create)

    def delete(self, collection: str, doc_id: str) -> None:
        def _delete(txn: Transaction) -> None:
            txn.delete(collection, doc_id)
        self.transact(_delete)

    def query(self, collection: str, where: Optional[Dict[str, Any]] = None, order_by: str = 'created_at',
              descending: bool = True, start_after: Optional[Cursor] = None,
              limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return self._run_query(collection, where=where, order_by=order_by, descending=descending,
                               start_after=start_after, limit=limit)

    def subscribe(self, collection: str, on_next: OnNext, on_error: OnError,
                  where: Optional[Dict[str, Any]] = None, order_by: str = 'created_at',
                  descending: bool = True, limit: Optional[int] = None) -> Subscription:
        query_args = dict(where=where, order_by=order_by, descending=descending, limit=limit)
        subscription = _MemorySubscription(self, collection, query_args, on_next, on_error)
        with self._lock:
            self._subscriptions.append(subscription)
            subscription.deliver()
        return subscription

    def transact(self, fn: Callable[[Transaction], T], max_attempts: Optional[int] = None) -> T:
        attempts = max_attempts or self.max_attempts
        for attempt in range(1, attempts + 1):
            txn = _MemoryTransaction(self)
            result = fn(txn)
            if self._commit(txn):
                return result
            with self._lock:
                self.conflicts += 1
            logger.debug(f"Transaction conflict, re-running (attempt {attempt}/{attempts})")
        raise Aborted(f"transaction failed to commit in {attempts} attempts")

    # --- listen stream control ---

    def break_subscriptions(self, error: Optional[Exception] = None) -> None:
        """Terminates every standing subscription with a transport error, as a dropped listen stream would."""
        with self._lock:
            subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription.fail(error or ConnectionError("listen stream closed"))

    @property
    def subscription_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)
