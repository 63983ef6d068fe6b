# feedsync/store/firestore.py
"""
Cloud Firestore implementation of the Counter Store contract (firebase_admin).

- transact()  -> @firestore.transactional; Firestore re-runs the function when
                 a read document changed before commit
- Increment   -> firestore.Increment
- subscribe() -> Query.on_snapshot; callbacks run on the listener thread
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions

from feedsync.core.errors import Aborted, NotFound
from feedsync.models.cursor import Cursor
from feedsync.store.base import (
    CounterStore, Increment, OnError, OnNext, SERVER_TIMESTAMP, Subscription, T, Transaction
)
from feedsync.utils.datetime_utils import DateTimeUtils

logger = logging.getLogger(__name__)

# message of the ValueError raised by google-cloud-firestore when all attempts failed
_EXCEEDED_ATTEMPTS_PREFIX = 'Failed to commit transaction'


def _to_firestore(value: Any) -> Any:
    if value is SERVER_TIMESTAMP:
        return firestore.SERVER_TIMESTAMP
    if isinstance(value, Increment):
        return firestore.Increment(value.amount)
    if isinstance(value, dict):
        return {k: _to_firestore(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_firestore(v) for v in value]
    return DateTimeUtils.for_firestore(value)


def _snapshot_to_dict(snapshot) -> Optional[Dict[str, Any]]:
    if not snapshot.exists:
        return None
    return DateTimeUtils.from_firestore(snapshot.to_dict())


class _FirestoreTransaction(Transaction):

    def __init__(self, db, transaction):
        self._db = db
        self._transaction = transaction

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        snapshot = self._db.collection(collection).document(doc_id).get(transaction=self._transaction)
        return _snapshot_to_dict(snapshot)

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self._transaction.set(self._db.collection(collection).document(doc_id), _to_firestore(data))

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        self._transaction.update(self._db.collection(collection).document(doc_id), _to_firestore(fields))

    def delete(self, collection: str, doc_id: str) -> None:
        self._transaction.delete(self._db.collection(collection).document(doc_id))


class _FirestoreSubscription(Subscription):

    def __init__(self, watch):
        self._watch = watch
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._active = False
            self._watch.unsubscribe()


class FirestoreCounterStore(CounterStore):

    def __init__(self, db=None, max_attempts: int = 5):
        self.db = db or firestore.client()
        self.max_attempts = max_attempts

    def _build_query(self, collection: str, where: Optional[Dict[str, Any]], order_by: str, descending: bool,
                     start_after: Optional[Cursor], limit: Optional[int]):
        collection_ref = self.db.collection(collection)
        query = collection_ref
        for path, value in (where or {}).items():
            query = query.where(path, '==', value)
        direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
        query = query.order_by(order_by, direction=direction)

        if start_after is not None:
            # the cursor document gives Firestore the (order_by, __name__) tie-break;
            # if it was deleted meanwhile fall back to the ordering value alone
            cursor_doc = collection_ref.document(start_after.doc_id).get()
            if cursor_doc.exists:
                query = query.start_after(cursor_doc)
            else:
                query = query.start_after({order_by: start_after.created_at})

        if limit is not None:
            query = query.limit(limit)
        return query

    def new_id(self, collection: str) -> str:
        return self.db.collection(collection).document().id

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return _snapshot_to_dict(self.db.collection(collection).document(doc_id).get())

    def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self.db.collection(collection).document(doc_id).set(_to_firestore(data))

    def delete(self, collection: str, doc_id: str) -> None:
        self.db.collection(collection).document(doc_id).delete()

    def query(self, collection: str, where: Optional[Dict[str, Any]] = None, order_by: str = 'created_at',
              descending: bool = True, start_after: Optional[Cursor] = None,
              limit: Optional[int] = None) -> List[Dict[str, Any]]:
        query = self._build_query(collection, where, order_by, descending, start_after, limit)
        return [DateTimeUtils.from_firestore(doc.to_dict()) for doc in query.stream()]

    def subscribe(self, collection: str, on_next: OnNext, on_error: OnError,
                  where: Optional[Dict[str, Any]] = None, order_by: str = 'created_at',
                  descending: bool = True, limit: Optional[int] = None) -> Subscription:
        query = self._build_query(collection, where, order_by, descending, None, limit)

        def _on_snapshot(docs, changes, read_time):
            try:
                window = [DateTimeUtils.from_firestore(doc.to_dict()) for doc in docs]
            except Exception as e:
                logger.error(f"Snapshot conversion failed (collection: {collection}): {e}", exc_info=True)
                on_error(e)
                return
            on_next(window)

        return _FirestoreSubscription(query.on_snapshot(_on_snapshot))

    def transact(self, fn: Callable[[Transaction], T], max_attempts: Optional[int] = None) -> T:
        transaction = self.db.transaction(max_attempts=max_attempts or self.max_attempts)

        @firestore.transactional
        def _run_in_transaction(transaction):
            return fn(_FirestoreTransaction(self.db, transaction))

        try:
            return _run_in_transaction(transaction)
        except google_exceptions.Aborted as e:
            raise Aborted(str(e)) from e
        except google_exceptions.NotFound as e:
            raise NotFound(str(e)) from e
        except ValueError as e:
            if str(e).startswith(_EXCEEDED_ATTEMPTS_PREFIX):
                raise Aborted(str(e)) from e
            raise
