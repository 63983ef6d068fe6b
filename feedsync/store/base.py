# feedsync/store/base.py
"""
Counter Store contract.

Every counter mutation in feedsync goes through `CounterStore.transact`. The
adapters (Firestore, in-process) differ in how they detect conflicting
writers, but both guarantee that a transaction whose read set changed before
commit is re-run, and both raise `Aborted` once attempts are exhausted.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, TypeVar

from feedsync.models.cursor import Cursor

T = TypeVar('T')

POSTS = 'community_posts'
LIKES = 'post_likes'
COMMENTS = 'community_post_comments'


class _ServerTimestamp:
    """Placeholder resolved to the commit time by the store."""

    def __repr__(self) -> str:
        return 'SERVER_TIMESTAMP'

    # a single instance; stores compare it by identity
    def __copy__(self) -> '_ServerTimestamp':
        return self

    def __deepcopy__(self, memo) -> '_ServerTimestamp':
        return self


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class Increment:
    """Store-native atomic add, applied at commit time."""
    amount: int


OnNext = Callable[[List[Dict[str, Any]]], None]
OnError = Callable[[Exception], None]


class Subscription(ABC):
    """Handle of a standing query subscription. Must be torn down by its owner."""

    @abstractmethod
    def unsubscribe(self) -> None:
        """Stops deliveries. Calling it more than once is a no-op."""

    @property
    @abstractmethod
    def active(self) -> bool:
        ...


class Transaction(ABC):
    """
    Read-then-write unit handed to the function passed to `CounterStore.transact`.
    All reads must happen before the first write.
    """

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Updates dotted field paths ('metrics.likes'); values may be `Increment`."""

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        ...


class CounterStore(ABC):

    @abstractmethod
    def new_id(self, collection: str) -> str:
        ...

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Unguarded point read outside any transaction."""

    @abstractmethod
    def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Writes a new non-counter document. SERVER_TIMESTAMP values are resolved by the store."""

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        ...

    @abstractmethod
    def query(self, collection: str, where: Optional[Dict[str, Any]] = None, order_by: str = 'created_at',
              descending: bool = True, start_after: Optional[Cursor] = None,
              limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Equality filters on dotted paths, ordered by (order_by, document id)."""

    @abstractmethod
    def subscribe(self, collection: str, on_next: OnNext, on_error: OnError,
                  where: Optional[Dict[str, Any]] = None, order_by: str = 'created_at',
                  descending: bool = True, limit: Optional[int] = None) -> Subscription:
        """Delivers the full ordered window now and again after every change to it."""

    @abstractmethod
    def transact(self, fn: Callable[[Transaction], T], max_attempts: Optional[int] = None) -> T:
        """Runs fn atomically; re-runs it when its reads were invalidated; raises Aborted when attempts run out."""
