# feedsync/client/feed.py
"""
Feed Synchronizer: the locally materialized window of one open feed view.

The window is the union of two sources:
- the live first page (a standing subscription to the newest `page_size` posts),
  replaced wholesale on every delivery
- older pages fetched on demand with `load_more()`

Both are merged by post id and ordered by (created_at, post_id) descending.
Deliveries can arrive on store listener threads, so all window state sits
behind one lock. Store calls are never made while holding it.
"""
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from feedsync.core.errors import NotFound
from feedsync.models.cursor import Cursor
from feedsync.models.post import Post

logger = logging.getLogger(__name__)


class FeedState(str, Enum):
    IDLE = 'idle'
    LIVE_FIRST_PAGE = 'live_first_page'
    PAGING_OLDER = 'paging_older'
    EXHAUSTED = 'exhausted'
    CLOSED = 'closed'


@dataclass(frozen=True)
class FeedSnapshot:
    """Immutable view of the window handed to listeners."""
    posts: Tuple[Post, ...]
    state: FeedState
    has_more: bool
    is_fetching: bool
    error: Optional[Exception]
    paging_error: Optional[Exception]


def _key(post: Post):
    return (post.created_at, post.post_id)


def merge_posts(*sources: Iterable[Post]) -> List[Post]:
    """Union by post_id (earlier sources win) in (created_at, post_id) descending order."""
    merged: Dict[str, Post] = {}
    for source in sources:
        for post in source:
            merged.setdefault(post.post_id, post)
    return sorted(merged.values(), key=_key, reverse=True)


class FeedSynchronizer:

    def __init__(self, source, type_filter: Optional[str] = None, page_size: int = 10):
        """
        :param source: object exposing list_posts(type_filter, cursor, limit) and
                       subscribe_feed(on_next, on_error, type_filter, limit), e.g. PostService
        """
        self._source = source
        self.page_size = page_size
        self._lock = threading.RLock()
        self._listeners: List[Callable[[FeedSnapshot], None]] = []
        self._reset(type_filter)

    def _reset(self, type_filter: Optional[str]) -> None:
        self.type_filter = type_filter
        self.state = FeedState.IDLE
        self.cursor: Optional[Cursor] = None
        self.has_more = False
        self.error: Optional[Exception] = None
        self.paging_error: Optional[Exception] = None
        self._live: List[Post] = []
        self._older: List[Post] = []
        self._window: List[Post] = []
        self._fetching = False
        self._subscription = None
        self._generation = getattr(self, '_generation', 0) + 1

    # =====================================================================================
    # Observers
    # =====================================================================================

    def add_listener(self, listener: Callable[[FeedSnapshot], None]) -> None:
        """Listeners run on the delivering thread while the window lock is held; keep them short."""
        with self._lock:
            self._listeners.append(listener)

    def snapshot(self) -> FeedSnapshot:
        with self._lock:
            return FeedSnapshot(
                posts=tuple(self._window),
                state=self.state,
                has_more=self.has_more,
                is_fetching=self._fetching,
                error=self.error,
                paging_error=self.paging_error
            )

    @property
    def posts(self) -> List[Post]:
        with self._lock:
            return list(self._window)

    @property
    def is_fetching(self) -> bool:
        with self._lock:
            return self._fetching

    def _emit(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Feed listener failed: {e}", exc_info=True)

    def _rebuild(self) -> None:
        self._window = merge_posts(self._live, self._older)

    # =====================================================================================
    # Live first page
    # =====================================================================================

    def start(self) -> None:
        """Opens the live subscription for the current filter (IDLE -> LIVE_FIRST_PAGE on first delivery)."""
        with self._lock:
            if self.state is FeedState.CLOSED or self._subscription is not None:
                return
            generation = self._generation
        self._subscribe(generation)

    def _subscribe(self, generation: int) -> None:
        subscription = self._source.subscribe_feed(
            on_next=lambda posts: self._on_live(generation, posts),
            on_error=lambda error: self._on_live_error(generation, error),
            type_filter=self.type_filter,
            limit=self.page_size
        )
        with self._lock:
            if generation == self._generation and self.state is not FeedState.CLOSED:
                self._subscription = subscription
                return
        # closed or re-filtered while subscribing
        subscription.unsubscribe()

    def _on_live(self, generation: int, posts: List[Post]) -> None:
        with self._lock:
            if generation != self._generation or self.state is FeedState.CLOSED:
                return

            new_ids = {post.post_id for post in posts}
            full = len(posts) == self.page_size
            if full:
                # a full window says nothing about posts older than its last item:
                # those were pushed out by newer posts, not deleted
                boundary = _key(posts[-1])
                shifted = [p for p in self._live if p.post_id not in new_ids and _key(p) < boundary]
                self._older = merge_posts(shifted, self._older)
            self._older = [p for p in self._older if p.post_id not in new_ids]
            self._live = list(posts)
            self.error = None

            if self.state is FeedState.IDLE:
                self.state = FeedState.LIVE_FIRST_PAGE
            if self.state is FeedState.LIVE_FIRST_PAGE:
                self.has_more = full
                if posts:
                    self.cursor = Cursor(created_at=posts[-1].created_at, doc_id=posts[-1].post_id)

            self._rebuild()
            logger.debug(f"Live window delivered ({len(posts)} posts, filter: {self.type_filter})")
            self._emit()

    def _on_live_error(self, generation: int, error: Exception) -> None:
        with self._lock:
            if generation != self._generation or self.state is FeedState.CLOSED:
                return
            self.error = error
            subscription, self._subscription = self._subscription, None
            logger.error(f"Live feed subscription failed (filter: {self.type_filter}): {error}")
            self._emit()
        if subscription is not None:
            subscription.unsubscribe()

    def retry(self) -> None:
        """Re-opens the live subscription after a sticky error. The merged window is kept."""
        with self._lock:
            if self.state is FeedState.CLOSED or self.error is None:
                return
            self._generation += 1
            generation = self._generation
            subscription, self._subscription = self._subscription, None
            self.error = None
        if subscription is not None:
            subscription.unsubscribe()
        try:
            self._subscribe(generation)
        except Exception as e:
            self._on_live_error(generation, e)

    # =====================================================================================
    # Older pages
    # =====================================================================================

    def load_more(self) -> bool:
        """
        Fetches the next older page. Returns True when a page was merged.
        Ignored before the first delivery, while a fetch is running, after exhaustion and after close.
        A failed fetch leaves cursor and has_more untouched and records paging_error.
        """
        with self._lock:
            if (self.state not in (FeedState.LIVE_FIRST_PAGE, FeedState.PAGING_OLDER)
                    or self._fetching or not self.has_more or self.cursor is None):
                return False
            self._fetching = True
            generation = self._generation
            cursor = self.cursor
            previous_state = self.state
            self.state = FeedState.PAGING_OLDER
            self._emit()

        try:
            posts, _ = self._source.list_posts(type_filter=self.type_filter, cursor=cursor, limit=self.page_size)
        except Exception as e:
            with self._lock:
                if generation != self._generation:
                    return False
                self._fetching = False
                self.paging_error = e
                self.state = previous_state
                logger.warning(f"Loading older posts failed (filter: {self.type_filter}): {e}")
                self._emit()
            return False

        with self._lock:
            if generation != self._generation or self.state is FeedState.CLOSED:
                return False
            self._fetching = False
            self.paging_error = None
            live_ids = {post.post_id for post in self._live}
            self._older = merge_posts([p for p in posts if p.post_id not in live_ids], self._older)
            if posts:
                self.cursor = Cursor(created_at=posts[-1].created_at, doc_id=posts[-1].post_id)
            self.has_more = len(posts) == self.page_size
            self.state = FeedState.PAGING_OLDER if self.has_more else FeedState.EXHAUSTED
            self._rebuild()
            logger.debug(f"Older page merged ({len(posts)} posts, state: {self.state.value})")
            self._emit()
        return True

    # =====================================================================================
    # Local corrections & lifecycle
    # =====================================================================================

    def remove(self, post_id: str) -> None:
        """Drops a stale post, e.g. after a mutation reported NotFound."""
        with self._lock:
            self._live = [p for p in self._live if p.post_id != post_id]
            self._older = [p for p in self._older if p.post_id != post_id]
            self._rebuild()
            self._emit()

    def handle_mutation_error(self, post_id: str, error: Exception) -> None:
        if isinstance(error, NotFound):
            self.remove(post_id)

    def close(self) -> None:
        """Tears down the live subscription. Must be called when the view goes away."""
        with self._lock:
            if self.state is FeedState.CLOSED:
                return
            self.state = FeedState.CLOSED
            self._generation += 1
            subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.unsubscribe()

    def set_filter(self, type_filter: Optional[str]) -> None:
        """Discards the current window and starts a fresh one for the new filter."""
        self.close()
        with self._lock:
            self._reset(type_filter)
        self.start()

    def __enter__(self) -> 'FeedSynchronizer':
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
