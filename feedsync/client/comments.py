# feedsync/client/comments.py
import logging
import threading
from typing import Callable, List, Optional

from feedsync.models.comment import Comment

logger = logging.getLogger(__name__)


class CommentThread:
    """Live, server-ordered comment list of one post. Its only input is the comment subscription."""

    def __init__(self, source, post_id: str):
        """:param source: object exposing subscribe_comments(post_id, on_next, on_error), e.g. CommentService"""
        self._source = source
        self.post_id = post_id
        self._lock = threading.Lock()
        self._comments: List[Comment] = []
        self._subscription = None
        self._listeners: List[Callable[[List[Comment]], None]] = []
        self.loading = True
        self.error: Optional[Exception] = None

    @property
    def comments(self) -> List[Comment]:
        with self._lock:
            return list(self._comments)

    def add_listener(self, listener: Callable[[List[Comment]], None]) -> None:
        self._listeners.append(listener)

    def _on_next(self, comments: List[Comment]) -> None:
        with self._lock:
            self._comments = list(comments)
            self.loading = False
            self.error = None
        for listener in list(self._listeners):
            listener(self.comments)

    def _on_error(self, error: Exception) -> None:
        with self._lock:
            self.loading = False
            self.error = error
        logger.error(f"Comment subscription failed (post_id: {self.post_id}): {error}")

    def start(self) -> None:
        if self._subscription is None:
            self._subscription = self._source.subscribe_comments(self.post_id, self._on_next, self._on_error)

    def close(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.unsubscribe()
