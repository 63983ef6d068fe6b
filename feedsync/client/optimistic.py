# feedsync/client/optimistic.py
"""
Optimistic Reconciler.

Like state is a small state machine per post:

    CONFIRMED --toggle()--> SPECULATIVE --success--> CONFIRMED
                                        --failure--> ROLLED_BACK --apply_server()--> CONFIRMED

While SPECULATIVE the displayed values are the local guess. Server pushes that
arrive meanwhile only move the rollback target, so a failed call lands on the
newest authoritative values instead of merely undoing the local delta.
"""
import logging
import threading
from enum import Enum
from typing import Callable, Optional

from feedsync.core.errors import InvalidArgument, Unauthenticated
from feedsync.core.identity import Identity, require_identity
from feedsync.models.comment import Comment

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    CONFIRMED = 'confirmed'
    SPECULATIVE = 'speculative'
    ROLLED_BACK = 'rolled_back'


class OptimisticLike:

    def __init__(self, post_id: str, user_id: Optional[str], toggle: Callable[[str, str], bool],
                 likes: int = 0, is_liked: bool = False):
        """
        :param toggle: toggle_like(post_id, user_id) -> new liked state, e.g. PostService.toggle_like
        :param likes: last server-confirmed like count
        :param is_liked: last server-confirmed liked state of this user
        """
        self.post_id = post_id
        self.user_id = user_id
        self._toggle = toggle
        self._lock = threading.Lock()
        self._confirmed_likes = likes
        self._confirmed_liked = is_liked
        self.likes_count = likes
        self.is_liked = is_liked
        self.state = SyncState.CONFIRMED
        self.last_error: Optional[Exception] = None
        # set when apply_server() ran while a toggle was in flight
        self._pushed_while_speculative = False

    @property
    def confirmed(self):
        """(likes, is_liked) as last confirmed by the server."""
        with self._lock:
            return self._confirmed_likes, self._confirmed_liked

    def toggle(self) -> bool:
        """
        Flips the displayed state before the round-trip, then settles it.
        Returns the displayed liked state afterwards. Re-raises the failure after rolling back.
        A click while a toggle is in flight is ignored.
        """
        if not self.user_id:
            raise Unauthenticated()

        with self._lock:
            if self.state is SyncState.SPECULATIVE:
                return self.is_liked
            guess = not self.is_liked
            self.is_liked = guess
            self.likes_count = max(0, self.likes_count + (1 if guess else -1))
            self.state = SyncState.SPECULATIVE
            self._pushed_while_speculative = False

        try:
            liked = self._toggle(self.post_id, self.user_id)
        except Exception as e:
            with self._lock:
                self.is_liked = self._confirmed_liked
                self.likes_count = self._confirmed_likes
                self.state = SyncState.ROLLED_BACK
                self.last_error = e
            logger.info(f"Like rolled back (post_id: {self.post_id}): {e}")
            raise

        with self._lock:
            if self._pushed_while_speculative:
                # the pushed count is authoritative and newer than the local guess
                self.likes_count = self._confirmed_likes
            elif liked != guess:
                # the server was in the other state (e.g. toggled from another device)
                delta = (1 if liked else 0) - (1 if self._confirmed_liked else 0)
                self.likes_count = max(0, self._confirmed_likes + delta)
            self.is_liked = liked
            self._confirmed_liked = liked
            self._confirmed_likes = self.likes_count
            self.state = SyncState.CONFIRMED
            self.last_error = None
            return self.is_liked

    def apply_server(self, likes: int, is_liked: Optional[bool] = None) -> None:
        """Records authoritative values pushed by the server."""
        with self._lock:
            self._confirmed_likes = likes
            if is_liked is not None:
                self._confirmed_liked = is_liked
            if self.state is SyncState.SPECULATIVE:
                self._pushed_while_speculative = True
                return
            self.likes_count = likes
            self.is_liked = self._confirmed_liked
            self.state = SyncState.CONFIRMED


class CommentComposer:
    """
    Comment input of one post.
    The draft is cleared as soon as submit() is called. Submitted comments are never
    inserted locally; they show up when the comment subscription delivers them.
    """

    def __init__(self, post_id: str, identity: Optional[Identity],
                 add_comment: Callable[[str, str, str, str, str], Comment], max_length: int = 1000):
        """
        :param add_comment: add_comment(post_id, user_id, display_name, avatar, content), e.g. CommentService.add_comment
        """
        self.post_id = post_id
        self.identity = identity
        self._add_comment = add_comment
        self.max_length = max_length
        self.draft = ''
        self.failed_draft: Optional[str] = None
        self.submitting = False
        self.last_error: Optional[Exception] = None

    def submit(self) -> Comment:
        text = self.draft.strip()
        if not text:
            raise InvalidArgument("comment must not be empty")
        if len(text) > self.max_length:
            raise InvalidArgument(f"comment must be at most {self.max_length} characters")
        identity = require_identity(self.identity)

        self.draft = ''
        self.failed_draft = None
        self.submitting = True
        try:
            return self._add_comment(self.post_id, identity.user_id, identity.display_name,
                                     identity.avatar_url, text)
        except Exception as e:
            self.failed_draft = text
            self.last_error = e
            logger.warning(f"Comment submission failed (post_id: {self.post_id}): {e}")
            raise
        finally:
            self.submitting = False
