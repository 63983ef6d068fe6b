# feedsync/api/comments/services.py

import logging
from typing import Optional, List, Callable

from feedsync.core.errors import FeedSyncError, InvalidArgument, NotFound, Unauthenticated
from feedsync.core.retry import retry_on_aborted
from feedsync.models.comment import Comment
from feedsync.models.post import Author
from feedsync.store.base import COMMENTS, CounterStore, POSTS, SERVER_TIMESTAMP, Subscription, Transaction


class CommentService:
    """
    Comment threads of community posts.
    Creating a comment and bumping the post's metrics.comments happen in one transaction.
    """
    def __init__(self, store: CounterStore, max_length: int = 1000,
                 aborted_retry_attempts: int = 3, aborted_retry_wait: float = 0.05):
        self.store = store
        self.max_length = max_length
        self._retry = retry_on_aborted(aborted_retry_attempts, aborted_retry_wait)

    def validate_content(self, content: Optional[str]) -> str:
        """Returns the trimmed content or raises InvalidArgument. Needs no store access."""
        text = (content or '').strip()
        if not text:
            raise InvalidArgument("comment must not be empty")
        if len(text) > self.max_length:
            raise InvalidArgument(f"comment must be at most {self.max_length} characters")
        return text

    def add_comment(self, post_id: str, user_id: Optional[str], display_name: Optional[str],
                    avatar: Optional[str], content: str) -> Comment:
        """Creates a comment and increments the post's comment counter atomically."""
        text = self.validate_content(content)
        if not user_id:
            raise Unauthenticated()

        author = Author(user_id=user_id, display_name=display_name or 'Anonymous', avatar_url=avatar or '')
        # allocated once so a re-run transaction writes the same document
        comment_id = self.store.new_id(COMMENTS)

        def _add_in_transaction(txn: Transaction) -> None:
            post_doc = txn.get(POSTS, post_id)
            if post_doc is None:
                raise NotFound()

            # the value read in this transaction; a concurrent writer forces a re-run
            current_comments = (post_doc.get('metrics') or {}).get('comments', 0)

            new_comment = Comment(comment_id=comment_id, post_id=post_id, author=author, content=text)
            data = new_comment.to_dict()
            data['created_at'] = SERVER_TIMESTAMP
            txn.set(COMMENTS, comment_id, data)
            txn.update(POSTS, post_id, {'metrics.comments': current_comments + 1})

        try:
            self._retry(self.store.transact)(_add_in_transaction)
        except FeedSyncError:
            raise
        except Exception as e:
            logging.error(f"Comment creation failed (post_id: {post_id}, user_id: {user_id}): {e}", exc_info=True)
            raise

        logging.info(f"Comment created (comment_id: {comment_id}, post_id: {post_id})")
        stored = self.store.get(COMMENTS, comment_id)
        if stored is None:
            # removed together with its post right after the commit
            return Comment(comment_id=comment_id, post_id=post_id, author=author, content=text)
        return Comment.from_dict(stored)

    def list_comments(self, post_id: str) -> List[Comment]:
        """Whole thread, oldest first."""
        docs = self.store.query(COMMENTS, where={'post_id': post_id}, order_by='created_at', descending=False)
        return [Comment.from_dict(doc) for doc in docs]

    def subscribe_comments(self, post_id: str, on_next: Callable[[List[Comment]], None],
                           on_error: Callable[[Exception], None]) -> Subscription:
        """Live thread, oldest first. The only way new comments reach a composer's view."""
        return self.store.subscribe(
            COMMENTS,
            on_next=lambda docs: on_next([Comment.from_dict(doc) for doc in docs]),
            on_error=on_error,
            where={'post_id': post_id},
            order_by='created_at',
            descending=False
        )
