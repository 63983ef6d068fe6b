# feedsync/api/posts/services.py
import logging
from collections import Counter
from typing import Optional, Dict, Any, Tuple, List, Union, Callable, Set

from feedsync.core.errors import FeedSyncError, InvalidArgument, NotFound, PermissionDenied, Unauthenticated
from feedsync.core.identity import Identity, require_identity
from feedsync.core.retry import retry_on_aborted
from feedsync.models.cursor import Cursor
from feedsync.models.like import LikeRecord, like_id
from feedsync.models.post import (
    ArticlePayload, Author, Metrics, Post, PostType, calculate_read_time, parse_post_type, payload_from_dict
)
from feedsync.store.base import (
    COMMENTS, CounterStore, Increment, LIKES, POSTS, SERVER_TIMESTAMP, Subscription, Transaction
)


class PostService:
    """
    Feed queries and the counter mutations of a post (likes, views).
    Every counter change runs inside CounterStore.transact.
    """
    def __init__(self, store: CounterStore, page_size: int = 10, max_page_size: int = 50,
                 aborted_retry_attempts: int = 3, aborted_retry_wait: float = 0.05):
        self.store = store
        self.page_size = page_size
        self.max_page_size = max_page_size
        self._retry = retry_on_aborted(aborted_retry_attempts, aborted_retry_wait)

    # =====================================================================================
    # Helpers
    # =====================================================================================

    def _clamp_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return self.page_size
        return max(1, min(int(limit), self.max_page_size))

    @staticmethod
    def _parse_cursor(cursor: Union[str, Cursor, None]) -> Optional[Cursor]:
        if cursor is None or cursor == '':
            return None
        if isinstance(cursor, Cursor):
            return cursor
        return Cursor.decode(cursor)

    @staticmethod
    def _to_posts(docs: List[Dict[str, Any]]) -> List[Post]:
        posts = []
        for doc in docs:
            try:
                posts.append(Post.from_dict(doc))
            except (KeyError, TypeError, ValueError) as e:
                logging.warning(f"Skipping malformed post document ({doc.get('post_id')}): {e}")
        return posts

    def _page(self, where: Optional[Dict[str, Any]], cursor, limit) -> Tuple[List[Post], Optional[str]]:
        limit = self._clamp_limit(limit)
        docs = self.store.query(POSTS, where=where, order_by='created_at', descending=True,
                                start_after=self._parse_cursor(cursor), limit=limit)
        next_cursor = None
        if len(docs) == limit:
            last = docs[-1]
            next_cursor = Cursor(created_at=last['created_at'], doc_id=last['post_id']).encode()
        return self._to_posts(docs), next_cursor

    @staticmethod
    def _build_payload(post_type: PostType, data: Dict[str, Any]):
        data = dict(data or {})
        if post_type is PostType.ARTICLE:
            title = (data.get('title') or '').strip()
            content = (data.get('content') or '').strip()
            if not title or not content:
                raise InvalidArgument("an article needs a title and content")
            return ArticlePayload(
                title=title,
                content=content,
                tags=[t.strip() for t in data.get('tags') or [] if t and t.strip()],
                read_time=calculate_read_time(content),
                cover_image=data.get('cover_image') or None
            )
        if not data.get('asset_id') or not data.get('asset_url'):
            raise InvalidArgument(f"a {post_type.value} post needs asset_id and asset_url")
        return payload_from_dict(post_type, data)

    # =====================================================================================
    # Posts
    # =====================================================================================

    def create_post(self, identity: Optional[Identity], post_type: Union[str, PostType],
                    payload: Dict[str, Any]) -> Post:
        """Creates a post with a snapshot of the author, zeroed metrics and server timestamps."""
        identity = require_identity(identity)
        try:
            post_type = parse_post_type(post_type)
        except ValueError as e:
            raise InvalidArgument(str(e))

        post_id = self.store.new_id(POSTS)
        post = Post(
            post_id=post_id,
            author=Author(user_id=identity.user_id, display_name=identity.display_name,
                          avatar_url=identity.avatar_url),
            type=post_type,
            payload=self._build_payload(post_type, payload),
            metrics=Metrics()
        )
        data = post.to_dict()
        data['created_at'] = SERVER_TIMESTAMP
        data['updated_at'] = SERVER_TIMESTAMP
        try:
            self.store.create(POSTS, post_id, data)
        except FeedSyncError:
            raise
        except Exception as e:
            logging.error(f"Post creation failed (user_id: {identity.user_id}): {e}", exc_info=True)
            raise
        logging.info(f"Post created (post_id: {post_id}, type: {post_type.value}, author: {identity.user_id})")
        return self.get_post(post_id)

    def get_post(self, post_id: str) -> Post:
        doc = self.store.get(POSTS, post_id)
        if doc is None:
            raise NotFound()
        return Post.from_dict(doc)

    def list_posts(self, type_filter: Union[str, PostType, None] = None, cursor: Union[str, Cursor, None] = None,
                   limit: Optional[int] = None) -> Tuple[List[Post], Optional[str]]:
        """
        One page of the feed, newest first.
        `cursor` is the value returned by the previous call; `next_cursor` is None once a page comes back short.
        """
        where = None
        if type_filter:
            try:
                where = {'type': parse_post_type(type_filter).value}
            except ValueError as e:
                raise InvalidArgument(str(e))
        return self._page(where, cursor, limit)

    def list_posts_by_author(self, author_id: str, cursor: Union[str, Cursor, None] = None,
                             limit: Optional[int] = None) -> Tuple[List[Post], Optional[str]]:
        return self._page({'author.user_id': author_id}, cursor, limit)

    def subscribe_feed(self, on_next: Callable[[List[Post]], None], on_error: Callable[[Exception], None],
                       type_filter: Union[str, PostType, None] = None,
                       limit: Optional[int] = None) -> Subscription:
        """
        Standing subscription to the newest `limit` posts. Every change re-delivers the whole window.
        The caller owns the returned handle and must unsubscribe.
        """
        where = None
        if type_filter:
            try:
                where = {'type': parse_post_type(type_filter).value}
            except ValueError as e:
                raise InvalidArgument(str(e))
        return self.store.subscribe(
            POSTS,
            on_next=lambda docs: on_next(self._to_posts(docs)),
            on_error=on_error,
            where=where,
            order_by='created_at',
            descending=True,
            limit=self._clamp_limit(limit)
        )

    def delete_post(self, post_id: str, user_id: Optional[str]) -> None:
        """Deletes a post (author only), then removes its comments and like records."""
        if not user_id:
            raise Unauthenticated()

        def _delete_in_transaction(txn: Transaction) -> None:
            doc = txn.get(POSTS, post_id)
            if doc is None:
                raise NotFound()
            if doc.get('author', {}).get('user_id') != user_id:
                raise PermissionDenied()
            txn.delete(POSTS, post_id)

        self.store.transact(_delete_in_transaction)
        logging.info(f"Post deleted (post_id: {post_id}, user_id: {user_id})")

        for collection, id_field in ((COMMENTS, 'comment_id'), (LIKES, None)):
            try:
                for doc in self.store.query(collection, where={'post_id': post_id}, descending=False):
                    doc_id = doc[id_field] if id_field else like_id(doc['post_id'], doc['user_id'])
                    self.store.delete(collection, doc_id)
            except Exception as e:
                logging.error(f"Cleanup after post deletion failed ({collection}, post_id: {post_id}): {e}")

    # =====================================================================================
    # Likes
    # =====================================================================================

    def _toggle_like_in_transaction(self, txn: Transaction, post_id: str, user_id: str) -> bool:
        """
        Toggles the (post_id, user_id) like record and moves metrics.likes by exactly one.
        The existence check and the write share the transaction, so two racing toggles
        of the same user can never both see 'not liked'.
        """
        record_id = like_id(post_id, user_id)
        like_doc = txn.get(LIKES, record_id)
        post_doc = txn.get(POSTS, post_id)

        if post_doc is None:
            raise NotFound()

        if like_doc is not None:
            txn.delete(LIKES, record_id)
            txn.update(POSTS, post_id, {'metrics.likes': Increment(-1)})
            return False

        record = LikeRecord(post_id=post_id, user_id=user_id)
        txn.set(LIKES, record.like_id, {'post_id': post_id, 'user_id': user_id, 'created_at': SERVER_TIMESTAMP})
        txn.update(POSTS, post_id, {'metrics.likes': Increment(1)})
        return True

    def toggle_like(self, post_id: str, user_id: Optional[str]) -> bool:
        """Likes or unlikes the post for the user; returns the new liked state."""
        if not user_id:
            raise Unauthenticated()

        @self._retry
        def _toggle() -> bool:
            return self.store.transact(lambda txn: self._toggle_like_in_transaction(txn, post_id, user_id))

        try:
            liked = _toggle()
        except FeedSyncError:
            raise
        except Exception as e:
            logging.error(f"Like toggle failed (user_id: {user_id}, post_id: {post_id}): {e}", exc_info=True)
            raise
        logging.info(f"Like toggled (post_id: {post_id}, user_id: {user_id}, liked: {liked})")
        return liked

    def is_liked(self, post_id: str, user_id: Optional[str]) -> bool:
        """
        Point read of the like record, outside any transaction.
        May lag a toggle made a moment ago from another device; the next toggle response corrects it.
        """
        if not user_id:
            return False
        return self.store.get(LIKES, like_id(post_id, user_id)) is not None

    def liked_post_ids(self, user_id: Optional[str], post_ids: List[str]) -> Set[str]:
        if not user_id:
            return set()
        return {post_id for post_id in post_ids if self.is_liked(post_id, user_id)}

    def with_like_state(self, posts: List[Post], viewer_id: Optional[str]) -> List[Dict[str, Any]]:
        """Post documents with the viewer's `is_liked` flag attached, ready for the response schema."""
        liked_ids = self.liked_post_ids(viewer_id, [post.post_id for post in posts])
        result = []
        for post in posts:
            data = post.to_dict()
            data['is_liked'] = post.post_id in liked_ids
            result.append(data)
        return result

    # =====================================================================================
    # Views & tags
    # =====================================================================================

    def record_view(self, post_id: str) -> None:
        def _view_in_transaction(txn: Transaction) -> None:
            if txn.get(POSTS, post_id) is None:
                raise NotFound()
            txn.update(POSTS, post_id, {'metrics.views': Increment(1)})

        self._retry(self.store.transact)(_view_in_transaction)

    def popular_tags(self, sample: int = 50, top: int = 8) -> List[Dict[str, Any]]:
        """Most used tags among the `sample` newest articles."""
        docs = self.store.query(POSTS, where={'type': PostType.ARTICLE.value}, order_by='created_at',
                                descending=True, limit=sample)
        counts = Counter()
        for doc in docs:
            counts.update((doc.get('payload') or {}).get('tags') or [])
        return [{'tag': tag, 'count': count} for tag, count in counts.most_common(top)]
