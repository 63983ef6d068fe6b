# feedsync/client/__init__.py
from .feed import FeedSynchronizer, FeedSnapshot, FeedState, merge_posts
from .optimistic import OptimisticLike, CommentComposer, SyncState
from .comments import CommentThread

__all__ = [
    'FeedSynchronizer', 'FeedSnapshot', 'FeedState', 'merge_posts',
    'OptimisticLike', 'CommentComposer', 'SyncState', 'CommentThread'
]
