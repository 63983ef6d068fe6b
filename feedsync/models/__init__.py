# feedsync/models/__init__.py
from .post import (
    Post, PostType, Author, Metrics, ArticlePayload, ResumePayload, PortfolioPayload,
    WhiteboardPayload, PostPayload, calculate_read_time
)
from .comment import Comment
from .like import LikeRecord, like_id
from .cursor import Cursor

__all__ = [
    'Post', 'PostType', 'Author', 'Metrics', 'ArticlePayload', 'ResumePayload', 'PortfolioPayload',
    'WhiteboardPayload', 'PostPayload', 'calculate_read_time',
    'Comment', 'LikeRecord', 'like_id', 'Cursor'
]
