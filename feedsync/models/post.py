# feedsync/models/post.py
import math
from dataclasses import dataclass, field, fields, asdict
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Union


class PostType(str, Enum):
    ARTICLE = 'article'
    RESUME = 'resume'
    PORTFOLIO = 'portfolio'
    WHITEBOARD = 'whiteboard'


@dataclass
class Author:
    """Author snapshot stored inside Post and Comment documents. Never refreshed after creation."""
    user_id: str
    display_name: str
    avatar_url: str = ''


@dataclass
class Metrics:
    """Aggregate counters. Only the toggle/increment services write these."""
    likes: int = 0
    comments: int = 0
    views: int = 0


# --- per-variant payloads ---

@dataclass
class ArticlePayload:
    title: str
    content: str
    tags: List[str] = field(default_factory=list)
    read_time: int = 1
    cover_image: Optional[str] = None


@dataclass
class AssetPayload:
    """Shared shape of posts that point at a user asset (resume, portfolio, whiteboard)."""
    asset_id: str
    asset_url: str
    caption: Optional[str] = None
    title: Optional[str] = None


@dataclass
class ResumePayload(AssetPayload):
    pass


@dataclass
class PortfolioPayload(AssetPayload):
    pass


@dataclass
class WhiteboardPayload(AssetPayload):
    thumbnail_url: Optional[str] = None


PostPayload = Union[ArticlePayload, ResumePayload, PortfolioPayload, WhiteboardPayload]

PAYLOAD_CLASSES: Dict[PostType, type] = {
    PostType.ARTICLE: ArticlePayload,
    PostType.RESUME: ResumePayload,
    PostType.PORTFOLIO: PortfolioPayload,
    PostType.WHITEBOARD: WhiteboardPayload,
}


def calculate_read_time(text: str) -> int:
    """Reading time in minutes at 200 words per minute, at least 1."""
    words = len(text.split())
    return max(1, math.ceil(words / 200))


def parse_post_type(value: Any) -> PostType:
    try:
        return PostType(value)
    except ValueError:
        raise ValueError(f"unknown post type: {value!r}")


def payload_from_dict(post_type: PostType, data: Dict[str, Any]) -> PostPayload:
    cls = PAYLOAD_CLASSES[post_type]
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in (data or {}).items() if k in names})


@dataclass
class Post:
    """
    Document shape of the 'community_posts' collection.
    `type` is the discriminator for `payload`.
    """
    post_id: str
    author: Author
    type: PostType
    payload: PostPayload
    metrics: Metrics = field(default_factory=Metrics)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['type'] = self.type.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Post':
        post_type = parse_post_type(data.get('type'))
        author = data.get('author') or {}
        metrics = data.get('metrics') or {}
        return cls(
            post_id=data['post_id'],
            author=Author(
                user_id=author.get('user_id', ''),
                display_name=author.get('display_name') or 'Anonymous',
                avatar_url=author.get('avatar_url') or ''
            ),
            type=post_type,
            payload=payload_from_dict(post_type, data.get('payload')),
            metrics=Metrics(
                likes=int(metrics.get('likes', 0)),
                comments=int(metrics.get('comments', 0)),
                views=int(metrics.get('views', 0))
            ),
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at')
        )
