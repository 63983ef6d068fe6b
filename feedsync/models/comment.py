# feedsync/models/comment.py
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional, Dict, Any

from feedsync.models.post import Author


@dataclass
class Comment:
    """
    Document shape of the 'community_post_comments' collection.
    Threads are read in created_at ascending order.
    """
    comment_id: str
    post_id: str
    author: Author
    content: str
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Comment':
        author = data.get('author') or {}
        return cls(
            comment_id=data['comment_id'],
            post_id=data['post_id'],
            author=Author(
                user_id=author.get('user_id', ''),
                display_name=author.get('display_name') or 'Anonymous',
                avatar_url=author.get('avatar_url') or ''
            ),
            content=data.get('content', ''),
            created_at=data.get('created_at')
        )
