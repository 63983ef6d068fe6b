# feedsync/models/like.py
from dataclasses import dataclass
from typing import Any


def like_id(post_id: str, user_id: str) -> str:
    """Document id of the like record; existence of the document means 'liked'."""
    return f"{post_id}_{user_id}"


@dataclass
class LikeRecord:
    """Document shape of the 'post_likes' collection."""
    post_id: str
    user_id: str
    created_at: Any = None  # datetime once committed, SERVER_TIMESTAMP sentinel before

    @property
    def like_id(self) -> str:
        return like_id(self.post_id, self.user_id)
