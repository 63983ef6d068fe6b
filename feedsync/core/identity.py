# feedsync/core/identity.py
from dataclasses import dataclass
from typing import Optional

from flask_jwt_extended import get_jwt, get_jwt_identity

from feedsync.core.errors import Unauthenticated


@dataclass(frozen=True)
class Identity:
    """Caller attribution as handed out by the identity provider."""
    user_id: str
    display_name: str = 'Anonymous'
    avatar_url: str = ''


def require_identity(identity: Optional[Identity]) -> Identity:
    """Returns the identity, or raises Unauthenticated when there is no usable caller."""
    if identity is None or not identity.user_id or not identity.user_id.strip():
        raise Unauthenticated()
    return identity


def current_identity() -> Optional[Identity]:
    """
    Builds the caller identity from the verified JWT of the current request.
    Must be called inside a view decorated with @jwt_required (optional=True is fine).

    - sub    -> user_id
    - name   -> display_name (falls back to 'Anonymous')
    - avatar -> avatar_url
    """
    user_id = get_jwt_identity()
    if not user_id:
        return None
    claims = get_jwt()
    return Identity(
        user_id=str(user_id),
        display_name=claims.get('name') or 'Anonymous',
        avatar_url=claims.get('avatar') or ''
    )
