# feedsync/models/cursor.py
import base64
import binascii
from dataclasses import dataclass
from datetime import datetime
from typing import Tuple

from feedsync.core.errors import InvalidArgument
from feedsync.utils.datetime_utils import DateTimeUtils


@dataclass(frozen=True)
class Cursor:
    """
    Ordering key of the last item of a page: (created_at, document id).
    The id breaks ties between equal timestamps, the same way Firestore orders by __name__.
    """
    created_at: datetime
    doc_id: str

    @property
    def key(self) -> Tuple[datetime, str]:
        return (self.created_at, self.doc_id)

    def encode(self) -> str:
        raw = f"{DateTimeUtils.to_iso_string(self.created_at)}|{self.doc_id}"
        return base64.urlsafe_b64encode(raw.encode('utf-8')).decode('ascii')

    @classmethod
    def decode(cls, token: str) -> 'Cursor':
        try:
            raw = base64.urlsafe_b64decode(token.encode('ascii')).decode('utf-8')
            created_at, doc_id = raw.split('|', 1)
            if not doc_id:
                raise ValueError("empty document id")
            return cls(created_at=DateTimeUtils.parse_iso_datetime(created_at), doc_id=doc_id)
        except (ValueError, UnicodeError, binascii.Error) as e:
            raise InvalidArgument(f"invalid cursor: {token!r}") from e
