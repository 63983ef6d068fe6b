# feedsync/models/test_models.py
import base64
from datetime import datetime, timezone

import pytest

from feedsync.core.errors import InvalidArgument
from feedsync.models import (
    ArticlePayload, Author, Comment, Cursor, Metrics, Post, PostType, WhiteboardPayload,
    calculate_read_time, like_id
)
from feedsync.models.post import PAYLOAD_CLASSES, parse_post_type


def _token(raw: str) -> str:
    return base64.urlsafe_b64encode(raw.encode('utf-8')).decode('ascii')


def test_cursor_round_trip_keeps_microseconds():
    cursor = Cursor(datetime(2024, 3, 1, 8, 0, 0, 42, tzinfo=timezone.utc), 'post-9')
    assert Cursor.decode(cursor.encode()) == cursor


@pytest.mark.parametrize('token', [
    _token('no separator here'),
    _token('2024-03-01T08:00:00Z|'),
    _token('yesterday|post-1'),
])
def test_malformed_cursor_is_invalid_argument(token):
    with pytest.raises(InvalidArgument):
        Cursor.decode(token)


def test_unknown_post_type():
    assert parse_post_type('whiteboard') is PostType.WHITEBOARD
    with pytest.raises(ValueError):
        parse_post_type('poll')


def test_read_time():
    assert calculate_read_time('') == 1
    assert calculate_read_time('word ' * 200) == 1
    assert calculate_read_time('word ' * 201) == 2


def test_post_document_round_trip():
    created = datetime(2024, 3, 1, tzinfo=timezone.utc)
    post = Post(
        post_id='p1',
        author=Author('alice', 'Alice'),
        type=PostType.WHITEBOARD,
        payload=WhiteboardPayload(asset_id='wb-1', asset_url='/shared/alice/wb-1', thumbnail_url='/t.png'),
        metrics=Metrics(likes=2, comments=1, views=7),
        created_at=created,
    )

    data = post.to_dict()
    assert data['type'] == 'whiteboard'
    assert data['metrics'] == {'likes': 2, 'comments': 1, 'views': 7}
    assert Post.from_dict(data) == post


def test_post_from_partial_document_uses_defaults():
    post = Post.from_dict({
        'post_id': 'p2',
        'type': 'article',
        'author': {'user_id': 'bob'},
        'payload': {'title': 'Hi', 'content': 'There', 'legacy_field': True},
    })

    assert post.author.display_name == 'Anonymous'
    assert post.metrics == Metrics()
    assert post.payload == ArticlePayload(title='Hi', content='There')


def test_comment_round_trip():
    comment = Comment('c1', 'p1', Author('bob', 'Bob'), 'Nice post')
    assert Comment.from_dict(comment.to_dict()) == comment


def test_like_id_is_deterministic():
    assert like_id('p1', 'alice') == 'p1_alice'


def test_every_post_type_has_a_payload_class():
    assert set(PAYLOAD_CLASSES) == set(PostType)
    for post_type, cls in PAYLOAD_CLASSES.items():
        assert post_type.value.capitalize() in cls.__name__
