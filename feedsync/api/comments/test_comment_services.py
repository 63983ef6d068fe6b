# feedsync/api/comments/test_comment_services.py
import threading

import pytest

from feedsync.api.comments.services import CommentService
from feedsync.core.errors import InvalidArgument, NotFound, Unauthenticated
from feedsync.store.base import COMMENTS


def test_add_comment_bumps_counter(comment_service, post_service, make_post):
    post = make_post()

    comment = comment_service.add_comment(post.post_id, 'bob', 'Bob', None, '  Great read  ')

    assert comment.content == 'Great read'
    assert comment.author.display_name == 'Bob'
    assert comment.created_at is not None
    assert post_service.get_post(post.post_id).metrics.comments == 1


def test_concurrent_comments_are_all_counted(comment_service, post_service, make_post):
    post = make_post()
    writers = 10
    barrier = threading.Barrier(writers)
    errors = []

    def _write(i):
        barrier.wait()
        try:
            comment_service.add_comment(post.post_id, f"user-{i}", f"User {i}", None, f"comment {i}")
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=_write, args=(i,)) for i in range(writers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert post_service.get_post(post.post_id).metrics.comments == writers
    assert len(comment_service.list_comments(post.post_id)) == writers


class _NoStore:
    """Fails the test on any store access."""

    def __getattr__(self, name):
        pytest.fail(f"store.{name} must not be called")


@pytest.mark.parametrize('content', ['', '   ', None, 'x' * 1001])
def test_invalid_content_never_touches_the_store(content):
    service = CommentService(_NoStore())
    with pytest.raises(InvalidArgument):
        service.add_comment('p1', 'bob', 'Bob', None, content)


def test_add_comment_requires_user_and_post(comment_service, store):
    with pytest.raises(Unauthenticated):
        comment_service.add_comment('p1', None, None, None, 'hi')
    with pytest.raises(NotFound):
        comment_service.add_comment('missing', 'bob', 'Bob', None, 'hi')
    assert store.query(COMMENTS) == []


def test_thread_is_oldest_first(comment_service, make_post):
    post = make_post()
    for text in ('first', 'second', 'third'):
        comment_service.add_comment(post.post_id, 'bob', 'Bob', None, text)

    assert [c.content for c in comment_service.list_comments(post.post_id)] == ['first', 'second', 'third']


def test_subscribe_comments_only_sees_its_post(comment_service, make_post):
    post, other = make_post(), make_post()
    threads = []
    subscription = comment_service.subscribe_comments(post.post_id, threads.append, pytest.fail)

    comment_service.add_comment(other.post_id, 'bob', 'Bob', None, 'elsewhere')
    comment_service.add_comment(post.post_id, 'bob', 'Bob', None, 'here')

    assert [[c.content for c in thread] for thread in threads] == [[], ['here']]
    subscription.unsubscribe()
