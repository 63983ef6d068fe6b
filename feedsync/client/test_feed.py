# feedsync/client/test_feed.py
"""
FeedSynchronizer tests. The in-process store delivers subscriptions
synchronously, so every assertion sees the window right after the commit.

Usage: python -m pytest feedsync/client/test_feed.py -v
"""
import pytest

from feedsync.client.feed import FeedState, FeedSynchronizer, merge_posts
from feedsync.core.errors import NotFound


class HookedSource:
    """Wraps PostService and runs `before_page` once inside the next list_posts call."""

    def __init__(self, post_service):
        self._service = post_service
        self.before_page = None
        self.fail_next_page = None
        self.pages_requested = 0

    def subscribe_feed(self, **kwargs):
        return self._service.subscribe_feed(**kwargs)

    def list_posts(self, **kwargs):
        self.pages_requested += 1
        if self.fail_next_page is not None:
            error, self.fail_next_page = self.fail_next_page, None
            raise error
        if self.before_page is not None:
            hook, self.before_page = self.before_page, None
            hook()
        return self._service.list_posts(**kwargs)


def _ids(posts):
    return [p.post_id for p in posts]


def _store_order(post_service, **kwargs):
    posts, _ = post_service.list_posts(limit=50, **kwargs)
    return _ids(posts)


@pytest.fixture
def source(post_service):
    return HookedSource(post_service)


def test_merge_prefers_first_source_and_orders_newest_first(make_post, post_service):
    a, b, c = make_post(), make_post(), make_post()
    stale_b = post_service.get_post(b.post_id)
    post_service.toggle_like(b.post_id, 'bob')
    fresh_b = post_service.get_post(b.post_id)

    merged = merge_posts([fresh_b, a], [c, stale_b])

    assert _ids(merged) == [c.post_id, b.post_id, a.post_id]
    assert merged[1].metrics.likes == 1


def test_start_delivers_first_page_and_pages_to_exhaustion(source, post_service, make_post):
    for _ in range(12):
        make_post()
    sync = FeedSynchronizer(source, page_size=5)
    assert sync.state is FeedState.IDLE

    sync.start()
    assert sync.state is FeedState.LIVE_FIRST_PAGE
    assert len(sync.posts) == 5 and sync.has_more

    assert sync.load_more() is True
    assert sync.state is FeedState.PAGING_OLDER
    assert sync.load_more() is True
    assert sync.state is FeedState.EXHAUSTED
    assert sync.load_more() is False
    assert source.pages_requested == 2

    assert _ids(sync.posts) == _store_order(post_service)
    sync.close()


def test_empty_feed_has_nothing_more(source):
    sync = FeedSynchronizer(source, page_size=5)
    sync.start()
    assert sync.posts == []
    assert sync.has_more is False
    assert sync.load_more() is False
    sync.close()


def test_insert_during_paging_keeps_window_exact(source, post_service, make_post):
    for _ in range(15):
        make_post()
    sync = FeedSynchronizer(source, page_size=5)
    sync.start()

    source.before_page = make_post
    while sync.load_more():
        pass

    window = _ids(sync.posts)
    assert len(window) == len(set(window))
    assert window == _store_order(post_service)
    assert len(window) == 16
    sync.close()


def test_deletes_during_paging_keep_window_exact(source, post_service, make_post):
    posts = [make_post() for _ in range(15)]
    sync = FeedSynchronizer(source, page_size=5)
    sync.start()

    # one post from the live page, one from the page being fetched
    live_victim, paged_victim = posts[12], posts[7]

    def _delete_both():
        post_service.delete_post(live_victim.post_id, 'alice')
        post_service.delete_post(paged_victim.post_id, 'alice')

    source.before_page = _delete_both
    while sync.load_more():
        pass

    assert _ids(sync.posts) == _store_order(post_service)
    assert live_victim.post_id not in _ids(sync.posts)
    assert sync.state is FeedState.EXHAUSTED
    sync.close()


def test_fetched_page_refreshes_posts_pushed_out_of_the_live_page(source, post_service, make_post):
    oldest = make_post()
    make_post()
    make_post()
    sync = FeedSynchronizer(source, page_size=3)
    sync.start()

    make_post()
    assert oldest.post_id in _ids(sync.posts)
    post_service.toggle_like(oldest.post_id, 'bob')

    assert sync.load_more() is True

    held = {p.post_id: p for p in sync.posts}[oldest.post_id]
    assert held.metrics.likes == post_service.get_post(oldest.post_id).metrics.likes == 1
    sync.close()


def test_live_updates_reach_the_window(source, post_service, make_post):
    first = make_post()
    sync = FeedSynchronizer(source, page_size=5)
    snapshots = []
    sync.add_listener(snapshots.append)
    sync.start()

    second = make_post()
    post_service.toggle_like(first.post_id, 'bob')

    assert _ids(sync.posts) == [second.post_id, first.post_id]
    assert sync.posts[1].metrics.likes == 1
    assert snapshots[-1].posts == tuple(sync.posts)
    sync.close()


def test_subscription_error_is_sticky_until_retry(source, post_service, make_post, store):
    make_post()
    sync = FeedSynchronizer(source, page_size=5)
    sync.start()
    before = _ids(sync.posts)

    store.break_subscriptions()
    assert isinstance(sync.error, ConnectionError)
    assert _ids(sync.posts) == before

    newer = make_post()
    assert newer.post_id not in _ids(sync.posts)
    assert sync.snapshot().error is sync.error

    sync.retry()
    assert sync.error is None
    assert _ids(sync.posts)[0] == newer.post_id
    assert store.subscription_count == 1
    sync.close()


def test_failed_page_leaves_cursor_and_has_more(source, make_post):
    for _ in range(8):
        make_post()
    sync = FeedSynchronizer(source, page_size=5)
    sync.start()
    cursor = sync.cursor

    source.fail_next_page = ConnectionError("offline")
    assert sync.load_more() is False

    assert sync.cursor == cursor
    assert sync.has_more is True
    assert sync.state is FeedState.LIVE_FIRST_PAGE
    assert isinstance(sync.paging_error, ConnectionError)
    assert sync.is_fetching is False

    assert sync.load_more() is True
    assert sync.paging_error is None
    assert len(sync.posts) == 8
    sync.close()


def test_close_unsubscribes_and_ignores_later_work(source, make_post, store):
    make_post()
    sync = FeedSynchronizer(source, page_size=5)
    with sync:
        assert store.subscription_count == 1
    assert store.subscription_count == 0
    assert sync.state is FeedState.CLOSED

    window = _ids(sync.posts)
    make_post()
    assert _ids(sync.posts) == window
    assert sync.load_more() is False
    sync.close()


def test_set_filter_starts_a_fresh_window(source, make_post, store):
    make_post()
    resume = make_post('resume')
    sync = FeedSynchronizer(source, page_size=5)
    sync.start()
    assert len(sync.posts) == 2

    sync.set_filter('resume')

    assert _ids(sync.posts) == [resume.post_id]
    assert sync.type_filter == 'resume'
    assert sync.state is FeedState.LIVE_FIRST_PAGE
    assert store.subscription_count == 1
    sync.close()


def test_not_found_mutation_drops_the_post(source, make_post, post_service):
    posts = [make_post() for _ in range(7)]
    sync = FeedSynchronizer(source, page_size=5)
    sync.start()
    sync.load_more()
    gone = posts[0]

    with pytest.raises(NotFound):
        post_service.toggle_like('no-such-post', 'bob')

    sync.handle_mutation_error(gone.post_id, NotFound())
    sync.handle_mutation_error(posts[1].post_id, ConnectionError())

    assert gone.post_id not in _ids(sync.posts)
    assert posts[1].post_id in _ids(sync.posts)
    sync.close()
