# feedsync/conftest.py
"""
Shared pytest fixtures: an in-process store, the services on top of it and a Flask test client.

Usage: python -m pytest -v
"""

import pytest
from flask_jwt_extended import create_access_token

from feedsync import create_app
from feedsync.api.comments.services import CommentService
from feedsync.api.posts.services import PostService
from feedsync.core.identity import Identity
from feedsync.store.base import POSTS
from feedsync.store.memory import MemoryCounterStore


@pytest.fixture
def store():
    # generous attempts: the concurrency tests hammer a single document
    return MemoryCounterStore(max_attempts=50)


@pytest.fixture
def post_service(store):
    return PostService(store, page_size=10, max_page_size=50, aborted_retry_wait=0)


@pytest.fixture
def comment_service(store):
    return CommentService(store, aborted_retry_wait=0)


@pytest.fixture
def alice():
    return Identity(user_id='alice', display_name='Alice', avatar_url='https://cdn.example.com/alice.png')


@pytest.fixture
def bob():
    return Identity(user_id='bob', display_name='Bob')


@pytest.fixture
def make_post(post_service, alice):
    """Creates posts; article by default."""
    counter = {'n': 0}

    def _make(post_type='article', identity=None, **payload):
        counter['n'] += 1
        if post_type == 'article':
            payload.setdefault('title', f"Post {counter['n']}")
            payload.setdefault('content', 'Some words about careers.')
        else:
            payload.setdefault('asset_id', f"asset-{counter['n']}")
            payload.setdefault('asset_url', f"/shared/alice/asset-{counter['n']}")
        return post_service.create_post(identity or alice, post_type, payload)

    return _make


@pytest.fixture
def set_metrics(store):
    """Seeds counter values directly (test setup only)."""
    def _set(post_id, **metrics):
        store.transact(lambda txn: txn.update(POSTS, post_id, {f"metrics.{k}": v for k, v in metrics.items()}))
    return _set


@pytest.fixture
def app(store):
    return create_app('testing', store=store)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    def _headers(user_id='alice', name='Alice', avatar='https://cdn.example.com/alice.png'):
        with app.app_context():
            token = create_access_token(identity=user_id, additional_claims={'name': name, 'avatar': avatar})
        return {'Authorization': f'Bearer {token}'}
    return _headers
