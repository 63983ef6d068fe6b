# feedsync/store/__init__.py
from .base import (
    CounterStore, Transaction, Subscription, Increment, SERVER_TIMESTAMP, POSTS, LIKES, COMMENTS
)
from .memory import MemoryCounterStore


def create_store(config) -> CounterStore:
    """Builds the store named by config['STORE_BACKEND']."""
    backend = config.get('STORE_BACKEND', 'firestore')
    max_attempts = config.get('TRANSACTION_MAX_ATTEMPTS', 5)
    if backend == 'memory':
        return MemoryCounterStore(max_attempts=max_attempts)
    if backend == 'firestore':
        from .firestore import FirestoreCounterStore
        return FirestoreCounterStore(max_attempts=max_attempts)
    raise ValueError(f"unknown STORE_BACKEND: {backend}")


__all__ = [
    'CounterStore', 'Transaction', 'Subscription', 'Increment', 'SERVER_TIMESTAMP',
    'POSTS', 'LIKES', 'COMMENTS', 'MemoryCounterStore', 'create_store'
]
