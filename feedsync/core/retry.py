# feedsync/core/retry.py
import logging

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from feedsync.core.errors import Aborted

logger = logging.getLogger(__name__)


def retry_on_aborted(attempts: int = 3, wait_seconds: float = 0.05):
    """
    Decorator re-running a whole toggle/increment operation when the store gave up with Aborted.
    Only Aborted is retried; NotFound, InvalidArgument and Unauthenticated propagate at once.
    """
    return retry(
        reraise=True,
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=wait_seconds, max=2) + wait_random(0, wait_seconds),
        retry=retry_if_exception_type(Aborted),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
