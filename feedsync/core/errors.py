# feedsync/core/errors.py
"""
Typed failures shared by the store adapters, the services and the HTTP layer.

Every failure carries:
- error_code: the value placed in the JSON error envelope
- http_status: the status code the routes answer with
- retryable: whether repeating the same call can succeed
"""
from typing import Optional


class FeedSyncError(Exception):
    """Base class for all domain failures raised by feedsync."""
    error_code = "INTERNAL_SERVER_ERROR"
    http_status = 500
    retryable = False

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    def to_dict(self) -> dict:
        return {"error_code": self.error_code, "message": self.message}


class Unauthenticated(FeedSyncError):
    """Sign in to continue."""
    error_code = "UNAUTHENTICATED"
    http_status = 401


class PermissionDenied(FeedSyncError):
    """You are not allowed to change this resource."""
    error_code = "PERMISSION_DENIED"
    http_status = 403


class NotFound(FeedSyncError):
    """The requested post does not exist or has been removed."""
    error_code = "NOT_FOUND"
    http_status = 404


class InvalidArgument(FeedSyncError):
    """The request contains an invalid value."""
    error_code = "INVALID_ARGUMENT"
    http_status = 400


class Aborted(FeedSyncError):
    """The operation lost too many concurrent races. Try again."""
    error_code = "ABORTED"
    http_status = 409
    retryable = True
