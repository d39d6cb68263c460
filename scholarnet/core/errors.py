"""
error taxonomy for provider requests.
every failure surfaced by the client is a ScholarlyError subclass.
"""

from typing import Optional

import httpx


class ScholarlyError(Exception):
    """base error for anything the request engine raises."""

    retryable = False

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        response: Optional[httpx.Response] = None,
    ):
        super().__init__(message)
        self.status = status
        self.response = response


class NotFoundError(ScholarlyError):
    """404 - the requested record does not exist."""


class RateLimitError(ScholarlyError):
    """429 - provider asked us to slow down."""

    retryable = True

    def __init__(
        self,
        message: str,
        status: Optional[int] = 429,
        response: Optional[httpx.Response] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message, status=status, response=response)
        self.retry_after = retry_after


class ClientError(ScholarlyError):
    """4xx other than 404/429."""


class ServerError(ScholarlyError):
    """5xx."""

    retryable = True


class TransportError(ScholarlyError):
    """connection, dns, timeout or undecodable body."""


class UnclassifiedError(ScholarlyError):
    """status outside the known classes (1xx, 3xx)."""
