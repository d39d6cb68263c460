"""
request execution engine - classification, bounded retry, caching.
every provider adapter talks to its api through ScholarlyClient.
"""

import json
import logging
import time
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, List, Optional, Union
from urllib.parse import urlsplit, urlunsplit

import httpx

from .backoff import BackoffPolicy
from .cache import CacheLayer, merge_query
from .errors import (
    ScholarlyError, NotFoundError, RateLimitError, ClientError,
    ServerError, TransportError, UnclassifiedError,
)


AUTH_HEADERS = ("authorization", "x-api-key", "api-key", "x-auth-token")

Payload = Union[Dict[str, Any], List[Any], str, bytes, None]
RequestPolicy = Callable[[httpx.Request], httpx.Request]


def parse_retry_after(value: Optional[str], now: Optional[float] = None) -> Optional[int]:
    """
    Retry-After as whole seconds.
    accepts delta-seconds or an http date; anything else gives None.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if value.isdigit():
        return int(value)

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None

    now = time.time() if now is None else now
    return max(0, int(when.timestamp() - now))


class ScholarlyClient:
    """
    shared http wrapper used by all adapters.

    - 2xx bodies are decoded as json (empty body -> {})
    - 404/429/4xx/5xx are mapped onto the ScholarlyError taxonomy
    - 429 and 5xx are retried up to MAX_ATTEMPTS total with backoff
    - transport failures are never retried
    - responses are optionally cached through a CacheLayer
    """

    MAX_ATTEMPTS = 3

    def __init__(
        self,
        http: Optional[httpx.Client] = None,
        backoff: Optional[BackoffPolicy] = None,
        cache: Optional[CacheLayer] = None,
        policy: Optional[RequestPolicy] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.http = http if http is not None else httpx.Client(timeout=30.0)
        self.backoff = backoff if backoff is not None else BackoffPolicy()
        self.cache = cache
        self.policy = policy
        self.logger = logger or logging.getLogger("scholarnet.client")

        self.last_response_headers: Dict[str, Any] = {}
        self.last_status: Optional[int] = None

    def close(self):
        """close the underlying http client."""
        if not self.http.is_closed:
            self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # ------------------------------------------------------------------
    # public api
    # ------------------------------------------------------------------

    def get(
        self,
        url: str,
        query: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        cache_context: Optional[str] = "detail",
    ) -> Any:
        return self._cached("GET", url, query or {}, None, headers or {}, cache_context)

    def post(
        self,
        url: str,
        payload: Payload = None,
        query: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        cache_context: Optional[str] = None,
    ) -> Any:
        return self._cached("POST", url, query or {}, payload, headers or {}, cache_context)

    def log(self, message: str, **context):
        """info-level log on behalf of an adapter."""
        if context:
            details = ", ".join(f"{k}={v}" for k, v in context.items())
            self.logger.info(f"{message} ({details})", extra={"context": context})
        else:
            self.logger.info(message)

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _cached(self, method, url, query, payload, headers, cache_context):
        def resolve():
            return self._dispatch(method, url, query, payload, headers)

        if cache_context is None or self.cache is None or not self.cache.is_enabled:
            return resolve()

        key = self.cache.build_key(method, url, query, payload, has_auth(headers))
        return self.cache.remember(key, resolve, cache_context)

    def _dispatch(self, method, url, query, payload, headers) -> Any:
        self._store_response(None)

        for attempt in range(self.MAX_ATTEMPTS):
            request = self._prepare_request(method, url, query, payload, headers)
            try:
                response = self.http.send(request)
            except httpx.TransportError as e:
                self._store_response(None)
                raise TransportError(f"{method} {request.url} failed: {e}") from e

            self._store_response(response)
            status = response.status_code
            if 200 <= status < 300:
                return self._decode(response)

            error = self._classify(response)
            if not self._should_retry(error, attempt):
                raise error

            self.logger.debug(
                f"{method} {request.url} -> {status}, retry {attempt + 1}/{self.MAX_ATTEMPTS - 1}"
            )
            self._sleep_before_retry(error, attempt + 1)

        # loop always returns or raises; keeps type checkers honest
        raise UnclassifiedError("request failed after retries")

    def _prepare_request(self, method, url, query, payload, headers) -> httpx.Request:
        headers = dict(headers)
        content = None

        if payload is not None:
            if isinstance(payload, (dict, list)):
                try:
                    content = json.dumps(payload).encode("utf-8")
                except (TypeError, ValueError) as e:
                    raise TransportError(f"failed encoding json payload: {e}") from e
                if not any(k.lower() == "content-type" for k in headers):
                    headers["Content-Type"] = "application/json"
            elif isinstance(payload, str):
                content = payload.encode("utf-8")
            else:
                content = payload

        request = self.http.build_request(
            method, build_url(url, query), headers=headers, content=content
        )
        if self.policy is not None:
            request = self.policy(request)
        return request

    def _decode(self, response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(
                f"failed decoding json payload: {e}",
                status=response.status_code,
                response=response,
            ) from e

    def _classify(self, response: httpx.Response) -> ScholarlyError:
        status = response.status_code
        reason = response.reason_phrase

        if status == 404:
            return NotFoundError(reason or "Not Found", status, response)
        if status == 429:
            return RateLimitError(
                reason or "Too Many Requests", status, response,
                retry_after=parse_retry_after(response.headers.get("retry-after")),
            )
        if 400 <= status < 500:
            return ClientError(reason or "Client Error", status, response)
        if status >= 500:
            return ServerError(reason or "Server Error", status, response)
        return UnclassifiedError(reason or "Unexpected response status", status, response)

    def _should_retry(self, error: ScholarlyError, attempt: int) -> bool:
        if attempt >= self.MAX_ATTEMPTS - 1:
            return False
        return error.retryable

    def _sleep_before_retry(self, error: ScholarlyError, attempt: int):
        delay = self.backoff.duration(attempt)
        if isinstance(error, RateLimitError) and error.retry_after is not None:
            delay = max(delay, float(error.retry_after))
        self.backoff.sleep(delay)

    def _store_response(self, response: Optional[httpx.Response]):
        if response is None:
            self.last_response_headers = {}
            self.last_status = None
            return

        headers: Dict[str, Any] = {"status": response.status_code}
        for name, value in response.headers.multi_items():
            headers.setdefault(name.lower(), []).append(value)
        self.last_response_headers = headers
        self.last_status = response.status_code


def has_auth(headers: Dict[str, str]) -> bool:
    names = {k.lower() for k in headers}
    return any(h in names for h in AUTH_HEADERS)


def build_url(url: str, query: Dict[str, Any]) -> str:
    """
    merge the url's own query string with explicit params.
    explicit params win, None and "" are dropped, keys are sorted.
    """
    parts = urlsplit(url)
    params = merge_query(url, query)
    base = urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
    return str(httpx.URL(base, params=params)) if params else base
