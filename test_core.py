"""
test backoff, cache layer, request engine, query model, identifiers and config.

run with: pytest test_core.py -v
"""

import json
import logging
from dataclasses import FrozenInstanceError
from email.utils import formatdate

import httpx
import pytest

from scholarnet.core import identity
from scholarnet.core.backoff import BackoffPolicy
from scholarnet.core.cache import CacheLayer, MemoryCacheStore
from scholarnet.core.client import ScholarlyClient, build_url, parse_retry_after
from scholarnet.core.config import ScholarlyConfig
from scholarnet.core.errors import (
    NotFoundError, RateLimitError, ClientError, ServerError,
    TransportError, UnclassifiedError
)
from scholarnet.core.logs import setup_logging
from scholarnet.core.models import Query, Page, RateLimitState


# =============================================================================
# Test Fixtures
# =============================================================================

class RecordingStore:
    """dict-backed store that remembers the ttl of every write."""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ttl=None):
        self.data[key] = value
        self.ttls[key] = ttl

    def has(self, key):
        return key in self.data

    def clear(self):
        self.data.clear()


def make_client(handler, cache=None, policy=None):
    """client over a mock transport; sleeps are recorded, not performed."""
    sleeps = []
    backoff = BackoffPolicy(jitter=lambda delay, attempt: delay, sleeper=sleeps.append)
    client = ScholarlyClient(
        http=httpx.Client(transport=httpx.MockTransport(handler)),
        backoff=backoff,
        cache=cache,
        policy=policy,
    )
    return client, sleeps


def scripted(*responses):
    """handler replaying the given responses in order, recording requests."""
    calls = []
    queue = list(responses)

    def handler(request):
        calls.append(request)
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response

    return handler, calls


# =============================================================================
# Backoff
# =============================================================================

class TestBackoffPolicy:
    """test delay computation and sleeping."""

    def test_exponential_growth_with_identity_jitter(self):
        """delays double per attempt from the base."""
        policy = BackoffPolicy(jitter=lambda d, a: d)
        assert policy.duration(0) == 0.5
        assert policy.duration(1) == 1.0
        assert policy.duration(2) == 2.0

    def test_capped_at_max(self):
        """large attempts never exceed max_delay."""
        policy = BackoffPolicy(jitter=lambda d, a: d)
        assert policy.duration(30) == 60.0

    def test_non_decreasing_up_to_cap(self):
        policy = BackoffPolicy(base_delay=0.3, max_delay=10.0, jitter=lambda d, a: d)
        delays = [policy.duration(n) for n in range(12)]
        assert delays == sorted(delays)
        assert max(delays) == 10.0

    def test_huge_attempt_saturates_at_max(self):
        """growth beyond float range is capped instead of raising."""
        policy = BackoffPolicy(jitter=lambda d, a: d)
        assert policy.duration(2000) == policy.max_delay
        assert BackoffPolicy(factor=2, jitter=lambda d, a: d).duration(5000) == 60.0

    def test_negative_attempt_clamped(self):
        """negative attempts behave like attempt 0."""
        policy = BackoffPolicy(jitter=lambda d, a: d)
        assert policy.duration(-3) == policy.duration(0)

    def test_default_jitter_within_half_to_full(self):
        """equal jitter keeps the delay in [delay/2, delay]."""
        policy = BackoffPolicy()
        for attempt in range(8):
            delay = min(0.5 * 2 ** attempt, 60.0)
            for _ in range(20):
                value = policy.duration(attempt)
                assert delay / 2 <= value <= delay

    def test_zero_base_gives_zero(self):
        """non-positive delays short-circuit to 0."""
        assert BackoffPolicy(base_delay=0).duration(3) == 0.0

    def test_negative_jitter_floored(self):
        """jitter results below zero become 0."""
        policy = BackoffPolicy(jitter=lambda d, a: -5)
        assert policy.duration(2) == 0.0

    def test_jitter_receives_delay_and_attempt(self):
        """jitter sees the capped delay and the attempt index."""
        seen = []
        policy = BackoffPolicy(jitter=lambda d, a: seen.append((d, a)) or d)
        policy.duration(2)
        assert seen == [(2.0, 2)]

    def test_sleep_skips_non_positive(self):
        """sleep(0) never calls the sleeper."""
        calls = []
        policy = BackoffPolicy(sleeper=calls.append)
        policy.sleep(0)
        policy.sleep(-1)
        policy.sleep(1.5)
        assert calls == [1.5]


# =============================================================================
# Cache Layer
# =============================================================================

class TestCacheLayer:
    """test key building, remember and enable/disable."""

    def test_key_ignores_param_order(self):
        """same params in another order give the same key."""
        cache = CacheLayer()
        a = cache.build_key("GET", "https://api.example.org/works", {"a": 1, "b": 2})
        b = cache.build_key("GET", "https://api.example.org/works", {"b": 2, "a": 1})
        assert a == b

    def test_key_merges_url_query(self):
        """params in the url and explicit params are equivalent."""
        cache = CacheLayer()
        a = cache.build_key("GET", "https://api.example.org/works?b=1", {"a": "2"})
        b = cache.build_key("GET", "https://api.example.org/works", {"a": "2", "b": "1"})
        assert a == b

    def test_key_matches_wire_params(self):
        """empty params are dropped and values compare as sent."""
        cache = CacheLayer()
        plain = cache.build_key("GET", "https://x.org/a", {"limit": "1", "oa": "true"})
        noisy = cache.build_key("GET", "https://x.org/a?skip=", {"limit": 1, "oa": True, "q": None, "v": ""})
        assert plain == noisy

    def test_key_method_case_insensitive(self):
        """method is upper-cased before hashing."""
        cache = CacheLayer()
        assert cache.build_key("get", "https://x.org/a") == cache.build_key("GET", "https://x.org/a")

    def test_key_distinguishes_host_and_path(self):
        cache = CacheLayer()
        base = cache.build_key("GET", "https://api.example.org/works")
        assert base != cache.build_key("GET", "https://api.other.org/works")
        assert base != cache.build_key("GET", "https://api.example.org/authors")
        assert base != cache.build_key("POST", "https://api.example.org/works")

    def test_key_distinguishes_auth(self):
        """authenticated and anonymous requests never share a key."""
        cache = CacheLayer()
        anon = cache.build_key("GET", "https://x.org/a", {"q": "x"})
        auth = cache.build_key("GET", "https://x.org/a", {"q": "x"}, has_auth=True)
        assert anon != auth

    def test_key_distinguishes_payload(self):
        """different bodies give different keys; key order inside does not."""
        cache = CacheLayer()
        a = cache.build_key("POST", "https://x.org/batch", payload={"ids": [1, 2]})
        b = cache.build_key("POST", "https://x.org/batch", payload={"ids": [2, 1]})
        c = cache.build_key("POST", "https://x.org/batch", payload={"x": 1, "ids": [1, 2]})
        d = cache.build_key("POST", "https://x.org/batch", payload={"ids": [1, 2], "x": 1})
        assert a != b
        assert c == d

    def test_key_is_sha256_hex(self):
        key = CacheLayer().build_key("GET", "https://x.org/a")
        assert len(key) == 64
        int(key, 16)

    def test_remember_resolves_once(self):
        """second call is served from the store."""
        cache = CacheLayer(MemoryCacheStore())
        calls = []

        def resolver():
            calls.append(1)
            return {"value": 42}

        assert cache.remember("k", resolver, "detail") == {"value": 42}
        assert cache.remember("k", resolver, "detail") == {"value": 42}
        assert len(calls) == 1

    def test_remember_uses_context_ttl(self):
        """the ttl written comes from the context."""
        store = RecordingStore()
        cache = CacheLayer(store)
        cache.remember("a", lambda: 1, "search")
        cache.remember("b", lambda: 1, "metadata")
        cache.remember("c", lambda: 1, None)
        cache.remember("d", lambda: 1, "unknown")
        assert store.ttls == {"a": 3600, "b": 2592000, "c": 3600, "d": 3600}

    def test_ttl_table(self):
        cache = CacheLayer()
        assert cache.ttl_for("detail") == 604800
        assert cache.ttl_for("batch") == 21600

    def test_disabled_passes_through(self):
        """disable() bypasses the store entirely."""
        store = RecordingStore()
        cache = CacheLayer(store)
        cache.disable()
        calls = []
        cache.remember("k", lambda: calls.append(1), "detail")
        cache.remember("k", lambda: calls.append(1), "detail")
        assert len(calls) == 2
        assert store.data == {}
        assert not cache.is_enabled

        cache.enable()
        assert cache.is_enabled

    def test_no_store_is_not_enabled(self):
        """a layer without a store always calls the resolver."""
        cache = CacheLayer()
        assert not cache.is_enabled
        assert cache.remember("k", lambda: "fresh") == "fresh"

    def test_clear(self):
        store = MemoryCacheStore()
        cache = CacheLayer(store)
        cache.remember("k", lambda: 1)
        cache.clear()
        assert not store.has("k")


class TestMemoryCacheStore:
    """test the in-process ttl store."""

    def test_entries_expire(self):
        """an entry disappears once its ttl has passed."""
        now = [1000.0]
        store = MemoryCacheStore(timer=lambda: now[0])
        store.set("k", "v", ttl=10)
        assert store.has("k")
        assert store.get("k") == "v"

        now[0] += 11
        assert not store.has("k")
        assert store.get("k") is None

    def test_entries_without_ttl_persist(self):
        now = [0.0]
        store = MemoryCacheStore(timer=lambda: now[0])
        store.set("k", "v")
        now[0] += 10 ** 9
        assert store.get("k") == "v"

    def test_falsy_values_are_cached(self):
        """an empty dict is a real cached value, not a miss."""
        store = MemoryCacheStore()
        store.set("k", {}, ttl=60)
        assert store.has("k")
        assert store.get("k") == {}


# =============================================================================
# Request Engine
# =============================================================================

class TestClientSuccess:
    """test decoding of successful responses."""

    def test_decodes_json(self):
        handler, calls = scripted(httpx.Response(200, json={"ok": True}))
        client, _ = make_client(handler)
        assert client.get("https://api.example.org/works") == {"ok": True}
        assert len(calls) == 1

    def test_empty_body_is_empty_dict(self):
        handler, _ = scripted(httpx.Response(204))
        client, _ = make_client(handler)
        assert client.get("https://api.example.org/works") == {}

    def test_malformed_json_is_transport_error(self):
        handler, calls = scripted(httpx.Response(200, content=b"{not json"))
        client, _ = make_client(handler)
        with pytest.raises(TransportError):
            client.get("https://api.example.org/works")
        assert len(calls) == 1

    def test_query_merged_and_sorted(self):
        """url params and explicit params merge; empties are dropped."""
        handler, calls = scripted(httpx.Response(200, json={}))
        client, _ = make_client(handler)
        client.get("https://api.example.org/works?z=1&a=old", {"a": "new", "m": None, "e": ""})
        assert str(calls[0].url) == "https://api.example.org/works?a=new&z=1"


class TestClientErrors:
    """test status classification and retry behaviour."""

    def test_not_found_not_retried(self):
        handler, calls = scripted(httpx.Response(404))
        client, sleeps = make_client(handler)
        with pytest.raises(NotFoundError) as exc:
            client.get("https://api.example.org/works/W1")
        assert exc.value.status == 404
        assert len(calls) == 1
        assert sleeps == []

    def test_client_error_not_retried(self):
        handler, calls = scripted(httpx.Response(400))
        client, _ = make_client(handler)
        with pytest.raises(ClientError):
            client.get("https://api.example.org/works")
        assert len(calls) == 1

    def test_redirect_is_unclassified(self):
        handler, calls = scripted(httpx.Response(302, headers={"location": "https://elsewhere.org"}))
        client, _ = make_client(handler)
        with pytest.raises(UnclassifiedError):
            client.get("https://api.example.org/works")
        assert len(calls) == 1

    def test_server_error_retried_then_succeeds(self):
        """503, 503, 200 -> result after 3 attempts with backoff sleeps."""
        handler, calls = scripted(
            httpx.Response(503), httpx.Response(503), httpx.Response(200, json={"ok": 1})
        )
        client, sleeps = make_client(handler)
        assert client.get("https://api.example.org/works") == {"ok": 1}
        assert len(calls) == 3
        assert sleeps == [1.0, 2.0]

    def test_server_error_exhausts_attempts(self):
        """three 500s raise ServerError after exactly three attempts."""
        handler, calls = scripted(httpx.Response(500))
        client, sleeps = make_client(handler)
        with pytest.raises(ServerError):
            client.get("https://api.example.org/works")
        assert len(calls) == ScholarlyClient.MAX_ATTEMPTS
        assert len(sleeps) == ScholarlyClient.MAX_ATTEMPTS - 1

    def test_rate_limit_honours_retry_after(self):
        """Retry-After wins when longer than the backoff delay."""
        handler, calls = scripted(
            httpx.Response(429, headers={"Retry-After": "7"}),
            httpx.Response(200, json={"ok": 1}),
        )
        client, sleeps = make_client(handler)
        assert client.get("https://api.example.org/works") == {"ok": 1}
        assert len(calls) == 2
        assert sleeps == [7.0]

    def test_rate_limit_exhausted_carries_retry_after(self):
        handler, _ = scripted(httpx.Response(429, headers={"Retry-After": "3"}))
        client, _ = make_client(handler)
        with pytest.raises(RateLimitError) as exc:
            client.get("https://api.example.org/works")
        assert exc.value.retry_after == 3
        assert exc.value.retryable

    def test_retry_follows_error_retryable_flag(self, monkeypatch):
        """a status class marked retryable is retried; unmarked ones are not."""
        monkeypatch.setattr(ClientError, "retryable", True)
        handler, calls = scripted(httpx.Response(400), httpx.Response(200, json={"ok": 1}))
        client, _ = make_client(handler)
        assert client.get("https://api.example.org/works") == {"ok": 1}
        assert len(calls) == 2

        monkeypatch.setattr(ServerError, "retryable", False)
        handler, calls = scripted(httpx.Response(503))
        client, _ = make_client(handler)
        with pytest.raises(ServerError):
            client.get("https://api.example.org/works")
        assert len(calls) == 1

    def test_transport_failure_not_retried(self):
        """connect errors surface immediately and clear response state."""
        handler, calls = scripted(httpx.ConnectError("connection refused"))
        client, sleeps = make_client(handler)
        with pytest.raises(TransportError):
            client.get("https://api.example.org/works")
        assert len(calls) == 1
        assert sleeps == []
        assert client.last_response_headers == {}
        assert client.last_status is None


class TestClientState:
    """test last-response capture, caching and request decoration."""

    def test_headers_captured_lowercase(self):
        handler, _ = scripted(httpx.Response(
            200, json={}, headers={"X-RateLimit-Remaining": "9", "X-RateLimit-Reset": "2"}
        ))
        client, _ = make_client(handler)
        client.get("https://api.example.org/works")
        assert client.last_status == 200
        assert client.last_response_headers["status"] == 200
        assert client.last_response_headers["x-ratelimit-remaining"] == ["9"]

    def test_headers_captured_on_error(self):
        handler, _ = scripted(httpx.Response(404, headers={"X-Trace": "abc"}))
        client, _ = make_client(handler)
        with pytest.raises(NotFoundError):
            client.get("https://api.example.org/works/W1")
        assert client.last_status == 404
        assert client.last_response_headers["x-trace"] == ["abc"]

    def test_state_cleared_between_calls(self):
        """a transport failure after a success leaves no stale headers."""
        handler, _ = scripted(
            httpx.Response(200, json={}, headers={"X-A": "1"}),
            httpx.ConnectError("down"),
        )
        client, _ = make_client(handler)
        client.get("https://api.example.org/a", cache_context=None)
        assert "x-a" in client.last_response_headers
        with pytest.raises(TransportError):
            client.get("https://api.example.org/b", cache_context=None)
        assert client.last_response_headers == {}

    def test_get_is_cached(self):
        handler, calls = scripted(httpx.Response(200, json={"n": 1}))
        client, _ = make_client(handler, cache=CacheLayer(MemoryCacheStore()))
        client.get("https://api.example.org/works", {"q": "x"})
        client.get("https://api.example.org/works", {"q": "x"})
        assert len(calls) == 1

    def test_no_context_skips_cache(self):
        handler, calls = scripted(httpx.Response(200, json={"n": 1}))
        client, _ = make_client(handler, cache=CacheLayer(MemoryCacheStore()))
        client.get("https://api.example.org/works", cache_context=None)
        client.get("https://api.example.org/works", cache_context=None)
        assert len(calls) == 2

    def test_auth_requests_cached_separately(self):
        handler, calls = scripted(httpx.Response(200, json={"n": 1}))
        client, _ = make_client(handler, cache=CacheLayer(MemoryCacheStore()))
        client.get("https://api.example.org/works")
        client.get("https://api.example.org/works", headers={"X-Api-Key": "secret"})
        assert len(calls) == 2

    def test_errors_are_not_cached(self):
        handler, calls = scripted(httpx.Response(404), httpx.Response(200, json={"n": 1}))
        client, _ = make_client(handler, cache=CacheLayer(MemoryCacheStore()))
        with pytest.raises(NotFoundError):
            client.get("https://api.example.org/works/W1")
        assert client.get("https://api.example.org/works/W1") == {"n": 1}
        assert len(calls) == 2

    def test_post_encodes_json(self):
        handler, calls = scripted(httpx.Response(200, json=[]))
        client, _ = make_client(handler)
        client.post("https://api.example.org/batch", {"ids": ["a", "b"]})
        request = calls[0]
        assert request.method == "POST"
        assert request.headers["content-type"] == "application/json"
        assert json.loads(request.content) == {"ids": ["a", "b"]}

    def test_post_keeps_explicit_content_type(self):
        handler, calls = scripted(httpx.Response(200, json={}))
        client, _ = make_client(handler)
        client.post("https://api.example.org/batch", {"a": 1}, headers={"Content-Type": "application/vnd.api+json"})
        assert calls[0].headers["content-type"] == "application/vnd.api+json"

    def test_post_sends_string_raw(self):
        handler, calls = scripted(httpx.Response(200, json={}))
        client, _ = make_client(handler)
        client.post("https://api.example.org/raw", "a=1&b=2")
        assert calls[0].content == b"a=1&b=2"

    def test_policy_hook_applied(self):
        def policy(request):
            request.headers["X-Decorated"] = "yes"
            return request

        handler, calls = scripted(httpx.Response(200, json={}))
        client, _ = make_client(handler, policy=policy)
        client.get("https://api.example.org/works")
        assert calls[0].headers["x-decorated"] == "yes"

    def test_log_forwards_at_info(self, caplog):
        handler, _ = scripted(httpx.Response(200, json={}))
        client, _ = make_client(handler)
        with caplog.at_level(logging.INFO, logger="scholarnet.client"):
            client.log("health check failed", error="boom")
        assert "health check failed" in caplog.text
        assert "error=boom" in caplog.text


class TestRequestHelpers:
    """test url building and Retry-After parsing."""

    def test_build_url_without_params(self):
        assert build_url("https://x.org/a", {}) == "https://x.org/a"

    def test_build_url_bool_and_int(self):
        url = build_url("https://x.org/a", {"b": True, "a": 5})
        assert url == "https://x.org/a?a=5&b=true"

    def test_retry_after_seconds(self):
        assert parse_retry_after("120") == 120

    def test_retry_after_http_date(self):
        now = 1_700_000_000
        header = formatdate(now + 30, usegmt=True)
        assert parse_retry_after(header, now=now) == 30

    def test_retry_after_past_date_floored(self):
        now = 1_700_000_000
        header = formatdate(now - 30, usegmt=True)
        assert parse_retry_after(header, now=now) == 0

    def test_retry_after_garbage(self):
        assert parse_retry_after("soon") is None
        assert parse_retry_after("") is None
        assert parse_retry_after(None) is None


# =============================================================================
# Models
# =============================================================================

class TestQuery:
    """test query normalization and validation."""

    def test_defaults(self):
        query = Query()
        assert query.limit == 25
        assert query.cursor is None
        assert query.fields == []

    def test_rejects_bad_values(self):
        with pytest.raises(ValueError):
            Query(limit=0)
        with pytest.raises(ValueError):
            Query(offset=-1)
        with pytest.raises(ValueError):
            Query(min_citations=-5)
        with pytest.raises(ValueError):
            Query(max_citations=-1)
        with pytest.raises(ValueError):
            Query(year="  ")

    def test_normalizes_lists(self):
        query = Query(fields=[" Title", "title", "YEAR"], venue_ids=["V1", "", "  "])
        assert query.fields == ["title", "year"]
        assert query.venue_ids == ["V1"]

    def test_strips_text(self):
        query = Query(q="  graphs  ", cursor="  ")
        assert query.q == "graphs"
        assert query.cursor is None

    def test_is_immutable(self):
        query = Query(q="x")
        with pytest.raises(FrozenInstanceError):
            query.q = "y"

    def test_replace_returns_new(self):
        query = Query(q="x", cursor="abc", offset=10)
        cleared = query.without_pagination()
        assert cleared.cursor is None and cleared.offset is None
        assert query.cursor == "abc"
        assert query.replace(limit=5).limit == 5

    def test_dict_round_trip(self):
        query = Query.from_dict({
            "q": "networks", "year": "2019-2021", "openAccess": True,
            "minCitations": 3, "venueIds": ["V1"], "limit": 10, "raw": {"x": 1},
        })
        assert query.open_access is True
        assert query.min_citations == 3
        assert Query.from_dict(query.to_dict()) == query


class TestRateLimitState:
    """test header parsing."""

    def test_from_headers(self):
        headers = {"x-ratelimit-remaining": ["1"], "x-ratelimit-limit": ["10"], "x-ratelimit-reset": ["3"]}
        state = RateLimitState.from_headers(headers)
        assert state.to_dict() == {"remaining": 1, "limit": 10, "reset": 3}

    def test_non_numeric_is_none(self):
        state = RateLimitState.from_headers({"x-rate-limit-limit": ["50/1s"]}, "x-rate-limit-")
        assert state.limit is None
        assert state.remaining is None


class TestPage:
    def test_is_last(self):
        assert Page(items=[]).is_last
        assert not Page(items=[], next_cursor="abc").is_last


# =============================================================================
# Identifiers
# =============================================================================

class TestIdentity:
    """test identifier normalization helpers."""

    def test_doi(self):
        assert identity.normalize_doi("https://doi.org/10.1000/ABC") == "10.1000/abc"
        assert identity.normalize_doi("doi:10.1/X") == "10.1/x"
        assert identity.normalize_doi("  ") is None
        assert identity.doi_to_url("10.1/X") == "https://doi.org/10.1/x"

    def test_orcid(self):
        assert identity.normalize_orcid("https://orcid.org/0000-0002-1825-009x") == "0000-0002-1825-009X"
        assert identity.normalize_orcid("0000000218250097") == "0000-0002-1825-0097"
        assert identity.normalize_orcid("1234") is None

    def test_arxiv(self):
        assert identity.normalize_arxiv("https://arxiv.org/abs/2101.00001v2") == "2101.00001"
        assert identity.normalize_arxiv("arXiv:2101.00001") == "2101.00001"
        assert identity.normalize_arxiv("https://arxiv.org/pdf/2101.00001v1.pdf") == "2101.00001"

    def test_pmid(self):
        assert identity.normalize_pmid("PMID: 123456") == "123456"
        assert identity.normalize_pmid("none") is None

    def test_urls(self):
        assert identity.arxiv_to_url("arXiv:2101.00001v3") == "https://arxiv.org/abs/2101.00001"
        assert identity.pmid_to_url("PMID 42") == "https://pubmed.ncbi.nlm.nih.gov/42/"
        assert identity.orcid_to_url("0000000218250097") == "https://orcid.org/0000-0002-1825-0097"
        assert identity.arxiv_to_url("") is None
        assert identity.pmid_to_url("n/a") is None

    def test_namespaces(self):
        assert identity.ns(" OpenAlex ", " W1 ") == "openalex:W1"
        assert identity.parse_ns("s2:abc") == ("s2", "abc")
        assert identity.parse_ns("plain") == ("", "plain")


# =============================================================================
# Config and logging
# =============================================================================

class TestConfig:
    """test config loading and validation."""

    def test_defaults(self):
        config = ScholarlyConfig.default()
        assert config.default_adapter == "openalex"
        assert config.http.backoff.base == 0.5
        assert config.provider("openalex").max_per_page == 200
        assert config.provider("s2").max_per_page == 100

    def test_from_env(self):
        config = ScholarlyConfig.from_env({
            "SCHOLARLY_DEFAULT_ADAPTER": "S2",
            "SCHOLARLY_HTTP_TIMEOUT": "12.5",
            "SCHOLARLY_BACKOFF_BASE": "1",
            "SCHOLARLY_GRAPH_MAX_WORKS": "40",
            "SCHOLARLY_GRAPH_MIN_COLLABS": "2",
            "SCHOLARLY_MAILTO": "team@example.org",
            "S2_API_KEY": "secret",
            "CROSSREF_MAX_ROWS": "20",
        })
        assert config.default_adapter == "s2"
        assert config.http.timeout == 12.5
        assert config.http.backoff.base == 1.0
        assert config.graph.max_works == 40
        assert config.graph.min_collaborations == 2
        assert config.provider("openalex").mailto == "team@example.org"
        assert config.provider("crossref").mailto == "team@example.org"
        assert config.provider("s2").api_key == "secret"
        assert config.provider("crossref").max_per_page == 20

    def test_provider_mailto_overrides_shared(self):
        config = ScholarlyConfig.from_env({
            "SCHOLARLY_MAILTO": "shared@example.org",
            "OPENALEX_MAILTO": "oa@example.org",
        })
        assert config.provider("openalex").mailto == "oa@example.org"

    def test_unknown_adapter_rejected(self):
        with pytest.raises(ValueError):
            ScholarlyConfig(default_adapter="scopus").validate()


class TestLogging:
    """test logging setup."""

    def test_setup_logging_file(self, tmp_path):
        log_file = tmp_path / "scholarnet.log"
        logger = setup_logging(logging.DEBUG, str(log_file))
        try:
            logging.getLogger("scholarnet.graph").info("built graph")
            for handler in logger.handlers:
                handler.flush()
            assert "[scholarnet.graph] INFO: built graph" in log_file.read_text()
        finally:
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()

    def test_setup_logging_idempotent(self):
        logger = setup_logging()
        setup_logging()
        try:
            assert len(logger.handlers) == 1
        finally:
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()
