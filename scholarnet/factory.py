"""
explicit wiring of client, cache and adapters from a ScholarlyConfig.

no global instance: build one factory per application (or per test)
and pass it around.
"""

import logging
from typing import Dict, Optional

import httpx

from .core.backoff import BackoffPolicy
from .core.cache import CacheLayer, CacheStore, MemoryCacheStore
from .core.client import ScholarlyClient
from .core.config import ScholarlyConfig, HttpConfig
from .graph.builder import GraphBuilder
from .providers.base import ScholarlyDataSource
from .providers.crossref import CrossrefDataSource
from .providers.openalex import OpenAlexDataSource
from .providers.semantic_scholar import SemanticScholarDataSource


def request_policy(http: HttpConfig):
    """
    request hook applying the configured timeout and user agent.
    an adapter-specific user agent (e.g. with mailto) is left alone.
    """
    def apply(request: httpx.Request) -> httpx.Request:
        if http.timeout is not None:
            request.extensions["timeout"] = httpx.Timeout(http.timeout).as_dict()
        current = request.headers.get("user-agent", "")
        if http.user_agent and (not current or current.startswith("python-httpx")):
            request.headers["User-Agent"] = http.user_agent
        return request
    return apply


class AdapterFactory:
    """
    builds one shared ScholarlyClient and lazily creates adapters on it.

    usage:
        factory = AdapterFactory(ScholarlyConfig.from_env())
        openalex = factory.adapter()          # configured default
        s2 = factory.adapter("s2")
        builder = factory.graph_builder(s2)
    """

    def __init__(
        self,
        config: Optional[ScholarlyConfig] = None,
        http: Optional[httpx.Client] = None,
        cache_store: Optional[CacheStore] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = (config or ScholarlyConfig.default()).validate()
        self.logger = logger or logging.getLogger("scholarnet")

        http_config = self.config.http
        self.backoff = BackoffPolicy(
            base_delay=http_config.backoff.base,
            max_delay=http_config.backoff.max,
            factor=http_config.backoff.factor,
        )

        if cache_store is None and self.config.cache.enabled:
            cache_store = MemoryCacheStore(maxsize=self.config.cache.maxsize)
        self.cache = CacheLayer(cache_store)
        if not self.config.cache.enabled:
            self.cache.disable()

        self.client = ScholarlyClient(
            http=http if http is not None else httpx.Client(timeout=http_config.timeout),
            backoff=self.backoff,
            cache=self.cache,
            policy=request_policy(http_config),
            logger=self.logger.getChild("client"),
        )
        self._adapters: Dict[str, ScholarlyDataSource] = {}

    def adapter(self, name: Optional[str] = None) -> ScholarlyDataSource:
        name = (name or self.config.default_adapter).strip().lower()
        if name not in self._adapters:
            self._adapters[name] = self._create(name)
        return self._adapters[name]

    def graph_builder(self, data_source: Optional[ScholarlyDataSource] = None) -> GraphBuilder:
        return GraphBuilder(
            data_source or self.adapter(),
            cache=self.cache,
            logger=self.logger.getChild("graph"),
            config=self.config.graph,
        )

    def reset(self):
        """forget memoized adapters; the next adapter() call rebuilds them."""
        self._adapters = {}

    def close(self):
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _create(self, name: str) -> ScholarlyDataSource:
        options = self.config.provider(name)
        user_agent = self.config.http.user_agent or "scholarnet/0.1"

        if name == "openalex":
            return OpenAlexDataSource(
                self.client,
                mailto=options.mailto,
                max_per_page=options.max_per_page or 200,
                user_agent=user_agent,
            )
        if name == "s2":
            return SemanticScholarDataSource(
                self.client,
                api_key=options.api_key,
                max_per_page=options.max_per_page or 100,
                user_agent=user_agent,
            )
        if name == "crossref":
            return CrossrefDataSource(
                self.client,
                mailto=options.mailto,
                max_rows=options.max_per_page or 100,
                user_agent=user_agent,
            )
        raise ValueError(f"unsupported adapter: {name}")
