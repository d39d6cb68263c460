"""
scholarnet - scholarly metadata aggregation and citation / collaboration graphs.
"""

from .core.config import ScholarlyConfig
from .core.models import Query, Page, RateLimitState
from .core.client import ScholarlyClient
from .core.backoff import BackoffPolicy
from .core.cache import CacheLayer, MemoryCacheStore
from .core.errors import (
    ScholarlyError, NotFoundError, RateLimitError, ClientError,
    ServerError, TransportError, UnclassifiedError
)
from .core.logs import setup_logging
from .providers.openalex import OpenAlexDataSource
from .providers.semantic_scholar import SemanticScholarDataSource
from .providers.crossref import CrossrefDataSource
from .graph.builder import GraphBuilder
from .graph.export import GraphExporter
from .factory import AdapterFactory

__version__ = "0.1.0"

__all__ = [
    "ScholarlyConfig",
    "Query",
    "Page",
    "RateLimitState",
    "ScholarlyClient",
    "BackoffPolicy",
    "CacheLayer",
    "MemoryCacheStore",
    "ScholarlyError",
    "NotFoundError",
    "RateLimitError",
    "ClientError",
    "ServerError",
    "TransportError",
    "UnclassifiedError",
    "setup_logging",
    "OpenAlexDataSource",
    "SemanticScholarDataSource",
    "CrossrefDataSource",
    "GraphBuilder",
    "GraphExporter",
    "AdapterFactory",
]
