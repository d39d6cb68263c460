from .backoff import BackoffPolicy
from .cache import CacheLayer, CacheStore, MemoryCacheStore
from .client import ScholarlyClient
from .config import (
    ScholarlyConfig, HttpConfig, BackoffConfig, CacheConfig,
    GraphConfig, ProviderConfig
)
from .errors import (
    ScholarlyError, NotFoundError, RateLimitError, ClientError,
    ServerError, TransportError, UnclassifiedError
)
from .models import Query, Page, RateLimitState
from .logs import setup_logging
