"""
configuration for scholarnet.
all settings in one place, loadable from a dict or the environment.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Mapping

ADAPTERS = ("openalex", "s2", "crossref")

DEFAULT_USER_AGENT = "scholarnet/0.1 (+https://github.com/scholarnet/scholarnet)"


@dataclass
class BackoffConfig:
    """retry delay settings."""
    base: float = 0.5     # seconds before first retry
    max: float = 60.0     # cap on any single delay
    factor: float = 2.0   # growth per attempt


@dataclass
class HttpConfig:
    """transport settings applied to every request."""
    timeout: Optional[float] = 30.0
    user_agent: Optional[str] = DEFAULT_USER_AGENT
    backoff: BackoffConfig = field(default_factory=BackoffConfig)


@dataclass
class CacheConfig:
    """response cache settings."""
    enabled: bool = True
    maxsize: int = 1024  # entries in the in-memory store


@dataclass
class GraphConfig:
    """graph builder defaults."""
    max_works: Optional[int] = None     # None = unlimited
    min_collaborations: int = 1
    throttle_max_sleep: float = 5.0     # larger resets are ignored


@dataclass
class ProviderConfig:
    """per-provider settings."""
    mailto: Optional[str] = None
    api_key: Optional[str] = None
    max_per_page: Optional[int] = None


def _default_providers() -> Dict[str, ProviderConfig]:
    return {
        "openalex": ProviderConfig(max_per_page=200),
        "s2": ProviderConfig(max_per_page=100),
        "crossref": ProviderConfig(max_per_page=100),
    }


def _int_or_none(value) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def _float_or_none(value) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def _bool(value, default: bool) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ScholarlyConfig:
    """
    master configuration.
    """
    default_adapter: str = "openalex"
    http: HttpConfig = field(default_factory=HttpConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    graph: GraphConfig = field(default_factory=GraphConfig)
    providers: Dict[str, ProviderConfig] = field(default_factory=_default_providers)

    def __post_init__(self):
        self.default_adapter = self.default_adapter.strip().lower()

    def provider(self, name: str) -> ProviderConfig:
        return self.providers.get(name, ProviderConfig())

    def validate(self):
        """raise ValueError on settings that can't work."""
        if self.default_adapter not in ADAPTERS:
            raise ValueError(f"unsupported adapter: {self.default_adapter}")
        if self.http.timeout is not None and self.http.timeout <= 0:
            raise ValueError("http timeout must be positive")
        if self.graph.min_collaborations < 1:
            raise ValueError("min_collaborations must be >= 1")
        if self.graph.max_works is not None and self.graph.max_works < 0:
            raise ValueError("max_works must be >= 0")
        return self

    @classmethod
    def default(cls) -> "ScholarlyConfig":
        return cls()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScholarlyConfig":
        """
        build from a nested mapping, e.g.
        {"default": "s2", "http": {"timeout": 10, "backoff": {"base": 1}},
         "providers": {"s2": {"api_key": "..."}}}
        """
        http = data.get("http") or {}
        backoff = http.get("backoff") or {}
        cache = data.get("cache") or {}
        graph = data.get("graph") or {}

        providers = _default_providers()
        for name, options in (data.get("providers") or {}).items():
            current = providers.get(name, ProviderConfig())
            providers[name] = ProviderConfig(
                mailto=options.get("mailto", current.mailto),
                api_key=options.get("api_key", current.api_key),
                max_per_page=_int_or_none(
                    options.get("max_per_page", options.get("max_rows", current.max_per_page))
                ),
            )

        defaults = GraphConfig()
        return cls(
            default_adapter=data.get("default") or data.get("default_adapter") or "openalex",
            http=HttpConfig(
                timeout=_float_or_none(http.get("timeout", HttpConfig.timeout)),
                user_agent=http.get("user_agent", DEFAULT_USER_AGENT),
                backoff=BackoffConfig(
                    base=float(backoff.get("base", 0.5)),
                    max=float(backoff.get("max", 60.0)),
                    factor=float(backoff.get("factor", 2.0)),
                ),
            ),
            cache=CacheConfig(
                enabled=_bool(cache.get("enabled"), True),
                maxsize=int(cache.get("maxsize", 1024)),
            ),
            graph=GraphConfig(
                max_works=_int_or_none(graph.get("max_works")),
                min_collaborations=int(graph.get("min_collaborations") or 1),
                throttle_max_sleep=float(graph.get("throttle_max_sleep", defaults.throttle_max_sleep)),
            ),
            providers=providers,
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ScholarlyConfig":
        """read SCHOLARLY_* and provider variables (os.environ by default)."""
        env = os.environ if environ is None else environ
        mailto = env.get("SCHOLARLY_MAILTO")

        return cls.from_dict({
            "default": env.get("SCHOLARLY_DEFAULT_ADAPTER", "openalex"),
            "http": {
                "timeout": env.get("SCHOLARLY_HTTP_TIMEOUT", HttpConfig.timeout),
                "user_agent": env.get("SCHOLARLY_HTTP_USER_AGENT", DEFAULT_USER_AGENT),
                "backoff": {
                    "base": env.get("SCHOLARLY_BACKOFF_BASE", 0.5),
                    "max": env.get("SCHOLARLY_BACKOFF_MAX", 60),
                    "factor": env.get("SCHOLARLY_BACKOFF_FACTOR", 2),
                },
            },
            "cache": {
                "enabled": env.get("SCHOLARLY_CACHE_ENABLED"),
            },
            "graph": {
                "max_works": env.get("SCHOLARLY_GRAPH_MAX_WORKS"),
                "min_collaborations": env.get("SCHOLARLY_GRAPH_MIN_COLLABS", 1),
            },
            "providers": {
                "openalex": {
                    "mailto": env.get("OPENALEX_MAILTO", mailto),
                    "max_per_page": env.get("OPENALEX_MAX_PER_PAGE", 200),
                },
                "s2": {
                    "api_key": env.get("S2_API_KEY"),
                    "max_per_page": env.get("S2_MAX_PER_PAGE", 100),
                },
                "crossref": {
                    "mailto": env.get("CROSSREF_MAILTO", mailto),
                    "max_rows": env.get("CROSSREF_MAX_ROWS", 100),
                },
            },
        })
