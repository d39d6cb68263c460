"""
request and result models shared by the client, paginators and adapters.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, List, Dict, Any, Mapping


@dataclass(frozen=True)
class Query:
    """
    provider-agnostic search / listing request.

    immutable: use replace() or without_pagination() to derive variants.
    values are normalized on construction and invalid ones raise ValueError.
    """
    q: Optional[str] = None
    year: Optional[str] = None             # "2020", "2018-2021", "2018-"
    open_access: Optional[bool] = None
    min_citations: Optional[int] = None
    max_citations: Optional[int] = None
    venue_ids: List[str] = field(default_factory=list)
    fields: List[str] = field(default_factory=list)
    limit: int = 25
    cursor: Optional[str] = None
    offset: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        q = self.q.strip() if isinstance(self.q, str) else self.q
        object.__setattr__(self, "q", q or None)

        if self.year is not None:
            year = str(self.year).strip()
            if not year:
                raise ValueError("year must not be empty")
            object.__setattr__(self, "year", year)

        if self.limit < 1:
            raise ValueError(f"limit must be >= 1, got {self.limit}")
        if self.offset is not None and self.offset < 0:
            raise ValueError(f"offset must be >= 0, got {self.offset}")
        if self.min_citations is not None and self.min_citations < 0:
            raise ValueError("min_citations must be >= 0")
        if self.max_citations is not None and self.max_citations < 0:
            raise ValueError("max_citations must be >= 0")

        cursor = self.cursor.strip() if isinstance(self.cursor, str) else self.cursor
        object.__setattr__(self, "cursor", cursor or None)

        object.__setattr__(
            self, "venue_ids",
            [str(v).strip() for v in self.venue_ids if str(v).strip()],
        )

        seen = []
        for name in self.fields:
            name = str(name).strip().lower()
            if name and name not in seen:
                seen.append(name)
        object.__setattr__(self, "fields", seen)
        object.__setattr__(self, "raw", dict(self.raw))

    def replace(self, **changes) -> "Query":
        """copy with some values changed (re-validated)."""
        return replace(self, **changes)

    def without_pagination(self) -> "Query":
        return replace(self, cursor=None, offset=None)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Query":
        aliases = {
            "openAccess": "open_access",
            "minCitations": "min_citations",
            "maxCitations": "max_citations",
            "venueIds": "venue_ids",
        }
        known = set(cls.__dataclass_fields__)
        kwargs = {}
        for key, value in data.items():
            key = aliases.get(key, key)
            if key in known and value is not None:
                kwargs[key] = value
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "q": self.q,
            "year": self.year,
            "open_access": self.open_access,
            "min_citations": self.min_citations,
            "max_citations": self.max_citations,
            "venue_ids": list(self.venue_ids),
            "fields": list(self.fields),
            "limit": self.limit,
            "cursor": self.cursor,
            "offset": self.offset,
            "raw": dict(self.raw),
        }


@dataclass
class Page:
    """one page of mapped records plus the continuation token."""
    items: List[Dict[str, Any]] = field(default_factory=list)
    next_cursor: Optional[str] = None

    @property
    def is_last(self) -> bool:
        return not self.next_cursor

    def to_dict(self) -> Dict[str, Any]:
        return {"items": self.items, "next_cursor": self.next_cursor}


def _as_int(value) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
        if value is None:
            return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


@dataclass
class RateLimitState:
    """quota info from the last response headers of a provider."""
    remaining: Optional[int] = None
    limit: Optional[int] = None
    reset: Optional[int] = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, Any], prefix: str = "x-ratelimit-") -> "RateLimitState":
        """headers are the lower-cased last-response headers of the client."""
        return cls(
            remaining=_as_int(headers.get(prefix + "remaining")),
            limit=_as_int(headers.get(prefix + "limit")),
            reset=_as_int(headers.get(prefix + "reset")),
        )

    def to_dict(self) -> Dict[str, Optional[int]]:
        return {"remaining": self.remaining, "limit": self.limit, "reset": self.reset}
