"""
pagination over provider list endpoints.

three continuation styles are covered:
  - openalex: opaque cursor at meta.next_cursor, sent back as ?cursor=
  - crossref: opaque cursor at message.next-cursor, sent back as ?cursor=
  - semantic scholar: "next" offset (number or string), sent back as ?offset=

iteration is lazy and forward-only. a token that was already followed
ends the walk, so a provider repeating a cursor can't loop us forever.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from ..core.client import ScholarlyClient
from ..core.models import Page

logger = logging.getLogger("scholarnet.paginator")


class Mapped:
    """
    result of mapping one raw item: nothing, one record, or several.
    """

    __slots__ = ("records",)

    def __init__(self, records: Tuple[Dict[str, Any], ...] = ()):
        self.records = records

    @classmethod
    def none(cls) -> "Mapped":
        return cls(())

    @classmethod
    def one(cls, record: Dict[str, Any]) -> "Mapped":
        return cls((record,))

    @classmethod
    def many(cls, records: List[Dict[str, Any]]) -> "Mapped":
        return cls(tuple(records))

    def __iter__(self):
        return iter(self.records)

    def __len__(self):
        return len(self.records)

    def __repr__(self):
        return f"Mapped({list(self.records)!r})"


Mapper = Callable[[Any], Mapped]


def single(fn: Callable[[Any], Optional[Dict[str, Any]]]) -> Mapper:
    """lift a raw -> record-or-None function into a mapper."""
    def mapper(raw):
        record = fn(raw)
        return Mapped.none() if record is None else Mapped.one(record)
    return mapper


class Paginator(ABC):
    """iterable over mapped records of a (possibly multi-page) listing."""

    @abstractmethod
    def page(self) -> Page:
        """current page; does not advance."""

    @abstractmethod
    def __iter__(self) -> Iterator[Dict[str, Any]]:
        """all records across pages, fetching lazily."""

    def items(self) -> List[Dict[str, Any]]:
        return self.page().items


class ListPaginator(Paginator):
    """single in-memory page. used for empty results and unsupported listings."""

    def __init__(self, items: Optional[List[Dict[str, Any]]] = None, next_cursor: Optional[str] = None):
        self._items = list(items or [])
        self._next_cursor = next_cursor

    def page(self) -> Page:
        return Page(items=list(self._items), next_cursor=self._next_cursor)

    def __iter__(self):
        return iter(list(self._items))


class HttpPaginator(Paginator):
    """
    shared page-walking engine; subclasses say where records and the
    continuation token live and how the next request is parameterized.
    """

    def __init__(
        self,
        client: ScholarlyClient,
        url: str,
        params: Dict[str, Any],
        mapper: Mapper,
        payload: Any,
        headers: Optional[Dict[str, str]] = None,
        dedupe_key: Optional[Callable[[Dict[str, Any]], str]] = None,
    ):
        self.client = client
        self.url = url
        self.params = dict(params)
        self.mapper = mapper
        self.payload = payload if isinstance(payload, dict) else {}
        self.headers = dict(headers or {})
        self.dedupe_key = dedupe_key

    @abstractmethod
    def _raw_items(self, payload: Dict[str, Any]) -> Any:
        """raw item list from a page payload."""

    @abstractmethod
    def _token(self, payload: Dict[str, Any]) -> Any:
        """continuation token, or None when this is the last page."""

    @abstractmethod
    def _next_params(self, params: Dict[str, Any], token: Any) -> Dict[str, Any]:
        """params for the request following `token`."""

    def _valid_token(self, token: Any) -> Optional[str]:
        if isinstance(token, bool) or token is None:
            return None
        if isinstance(token, (str, int)):
            token = str(token)
            return token or None
        return None

    def _map(self, payload: Dict[str, Any], seen: Optional[set] = None) -> List[Dict[str, Any]]:
        raw_items = self._raw_items(payload)
        if not isinstance(raw_items, list):
            return []
        seen = set() if seen is None else seen
        items = []
        for raw in raw_items:
            for record in self.mapper(raw):
                if not isinstance(record, dict):
                    continue
                if self.dedupe_key is not None:
                    key = self.dedupe_key(record)
                    if key in seen:
                        continue
                    seen.add(key)
                items.append(record)
        return items

    def page(self) -> Page:
        return Page(
            items=self._map(self.payload),
            next_cursor=self._valid_token(self._token(self.payload)),
        )

    def __iter__(self):
        payload = self.payload
        params = dict(self.params)
        visited = set()
        seen: set = set()

        while True:
            for item in self._map(payload, seen):
                yield item

            token = self._token(payload)
            key = self._valid_token(token)
            if key is None:
                break
            if key in visited:
                logger.debug(f"{self.url}: cursor {key} repeated, stopping")
                break

            visited.add(key)
            params = self._next_params(params, token)
            payload = self.client.get(self.url, params, self.headers, "search")
            if not isinstance(payload, dict):
                break


class OpenAlexPaginator(HttpPaginator):
    """cursor under meta.next_cursor."""

    def __init__(self, client, url, params, mapper, payload, headers=None, result_key: str = "results"):
        super().__init__(client, url, params, mapper, payload, headers)
        self.result_key = result_key

    def _raw_items(self, payload):
        return payload.get(self.result_key)

    def _token(self, payload):
        meta = payload.get("meta")
        cursor = meta.get("next_cursor") if isinstance(meta, dict) else None
        return cursor if isinstance(cursor, str) else None

    def _next_params(self, params, token):
        return {**params, "cursor": token}


class CrossrefPaginator(HttpPaginator):
    """cursor under message.next-cursor; items under message.items."""

    def _message(self, payload) -> Dict[str, Any]:
        message = payload.get("message")
        return message if isinstance(message, dict) else {}

    def _raw_items(self, payload):
        return self._message(payload).get("items")

    def _token(self, payload):
        cursor = self._message(payload).get("next-cursor")
        return cursor if isinstance(cursor, str) else None

    def _next_params(self, params, token):
        return {**params, "cursor": token}


class S2Paginator(HttpPaginator):
    """numeric (or string) offset under "next"."""

    def __init__(self, client, url, params, mapper, payload, headers=None, data_key: str = "data"):
        super().__init__(client, url, params, mapper, payload, headers)
        self.data_key = data_key

    def _raw_items(self, payload):
        return payload.get(self.data_key)

    def _token(self, payload):
        return payload.get("next")

    def _next_params(self, params, token):
        if isinstance(token, str) and token.strip().isdigit():
            token = int(token)
        return {**params, "offset": token}
