"""
openalex adapter - works, authors, citations and references.
https://docs.openalex.org/
"""

import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional
from urllib.parse import quote

from ..core import normalizer
from ..core.client import ScholarlyClient
from ..core.errors import NotFoundError
from ..core.models import Query, RateLimitState
from .base import ScholarlyDataSource, Record, chunked
from .paginators import OpenAlexPaginator, ListPaginator, Paginator, Mapped, single

logger = logging.getLogger("scholarnet.openalex")

BASE_URL = "https://api.openalex.org"
DEFAULT_USER_AGENT = "scholarnet/0.1"
WORK_BATCH_SIZE = 50
AUTHOR_BATCH_SIZE = 50

# common record field -> openalex select fields
WORK_SELECT = {
    "id": ["id"],
    "title": ["display_name"],
    "abstract": ["abstract_inverted_index"],
    "year": ["publication_year"],
    "publication_date": ["publication_date"],
    "venue": ["primary_location"],
    "external_ids": ["ids"],
    "is_oa": ["open_access"],
    "counts": ["cited_by_count", "referenced_works_count"],
    "authors": ["authorships"],
    "language": ["language"],
    "type": ["type"],
    "url": ["primary_location"],
    "references": ["referenced_works"],
}

AUTHOR_SELECT = {
    "id": ["id"],
    "name": ["display_name"],
    "orcid": ["orcid"],
    "counts": ["works_count", "cited_by_count", "summary_stats"],
    "affiliations": ["last_known_institution"],
}


def _select(mapping: Dict[str, List[str]], fields: List[str]) -> Optional[str]:
    requested = fields or list(mapping)
    selected: List[str] = []
    for name in requested:
        for column in mapping.get(name, []):
            if column not in selected:
                selected.append(column)
    return ",".join(selected) or None


def _strip_id(value: str) -> Optional[str]:
    value = value.strip()
    for prefix in ("https://openalex.org/", "openalex:"):
        if value.lower().startswith(prefix):
            value = value[len(prefix):]
            break
    return value or None


def _venue_filter_id(value: str) -> Optional[str]:
    value = value.strip()
    if value.startswith("https://openalex.org/"):
        return value
    value = _strip_id(value) or ""
    if value[:1] in ("V", "S"):
        return f"https://openalex.org/{value}"
    return None


class OpenAlexDataSource(ScholarlyDataSource):
    """
    openalex.org api adapter.
    cursor pagination, batch lookups via POST, polite pool via mailto.
    """

    def __init__(
        self,
        client: ScholarlyClient,
        mailto: Optional[str] = None,
        max_per_page: int = 200,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        super().__init__(client)
        self.max_per_page = max_per_page
        self.mailto = mailto.strip() if mailto and mailto.strip() else None

        self.headers = {"Accept": "application/json", "User-Agent": user_agent}
        self.base_params: Dict[str, Any] = {}
        if self.mailto:
            self.base_params["mailto"] = self.mailto
            self.headers["User-Agent"] = f"{user_agent} (mailto:{self.mailto})"

    @property
    def name(self) -> str:
        return "openalex"

    # =========================================================================
    # works
    # =========================================================================

    def search_works(self, query: Query) -> Paginator:
        params = self._list_params(query)
        if query.q:
            params["search"] = query.q

        filters = self._work_filters(query)
        if filters:
            params["filter"] = ",".join(filters)

        select = _select(WORK_SELECT, query.fields)
        if select:
            params["select"] = select

        if query.offset is not None:
            params["page"] = max(1, query.offset)

        params.update(query.raw)
        return self._paginate(f"{BASE_URL}/works", params, single(self._work))

    def get_work_by_id(self, work_id: str) -> Optional[Record]:
        identifier = _strip_id(work_id)
        if identifier is None:
            return None
        try:
            payload = self.client.get(
                f"{BASE_URL}/works/{quote(identifier, safe=':')}",
                self._detail_params(WORK_SELECT),
                self.headers,
            )
        except NotFoundError:
            logger.debug(f"work {identifier} not found")
            return None
        return self._work(payload)

    def _fetch_work_by_doi(self, doi: str) -> Optional[Record]:
        return self._fetch_external("doi", doi)

    def _fetch_work_by_arxiv(self, arxiv_id: str) -> Optional[Record]:
        return self._fetch_external("arxiv", arxiv_id)

    def _fetch_work_by_pubmed(self, pmid: str) -> Optional[Record]:
        return self._fetch_external("pmid", pmid)

    def _fetch_external(self, scheme: str, value: str) -> Optional[Record]:
        payload = self.client.get(
            f"{BASE_URL}/works/{scheme}:{quote(value, safe='')}",
            self._detail_params(WORK_SELECT),
            self.headers,
        )
        return self._work(payload)

    def list_citations(self, work_id: str, query: Query) -> Paginator:
        return self._work_listing(work_id, "citations", "citing_work", query)

    def list_references(self, work_id: str, query: Query) -> Paginator:
        return self._work_listing(work_id, "references", "referenced_work", query)

    def _work_listing(self, work_id: str, kind: str, item_key: str, query: Query) -> Paginator:
        identifier = _strip_id(work_id)
        if identifier is None:
            return ListPaginator()

        def mapper(item):
            inner = item.get(item_key) if isinstance(item, dict) else None
            return Mapped.one(self._work(inner)) if isinstance(inner, dict) else Mapped.none()

        url = f"{BASE_URL}/works/{quote(identifier, safe=':')}/{kind}"
        return self._paginate(url, self._list_params(query), mapper)

    def batch_works_by_ids(self, ids: Iterable[str], query: Query) -> Iterator[Record]:
        cleaned = (i for i in map(_strip_id, ids) if i)
        for batch in chunked(cleaned, WORK_BATCH_SIZE):
            yield from self._send_batch("works", batch, _select(WORK_SELECT, query.fields), self._work)

    # =========================================================================
    # authors
    # =========================================================================

    def search_authors(self, query: Query) -> Paginator:
        params = self._list_params(query)
        if query.q:
            params["search"] = query.q
        select = _select(AUTHOR_SELECT, query.fields)
        if select:
            params["select"] = select
        params.update(query.raw)
        return self._paginate(f"{BASE_URL}/authors", params, single(self._author))

    def get_author_by_id(self, author_id: str) -> Optional[Record]:
        identifier = _strip_id(author_id)
        if identifier is None:
            return None
        try:
            payload = self.client.get(
                f"{BASE_URL}/authors/{quote(identifier, safe=':')}",
                self._detail_params(AUTHOR_SELECT),
                self.headers,
            )
        except NotFoundError:
            logger.debug(f"author {identifier} not found")
            return None
        return self._author(payload)

    def _fetch_author_by_orcid(self, orcid: str) -> Optional[Record]:
        payload = self.client.get(
            f"{BASE_URL}/authors/orcid:{orcid}",
            self._detail_params(AUTHOR_SELECT),
            self.headers,
        )
        return self._author(payload)

    def batch_authors_by_ids(self, ids: Iterable[str], query: Query) -> Iterator[Record]:
        cleaned = (i for i in map(_strip_id, ids) if i)
        for batch in chunked(cleaned, AUTHOR_BATCH_SIZE):
            yield from self._send_batch("authors", batch, _select(AUTHOR_SELECT, query.fields), self._author)

    # =========================================================================
    # status
    # =========================================================================

    def health(self) -> bool:
        try:
            self.client.get(f"{BASE_URL}/status", dict(self.base_params), self.headers, "metadata")
            return True
        except Exception as e:
            self.client.log("openalex health check failed", error=str(e))
            return False

    def rate_limit_state(self) -> RateLimitState:
        return RateLimitState.from_headers(self.client.last_response_headers, "x-ratelimit-")

    # =========================================================================
    # helpers
    # =========================================================================

    def _list_params(self, query: Query) -> Dict[str, Any]:
        return {
            **self.base_params,
            "cursor": query.cursor or "*",
            "per-page": min(query.limit, self.max_per_page),
        }

    def _detail_params(self, mapping) -> Dict[str, Any]:
        params = dict(self.base_params)
        select = _select(mapping, [])
        if select:
            params["select"] = select
        return params

    def _paginate(self, url: str, params: Dict[str, Any], mapper) -> OpenAlexPaginator:
        payload = self.client.get(url, params, self.headers, "search")
        follow = {k: v for k, v in params.items() if k != "cursor"}
        return OpenAlexPaginator(self.client, url, follow, mapper, payload, self.headers)

    def _send_batch(self, kind: str, ids: List[str], select: Optional[str], normalize) -> Iterator[Record]:
        body: Dict[str, Any] = {"ids": [f"https://openalex.org/{i}" for i in ids]}
        if select:
            body["select"] = select
        response = self.client.post(
            f"{BASE_URL}/{kind}/batch", body, dict(self.base_params), self.headers, "batch"
        )
        results = response.get("results") if isinstance(response, dict) else None
        for item in results or []:
            if isinstance(item, dict):
                yield normalize(item)

    def _work_filters(self, query: Query) -> List[str]:
        filters = []
        if query.year:
            filters.append(f"publication_year:{query.year}")
        if query.open_access is not None:
            filters.append(f"is_oa:{'true' if query.open_access else 'false'}")
        if query.min_citations is not None:
            filters.append(f"cited_by_count:>{query.min_citations}")
        if query.max_citations is not None:
            filters.append(f"cited_by_count:<{query.max_citations}")
        venues = [v for v in map(_venue_filter_id, query.venue_ids) if v]
        if venues:
            filters.append("host_venue.id:" + "|".join(venues))
        return filters

    def _work(self, payload: Dict[str, Any]) -> Record:
        return normalizer.work(payload, "openalex")

    def _author(self, payload: Dict[str, Any]) -> Record:
        return normalizer.author(payload, "openalex")
