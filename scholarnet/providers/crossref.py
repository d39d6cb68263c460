"""
crossref adapter - work metadata keyed by doi.
https://api.crossref.org/swagger-ui/index.html

crossref has no author entity and no outgoing-reference listing, so
author search expands matching works into their contributors and
list_references is always empty.
"""

import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional
from urllib.parse import quote

from ..core import identity, normalizer
from ..core.client import ScholarlyClient
from ..core.models import Query, RateLimitState
from .base import ScholarlyDataSource, Record
from .paginators import CrossrefPaginator, ListPaginator, Paginator, Mapped, single

logger = logging.getLogger("scholarnet.crossref")

BASE_URL = "https://api.crossref.org"
DEFAULT_USER_AGENT = "scholarnet/0.1"

WORK_SELECT = {
    "id": ["DOI"],
    "title": ["title"],
    "abstract": ["abstract"],
    "year": ["issued"],
    "publication_date": ["issued"],
    "venue": ["container-title", "type"],
    "external_ids": ["DOI", "ISBN", "ISSN"],
    "counts": ["is-referenced-by-count", "references-count"],
    "authors": ["author"],
    "language": ["language"],
    "url": ["URL"],
}


def _select(fields: List[str]) -> Optional[str]:
    selected: List[str] = []
    for name in fields or list(WORK_SELECT):
        for column in WORK_SELECT.get(name, []):
            if column not in selected:
                selected.append(column)
    return ",".join(selected) or None


def _doi(value: str) -> Optional[str]:
    value = value.strip()
    if value.lower().startswith("crossref:"):
        value = value[len("crossref:"):]
    return identity.normalize_doi(value)


def year_filters(value: str) -> List[str]:
    """'2020' -> both bounds; '2018-2020', '2018-' and '-2020' -> the given bounds."""
    value = value.strip()
    if not value:
        return []
    if "-" not in value:
        return [f"from-pub-date:{value}", f"until-pub-date:{value}"]
    start, end = (part.strip() for part in value.split("-", 1))
    filters = []
    if start:
        filters.append(f"from-pub-date:{start}")
    if end:
        filters.append(f"until-pub-date:{end}")
    return filters


def _author_key(record: Dict[str, Any]) -> str:
    return f"{record.get('id') or ''}|{record.get('name') or ''}"


class CrossrefDataSource(ScholarlyDataSource):
    """
    crossref rest api adapter.
    cursor pagination under message.next-cursor; polite pool via mailto.
    """

    def __init__(
        self,
        client: ScholarlyClient,
        mailto: Optional[str] = None,
        max_rows: int = 100,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        super().__init__(client)
        self.max_rows = max_rows
        self.mailto = mailto.strip() if mailto and mailto.strip() else None

        self.headers = {"Accept": "application/json", "User-Agent": user_agent}
        self.base_params: Dict[str, Any] = {}
        if self.mailto:
            self.base_params["mailto"] = self.mailto
            self.headers["User-Agent"] = f"{user_agent} (mailto:{self.mailto})"

    @property
    def name(self) -> str:
        return "crossref"

    # =========================================================================
    # works
    # =========================================================================

    def search_works(self, query: Query) -> Paginator:
        params = self._list_params(query)
        params.update(sort="created", order="desc")
        if query.q:
            params["query"] = query.q
        if query.offset is not None:
            params["offset"] = query.offset

        filters = self._work_filters(query)
        if filters:
            params["filter"] = ",".join(filters)

        select = _select(query.fields)
        if select:
            params["select"] = select

        params.update(query.raw)
        return self._paginate(params, single(self._work))

    def get_work_by_id(self, work_id: str) -> Optional[Record]:
        return self.get_work_by_doi(work_id)

    def get_work_by_doi(self, doi: str) -> Optional[Record]:
        normalized = _doi(doi)
        if normalized is None:
            return None
        return self._lookup("doi", normalized, self._fetch_work_by_doi)

    def _fetch_work_by_doi(self, doi: str) -> Optional[Record]:
        payload = self.client.get(
            f"{BASE_URL}/works/{quote(doi, safe='')}", dict(self.base_params), self.headers
        )
        message = payload.get("message") if isinstance(payload, dict) else None
        return self._work(message) if isinstance(message, dict) else None

    def _fetch_work_by_arxiv(self, arxiv_id: str) -> Optional[Record]:
        item = self._first_by_filter(f"arxiv:{arxiv_id}")
        return self._work(item) if item else None

    def _fetch_work_by_pubmed(self, pmid: str) -> Optional[Record]:
        item = self._first_by_filter(f"pubmed:{pmid}")
        return self._work(item) if item else None

    def list_citations(self, work_id: str, query: Query) -> Paginator:
        doi = _doi(work_id)
        if doi is None:
            return ListPaginator()

        params = self._list_params(query)
        params.update(filter=f"reference:{doi}", sort="created", order="desc")
        select = _select(query.fields)
        if select:
            params["select"] = select
        return self._paginate(params, single(self._work))

    def list_references(self, work_id: str, query: Query) -> Paginator:
        return ListPaginator()

    def batch_works_by_ids(self, ids: Iterable[str], query: Query) -> Iterator[Record]:
        # no batch endpoint: one lookup per doi
        for work_id in ids:
            record = self.get_work_by_id(str(work_id))
            if record is not None:
                yield record

    # =========================================================================
    # authors
    # =========================================================================

    def search_authors(self, query: Query) -> Paginator:
        params = self._list_params(query)
        params["select"] = "author,DOI"
        if query.q:
            params["query.author"] = query.q
        params.update(query.raw)

        def expand(item):
            contributors = item.get("author") if isinstance(item, dict) else None
            if not isinstance(contributors, list):
                return Mapped.none()
            authors = []
            for raw in contributors:
                if not isinstance(raw, dict):
                    continue
                record = normalizer.author(raw, "crossref")
                if record.get("id") or record.get("name"):
                    authors.append(record)
            return Mapped.many(authors)

        return self._paginate(params, expand, dedupe_key=_author_key)

    def get_author_by_id(self, author_id: str) -> Optional[Record]:
        # only orcid-identified contributors can be looked up
        value = author_id.strip()
        if value.lower().startswith("orcid:"):
            return self.get_author_by_orcid(value[len("orcid:"):])
        return None

    def _fetch_author_by_orcid(self, orcid: str) -> Optional[Record]:
        item = self._first_by_filter(f"orcid:{orcid}")
        if not item:
            return None
        for raw in item.get("author") or []:
            if isinstance(raw, dict) and identity.normalize_orcid(str(raw.get("ORCID") or "")) == orcid:
                return normalizer.author(raw, "crossref")
        return None

    def batch_authors_by_ids(self, ids: Iterable[str], query: Query) -> Iterator[Record]:
        for author_id in ids:
            record = self.get_author_by_id(str(author_id))
            if record is not None:
                yield record

    # =========================================================================
    # status
    # =========================================================================

    def health(self) -> bool:
        try:
            self.client.get(f"{BASE_URL}/works", {**self.base_params, "rows": 0}, self.headers, "metadata")
            return True
        except Exception as e:
            self.client.log("crossref health check failed", error=str(e))
            return False

    def rate_limit_state(self) -> RateLimitState:
        return RateLimitState.from_headers(self.client.last_response_headers, "x-rate-limit-")

    # =========================================================================
    # helpers
    # =========================================================================

    def _list_params(self, query: Query) -> Dict[str, Any]:
        return {
            **self.base_params,
            "rows": min(query.limit, self.max_rows),
            "cursor": query.cursor or "*",
        }

    def _paginate(self, params: Dict[str, Any], mapper, dedupe_key=None) -> CrossrefPaginator:
        url = f"{BASE_URL}/works"
        payload = self.client.get(url, params, self.headers, "search")
        follow = {k: v for k, v in params.items() if k != "cursor"}
        return CrossrefPaginator(
            self.client, url, follow, mapper, payload, self.headers, dedupe_key=dedupe_key
        )

    def _first_by_filter(self, filter_value: str) -> Optional[Dict[str, Any]]:
        payload = self.client.get(
            f"{BASE_URL}/works",
            {**self.base_params, "filter": filter_value, "rows": 1},
            self.headers,
        )
        message = payload.get("message") if isinstance(payload, dict) else None
        items = message.get("items") if isinstance(message, dict) else None
        if not isinstance(items, list) or not items or not isinstance(items[0], dict):
            return None
        return items[0]

    def _work_filters(self, query: Query) -> List[str]:
        filters = []
        if query.year:
            filters.extend(year_filters(query.year))
        if query.open_access:
            filters.append("has-license:true")
        venues = [v[len("crossref:"):] if v.startswith("crossref:") else v for v in query.venue_ids]
        if venues:
            filters.append("container-title:" + "|".join(venues))
        return filters

    def _work(self, payload: Dict[str, Any]) -> Record:
        return normalizer.work(payload, "crossref")
