"""
semantic scholar adapter - graph api v1.
https://api.semanticscholar.org/api-docs/graph
"""

import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional
from urllib.parse import quote

from ..core import normalizer
from ..core.client import ScholarlyClient
from ..core.errors import NotFoundError, ScholarlyError
from ..core.models import Query, RateLimitState
from .base import ScholarlyDataSource, Record, chunked
from .paginators import S2Paginator, ListPaginator, Paginator, Mapped, single

logger = logging.getLogger("scholarnet.semantic_scholar")

BASE_URL = "https://api.semanticscholar.org/graph/v1"
DEFAULT_USER_AGENT = "scholarnet/0.1"
DEFAULT_PAPER_FIELDS = (
    "paperId,title,abstract,year,publicationDate,venue,externalIds,authors,"
    "citationCount,referenceCount,openAccessPdf,url,tldr,isOpenAccess"
)
DEFAULT_AUTHOR_FIELDS = "authorId,name,affiliations,paperCount,citationCount,hIndex,url"
PAPER_BATCH_LIMIT = 500
AUTHOR_BATCH_LIMIT = 500

PAPER_FIELDS = {
    "id": ["paperId"],
    "title": ["title"],
    "abstract": ["abstract"],
    "year": ["year"],
    "publication_date": ["publicationDate"],
    "venue": ["venue", "publicationVenue"],
    "external_ids": ["externalIds"],
    "counts": ["citationCount", "referenceCount"],
    "authors": ["authors"],
    "is_oa": ["isOpenAccess", "openAccessPdf"],
    "oa_url": ["openAccessPdf"],
    "url": ["url"],
    "tldr": ["tldr"],
}

AUTHOR_FIELDS = {
    "id": ["authorId"],
    "name": ["name"],
    "counts": ["paperCount", "citationCount", "hIndex"],
    "url": ["url"],
    "affiliations": ["affiliations"],
}


def _fields(mapping: Dict[str, List[str]], requested: List[str], default: str, key: str) -> str:
    if not requested:
        return default
    selected = [key]
    for name in requested:
        for column in mapping.get(name, []):
            if column not in selected:
                selected.append(column)
    return ",".join(selected)


def _strip_id(value: str) -> Optional[str]:
    value = value.strip()
    if value.lower().startswith("s2:"):
        value = value[3:]
    return value or None


class SemanticScholarDataSource(ScholarlyDataSource):
    """
    semantic scholar adapter.
    offset pagination; optional api key sent as x-api-key.
    """

    def __init__(
        self,
        client: ScholarlyClient,
        api_key: Optional[str] = None,
        max_per_page: int = 100,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        super().__init__(client)
        self.max_per_page = max_per_page
        self.headers = {"Accept": "application/json", "User-Agent": user_agent}
        if api_key and api_key.strip():
            self.headers["x-api-key"] = api_key.strip()

    @property
    def name(self) -> str:
        return "s2"

    # =========================================================================
    # works
    # =========================================================================

    def search_works(self, query: Query) -> Paginator:
        params = self._list_params(query, _fields(PAPER_FIELDS, query.fields, DEFAULT_PAPER_FIELDS, "paperId"))
        if query.q:
            params["query"] = query.q
        if query.year:
            params["year"] = query.year
        if query.min_citations is not None:
            params["minCitationCount"] = query.min_citations
        params.update(query.raw)
        return self._paginate(f"{BASE_URL}/paper/search", params, single(self._work))

    def get_work_by_id(self, work_id: str) -> Optional[Record]:
        paper_id = _strip_id(work_id)
        if paper_id is None:
            return None
        try:
            return self._get_paper(quote(paper_id, safe=":"))
        except NotFoundError:
            logger.debug(f"paper {paper_id} not found")
            return None

    def _fetch_work_by_doi(self, doi: str) -> Optional[Record]:
        return self._get_paper(f"DOI:{quote(doi, safe='/')}")

    def _fetch_work_by_arxiv(self, arxiv_id: str) -> Optional[Record]:
        return self._get_paper(f"ARXIV:{quote(arxiv_id.upper(), safe='/')}")

    def _fetch_work_by_pubmed(self, pmid: str) -> Optional[Record]:
        return self._get_paper(f"PMID:{pmid}")

    def _get_paper(self, path_id: str) -> Record:
        payload = self.client.get(
            f"{BASE_URL}/paper/{path_id}",
            {"fields": DEFAULT_PAPER_FIELDS},
            self.headers,
        )
        return self._work(payload)

    def list_citations(self, work_id: str, query: Query) -> Paginator:
        return self._paper_listing(work_id, "citations", "citingPaper", query)

    def list_references(self, work_id: str, query: Query) -> Paginator:
        return self._paper_listing(work_id, "references", "citedPaper", query)

    def _paper_listing(self, work_id: str, kind: str, item_key: str, query: Query) -> Paginator:
        paper_id = _strip_id(work_id)
        if paper_id is None:
            return ListPaginator()

        def mapper(item):
            inner = item.get(item_key) if isinstance(item, dict) else None
            if not isinstance(inner, dict) or not inner.get("paperId"):
                return Mapped.none()
            return Mapped.one(self._work(inner))

        params = self._list_params(query, _fields(PAPER_FIELDS, query.fields, DEFAULT_PAPER_FIELDS, "paperId"))
        url = f"{BASE_URL}/paper/{quote(paper_id, safe=':')}/{kind}"
        return self._paginate(url, params, mapper)

    def batch_works_by_ids(self, ids: Iterable[str], query: Query) -> Iterator[Record]:
        fields = _fields(PAPER_FIELDS, query.fields, DEFAULT_PAPER_FIELDS, "paperId")
        cleaned = (i for i in map(_strip_id, ids) if i)
        for batch in chunked(cleaned, PAPER_BATCH_LIMIT):
            yield from self._send_batch("paper", batch, fields, self._work)

    # =========================================================================
    # authors
    # =========================================================================

    def search_authors(self, query: Query) -> Paginator:
        params = self._list_params(query, _fields(AUTHOR_FIELDS, query.fields, DEFAULT_AUTHOR_FIELDS, "authorId"))
        if query.q:
            params["query"] = query.q
        params.update(query.raw)
        return self._paginate(f"{BASE_URL}/author/search", params, single(self._author))

    def get_author_by_id(self, author_id: str) -> Optional[Record]:
        identifier = _strip_id(author_id)
        if identifier is None:
            return None
        try:
            payload = self.client.get(
                f"{BASE_URL}/author/{quote(identifier, safe=':')}",
                {"fields": DEFAULT_AUTHOR_FIELDS},
                self.headers,
            )
        except NotFoundError:
            logger.debug(f"author {identifier} not found")
            return None
        return self._author(payload)

    def _fetch_author_by_orcid(self, orcid: str) -> Optional[Record]:
        payload = self.client.get(
            f"{BASE_URL}/author/ORCID:{orcid}",
            {"fields": DEFAULT_AUTHOR_FIELDS},
            self.headers,
        )
        return self._author(payload)

    def batch_authors_by_ids(self, ids: Iterable[str], query: Query) -> Iterator[Record]:
        fields = _fields(AUTHOR_FIELDS, query.fields, DEFAULT_AUTHOR_FIELDS, "authorId")
        cleaned = (i for i in map(_strip_id, ids) if i)
        for batch in chunked(cleaned, AUTHOR_BATCH_LIMIT):
            yield from self._send_batch("author", batch, fields, self._author)

    # =========================================================================
    # status
    # =========================================================================

    def health(self) -> bool:
        try:
            self.client.get(
                f"{BASE_URL}/paper/search",
                {"query": "the", "limit": 1, "fields": "paperId"},
                self.headers,
                "metadata",
            )
            return True
        except Exception as e:
            self.client.log("s2 health check failed", error=str(e))
            return False

    def rate_limit_state(self) -> RateLimitState:
        return RateLimitState.from_headers(self.client.last_response_headers, "x-ratelimit-")

    # =========================================================================
    # helpers
    # =========================================================================

    def _offset(self, query: Query) -> int:
        if query.cursor and query.cursor.isdigit():
            return int(query.cursor)
        if query.offset is not None:
            return query.offset
        return 0

    def _list_params(self, query: Query, fields: str) -> Dict[str, Any]:
        return {
            "limit": min(query.limit, self.max_per_page),
            "offset": self._offset(query),
            "fields": fields,
        }

    def _paginate(self, url: str, params: Dict[str, Any], mapper) -> S2Paginator:
        payload = self.client.get(url, params, self.headers, "search")
        return S2Paginator(self.client, url, params, mapper, payload, self.headers)

    def _send_batch(self, kind: str, ids: List[str], fields: str, normalize) -> Iterator[Record]:
        try:
            response = self.client.post(
                f"{BASE_URL}/{kind}/batch",
                {"ids": ids},
                {"fields": fields},
                self.headers,
                "batch",
            )
        except ScholarlyError as e:
            logger.warning(f"s2 {kind} batch of {len(ids)} failed: {e}")
            return

        if not isinstance(response, list):
            return
        for item in response:
            # unknown ids come back as null entries
            if isinstance(item, dict):
                yield normalize(item)

    def _work(self, payload: Dict[str, Any]) -> Record:
        return normalizer.work(payload, "s2")

    def _author(self, payload: Dict[str, Any]) -> Record:
        return normalizer.author(payload, "s2")
