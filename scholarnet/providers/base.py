"""
base data source interface for scholarly metadata providers.
all adapters (openalex, semantic scholar, crossref) implement this.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Iterator, List, Optional, TypeVar

from ..core import identity
from ..core.client import ScholarlyClient
from ..core.errors import NotFoundError
from ..core.models import Query, RateLimitState
from .paginators import Paginator

Record = Dict[str, Any]
T = TypeVar("T")


def chunked(items: Iterable[T], size: int) -> Iterator[List[T]]:
    chunk: List[T] = []
    for item in items:
        chunk.append(item)
        if len(chunk) >= size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


class ScholarlyDataSource(ABC):
    """
    abstract base class for scholarly data sources.

    records returned by every method are normalized (see core.normalizer).
    lookups return None for unknown ids; listings return paginators.
    """

    def __init__(self, client: ScholarlyClient):
        self.client = client

    @property
    @abstractmethod
    def name(self) -> str:
        """provider name for logging."""
        pass

    # work methods

    @abstractmethod
    def search_works(self, query: Query) -> Paginator:
        pass

    @abstractmethod
    def get_work_by_id(self, work_id: str) -> Optional[Record]:
        pass

    @abstractmethod
    def list_citations(self, work_id: str, query: Query) -> Paginator:
        """works citing work_id."""
        pass

    @abstractmethod
    def list_references(self, work_id: str, query: Query) -> Paginator:
        """works cited by work_id."""
        pass

    @abstractmethod
    def batch_works_by_ids(self, ids: Iterable[str], query: Query) -> Iterator[Record]:
        pass

    # author methods

    @abstractmethod
    def search_authors(self, query: Query) -> Paginator:
        pass

    @abstractmethod
    def get_author_by_id(self, author_id: str) -> Optional[Record]:
        pass

    @abstractmethod
    def batch_authors_by_ids(self, ids: Iterable[str], query: Query) -> Iterator[Record]:
        pass

    # status

    @abstractmethod
    def health(self) -> bool:
        pass

    @abstractmethod
    def rate_limit_state(self) -> RateLimitState:
        pass

    # identifier lookups - normalize, then ask the provider

    def get_work_by_doi(self, doi: str) -> Optional[Record]:
        normalized = identity.normalize_doi(doi)
        if normalized is None:
            return None
        return self._lookup("doi", normalized, self._fetch_work_by_doi)

    def get_work_by_arxiv(self, arxiv_id: str) -> Optional[Record]:
        normalized = identity.normalize_arxiv(arxiv_id)
        if normalized is None:
            return None
        return self._lookup("arxiv", normalized, self._fetch_work_by_arxiv)

    def get_work_by_pubmed(self, pmid: str) -> Optional[Record]:
        normalized = identity.normalize_pmid(pmid)
        if normalized is None:
            return None
        return self._lookup("pmid", normalized, self._fetch_work_by_pubmed)

    def get_author_by_orcid(self, orcid: str) -> Optional[Record]:
        normalized = identity.normalize_orcid(orcid)
        if normalized is None:
            return None
        return self._lookup("orcid", normalized, self._fetch_author_by_orcid)

    def _lookup(self, kind: str, value: str, fetch) -> Optional[Record]:
        try:
            return fetch(value)
        except NotFoundError:
            self.client.log(f"{self.name}: nothing found by {kind}", **{kind: value})
            return None

    @abstractmethod
    def _fetch_work_by_doi(self, doi: str) -> Optional[Record]:
        pass

    @abstractmethod
    def _fetch_work_by_arxiv(self, arxiv_id: str) -> Optional[Record]:
        pass

    @abstractmethod
    def _fetch_work_by_pubmed(self, pmid: str) -> Optional[Record]:
        pass

    @abstractmethod
    def _fetch_author_by_orcid(self, orcid: str) -> Optional[Record]:
        pass
