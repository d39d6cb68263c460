from .base import ScholarlyDataSource
from .paginators import (
    Paginator, HttpPaginator, ListPaginator, OpenAlexPaginator,
    CrossrefPaginator, S2Paginator, Mapped, single
)
from .openalex import OpenAlexDataSource
from .semantic_scholar import SemanticScholarDataSource
from .crossref import CrossrefDataSource
