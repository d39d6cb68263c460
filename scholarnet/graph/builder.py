"""
graph builder - citation and co-authorship graphs from a data source.

creates:
- citation graphs (works as nodes, directed citing -> cited edges)
- collaboration graphs (authors as nodes, weighted co-authorship edges)

usage:
    from scholarnet.graph import GraphBuilder

    builder = GraphBuilder(data_source, cache=cache)
    citations = builder.build_work_citation_graph(["openalex:W123"], Query(limit=50))
    print(builder.export_to_json(citations))

provider failures while crawling are logged and skipped; a partial graph
is returned rather than an error.
"""

import hashlib
import json
import logging
import time
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

import networkx as nx

from ..core.cache import CacheLayer
from ..core.config import GraphConfig
from ..core.models import Query
from ..providers.base import ScholarlyDataSource
from ..providers.paginators import Paginator
from . import export
from .algorithms import GraphAlgorithms

# query.raw keys that steer the collaboration build and are not sent to providers
GRAPH_KEYS = ("work_ids", "min_collaborations", "max_works")

ProgressFn = Callable[[int, Optional[int], str, Dict[str, Any]], None]


def resolve_work_id(work: Dict[str, Any]) -> Optional[str]:
    """record id, falling back to doi, s2 then openalex external ids."""
    work_id = work.get("id")
    if isinstance(work_id, str) and work_id.strip():
        return work_id.strip()

    external = work.get("external_ids")
    if isinstance(external, dict):
        for key in ("doi", "s2", "openalex"):
            value = external.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def _clean_ids(ids: Iterable[Any]) -> List[str]:
    """trimmed, non-empty, first occurrence wins."""
    seen: Dict[str, None] = {}
    for value in ids:
        if not isinstance(value, str):
            continue
        value = value.strip()
        if value:
            seen.setdefault(value, None)
    return list(seen)


def _as_int(value) -> int:
    """lenient int for query.raw values; anything unparseable is 0."""
    if isinstance(value, bool):
        return int(value)
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return 0


def _compact(attrs: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in attrs.items() if v is not None}


class GraphBuilder:
    """
    builds networkx graphs by crawling a ScholarlyDataSource.

    reference/citation listings are cached through the CacheLayer under
    the "metadata" ttl, so repeated builds over the same seeds are cheap.
    """

    def __init__(
        self,
        data_source: ScholarlyDataSource,
        cache: Optional[CacheLayer] = None,
        logger: Optional[logging.Logger] = None,
        algorithms: Optional[GraphAlgorithms] = None,
        config: Optional[GraphConfig] = None,
        sleeper: Callable[[float], None] = time.sleep,
    ):
        self.data_source = data_source
        self.cache = cache
        self.logger = logger or logging.getLogger("scholarnet.graph")
        self._algorithms = algorithms
        self.config = config or GraphConfig()
        self.sleeper = sleeper

    # =========================================================================
    # citation graph
    # =========================================================================

    def build_work_citation_graph(
        self,
        seed_ids: Iterable[str],
        query: Query,
        progress: Optional[ProgressFn] = None,
    ) -> nx.DiGraph:
        """
        directed graph around the seed works.

        edges point from the citing work to the cited one:
        seed -> each reference, each citing work -> seed.
        """
        graph = nx.DiGraph()
        ids = _clean_ids(seed_ids)
        if not ids:
            return graph

        works = self._collect_works(ids, query)
        for missing in ids:
            if missing in works:
                continue
            work = self._safe_get_work(missing)
            if work is not None:
                works[resolve_work_id(work) or missing] = work

        total = len(works)
        for index, work in enumerate(list(works.values()), start=1):
            work_id = resolve_work_id(work)
            if work_id is None:
                continue

            self._add_work_node(graph, work)

            for reference in self._fetch_listing("refs", work_id, query):
                reference_id = resolve_work_id(reference)
                if reference_id is None or reference_id == work_id:
                    continue
                self._add_work_node(graph, reference)
                self._add_or_increment_edge(graph, work_id, reference_id, type="citation")

            for citation in self._fetch_listing("cites", work_id, query):
                citation_id = resolve_work_id(citation)
                if citation_id is None or citation_id == work_id:
                    continue
                self._add_work_node(graph, citation)
                self._add_or_increment_edge(graph, citation_id, work_id, type="citation")

            self._maybe_throttle()

            if progress is not None:
                progress(index, total, work_id, {"type": "work"})

        self.logger.debug(
            f"citation graph: {graph.number_of_nodes()} nodes, {graph.number_of_edges()} edges"
        )
        return graph

    # =========================================================================
    # collaboration graph
    # =========================================================================

    def build_author_collaboration_graph(
        self,
        author_ids: Iterable[str],
        query: Query,
        progress: Optional[ProgressFn] = None,
    ) -> nx.Graph:
        """
        undirected co-authorship graph.

        query.raw may carry:
            work_ids            explicit source works (otherwise search_works(query))
            min_collaborations  edges below this weight are dropped
            max_works           stop after this many works with 2+ authors
        when author_ids are given, only pairs touching one of them count.
        """
        graph = nx.Graph()
        seeds = set(_clean_ids(author_ids))

        if seeds:
            for author in self._collect_authors(list(seeds), query):
                self._add_author_node(graph, author)
                # seeds may be un-namespaced; work authors carry provider ids
                seeds.add(author["id"])

        raw = query.raw
        threshold = max(1, _as_int(raw.get("min_collaborations")) or self.config.min_collaborations or 1)
        limit = _as_int(raw.get("max_works")) or self.config.max_works or 0

        weights: Dict[Tuple[str, str], int] = defaultdict(int)
        works_by_pair: Dict[Tuple[str, str], Dict[str, None]] = defaultdict(dict)
        processed = 0

        for work in self._source_works(query):
            work_id = resolve_work_id(work) or self._fallback_work_id(work)
            authors = work.get("authors")
            if not isinstance(authors, list) or not authors:
                continue

            participants: List[str] = []
            for author in authors:
                if not isinstance(author, dict):
                    continue
                author_id = author.get("id")
                if not isinstance(author_id, str) or not author_id.strip():
                    continue
                self._add_author_node(graph, author)
                if author_id.strip() not in participants:
                    participants.append(author_id.strip())

            if len(participants) < 2:
                continue

            for i, a in enumerate(participants):
                for b in participants[i + 1:]:
                    if seeds and a not in seeds and b not in seeds:
                        continue
                    pair = tuple(sorted([a, b]))
                    weights[pair] += 1
                    works_by_pair[pair].setdefault(work_id, None)

            processed += 1
            if limit > 0 and processed >= limit:
                break

            self._maybe_throttle()

            if progress is not None:
                progress(processed, limit if limit > 0 else None, work_id, {"type": "author"})

        for (a, b), weight in weights.items():
            if weight < threshold:
                continue
            graph.add_edge(a, b, weight=weight, works=list(works_by_pair[(a, b)]))

        self.logger.debug(
            f"collaboration graph: {graph.number_of_nodes()} authors, {graph.number_of_edges()} edges"
        )
        return graph

    # =========================================================================
    # export / algorithms
    # =========================================================================

    def export_to_array(self, graph: nx.Graph) -> Dict[str, Any]:
        return export.to_array(graph)

    def export_to_json(self, graph: nx.Graph) -> str:
        return export.to_json(graph)

    def algorithms(self) -> GraphAlgorithms:
        if self._algorithms is None:
            self._algorithms = GraphAlgorithms()
        return self._algorithms

    # =========================================================================
    # crawling helpers
    # =========================================================================

    def _collect_works(self, ids: List[str], query: Query) -> Dict[str, Dict[str, Any]]:
        works: Dict[str, Dict[str, Any]] = {}
        try:
            for work in self.data_source.batch_works_by_ids(ids, query.replace()):
                if not isinstance(work, dict):
                    continue
                work_id = resolve_work_id(work)
                if work_id is not None:
                    works[work_id] = work
        except Exception as e:
            self.logger.warning(f"batch work retrieval failed: {e}", extra={"error": str(e)})
        return works

    def _collect_authors(self, ids: List[str], query: Query) -> List[Dict[str, Any]]:
        authors: Dict[str, Dict[str, Any]] = {}
        try:
            for author in self.data_source.batch_authors_by_ids(ids, query.replace()):
                if isinstance(author, dict) and author.get("id"):
                    authors[author["id"]] = author
        except Exception as e:
            self.logger.warning(f"batch author retrieval failed: {e}", extra={"error": str(e)})
        return list(authors.values())

    def _safe_get_work(self, work_id: str) -> Optional[Dict[str, Any]]:
        try:
            work = self.data_source.get_work_by_id(work_id)
        except Exception as e:
            self.logger.warning(
                f"failed to fetch work {work_id}: {e}",
                extra={"id": work_id, "error": str(e)},
            )
            return None
        if not isinstance(work, dict):
            return None
        if not work.get("id"):
            work = {**work, "id": work_id}
        return work

    def _fetch_listing(self, kind: str, work_id: str, query: Query) -> List[Dict[str, Any]]:
        """references ("refs") or citations ("cites") of a work, deduped by id."""
        listing_query = query.without_pagination()

        def resolve() -> List[Dict[str, Any]]:
            results: Dict[str, Dict[str, Any]] = {}
            try:
                if kind == "refs":
                    paginator = self.data_source.list_references(work_id, listing_query)
                else:
                    paginator = self.data_source.list_citations(work_id, listing_query)
                self._collect_from_paginator(paginator, results)
            except Exception as e:
                label = "references" if kind == "refs" else "citations"
                self.logger.warning(
                    f"failed to list {label} for {work_id}: {e}",
                    extra={"id": work_id, "error": str(e)},
                )
            return list(results.values())

        if self.cache is None:
            return resolve()
        return self.cache.remember(self._cache_key(f"{kind}:{work_id}", query), resolve, "metadata")

    def _collect_from_paginator(self, paginator: Paginator, bucket: Dict[str, Dict[str, Any]]):
        for item in paginator:
            if not isinstance(item, dict):
                continue
            item_id = resolve_work_id(item)
            if item_id is not None:
                bucket[item_id] = item

    def _source_works(self, query: Query) -> Iterator[Dict[str, Any]]:
        work_ids = query.raw.get("work_ids")
        if isinstance(work_ids, (list, tuple)) and work_ids:
            yield from self._collect_works(_clean_ids(work_ids), query).values()
            return

        search_query = query.replace(raw={k: v for k, v in query.raw.items() if k not in GRAPH_KEYS})
        try:
            for work in self.data_source.search_works(search_query):
                if isinstance(work, dict):
                    yield work
        except Exception as e:
            self.logger.warning(
                f"work search for collaboration graph failed: {e}", extra={"error": str(e)}
            )

    def _maybe_throttle(self):
        """pause briefly when the provider says the quota is about to run out."""
        state = self.data_source.rate_limit_state()
        remaining, reset = state.remaining, state.reset
        if remaining is None or reset is None:
            return
        if remaining <= 1 and 0 < reset <= self.config.throttle_max_sleep:
            self.logger.info(
                f"rate limit reached, pausing graph build for {reset}s", extra={"sleep": reset}
            )
            self.sleeper(reset)

    # =========================================================================
    # graph helpers
    # =========================================================================

    def _add_work_node(self, graph: nx.Graph, work: Dict[str, Any]):
        work_id = resolve_work_id(work)
        if work_id is None:
            return
        graph.add_node(work_id, **_compact({
            "title": work.get("title"),
            "year": work.get("year"),
            "counts": work.get("counts"),
            "external_ids": work.get("external_ids"),
            "is_oa": work.get("is_oa"),
        }))

    def _add_author_node(self, graph: nx.Graph, author: Dict[str, Any]):
        author_id = author.get("id")
        if not isinstance(author_id, str) or not author_id.strip():
            return
        graph.add_node(author_id.strip(), **_compact({
            "name": author.get("name"),
            "orcid": author.get("orcid"),
            "counts": author.get("counts"),
            "affiliations": author.get("affiliations"),
        }))

    def _add_or_increment_edge(self, graph: nx.DiGraph, source: str, target: str, **attrs):
        if graph.has_edge(source, target):
            graph[source][target]["weight"] = graph[source][target].get("weight", 1) + 1
        else:
            graph.add_edge(source, target, weight=1, **attrs)

    def _cache_key(self, prefix: str, query: Query) -> str:
        payload = json.dumps(query.to_dict(), sort_keys=True, default=str)
        return "graph:" + hashlib.md5(f"{prefix}|{payload}".encode("utf-8")).hexdigest()

    def _fallback_work_id(self, work: Dict[str, Any]) -> str:
        payload = json.dumps(work, sort_keys=True, default=str)
        return "work:" + hashlib.md5(payload.encode("utf-8")).hexdigest()
