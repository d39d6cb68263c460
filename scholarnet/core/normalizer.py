"""
maps provider payloads onto one common work / author record.

work keys: id, title, abstract, year, publication_date, venue,
external_ids, is_oa, oa_url, url, counts, authors, references_count,
tldr, type, language.
author keys: id, name, orcid, url, counts, affiliations.
"""

import re
from typing import Any, Dict, List, Optional

from . import identity
from .identity import ns, strip_prefix

OPENALEX_PREFIXES = ["https://openalex.org/", "openalex:"]

_TAGS = re.compile(r"<[^>]+>")


def work(raw: Dict[str, Any], provider: str) -> Dict[str, Any]:
    provider = provider.lower()
    if provider == "openalex":
        return _openalex_work(raw)
    if provider in ("s2", "semantic_scholar"):
        return _s2_work(raw)
    if provider == "crossref":
        return _crossref_work(raw)
    return _generic_work(raw, provider)


def author(raw: Dict[str, Any], provider: str) -> Dict[str, Any]:
    provider = provider.lower()
    if provider == "openalex":
        return _openalex_author(raw)
    if provider in ("s2", "semantic_scholar"):
        return _s2_author(raw)
    if provider == "crossref":
        return _crossref_author(raw)
    return _generic_author(raw, provider)


# =============================================================================
# helpers
# =============================================================================

def _dict(value) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _unique(values: List[str]) -> List[str]:
    return list(dict.fromkeys(values))


def _compact(mapping: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in mapping.items() if v}


def _first_string(value) -> Optional[str]:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, list):
        for item in value:
            if isinstance(item, str) and item.strip():
                return item.strip()
    return None


def _affiliation_names(items, key: str = "display_name") -> List[str]:
    names = []
    for item in items or []:
        if isinstance(item, dict) and item.get(key):
            names.append(str(item[key]))
        elif isinstance(item, str) and item.strip():
            names.append(item.strip())
    return _unique(names)


def _orcid(value) -> Optional[str]:
    return identity.normalize_orcid(str(value)) if value else None


def rebuild_abstract(inverted: Any) -> Optional[str]:
    """openalex ships abstracts as {word: [positions]}."""
    if not isinstance(inverted, dict):
        return None
    positions = {}
    for word, indices in inverted.items():
        if not isinstance(indices, list):
            continue
        for index in indices:
            positions[int(index)] = word
    if not positions:
        return None
    return " ".join(positions[i] for i in sorted(positions)).strip()


def _date_parts(date) -> Optional[Dict[str, Any]]:
    """crossref {'date-parts': [[2020, 5, 1]]} -> year + iso-ish date."""
    parts = _dict(date).get("date-parts")
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], list) or not parts[0]:
        return None
    values = parts[0]
    if values[0] is None:
        return None
    segments = [str(values[0])] + [str(v).zfill(2) for v in values[1:]]
    return {"year": int(values[0]), "date": "-".join(segments)}


# =============================================================================
# openalex
# =============================================================================

def _openalex_work(raw: Dict[str, Any]) -> Dict[str, Any]:
    id_raw = str(raw.get("id") or "")
    openalex_id = strip_prefix(id_raw, OPENALEX_PREFIXES)
    ids = _dict(raw.get("ids"))

    venue = raw.get("host_venue") or _dict(raw.get("primary_location")).get("source")
    venue = _dict(venue)
    venue_id = strip_prefix(str(venue["id"]), OPENALEX_PREFIXES) if venue.get("id") else None

    open_access = _dict(raw.get("open_access"))
    best = _dict(raw.get("best_oa_location"))
    primary = _dict(raw.get("primary_location"))
    referenced = raw.get("referenced_works")
    ref_count = len(referenced) if isinstance(referenced, list) else None
    namespaced = ns("openalex", openalex_id) if openalex_id else None

    return {
        "id": namespaced,
        "title": raw.get("display_name") or raw.get("title"),
        "abstract": raw.get("abstract") or rebuild_abstract(raw.get("abstract_inverted_index")),
        "year": raw.get("publication_year"),
        "publication_date": raw.get("publication_date") or venue.get("published_date"),
        "venue": {
            "id": ns("openalex", venue_id) if venue_id else None,
            "name": venue.get("display_name"),
            "type": venue.get("type"),
        },
        "external_ids": _compact({
            "doi": identity.normalize_doi(str(ids["doi"])) if ids.get("doi") else None,
            "pmid": identity.normalize_pmid(str(ids["pmid"])) if ids.get("pmid") else None,
            "arxiv": identity.normalize_arxiv(str(ids["arxiv"])) if ids.get("arxiv") else None,
            "openalex": namespaced,
        }),
        "is_oa": open_access.get("is_oa"),
        "oa_url": open_access.get("oa_url") or best.get("url"),
        "url": primary.get("landing_page_url") or id_raw or None,
        "counts": {
            "citations": raw.get("cited_by_count"),
            "references": ref_count,
        },
        "authors": [_openalex_authorship(a) for a in raw.get("authorships") or [] if isinstance(a, dict)],
        "references_count": raw.get("referenced_works_count", ref_count),
        "tldr": raw.get("summary"),
        "type": raw.get("type"),
        "language": raw.get("language"),
    }


def _openalex_authorship(authorship: Dict[str, Any]) -> Dict[str, Any]:
    data = _dict(authorship.get("author"))
    author_id = strip_prefix(str(data["id"]), OPENALEX_PREFIXES) if data.get("id") else None
    return {
        "id": ns("openalex", author_id) if author_id else None,
        "name": data.get("display_name"),
        "orcid": _orcid(data.get("orcid")),
        "affiliations": _affiliation_names(authorship.get("institutions")),
    }


def _openalex_author(raw: Dict[str, Any]) -> Dict[str, Any]:
    id_raw = str(raw.get("id") or "")
    author_id = strip_prefix(id_raw, OPENALEX_PREFIXES)
    institution = raw.get("last_known_institution")
    return {
        "id": ns("openalex", author_id) if author_id else None,
        "name": raw.get("display_name"),
        "orcid": _orcid(raw.get("orcid")),
        "url": raw.get("homepage_url") or id_raw or None,
        "counts": {
            "works": raw.get("works_count"),
            "citations": raw.get("cited_by_count"),
            "h_index": _dict(raw.get("summary_stats")).get("h_index"),
        },
        "affiliations": _affiliation_names([institution] if isinstance(institution, dict) else []),
    }


# =============================================================================
# semantic scholar
# =============================================================================

def _s2_work(raw: Dict[str, Any]) -> Dict[str, Any]:
    external = _dict(raw.get("externalIds"))
    venue = _dict(raw.get("publicationVenue"))
    pdf = _dict(raw.get("openAccessPdf"))
    paper_id = ns("s2", raw["paperId"]) if raw.get("paperId") else None
    types = raw.get("publicationTypes")

    return {
        "id": paper_id,
        "title": raw.get("title"),
        "abstract": raw.get("abstract") or raw.get("abstractText"),
        "year": raw.get("year"),
        "publication_date": raw.get("publicationDate"),
        "venue": {
            "id": ns("s2", venue["id"]) if venue.get("id") else None,
            "name": raw.get("venue") or venue.get("name"),
            "type": venue.get("type"),
        },
        "external_ids": _compact({
            "doi": identity.normalize_doi(str(external["DOI"])) if external.get("DOI") else None,
            "arxiv": identity.normalize_arxiv(str(external["ArXiv"])) if external.get("ArXiv") else None,
            "pmid": identity.normalize_pmid(str(external["PubMed"])) if external.get("PubMed") else None,
            "s2": paper_id,
        }),
        "is_oa": raw["isOpenAccess"] if "isOpenAccess" in raw else bool(pdf),
        "oa_url": pdf.get("url"),
        "url": raw.get("url") or (identity.doi_to_url(str(external["DOI"])) if external.get("DOI") else None),
        "counts": {
            "citations": raw.get("citationCount"),
            "references": raw.get("referenceCount"),
        },
        "authors": [_s2_author(a, brief=True) for a in raw.get("authors") or [] if isinstance(a, dict)],
        "references_count": raw.get("referenceCount"),
        "tldr": _dict(raw.get("tldr")).get("text"),
        "type": types[0] if isinstance(types, list) and types else raw.get("publicationType"),
        "language": raw.get("language"),
    }


def _s2_author(raw: Dict[str, Any], brief: bool = False) -> Dict[str, Any]:
    record = {
        "id": ns("s2", raw["authorId"]) if raw.get("authorId") else None,
        "name": raw.get("name"),
        "orcid": _orcid(raw.get("orcid")),
        "affiliations": _affiliation_names(raw.get("affiliations"), key="name"),
    }
    if brief:
        return record
    record["url"] = raw.get("url")
    record["counts"] = {
        "works": raw.get("paperCount"),
        "citations": raw.get("citationCount"),
        "h_index": raw.get("hIndex"),
    }
    return record


# =============================================================================
# crossref
# =============================================================================

def _crossref_name(raw: Dict[str, Any]) -> Optional[str]:
    parts = [p.strip() for p in (raw.get("given"), raw.get("family")) if isinstance(p, str) and p.strip()]
    return " ".join(parts) if parts else raw.get("name")


def _crossref_work(raw: Dict[str, Any]) -> Dict[str, Any]:
    if isinstance(raw.get("message"), dict):
        raw = raw["message"]

    doi = identity.normalize_doi(str(raw["DOI"])) if raw.get("DOI") else None
    abstract = raw.get("abstract")
    abstract = _TAGS.sub("", abstract).strip() if isinstance(abstract, str) else None
    issued = _date_parts(raw.get("issued")) or _date_parts(raw.get("created")) or {}
    links = raw.get("link")
    oa_url = links[0].get("URL") if isinstance(links, list) and links and isinstance(links[0], dict) else None
    ref_count = raw.get("references-count", raw.get("reference-count"))

    return {
        "id": ns("crossref", doi) if doi else None,
        "title": _first_string(raw.get("title")),
        "abstract": abstract,
        "year": issued.get("year"),
        "publication_date": issued.get("date"),
        "venue": {
            "id": None,
            "name": _first_string(raw.get("container-title")),
            "type": raw.get("type"),
        },
        "external_ids": _compact({
            "doi": doi,
            "isbn": _first_string(raw.get("ISBN")),
            "issn": _first_string(raw.get("ISSN")),
        }),
        "is_oa": bool(raw.get("license")),
        "oa_url": oa_url,
        "url": raw.get("URL") or identity.doi_to_url(doi),
        "counts": {
            "citations": raw.get("is-referenced-by-count"),
            "references": ref_count,
        },
        "authors": [_crossref_contributor(a) for a in raw.get("author") or [] if isinstance(a, dict)],
        "references_count": ref_count,
        "tldr": None,
        "type": raw.get("type"),
        "language": raw.get("language"),
    }


def _crossref_contributor(raw: Dict[str, Any]) -> Dict[str, Any]:
    orcid = _orcid(raw.get("ORCID"))
    return {
        "id": ns("orcid", orcid) if orcid else None,
        "name": _crossref_name(raw),
        "orcid": orcid,
        "affiliations": _affiliation_names(raw.get("affiliation"), key="name"),
    }


def _crossref_author(raw: Dict[str, Any]) -> Dict[str, Any]:
    record = _crossref_contributor(raw)
    record["url"] = identity.orcid_to_url(record["orcid"])
    record["counts"] = {}
    return record


# =============================================================================
# anything else
# =============================================================================

def _generic_work(raw: Dict[str, Any], provider: str) -> Dict[str, Any]:
    return {
        "id": ns(provider, raw["id"]) if raw.get("id") else None,
        "title": raw.get("title"),
        "abstract": raw.get("abstract"),
        "year": raw.get("year"),
        "publication_date": raw.get("publication_date"),
        "venue": raw.get("venue"),
        "external_ids": _dict(raw.get("external_ids")),
        "is_oa": raw.get("is_oa"),
        "oa_url": raw.get("oa_url"),
        "url": raw.get("url"),
        "counts": _dict(raw.get("counts")),
        "authors": raw.get("authors") if isinstance(raw.get("authors"), list) else [],
        "references_count": raw.get("references_count"),
        "tldr": raw.get("tldr"),
        "type": raw.get("type"),
        "language": raw.get("language"),
    }


def _generic_author(raw: Dict[str, Any], provider: str) -> Dict[str, Any]:
    return {
        "id": ns(provider, raw["id"]) if raw.get("id") else None,
        "name": raw.get("name"),
        "orcid": _orcid(raw.get("orcid")),
        "url": raw.get("url"),
        "counts": _dict(raw.get("counts")),
        "affiliations": raw.get("affiliations") if isinstance(raw.get("affiliations"), list) else [],
    }
