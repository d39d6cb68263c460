"""
identifier normalization - doi, orcid, arxiv, pmid and namespaced ids.
all helpers return None for empty or unparseable input.
"""

import re
from typing import Any, List, Optional, Tuple

_DOI_URL = re.compile(r"^https?://(dx\.)?doi\.org/", re.I)
_DOI_PREFIX = re.compile(r"^doi:", re.I)
_ORCID_URL = re.compile(r"https?://orcid\.org/", re.I)
_ORCID = re.compile(r"^\d{15}[\dX]$", re.I)
_ARXIV_URL = re.compile(r"^https?://arxiv\.org/(abs|pdf)/", re.I)
_ARXIV_PREFIX = re.compile(r"^arxiv:", re.I)
_ARXIV_VERSION = re.compile(r"v\d+$")


def normalize_doi(doi: Optional[str]) -> Optional[str]:
    """'https://doi.org/10.1000/ABC' -> '10.1000/abc'"""
    if doi is None:
        return None
    doi = _DOI_PREFIX.sub("", _DOI_URL.sub("", doi.strip())).lower()
    return doi or None


def doi_to_url(doi: Optional[str]) -> Optional[str]:
    doi = normalize_doi(doi)
    return None if doi is None else f"https://doi.org/{doi}"


def normalize_orcid(orcid: Optional[str]) -> Optional[str]:
    """16 digits (last may be X), formatted 0000-0002-1825-0097."""
    if orcid is None:
        return None
    orcid = _ORCID_URL.sub("", orcid.strip()).replace(" ", "").replace("-", "")
    if not _ORCID.match(orcid):
        return None
    orcid = orcid.upper()
    return "-".join(orcid[i:i + 4] for i in range(0, 16, 4))


def orcid_to_url(orcid: Optional[str]) -> Optional[str]:
    orcid = normalize_orcid(orcid)
    return None if orcid is None else f"https://orcid.org/{orcid}"


def normalize_arxiv(identifier: Optional[str]) -> Optional[str]:
    """strips url, 'arXiv:' prefix, '.pdf' and the version suffix."""
    if identifier is None:
        return None
    identifier = identifier.strip()
    if not identifier:
        return None
    identifier = _ARXIV_URL.sub("", identifier)
    identifier = _ARXIV_PREFIX.sub("", identifier)
    if identifier.lower().endswith(".pdf"):
        identifier = identifier[:-4]
    identifier = _ARXIV_VERSION.sub("", identifier.lower())
    return identifier or None


def arxiv_to_url(identifier: Optional[str]) -> Optional[str]:
    identifier = normalize_arxiv(identifier)
    return None if identifier is None else f"https://arxiv.org/abs/{identifier}"


def normalize_pmid(pmid: Optional[str]) -> Optional[str]:
    if pmid is None:
        return None
    digits = re.sub(r"\D+", "", str(pmid))
    return digits or None


def pmid_to_url(pmid: Optional[str]) -> Optional[str]:
    pmid = normalize_pmid(pmid)
    return None if pmid is None else f"https://pubmed.ncbi.nlm.nih.gov/{pmid}/"


def ns(provider: str, identifier: Any) -> str:
    """namespaced id, e.g. ns('OpenAlex', 'W1') -> 'openalex:W1'"""
    return f"{provider.strip().lower()}:{str(identifier).strip()}"


def parse_ns(value: str) -> Tuple[str, str]:
    """'s2:123' -> ('s2', '123'); un-namespaced values give ('', value)."""
    if ":" in value:
        provider, identifier = value.split(":", 1)
        return provider, identifier
    return "", value


def strip_prefix(value: str, prefixes: List[str]) -> str:
    """remove the first matching prefix (case-insensitive)."""
    value = value.strip()
    for prefix in prefixes:
        if prefix and value.lower().startswith(prefix.lower()):
            return value[len(prefix):]
    return value
