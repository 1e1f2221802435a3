"""
Source Selector — pick the competitor articles the research stage scrapes.

Candidates are ranked by search position (missing positions last), then taken in
one pass while tracking the domains already chosen. A candidate is rejected if its
domain contains the campaign's own domain, repeats a chosen domain, is marked
non-organic, or has no URL.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from seo_campaigns.utils import extract_domain

MISSING_POSITION = 999


@dataclass(frozen=True)
class SearchCandidate:
    url: Optional[str]
    domain: Optional[str] = None
    title: Optional[str] = None
    position: Optional[int] = None
    is_organic: Optional[bool] = None  # None = not reported, treated as organic

    @classmethod
    def from_record(cls, record) -> "SearchCandidate":
        """Build from a GoogleSearchResult row or a dict with the same keys."""
        get = record.get if isinstance(record, dict) else lambda k: getattr(record, k, None)
        return cls(
            url=get("url"),
            domain=get("domain"),
            title=get("title"),
            position=get("position"),
            is_organic=get("is_organic"),
        )


@dataclass(frozen=True)
class SelectedSource:
    url: str
    domain: str
    title: Optional[str] = None
    position: Optional[int] = None


def select_top_articles(
    candidates: Iterable[SearchCandidate],
    max_articles: int = 5,
    website_url: str = "",
) -> list[SelectedSource]:
    own_domain = extract_domain(website_url)
    ranked = sorted(
        candidates,
        key=lambda c: c.position if c.position else MISSING_POSITION,
    )

    selected: list[SelectedSource] = []
    seen_domains: set[str] = set()
    for candidate in ranked:
        if len(selected) >= max_articles:
            break
        domain = candidate.domain or extract_domain(candidate.url or "")
        if not domain:
            continue
        if own_domain and own_domain in domain:
            continue
        if domain in seen_domains:
            continue
        if candidate.is_organic is False:
            continue
        if not candidate.url:
            continue
        selected.append(SelectedSource(
            url=candidate.url,
            domain=domain,
            title=candidate.title,
            position=candidate.position,
        ))
        seen_domains.add(domain)
    return selected
