"""
Planning — the deterministic parts of the research stage.

Seed keywords at start_workflow are a cheap word-split heuristic, not a model call.
The model-backed plan from run_workflow is normalized here so every plan has exactly
the requested number of topics, and a synthetic plan stands in when the model's
response cannot be parsed.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

SECONDARY_KEYWORD_COUNT = 3
MIN_OUTLINE_HEADINGS = 5
MAX_OUTLINE_HEADINGS = 8

DEFAULT_SEARCH_LOCATION = "US"
COUNTRY_CODES = {
    "United States": "US",
    "Singapore": "SG",
    "United Kingdom": "GB",
    "Canada": "CA",
    "Australia": "AU",
    "Germany": "DE",
    "France": "FR",
    "Japan": "JP",
    "South Korea": "KR",
}

DEFAULT_MIN_WORDS = 1000
LENGTH_TIER_MIN_WORDS = {
    "Short (300-500 words)": 300,
    "Medium (700-1000 words)": 700,
    "Long (1200-1500 words)": 1200,
    "Very Long (2000+ words)": 2000,
}


def _as_int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_text_list(value) -> list[str]:
    """A list as-is, a comma- or newline-joined string split apart, anything else empty."""
    if isinstance(value, str):
        value = re.split(r"[,\n]", value)
    elif not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip()]


# Filler headings used to pad a short outline, in order
_PADDING_HEADINGS = ["Introduction", "Key Considerations", "Common Mistakes to Avoid", "Frequently Asked Questions", "Conclusion"]


@dataclass
class Topic:
    title: str
    primary_keyword: str
    secondary_keywords: list[str] = field(default_factory=list)
    outline: list[str] = field(default_factory=list)
    target_word_count: int = DEFAULT_MIN_WORDS
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "primaryKeyword": self.primary_keyword,
            "secondaryKeywords": list(self.secondary_keywords),
            "outline": list(self.outline),
            "targetWordCount": self.target_word_count,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Topic":
        return cls(
            title=str(data.get("title") or "").strip(),
            primary_keyword=str(data.get("primaryKeyword") or data.get("primary_keyword") or "").strip(),
            secondary_keywords=_as_text_list(data.get("secondaryKeywords") or data.get("secondary_keywords")),
            outline=_as_text_list(data.get("outline")),
            target_word_count=_as_int(
                data.get("targetWordCount") or data.get("minWordCount") or data.get("target_word_count"),
                DEFAULT_MIN_WORDS,
            ),
            description=str(data.get("description") or ""),
        )


@dataclass
class ScrapedArticle:
    """A competitor article excerpt. Lives only for the duration of one research run."""
    url: str
    domain: str
    excerpt: str
    title: Optional[str] = None

    def to_prompt_snippet(self, index: int, max_chars: int) -> dict:
        return {
            "idx": index,
            "url": self.url,
            "domain": self.domain,
            "title": self.title or "",
            "excerpt": self.excerpt[:max_chars],
        }


@dataclass
class ContentPlan:
    topics: list[Topic]
    recommended_keywords: list[str] = field(default_factory=list)
    competitors: list[str] = field(default_factory=list)
    content_pillars: list[str] = field(default_factory=list)
    content_gaps: list[str] = field(default_factory=list)
    keyword_difficulty: str = ""
    market_opportunities: list[str] = field(default_factory=list)
    target_audience: str = ""
    citations: list[dict] = field(default_factory=list)
    is_fallback: bool = False

    def to_dict(self) -> dict:
        return {
            "topics": [t.to_dict() for t in self.topics],
            "recommendedKeywords": self.recommended_keywords,
            "competitors": self.competitors,
            "contentPillars": self.content_pillars,
            "contentGaps": self.content_gaps,
            "keywordDifficulty": self.keyword_difficulty,
            "marketOpportunities": self.market_opportunities,
            "targetAudience": self.target_audience,
            "citations": self.citations,
        }


# ── Deterministic helpers ─────────────────────────────────────────────

def keyword_stem(business_description: str) -> str:
    """First two lowercase words of the description."""
    words = (business_description or "").lower().split()
    return " ".join(words[:2])


def generate_search_keywords(business_description: str, target_country: str = "", language: str = "") -> list[str]:
    """Five seed keywords built around the description's two-word stem."""
    base = keyword_stem(business_description)
    return [
        f"{base} services",
        f"professional {base}",
        f"{base} solutions",
        f"best {base}",
        f"{base} {target_country or 'online'}",
    ]


def format_search_location(target_country: Optional[str]) -> str:
    return COUNTRY_CODES.get((target_country or "").strip(), DEFAULT_SEARCH_LOCATION)


def map_article_length_to_min_words(article_length: Optional[str]) -> int:
    return LENGTH_TIER_MIN_WORDS.get((article_length or "").strip(), DEFAULT_MIN_WORDS)


# ── Fallback plan ─────────────────────────────────────────────────────

def _fallback_topic(keyword: str, seeds: list[str], min_words: int, round_index: int = 0) -> Topic:
    title = f"Comprehensive Guide to {keyword}"
    if round_index:
        title += f" (Part {round_index + 1})"
    others = [s for s in seeds if s != keyword]
    return Topic(
        title=title,
        primary_keyword=keyword,
        secondary_keywords=_fit_secondary(others, keyword),
        outline=["Introduction", f"What is {keyword}?", f"Benefits of {keyword}", f"How to use {keyword}", "Conclusion"],
        target_word_count=min_words,
        description=f"A practical guide to {keyword}.",
    )


def build_fallback_topics(seed_keywords: list[str], count: int, min_words: int, start: int = 0) -> list[Topic]:
    """
    Topics number `start` .. `count - 1` built by cycling the seed keywords.
    A second pass over the seeds gets a "(Part N)" suffix so titles stay unique.
    """
    seeds = [s for s in seed_keywords if s and s.strip()]
    if not seeds:
        return []
    return [
        _fallback_topic(seeds[i % len(seeds)], seeds, min_words, round_index=i // len(seeds))
        for i in range(start, count)
    ]


def build_fallback_plan(
    seed_keywords: list[str],
    count: int,
    min_words: int,
    scraped: Optional[list[ScrapedArticle]] = None,
    business_description: str = "",
) -> ContentPlan:
    seeds = [s for s in seed_keywords if s and s.strip()]
    if not seeds and business_description.strip():
        seeds = [business_description.strip()]
    scraped = scraped or []
    competitors = list(dict.fromkeys(a.domain for a in scraped))[:5]
    return ContentPlan(
        topics=build_fallback_topics(seeds, count, min_words),
        recommended_keywords=seeds[: count * 3],
        competitors=competitors,
        content_pillars=["How-to", "Comparison", "Best Practices"],
        content_gaps=["Case studies", "Local insights"],
        keyword_difficulty="Medium",
        market_opportunities=["Long-tail queries"],
        target_audience="Decision-makers",
        citations=[{"source": a.url, "quote": "Referenced insight from competitor article."} for a in scraped[:5]],
        is_fallback=True,
    )


# ── Normalization ─────────────────────────────────────────────────────

def _fit_secondary(keywords: list[str], primary: str) -> list[str]:
    """Exactly three secondary keywords: dedupe, drop the primary, pad with variants of it."""
    out = []
    for kw in keywords:
        kw = str(kw).strip()
        if kw and kw.lower() != primary.lower() and kw not in out:
            out.append(kw)
    for variant in (f"{primary} guide", f"{primary} tips", f"best {primary}"):
        if len(out) >= SECONDARY_KEYWORD_COUNT:
            break
        if variant not in out:
            out.append(variant)
    return out[:SECONDARY_KEYWORD_COUNT]


def _fit_outline(outline: list[str]) -> list[str]:
    headings = [h.strip() for h in outline if h and h.strip()]
    for filler in _PADDING_HEADINGS:
        if len(headings) >= MIN_OUTLINE_HEADINGS:
            break
        if filler not in headings:
            headings.append(filler)
    return headings[:MAX_OUTLINE_HEADINGS]


def normalize_plan(
    raw: dict,
    count: int,
    min_words: int,
    seed_keywords: list[str],
    scraped: Optional[list[ScrapedArticle]] = None,
    business_description: str = "",
) -> ContentPlan:
    """
    Coerce a parsed model response into a ContentPlan with exactly `count` topics.
    Topics without a title are dropped; shortfalls are padded from the seed keywords.
    A response with no usable topic list is replaced by the fallback plan.
    """
    raw_topics = raw.get("topics") if isinstance(raw, dict) else None
    if not isinstance(raw_topics, list):
        logger.warning(f"Plan response has no topic list ({type(raw_topics).__name__}), using fallback plan")
        return build_fallback_plan(seed_keywords, count, min_words, scraped, business_description)

    topics: list[Topic] = []
    for item in raw_topics:
        if not isinstance(item, dict):
            continue
        topic = Topic.from_dict(item)
        if not topic.title:
            continue
        if not topic.primary_keyword:
            topic.primary_keyword = topic.title.lower()
        topic.secondary_keywords = _fit_secondary(topic.secondary_keywords, topic.primary_keyword)
        topic.outline = _fit_outline(topic.outline)
        topic.target_word_count = max(topic.target_word_count, min_words)
        topics.append(topic)

    if not topics:
        logger.warning("Plan response has no titled topics, using fallback plan")
        return build_fallback_plan(seed_keywords, count, min_words, scraped, business_description)

    if len(topics) > count:
        logger.info(f"Plan returned {len(topics)} topics, trimming to {count}")
        topics = topics[:count]
    elif len(topics) < count:
        logger.warning(f"Plan returned {len(topics)} topics, padding to {count} from seed keywords")
        seeds = seed_keywords or [t.primary_keyword for t in topics]
        topics.extend(build_fallback_topics(seeds, count, min_words, start=len(topics)))

    scraped = scraped or []
    competitors = _as_text_list(raw.get("competitors")) or list(dict.fromkeys(a.domain for a in scraped))[:5]
    raw_citations = raw.get("citations")
    citations = [c for c in raw_citations if isinstance(c, dict) and c.get("source")] if isinstance(raw_citations, list) else []
    return ContentPlan(
        topics=topics,
        recommended_keywords=_as_text_list(raw.get("recommendedKeywords")),
        competitors=competitors,
        content_pillars=_as_text_list(raw.get("contentPillars")),
        content_gaps=_as_text_list(raw.get("contentGaps")),
        keyword_difficulty=str(raw.get("keywordDifficulty") or ""),
        market_opportunities=_as_text_list(raw.get("marketOpportunities")),
        target_audience=str(raw.get("targetAudience") or ""),
        citations=citations,
    )
