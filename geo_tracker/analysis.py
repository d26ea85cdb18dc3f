"""
Prominence Analysis
===================

Scores one normalized LLM response for brand visibility:
- Mention detection (brand name, variants, and products)
- Recommendation language
- Citations of the brand's own domain
- A 0-100 composite prominence score

Everything here is a pure function of its input.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import urlparse

from .exceptions import ConfigurationError
from .sources.base import NormalizedResult

# Keywords that indicate Development Seed presence, in scan order.
DS_KEYWORDS: tuple[str, ...] = (
    "development seed",
    "developmentseed",
    "devseed",
    "titiler",
    "veda dashboard",
    "veda",
    "cogeo-mosaic",
)

# Domain to match in citations and search results
DS_DOMAIN = "developmentseed.org"

RECOMMENDATION_WORDS: tuple[str, ...] = (
    "recommended",
    "recommend",
    "best",
    "popular",
    "leading",
    "top",
    "excellent",
    "powerful",
    "widely used",
    "well-known",
    "go-to",
    "notable",
    "prominent",
    "trusted",
)


@dataclass(frozen=True)
class AnalysisResult:
    """Visibility of the brand in one response"""
    mentioned: bool
    recommended: bool
    position: int  # 0 = not mentioned, 1-4 = quartile of the first mention
    citation_count: int
    prominence_score: int  # 0-100
    ds_pages: tuple[str, ...]  # brand URLs found in citations/search results


def detect_mentions(content_lower: str, keywords: Iterable[str] = DS_KEYWORDS) -> tuple[bool, int]:
    """Find the earliest keyword in lowercased text.

    Returns:
        (mentioned, position) where position is the 1-4 quartile of the
        earliest match, or 0 when nothing matched
    """
    offsets = [
        offset
        for offset in (content_lower.find(keyword.lower()) for keyword in keywords)
        if offset >= 0
    ]
    if not offsets:
        return False, 0

    fraction = min(offsets) / max(len(content_lower), 1)
    return True, max(math.ceil(fraction * 4), 1)


def detect_recommendation(
    content_lower: str,
    words: Iterable[str] = RECOMMENDATION_WORDS,
) -> bool:
    """Check for recommendation language anywhere in the text.

    This is not a proximity check: "best" anywhere in the answer counts,
    even when it is about a competitor or negated.
    """
    return any(word.lower() in content_lower for word in words)


def is_domain_url(url: str, domain: str = DS_DOMAIN) -> bool:
    """True if the URL's host is the domain or one of its subdomains"""
    if not isinstance(url, str) or not url:
        return False
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return False
    domain = domain.lower()
    return host == domain or host.endswith("." + domain)


def extract_ds_pages(result: NormalizedResult, domain: str = DS_DOMAIN) -> tuple[str, ...]:
    """Unique brand URLs from citations, then search results"""
    candidates = list(result.citations) + [item.url for item in result.search_results]
    return tuple(dict.fromkeys(url for url in candidates if is_domain_url(url, domain)))


def calculate_score(
    mentioned: bool,
    recommended: bool,
    position: int,
    citation_count: int,
) -> int:
    """Calculate prominence score (0-100) from analysis factors.

    Scoring breakdown:
        +30 if mentioned in response text
        +20 if recommended (positive language)
        +15 if cited (at least 1 brand URL)
        +10 per additional brand URL (max +20)
        +15 if first mention is in the first quarter, +8 in the second
    """
    if not mentioned and citation_count == 0:
        return 0

    score = 0

    if mentioned:
        score += 30

    if recommended:
        score += 20

    if citation_count >= 1:
        score += 15
        score += min((citation_count - 1) * 10, 20)

    if mentioned and position == 1:
        score += 15
    elif mentioned and position == 2:
        score += 8

    return min(score, 100)


class ProminenceAnalyzer:
    """
    Analyze normalized LLM responses for one brand.

    Defaults describe Development Seed; pass other keywords and a domain
    to measure a different brand.
    """

    def __init__(
        self,
        keywords: Iterable[str] = DS_KEYWORDS,
        tracked_domain: str = DS_DOMAIN,
        recommendation_words: Iterable[str] = RECOMMENDATION_WORDS,
    ):
        self.keywords = tuple(k.lower() for k in keywords if k)
        self.tracked_domain = (tracked_domain or "").lower()
        self.recommendation_words = tuple(w.lower() for w in recommendation_words if w)

        if not self.keywords:
            raise ConfigurationError("At least one brand keyword is required")
        if not self.tracked_domain:
            raise ConfigurationError("Tracked domain must not be empty")

    def analyze(self, result: NormalizedResult) -> AnalysisResult:
        content_lower = (result.content or "").lower()

        mentioned, position = detect_mentions(content_lower, self.keywords)
        recommended = mentioned and detect_recommendation(content_lower, self.recommendation_words)

        ds_pages = extract_ds_pages(result, self.tracked_domain)
        citation_count = len(ds_pages)

        return AnalysisResult(
            mentioned=mentioned,
            recommended=recommended,
            position=position,
            citation_count=citation_count,
            prominence_score=calculate_score(mentioned, recommended, position, citation_count),
            ds_pages=ds_pages,
        )


_default_analyzer = ProminenceAnalyzer()


def analyze_response(
    result: NormalizedResult,
    analyzer: Optional[ProminenceAnalyzer] = None,
) -> AnalysisResult:
    """Analyze a response with the given analyzer, or the Development Seed defaults"""
    return (analyzer or _default_analyzer).analyze(result)
