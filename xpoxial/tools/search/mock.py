"""Deterministic stand-in results.

Two kinds of synthetic data live here:

* mock data, returned when nothing real could be obtained for any category
  (web + images, news articles, advanced per-engine bundles);
* placeholders, which only fill an empty image category when real web
  results exist.

Everything is a pure function of the query (and, for news, of the clock
passed in), so two calls with the same arguments produce identical output.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional
from urllib.parse import quote

from .schema import (
    AdvancedSearchOutput,
    EngineImageResult,
    EngineResultBundle,
    EngineWebResult,
    ImageResult,
    NewsArticle,
    SearchBundle,
    WebResult,
)

PLACEHOLDER_HOST = "https://placehold.co"
MOCK_SOURCE_PLATFORM = "MockPlatform"
PLACEHOLDER_SOURCE_PLATFORM = "Placeholder"
MOCK_NEWS_SOURCE = "Mock News Provider"

MOCK_ADVANCED_WEB_RESULTS = 3
MOCK_ADVANCED_IMAGES = 4
MOCK_ADVANCED_ERROR = "This is mock data because the SERP_API_KEY is not configured."


def _encode(value: str) -> str:
    # Same escaping as JavaScript's encodeURIComponent
    return quote(value, safe="-_.!~*'()")


def mock_web_results(query: str, count: int = 10) -> List[WebResult]:
    encoded = _encode(query)
    results = []
    for i in range(1, count + 1):
        if i == 1:
            snippet = (
                "This is a mock web search result snippet. Configure your Search API "
                "(SEARCH_API_KEY and SEARCH_ENGINE_ID in environment variables) for real results."
            )
        else:
            snippet = "Another mock web snippet. Ensure environment variables are set for your chosen Search API."
        results.append(WebResult(
            title=f"Mock Web Result {i} for: {query}",
            link=f"https://example.com/mock-web{i}?q={encoded}",
            snippet=snippet,
        ))
    return results


def mock_images(query: str, count: int = 6) -> List[ImageResult]:
    short = _encode(query)[:5]
    return [
        ImageResult(
            image_url=f"{PLACEHOLDER_HOST}/300x200.png?text=MockImg{i}-{short}",
            alt_text=f"Mock Image {i} for {query}",
            photographer_name=f"Mock Artist {i}",
            photographer_url=f"https://example.com/artist{i}",
            source_platform=MOCK_SOURCE_PLATFORM,
            source_url=f"https://example.com/mock{i}/image_source",
        )
        for i in range(1, count + 1)
    ]


def mock_search_bundle(query: str, web_count: int = 10, image_count: int = 6) -> SearchBundle:
    """The full bundle used when every category came back empty."""
    return SearchBundle(
        web_results=mock_web_results(query, web_count),
        images=mock_images(query, image_count),
    )


def placeholder_images(query: str, count: int) -> List[ImageResult]:
    """Clearly-marked filler images for a query that has text results but no images."""
    label = _encode(query[:10])
    return [
        ImageResult(
            image_url=f"{PLACEHOLDER_HOST}/300x200.png?text={label}-{i}",
            alt_text=f"Placeholder image for {query} {i}",
            source_platform=PLACEHOLDER_SOURCE_PLATFORM,
            source_url=f"{PLACEHOLDER_HOST}/",
        )
        for i in range(1, count + 1)
    ]


def mock_news(query: str, count: int = 10, now: Optional[datetime] = None) -> List[NewsArticle]:
    safe_query = query or "mock"
    published_at = (now or datetime.now(timezone.utc)).isoformat().replace("+00:00", "Z")
    return [
        NewsArticle(
            title=f"Mock News {i}: {safe_query}",
            description=(
                f"This is mock news article {i}. To get real news, please provide "
                "a valid NEWS_API_KEY in your environment variables."
            ),
            url=f"https://example.com/mock-news{i}",
            source=MOCK_NEWS_SOURCE,
            published_at=published_at,
        )
        for i in range(1, count + 1)
    ]


def mock_advanced_results(query: str, engines: Iterable[str]) -> AdvancedSearchOutput:
    safe_query = query or "advanced search"
    encoded = _encode(safe_query)
    output: AdvancedSearchOutput = {}
    for engine in engines:
        output[engine] = EngineResultBundle(
            web_results=[
                EngineWebResult(
                    position=i,
                    title=f"Mock {engine} Web Result {i} for: {safe_query}",
                    link=f"https://example.com/{engine}/mock-web{i}?q={encoded}",
                    snippet=(
                        f"This is a mock web search result from {engine}. "
                        "Configure your SERP_API_KEY for real results."
                    ),
                )
                for i in range(1, MOCK_ADVANCED_WEB_RESULTS + 1)
            ],
            image_results=[
                EngineImageResult(
                    position=i,
                    thumbnail=f"{PLACEHOLDER_HOST}/150x150.png?text={engine}+{i}",
                    original=f"{PLACEHOLDER_HOST}/600x400.png?text={engine}+{i}",
                    title=f"Mock {engine} Image {i}",
                    link=f"https://example.com/{engine}/mock-image{i}?q={encoded}",
                    source="Mock Source",
                )
                for i in range(1, MOCK_ADVANCED_IMAGES + 1)
            ],
            error=MOCK_ADVANCED_ERROR,
        )
    return output
