"""Web + image aggregation cascade.

Each category walks its providers in priority order until its cap is full.
The two categories run concurrently; the only coupling between them is the
"embedded images" source, which waits for the web category to finish and
then reuses the thumbnails the web provider returned alongside its results.

Example:
    cascade = AggregationCascade(
        web_providers=[google, duckduckgo_web],
        image_providers=[EmbeddedImageSource("google"), pexels, unsplash],
        config=settings.search.cascade,
    )
    result = await cascade.run("quantum computing")
    result.bundle.to_wire()
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Union

from xpoxial.services.shared.errors import AggregationError
from xpoxial.services.shared.logger import SearchLogger
from xpoxial.services.shared.settings import CascadeConfig

from .base import ProviderResult, SearchProvider
from .mock import mock_search_bundle, placeholder_images
from .normalizer import BundleLimits, validate_bundle
from .schema import ImageResult, ResultItem, SearchBundle

WEB = "web"
IMAGES = "images"


class AttemptState(str, Enum):
    NOT_ATTEMPTED = "not_attempted"
    SKIPPED = "skipped"
    SUCCESS = "success"
    EMPTY = "empty"
    ERROR = "error"
    EXHAUSTED = "exhausted"
    MOCK_FALLBACK = "mock_fallback"


@dataclass(frozen=True)
class ProviderAttempt:
    category: str
    provider: str
    state: AttemptState
    added: int = 0
    error: Optional[str] = None
    latency_ms: float = 0.0


@dataclass
class CategoryOutcome:
    category: str
    items: List[ResultItem] = field(default_factory=list)
    attempts: List[ProviderAttempt] = field(default_factory=list)
    state: AttemptState = AttemptState.NOT_ATTEMPTED
    placeholder: bool = False


@dataclass
class CascadeResult:
    bundle: SearchBundle
    web: CategoryOutcome
    images: CategoryOutcome
    used_mock: bool = False

    @property
    def attempts(self) -> List[ProviderAttempt]:
        return self.web.attempts + self.images.attempts


class ResultAccumulator:
    """Ordered, capped, de-duplicated collection of one category's items.

    First writer wins: an item whose identity key is already present is dropped.
    """

    def __init__(self, cap: int):
        self.cap = cap
        self.items: List[ResultItem] = []
        self._keys = set()

    @property
    def remaining(self) -> int:
        return max(0, self.cap - len(self.items))

    @property
    def full(self) -> bool:
        return self.remaining == 0

    def add(self, items: Sequence[ResultItem]) -> int:
        added = 0
        for item in items:
            if self.full:
                break
            key = item.identity_key
            if key in self._keys:
                continue
            self._keys.add(key)
            self.items.append(item)
            added += 1
        return added


class EmbeddedImageSource:
    """Image "provider" that reuses images a web provider returned with its results.

    ``name`` is the web provider whose embedded images are used.
    """

    def __init__(self, name: str = "google"):
        self.name = name
        self._web_provider: Optional[SearchProvider] = None

    def bind(self, web_providers: Sequence[SearchProvider]) -> None:
        self._web_provider = next((p for p in web_providers if p.name == self.name), None)

    def is_configured(self) -> bool:
        return self._web_provider is not None and self._web_provider.is_configured()


ImageSource = Union[SearchProvider, EmbeddedImageSource]


class AggregationCascade:
    """Runs the web and image cascades for one query and assembles the bundle."""

    def __init__(
        self,
        web_providers: Sequence[SearchProvider],
        image_providers: Sequence[ImageSource],
        config: Optional[CascadeConfig] = None,
        logger: Optional[SearchLogger] = None,
    ) -> None:
        self.web_providers = list(web_providers)
        self.image_providers = list(image_providers)
        self.config = config or CascadeConfig()
        self.logger = logger or SearchLogger("cascade")

        for source in self.image_providers:
            if isinstance(source, EmbeddedImageSource):
                source.bind(self.web_providers)

    @property
    def limits(self) -> BundleLimits:
        return BundleLimits(max_web_results=self.config.max_web_results, max_images=self.config.max_images)

    async def run(
        self,
        query: str,
        verbose: bool = False,
        request_id: Optional[str] = None,
    ) -> CascadeResult:
        """Aggregate web results and images for ``query``.

        Never returns an empty bundle: placeholders fill a missing image
        category, and the mock bundle replaces a response with nothing in it.

        Raises:
            ValueError: If the query is empty.
            AggregationError: If the assembled bundle breaks the caps or contains duplicates.
        """
        if not query:
            raise ValueError("query must be a non-empty string")

        logger = self.logger.for_request(request_id, verbose=verbose)
        logger.log("cascade_started", {
            "query": query,
            "web_order": [p.name for p in self.web_providers],
            "image_order": [p.name for p in self.image_providers],
        })

        # Resolved by the web cascade with {provider name: embedded images}
        embedded: "asyncio.Future[Dict[str, List[ImageResult]]]" = asyncio.get_running_loop().create_future()

        web, images = await asyncio.gather(
            self._run_web(query, embedded, logger),
            self._run_images(query, embedded, logger),
        )

        used_mock = False
        if not web.items and not images.items:
            used_mock = True
            bundle = mock_search_bundle(
                query,
                web_count=min(self.config.mock_web_results, self.config.max_web_results),
                image_count=min(self.config.mock_images, self.config.max_images),
            )
            web.items, web.state = list(bundle.web_results), AttemptState.MOCK_FALLBACK
            images.items, images.state = list(bundle.images), AttemptState.MOCK_FALLBACK
            logger.warn("cascade_mock_fallback", {"query": query})
        else:
            if not images.items and web.items:
                count = min(len(web.items), self.config.placeholder_images, self.config.max_images)
                if count:
                    images.items = list(placeholder_images(query, count))
                    images.placeholder = True
                    logger.log("cascade_placeholder_images", {"query": query, "count": count})
            bundle = SearchBundle(web_results=web.items, images=images.items)

        validation = validate_bundle(bundle, self.limits)
        if not validation.ok:
            raise AggregationError(
                "aggregated bundle failed validation",
                request_id=logger.request_id,
                metadata={"errors": validation.errors},
            )

        logger.log("cascade_finished", {
            "query": query,
            "web_results": len(bundle.web_results),
            "images": len(bundle.images),
            "web_state": web.state.value,
            "image_state": images.state.value,
            "placeholder_images": images.placeholder,
            "mock": used_mock,
        })
        return CascadeResult(bundle=bundle, web=web, images=images, used_mock=used_mock)

    async def _run_web(self, query: str, embedded: asyncio.Future, logger: SearchLogger) -> CategoryOutcome:
        outcome = CategoryOutcome(category=WEB)
        found: Dict[str, List[ImageResult]] = {}
        try:
            accumulator = ResultAccumulator(self.config.max_web_results)
            for provider in self.web_providers:
                if accumulator.full:
                    break
                if not provider.is_configured():
                    self._record(outcome, logger, ProviderAttempt(WEB, provider.name, AttemptState.SKIPPED))
                    continue

                result = await provider.search(query, accumulator.remaining, logger=logger)
                if result.images:
                    found[provider.name] = list(result.images)
                self._record(outcome, logger, self._attempt(WEB, result, accumulator))
            self._finish(outcome, accumulator, logger)
        finally:
            if not embedded.done():
                embedded.set_result(found)
        return outcome

    async def _run_images(self, query: str, embedded: asyncio.Future, logger: SearchLogger) -> CategoryOutcome:
        outcome = CategoryOutcome(category=IMAGES)
        accumulator = ResultAccumulator(self.config.max_images)
        for source in self.image_providers:
            if accumulator.full:
                break
            if not source.is_configured():
                self._record(outcome, logger, ProviderAttempt(IMAGES, source.name, AttemptState.SKIPPED))
                continue

            if isinstance(source, EmbeddedImageSource):
                found = await embedded
                result = ProviderResult(provider=source.name, items=found.get(source.name, [])[:accumulator.remaining])
            else:
                result = await source.search(query, accumulator.remaining, logger=logger)
            self._record(outcome, logger, self._attempt(IMAGES, result, accumulator))
        self._finish(outcome, accumulator, logger)
        return outcome

    @staticmethod
    def _attempt(category: str, result: ProviderResult, accumulator: ResultAccumulator) -> ProviderAttempt:
        if not result.ok:
            return ProviderAttempt(
                category, result.provider, AttemptState.ERROR,
                error=result.error.message, latency_ms=result.latency_ms,
            )
        if result.empty:
            return ProviderAttempt(category, result.provider, AttemptState.EMPTY, latency_ms=result.latency_ms)
        added = accumulator.add(result.items)
        return ProviderAttempt(
            category, result.provider, AttemptState.SUCCESS, added=added, latency_ms=result.latency_ms,
        )

    @staticmethod
    def _record(outcome: CategoryOutcome, logger: SearchLogger, attempt: ProviderAttempt) -> None:
        outcome.attempts.append(attempt)
        payload = {
            "category": attempt.category,
            "provider": attempt.provider,
            "state": attempt.state.value,
            "added": attempt.added,
        }
        if attempt.error:
            payload["error"] = attempt.error
        logger.log("cascade_attempt", payload)

    @staticmethod
    def _finish(outcome: CategoryOutcome, accumulator: ResultAccumulator, logger: SearchLogger) -> None:
        outcome.items = list(accumulator.items)
        outcome.state = AttemptState.SUCCESS if outcome.items else AttemptState.EXHAUSTED
        logger.verbose("cascade_category_finished", {
            "category": outcome.category,
            "state": outcome.state.value,
            "count": len(outcome.items),
        })