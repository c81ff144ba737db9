from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from xpoxial.services.shared.errors import AggregationError
from xpoxial.services.shared.logger import SearchLogger
from xpoxial.services.shared.settings import NewsConfig

from .base import ProviderResult, SearchProvider
from .cascade import ResultAccumulator
from .mock import mock_news
from .normalizer import BundleLimits, validate_news
from .retry import RetryPolicy
from .schema import NewsBundle


@dataclass
class NewsOutcome:
    bundle: NewsBundle
    attempts: int = 0
    used_mock: bool = False
    error: Optional[str] = None


class NewsSearch:
    """News search with a bounded retry and a mock fallback.

    A 4xx from the provider aborts immediately; network errors, 5xx and empty
    result sets are retried until the policy gives up. Either way the caller
    gets articles: real ones or the deterministic mock set.
    """

    def __init__(
        self,
        provider: SearchProvider,
        config: Optional[NewsConfig] = None,
        retry_policy: Optional[RetryPolicy] = None,
        logger: Optional[SearchLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.provider = provider
        self.config = config or NewsConfig()
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=self.config.max_attempts,
            delay_seconds=self.config.retry_delay_seconds,
        )
        self.logger = logger or SearchLogger("news")
        self.clock = clock

    async def search(
        self,
        query: str,
        verbose: bool = False,
        request_id: Optional[str] = None,
    ) -> NewsOutcome:
        if not query:
            raise ValueError("query must be a non-empty string")

        logger = self.logger.for_request(request_id, verbose=verbose)

        if not self.provider.is_configured():
            logger.warn("news_provider_not_configured", {"provider": self.provider.name})
            return self._mock(query, logger, attempts=0, reason="not configured")

        outcome = await self.retry_policy.run(
            lambda: self.provider.search(query, self.config.max_articles, logger=logger),
            is_done=lambda result: result.ok and not result.empty,
            is_fatal=lambda result: result.error is not None and not result.error.retryable,
            logger=logger,
            label=f"news.{self.provider.name}",
        )

        result: Optional[ProviderResult] = outcome.value
        if not outcome.succeeded:
            reason = "exhausted"
            if result is not None and result.error is not None:
                reason = result.error.message
            return self._mock(query, logger, attempts=outcome.attempts, reason=reason)

        accumulator = ResultAccumulator(self.config.max_articles)
        accumulator.add(result.items)
        bundle = NewsBundle(articles=accumulator.items)
        validation = validate_news(bundle, BundleLimits(max_news_articles=self.config.max_articles))
        if not validation.ok:
            raise AggregationError(
                "news bundle failed validation",
                request_id=logger.request_id,
                metadata={"errors": validation.errors},
            )

        logger.log("news_search_finished", {
            "query": query,
            "articles": len(bundle.articles),
            "attempts": outcome.attempts,
        })
        return NewsOutcome(bundle=bundle, attempts=outcome.attempts)

    def _mock(self, query: str, logger: SearchLogger, attempts: int, reason: str) -> NewsOutcome:
        now = self.clock() if self.clock else None
        bundle = NewsBundle(articles=mock_news(query, self.config.max_articles, now=now))
        logger.warn("news_mock_fallback", {"query": query, "attempts": attempts, "reason": reason})
        return NewsOutcome(bundle=bundle, attempts=attempts, used_mock=True, error=reason)
