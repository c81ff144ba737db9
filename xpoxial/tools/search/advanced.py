import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from xpoxial.services.shared.errors import AggregationError
from xpoxial.services.shared.logger import SearchLogger
from xpoxial.services.shared.settings import AdvancedSearchConfig

from .cascade import ResultAccumulator
from .mock import mock_advanced_results
from .normalizer import BundleLimits, validate_advanced
from .schema import AdvancedSearchOutput, EngineResultBundle
from .serpapi import SerpApiProvider

_LISTS = ("web_results", "image_results", "video_results", "related_questions")


@dataclass
class AdvancedOutcome:
    results: AdvancedSearchOutput
    used_mock: bool = False


def _trim(bundle: EngineResultBundle, cap: int) -> EngineResultBundle:
    """De-duplicate and cap each of an engine's lists, keeping engine order."""
    trimmed: Dict[str, Any] = {}
    for name in _LISTS:
        accumulator = ResultAccumulator(cap)
        for item in getattr(bundle, name):
            # Items without a key can't collide; keep them while there's room
            if not item.identity_key:
                if not accumulator.full:
                    accumulator.items.append(item)
                continue
            accumulator.add([item])
        trimmed[name] = accumulator.items
    return bundle.model_copy(update=trimmed)


class AdvancedSearch:
    """Fans a query out to several engines through SerpApi.

    Each engine succeeds or fails on its own; a failure only sets that
    engine's ``error``. Mock data replaces the whole response only when the
    API isn't configured or no engine returned anything usable.
    """

    def __init__(
        self,
        provider: SerpApiProvider,
        config: Optional[AdvancedSearchConfig] = None,
        logger: Optional[SearchLogger] = None,
    ) -> None:
        self.provider = provider
        self.config = config or AdvancedSearchConfig()
        self.logger = logger or SearchLogger("advanced")

    @property
    def engines(self) -> Sequence[str]:
        return self.config.engines

    async def search(
        self,
        query: str,
        verbose: bool = False,
        request_id: Optional[str] = None,
    ) -> AdvancedOutcome:
        if not query:
            raise ValueError("query must be a non-empty string")

        logger = self.logger.for_request(request_id, verbose=verbose)

        if not self.provider.is_configured():
            logger.warn("advanced_search_not_configured", {"provider": self.provider.name})
            return AdvancedOutcome(results=mock_advanced_results(query, self.engines), used_mock=True)

        bundles = await asyncio.gather(*(self._search_engine(engine, query, logger) for engine in self.engines))
        results: AdvancedSearchOutput = dict(zip(self.engines, bundles))

        if not any(bundle.error is None and bundle.has_results() for bundle in results.values()):
            logger.warn("advanced_search_mock_fallback", {
                "query": query,
                "errors": {engine: bundle.error for engine, bundle in results.items()},
            })
            return AdvancedOutcome(results=mock_advanced_results(query, self.engines), used_mock=True)

        validation = validate_advanced(results, BundleLimits(max_results_per_list=self.config.max_results_per_list))
        if not validation.ok:
            raise AggregationError(
                "advanced search output failed validation",
                request_id=logger.request_id,
                metadata={"errors": validation.errors},
            )

        logger.log("advanced_search_finished", {
            "query": query,
            "engines": {
                engine: {name: len(getattr(bundle, name)) for name in _LISTS} if bundle.error is None else "error"
                for engine, bundle in results.items()
            },
        })
        return AdvancedOutcome(results=results)

    async def _search_engine(self, engine: str, query: str, logger: SearchLogger) -> EngineResultBundle:
        logger.verbose("advanced_engine_request", {"engine": engine, "query": query})
        try:
            bundle = await asyncio.wait_for(
                self.provider.search_engine(engine, query),
                timeout=self.provider.timeout_seconds,
            )
        except asyncio.TimeoutError:
            message = f"{engine} timed out after {self.provider.timeout_seconds}s"
            logger.warn("advanced_engine_failed", {"engine": engine, "error": message})
            return EngineResultBundle(error=message)
        except Exception as e:
            message = getattr(e, "message", None) or str(e) or "An unknown error occurred"
            logger.warn("advanced_engine_failed", {"engine": engine, "error": message, "type": type(e).__name__})
            return EngineResultBundle(error=message)

        return _trim(bundle, self.config.max_results_per_list)


def flatten_advanced_results(results: AdvancedSearchOutput) -> Dict[str, List[Dict[str, Any]]]:
    """Merge every engine's lists into single lists, each item tagged with its engine."""
    flat: Dict[str, List[Dict[str, Any]]] = {name: [] for name in _LISTS}
    for engine, bundle in results.items():
        for name in _LISTS:
            for item in getattr(bundle, name):
                entry = item.model_dump(exclude_none=True)
                entry["engine"] = engine
                flat[name].append(entry)
    return flat
