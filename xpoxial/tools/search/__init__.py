from .schema import (
    AdvancedSearchOutput,
    EngineResultBundle,
    ImageResult,
    NewsArticle,
    NewsBundle,
    SearchBundle,
    WebResult,
)
from .base import ProviderFailure, ProviderResult, SearchProvider
from .cascade import AggregationCascade, AttemptState, CascadeResult, EmbeddedImageSource, ProviderAttempt
from .news import NewsSearch
from .advanced import AdvancedSearch, flatten_advanced_results
from .factory import SearchFactory
from .retry import RetryPolicy

__all__ = [
    "AdvancedSearchOutput",
    "EngineResultBundle",
    "ImageResult",
    "NewsArticle",
    "NewsBundle",
    "SearchBundle",
    "WebResult",
    "ProviderFailure",
    "ProviderResult",
    "SearchProvider",
    "AggregationCascade",
    "AttemptState",
    "CascadeResult",
    "EmbeddedImageSource",
    "ProviderAttempt",
    "NewsSearch",
    "AdvancedSearch",
    "flatten_advanced_results",
    "SearchFactory",
    "RetryPolicy",
]
