from typing import List, Optional

import httpx

from xpoxial.services.shared.logger import SearchLogger
from xpoxial.services.shared.settings import XpoxialSettings, get_settings

from .advanced import AdvancedSearch
from .base import SearchProvider
from .cascade import AggregationCascade, EmbeddedImageSource, ImageSource
from .duckduckgo import DuckDuckGoImageProvider, DuckDuckGoSearchProvider
from .google import GoogleImageSearchProvider, GoogleSearchProvider
from .news import NewsSearch
from .newsapi import NewsApiProvider
from .pexels import PexelsImageProvider
from .retry import RetryPolicy, Sleep
from .serpapi import SerpApiProvider
from .unsplash import UnsplashImageProvider


class SearchFactory:
    """Builds providers and search pipelines from settings.

    Each provider is handed only its own credentials and endpoint, plus the
    shared HTTP client. Priority orders come from ``settings.search.cascade``.

    Example:
        async with httpx.AsyncClient() as client:
            factory = SearchFactory(get_settings(), client=client)
            result = await factory.cascade().run("quantum computing")
    """

    def __init__(
        self,
        settings: Optional[XpoxialSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client
        self.sleep = sleep

    @property
    def _timeout(self) -> float:
        return self.settings.search.cascade.provider_timeout_seconds

    def get_web_provider(self, provider_type: str) -> SearchProvider:
        creds = self.settings.credentials
        endpoints = self.settings.search.endpoints
        if provider_type == "google":
            return GoogleSearchProvider(
                api_key=creds.secret("search_api_key"),
                cx=creds.secret("search_engine_id"),
                client=self.client,
                timeout_seconds=self._timeout,
                url=endpoints.google_search_url,
            )
        elif provider_type == "duckduckgo":
            return DuckDuckGoSearchProvider(
                client=self.client,
                timeout_seconds=self._timeout,
                url=endpoints.duckduckgo_html_url,
                user_agent=self.settings.search.user_agent,
                enabled=self.settings.search.cascade.scrapers_enabled,
            )
        else:
            raise ValueError(f"Unknown web provider type: {provider_type}")

    def get_image_source(self, provider_type: str) -> ImageSource:
        creds = self.settings.credentials
        endpoints = self.settings.search.endpoints
        if provider_type == "google":
            # Thumbnails embedded in Google's web results
            return EmbeddedImageSource("google")
        elif provider_type == "google_images":
            return GoogleImageSearchProvider(
                api_key=creds.secret("search_api_key"),
                cx=creds.secret("search_engine_id"),
                client=self.client,
                timeout_seconds=self._timeout,
                url=endpoints.google_search_url,
            )
        elif provider_type == "pexels":
            return PexelsImageProvider(
                api_key=creds.secret("pexels_api_key"),
                client=self.client,
                timeout_seconds=self._timeout,
                url=endpoints.pexels_search_url,
            )
        elif provider_type == "unsplash":
            return UnsplashImageProvider(
                api_key=creds.secret("unsplash_api_key"),
                client=self.client,
                timeout_seconds=self._timeout,
                url=endpoints.unsplash_search_url,
            )
        elif provider_type == "duckduckgo":
            return DuckDuckGoImageProvider(
                client=self.client,
                timeout_seconds=self._timeout,
                url=endpoints.duckduckgo_url,
                user_agent=self.settings.search.user_agent,
                enabled=self.settings.search.cascade.scrapers_enabled,
            )
        else:
            raise ValueError(f"Unknown image provider type: {provider_type}")

    def web_providers(self) -> List[SearchProvider]:
        return [self.get_web_provider(name) for name in self.settings.search.cascade.web_order]

    def image_sources(self) -> List[ImageSource]:
        return [self.get_image_source(name) for name in self.settings.search.cascade.image_order]

    def news_provider(self) -> NewsApiProvider:
        return NewsApiProvider(
            api_key=self.settings.credentials.secret("news_api_key"),
            client=self.client,
            timeout_seconds=self._timeout,
            url=self.settings.search.endpoints.newsapi_url,
        )

    def serp_provider(self) -> SerpApiProvider:
        return SerpApiProvider(
            api_key=self.settings.credentials.secret("serp_api_key"),
            client=self.client,
            timeout_seconds=self._timeout,
            url=self.settings.search.endpoints.serpapi_url,
        )

    def cascade(self, logger: Optional[SearchLogger] = None) -> AggregationCascade:
        return AggregationCascade(
            web_providers=self.web_providers(),
            image_providers=self.image_sources(),
            config=self.settings.search.cascade,
            logger=logger,
        )

    def news(self, logger: Optional[SearchLogger] = None, clock=None) -> NewsSearch:
        config = self.settings.search.news
        return NewsSearch(
            provider=self.news_provider(),
            config=config,
            retry_policy=RetryPolicy(config.max_attempts, config.retry_delay_seconds, sleep=self.sleep),
            logger=logger,
            clock=clock,
        )

    def advanced(self, logger: Optional[SearchLogger] = None) -> AdvancedSearch:
        return AdvancedSearch(
            provider=self.serp_provider(),
            config=self.settings.search.advanced,
            logger=logger,
        )
