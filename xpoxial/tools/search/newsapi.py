from typing import Any, Dict, List, Optional

import httpx

from .api_key_validator import is_configured
from .base import RawPage, SearchProvider
from .schema import REMOVED_TITLE_SENTINEL, NewsArticle

NEWSAPI_URL = "https://newsapi.org/v2/everything"


def _usable(article: Any) -> bool:
    if not isinstance(article, dict):
        return False
    source = article.get("source") or {}
    return bool(
        article.get("title")
        and article.get("url")
        and isinstance(source, dict) and source.get("name")
        and article.get("publishedAt")
        and article.get("title") != REMOVED_TITLE_SENTINEL
    )


class NewsApiProvider(SearchProvider):
    """Recent articles from NewsAPI's ``/v2/everything`` endpoint, newest first.

    Articles NewsAPI has blanked out (title ``[Removed]``) or that lack a
    title, URL, source name or timestamp are dropped before counting.
    """

    name = "newsapi"
    item_model = NewsArticle

    HARD_LIMIT_SOURCES = 100

    def __init__(
        self,
        api_key: Optional[str],
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 8.0,
        url: str = NEWSAPI_URL,
    ) -> None:
        super().__init__(client=client, timeout_seconds=timeout_seconds)
        self.api_key = api_key
        self.url = url

    def is_configured(self) -> bool:
        return is_configured(self.api_key)

    async def _search(self, query: str, limit: int) -> RawPage:
        body = await self._get_json(
            self.url,
            params={
                "q": query,
                "apiKey": self.api_key,
                "pageSize": limit,
                "sortBy": "publishedAt",
            },
        )

        articles: List[Dict[str, Any]] = []
        for article in body.get("articles") or []:
            if not _usable(article):
                continue
            articles.append({
                "title": article["title"],
                "description": article.get("description") or None,
                "url": article["url"],
                "source": article["source"]["name"],
                "published_at": article["publishedAt"],
            })
        return RawPage(items=articles)
