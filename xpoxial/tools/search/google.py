from typing import Any, Dict, List, Optional

import httpx

from .api_key_validator import all_configured
from .base import RawPage, SearchProvider
from .schema import ImageResult, WebResult, is_http_url

# Google Custom Search JSON API endpoint
GOOGLE_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"


class GoogleSearchProvider(SearchProvider):
    """Web search backed by the Google Custom Search JSON API.

    Notes on configuration:
    - API credentials:
        * API key: Obtain from Google Cloud Console (Custom Search API)
        * CX (Custom Search Engine ID): Create at https://cse.google.com
    - Embedded images:
        * Result pages often carry a ``pagemap.cse_image`` thumbnail; those are
          returned on the side so the image cascade can use them first.
    """

    name = "google"
    item_model = WebResult

    # Custom Search returns at most 10 items per request
    HARD_LIMIT_SOURCES = 10

    def __init__(
        self,
        api_key: Optional[str],
        cx: Optional[str],
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 8.0,
        url: str = GOOGLE_SEARCH_URL,
    ) -> None:
        super().__init__(client=client, timeout_seconds=timeout_seconds)
        self.api_key = api_key
        self.cx = cx
        self.url = url

    def is_configured(self) -> bool:
        return all_configured([self.api_key, self.cx])

    def _params(self, query: str, limit: int) -> Dict[str, Any]:
        return {
            "key": self.api_key,
            "cx": self.cx,
            "q": query,
            "num": limit,
        }

    async def _search(self, query: str, limit: int) -> RawPage:
        body = await self._get_json(self.url, params=self._params(query, limit))

        page = RawPage()
        for item in body.get("items") or []:
            if not isinstance(item, dict):
                # Skip malformed entries rather than failing the entire search
                continue

            link = item.get("link")
            if not is_http_url(link):
                continue

            page.items.append({
                "title": item.get("title") or "Untitled result",
                "link": link,
                "snippet": item.get("snippet") or "",
            })

            image_url = self._embedded_image(item)
            if image_url:
                page.images.append({
                    "image_url": image_url,
                    "alt_text": item.get("title") or f"Image related to {query}",
                    "source_platform": "Google",
                    "source_url": link,
                })

        return page

    @staticmethod
    def _embedded_image(item: Dict[str, Any]) -> Optional[str]:
        pagemap = item.get("pagemap")
        if not isinstance(pagemap, dict):
            return None
        images: List[Any] = pagemap.get("cse_image") or []
        if images and isinstance(images[0], dict):
            src = images[0].get("src")
            if is_http_url(src):
                return src
        return None


class GoogleImageSearchProvider(GoogleSearchProvider):
    """Image search through the same Custom Search engine (``searchType=image``)."""

    name = "google_images"
    item_model = ImageResult

    def _params(self, query: str, limit: int) -> Dict[str, Any]:
        params = super()._params(query, limit)
        params["searchType"] = "image"
        return params

    async def _search(self, query: str, limit: int) -> RawPage:
        body = await self._get_json(self.url, params=self._params(query, limit))

        page = RawPage()
        for item in body.get("items") or []:
            if not isinstance(item, dict) or not is_http_url(item.get("link")):
                continue
            image_meta = item.get("image") if isinstance(item.get("image"), dict) else {}
            context_link = image_meta.get("contextLink")
            page.items.append({
                "image_url": item["link"],
                "alt_text": item.get("title") or f"Image related to {query}",
                "source_platform": "Google",
                "source_url": context_link if is_http_url(context_link) else None,
            })
        return page
