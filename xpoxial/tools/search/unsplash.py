from typing import Optional

import httpx

from .api_key_validator import is_configured
from .base import RawPage, SearchProvider
from .schema import ImageResult

UNSPLASH_SEARCH_URL = "https://api.unsplash.com/search/photos"


class UnsplashImageProvider(SearchProvider):
    """Photos from Unsplash.

    Unsplash's guidelines ask that ``links.download_location`` be pinged when
    a photo is actually downloaded; displaying search thumbnails doesn't count.
    """

    name = "unsplash"
    item_model = ImageResult

    HARD_LIMIT_SOURCES = 30

    def __init__(
        self,
        api_key: Optional[str],
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 8.0,
        url: str = UNSPLASH_SEARCH_URL,
    ) -> None:
        super().__init__(client=client, timeout_seconds=timeout_seconds)
        self.api_key = api_key
        self.url = url

    def is_configured(self) -> bool:
        return is_configured(self.api_key)

    async def _search(self, query: str, limit: int) -> RawPage:
        body = await self._get_json(
            self.url,
            params={"query": query, "per_page": limit, "client_id": self.api_key},
        )

        page = RawPage()
        for photo in body.get("results") or []:
            if not isinstance(photo, dict):
                continue
            urls = photo.get("urls") or {}
            image_url = urls.get("regular") or urls.get("small")
            if not image_url:
                continue
            user = photo.get("user") or {}
            links = photo.get("links") or {}
            page.items.append({
                "image_url": image_url,
                "alt_text": (
                    photo.get("alt_description")
                    or photo.get("description")
                    or f"Image related to {query}"
                ),
                "photographer_name": user.get("name"),
                "photographer_url": (user.get("links") or {}).get("html"),
                "source_platform": "Unsplash",
                "source_url": links.get("html"),
            })
        return page
