from typing import Optional

import httpx

from .api_key_validator import is_configured
from .base import RawPage, SearchProvider
from .schema import ImageResult

PEXELS_SEARCH_URL = "https://api.pexels.com/v1/search"


class PexelsImageProvider(SearchProvider):
    """Stock photos from Pexels, with photographer attribution.

    The API key goes in the ``Authorization`` header as-is (no scheme).
    """

    name = "pexels"
    item_model = ImageResult

    HARD_LIMIT_SOURCES = 80

    def __init__(
        self,
        api_key: Optional[str],
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 8.0,
        url: str = PEXELS_SEARCH_URL,
    ) -> None:
        super().__init__(client=client, timeout_seconds=timeout_seconds)
        self.api_key = api_key
        self.url = url

    def is_configured(self) -> bool:
        return is_configured(self.api_key)

    async def _search(self, query: str, limit: int) -> RawPage:
        body = await self._get_json(
            self.url,
            params={"query": query, "per_page": limit},
            headers={"Authorization": self.api_key},
        )

        page = RawPage()
        for photo in body.get("photos") or []:
            if not isinstance(photo, dict):
                continue
            src = photo.get("src") or {}
            image_url = src.get("medium") or src.get("original")
            if not image_url:
                continue
            page.items.append({
                "image_url": image_url,
                "alt_text": photo.get("alt") or f"Image related to {query}",
                "photographer_name": photo.get("photographer"),
                "photographer_url": photo.get("photographer_url"),
                "source_platform": "Pexels",
                "source_url": photo.get("url"),
            })
        return page
