from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from xpoxial.services.shared.errors import ProviderError

from .api_key_validator import is_configured
from .base import RawPage, SearchProvider
from .schema import EngineResultBundle, EngineWebResult

SERPAPI_URL = "https://serpapi.com/search.json"

# Yahoo takes its query as ``p``; every other engine uses ``q``.
QUERY_PARAM = {"yahoo": "p"}

# SerpApi response key -> (bundle field, fields kept per item)
_SECTIONS = {
    "organic_results": ("web_results", ("position", "title", "link", "snippet")),
    "images_results": ("image_results", ("position", "thumbnail", "original", "title", "link", "source")),
    "video_results": ("video_results", ("position", "title", "link", "thumbnail", "duration")),
    "related_questions": ("related_questions", ("question", "snippet", "title", "link")),
}


def _pick(entry: Dict[str, Any], fields) -> Dict[str, Any]:
    return {name: entry[name] for name in fields if entry.get(name) is not None}


class SerpApiProvider(SearchProvider):
    """Meta-search through SerpApi, one request per engine.

    ``search_engine`` is what the advanced search fans out over; it is the
    only entry point. ``search`` reports a non-retryable failure.
    """

    name = "serpapi"
    item_model = EngineWebResult

    HARD_LIMIT_SOURCES = 100

    def __init__(
        self,
        api_key: Optional[str],
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 8.0,
        url: str = SERPAPI_URL,
    ) -> None:
        super().__init__(client=client, timeout_seconds=timeout_seconds)
        self.api_key = api_key
        self.url = url

    def is_configured(self) -> bool:
        return is_configured(self.api_key)

    async def _fetch(self, engine: str, query: str) -> Dict[str, Any]:
        params = {
            "engine": engine,
            "api_key": self.api_key,
            QUERY_PARAM.get(engine, "q"): query,
        }
        body = await self._get_json(self.url, params=params)
        if body.get("error"):
            raise ProviderError(f"{engine}: {body['error']}", self.name, retryable=False)
        return body

    async def search_engine(self, engine: str, query: str) -> EngineResultBundle:
        """Query one engine and map its sections into a bundle.

        Raises:
            ProviderError: On transport failure, an error payload or an
                unparseable response.
        """
        body = await self._fetch(engine, query)

        sections: Dict[str, List[Dict[str, Any]]] = {}
        for key, (field_name, fields) in _SECTIONS.items():
            entries = body.get(key) or []
            if not isinstance(entries, list):
                continue
            sections[field_name] = [_pick(entry, fields) for entry in entries if isinstance(entry, dict)]

        try:
            return EngineResultBundle.model_validate(sections)
        except ValidationError as e:
            raise ProviderError(f"{engine} returned a malformed payload", self.name, retryable=False) from e

    async def _search(self, query: str, limit: int) -> RawPage:
        # SerpApi is only reached through search_engine
        raise ProviderError("serpapi requires an engine; use search_engine", self.name, retryable=False)
