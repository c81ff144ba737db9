import abc
import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Type

import httpx

from xpoxial.services.shared.errors import ProviderError
from xpoxial.services.shared.logger import SearchLogger

from .normalizer import validate_items
from .schema import ImageResult, ResultItem


@dataclass(frozen=True)
class ProviderFailure:
    """Error marker returned in place of an exception."""
    message: str
    status_code: Optional[int] = None
    retryable: bool = True


@dataclass
class RawPage:
    """What a provider's ``_search`` hands back before validation."""
    items: List[Any] = field(default_factory=list)
    # Images a web provider found alongside its text results.
    images: List[Any] = field(default_factory=list)


@dataclass
class ProviderResult:
    provider: str
    items: List[ResultItem] = field(default_factory=list)
    images: List[ImageResult] = field(default_factory=list)
    error: Optional[ProviderFailure] = None
    latency_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def empty(self) -> bool:
        return not self.items


class SearchProvider(abc.ABC):
    """Abstract Base Class for Search Providers.

    Enforces a consistent interface regardless of the underlying API (Google, Pexels, NewsAPI, etc.).
    Subclasses implement ``_search`` and may raise; callers use ``search``, which never does.
    """

    name: str = "provider"
    item_model: Type[ResultItem] = ResultItem

    # Largest page the upstream API accepts
    HARD_LIMIT_SOURCES = 10

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 8.0,
    ) -> None:
        self.client = client
        self.timeout_seconds = timeout_seconds

    @abc.abstractmethod
    def is_configured(self) -> bool:
        """True when every credential the provider needs is present and not a placeholder."""
        pass

    @abc.abstractmethod
    async def _search(self, query: str, limit: int) -> RawPage:
        """Call the upstream API and map its payload to item dicts.

        Raises:
            ProviderError: If the downstream API fails or returns an unusable payload.
        """
        pass

    def _validate_limit(self, requested: int) -> int:
        """Clamps the requested limit to the provider's hard cap."""
        if requested < 1:
            return 1
        return min(requested, self.HARD_LIMIT_SOURCES)

    async def search(self, query: str, limit: int, logger: Optional[SearchLogger] = None) -> ProviderResult:
        """Execute a query and return validated items or an error marker.

        ``limit`` is an upper bound; providers may return fewer items.
        """
        logger = logger or SearchLogger(f"provider.{self.name}")
        safe_limit = self._validate_limit(limit)
        start_time = time.time()

        if not self.is_configured():
            return ProviderResult(
                provider=self.name,
                error=ProviderFailure(f"{self.name} is not configured", retryable=False),
            )

        logger.verbose("provider_request", {"provider": self.name, "query": query, "limit": safe_limit})

        try:
            page = await asyncio.wait_for(self._search(query, safe_limit), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            return self._failed(logger, start_time, ProviderFailure(
                f"{self.name} timed out after {self.timeout_seconds}s"))
        except ProviderError as e:
            return self._failed(logger, start_time, ProviderFailure(
                e.message, status_code=e.status_code, retryable=e.retryable))
        except Exception as e:
            logger.warn("provider_unexpected_error", {"provider": self.name, "error_type": type(e).__name__})
            return self._failed(logger, start_time, ProviderFailure(f"{self.name} unexpected error: {e}"))

        items = validate_items(page.items[:safe_limit], self.item_model)
        if not items.ok:
            return self._failed(logger, start_time, ProviderFailure(
                f"{self.name} returned a malformed payload: {'; '.join(items.errors[:3])}",
                retryable=False,
            ))

        images = validate_items(page.images, ImageResult)
        latency_ms = round((time.time() - start_time) * 1000.0, 2)
        result = ProviderResult(
            provider=self.name,
            items=items.value,
            images=images.value if images.ok else [],
            latency_ms=latency_ms,
        )
        logger.verbose("provider_response", {
            "provider": self.name,
            "count": len(result.items),
            "embedded_images": len(result.images),
            "latency_ms": latency_ms,
        })
        return result

    def _failed(self, logger: SearchLogger, start_time: float, failure: ProviderFailure) -> ProviderResult:
        latency_ms = round((time.time() - start_time) * 1000.0, 2)
        logger.warn("provider_failed", {
            "provider": self.name,
            "error": failure.message,
            "status_code": failure.status_code,
            "retryable": failure.retryable,
        })
        return ProviderResult(provider=self.name, error=failure, latency_ms=latency_ms)

    # === HTTP helpers ===

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.client is not None:
            yield self.client
        else:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, follow_redirects=True) as client:
                yield client

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        async with self._session() as client:
            try:
                response = await client.request(method, url, params=params, headers=headers, data=data)
            except httpx.TimeoutException as e:
                raise ProviderError(f"{self.name} request timed out", self.name) from e
            except httpx.HTTPError as e:
                raise ProviderError(f"{self.name} connection error: {e}", self.name) from e

        if not response.is_success:
            raise ProviderError(
                f"{self.name} returned status {response.status_code}: {self._error_detail(response)}",
                self.name,
                status_code=response.status_code,
            )
        return response

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None,
                        headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        response = await self._request("GET", url, params=params, headers=headers)
        try:
            body = response.json()
        except ValueError as e:
            raise ProviderError(f"{self.name} returned invalid JSON.", self.name, retryable=False) from e
        if not isinstance(body, dict):
            raise ProviderError(f"{self.name} returned a non-object payload.", self.name, retryable=False)
        return body

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(body, dict):
            # APIs surface errors as a string or as an object with a message
            error = body.get("error") or body.get("message") or body.get("errors")
            if isinstance(error, dict):
                return str(error.get("message", error))
            return str(error or "")
        return ""
