"""DuckDuckGo scraping providers.

DuckDuckGo has no keyed API. The scrapers sit last in their cascades and only
run when explicitly enabled (``search.cascade.scrapers_enabled``). Web results
come from the HTML-only endpoint; images come from the ``i.js`` endpoint,
which needs a ``vqd`` token scraped from a normal search page first.
"""

import re
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, unquote, urlparse

import httpx
from bs4 import BeautifulSoup

from xpoxial.services.shared.errors import ProviderError

from .base import RawPage, SearchProvider
from .schema import ImageResult, WebResult, is_http_url

DUCKDUCKGO_HTML_URL = "https://html.duckduckgo.com/html/"
DUCKDUCKGO_URL = "https://duckduckgo.com/"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122 Safari/537.36"
)

_VQD_PATTERNS = (
    re.compile(r"vqd=[\"']([\d-]+)[\"']"),
    re.compile(r"vqd=([\d-]+)&"),
    re.compile(r"\"vqd\"\s*:\s*\"([\d-]+)\""),
)


def unwrap_redirect(href: str) -> str:
    """Return the target of a ``/l/?uddg=`` redirect link, or the link itself."""
    if href.startswith("//"):
        href = "https:" + href
    parsed = urlparse(href)
    if "duckduckgo.com" in parsed.netloc and parsed.path.startswith("/l/"):
        target = parse_qs(parsed.query).get("uddg")
        if target and target[0]:
            return unquote(target[0])
    return href


def parse_html_results(html: str, limit: int) -> List[Dict[str, Any]]:
    soup = BeautifulSoup(html, "html.parser")
    results: List[Dict[str, Any]] = []
    seen = set()

    for block in soup.select("div.result"):
        anchor = block.select_one("a.result__a")
        if anchor is None or not anchor.get("href"):
            continue
        link = unwrap_redirect(anchor["href"])
        if not is_http_url(link) or link in seen:
            continue
        # Sponsored entries point back into duckduckgo.com/y.js
        if "duckduckgo.com" in urlparse(link).netloc:
            continue
        seen.add(link)

        snippet_node = block.select_one(".result__snippet")
        results.append({
            "title": anchor.get_text(" ", strip=True) or link,
            "link": link,
            "snippet": snippet_node.get_text(" ", strip=True) if snippet_node else "",
        })
        if len(results) >= limit:
            break

    return results


def extract_vqd(html: str) -> Optional[str]:
    for pattern in _VQD_PATTERNS:
        match = pattern.search(html)
        if match:
            return match.group(1)
    return None


class DuckDuckGoSearchProvider(SearchProvider):
    """Web results scraped from html.duckduckgo.com."""

    name = "duckduckgo"
    item_model = WebResult

    HARD_LIMIT_SOURCES = 30

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 8.0,
        url: str = DUCKDUCKGO_HTML_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        enabled: bool = False,
    ) -> None:
        super().__init__(client=client, timeout_seconds=timeout_seconds)
        self.enabled = enabled
        self.url = url
        self.user_agent = user_agent

    def is_configured(self) -> bool:
        return self.enabled

    async def _search(self, query: str, limit: int) -> RawPage:
        response = await self._request(
            "POST",
            self.url,
            data={"q": query},
            headers={"User-Agent": self.user_agent},
        )
        return RawPage(items=parse_html_results(response.text, limit))


class DuckDuckGoImageProvider(SearchProvider):
    """Images from DuckDuckGo's ``i.js`` endpoint."""

    name = "duckduckgo"
    item_model = ImageResult

    HARD_LIMIT_SOURCES = 100

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 8.0,
        url: str = DUCKDUCKGO_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        enabled: bool = False,
    ) -> None:
        super().__init__(client=client, timeout_seconds=timeout_seconds)
        self.enabled = enabled
        self.url = url if url.endswith("/") else url + "/"
        self.user_agent = user_agent

    def is_configured(self) -> bool:
        return self.enabled

    async def _token(self, query: str) -> str:
        response = await self._request(
            "GET",
            self.url,
            params={"q": query, "iax": "images", "ia": "images"},
            headers={"User-Agent": self.user_agent},
        )
        vqd = extract_vqd(response.text)
        if not vqd:
            raise ProviderError("duckduckgo did not return a vqd token", self.name)
        return vqd

    async def _search(self, query: str, limit: int) -> RawPage:
        vqd = await self._token(query)
        body = await self._get_json(
            self.url + "i.js",
            params={"q": query, "o": "json", "l": "us-en", "vqd": vqd, "f": ",,,", "p": "1"},
            headers={"User-Agent": self.user_agent, "Referer": self.url},
        )

        page = RawPage()
        for entry in body.get("results") or []:
            if not isinstance(entry, dict):
                continue
            image_url = entry.get("image") or entry.get("thumbnail")
            if not is_http_url(image_url):
                continue
            source_url = entry.get("url")
            page.items.append({
                "image_url": image_url,
                "alt_text": entry.get("title") or f"Image related to {query}",
                "source_platform": "DuckDuckGo",
                "source_url": source_url if is_http_url(source_url) else None,
            })
            if len(page.items) >= limit:
                break
        return page
