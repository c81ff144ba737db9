"""Provider clients against canned upstream payloads (httpx.MockTransport)."""

import unittest

import httpx

from xpoxial.services.shared.errors import ProviderError
from xpoxial.tools.search.duckduckgo import (
    DuckDuckGoImageProvider,
    DuckDuckGoSearchProvider,
    extract_vqd,
    parse_html_results,
    unwrap_redirect,
)
from xpoxial.tools.search.google import GoogleImageSearchProvider, GoogleSearchProvider
from xpoxial.tools.search.pexels import PexelsImageProvider
from xpoxial.tools.search.serpapi import SerpApiProvider
from xpoxial.tools.search.unsplash import UnsplashImageProvider

DDG_HTML = """
<html><body>
<div class="result results_links results_links_deep web-result">
  <h2 class="result__title">
    <a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fwww.python.org%2F&amp;rut=abc">Welcome to <b>Python</b>.org</a>
  </h2>
  <a class="result__snippet" href="#">The official home of the <b>Python</b> Programming Language</a>
</div>
<div class="result results_links">
  <a class="result__a" href="https://duckduckgo.com/y.js?ad_provider=x">Sponsored</a>
</div>
<div class="result results_links">
  <a class="result__a" href="https://docs.python.org/3/">Python docs</a>
  <div class="result__snippet">Documentation</div>
</div>
<div class="result results_links">
  <a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fwww.python.org%2F">Duplicate</a>
</div>
</body></html>
"""


class RecordingTransport:
    def __init__(self, handler):
        self.handler = handler
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.handler(request)


class ProviderTestCase(unittest.IsolatedAsyncioTestCase):

    def client(self, handler):
        self.transport = RecordingTransport(handler)
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.transport))
        self.addAsyncCleanup(client.aclose)
        return client


class TestGoogleProviders(ProviderTestCase):

    async def test_web_results_and_embedded_images(self):
        payload = {"items": [
            {
                "title": "Python",
                "link": "https://www.python.org/",
                "snippet": "Official site",
                "pagemap": {"cse_image": [{"src": "https://www.python.org/logo.png"}]},
            },
            {"link": "https://pypi.org/"},
            {"title": "no link"},
        ]}
        provider = GoogleSearchProvider("key", "cx-id", client=self.client(lambda r: httpx.Response(200, json=payload)))

        result = await provider.search("python", 5)

        self.assertTrue(result.ok)
        self.assertEqual([item.link for item in result.items], ["https://www.python.org/", "https://pypi.org/"])
        self.assertEqual(result.items[1].title, "Untitled result")
        self.assertEqual(result.items[1].snippet, "")
        self.assertEqual(len(result.images), 1)
        self.assertEqual(result.images[0].image_url, "https://www.python.org/logo.png")
        self.assertEqual(result.images[0].source_url, "https://www.python.org/")

        params = self.transport.requests[0].url.params
        self.assertEqual(params["key"], "key")
        self.assertEqual(params["cx"], "cx-id")
        self.assertEqual(params["num"], "5")

    async def test_hostless_urls_do_not_discard_the_page(self):
        payload = {"items": [
            {"title": "Broken", "link": "https://"},
            {
                "title": "Python",
                "link": "https://www.python.org/",
                "pagemap": {"cse_image": [{"src": "https://"}]},
            },
        ]}
        provider = GoogleSearchProvider("key", "cx-id", client=self.client(lambda r: httpx.Response(200, json=payload)))

        result = await provider.search("python", 5)

        self.assertTrue(result.ok)
        self.assertEqual([item.link for item in result.items], ["https://www.python.org/"])
        self.assertEqual(result.images, [])

    async def test_requires_both_key_and_engine_id(self):
        provider = GoogleSearchProvider("key", "YOUR_SEARCH_ENGINE_ID",
                                        client=self.client(lambda r: httpx.Response(200, json={})))

        result = await provider.search("python", 5)

        self.assertFalse(result.ok)
        self.assertEqual(self.transport.requests, [])

    async def test_limit_is_clamped_to_api_maximum(self):
        provider = GoogleSearchProvider("key", "cx", client=self.client(lambda r: httpx.Response(200, json={})))

        await provider.search("python", 50)

        self.assertEqual(self.transport.requests[0].url.params["num"], "10")

    async def test_image_search(self):
        payload = {"items": [{
            "link": "https://img.example.org/a.jpg",
            "title": "A",
            "image": {"contextLink": "https://example.org/page"},
        }]}
        provider = GoogleImageSearchProvider("key", "cx", client=self.client(lambda r: httpx.Response(200, json=payload)))

        result = await provider.search("cats", 6)

        self.assertEqual(self.transport.requests[0].url.params["searchType"], "image")
        self.assertEqual(result.items[0].image_url, "https://img.example.org/a.jpg")
        self.assertEqual(result.items[0].source_url, "https://example.org/page")

    async def test_client_error_is_not_retryable(self):
        body = {"error": {"code": 403, "message": "Daily limit exceeded"}}
        provider = GoogleSearchProvider("key", "cx", client=self.client(lambda r: httpx.Response(403, json=body)))

        result = await provider.search("python", 5)

        self.assertFalse(result.ok)
        self.assertEqual(result.error.status_code, 403)
        self.assertFalse(result.error.retryable)
        self.assertIn("Daily limit exceeded", result.error.message)

    async def test_server_error_is_retryable(self):
        provider = GoogleSearchProvider("key", "cx", client=self.client(lambda r: httpx.Response(502, text="bad gateway")))

        result = await provider.search("python", 5)

        self.assertTrue(result.error.retryable)

    async def test_transport_failure_becomes_error_marker(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = GoogleSearchProvider("key", "cx", client=self.client(refuse))

        result = await provider.search("python", 5)

        self.assertFalse(result.ok)
        self.assertIn("connection error", result.error.message)


class TestStockPhotoProviders(ProviderTestCase):

    async def test_pexels_sends_key_in_authorization_header(self):
        payload = {"photos": [{
            "url": "https://www.pexels.com/photo/1/",
            "photographer": "Jane",
            "photographer_url": "https://www.pexels.com/@jane",
            "alt": "A lake",
            "src": {"medium": "https://images.pexels.com/1-medium.jpg", "original": "https://images.pexels.com/1.jpg"},
        }]}
        provider = PexelsImageProvider("pexels-key", client=self.client(lambda r: httpx.Response(200, json=payload)))

        result = await provider.search("lake", 6)

        request = self.transport.requests[0]
        self.assertEqual(request.headers["Authorization"], "pexels-key")
        self.assertEqual(request.url.params["per_page"], "6")
        image = result.items[0]
        self.assertEqual(image.image_url, "https://images.pexels.com/1-medium.jpg")
        self.assertEqual(image.photographer_name, "Jane")
        self.assertEqual(image.source_platform, "Pexels")

    async def test_unsplash_maps_attribution(self):
        payload = {"results": [{
            "alt_description": None,
            "description": "Forest",
            "urls": {"regular": "https://images.unsplash.com/photo-1"},
            "user": {"name": "Sam", "links": {"html": "https://unsplash.com/@sam"}},
            "links": {"html": "https://unsplash.com/photos/1"},
        }]}
        provider = UnsplashImageProvider("unsplash-key", client=self.client(lambda r: httpx.Response(200, json=payload)))

        result = await provider.search("forest", 6)

        self.assertEqual(self.transport.requests[0].url.params["client_id"], "unsplash-key")
        image = result.items[0]
        self.assertEqual(image.alt_text, "Forest")
        self.assertEqual(image.photographer_url, "https://unsplash.com/@sam")
        self.assertEqual(image.source_url, "https://unsplash.com/photos/1")
        self.assertEqual(image.source_platform, "Unsplash")

    async def test_placeholder_key_skips_request(self):
        provider = PexelsImageProvider("YOUR_PEXELS_API_KEY_HERE",
                                       client=self.client(lambda r: httpx.Response(200, json={})))

        result = await provider.search("lake", 6)

        self.assertFalse(result.ok)
        self.assertEqual(self.transport.requests, [])

    async def test_invalid_json_is_an_error(self):
        provider = UnsplashImageProvider("k", client=self.client(lambda r: httpx.Response(200, text="<html>")))

        result = await provider.search("forest", 6)

        self.assertFalse(result.ok)
        self.assertFalse(result.error.retryable)


class TestDuckDuckGo(unittest.TestCase):

    def test_unwrap_redirect(self):
        self.assertEqual(
            unwrap_redirect("//duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.org%2Fa%3Fb%3D1&rut=x"),
            "https://example.org/a?b=1",
        )
        self.assertEqual(unwrap_redirect("https://example.org/"), "https://example.org/")

    def test_parse_html_results(self):
        results = parse_html_results(DDG_HTML, limit=10)

        self.assertEqual([r["link"] for r in results], ["https://www.python.org/", "https://docs.python.org/3/"])
        self.assertEqual(results[0]["title"], "Welcome to Python .org")
        self.assertEqual(results[0]["snippet"], "The official home of the Python Programming Language")
        self.assertEqual(results[1]["snippet"], "Documentation")

    def test_parse_html_results_respects_limit(self):
        self.assertEqual(len(parse_html_results(DDG_HTML, limit=1)), 1)

    def test_extract_vqd(self):
        self.assertEqual(extract_vqd("...vqd='4-1234567890'..."), "4-1234567890")
        self.assertEqual(extract_vqd('{"vqd":"4-42"}'), "4-42")
        self.assertIsNone(extract_vqd("<html></html>"))


class TestDuckDuckGoProviders(ProviderTestCase):

    async def test_web_provider_posts_query(self):
        provider = DuckDuckGoSearchProvider(
            enabled=True, client=self.client(lambda r: httpx.Response(200, text=DDG_HTML)))

        result = await provider.search("python", 10)

        request = self.transport.requests[0]
        self.assertEqual(request.method, "POST")
        self.assertIn(b"q=python", request.content)
        self.assertIn("User-Agent", request.headers)
        self.assertEqual(len(result.items), 2)

    async def test_image_provider_fetches_token_first(self):
        def handler(request):
            if request.url.path == "/i.js":
                self.assertEqual(request.url.params["vqd"], "4-999")
                return httpx.Response(200, json={"results": [
                    {"image": "https://img.example.org/1.jpg", "title": "One", "url": "https://example.org/1"},
                    {"image": "data:image/png;base64,xx"},
                ]})
            return httpx.Response(200, text="<script>vqd='4-999'</script>")

        provider = DuckDuckGoImageProvider(enabled=True, client=self.client(handler))

        result = await provider.search("cats", 6)

        self.assertEqual([r.url.path for r in self.transport.requests], ["/", "/i.js"])
        self.assertEqual(len(result.items), 1)
        self.assertEqual(result.items[0].source_platform, "DuckDuckGo")

    async def test_missing_token_is_an_error(self):
        provider = DuckDuckGoImageProvider(
            enabled=True, client=self.client(lambda r: httpx.Response(200, text="<html></html>")))

        result = await provider.search("cats", 6)

        self.assertFalse(result.ok)
        self.assertIn("vqd", result.error.message)

    async def test_scrapers_are_off_by_default(self):
        web = DuckDuckGoSearchProvider(client=self.client(lambda r: httpx.Response(200, text=DDG_HTML)))
        images = DuckDuckGoImageProvider(client=web.client)

        web_result = await web.search("python", 10)
        image_result = await images.search("python", 6)

        self.assertFalse(web.is_configured())
        self.assertFalse(web_result.ok)
        self.assertFalse(image_result.ok)
        self.assertEqual(self.transport.requests, [])

    async def test_hostless_image_urls_are_skipped(self):
        def handler(request):
            if request.url.path == "/i.js":
                return httpx.Response(200, json={"results": [
                    {"image": "https://", "title": "Broken"},
                    {"image": "https://img.example.org/2.jpg", "title": "Two", "url": "https://"},
                ]})
            return httpx.Response(200, text="<script>vqd='4-1'</script>")

        provider = DuckDuckGoImageProvider(enabled=True, client=self.client(handler))

        result = await provider.search("cats", 6)

        self.assertTrue(result.ok)
        self.assertEqual([i.image_url for i in result.items], ["https://img.example.org/2.jpg"])
        self.assertIsNone(result.items[0].source_url)

    def test_hostless_result_links_are_skipped(self):
        html = (
            '<div class="result"><a class="result__a" href="https://">Broken</a></div>'
            '<div class="result"><a class="result__a" href="https://ok.example/">Fine</a></div>'
        )

        self.assertEqual([r["link"] for r in parse_html_results(html, limit=10)], ["https://ok.example/"])

    async def test_serpapi_only_answers_per_engine(self):
        provider = SerpApiProvider("serp-key", client=self.client(lambda r: httpx.Response(200, json={})))

        result = await provider.search("python", 5)

        self.assertFalse(result.ok)
        self.assertFalse(result.error.retryable)
        self.assertEqual(self.transport.requests, [])

    def test_provider_error_defaults(self):
        self.assertFalse(ProviderError("x", "p", status_code=429).retryable)
        self.assertTrue(ProviderError("x", "p", status_code=500).retryable)
        self.assertTrue(ProviderError("x", "p").retryable)
        self.assertTrue(ProviderError("x", "p", status_code=404, retryable=True).retryable)


if __name__ == "__main__":
    unittest.main()
