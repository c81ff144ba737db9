"""
End-to-end tests: settings -> factory -> pipelines, with every upstream API
served by an in-process httpx transport.
"""

import unittest
from unittest.mock import AsyncMock, MagicMock

import httpx

from xpoxial.services.assistant.service import AssistantService
from xpoxial.services.gateway.service import SearchGatewayService
from xpoxial.services.shared.settings import ProviderCredentials, XpoxialSettings
from xpoxial.tools.search.factory import SearchFactory

ALL_CREDENTIALS = {
    "search_api_key": "google-key",
    "search_engine_id": "engine-id",
    "pexels_api_key": "pexels-key",
    "unsplash_api_key": "unsplash-key",
    "news_api_key": "news-key",
    "serp_api_key": "serp-key",
}


async def no_sleep(_seconds):
    return None


class Upstream:
    """Routes requests by host; unknown hosts get a 503."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        route = self.routes.get(request.url.host)
        if route is None:
            return httpx.Response(503)
        if callable(route):
            return route(request)
        return httpx.Response(route.status_code, headers=route.headers, content=route.content)

    def hosts(self):
        return [r.url.host for r in self.requests]


class EndToEndTestCase(unittest.IsolatedAsyncioTestCase):

    def build(self, upstream, credentials=None, scrapers_enabled=False):
        client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
        self.addAsyncCleanup(client.aclose)
        settings = XpoxialSettings(
            credentials=ProviderCredentials.model_construct(**(credentials or {})),
            _env_file=None,
        )
        settings.search.cascade.scrapers_enabled = scrapers_enabled
        return SearchFactory(settings, client=client, sleep=no_sleep)


class TestGracefulDegradation(EndToEndTestCase):

    async def test_no_credentials_returns_full_mock_bundle(self):
        upstream = Upstream()
        result = await self.build(upstream).cascade().run("test query")

        wire = result.bundle.to_wire()
        self.assertEqual(len(wire["webResults"]), 10)
        for item in wire["webResults"]:
            self.assertIn("test query", item["title"])
        self.assertEqual(len(wire["images"]), 6)
        for image in wire["images"]:
            self.assertTrue(image["imageUrl"].startswith("https://placehold.co/"))
        self.assertEqual(upstream.hosts(), [])

    async def test_scrapers_stay_off_without_opt_in(self):
        upstream = Upstream({
            "html.duckduckgo.com": httpx.Response(200, text=(
                '<div class="result"><a class="result__a" href="https://real.example/">Real A</a></div>'
            )),
        })

        result = await self.build(upstream).cascade().run("test query")

        self.assertTrue(result.used_mock)
        self.assertEqual(len(result.bundle.web_results), 10)
        self.assertEqual(upstream.hosts(), [])

    async def test_gateway_answer_failure_still_returns_bundle(self):
        upstream = Upstream()
        factory = self.build(upstream)
        gateway = SearchGatewayService(
            settings=factory.settings,
            factory=factory,
            assistant=AssistantService(api_key=None, config=factory.settings.assistant),
        )

        result = await gateway.process_search_query({"query": "test query"})

        wire = result.to_wire()
        self.assertEqual(len(wire["searchResults"]["webResults"]), 10)
        self.assertEqual(len(wire["searchResults"]["images"]), 6)
        self.assertIn("error", wire)
        self.assertNotIn("answer", wire)


class TestFullCascade(EndToEndTestCase):

    def upstream(self):
        google_items = [
            {"title": f"G{i}", "link": f"https://site.example/{i}", "snippet": "",
             "pagemap": {"cse_image": [{"src": f"https://site.example/{i}.png"}]}}
            for i in range(1, 5)
        ]

        def google(request):
            if request.url.params.get("searchType") == "image":
                return httpx.Response(200, json={"items": []})
            return httpx.Response(200, json={"items": google_items})

        return Upstream({
            "www.googleapis.com": google,
            "html.duckduckgo.com": httpx.Response(200, text="""
                <div class="result"><a class="result__a" href="https://site.example/4">dup</a></div>
                <div class="result"><a class="result__a" href="https://other.example/">Other</a></div>
            """),
            "api.pexels.com": httpx.Response(200, json={"photos": [
                {"src": {"medium": "https://images.pexels.com/a.jpg"}},
                {"src": {"medium": "https://images.pexels.com/b.jpg"}},
                {"src": {"medium": "https://images.pexels.com/c.jpg"}},
            ]}),
        })

    async def test_priority_dedup_and_caps(self):
        upstream = self.upstream()
        result = await self.build(upstream, ALL_CREDENTIALS, scrapers_enabled=True).cascade().run("sites")

        links = [r.link for r in result.bundle.web_results]
        self.assertEqual(links, [f"https://site.example/{i}" for i in range(1, 5)] + ["https://other.example/"])

        images = result.bundle.images
        self.assertEqual(len(images), 6)
        self.assertEqual([i.source_platform for i in images[:4]], ["Google"] * 4)
        self.assertEqual([i.image_url for i in images[4:]],
                         ["https://images.pexels.com/a.jpg", "https://images.pexels.com/b.jpg"])
        # Cap met before Unsplash, Google Images and DuckDuckGo images
        self.assertNotIn("api.unsplash.com", upstream.hosts())
        self.assertFalse(result.used_mock)

    async def test_idempotent_runs(self):
        factory = self.build(self.upstream(), ALL_CREDENTIALS, scrapers_enabled=True)

        first = await factory.cascade().run("sites")
        second = await factory.cascade().run("sites")

        self.assertEqual(first.bundle.model_dump_json(), second.bundle.model_dump_json())


class TestNewsRetry(EndToEndTestCase):

    async def test_5xx_then_success(self):
        responses = [
            httpx.Response(502),
            httpx.Response(200, json={"articles": [{
                "title": "Second call", "url": "https://news.example/1",
                "source": {"name": "Wire"}, "publishedAt": "2024-05-01T00:00:00Z",
            }]}),
        ]
        upstream = Upstream({"newsapi.org": lambda request: responses.pop(0)})

        outcome = await self.build(upstream, ALL_CREDENTIALS).news().search("q")

        self.assertEqual(upstream.hosts(), ["newsapi.org", "newsapi.org"])
        self.assertEqual([a.title for a in outcome.bundle.articles], ["Second call"])

    async def test_4xx_is_final(self):
        upstream = Upstream({"newsapi.org": httpx.Response(426, json={"message": "upgrade"})})

        outcome = await self.build(upstream, ALL_CREDENTIALS).news().search("q")

        self.assertEqual(upstream.hosts(), ["newsapi.org"])
        self.assertTrue(outcome.used_mock)


class TestAdvancedPartialSuccess(EndToEndTestCase):

    async def test_one_engine_succeeds(self):
        def serp(request):
            if request.url.params["engine"] == "google":
                return httpx.Response(200, json={"organic_results": [
                    {"position": 1, "title": "Only", "link": "https://only.example/"},
                ]})
            return httpx.Response(200, json={"error": "Unsupported engine"})

        upstream = Upstream({"serpapi.com": serp})

        outcome = await self.build(upstream, ALL_CREDENTIALS).advanced().search("q")

        self.assertFalse(outcome.used_mock)
        self.assertEqual(outcome.results["google"].web_results[0].title, "Only")
        for engine in ("duckduckgo", "yahoo", "bing"):
            self.assertTrue(outcome.results[engine].error)
            self.assertFalse(outcome.results[engine].has_results())


class TestAssistantWiring(EndToEndTestCase):

    async def test_gateway_uses_model_for_answer(self):
        factory = self.build(Upstream())
        model = MagicMock()
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = '{"answer": "Forty-two."}'
        model.chat.completions.create = AsyncMock(return_value=response)
        gateway = SearchGatewayService(
            settings=factory.settings,
            factory=factory,
            assistant=AssistantService(config=factory.settings.assistant, client=model, sleep=no_sleep),
        )

        result = await gateway.process_search_query({"query": "meaning of life"})

        self.assertEqual(result.answer.answer, "Forty-two.")


if __name__ == "__main__":
    unittest.main()
