import unittest
from datetime import datetime, timezone

import httpx

from xpoxial.services.shared.settings import NewsConfig
from xpoxial.tools.search.news import NewsSearch
from xpoxial.tools.search.newsapi import NewsApiProvider
from xpoxial.tools.search.retry import RetryPolicy

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def article(i, title=None):
    return {
        "title": title or f"Headline {i}",
        "description": f"Description {i}",
        "url": f"https://news.example.org/{i}",
        "source": {"id": None, "name": "Example Times"},
        "publishedAt": "2024-05-01T10:00:00Z",
    }


class Responder:
    """Serves the queued responses in order and records every request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        template = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        # Fresh response per request; httpx binds a response to its request
        return httpx.Response(template.status_code, headers=template.headers, content=template.content)


class TestNewsSearch(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.sleeps = []

    async def _sleep(self, seconds):
        self.sleeps.append(seconds)

    def _news(self, responder, api_key="real-news-key", max_attempts=2):
        client = httpx.AsyncClient(transport=httpx.MockTransport(responder))
        self.addAsyncCleanup(client.aclose)
        provider = NewsApiProvider(api_key, client=client)
        config = NewsConfig(max_attempts=max_attempts, retry_delay_seconds=0.5)
        policy = RetryPolicy(config.max_attempts, config.retry_delay_seconds, sleep=self._sleep)
        return NewsSearch(provider, config=config, retry_policy=policy, clock=lambda: FIXED_NOW)

    async def test_server_error_is_retried_once(self):
        responder = Responder(
            httpx.Response(500, json={"status": "error", "message": "upstream down"}),
            httpx.Response(200, json={"status": "ok", "articles": [article(1), article(2)]}),
        )

        outcome = await self._news(responder).search("elections")

        self.assertEqual(len(responder.requests), 2)
        self.assertEqual(outcome.attempts, 2)
        self.assertFalse(outcome.used_mock)
        self.assertEqual([a.title for a in outcome.bundle.articles], ["Headline 1", "Headline 2"])
        self.assertEqual(self.sleeps, [0.5])

    async def test_client_error_is_not_retried(self):
        responder = Responder(httpx.Response(401, json={"status": "error", "message": "apiKeyInvalid"}))

        outcome = await self._news(responder).search("elections")

        self.assertEqual(len(responder.requests), 1)
        self.assertTrue(outcome.used_mock)
        self.assertEqual(self.sleeps, [])
        self.assertEqual(len(outcome.bundle.articles), 10)
        self.assertIn("401", outcome.error)

    async def test_empty_result_set_is_retried_then_mocked(self):
        responder = Responder(httpx.Response(200, json={"status": "ok", "articles": []}))

        outcome = await self._news(responder).search("nothing")

        self.assertEqual(len(responder.requests), 2)
        self.assertTrue(outcome.used_mock)
        self.assertEqual(outcome.bundle.articles[0].title, "Mock News 1: nothing")

    async def test_unconfigured_provider_makes_no_requests(self):
        responder = Responder(httpx.Response(200, json={"articles": [article(1)]}))

        outcome = await self._news(responder, api_key="YOUR_NEWS_API_KEY").search("space")

        self.assertEqual(responder.requests, [])
        self.assertTrue(outcome.used_mock)
        self.assertEqual(outcome.attempts, 0)
        for item in outcome.bundle.articles:
            self.assertEqual(item.source, "Mock News Provider")
            self.assertEqual(item.published_at, "2024-05-01T12:00:00Z")

    async def test_removed_and_incomplete_articles_are_dropped(self):
        incomplete = article(3)
        del incomplete["publishedAt"]
        responder = Responder(httpx.Response(200, json={
            "articles": [article(1), article(2, title="[Removed]"), incomplete, article(4)],
        }))

        outcome = await self._news(responder).search("q")

        self.assertEqual([a.url for a in outcome.bundle.articles],
                         ["https://news.example.org/1", "https://news.example.org/4"])

    async def test_duplicate_urls_are_collapsed(self):
        responder = Responder(httpx.Response(200, json={"articles": [article(1), article(1), article(2)]}))

        outcome = await self._news(responder).search("q")

        self.assertEqual(len(outcome.bundle.articles), 2)

    async def test_request_parameters(self):
        responder = Responder(httpx.Response(200, json={"articles": [article(1)]}))

        await self._news(responder).search("climate")

        params = responder.requests[0].url.params
        self.assertEqual(params["q"], "climate")
        self.assertEqual(params["apiKey"], "real-news-key")
        self.assertEqual(params["sortBy"], "publishedAt")
        self.assertEqual(params["pageSize"], "10")

    async def test_whitespace_query_reaches_the_provider(self):
        responder = Responder(httpx.Response(200, json={"articles": [article(1)]}))

        outcome = await self._news(responder).search("   ")

        self.assertEqual(responder.requests[0].url.params["q"], "   ")
        self.assertFalse(outcome.used_mock)

    async def test_empty_query_is_rejected(self):
        with self.assertRaises(ValueError):
            await self._news(Responder(httpx.Response(503))).search("")

    async def test_mock_articles_are_deterministic(self):
        responder = Responder(httpx.Response(503))

        first = await self._news(responder).search("markets")
        second = await self._news(responder).search("markets")

        self.assertEqual(first.bundle.to_wire(), second.bundle.to_wire())


if __name__ == "__main__":
    unittest.main()
