import unittest

from xpoxial.tools.search.normalizer import (
    BundleLimits,
    duplicate_keys,
    parse_news_payload,
    parse_search_payload,
    validate_advanced,
    validate_bundle,
    validate_items,
)
from xpoxial.tools.search.schema import (
    EngineResultBundle,
    EngineWebResult,
    ImageResult,
    NewsBundle,
    SearchBundle,
    WebResult,
)


def web(i):
    return WebResult(title=f"t{i}", link=f"https://example.org/{i}", snippet="")


class TestValidateItems(unittest.TestCase):

    def test_accepts_camel_and_snake_case(self):
        result = validate_items(
            [{"imageUrl": "https://a.example/1.jpg"}, {"image_url": "https://a.example/2.jpg", "alt_text": "x"}],
            ImageResult,
        )
        self.assertTrue(result.ok)
        self.assertEqual(result.value[1].alt_text, "x")

    def test_one_bad_item_rejects_all(self):
        result = validate_items(
            [{"title": "ok", "link": "https://a", "snippet": ""}, {"title": "missing link"}],
            WebResult,
        )
        self.assertFalse(result.ok)
        self.assertTrue(any("link" in error for error in result.errors))

    def test_non_http_image_url_is_rejected(self):
        self.assertFalse(validate_items([{"image_url": "ftp://x/y.png"}], ImageResult).ok)


class TestValidateBundle(unittest.TestCase):

    def test_cap_violation(self):
        bundle = SearchBundle(web_results=[web(i) for i in range(4)])
        result = validate_bundle(bundle, BundleLimits(max_web_results=3))
        self.assertFalse(result.ok)
        self.assertIn("exceeds cap", result.errors[0])

    def test_duplicates(self):
        bundle = SearchBundle(web_results=[web(1), web(1)])
        self.assertEqual(duplicate_keys(bundle.web_results), ["https://example.org/1"])
        self.assertFalse(validate_bundle(bundle, BundleLimits()).ok)

    def test_valid_bundle(self):
        self.assertTrue(validate_bundle(SearchBundle(web_results=[web(1), web(2)]), BundleLimits()).ok)

    def test_advanced_lists_are_checked_per_engine(self):
        repeated = EngineWebResult(link="https://example.org/1")
        output = {
            "google": EngineResultBundle(web_results=[repeated, repeated]),
            "bing": EngineResultBundle(error="boom"),
        }
        result = validate_advanced(output, BundleLimits())
        self.assertFalse(result.ok)
        self.assertTrue(result.errors[0].startswith("google.web_results"))


class TestParsePayloads(unittest.TestCase):

    def test_search_payload_wire_format(self):
        result = parse_search_payload({
            "webResults": [{"title": "t", "link": "https://x", "snippet": "s"}],
            "images": [{"imageUrl": "https://x/1.png", "sourcePlatform": "Pexels"}],
        })
        self.assertTrue(result.ok)
        self.assertEqual(result.value.images[0].source_platform, "Pexels")

    def test_search_payload_over_hard_cap(self):
        items = [{"title": "t", "link": f"https://x/{i}", "snippet": ""} for i in range(11)]
        self.assertFalse(parse_search_payload({"webResults": items}).ok)

    def test_news_payload_rejects_removed_articles(self):
        article = {
            "title": "[Removed]",
            "url": "https://x/1",
            "source": "Example",
            "publishedAt": "2024-01-01T00:00:00Z",
        }
        self.assertFalse(parse_news_payload({"articles": [article]}).ok)

    def test_news_description_serializes_as_null(self):
        bundle = NewsBundle.model_validate({"articles": [{
            "title": "t", "url": "https://x/1", "source": "s", "publishedAt": "2024-01-01T00:00:00Z",
        }]})
        wire = bundle.to_wire()
        self.assertIn("description", wire["articles"][0])
        self.assertIsNone(wire["articles"][0]["description"])
        self.assertEqual(wire["articles"][0]["publishedAt"], "2024-01-01T00:00:00Z")


if __name__ == "__main__":
    unittest.main()
