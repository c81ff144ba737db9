"""Tests for credential validation."""

import pytest

from xpoxial.services.shared.settings import ProviderCredentials
from xpoxial.tools.search.api_key_validator import (
    APIKeyError,
    all_configured,
    get_setup_instructions,
    is_configured,
    validate_credential,
)


class TestIsConfigured:

    @pytest.mark.parametrize("value", [None, "", "   ", "YOUR_NEWS_API_KEY", "your_api_key_here", "changeme"])
    def test_unusable_values(self, value):
        assert not is_configured(value)

    def test_real_value(self):
        assert is_configured("a1b2c3")

    def test_all_configured(self):
        assert all_configured(["k", "cx"])
        assert not all_configured(["k", "YOUR_SEARCH_ENGINE_ID"])


class TestValidateCredential:

    def test_missing_raises(self):
        with pytest.raises(APIKeyError) as exc_info:
            validate_credential("news_api_key", None)
        assert "NEWS_API_KEY" in str(exc_info.value)

    def test_placeholder_without_raise(self):
        ok, message = validate_credential("pexels_api_key", "YOUR_PEXELS_API_KEY_HERE", raise_on_invalid=False)
        assert not ok
        assert "placeholder" in message

    def test_empty_without_raise(self):
        ok, message = validate_credential("serp_api_key", "  ", raise_on_invalid=False)
        assert not ok
        assert "empty" in message

    def test_valid(self):
        assert validate_credential("gemini_api_key", "real") == (True, None)


class TestSetupInstructions:

    def test_lists_every_variable(self):
        text = get_setup_instructions()
        for env_var in ("SEARCH_API_KEY", "SEARCH_ENGINE_ID", "PEXELS_API_KEY", "UNSPLASH_API_KEY",
                        "NEWS_API_KEY", "SERP_API_KEY", "GEMINI_API_KEY"):
            assert env_var in text

    def test_status_prefix(self):
        credentials =ProviderCredentials(NEWS_API_KEY="real-news", _env_file=None)

        lines = get_setup_instructions(credentials).splitlines()

        news = next(line for line in lines if "NEWS_API_KEY" in line)
        assert news.strip().startswith("[ok]")
