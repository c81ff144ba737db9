"""Centralized configuration management using Pydantic settings.

This module provides type-safe, validated configuration loading from:
1. YAML config files (config.yaml + environment overlays)
2. Environment variables (highest precedence)

Provider credentials are never read from YAML; they come from the
environment (or a local ``.env``) under the names the deployment uses,
e.g. ``SEARCH_API_KEY`` or ``NEWS_API_KEY``.

Usage:
    from xpoxial.services.shared.settings import get_settings

    settings = get_settings()
    max_images = settings.search.cascade.max_images
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

WEB_PROVIDERS = ("google", "duckduckgo")
IMAGE_PROVIDERS = ("google", "pexels", "unsplash", "google_images", "duckduckgo")
ADVANCED_ENGINES = ("google", "duckduckgo", "yahoo", "bing")


def _split_names(v):
    if v is None or v == "":
        return []
    if isinstance(v, str):
        return [item.strip() for item in v.split(",") if item.strip()]
    return v


# === Credentials ===

class ProviderCredentials(BaseSettings):
    """API credentials, one per provider.

    A missing value and a placeholder value are both "not configured";
    see ``xpoxial.tools.search.api_key_validator``.
    """
    search_api_key: Optional[SecretStr] = Field(None, validation_alias="SEARCH_API_KEY")
    search_engine_id: Optional[str] = Field(None, validation_alias="SEARCH_ENGINE_ID")
    pexels_api_key: Optional[SecretStr] = Field(None, validation_alias="PEXELS_API_KEY")
    unsplash_api_key: Optional[SecretStr] = Field(None, validation_alias="UNSPLASH_API_KEY")
    news_api_key: Optional[SecretStr] = Field(None, validation_alias="NEWS_API_KEY")
    serp_api_key: Optional[SecretStr] = Field(None, validation_alias="SERP_API_KEY")
    gemini_api_key: Optional[SecretStr] = Field(None, validation_alias="GEMINI_API_KEY")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
        case_sensitive=False,
    )

    def secret(self, name: str) -> Optional[str]:
        """Plain value of a credential field, or None."""
        value = getattr(self, name)
        if isinstance(value, SecretStr):
            return value.get_secret_value()
        return value


# === Search Configuration ===

class CascadeConfig(BaseModel):
    """Priority orders and caps of the web/image aggregation cascade."""
    web_order: List[str] = Field(default_factory=lambda: list(WEB_PROVIDERS))
    image_order: List[str] = Field(default_factory=lambda: list(IMAGE_PROVIDERS))
    max_web_results: int = Field(10, ge=1, le=10)
    max_images: int = Field(6, ge=1, le=30)
    placeholder_images: int = Field(3, ge=0)
    mock_web_results: int = Field(10, ge=1)
    mock_images: int = Field(6, ge=0)
    provider_timeout_seconds: float = Field(8.0, gt=0)
    # Keyless scrapers (DuckDuckGo) run only when enabled
    scrapers_enabled: bool = False

    @field_validator("web_order", mode="before")
    def normalize_web_order(cls, v):
        names = _split_names(v)
        unknown = [name for name in names if name not in WEB_PROVIDERS]
        if unknown:
            raise ValueError(f"unknown web providers: {unknown}")
        return names

    @field_validator("image_order", mode="before")
    def normalize_image_order(cls, v):
        names = _split_names(v)
        unknown = [name for name in names if name not in IMAGE_PROVIDERS]
        if unknown:
            raise ValueError(f"unknown image providers: {unknown}")
        return names


class NewsConfig(BaseModel):
    """News provider retry policy and feed defaults."""
    max_articles: int = Field(10, ge=1, le=10)
    max_attempts: int = Field(2, ge=1)
    retry_delay_seconds: float = Field(0.5, ge=0)
    feed_query: str = "latest top headlines"
    feed_exclude_category: str = "finance"


class AdvancedSearchConfig(BaseModel):
    """Multi-engine search through the meta-search API."""
    engines: List[str] = Field(default_factory=lambda: list(ADVANCED_ENGINES))
    max_results_per_list: int = Field(10, ge=1)

    @field_validator("engines", mode="before")
    def normalize_engines(cls, v):
        names = _split_names(v)
        unknown = [name for name in names if name not in ADVANCED_ENGINES]
        if unknown:
            raise ValueError(f"unknown engines: {unknown}")
        return names


class EndpointsConfig(BaseModel):
    """Provider endpoints; overridable for testing."""
    google_search_url: str = "https://www.googleapis.com/customsearch/v1"
    pexels_search_url: str = "https://api.pexels.com/v1/search"
    unsplash_search_url: str = "https://api.unsplash.com/search/photos"
    duckduckgo_html_url: str = "https://html.duckduckgo.com/html/"
    duckduckgo_url: str = "https://duckduckgo.com/"
    newsapi_url: str = "https://newsapi.org/v2/everything"
    serpapi_url: str = "https://serpapi.com/search.json"


class SearchConfig(BaseModel):
    cascade: CascadeConfig = Field(default_factory=CascadeConfig)
    news: NewsConfig = Field(default_factory=NewsConfig)
    advanced: AdvancedSearchConfig = Field(default_factory=AdvancedSearchConfig)
    endpoints: EndpointsConfig = Field(default_factory=EndpointsConfig)
    stock_image_query: str = "nature"
    user_agent: str = (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122 Safari/537.36"
    )


# === Generative model ===

class AssistantConfig(BaseModel):
    """OpenAI-compatible endpoint serving the generative model."""
    base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    model: str = "gemini-2.0-flash"
    advanced_model: str = "gemini-2.5-flash"
    temperature: float = 0.3
    max_attempts: int = Field(2, ge=1)
    retry_delay_seconds: float = Field(0.5, ge=0)
    timeout_seconds: float = Field(30.0, gt=0)


# === Observability Configuration ===

class SentryConfig(BaseModel):
    """Sentry error tracking configuration."""
    dsn: Optional[SecretStr] = None
    traces_sample_rate: float = 0.1
    environment: str = "development"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: Literal["json", "text"] = "json"


class ObservabilityConfig(BaseModel):
    sentry: SentryConfig = Field(default_factory=SentryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000


# === Main Settings ===

class XpoxialSettings(BaseSettings):
    """Main Xpoxial configuration."""
    environment: str = "development"
    search: SearchConfig = Field(default_factory=SearchConfig)
    assistant: AssistantConfig = Field(default_factory=AssistantConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    credentials: ProviderCredentials = Field(default_factory=ProviderCredentials)

    model_config = SettingsConfigDict(
        env_prefix="XPOXIAL_",
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # YAML values arrive as init kwargs; environment variables must win over them.
        return env_settings, dotenv_settings, init_settings, file_secret_settings


CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"


def _read_yaml(path: Path) -> dict:
    if not path.is_file():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _load_yaml_config(config_path: Optional[Path] = None) -> dict:
    """Read ``config.yaml`` and lay ``config.<env>.yaml`` over it.

    ``XPOXIAL_ENV`` picks the overlay; without it the base file's own
    ``environment`` key does. A missing base file yields ``{}`` so the
    environment alone can configure the service.
    """
    config_path = config_path or CONFIG_DIR / "config.yaml"
    config = _read_yaml(config_path)
    if not config:
        return {}

    env = os.getenv("XPOXIAL_ENV", config.get("environment", "development"))
    config = _deep_merge(config, _read_yaml(config_path.parent / f"config.{env}.yaml"))

    # Credentials are environment-only.
    config.pop("credentials", None)
    return config


def _deep_merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        merged[key] = _deep_merge(current, value) if isinstance(current, dict) and isinstance(value, dict) else value
    return merged


@lru_cache(maxsize=1)
def get_settings(config_path: Optional[Path] = None) -> XpoxialSettings:
    """Process-wide settings.

    Precedence, highest first: environment variables such as
    ``XPOXIAL_SEARCH__CASCADE__MAX_IMAGES``, then the environment overlay
    YAML, then ``config.yaml``.
    """
    return XpoxialSettings(**_load_yaml_config(config_path))


def reload_settings(config_path: Optional[Path] = None) -> XpoxialSettings:
    """Drop the cached settings and read them again."""
    get_settings.cache_clear()
    return get_settings(config_path)
