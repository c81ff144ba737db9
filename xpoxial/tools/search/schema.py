from typing import Annotated, Any, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Absolute upper bounds of the wire contract; configured caps are enforced by the normalizer.
MAX_WEB_RESULTS = 10
MAX_IMAGE_RESULTS = 30
MAX_NEWS_ARTICLES = 10

REMOVED_TITLE_SENTINEL = "[Removed]"


def _require_http_url(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"not an http(s) URL: {value!r}")
    return value


HttpUrlStr = Annotated[str, AfterValidator(_require_http_url)]


def is_http_url(value: Any) -> bool:
    """True when ``value`` would pass ``HttpUrlStr`` validation."""
    if not isinstance(value, str):
        return False
    try:
        _require_http_url(value)
    except ValueError:
        return False
    return True


class WireModel(BaseModel):
    """Base for models exchanged with the UI: snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ResultItem(WireModel):
    """Immutable result item with a per-category identity key."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    @property
    def identity_key(self) -> str:
        raise NotImplementedError


class WebResult(ResultItem):
    """Normalized data model for a single web search result."""
    title: str = Field(..., description="The title of the web page")
    link: str = Field(..., description="The direct link to the result")
    snippet: str = Field(..., description="A short summary or snippet from the page")

    @property
    def identity_key(self) -> str:
        return self.link


class ImageResult(ResultItem):
    """An image plus whatever attribution the provider supplies."""
    image_url: HttpUrlStr = Field(..., description="URL of the image")
    alt_text: Optional[str] = None
    photographer_name: Optional[str] = None
    photographer_url: Optional[HttpUrlStr] = None
    source_platform: Optional[str] = Field(None, description="Pexels, Unsplash, Google, ...")
    source_url: Optional[HttpUrlStr] = None

    @property
    def identity_key(self) -> str:
        return self.image_url


class NewsArticle(ResultItem):
    title: str
    description: Optional[str] = None
    url: HttpUrlStr
    source: str = Field(..., description='Name of the news source (e.g. "The New York Times")')
    published_at: str = Field(..., description="Publication date in ISO 8601 format")

    @field_validator("title")
    @classmethod
    def _reject_removed(cls, value: str) -> str:
        if value == REMOVED_TITLE_SENTINEL:
            raise ValueError("article was removed by the publisher")
        return value

    @property
    def identity_key(self) -> str:
        return self.url


# === Multi-engine (advanced) search ===

class EngineWebResult(ResultItem):
    position: Optional[int] = None
    title: Optional[str] = None
    link: Optional[str] = None
    snippet: Optional[str] = None

    @property
    def identity_key(self) -> str:
        return self.link or ""


class EngineImageResult(ResultItem):
    position: Optional[int] = None
    thumbnail: Optional[str] = None
    original: Optional[str] = None
    title: Optional[str] = None
    link: Optional[str] = None
    source: Optional[str] = None

    @property
    def identity_key(self) -> str:
        return self.original or self.link or ""


class EngineVideoResult(ResultItem):
    position: Optional[int] = None
    title: Optional[str] = None
    link: Optional[str] = None
    thumbnail: Optional[str] = None
    duration: Optional[str] = None

    @property
    def identity_key(self) -> str:
        return self.link or ""


class RelatedQuestion(ResultItem):
    question: Optional[str] = None
    snippet: Optional[str] = None
    title: Optional[str] = None
    link: Optional[str] = None

    @property
    def identity_key(self) -> str:
        return self.question or self.link or ""


class EngineResultBundle(WireModel):
    """Everything one engine returned for a query, or the reason it returned nothing."""
    web_results: List[EngineWebResult] = Field(default_factory=list)
    image_results: List[EngineImageResult] = Field(default_factory=list)
    video_results: List[EngineVideoResult] = Field(default_factory=list)
    related_questions: List[RelatedQuestion] = Field(default_factory=list)
    error: Optional[str] = None

    def has_results(self) -> bool:
        return bool(
            self.web_results
            or self.image_results
            or self.video_results
            or self.related_questions
        )


AdvancedSearchOutput = Dict[str, EngineResultBundle]


# === Aggregated bundles ===

class SearchBundle(WireModel):
    """Web text results and related images for a single query."""
    web_results: List[WebResult] = Field(default_factory=list, max_length=MAX_WEB_RESULTS)
    images: List[ImageResult] = Field(default_factory=list, max_length=MAX_IMAGE_RESULTS)

    def to_wire(self) -> dict:
        return {
            "webResults": [item.to_wire() for item in self.web_results],
            "images": [item.to_wire() for item in self.images],
        }


class NewsBundle(WireModel):
    articles: List[NewsArticle] = Field(default_factory=list, max_length=MAX_NEWS_ARTICLES)

    def to_wire(self) -> dict:
        # description is nullable on the wire, not omitted
        return {"articles": [item.model_dump(by_alias=True) for item in self.articles]}


def advanced_to_wire(output: AdvancedSearchOutput) -> Dict[str, dict]:
    return {engine: bundle.to_wire() for engine, bundle in output.items()}
