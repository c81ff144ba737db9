"""Shape validation for provider payloads and assembled bundles.

Every check returns a ``Validation`` instead of raising, so callers decide
whether a failure means "drop this provider's contribution" or
"the aggregation itself is broken".
"""

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Generic, Iterable, List, Optional, Sequence, Type, TypeVar

from pydantic import TypeAdapter, ValidationError

from .schema import (
    AdvancedSearchOutput,
    EngineResultBundle,
    NewsBundle,
    ResultItem,
    SearchBundle,
)

T = TypeVar("T")


@dataclass(frozen=True)
class Validation(Generic[T]):
    ok: bool
    value: Optional[T] = None
    errors: List[str] = field(default_factory=list)

    @classmethod
    def success(cls, value: T) -> "Validation[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, errors: List[str]) -> "Validation[T]":
        return cls(ok=False, errors=errors)


@dataclass(frozen=True)
class BundleLimits:
    max_web_results: int = 10
    max_images: int = 6
    max_news_articles: int = 10
    max_results_per_list: int = 10


@lru_cache(maxsize=None)
def _list_adapter(model: Type[ResultItem]) -> TypeAdapter:
    return TypeAdapter(List[model])


def _describe(exc: ValidationError) -> List[str]:
    return [
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    ]


def validate_items(items: Iterable[Any], model: Type[ResultItem]) -> Validation[List[ResultItem]]:
    """Validate a provider's whole contribution; one bad item rejects all of it."""
    try:
        return Validation.success(_list_adapter(model).validate_python(list(items)))
    except ValidationError as exc:
        return Validation.failure(_describe(exc))


def duplicate_keys(items: Sequence[ResultItem]) -> List[str]:
    seen = set()
    duplicates = []
    for item in items:
        key = item.identity_key
        if not key:
            continue
        if key in seen:
            duplicates.append(key)
        seen.add(key)
    return duplicates


def _check_collection(name: str, items: Sequence[ResultItem], cap: int) -> List[str]:
    errors = []
    if len(items) > cap:
        errors.append(f"{name}: {len(items)} items exceeds cap of {cap}")
    duplicates = duplicate_keys(items)
    if duplicates:
        errors.append(f"{name}: duplicate identity keys {duplicates}")
    return errors


def validate_bundle(bundle: SearchBundle, limits: BundleLimits) -> Validation[SearchBundle]:
    errors = _check_collection("webResults", bundle.web_results, limits.max_web_results)
    errors += _check_collection("images", bundle.images, limits.max_images)
    return Validation.failure(errors) if errors else Validation.success(bundle)


def validate_news(bundle: NewsBundle, limits: BundleLimits) -> Validation[NewsBundle]:
    errors = _check_collection("articles", bundle.articles, limits.max_news_articles)
    return Validation.failure(errors) if errors else Validation.success(bundle)


def validate_advanced(output: AdvancedSearchOutput, limits: BundleLimits) -> Validation[AdvancedSearchOutput]:
    errors: List[str] = []
    for engine, bundle in output.items():
        if not isinstance(bundle, EngineResultBundle):
            errors.append(f"{engine}: not an engine result bundle")
            continue
        for name in ("web_results", "image_results", "video_results", "related_questions"):
            errors += _check_collection(f"{engine}.{name}", getattr(bundle, name), limits.max_results_per_list)
    return Validation.failure(errors) if errors else Validation.success(output)


def parse_search_payload(data: Any) -> Validation[SearchBundle]:
    """Validate an untyped ``{webResults, images}`` payload."""
    try:
        return Validation.success(SearchBundle.model_validate(data))
    except ValidationError as exc:
        return Validation.failure(_describe(exc))


def parse_news_payload(data: Any) -> Validation[NewsBundle]:
    try:
        return Validation.success(NewsBundle.model_validate(data))
    except ValidationError as exc:
        return Validation.failure(_describe(exc))
