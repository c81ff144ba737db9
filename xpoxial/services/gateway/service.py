"""Search Gateway Service: the actions the UI calls.

Each action validates its input, runs the relevant search pipeline and
generative-model flows, and always returns a well-formed response. Details
of any failure go to the logs (and Sentry); callers only ever see
``GENERIC_ERROR_MESSAGE``.
"""

import asyncio
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import httpx
from pydantic import Field, ValidationError

from xpoxial.services.assistant.service import (
    AnswerOutput,
    AssistantService,
    ChatMessage,
    DeviceInfo,
    LocationData,
)
from xpoxial.services.shared.errors import GENERIC_ERROR_MESSAGE, format_user_error, report_error
from xpoxial.services.shared.logger import SearchLogger
from xpoxial.services.shared.settings import XpoxialSettings, get_settings
from xpoxial.tools.search.advanced import flatten_advanced_results
from xpoxial.tools.search.factory import SearchFactory
from xpoxial.tools.search.normalizer import parse_news_payload, parse_search_payload
from xpoxial.tools.search.retry import Sleep
from xpoxial.tools.search.schema import (
    AdvancedSearchOutput,
    NewsArticle,
    NewsBundle,
    SearchBundle,
    WireModel,
    advanced_to_wire,
)


# === Action inputs ===

class SearchQueryInput(WireModel):
    query: str = Field(..., min_length=1)
    verbose: bool = False
    location: Optional[LocationData] = None
    device_info: Optional[DeviceInfo] = None
    recent_searches: Optional[List[str]] = None


class AdvancedSearchInput(WireModel):
    query: str = Field(..., min_length=1)
    verbose: bool = False


class ChatInput(WireModel):
    history: List[ChatMessage] = Field(default_factory=list)
    message: str = Field(..., min_length=1)
    verbose: bool = False


class SummarizeAdvancedInput(WireModel):
    """Per-category lists aggregated across engines, each item tagged with ``engine``."""
    query: str
    web_results: List[Dict[str, Any]] = Field(default_factory=list)
    image_results: List[Dict[str, Any]] = Field(default_factory=list)
    video_results: List[Dict[str, Any]] = Field(default_factory=list)
    related_questions: List[Dict[str, Any]] = Field(default_factory=list)
    verbose: bool = False

    @classmethod
    def from_results(cls, query: str, results: AdvancedSearchOutput, verbose: bool = False) -> "SummarizeAdvancedInput":
        return cls(query=query, verbose=verbose, **flatten_advanced_results(results))

    def flattened(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            "web_results": self.web_results,
            "image_results": self.image_results,
            "video_results": self.video_results,
            "related_questions": self.related_questions,
        }


# === Action outputs ===

class SearchActionResult(WireModel):
    answer: Optional[AnswerOutput] = None
    search_results: Optional[SearchBundle] = None
    advanced_search_results: Optional[AdvancedSearchOutput] = None
    error: Optional[str] = None

    def to_wire(self) -> dict:
        data: Dict[str, Any] = {}
        if self.answer is not None:
            data["answer"] = self.answer.to_wire()
        if self.search_results is not None:
            data["searchResults"] = self.search_results.to_wire()
        if self.advanced_search_results is not None:
            data["advancedSearchResults"] = advanced_to_wire(self.advanced_search_results)
        if self.error is not None:
            data["error"] = self.error
        return data


class ChatResult(WireModel):
    response: str


class SummaryResult(WireModel):
    summary: str


class SearchGatewayService:
    """Service behind every UI action: search, advanced search, news, images and chat."""

    def __init__(
        self,
        settings: Optional[XpoxialSettings] = None,
        factory: Optional[SearchFactory] = None,
        assistant: Optional[AssistantService] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings or get_settings()
        self.factory = factory or SearchFactory(self.settings)
        self.assistant = assistant or AssistantService(
            api_key=self.settings.credentials.secret("gemini_api_key"),
            config=self.settings.assistant,
        )
        self.clock = clock
        self.logger = SearchLogger("gateway")

    @classmethod
    def create(
        cls,
        settings: Optional[XpoxialSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
        assistant: Optional[AssistantService] = None,
        sleep: Optional[Sleep] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "SearchGatewayService":
        """Build a gateway whose providers share ``client``."""
        settings = settings or get_settings()
        factory = SearchFactory(settings, client=client, sleep=sleep)
        if assistant is None:
            assistant = AssistantService(
                api_key=settings.credentials.secret("gemini_api_key"),
                config=settings.assistant,
                sleep=sleep,
            )
        return cls(settings=settings, factory=factory, assistant=assistant, clock=clock)

    def _request_logger(self, verbose: bool) -> SearchLogger:
        return self.logger.for_request(str(uuid.uuid4()), verbose=verbose)

    def _fail(self, logger: SearchLogger, event: str, error: Exception, payload: Optional[Dict[str, Any]] = None):
        body = dict(payload or {})
        body.update({"error": str(error), "type": type(error).__name__})
        logger.warn(event, body)
        report_error(error, request_id=logger.request_id, service="gateway", extra_context={"action": {"event": event}})

    async def process_search_query(self, data: Any) -> SearchActionResult:
        """Answer + web/image results for a query.

        The answer and the aggregation run concurrently and settle
        independently; whichever succeeds is returned even if the other
        fails, with ``error`` set to the generic message.
        """
        try:
            request = data if isinstance(data, SearchQueryInput) else SearchQueryInput.model_validate(data)
        except ValidationError as e:
            self.logger.warn("search_input_invalid", {"errors": e.error_count()})
            return SearchActionResult(error=GENERIC_ERROR_MESSAGE)

        logger = self._request_logger(request.verbose)
        logger.log("search_action_started", {"query": request.query})

        try:
            cascade = self.factory.cascade(logger=logger.child("cascade"))
            answer_result, search_result = await asyncio.gather(
                self.assistant.generate_answer(
                    request.query,
                    recent_searches=request.recent_searches,
                    verbose=request.verbose,
                    request_id=logger.request_id,
                ),
                cascade.run(request.query, verbose=request.verbose, request_id=logger.request_id),
                return_exceptions=True,
            )

            has_errors = False
            answer: Optional[AnswerOutput] = None
            if isinstance(answer_result, BaseException):
                self._fail(logger, "answer_failed", answer_result)
                has_errors = True
            else:
                answer = AnswerOutput(answer=answer_result)

            search_results: Optional[SearchBundle] = None
            if isinstance(search_result, BaseException):
                self._fail(logger, "search_results_failed", search_result)
                has_errors = True
            else:
                validation = parse_search_payload(search_result.bundle.to_wire())
                if validation.ok:
                    search_results = validation.value
                else:
                    # Keep what we have; the format error is still reported
                    logger.warn("search_results_format_error", {"errors": validation.errors})
                    search_results = search_result.bundle
                    has_errors = True

                if search_results.web_results:
                    sorted_results = await self.assistant.sort_search_results(
                        request.query,
                        search_results.web_results,
                        location=request.location,
                        device_info=request.device_info,
                        recent_searches=request.recent_searches,
                        verbose=request.verbose,
                        request_id=logger.request_id,
                    )
                    search_results = search_results.model_copy(update={"web_results": sorted_results})

            result = SearchActionResult(answer=answer, search_results=search_results)
            if has_errors:
                result.error = GENERIC_ERROR_MESSAGE
            logger.log("search_action_finished", {
                "query": request.query,
                "answer": answer is not None,
                "web_results": len(search_results.web_results) if search_results else 0,
                "images": len(search_results.images) if search_results else 0,
                "error": has_errors,
            })
            return result

        except Exception as e:
            self._fail(logger, "search_action_failed", e, {"query": request.query})
            return SearchActionResult(error=format_user_error(e))

    async def perform_advanced_search(self, data: Any) -> SearchActionResult:
        try:
            request = data if isinstance(data, AdvancedSearchInput) else AdvancedSearchInput.model_validate(data)
        except ValidationError as e:
            self.logger.warn("advanced_input_invalid", {"errors": e.error_count()})
            return SearchActionResult(error=GENERIC_ERROR_MESSAGE)

        logger = self._request_logger(request.verbose)
        try:
            outcome = await self.factory.advanced(logger=logger.child("advanced")).search(
                request.query, verbose=request.verbose, request_id=logger.request_id,
            )
            return SearchActionResult(advanced_search_results=outcome.results)
        except Exception as e:
            self._fail(logger, "advanced_action_failed", e, {"query": request.query})
            return SearchActionResult(error=GENERIC_ERROR_MESSAGE)

    async def search_news(self, query: str, verbose: bool = False) -> NewsBundle:
        """News articles for ``query``.

        Mock articles stand in when nothing real is available; any error
        yields an empty bundle.
        """
        logger = self._request_logger(verbose)
        try:
            news = self.factory.news(logger=logger.child("news"), clock=self.clock)
            outcome = await news.search(query, verbose=verbose, request_id=logger.request_id)
            return outcome.bundle
        except Exception as e:
            self._fail(logger, "news_search_failed", e, {"query": query})
            return NewsBundle()

    async def get_news_feed(self, verbose: bool = False) -> NewsBundle:
        """Top headlines with one category filtered out by the model; empty on any error."""
        logger = self._request_logger(verbose)
        config = self.settings.search.news
        try:
            news = await self.search_news(config.feed_query, verbose=verbose)
            validation = parse_news_payload(news.to_wire())
            if not validation.ok:
                raise ValueError(f"News feed format error: {validation.errors}")
            if not validation.value.articles:
                return NewsBundle()

            filtered: List[NewsArticle] = await self.assistant.filter_articles(
                validation.value.articles,
                config.feed_exclude_category,
                verbose=verbose,
                request_id=logger.request_id,
            )
            final = parse_news_payload({"articles": [a.model_dump(by_alias=True) for a in filtered]})
            if not final.ok:
                raise ValueError(f"Filtered news feed format error: {final.errors}")
            return final.value
        except Exception as e:
            self._fail(logger, "news_feed_failed", e)
            return NewsBundle()

    async def get_stock_images(self, verbose: bool = False) -> SearchBundle:
        """Images for the stock query, with web results dropped; empty on any error."""
        logger = self._request_logger(verbose)
        try:
            cascade = self.factory.cascade(logger=logger.child("cascade"))
            result = await cascade.run(self.settings.search.stock_image_query, verbose=verbose,
                                       request_id=logger.request_id)
            validation = parse_search_payload(result.bundle.to_wire())
            if not validation.ok:
                raise ValueError(f"Stock images format error: {validation.errors}")
            return SearchBundle(web_results=[], images=validation.value.images)
        except Exception as e:
            self._fail(logger, "stock_images_failed", e)
            return SearchBundle()

    async def send_chat_message(self, data: Any) -> ChatResult:
        verbose = bool(data.get("verbose")) if isinstance(data, dict) else getattr(data, "verbose", False)
        logger = self._request_logger(verbose)
        try:
            request = data if isinstance(data, ChatInput) else ChatInput.model_validate(data)
            response = await self.assistant.generate_chat_response(
                request.history, request.message, verbose=request.verbose, request_id=logger.request_id,
            )
            return ChatResult(response=response)
        except Exception as e:
            self._fail(logger, "chat_action_failed", e)
            return ChatResult(response=GENERIC_ERROR_MESSAGE)

    async def summarize_advanced_results(self, data: Any) -> SummaryResult:
        verbose = bool(data.get("verbose")) if isinstance(data, dict) else getattr(data, "verbose", False)
        logger = self._request_logger(verbose)
        try:
            request = data if isinstance(data, SummarizeAdvancedInput) else SummarizeAdvancedInput.model_validate(data)
            summary = await self.assistant.summarize_advanced_results(
                request.query, request.flattened(), verbose=request.verbose, request_id=logger.request_id,
            )
            return SummaryResult(summary=summary)
        except Exception as e:
            self._fail(logger, "summarize_action_failed", e)
            return SummaryResult(summary=f"An error occurred while generating the summary: {GENERIC_ERROR_MESSAGE}")
