"""Assistant Service for the generative-model flows.

Wraps an OpenAI-compatible chat endpoint (Gemini by default) behind small
flows that each build a prompt, request a JSON object, validate it with
pydantic and fall back to something safe when the model misbehaves:

- answers and summaries for a query
- re-ranking of web results and filtering of news articles
- snippet relevance scoring
- chat replies
"""

import json
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError

from xpoxial.services.assistant.prompts import (
    build_advanced_summary_prompt,
    build_answer_prompt,
    build_chat_prompt,
    build_filter_articles_prompt,
    build_rank_prompt,
    build_sort_prompt,
    build_summary_prompt,
)
from xpoxial.services.shared.errors import AssistantError, ConfigurationError
from xpoxial.services.shared.logger import SearchLogger
from xpoxial.services.shared.settings import AssistantConfig
from xpoxial.tools.search.api_key_validator import is_configured
from xpoxial.tools.search.retry import RetryPolicy, Sleep
from xpoxial.tools.search.schema import NewsArticle, WebResult, WireModel

M = TypeVar("M", bound=BaseModel)

CHAT_FALLBACK_RESPONSE = "I'm sorry, I couldn't generate a response. Please try again."
SUMMARY_FALLBACK = "I'm sorry, I was unable to generate a summary for these search results. Please try again."


# === Request context ===

class LocationData(WireModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    error: Optional[str] = None


class DeviceInfo(WireModel):
    user_agent: Optional[str] = None
    screen_width: Optional[int] = None
    screen_height: Optional[int] = None
    os: Optional[str] = None


class ChatMessage(WireModel):
    role: Literal["user", "model"]
    content: str


# === Flow outputs ===

class AnswerOutput(WireModel):
    answer: str = Field(..., min_length=1)


class SummaryOutput(WireModel):
    summary: str = Field(..., min_length=1)


class SortOutput(WireModel):
    sorted_web_results: List[WebResult]


class FilterArticlesOutput(WireModel):
    filtered_articles: List[NewsArticle]


class RankedSnippet(WireModel):
    snippet: str
    relevance_score: float = Field(..., ge=0.0, le=1.0)


class RankOutput(WireModel):
    results: List[RankedSnippet]


class ChatOutput(WireModel):
    response: str = Field(..., min_length=1)


def parse_model_output(content: Optional[str], model: Type[M]) -> M:
    """Parse a JSON completion into ``model``.

    Raises:
        ValueError: If the content is empty, not JSON, or fails validation.
    """
    if not content:
        raise ValueError("Empty response from model")
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON response: {e}")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Response failed validation: {e.error_count()} error(s)") from e


class AssistantService:
    """Service for the generative-model flows used by search, news and chat."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        config: Optional[AssistantConfig] = None,
        client: Any = None,
        logger: Optional[SearchLogger] = None,
        sleep: Optional[Sleep] = None,
    ):
        self.api_key = api_key
        self.config = config or AssistantConfig()
        self.logger = logger or SearchLogger("assistant")
        self.sleep = sleep
        self._client = client

    def is_configured(self) -> bool:
        return self._client is not None or is_configured(self.api_key)

    @property
    def client(self):
        """Lazy-load the OpenAI client so the service can be built without a key."""
        if self._client is None:
            if not is_configured(self.api_key):
                raise ConfigurationError(
                    "GEMINI_API_KEY is not configured",
                    service="assistant",
                    user_message="The AI assistant is not configured.",
                )
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.config.base_url,
                timeout=self.config.timeout_seconds,
            )
        return self._client

    async def _complete(self, messages: list, model: Optional[str] = None) -> Optional[str]:
        response = await self.client.chat.completions.create(
            model=model or self.config.model,
            messages=messages,
            response_format={"type": "json_object"},
            temperature=self.config.temperature,
        )
        return response.choices[0].message.content

    async def _generate(
        self,
        flow: str,
        messages: list,
        output_model: Type[M],
        logger: SearchLogger,
        attempts: int = 1,
        accept: Callable[[M], bool] = lambda _: True,
        model: Optional[str] = None,
    ) -> Optional[M]:
        """Run one flow; None means every attempt failed or was rejected."""
        if not self.is_configured():
            logger.warn("assistant_not_configured", {"flow": flow})
            return None

        async def attempt() -> M:
            content = await self._complete(messages, model=model)
            return parse_model_output(content, output_model)

        policy = RetryPolicy(attempts, self.config.retry_delay_seconds, sleep=self.sleep)
        outcome = await policy.run(attempt, is_done=accept, logger=logger, label=f"assistant.{flow}")

        if not outcome.succeeded:
            logger.warn("assistant_flow_fallback", {"flow": flow, "attempts": outcome.attempts})
            return None

        logger.verbose("assistant_flow_success", {"flow": flow, "attempts": outcome.attempts})
        return outcome.value

    def _request_logger(self, verbose: bool, request_id: Optional[str]) -> SearchLogger:
        return self.logger.for_request(request_id, verbose=verbose)

    # === Flows ===

    async def generate_answer(
        self,
        query: str,
        recent_searches: Optional[Sequence[str]] = None,
        verbose: bool = False,
        request_id: Optional[str] = None,
    ) -> str:
        """Generate a concise answer for ``query``.

        Raises:
            AssistantError: If the model is unavailable or returns nothing usable.
                The caller decides how to degrade.
        """
        logger = self._request_logger(verbose, request_id)
        output = await self._generate(
            "generate_answer",
            build_answer_prompt(query, recent_searches),
            AnswerOutput,
            logger,
        )
        if output is None:
            raise AssistantError("Could not generate an answer", request_id=logger.request_id,
                                 metadata={"query": query})
        return output.answer

    async def summarize_results(
        self,
        query: str,
        results: str,
        verbose: bool = False,
        request_id: Optional[str] = None,
    ) -> str:
        logger = self._request_logger(verbose, request_id)
        output = await self._generate("summarize_results", build_summary_prompt(query, results), SummaryOutput, logger)
        return output.summary if output else SUMMARY_FALLBACK

    async def sort_search_results(
        self,
        query: str,
        web_results: Sequence[WebResult],
        location: Optional[LocationData] = None,
        device_info: Optional[DeviceInfo] = None,
        recent_searches: Optional[Sequence[str]] = None,
        verbose: bool = False,
        request_id: Optional[str] = None,
    ) -> List[WebResult]:
        """Re-rank web results by relevance, or return them in their original order.

        The model's answer is only used when it is a permutation of the input
        (same length, same set of links).
        """
        original = list(web_results)
        if len(original) <= 1:
            return original

        logger = self._request_logger(verbose, request_id)
        by_link = {result.link: result for result in original}

        def is_permutation(output: SortOutput) -> bool:
            links = [result.link for result in output.sorted_web_results]
            return len(links) == len(original) and set(links) == set(by_link)

        messages = build_sort_prompt(
            query,
            [result.to_wire() for result in original],
            location=location.to_wire() if location else None,
            device_info=device_info.to_wire() if device_info else None,
            recent_searches=recent_searches,
        )
        output = await self._generate(
            "sort_search_results", messages, SortOutput, logger,
            attempts=self.config.max_attempts, accept=is_permutation,
        )
        if output is None:
            return original
        # Hand back the original objects so the model can't alter their content
        return [by_link[result.link] for result in output.sorted_web_results]

    async def filter_articles(
        self,
        articles: Sequence[NewsArticle],
        category_to_exclude: str,
        verbose: bool = False,
        request_id: Optional[str] = None,
    ) -> List[NewsArticle]:
        """Drop articles in ``category_to_exclude``; on failure keep them all."""
        original = list(articles)
        if not original:
            return []

        logger = self._request_logger(verbose, request_id)
        messages = build_filter_articles_prompt([a.model_dump(by_alias=True) for a in original], category_to_exclude)
        output = await self._generate(
            "filter_articles", messages, FilterArticlesOutput, logger,
            attempts=self.config.max_attempts,
        )
        if output is None:
            return original

        by_url = {article.url: article for article in original}
        kept = []
        for article in output.filtered_articles:
            if article.url in by_url:
                kept.append(by_url.pop(article.url))
        return kept

    async def filter_and_rank_results(
        self,
        query: str,
        snippets: Sequence[str],
        verbose: bool = False,
        request_id: Optional[str] = None,
    ) -> List[RankedSnippet]:
        if not snippets:
            return []

        logger = self._request_logger(verbose, request_id)
        output = await self._generate("filter_and_rank_results", build_rank_prompt(query, snippets), RankOutput, logger)
        if output is None:
            return [RankedSnippet(snippet=snippet, relevance_score=0.0) for snippet in snippets]
        return sorted(output.results, key=lambda ranked: ranked.relevance_score, reverse=True)

    async def generate_chat_response(
        self,
        history: Sequence[ChatMessage],
        message: str,
        verbose: bool = False,
        request_id: Optional[str] = None,
    ) -> str:
        logger = self._request_logger(verbose, request_id)
        messages = build_chat_prompt([turn.model_dump() for turn in history], message)
        output = await self._generate("generate_chat_response", messages, ChatOutput, logger)
        return output.response if output else CHAT_FALLBACK_RESPONSE

    async def summarize_advanced_results(
        self,
        query: str,
        flattened: Dict[str, List[Dict[str, Any]]],
        verbose: bool = False,
        request_id: Optional[str] = None,
    ) -> str:
        logger = self._request_logger(verbose, request_id)
        output = await self._generate(
            "summarize_advanced_results",
            build_advanced_summary_prompt(query, flattened),
            SummaryOutput,
            logger,
            model=self.config.advanced_model,
        )
        return output.summary if output else SUMMARY_FALLBACK
