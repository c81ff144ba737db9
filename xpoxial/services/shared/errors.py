"""Shared error handling infrastructure for Xpoxial services.

Provides custom exceptions, user-facing error messages,
and Sentry integration with request_id context.

Provider credentials travel in query strings (``key=``, ``apiKey=``, ...),
so every Sentry event is scrubbed of them before it leaves the process.
"""

import logging
import re
from typing import Optional, Dict, Any

import sentry_sdk

logger = logging.getLogger(__name__)

# Shown to end users for any failure; details only go to logs and Sentry.
GENERIC_ERROR_MESSAGE = "Contact developer and lodge an issue"

FILTERED = "[Filtered]"
_CREDENTIAL_PARAM = re.compile(r"\b(key|apiKey|api_key|client_id|vqd)=([^&\s\"']+)")

_sentry_initialized = False


def scrub_credentials(value: Any) -> Any:
    """Return ``value`` with credential query parameters masked, recursively."""
    if isinstance(value, str):
        return _CREDENTIAL_PARAM.sub(lambda m: f"{m.group(1)}={FILTERED}", value)
    if isinstance(value, dict):
        return {k: scrub_credentials(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(scrub_credentials(v) for v in value)
    return value


def _before_send(event, hint):
    return scrub_credentials(event)


def init_sentry(dsn: Optional[str] = None) -> bool:
    """Start Sentry once per process.

    Args:
        dsn: Sentry DSN. If not provided, reads from centralized settings.

    Returns:
        True when events will be reported.
    """
    global _sentry_initialized

    if _sentry_initialized:
        return True

    from xpoxial.services.shared.settings import get_settings

    sentry = get_settings().observability.sentry
    if not dsn and sentry.dsn:
        dsn = sentry.dsn.get_secret_value()
    if not dsn:
        logger.debug("Sentry DSN not configured; errors are only logged")
        return False

    try:
        sentry_sdk.init(
            dsn=dsn,
            traces_sample_rate=sentry.traces_sample_rate,
            environment=sentry.environment,
            before_send=_before_send,
            send_default_pii=False,
        )
    except Exception as e:
        # Malformed DSN; keep serving without error tracking
        logger.error("Sentry initialization failed: %s", e)
        return False

    _sentry_initialized = True
    logger.info("Sentry error tracking initialized (environment=%s)", sentry.environment)
    return True


class XpoxialError(Exception):
    """Base exception for all Xpoxial errors.

    All Xpoxial errors include:
    - request_id: Identifier of the request being served
    - service: Which component raised the error
    - metadata: Additional context for debugging
    """

    def __init__(
        self,
        message: str,
        request_id: Optional[str] = None,
        service: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.request_id = request_id
        self.service = service
        self.metadata = metadata or {}
        self.user_message = user_message

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "request_id": self.request_id,
            "service": self.service,
            "metadata": self.metadata
        }


class ProviderError(XpoxialError):
    """A single provider call failed.

    Raised inside provider clients only; the fail-soft wrapper in
    ``SearchProvider.search`` turns it into an error marker.
    """

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: Optional[int] = None,
        retryable: Optional[bool] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, service="search", metadata=metadata)
        self.provider = provider
        self.status_code = status_code
        self._retryable = retryable

    @property
    def retryable(self) -> bool:
        if self._retryable is not None:
            return self._retryable
        # 4xx means the request itself is wrong (bad key, bad params); retrying won't help.
        return not (self.status_code is not None and 400 <= self.status_code < 500)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "provider": self.provider,
            "status_code": self.status_code,
            "retryable": self.retryable,
        })
        return data


class ConfigurationError(XpoxialError):
    """A mandatory credential or setting is missing or still a placeholder."""
    pass


class AggregationError(XpoxialError):
    """The aggregation logic produced a bundle that violates the output contract."""

    def __init__(self, message: str, request_id: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None):
        super().__init__(message, request_id=request_id, service="search", metadata=metadata)


class AssistantError(XpoxialError):
    """The generative model failed or kept returning invalid output."""

    def __init__(self, message: str, request_id: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None):
        super().__init__(message, request_id=request_id, service="assistant", metadata=metadata)


def report_error(
    error: Exception,
    request_id: Optional[str] = None,
    service: Optional[str] = None,
    extra_context: Optional[Dict[str, Any]] = None
) -> None:
    """Log an error and, when Sentry is configured, capture it tagged with
    the request and service it belongs to.

    Explicit ``request_id``/``service`` arguments win over the values carried
    by an ``XpoxialError``.
    """
    logger.error("%s failed: %s", service or "request", error, exc_info=error)
    if not init_sentry():
        return

    tags = {"request_id": request_id, "service": service}
    contexts = dict(extra_context or {})
    if isinstance(error, XpoxialError):
        tags["request_id"] = request_id or error.request_id
        tags["service"] = service or error.service
        contexts["xpoxial_error"] = error.to_dict()

    try:
        with sentry_sdk.new_scope() as scope:
            for name, value in tags.items():
                if value:
                    scope.set_tag(name, value)
            for name, value in contexts.items():
                scope.set_context(name, value)
            sentry_sdk.capture_exception(error)
    except Exception as e:
        logger.error("Sentry capture failed: %s", e)


def format_user_error(error: Exception, include_details: bool = False) -> str:
    """Convert exception to user-facing error message (no stack traces)."""
    if isinstance(error, XpoxialError) and error.user_message:
        return error.user_message

    if include_details:
        return f"{GENERIC_ERROR_MESSAGE} ({type(error).__name__}: {error})"
    return GENERIC_ERROR_MESSAGE
