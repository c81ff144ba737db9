import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "xpoxial"


class JsonFormatter(logging.Formatter):
    """
    Formatter to output logs as JSON Lines, one object per event.
    """
    def format(self, record):
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "component": getattr(record, "component", "unknown"),
            "request_id": getattr(record, "request_id", "unknown"),
            "event": getattr(record, "event", record.getMessage()),
            "payload": getattr(record, "payload", {})
        }
        return json.dumps(log_record, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable variant for local development."""
    def format(self, record):
        payload = getattr(record, "payload", {})
        line = (
            f"{record.levelname:<7} [{getattr(record, 'component', 'unknown')}] "
            f"{getattr(record, 'event', record.getMessage())}"
        )
        if payload:
            line += " " + json.dumps(payload, default=str)
        return line


def configure_logging(level: str = "INFO", fmt: str = "json") -> logging.Logger:
    """Install a single stream handler on the package logger."""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level.upper())
    formatter = JsonFormatter() if fmt == "json" else TextFormatter()
    if not root.handlers:
        root.addHandler(logging.StreamHandler())
    for handler in root.handlers:
        handler.setFormatter(formatter)
    return root


class SearchLogger:
    """Per-request event logger.

    The verbose flag travels with the instance, so two concurrent requests
    can log at different verbosity without touching global state.
    """

    def __init__(self, component_name: str, request_id: Optional[str] = None, verbose: bool = False):
        self.component = component_name
        self.request_id = request_id or str(uuid.uuid4())
        self.verbose_enabled = verbose
        self.logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{component_name}")

        root = logging.getLogger(ROOT_LOGGER_NAME)
        if not root.handlers:
            configure_logging()

    def for_request(self, request_id: Optional[str] = None, verbose: bool = False) -> "SearchLogger":
        """Same component, new request context."""
        return SearchLogger(self.component, request_id=request_id, verbose=verbose)

    def child(self, component_name: str) -> "SearchLogger":
        """Logger for a sub-component that shares this request's context."""
        return SearchLogger(component_name, request_id=self.request_id, verbose=self.verbose_enabled)

    def log(self, event: str, payload: Dict[str, Any] = None, level: int = logging.INFO):
        """
        Log a specific search event.

        :param event: The name of the event (e.g., 'provider_success', 'cascade_exhausted')
        :param payload: Dictionary containing the specific data
        """
        if payload is None:
            payload = {}

        extra = {
            "component": self.component,
            "request_id": self.request_id,
            "event": event,
            "payload": payload
        }

        self.logger.log(level, event, extra=extra)

    def warn(self, event: str, payload: Dict[str, Any] = None):
        self.log(event, payload, level=logging.WARNING)

    def verbose(self, event: str, payload: Dict[str, Any] = None):
        """Diagnostic event, emitted only when the request asked for it."""
        if self.verbose_enabled:
            self.log(event, payload)
