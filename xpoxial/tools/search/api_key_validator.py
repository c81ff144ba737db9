"""API Key Validation Utilities

Decides whether a provider credential is usable. A credential that is
missing, blank, or still one of the documented placeholder values is
"not configured", and the provider that needs it is skipped without
issuing a request.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple


class APIKeyError(Exception):
    """Raised when API key validation fails and the caller asked for an exception."""
    pass


@dataclass(frozen=True)
class CredentialSpec:
    """Where a credential comes from and what its placeholder looks like."""
    env_var: str
    label: str
    signup_url: str
    placeholder: str


CREDENTIALS: Dict[str, CredentialSpec] = {
    "search_api_key": CredentialSpec(
        "SEARCH_API_KEY", "Google Custom Search API key",
        "https://console.cloud.google.com/apis/credentials", "YOUR_SEARCH_API_KEY",
    ),
    "search_engine_id": CredentialSpec(
        "SEARCH_ENGINE_ID", "Google Custom Search Engine ID",
        "https://cse.google.com", "YOUR_SEARCH_ENGINE_ID",
    ),
    "pexels_api_key": CredentialSpec(
        "PEXELS_API_KEY", "Pexels API key",
        "https://www.pexels.com/api/", "YOUR_PEXELS_API_KEY_HERE",
    ),
    "unsplash_api_key": CredentialSpec(
        "UNSPLASH_API_KEY", "Unsplash access key",
        "https://unsplash.com/developers", "YOUR_UNSPLASH_API_KEY_HERE",
    ),
    "news_api_key": CredentialSpec(
        "NEWS_API_KEY", "NewsAPI key",
        "https://newsapi.org/register", "YOUR_NEWS_API_KEY",
    ),
    "serp_api_key": CredentialSpec(
        "SERP_API_KEY", "SerpApi key",
        "https://serpapi.com/manage-api-key", "YOUR_SERP_API_KEY_HERE",
    ),
    "gemini_api_key": CredentialSpec(
        "GEMINI_API_KEY", "Gemini API key",
        "https://aistudio.google.com/app/apikey", "YOUR_GEMINI_API_KEY_HERE",
    ),
}

# Generic values people leave in .env files
GENERIC_PLACEHOLDERS = {
    "your-api-key",
    "your-key",
    "your-key-here",
    "your_api_key",
    "your_api_key_here",
    "changeme",
    "test-key",
    "xxx",
}

PLACEHOLDER_VALUES = GENERIC_PLACEHOLDERS | {spec.placeholder.lower() for spec in CREDENTIALS.values()}


def is_placeholder(value: str) -> bool:
    return value.strip().lower() in PLACEHOLDER_VALUES


def is_configured(value: Optional[str]) -> bool:
    """True when the value can be sent to a provider."""
    return bool(value and value.strip() and not is_placeholder(value))


def all_configured(values: Iterable[Optional[str]]) -> bool:
    return all(is_configured(value) for value in values)


def validate_credential(
    name: str,
    value: Optional[str],
    raise_on_invalid: bool = True,
) -> Tuple[bool, Optional[str]]:
    """Validate one credential by its settings field name.

    Args:
        name: Field name in ``ProviderCredentials`` (e.g. "news_api_key").
        value: The credential value.
        raise_on_invalid: If True, raises APIKeyError on validation failure.
                         If False, returns (False, error_message) instead.

    Returns:
        Tuple of (is_valid, error_message). error_message is None if valid.

    Raises:
        APIKeyError: If raise_on_invalid=True and validation fails.
    """
    spec = CREDENTIALS[name]

    if value is None:
        error_msg = _get_missing_key_error(spec)
    elif not value.strip():
        error_msg = _get_empty_key_error(spec)
    elif is_placeholder(value):
        error_msg = _get_placeholder_key_error(spec, value)
    else:
        return True, None

    if raise_on_invalid:
        raise APIKeyError(error_msg)
    return False, error_msg


def _get_missing_key_error(spec: CredentialSpec) -> str:
    return f"""{spec.label} not configured.

  1. Get one from {spec.signup_url}

  2. Set the environment variable:

     export {spec.env_var}="..."

Until then the provider is skipped and mock data fills the gap.
"""


def _get_empty_key_error(spec: CredentialSpec) -> str:
    return f"""{spec.label} is empty.

The {spec.env_var} environment variable is set but contains only whitespace.
"""


def _get_placeholder_key_error(spec: CredentialSpec, placeholder: str) -> str:
    return f"""{spec.label} appears to be a placeholder: "{placeholder}"

Replace it with a real value from {spec.signup_url}:

     export {spec.env_var}="..."
"""


def get_setup_instructions(credentials=None) -> str:
    """Summary of every credential the service understands.

    With a ``ProviderCredentials`` instance, each line is prefixed with its status.
    """
    lines = ["Xpoxial Search credentials (all optional; missing ones fall back to mock data):", ""]
    for name, spec in CREDENTIALS.items():
        status = ""
        if credentials is not None:
            ok, _ = validate_credential(name, credentials.secret(name), raise_on_invalid=False)
            status = "[ok]      " if ok else "[missing] "
        lines.append(f"  {status}{spec.env_var:<18} {spec.label} ({spec.signup_url})")
    return "\n".join(lines)
