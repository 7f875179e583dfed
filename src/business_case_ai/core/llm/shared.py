"""HTTP helpers for the LLM transport.

SECURITY: error parsing redacts API keys and sensitive headers. Secrets must
never reach logs, exception messages or the audit log.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Dict, Optional

if TYPE_CHECKING:
    import httpx

REDACTED = "****"

# api_key=..., Bearer ..., token: ... followed by the secret itself
_SECRET_PATTERN = re.compile(
    r"(?i)"
    r"(?:api[_-]?key|token|bearer|authorization|secret|password)"
    r"[\s:=]+"
    r"['\"]?([^\s'\"]{8,})['\"]?",
)

# OpenAI-style keys appearing bare in text
_BARE_KEY_PATTERN = re.compile(r"\bsk-[A-Za-z0-9_\-:]{16,}")

_SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "x-api-key",
        "api-key",
        "cookie",
        "set-cookie",
        "proxy-authorization",
    }
)


def redact_secrets(text: str) -> str:
    """Replace API keys and bearer tokens in *text* with ``****``."""
    if not text:
        return text
    text = _SECRET_PATTERN.sub(lambda m: m.group(0).replace(m.group(1), REDACTED), text)
    return _BARE_KEY_PATTERN.sub(REDACTED, text)


def redact_headers(headers: Dict[str, str]) -> Dict[str, str]:
    """Return a copy of *headers* with sensitive values replaced."""
    return {key: REDACTED if key.lower() in _SENSITIVE_HEADERS else value for key, value in headers.items()}


def parse_retry_after(response: "httpx.Response") -> Optional[float]:
    """Numeric ``Retry-After`` header in seconds, or None.

    Date-valued headers are not supported.
    """
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def extract_error_message(response: "httpx.Response") -> str:
    """Pull a readable, redacted error message out of an HTTP error response.

    Understands ``{"error": {"message": ...}}``, ``{"error": "..."}`` and
    ``{"message": ...}``; anything else falls back to the first 200 characters
    of the body.
    """
    try:
        data = response.json()
    except ValueError:
        data = None

    message: Optional[str] = None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            message = str(error.get("message") or error)
        elif isinstance(error, str):
            message = error
        elif data.get("message"):
            message = str(data["message"])

    if not message:
        message = response.text[:200] if response.text else f"HTTP {response.status_code}"
    return redact_secrets(message)
