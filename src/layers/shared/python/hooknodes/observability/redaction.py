"""Redaction helpers for safe logging. Webhook keys and tokens must pass through these."""

from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

SENSITIVE_KEYS = ("webhook", "key", "token", "secret", "password", "auth", "credential")
SENSITIVE_HEADERS = ("authorization", "cookie", "x-api-key", "x-auth-token")

_MASK = "****"


def mask_value(value: Any) -> str:
    """Mask a secret, keeping the first and last four characters of long strings."""
    if isinstance(value, str) and len(value) > 8:
        return f"{value[:4]}{_MASK}{value[-4:]}"
    return _MASK


def is_sensitive_key(key: str) -> bool:
    """Check whether a field name looks like it holds a secret."""
    lowered = key.lower()
    return any(pattern in lowered for pattern in SENSITIVE_KEYS)


def mask_sensitive_data(data: Any) -> Any:
    """Recursively mask values stored under sensitive keys.

    Returns a new structure; the input is never modified.
    """
    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            if isinstance(key, str) and is_sensitive_key(key):
                masked[key] = mask_value(value)
            else:
                masked[key] = mask_sensitive_data(value)
        return masked

    if isinstance(data, list):
        return [mask_sensitive_data(item) for item in data]

    if isinstance(data, tuple):
        return tuple(mask_sensitive_data(item) for item in data)

    return data


def mask_url(url: str) -> str:
    """Mask the ``key`` query parameter of a webhook URL.

    Unparseable input is masked entirely.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return _MASK

    if not parts.scheme or not parts.netloc:
        return _MASK

    query = parse_qsl(parts.query, keep_blank_values=True)
    if not any(name == "key" for name, _ in query):
        return url

    masked_query = [
        (name, mask_value(value) if name == "key" else value)
        for name, value in query
    ]
    return urlunsplit(parts._replace(query=urlencode(masked_query, safe="*")))


def mask_sensitive_headers(headers: dict[str, Any]) -> dict[str, Any]:
    """Mask credential-bearing HTTP headers."""
    return {
        name: _MASK if name.lower() in SENSITIVE_HEADERS else value
        for name, value in headers.items()
    }
