"""Format backend error shapes into one displayable line."""

from __future__ import annotations

import json
from typing import Literal

from cadence.models.events import StructuredError

AuthType = Literal["oauth", "api_key", "cloud", "none"]

_RATE_LIMIT_DEFAULT = "\nYour request has been rate limited. Please wait and try again later."
_RATE_LIMIT_BY_AUTH: dict[str, str] = {
    "oauth": (
        "\nPlease wait and try again later. To increase your limits, upgrade your plan "
        "or switch to an API key with higher limits."
    ),
    "api_key": (
        "\nPlease wait and try again later. To increase your limits, request a quota "
        "increase for your API key, or switch to another auth method."
    ),
    "cloud": (
        "\nPlease wait and try again later. To increase your limits, request a quota "
        "increase through your cloud project, or switch to another auth method."
    ),
}


def rate_limit_message(auth_type: AuthType | None) -> str:
    if auth_type is None:
        return _RATE_LIMIT_DEFAULT
    return _RATE_LIMIT_BY_AUTH.get(auth_type, _RATE_LIMIT_DEFAULT)


def _api_error_body(value: object) -> dict[str, object] | None:
    if not isinstance(value, dict):
        return None
    body = value.get("error")
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body
    return None


def _format_json_error(raw: str, auth_type: AuthType | None) -> str | None:
    json_start = raw.find("{")
    if json_start == -1:
        return None
    try:
        parsed = json.loads(raw[json_start:])
    except ValueError:
        return None
    body = _api_error_body(parsed)
    if body is None:
        return None

    message = str(body["message"])
    # Some backends wrap a second API error as a JSON string in the message.
    try:
        nested = _api_error_body(json.loads(message))
    except ValueError:
        nested = None
    if nested is not None:
        message = str(nested["message"])

    text = f"[API Error: {message} (Status: {body.get('status')})]"
    if body.get("code") == 429:
        text += rate_limit_message(auth_type)
    return text


def parse_and_format_api_error(
    error: StructuredError | str | object,
    auth_type: AuthType | None = None,
) -> str:
    """Render a backend error for display as a single history entry."""
    if isinstance(error, StructuredError):
        text = f"[API Error: {error.message}]"
        if error.status == 429:
            text += rate_limit_message(auth_type)
        return text
    if isinstance(error, str):
        formatted = _format_json_error(error, auth_type)
        return formatted if formatted is not None else f"[API Error: {error}]"
    return "[API Error: An unknown error occurred.]"


__all__ = ["AuthType", "parse_and_format_api_error", "rate_limit_message"]
