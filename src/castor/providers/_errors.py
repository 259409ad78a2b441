"""Map provider HTTP error responses to ProviderError subclasses.

All three providers report failures as ``{"error": {...}}`` bodies; the
status code picks the error class and retry metadata comes from the
``Retry-After`` header or Google-style ``RetryInfo`` details.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from castor._http import RETRYABLE_STATUS_CODES
from castor.errors import (
    AuthenticationError,
    MalformedResponseError,
    ProviderError,
    RateLimitError,
)
from castor.providers.registry import Provider

if TYPE_CHECKING:
    from castor.transport import RawResponse

_PROTO_DURATION_RE = re.compile(r"^(\d+(?:\.\d+)?)s$")


def _error_body(raw: RawResponse) -> dict[str, Any]:
    try:
        body = raw.json()
    except MalformedResponseError:
        return {}
    if isinstance(body, list) and body and isinstance(body[0], dict):
        # Gemini sometimes wraps the error object in a one-element list.
        body = body[0]
    if not isinstance(body, dict):
        return {}
    error = body.get("error")
    if isinstance(error, dict):
        return error
    if isinstance(error, str):
        return {"message": error}
    return {}


def _extract_retry_info_seconds(error: dict[str, Any]) -> float | None:
    """Extract retry delay from Google API-style RetryInfo in error details.

    Shaped like::

        {"details": [{"@type": "...RetryInfo", "retryDelay": "8s"}]}

    The ``retryDelay`` value is a protobuf Duration string (e.g. ``"8s"``,
    ``"8.352104981s"``).
    """
    detail_list: Any = error.get("details")
    if not isinstance(detail_list, list):
        return None
    for entry in detail_list:
        if not isinstance(entry, dict):
            continue
        at_type = entry.get("@type", "")
        if not isinstance(at_type, str) or "RetryInfo" not in at_type:
            continue
        delay_raw = entry.get("retryDelay")
        if not isinstance(delay_raw, str):
            continue
        m = _PROTO_DURATION_RE.match(delay_raw)
        if m:
            return float(m.group(1))
    return None


def extract_retry_after_s(raw: RawResponse, error: dict[str, Any]) -> float | None:
    """Return the advertised retry delay in seconds, if any."""
    header = raw.header("Retry-After")
    if header and header.strip():
        try:
            seconds = float(header)
        except ValueError:
            seconds = None
        if seconds is not None and seconds >= 0:
            return seconds
    return _extract_retry_info_seconds(error)


def _auth_hint(
    provider: Provider, status_code: int | None, cause_message: str
) -> str | None:
    """Generate a hint for auth errors where naming the env var is useful."""
    cause_lower = cause_message.lower()
    if status_code in {401, 403} or (
        status_code == 400 and ("api key" in cause_lower or "api_key" in cause_lower)
    ):
        return (
            "Check credentials/permissions "
            f"(try setting {provider.api_key_env_var} or api_key(...))."
        )
    return None


def provider_error_from_response(raw: RawResponse, *, provider: Provider) -> ProviderError:
    """Build the ProviderError describing a non-2xx *raw* response."""
    error = _error_body(raw)
    status_code = raw.status_code
    cause = str(error.get("message") or "").strip()
    code = error.get("code") or error.get("status") or error.get("type")
    code = str(code) if code is not None else None
    retry_after_s = extract_retry_after_s(raw, error)
    hint = _auth_hint(provider, status_code, cause)

    err_cls: type[ProviderError] = ProviderError
    if status_code == 429:
        err_cls = RateLimitError
    elif hint is not None:
        err_cls = AuthenticationError

    msg = f"{provider.value} request failed (status={status_code})"
    return err_cls(
        f"{msg}: {cause}" if cause else msg,
        hint=hint,
        provider=provider.value,
        status_code=status_code,
        code=code,
        retry_after_s=retry_after_s,
        retryable=retry_after_s is not None or status_code in RETRYABLE_STATUS_CODES,
    )


def provider_error_from_body(
    error: Any, *, provider: Provider, status_code: int | None = None
) -> ProviderError:
    """Build a ProviderError from an error object inside a 2xx body."""
    if not isinstance(error, dict):
        error = {"message": str(error)}
    cause = str(error.get("message") or "").strip()
    code = error.get("code") or error.get("status")
    msg = f"{provider.value} reported an error"
    return ProviderError(
        f"{msg}: {cause}" if cause else msg,
        provider=provider.value,
        status_code=status_code,
        code=str(code) if code is not None else None,
    )
