"""HTTP transport: one JSON POST per provider round trip."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
import json
import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from castor._http import USER_AGENT
from castor.errors import MalformedResponseError, TransportError, _walk_exception_chain

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawResponse:
    """Status, body bytes and headers of one HTTP response."""

    status_code: int
    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the status is 2xx."""
        return 200 <= self.status_code < 300

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def json(self) -> Any:
        """Decode the body as JSON.

        Raises:
            MalformedResponseError: If the body is not valid JSON.
        """
        try:
            return json.loads(self.body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedResponseError(
                f"Provider returned a non-JSON body (status={self.status_code})"
            ) from e


@runtime_checkable
class Transport(Protocol):
    """Sends a JSON payload to an endpoint and returns the raw response.

    Implementations raise :class:`TransportError` for connection-level
    failures and return non-2xx responses unchanged.
    """

    async def send(
        self,
        endpoint: str,
        payload: Mapping[str, Any],
        headers: Mapping[str, str],
    ) -> RawResponse:
        """POST *payload* as JSON to *endpoint*."""
        ...


class HttpxTransport:
    """Transport backed by a shared ``httpx.AsyncClient``.

    Clients passed in by the caller are not closed by :meth:`aclose`.
    """

    def __init__(
        self,
        *,
        timeout_s: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_s),
            headers={"User-Agent": USER_AGENT},
        )

    async def send(
        self,
        endpoint: str,
        payload: Mapping[str, Any],
        headers: Mapping[str, str],
    ) -> RawResponse:
        """POST *payload* as JSON to *endpoint*."""
        try:
            response = await self._client.post(
                endpoint, json=dict(payload), headers=dict(headers)
            )
        except httpx.HTTPError as e:
            raise wrap_transport_error(e, endpoint=endpoint) from e
        logger.debug("POST %s -> %d", endpoint, response.status_code)
        return RawResponse(
            status_code=response.status_code,
            body=response.content,
            headers=dict(response.headers),
        )

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpxTransport:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


def wrap_transport_error(exc: BaseException, *, endpoint: str) -> TransportError:
    """Map an httpx failure into a TransportError."""
    for e in _walk_exception_chain(exc):
        if isinstance(e, httpx.TimeoutException):
            return TransportError(
                f"Request to {endpoint} timed out",
                endpoint=endpoint,
                hint="Raise Config.request_timeout_s for slow models.",
                retryable=True,
            )
    for e in _walk_exception_chain(exc):
        if isinstance(e, httpx.TransportError):
            return TransportError(
                f"Could not reach {endpoint}: {e}",
                endpoint=endpoint,
                hint="Check network connectivity and Config.base_url.",
                retryable=True,
            )
    return TransportError(f"Request to {endpoint} failed: {exc}", endpoint=endpoint)
