"""OpenRouter adapter: the Responses API plus attribution headers."""

from __future__ import annotations

from castor.providers.registry import Provider
from castor.providers.responses import ResponsesAdapter


class OpenRouterAdapter(ResponsesAdapter):
    """OpenRouter ``/api/v1/responses``.

    ``http_referer`` and ``app_title`` are sent as the ``HTTP-Referer`` and
    ``X-Title`` headers OpenRouter uses to attribute traffic to an app.
    """

    provider = Provider.OPENROUTER

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        http_referer: str | None = None,
        app_title: str | None = None,
    ) -> None:
        super().__init__(api_key, base_url=base_url)
        self._http_referer = http_referer
        self._app_title = app_title

    def headers(self) -> dict[str, str]:
        """Return bearer authentication plus attribution headers."""
        headers = super().headers()
        if self._http_referer:
            headers["HTTP-Referer"] = self._http_referer
        if self._app_title:
            headers["X-Title"] = self._app_title
        return headers
