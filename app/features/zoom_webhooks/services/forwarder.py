"""
Forwarder: relays webhook bodies to an external sink (e.g. a Google
Sheets Apps Script endpoint) after Zoom has already been answered.

Best effort only: one attempt, failures are logged and never retried.
"""

from typing import Any

import httpx

from app.features.zoom_webhooks.errors import DownstreamForwardFailure
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 10.0


class EventForwarder:
    def __init__(
        self,
        url: str | None,
        client: httpx.AsyncClient | None = None,
        auth_token: str | None = None,
        auth_field: str = "auth_token",
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.url = url
        self.auth_token = auth_token
        self.auth_field = auth_field
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._owns_client = client is None

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _build_body(self, body: dict[str, Any]) -> dict[str, Any]:
        if not self.auth_token:
            return body
        return {**body, self.auth_field: self.auth_token}

    async def _post(self, body: dict[str, Any]) -> httpx.Response:
        try:
            response = await self._client.post(self.url, json=self._build_body(body))
        except httpx.RequestError as e:
            raise DownstreamForwardFailure(f"Forward sink unreachable: {e}") from e

        if not response.is_success:
            raise DownstreamForwardFailure(
                f"Forward sink answered {response.status_code}",
                status_code=response.status_code,
            )
        return response

    async def forward(self, body: dict[str, Any]) -> bool:
        """
        POST ``body`` to the sink.

        Returns:
            True if the sink accepted it, False otherwise (never raises)
        """
        zoom_event = body.get("event")
        if not self.enabled:
            logger.debug("Forwarding disabled, event not relayed", zoom_event=zoom_event)
            return False

        try:
            response = await self._post(body)
        except DownstreamForwardFailure as e:
            logger.error(
                "Event forward failed",
                zoom_event=zoom_event,
                status_code=e.status_code,
                error=str(e),
            )
            return False

        logger.info("Event forwarded", zoom_event=zoom_event, status_code=response.status_code)
        return True
