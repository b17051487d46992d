"""HTTP transport to the simulator's RemoteControl API.

External dependencies (httpx) are confined to this layer. Transport-level
failures (refused connection, timeout) become UnreachableError, non-2xx
answers become HttpStatusError; everything above works with those two.
"""

import logging
from typing import Any

import httpx

from stelbridge.config import Settings
from stelbridge.errors import HttpStatusError, UnreachableError

_log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8090/api"
USER_AGENT = "stelbridge/0.1"


class StelClient:
    """Async request/response calls against one remote simulator.

    POST bodies are form-encoded, which is what the RemoteControl plugin parses.

    Args:
        base_url: API root, e.g. ``http://localhost:8090/api``.
        timeout: Per-request timeout in seconds; a timeout counts as unreachable.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"User-Agent": USER_AGENT},
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "StelClient":
        return cls(base_url=settings.base_url, timeout=settings.timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "StelClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        return await self._request("GET", path, params=params)

    async def post(self, path: str, data: dict[str, str]) -> str:
        """POST a form and return the response body, stripped."""
        resp = await self._request("POST", path, data=data)
        return resp.text.strip()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise UnreachableError(f"{method} {path} failed: {e!r}") from e
        if not resp.is_success:
            raise HttpStatusError(resp.status_code, resp.reason_phrase)
        _log.debug("%s %s -> %d", method, path, resp.status_code)
        return resp
