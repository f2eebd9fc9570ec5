import asyncio
import logging

import requests

from slotsync.domain.errors import TransportError

from .ports import ApiRequest, RawResponse, Transport

log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://localhost:7110/api"


def normalize_base_url(raw: str) -> str:
    """The authority lives under /api; accept the URL with or without it."""
    raw = raw.rstrip("/")
    return raw if raw.endswith("/api") else f"{raw}/api"


class RequestsTransport(Transport):
    """Adapter: real HTTP transport on a shared requests.Session."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = 10.0):
        self.base_url = normalize_base_url(base_url)
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/json",
                "Content-Type": "application/json",
                "Cache-Control": "no-cache",
            }
        )

    async def send(self, request: ApiRequest, bearer: str | None = None) -> RawResponse:
        # requests blocks; keep the event loop free while it waits.
        return await asyncio.to_thread(self._send_blocking, request, bearer)

    def _send_blocking(self, request: ApiRequest, bearer: str | None) -> RawResponse:
        headers = {"Authorization": f"Bearer {bearer}"} if bearer else {}
        url = f"{self.base_url}{request.path}"
        log.debug("%s %s params=%s", request.method, request.path, request.params)
        try:
            resp = self.session.request(
                request.method,
                url,
                params=request.params or None,
                json=request.body,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            log.warning("%s %s failed: %s", request.method, request.path, exc)
            raise TransportError(str(exc)) from exc

        return RawResponse(status=resp.status_code, text=resp.text, reason=resp.reason or "")
