# swapdesk/gateways/http.py

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from swapdesk.errors import UpstreamError

log = logging.getLogger(__name__)


class HttpGateway:
    """Lazily-opened aiohttp session plus JSON request handling shared
    by the REST collaborators."""

    service = "http"

    def __init__(self, base_url: str, timeout: float = 30,
                 session: Optional[aiohttp.ClientSession] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def _auth(self) -> Optional[aiohttp.BasicAuth]:
        return None

    def _expect_object(self, data: Any, what: str) -> Dict[str, Any]:
        if not isinstance(data, dict):
            raise UpstreamError(f"{self.service} returned no usable {what} response",
                                service=self.service)
        return data

    def _error_message(self, data: Any, status: int) -> str:
        if isinstance(data, dict):
            for key in ("error", "errorMessage", "message"):
                if data.get(key):
                    return str(data[key])
        return f"{self.service} error: HTTP {status}"

    async def _request(self, method: str, path: str,
                       params: Optional[Dict[str, Any]] = None,
                       payload: Optional[Any] = None,
                       base_url: Optional[str] = None) -> Any:
        session = await self._get_session()
        url = f"{(base_url or self.base_url).rstrip('/')}{path}"
        log.debug(f"{method} {url} params={params} payload={payload}")
        try:
            async with session.request(method, url, params=params, json=payload,
                                       headers=self._headers(),
                                       auth=self._auth()) as resp:
                try:
                    data = await resp.json(content_type=None)
                except ValueError:
                    data = None
                if resp.status >= 400:
                    message = self._error_message(data, resp.status)
                    log.warning(f"{self.service} {method} {path} failed: {resp.status} {message}")
                    raise UpstreamError(message, service=self.service,
                                        status=resp.status)
                log.debug(f"{self.service} {method} {path} -> {data}")
                return data
        except aiohttp.ClientError as e:
            log.error(f"{self.service} unreachable: {e}")
            raise UpstreamError(f"{self.service} unreachable: {e}",
                                service=self.service) from e
        except asyncio.TimeoutError as e:
            log.error(f"{self.service} {method} {path} timed out")
            raise UpstreamError(f"{self.service} request timed out",
                                service=self.service) from e
