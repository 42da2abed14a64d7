from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from time import perf_counter
from types import TracebackType
from typing import Any, Dict, Optional, Tuple, Type

import httpx

from argus.schemas.settings import ServiceConfig

logger = logging.getLogger(__name__)

USER_AGENT = "argus-lgtm-validator/1.0"


@dataclass
class ProbeResult:
    """Outcome of one outbound request. status_code is None when the request never got a response."""

    url: str
    status_code: Optional[int] = None
    body: str = ""
    error: Optional[str] = None
    elapsed_ms: float = 0.0

    @property
    def reachable(self) -> bool:
        return self.status_code is not None

    @property
    def online(self) -> bool:
        """2xx and 3xx count as online."""
        return self.status_code is not None and 200 <= self.status_code < 400

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300


# PUBLIC_INTERFACE
def basic_auth(cfg: ServiceConfig) -> Optional[Tuple[str, str]]:
    """Basic auth tuple for a service config; None when there is no username."""
    if cfg.username:
        return (cfg.username, cfg.password or "")
    return None


class LGTMClient:
    """
    Thin async HTTP client for probing LGTM services.

    Use as an async context manager. Transport errors are folded into ProbeResult.error
    instead of being raised, so callers map them onto status values.
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
        max_concurrent: int = 20,
    ) -> None:
        if not isinstance(max_concurrent, int) or max_concurrent < 1:
            raise ValueError("max_concurrent must be an integer >= 1")
        self._transport = transport
        self._timeout = timeout
        self._max_concurrent = max_concurrent
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "LGTMClient":
        self._semaphore = asyncio.Semaphore(self._max_concurrent)
        self._client = httpx.AsyncClient(
            transport=self._transport,
            timeout=self._timeout,
            headers={"User-Agent": USER_AGENT},
        )
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        url: str,
        *,
        auth: Optional[Tuple[str, str]] = None,
        timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
        content: Optional[bytes] = None,
        read_body: bool = True,
    ) -> ProbeResult:
        if self._client is None or self._semaphore is None:
            raise RuntimeError("LGTMClient must be used as an async context manager")
        kwargs: Dict[str, Any] = {}
        if auth is not None:
            kwargs["auth"] = auth
        if timeout is not None:
            kwargs["timeout"] = timeout
        if headers:
            kwargs["headers"] = headers
        if content is not None:
            kwargs["content"] = content

        started = perf_counter()
        async with self._semaphore:
            try:
                resp = await self._client.request(method, url, **kwargs)
            except httpx.HTTPError as exc:
                elapsed = (perf_counter() - started) * 1000.0
                logger.debug("Request failed method=%s url=%s error=%s", method, url, exc)
                return ProbeResult(url=url, error=str(exc) or exc.__class__.__name__, elapsed_ms=elapsed)
        elapsed = (perf_counter() - started) * 1000.0
        return ProbeResult(
            url=url,
            status_code=resp.status_code,
            body=resp.text if read_body else "",
            elapsed_ms=elapsed,
        )

    # PUBLIC_INTERFACE
    async def get(self, url: str, **kwargs: Any) -> ProbeResult:
        """GET url; see request() for keyword arguments."""
        return await self.request("GET", url, **kwargs)

    # PUBLIC_INTERFACE
    async def post(self, url: str, **kwargs: Any) -> ProbeResult:
        """POST url; see request() for keyword arguments."""
        return await self.request("POST", url, **kwargs)
