import aiohttp
import asyncio
import json
import time
from typing import Any, Dict, Optional
from hpd.models import FailureKind, ProbeFailure, ProbeOutcome, ProbeResult
from hpd.utils.logger import logger

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store",
    "Pragma": "no-cache",
}
CONDITIONAL_HEADERS = ("if-modified-since", "if-none-match")


class CacheBypassError(ValueError):
    """Raised when a cache-bypassing request carries headers that would let a cache answer it."""


def _merge_bypass_headers(headers: Dict[str, str]) -> Dict[str, str]:
    lowered = {k.lower(): v for k, v in headers.items()}
    for name in CONDITIONAL_HEADERS:
        if name in lowered:
            raise CacheBypassError(f"Cannot bypass the cache while sending conditional header {name!r}")
    cache_control = lowered.get("cache-control")
    if cache_control is not None and "no-cache" not in cache_control.lower():
        raise CacheBypassError(f"Cache-Control {cache_control!r} conflicts with cache bypass")

    merged = dict(headers)
    for key, value in NO_CACHE_HEADERS.items():
        if key.lower() not in lowered:
            merged[key] = value
    return merged


class HttpClient:
    def __init__(self, timeout: float = 10, proxy: Optional[str] = None,
                 headers: Optional[Dict[str, str]] = None, user_agent: Optional[str] = None):
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.proxy = proxy
        self.headers = dict(headers or {})
        if user_agent:
            self.headers.setdefault("User-Agent", user_agent)
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        self.session = aiohttp.ClientSession(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.session = None

    async def execute(self, url: str, method: str = "GET", body: Any = None,
                      headers: Optional[Dict[str, str]] = None, bypass_cache: bool = False,
                      follow_redirects: bool = True) -> ProbeOutcome:
        """
        Issue one request and normalize the outcome.

        Transport failures are returned as a ProbeFailure, never raised.
        Conflicting cache-bypass headers raise CacheBypassError before any I/O.
        """
        if not self.session:
            raise RuntimeError("Session not initialized. Use 'async with' context manager.")

        method = method.upper()
        request_headers = {**self.headers, **(headers or {})}
        if bypass_cache:
            request_headers = _merge_bypass_headers(request_headers)

        data = body
        if isinstance(body, (dict, list)):
            data = json.dumps(body)
            if not any(k.lower() == "content-type" for k in request_headers):
                request_headers["Content-Type"] = "application/json"

        start = time.monotonic()
        try:
            async with self.session.request(method, url, headers=request_headers, data=data,
                                            allow_redirects=follow_redirects, proxy=self.proxy) as response:
                # Timing includes reading the body
                payload = await response.read()
                duration_ms = int((time.monotonic() - start) * 1000)
                if not 0 <= response.status <= 599:
                    logger.warning(f"{method} {url} returned out-of-range status {response.status}")
                    return ProbeFailure(kind=FailureKind.PROTOCOL_MISMATCH, message=f"Status out of range: {response.status}",
                                        url=url, status=response.status)
                result = ProbeResult(
                    status=response.status,
                    status_text=response.reason or "",
                    headers=dict(response.headers),
                    body=payload,
                    duration_ms=duration_ms,
                    requested_url=url,
                    resolved_url=str(response.url) if response.history else url,
                    method=method,
                )
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            message = str(e) or e.__class__.__name__
            logger.debug(f"Request failed for {url}: {message}")
            return ProbeFailure(kind=FailureKind.NETWORK_ERROR, message=message, url=url)

        logger.debug(f"{method} {url} -> {result.status} {result.status_text} "
                     f"({len(result.body)} bytes, {result.duration_ms}ms)")
        return result

    async def get(self, url: str, **kwargs) -> ProbeOutcome:
        return await self.execute(url, method="GET", **kwargs)

    async def post(self, url: str, body: Any = None, **kwargs) -> ProbeOutcome:
        return await self.execute(url, method="POST", body=body, **kwargs)
