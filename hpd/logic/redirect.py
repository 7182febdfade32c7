from enum import Enum
from typing import Optional, Tuple, Union
from urllib.parse import urljoin, urlparse
from hpd.config import MAX_REDIRECT_STEPS
from hpd.http_client import HttpClient, NO_CACHE_HEADERS
from hpd.models import ProbeFailure, ProbeResult, RedirectStep, RedirectTrace, TraceMode
from hpd.utils.logger import logger

REDIRECT_STATUSES = {301, 302, 303, 307, 308}


class RedirectMarker(Enum):
    """Path markers of the known redirect endpoints and the status each one implies."""

    PERMANENT = (301, "Moved Permanently", ("permanent-redirect", "old-page"))
    TEMPORARY = (302, "Found", ("temporary-redirect", "temp-redirect"))

    def __init__(self, status: int, reason: str, markers: Tuple[str, ...]):
        self.status = status
        self.reason = reason
        self.markers = markers

    @classmethod
    def match(cls, path: str) -> Optional["RedirectMarker"]:
        for marker in cls:
            if any(m in path for m in marker.markers):
                return marker
        return None


def looks_like_redirect(url: str) -> bool:
    path = normalized_path(url)
    return RedirectMarker.match(path) is not None or "redirect" in path


def normalized_path(url: str) -> str:
    path = urlparse(url).path or "/"
    if len(path) > 1:
        path = path.rstrip("/")
    return path


class RedirectChainTracer:
    def __init__(self, manual: bool = True, max_steps: int = MAX_REDIRECT_STEPS):
        self.manual = manual
        self.max_steps = max_steps

    async def trace(self, client: HttpClient, url: str) -> Union[RedirectTrace, ProbeFailure]:
        """
        Reconstruct the redirect chain for url.
        Returns the ProbeFailure of the first request that failed, if any.
        """
        if self.manual:
            return await self._trace_manual(client, url)
        return await self._trace_inferred(client, url)

    async def _trace_manual(self, client: HttpClient, url: str) -> Union[RedirectTrace, ProbeFailure]:
        trace = RedirectTrace(url=url, mode=TraceMode.MANUAL)
        visited = set()
        current = url

        while len(trace.steps) < self.max_steps:
            visited.add(current)
            resp = await client.execute(current, bypass_cache=True, follow_redirects=False)
            if isinstance(resp, ProbeFailure):
                return resp

            order = len(trace.steps) + 1
            location = resp.header("Location")
            if resp.status not in REDIRECT_STATUSES or not location:
                trace.steps.append(RedirectStep(
                    order=order,
                    requested_url=current,
                    resolved_url=resp.resolved_url,
                    result=resp,
                ))
                logger.debug(f"Trace step {order}: {current} -> {resp.status} (terminal)")
                return trace

            target = urljoin(current, location)
            trace.steps.append(RedirectStep(
                order=order,
                requested_url=current,
                resolved_url=current,
                inferred_status=resp.status,
                inferred_location=target,
                result=resp,
            ))
            logger.debug(f"Trace step {order}: {current} -> {resp.status} {target}")

            if target in visited:
                logger.warning(f"Redirect cycle detected at {target}")
                trace.cycle_detected = True
                return trace
            current = target

        logger.warning(f"Redirect chain for {url} exceeded {self.max_steps} steps")
        trace.truncated = True
        return trace

    async def _trace_inferred(self, client: HttpClient, url: str) -> Union[RedirectTrace, ProbeFailure]:
        # The client follows redirects on its own; only the final URL is visible.
        resp = await client.execute(url, headers=dict(NO_CACHE_HEADERS), bypass_cache=True, follow_redirects=True)
        if isinstance(resp, ProbeFailure):
            return resp

        trace = RedirectTrace(url=url, mode=TraceMode.INFERRED)
        original_path = normalized_path(url)
        final_path = normalized_path(resp.resolved_url)

        if original_path == final_path:
            trace.steps.append(RedirectStep(order=1, requested_url=url, resolved_url=resp.resolved_url, result=resp))
            return trace

        marker = RedirectMarker.match(original_path)
        if marker is None:
            logger.warning(f"{url} redirected to {final_path} but carries no known marker; status unknown")
        trace.steps.append(RedirectStep(
            order=1,
            requested_url=url,
            resolved_url=resp.resolved_url,
            inferred_status=marker.status if marker else None,
            inferred_location=final_path,
        ))
        trace.steps.append(RedirectStep(
            order=2,
            requested_url=resp.resolved_url,
            resolved_url=resp.resolved_url,
            result=resp,
        ))
        return trace


def reason_for(status: Optional[int]) -> str:
    for marker in RedirectMarker:
        if marker.status == status:
            return marker.reason
    return {303: "See Other", 307: "Temporary Redirect", 308: "Permanent Redirect"}.get(status, "Redirect")
