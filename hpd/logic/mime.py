from enum import Enum
from typing import Iterable, List, Optional, Union
from hpd.config import ProbeConfig
from hpd.http_client import HttpClient
from hpd.logic.report import decode_text
from hpd.models import MimeCheck, ProbeFailure, ProbeResult
from hpd.utils.logger import logger

PREVIEW_LIMIT = 300


class MimeResource(Enum):
    """Static resources served by the target and the content type each should carry."""

    HTML = ("html", "/index.html", "text/html", False)
    CSS = ("css", "/style.css", "text/css", False)
    SCRIPT = ("script", "/app.js", "application/javascript", False)
    DATA = ("data", "/data.json", "application/json", False)
    IMAGE = ("image", "/favicon.png", "image/png", True)

    def __init__(self, key: str, path: str, expected_kind: str, is_binary: bool):
        self.key = key
        self.path = path
        self.expected_kind = expected_kind
        self.is_binary = is_binary

    @classmethod
    def from_key(cls, key: str) -> "MimeResource":
        for resource in cls:
            if resource.key == key:
                return resource
        raise ValueError(f"Unknown MIME resource: {key}")


def preview_body(resp: ProbeResult, is_binary: bool) -> str:
    if is_binary:
        content_type = resp.header("Content-Type", "unknown")
        return f"[binary data] size: {len(resp.body)} bytes, type: {content_type}"
    text = decode_text(resp.body, resp.header("Content-Type"))
    if len(text) > PREVIEW_LIMIT:
        return text[:PREVIEW_LIMIT] + "..."
    return text


class MimeValidator:
    def __init__(self, config: ProbeConfig):
        self.config = config

    async def check(self, client: HttpClient, resource: MimeResource) -> Union[MimeCheck, ProbeFailure]:
        url = self.config.url_for(resource.path)
        resp = await client.execute(url, bypass_cache=True)
        if isinstance(resp, ProbeFailure):
            return resp

        content_type = resp.header("Content-Type", "")
        matched = resource.expected_kind in content_type
        if not matched:
            logger.warning(f"{url}: expected {resource.expected_kind}, got {content_type or '(none)'}")

        return MimeCheck(
            resource_key=resource.key,
            url=url,
            expected_kind=resource.expected_kind,
            observed_content_type=content_type,
            matched=matched,
            body_preview=preview_body(resp, resource.is_binary),
            status=resp.status,
            duration_ms=resp.duration_ms,
            content_length=resp.header("Content-Length"),
        )

    async def check_all(self, client: HttpClient,
                        resources: Optional[Iterable[MimeResource]] = None) -> Union[List[MimeCheck], ProbeFailure]:
        """Checks each resource in turn; the first failure ends the run."""
        checks = []
        for resource in (list(MimeResource) if resources is None else resources):
            result = await self.check(client, resource)
            if isinstance(result, ProbeFailure):
                return result
            checks.append(result)
        return checks
