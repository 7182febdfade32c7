import html
import json
from typing import Any, Optional, Tuple
from hpd.models import ProbeResult, ReportRecord

BODY_DISPLAY_LIMIT = 500
TRUNCATION_MARKER = "\n... (content truncated)"


def status_class(status: int) -> str:
    """
    Bucket a status code by hundred ("2xx", "4xx", ...).
    Only used to pick how a status is presented.
    """
    return f"{max(status, 0) // 100}xx"


def truncate(text: str, limit: int = BODY_DISPLAY_LIMIT, marker: str = TRUNCATION_MARKER) -> Tuple[str, bool]:
    if len(text) <= limit:
        return text, False
    # The display must end with the only copy of the marker
    kept = text[:limit]
    while marker in kept:
        kept = kept.replace(marker, "")
    return kept + marker, True


def parse_structured(text: str) -> Tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except ValueError:
        return False, None


BINARY_TYPES = ("image/", "audio/", "video/", "font/", "application/octet-stream",
                "application/pdf", "application/zip", "application/gzip")


def charset_of(content_type: Optional[str]) -> Optional[str]:
    for param in (content_type or "").split(";")[1:]:
        key, _, value = param.partition("=")
        if key.strip().lower() == "charset" and value.strip():
            return value.strip().strip('"')
    return None


def is_binary_type(content_type: Optional[str]) -> bool:
    media_type = (content_type or "").split(";")[0].strip().lower()
    return media_type.startswith(BINARY_TYPES)


def decode_text(body: bytes, content_type: Optional[str] = None) -> str:
    charset = charset_of(content_type)
    if charset:
        try:
            return body.decode(charset, errors="replace")
        except LookupError:
            pass
    return body.decode("utf-8", errors="replace")


def render_body(body: bytes, content_type: Optional[str] = None) -> Tuple[str, str, bool]:
    """
    Returns (display text, format, truncated). JSON bodies are pretty-printed
    in full; anything else is plain text cut at BODY_DISPLAY_LIMIT.
    Only non-text media types are summarized as binary. Text is decoded with
    the declared charset, falling back to UTF-8 with replacement characters.
    """
    if is_binary_type(content_type):
        return f"[binary data] {len(body)} bytes", "binary", False

    text = decode_text(body, content_type)

    ok, value = parse_structured(text) if text.strip() else (False, None)
    if ok:
        return json.dumps(value, indent=2, ensure_ascii=False), "json", False

    display, truncated = truncate(text)
    return display, "text", truncated


def build_report(url: str, result: ProbeResult, duration_ms: int, method: Optional[str] = None) -> ReportRecord:
    body_text, body_format, truncated = render_body(result.body, result.header("Content-Type"))
    headers_text = json.dumps(dict(result.headers), indent=2, ensure_ascii=False)
    return ReportRecord(
        url=html.escape(url),
        method=(method or result.method).upper(),
        status=result.status,
        status_text=html.escape(result.status_text),
        status_class=status_class(result.status),
        duration_ms=duration_ms,
        headers_display=html.escape(headers_text),
        body_display=html.escape(body_text),
        body_format=body_format,
        truncated=truncated,
    )
