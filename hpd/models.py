from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class FailureKind(str, Enum):
    NETWORK_ERROR = "NetworkError"
    PROTOCOL_MISMATCH = "ProtocolMismatch"


class CacheOutcome(str, Enum):
    NOT_MODIFIED = "NotModified"
    UPDATED = "Updated"
    UNSUPPORTED = "Unsupported"


class Verdict(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class TraceMode(str, Enum):
    MANUAL = "manual"
    INFERRED = "inferred"


@dataclass(frozen=True)
class ProbeResult:
    status: int
    status_text: str
    headers: Dict[str, str]
    body: bytes
    duration_ms: int
    requested_url: str
    resolved_url: str
    method: str = "GET"

    def __post_init__(self):
        if not 0 <= self.status <= 599:
            raise ValueError(f"Status out of range: {self.status}")
        if self.duration_ms < 0:
            raise ValueError(f"Negative duration: {self.duration_ms}")

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    @property
    def redirected(self) -> bool:
        return self.requested_url != self.resolved_url

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "status": self.status,
            "status_text": self.status_text,
            "headers": dict(self.headers),
            "body_length": len(self.body),
            "duration_ms": self.duration_ms,
            "requested_url": self.requested_url,
            "resolved_url": self.resolved_url,
        }


@dataclass(frozen=True)
class ProbeFailure:
    kind: FailureKind
    message: str
    url: str
    status: Optional[int] = None

    def describe(self) -> str:
        status = f" (status {self.status})" if self.status is not None else ""
        return f"{self.kind.value} for {self.url}{status}: {self.message}"


ProbeOutcome = Union[ProbeResult, ProbeFailure]


@dataclass
class RedirectStep:
    order: int
    requested_url: str
    resolved_url: str
    inferred_status: Optional[int] = None
    inferred_location: Optional[str] = None
    result: Optional[ProbeResult] = None

    @property
    def is_redirect(self) -> bool:
        return self.inferred_status is not None or self.inferred_location is not None


@dataclass
class RedirectTrace:
    url: str
    mode: TraceMode
    steps: List[RedirectStep] = field(default_factory=list)
    cycle_detected: bool = False
    truncated: bool = False

    @property
    def final(self) -> Optional[ProbeResult]:
        for step in reversed(self.steps):
            if step.result is not None:
                return step.result
        return None

    @property
    def redirected(self) -> bool:
        return any(step.is_redirect for step in self.steps)


@dataclass
class CacheValidationRun:
    initial: ProbeResult
    last_modified: Optional[str]
    conditional: Optional[ProbeResult]
    outcome: CacheOutcome

    @property
    def saved_bytes(self) -> int:
        if self.outcome is CacheOutcome.NOT_MODIFIED:
            return len(self.initial.body)
        return 0

    @property
    def conditional_body(self) -> bytes:
        if self.conditional is None or self.outcome is CacheOutcome.NOT_MODIFIED:
            return b""
        return self.conditional.body


@dataclass
class MimeCheck:
    resource_key: str
    url: str
    expected_kind: str
    observed_content_type: str
    matched: bool
    body_preview: str
    status: int = 0
    duration_ms: int = 0
    content_length: Optional[str] = None


@dataclass
class ReportRecord:
    url: str
    method: str
    status: int
    status_text: str
    status_class: str
    duration_ms: int
    headers_display: str
    body_display: str
    body_format: str
    truncated: bool = False


@dataclass
class ScenarioReport:
    scenario: str
    title: str
    verdict: Verdict
    summary: List[str] = field(default_factory=list)
    records: List[ReportRecord] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["verdict"] = self.verdict.value
        return data
