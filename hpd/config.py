import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from hpd import __version__

DEFAULT_BASE_URL = "http://localhost:8080"
DEFAULT_USER_AGENT = f"HPD/{__version__} (HTTP Protocol Diagnostics)"
MAX_REDIRECT_STEPS = 10


def _float_env(name: str, default: float) -> float:
    try:
        value = os.getenv(name)
        return float(value) if value is not None else default
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class ProbeConfig:
    """Where to probe and how the HTTP client behaves."""

    base_url: str = field(default_factory=lambda: os.getenv("HPD_BASE_URL", DEFAULT_BASE_URL))
    timeout: float = field(default_factory=lambda: _float_env("HPD_TIMEOUT", 10.0))
    proxy: Optional[str] = field(default_factory=lambda: os.getenv("HPD_PROXY"))
    manual_redirects: bool = field(default_factory=lambda: _bool_env("HPD_MANUAL_REDIRECTS", True))
    max_redirects: int = MAX_REDIRECT_STEPS
    user_agent: str = field(default_factory=lambda: os.getenv("HPD_USER_AGENT", DEFAULT_USER_AGENT))
    headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self.base_url = self.base_url.rstrip("/")
        if not 1 <= self.max_redirects <= MAX_REDIRECT_STEPS:
            raise ValueError(f"max_redirects must be between 1 and {MAX_REDIRECT_STEPS}")

    def url_for(self, path: str) -> str:
        """Resolve a server path (or pass through an absolute URL)."""
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.base_url}{path}"
