from typing import Optional

from hpd.models import ProbeFailure


class ScenarioAborted(Exception):
    """A request inside a multi-step scenario failed; the rest of the scenario is skipped."""

    def __init__(self, failure: ProbeFailure, step: Optional[str] = None):
        self.failure = failure
        self.step = step
        prefix = f"{step}: " if step else ""
        super().__init__(f"{prefix}{failure.describe()}")


class CredentialError(ValueError):
    """Credentials rejected by client-side validation before any request is sent."""
