"""CI check models for companion pull requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional

from dataclasses_json import DataClassJsonMixin

# Type aliases
CIStatus = Literal['pending', 'success', 'failure']


@dataclass(slots=True)
class CheckRun(DataClassJsonMixin):
    """One check run reported for a commit."""

    name: str
    status: str = 'completed'
    conclusion: Optional[str] = None
    id: Optional[int] = None

    @property
    def is_failure(self) -> bool:
        return self.conclusion in ('failure', 'timed_out')


@dataclass(slots=True)
class CICheckOutcome(DataClassJsonMixin):
    """Aggregated CI status of a pull request head."""

    status: CIStatus
    checks: List[CheckRun] = field(default_factory=list)

    @classmethod
    def from_checks(cls, checks: List[CheckRun]) -> CICheckOutcome:
        """Fold individual check runs into one status."""
        if not checks or any(c.status != 'completed' for c in checks):
            return cls(status='pending', checks=checks)
        if any(c.is_failure or c.conclusion == 'cancelled' for c in checks):
            return cls(status='failure', checks=checks)
        return cls(status='success', checks=checks)

    @property
    def failed_checks(self) -> List[CheckRun]:
        return [c for c in self.checks if c.conclusion == 'failure']


@dataclass(slots=True)
class CIFailureInfo(DataClassJsonMixin):
    """Failure details gathered for one failing check."""

    check_name: str
    logs: str
    error_message: Optional[str] = None
    failed_tests: List[str] = field(default_factory=list)
