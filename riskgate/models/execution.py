"""Change context and autonomous execution result models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from dataclasses_json import DataClassJsonMixin

from .artifacts import GeneratedTestArtifact
from .governance import GovernanceDecision


@dataclass(slots=True)
class ChangeContext(DataClassJsonMixin):
    """The originating pull request being analyzed."""

    owner: str
    repo: str
    pull_number: int
    title: str = ''
    body: Optional[str] = None
    diff: str = ''
    head_sha: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.owner:
            raise ValueError("Owner cannot be empty")
        if not self.repo:
            raise ValueError("Repo cannot be empty")

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def pull_url(self) -> str:
        return f"https://github.com/{self.repository}/pull/{self.pull_number}"


@dataclass(slots=True)
class BranchInfo(DataClassJsonMixin):
    name: str
    sha: str


@dataclass(slots=True)
class CommitResult(DataClassJsonMixin):
    sha: str
    branch: str
    files_committed: List[str] = field(default_factory=list)


@dataclass(slots=True)
class CompanionPullRequest(DataClassJsonMixin):
    """The pull request opened to carry generated tests."""

    number: int
    url: str
    branch: str


@dataclass(slots=True)
class ExecutionResult:
    """Outcome of one autonomous execution run."""

    artifacts: List[GeneratedTestArtifact] = field(default_factory=list)
    companion_pr: Optional[CompanionPullRequest] = None
    errors: List[str] = field(default_factory=list)
    monitoring_scheduled: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            'artifacts': [a.to_dict() for a in self.artifacts],
            'companion_pr': self.companion_pr.to_dict() if self.companion_pr else None,
            'errors': list(self.errors),
            'monitoring_scheduled': self.monitoring_scheduled,
        }


@dataclass(slots=True)
class ChangeEventOutcome:
    """Governance decision plus the autonomous run it was decoupled from."""

    decision: GovernanceDecision
    execution: ExecutionResult
