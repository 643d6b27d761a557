"""CI monitoring session models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterator, List, Literal, Optional

from .artifacts import GeneratedTestArtifact

# Type aliases
MonitorState = Literal[
    'scheduled', 'polling', 'remediating', 'success', 'reported_failure', 'timeout'
]

TERMINAL_STATES = ('success', 'reported_failure', 'timeout')


@dataclass(slots=True)
class AutonomousExecutionSession:
    """Bookkeeping for one companion PR's CI monitoring lifecycle."""

    pr_number: int
    original_artifacts: List[GeneratedTestArtifact]
    attempted_auto_fix: bool = False
    checks_performed: int = 0
    state: MonitorState = 'scheduled'
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def transition(self, new_state: MonitorState) -> None:
        """Move to a new state; terminal states are final."""
        if self.is_terminal:
            raise ValueError(f"Session {self.pr_number} already terminated in {self.state}")
        self.state = new_state
        self.updated_at = datetime.utcnow()

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


class SessionRegistry:
    """In-memory sessions keyed by companion PR number.

    Only the event loop that owns the CI monitor reads or writes it, so no
    lock is taken. Sessions are created when a companion PR is opened and
    removed on every terminal transition.
    """

    def __init__(self) -> None:
        self._sessions: Dict[int, AutonomousExecutionSession] = {}

    def create(
        self,
        pr_number: int,
        original_artifacts: List[GeneratedTestArtifact],
    ) -> AutonomousExecutionSession:
        if pr_number in self._sessions:
            raise ValueError(f"A monitoring session already exists for PR #{pr_number}")
        session = AutonomousExecutionSession(
            pr_number=pr_number,
            original_artifacts=list(original_artifacts),
        )
        self._sessions[pr_number] = session
        return session

    def get(self, pr_number: int) -> Optional[AutonomousExecutionSession]:
        return self._sessions.get(pr_number)

    def remove(self, pr_number: int) -> Optional[AutonomousExecutionSession]:
        """Drop a session; removing an unknown key is a no-op."""
        return self._sessions.pop(pr_number, None)

    def __contains__(self, pr_number: object) -> bool:
        return pr_number in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[AutonomousExecutionSession]:
        return iter(list(self._sessions.values()))
