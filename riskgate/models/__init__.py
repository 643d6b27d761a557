"""Data models for riskgate."""

from .artifacts import (
    GeneratedTestArtifact,
    TestExample,
    TestGenerationResult,
    TestPattern,
    TestStructure,
    ValidationReport,
    ValidationSummary,
    ValidationWarning,
)
from .ci import CheckRun, CICheckOutcome, CIFailureInfo, CIStatus
from .execution import (
    BranchInfo,
    ChangeContext,
    ChangeEventOutcome,
    CommitResult,
    CompanionPullRequest,
    ExecutionResult,
)
from .findings import AnalysisFindings, Gap, Risk, RiskLevel, TestScenario
from .governance import GovernanceDecision, MergeRecommendation
from .sessions import AutonomousExecutionSession, MonitorState, SessionRegistry

__all__ = [
    "AnalysisFindings",
    "AutonomousExecutionSession",
    "BranchInfo",
    "ChangeContext",
    "ChangeEventOutcome",
    "CheckRun",
    "CICheckOutcome",
    "CIFailureInfo",
    "CIStatus",
    "CommitResult",
    "CompanionPullRequest",
    "ExecutionResult",
    "Gap",
    "GeneratedTestArtifact",
    "GovernanceDecision",
    "MergeRecommendation",
    "MonitorState",
    "Risk",
    "RiskLevel",
    "SessionRegistry",
    "TestExample",
    "TestGenerationResult",
    "TestPattern",
    "TestScenario",
    "TestStructure",
    "ValidationReport",
    "ValidationSummary",
    "ValidationWarning",
]
