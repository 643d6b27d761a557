"""Orchestration components for the riskgate pipeline."""

from .executor import AutonomousExecutor
from .fixer import AutoFixResult, CIAutoFixer
from .generator import TestGenerationOrchestrator, write_test_files
from .governance import compute_governance_decision, decide, score
from .monitor import CIMonitor
from .pattern_detector import TestPatternDetector
from .pipeline import GovernancePipeline
from .validators import DefaultSyntaxValidator, NoopSyntaxValidator, resolve_validator

__all__ = [
    "AutoFixResult",
    "AutonomousExecutor",
    "CIAutoFixer",
    "CIMonitor",
    "DefaultSyntaxValidator",
    "GovernancePipeline",
    "NoopSyntaxValidator",
    "TestGenerationOrchestrator",
    "TestPatternDetector",
    "compute_governance_decision",
    "decide",
    "resolve_validator",
    "score",
    "write_test_files",
]
