"""Analysis findings models consumed by the governance pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from dataclasses_json import DataClassJsonMixin

# Type aliases for better type safety
RiskLevel = Literal['low', 'medium', 'high', 'critical']
TestType = Literal['unit', 'integration', 'e2e', 'api', 'visual', 'performance']

RISK_LEVELS = ('critical', 'high', 'medium', 'low')


def normalize_level(value: Any, default: RiskLevel = 'medium') -> RiskLevel:
    """Coerce an upstream severity string into a known risk level."""
    if isinstance(value, str) and value.lower() in RISK_LEVELS:
        return value.lower()  # type: ignore[return-value]
    return default


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass(frozen=True, slots=True)
class Risk(DataClassJsonMixin):
    """A single risk identified in the change."""

    level: RiskLevel
    area: str
    title: str = ''
    mitigated: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, infer_missing: bool = False) -> Risk:
        return cls(
            level=normalize_level(_pick(data, 'level', 'severity')),
            area=str(_pick(data, 'area', default='')),
            title=str(_pick(data, 'title', default='')),
            mitigated=bool(_pick(data, 'mitigated', default=False)),
        )


@dataclass(frozen=True, slots=True)
class Gap(DataClassJsonMixin):
    """A gap in testing or requirements."""

    severity: RiskLevel
    title: str = ''
    recommendation: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, infer_missing: bool = False) -> Gap:
        return cls(
            severity=normalize_level(data.get('severity')),
            title=str(data.get('title') or ''),
            recommendation=str(data.get('recommendation') or ''),
        )


@dataclass(frozen=True, slots=True)
class TestScenario(DataClassJsonMixin):
    """A test scenario suggested by the analysis."""

    id: str
    title: str
    priority: RiskLevel
    test_type: TestType = 'e2e'
    category: str = 'happy_path'
    preconditions: List[str] = field(default_factory=list)
    steps: List[str] = field(default_factory=list)
    expected_result: str = ''
    has_automated_test: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, infer_missing: bool = False) -> TestScenario:
        automated = _pick(data, 'hasAutomatedTest', 'has_automated_test')
        if automated is None:
            # Upstream payloads embed the test itself; only real code counts
            test = data.get('automatedTest') or data.get('automated_test') or {}
            automated = bool(isinstance(test, dict) and test.get('code'))

        return cls(
            id=str(data.get('id') or ''),
            title=str(data.get('title') or ''),
            priority=normalize_level(data.get('priority')),
            test_type=_pick(data, 'testType', 'test_type', default='e2e'),
            category=str(data.get('category') or 'happy_path'),
            preconditions=[str(p) for p in data.get('preconditions') or []],
            steps=[str(s) for s in data.get('steps') or []],
            expected_result=str(_pick(data, 'expectedResult', 'expected_result', default='')),
            has_automated_test=bool(automated),
        )


@dataclass(frozen=True, slots=True)
class AnalysisFindings(DataClassJsonMixin):
    """Structured risk analysis of a change, immutable once produced."""

    overall_risk: RiskLevel
    risks: List[Risk] = field(default_factory=list)
    gaps: List[Gap] = field(default_factory=list)
    scenarios: List[TestScenario] = field(default_factory=list)
    summary: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, infer_missing: bool = False) -> AnalysisFindings:
        """Create findings from an upstream payload (camelCase or snake_case)."""
        summary = data.get('summary')
        if isinstance(summary, dict):
            summary = summary.get('description') or summary.get('title')

        return cls(
            overall_risk=normalize_level(_pick(data, 'overallRisk', 'overall_risk'), default='low'),
            risks=[Risk.from_dict(r) for r in data.get('risks') or []],
            gaps=[Gap.from_dict(g) for g in data.get('gaps') or []],
            scenarios=[TestScenario.from_dict(s) for s in data.get('scenarios') or []],
            summary=summary,
        )

    @property
    def critical_scenarios(self) -> List[TestScenario]:
        """Scenarios flagged as critical priority."""
        return [s for s in self.scenarios if s.priority == 'critical']

    @property
    def unmitigated_risks(self) -> List[Risk]:
        return [r for r in self.risks if not r.mitigated]
