"""Risk scoring and merge decision policy."""

from typing import Dict

from ..models.findings import AnalysisFindings, RiskLevel
from ..models.governance import GovernanceDecision, MergeRecommendation

BASE_SCORES: Dict[str, int] = {
    'critical': 30,
    'high': 20,
    'medium': 10,
    'low': 0,
}

RISK_WEIGHTS: Dict[str, int] = {
    'critical': 40,
    'high': 25,
    'medium': 10,
    'low': 3,
}

GAP_WEIGHTS: Dict[str, int] = {
    'critical': 15,
    'high': 10,
    'medium': 5,
    'low': 2,
}

RISK_CONTRIBUTION_CAP = 50
GAP_CONTRIBUTION_CAP = 15
UNCOVERED_CRITICAL_BONUS = 5

BLOCK_THRESHOLD = 70
ATTENTION_THRESHOLD = 30


def score(findings: AnalysisFindings) -> int:
    """Calculate a 0-100 risk score for an analysis.

    Score ranges:
        0-20: very safe, minimal risks
        21-40: low risk, minor issues
        41-60: medium risk, needs attention
        61-80: high risk, significant issues
        81-100: critical risk, serious problems
    """
    total = BASE_SCORES.get(findings.overall_risk, 0)

    risk_contribution = sum(RISK_WEIGHTS.get(risk.level, 0) for risk in findings.risks)
    total += min(risk_contribution, RISK_CONTRIBUTION_CAP)

    gap_contribution = sum(GAP_WEIGHTS.get(gap.severity, 0) for gap in findings.gaps)
    total += min(gap_contribution, GAP_CONTRIBUTION_CAP)

    # Flat bonus: any uncovered critical scenario counts once
    critical = findings.critical_scenarios
    if critical and any(not s.has_automated_test for s in critical):
        total += UNCOVERED_CRITICAL_BONUS

    return max(0, min(100, round(total)))


def decide(risk_score: int, overall_risk: RiskLevel) -> MergeRecommendation:
    """Map a score and overall severity onto a merge recommendation.

    Severity is checked before the score at each tier.
    """
    if overall_risk == 'critical' or risk_score >= BLOCK_THRESHOLD:
        return 'block'

    if overall_risk == 'high' or risk_score >= ATTENTION_THRESHOLD:
        return 'attention'

    return 'merge_ok'


def compute_governance_decision(findings: AnalysisFindings) -> GovernanceDecision:
    """Score an analysis and derive its merge recommendation."""
    risk_score = score(findings)
    return GovernanceDecision(
        risk_score=risk_score,
        recommendation=decide(risk_score, findings.overall_risk),
    )
