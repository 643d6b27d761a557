"""Governance decision model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Literal

from dataclasses_json import DataClassJsonMixin

MergeRecommendation = Literal['merge_ok', 'attention', 'block']

RECOMMENDATION_LABELS: Dict[str, str] = {
    'merge_ok': 'Merge OK',
    'attention': 'Attention Required',
    'block': 'Block - Fix Required',
}


@dataclass(frozen=True, slots=True)
class GovernanceDecision(DataClassJsonMixin):
    """Risk score and merge recommendation derived from one analysis."""

    risk_score: int
    recommendation: MergeRecommendation

    def __post_init__(self) -> None:
        if not 0 <= self.risk_score <= 100:
            raise ValueError("Risk score must be between 0 and 100")
        if self.recommendation not in RECOMMENDATION_LABELS:
            raise ValueError(f"Unknown recommendation: {self.recommendation}")

    @property
    def is_blocking(self) -> bool:
        return self.recommendation == 'block'

    @property
    def label(self) -> str:
        return RECOMMENDATION_LABELS[self.recommendation]
