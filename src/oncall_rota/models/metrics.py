"""Fairness, preference and satisfaction metric containers."""
import datetime as dt
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class UserFairnessMetric:
    """Load carried by one user."""
    user_id: str
    user_name: str
    total_shifts: int = 0
    night_shifts: int = 0
    weekend_shifts: int = 0
    holiday_shifts: int = 0
    weighted_cost: float = 0.0  # Sum of fairness weights this period
    accrual: float = 0.0        # Historical accrual + weighted_cost
    deviation_from_mean: float = 0.0


@dataclass
class FairnessMetrics:
    """Roster-wide fairness summary."""
    user_metrics: List[UserFairnessMetric] = field(default_factory=list)
    mean_accrual: float = 0.0
    accrual_std: float = 0.0
    shift_count_std: float = 0.0
    night_std: float = 0.0
    weekend_std: float = 0.0
    holiday_std: float = 0.0
    overall_score: float = 100.0  # 0-100, higher is fairer

    def for_user(self, user_id: str) -> Optional[UserFairnessMetric]:
        for m in self.user_metrics:
            if m.user_id == user_id:
                return m
        return None

    def accruals(self) -> Dict[str, float]:
        return {m.user_id: m.accrual for m in self.user_metrics}


@dataclass
class UserPreferenceScore:
    """How well one user's stated preferences were honoured."""
    user_id: str
    user_name: str
    score: float = 0.0  # Summed preference weight of held assignments
    positive_met: int = 0
    positive_total: int = 0
    avoid_violated: int = 0
    avoid_total: int = 0
    fulfillment: float = 100.0  # 0-100


@dataclass
class PreferenceMetrics:
    """Roster-wide preference summary."""
    user_scores: List[UserPreferenceScore] = field(default_factory=list)
    positive_met: int = 0
    positive_total: int = 0
    avoid_violated: int = 0
    avoid_total: int = 0
    overall_fulfillment: float = 100.0

    def for_user(self, user_id: str) -> Optional[UserPreferenceScore]:
        for s in self.user_scores:
            if s.user_id == user_id:
                return s
        return None


@dataclass(frozen=True)
class SatisfactionScore:
    """A user's 1-5 rating of a published schedule."""
    schedule_id: str
    user_id: str
    score: int
    feedback: str = ""
    submitted_on: Optional[dt.date] = None

    def to_dict(self) -> Dict:
        return {
            "schedule_id": self.schedule_id,
            "user_id": self.user_id,
            "score": self.score,
            "feedback": self.feedback,
            "submitted_on": self.submitted_on.isoformat() if self.submitted_on else None,
        }
