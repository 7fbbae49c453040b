"""Engine configuration: weight tables, thresholds and calendar."""
import datetime as dt
from dataclasses import dataclass, field, fields
from typing import Dict, FrozenSet

from .preference import PreferenceLevel


def _default_preference_weights() -> Dict[PreferenceLevel, float]:
    return {
        PreferenceLevel.STRONGLY_PREFER: 50.0,
        PreferenceLevel.PREFER: 25.0,
        PreferenceLevel.NEUTRAL: 0.0,
        PreferenceLevel.AVOID: -50.0,
    }


@dataclass
class EngineConfig:
    """Configuration shared by the optimization engine and the swap service."""

    # Preference scoring (UNAVAILABLE never scores, it excludes)
    preference_weights: Dict[PreferenceLevel, float] = field(default_factory=_default_preference_weights)
    date_preference_multiplier: float = 2.0  # Date-specific preferences count more

    # Fairness
    fairness_penalty_factor: float = 10.0  # Score points per unit of accrual above the mean
    fairness_drift_threshold: float = 3.0  # Swap warning beyond this distance from the mean

    # Hard rules
    default_min_rest_hours: int = 10
    allow_overtime: bool = False  # If True, RotaUser.max_shifts is ignored

    # Calendar
    holidays: FrozenSet[dt.date] = field(default_factory=frozenset)
    warn_weekend_swaps: bool = True

    def preference_weight(self, level: PreferenceLevel) -> float:
        return self.preference_weights.get(level, 0.0)

    def is_holiday(self, day: dt.date) -> bool:
        return day in self.holidays

    def to_dict(self) -> Dict:
        """Serialize to dictionary."""
        return {
            "preference_weights": {k.value: v for k, v in self.preference_weights.items()},
            "date_preference_multiplier": self.date_preference_multiplier,
            "fairness_penalty_factor": self.fairness_penalty_factor,
            "fairness_drift_threshold": self.fairness_drift_threshold,
            "default_min_rest_hours": self.default_min_rest_hours,
            "allow_overtime": self.allow_overtime,
            "holidays": sorted(d.isoformat() for d in self.holidays),
            "warn_weekend_swaps": self.warn_weekend_swaps,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "EngineConfig":
        """Create from dictionary. Unknown keys are ignored."""
        cfg = cls()
        known = {f.name for f in fields(cls)}
        for key, value in d.items():
            if key not in known:
                continue
            if key == "preference_weights":
                weights = _default_preference_weights()
                weights.update({PreferenceLevel.from_string(k): float(v) for k, v in value.items()})
                value = weights
            elif key == "holidays":
                value = frozenset(
                    v if isinstance(v, dt.date) else dt.date.fromisoformat(str(v)) for v in value
                )
            setattr(cfg, key, value)
        return cfg
