"""Candidate scoring: preference weight minus fairness penalty."""
import datetime as dt
from typing import Mapping, Sequence

from oncall_rota.models.config import EngineConfig
from oncall_rota.models.preference import PreferenceLevel, ShiftPreference
from oncall_rota.models.shift import ShiftType


def preference_weight(
    preferences: Sequence[ShiftPreference],
    day: dt.date,
    shift_code: str,
    config: EngineConfig,
) -> float:
    """
    Sum of the weights of every preference matching the slot.

    Date-specific preferences are multiplied by
    ``config.date_preference_multiplier``. Unavailable preferences do not
    score; they exclude the candidate before scoring.
    """
    total = 0.0
    for p in preferences:
        if p.level == PreferenceLevel.UNAVAILABLE or not p.matches(day, shift_code):
            continue
        weight = config.preference_weight(p.level)
        if p.is_date_specific:
            weight *= config.date_preference_multiplier
        total += weight
    return total


def fairness_penalty(
    accrual: float,
    mean_accrual: float,
    shift_type: ShiftType,
    config: EngineConfig,
) -> float:
    """
    Penalty for handing ``shift_type`` to a user carrying ``accrual``.

    Positive for users above the roster mean, negative (a bonus) below it,
    scaled by how burdensome the shift is.
    """
    return config.fairness_penalty_factor * shift_type.fairness_weight * (accrual - mean_accrual)


def roster_mean(accruals: Mapping[str, float]) -> float:
    if not accruals:
        return 0.0
    return sum(accruals[k] for k in sorted(accruals)) / len(accruals)
