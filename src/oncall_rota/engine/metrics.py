"""
Fairness and Preference Metrics
===============================
Single source of truth for per-user load and preference statistics.
Recomputed after generation and after every accepted swap.
"""
import datetime as dt
from dataclasses import replace
from statistics import pstdev
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from oncall_rota.engine.scoring import preference_weight, roster_mean
from oncall_rota.models.config import EngineConfig
from oncall_rota.models.metrics import (
    FairnessMetrics,
    PreferenceMetrics,
    UserFairnessMetric,
    UserPreferenceScore,
)
from oncall_rota.models.preference import PreferenceLevel, ShiftPreference
from oncall_rota.models.schedule import ShiftAssignment
from oncall_rota.models.shift import DEFAULT_SHIFT_TYPES, ShiftTypeRegistry, is_weekend
from oncall_rota.models.user import RotaUser
from oncall_rota.utils.logging_setup import get_logger

logger = get_logger("oncall_rota.engine.metrics")


def _active_by_user(assignments: Iterable[ShiftAssignment]) -> Dict[str, List[ShiftAssignment]]:
    by_user: Dict[str, List[ShiftAssignment]] = {}
    for a in assignments:
        if a.is_active:
            by_user.setdefault(a.user_id, []).append(a)
    return by_user


def user_accruals(
    assignments: Iterable[ShiftAssignment],
    roster: Sequence[RotaUser],
    shift_types: ShiftTypeRegistry = DEFAULT_SHIFT_TYPES,
) -> Dict[str, float]:
    """Historical accrual plus the weighted cost of currently held shifts."""
    by_user = _active_by_user(assignments)
    return {
        u.id: u.fairness_accrual + sum(
            shift_types[a.shift_type].fairness_weight for a in by_user.get(u.id, [])
        )
        for u in roster
    }


def _overall_fairness(shift_std: float, weekend_std: float, holiday_std: float, night_std: float) -> float:
    """0-100; lower spread between users scores higher."""
    penalty = shift_std * 4.0 + weekend_std * 3.0 + holiday_std * 2.0 + night_std * 3.0
    return max(0.0, min(100.0, 100.0 - penalty))


def compute_fairness_metrics(
    assignments: Iterable[ShiftAssignment],
    roster: Sequence[RotaUser],
    shift_types: ShiftTypeRegistry = DEFAULT_SHIFT_TYPES,
    holidays: Iterable[dt.date] = (),
) -> FairnessMetrics:
    """
    Calculate per-user load and roster-wide spread.

    Args:
        assignments: Assignments of the schedule (inactive ones are ignored)
        roster: Users to report on; assignments of other users are ignored
        shift_types: Registry supplying fairness weights and night flags
        holidays: Public holidays counted in ``holiday_shifts``

    Returns:
        FairnessMetrics with one UserFairnessMetric per roster member
    """
    holidays = frozenset(holidays)
    by_user = _active_by_user(assignments)
    user_metrics = []
    for u in roster:
        held = by_user.get(u.id, [])
        cost = sum(shift_types[a.shift_type].fairness_weight for a in held)
        user_metrics.append(UserFairnessMetric(
            user_id=u.id,
            user_name=u.name,
            total_shifts=len(held),
            night_shifts=sum(1 for a in held if shift_types[a.shift_type].is_night),
            weekend_shifts=sum(1 for a in held if is_weekend(a.date)),
            holiday_shifts=sum(1 for a in held if a.date in holidays),
            weighted_cost=cost,
            accrual=u.fairness_accrual + cost,
        ))

    if not user_metrics:
        return FairnessMetrics()

    accruals = {m.user_id: m.accrual for m in user_metrics}
    deviations = accrual_deviations(accruals)
    for m in user_metrics:
        m.deviation_from_mean = deviations[m.user_id]

    shift_std = pstdev([m.total_shifts for m in user_metrics])
    weekend_std = pstdev([m.weekend_shifts for m in user_metrics])
    holiday_std = pstdev([m.holiday_shifts for m in user_metrics])
    night_std = pstdev([m.night_shifts for m in user_metrics])

    metrics = FairnessMetrics(
        user_metrics=user_metrics,
        mean_accrual=roster_mean(accruals),
        accrual_std=pstdev([m.accrual for m in user_metrics]),
        shift_count_std=shift_std,
        night_std=night_std,
        weekend_std=weekend_std,
        holiday_std=holiday_std,
        overall_score=_overall_fairness(shift_std, weekend_std, holiday_std, night_std),
    )
    logger.debug(f"Fairness: mean={metrics.mean_accrual:.2f}, σ={metrics.accrual_std:.2f}, "
                 f"score={metrics.overall_score:.1f}")
    return metrics


def _fulfillment(met: int, total: int, violated: int, avoid_total: int) -> float:
    if total == 0 and avoid_total == 0:
        return 100.0
    positive = met / total if total else 1.0
    avoid = 1.0 - (violated / avoid_total) if avoid_total else 1.0
    return 100.0 * (0.7 * positive + 0.3 * avoid)


def compute_preference_metrics(
    assignments: Iterable[ShiftAssignment],
    preferences: Sequence[ShiftPreference],
    roster: Sequence[RotaUser],
    config: Optional[EngineConfig] = None,
) -> PreferenceMetrics:
    """
    Measure how well held assignments match stated preferences.

    A positive preference is met when at least one held assignment matches
    it; an avoid or unavailable preference is violated when at least one
    does. Neutral preferences are not counted.
    """
    config = config or EngineConfig()
    by_user = _active_by_user(assignments)
    prefs_by_user: Dict[str, List[ShiftPreference]] = {}
    for p in preferences:
        prefs_by_user.setdefault(p.user_id, []).append(p)

    metrics = PreferenceMetrics()
    for u in roster:
        held = by_user.get(u.id, [])
        prefs = prefs_by_user.get(u.id, [])
        score = UserPreferenceScore(user_id=u.id, user_name=u.name)
        score.score = sum(preference_weight(prefs, a.date, a.shift_type, config) for a in held)

        for p in prefs:
            hit = any(p.matches(a.date, a.shift_type) for a in held)
            if p.level.is_positive:
                score.positive_total += 1
                score.positive_met += int(hit)
            elif p.level in (PreferenceLevel.AVOID, PreferenceLevel.UNAVAILABLE):
                score.avoid_total += 1
                score.avoid_violated += int(hit)

        score.fulfillment = _fulfillment(
            score.positive_met, score.positive_total, score.avoid_violated, score.avoid_total
        )
        metrics.user_scores.append(score)
        metrics.positive_met += score.positive_met
        metrics.positive_total += score.positive_total
        metrics.avoid_violated += score.avoid_violated
        metrics.avoid_total += score.avoid_total

    metrics.overall_fulfillment = _fulfillment(
        metrics.positive_met, metrics.positive_total, metrics.avoid_violated, metrics.avoid_total
    )
    logger.debug(f"Preferences: {metrics.positive_met}/{metrics.positive_total} met, "
                 f"{metrics.avoid_violated}/{metrics.avoid_total} avoids violated")
    return metrics


def fairness_to_dataframe(metrics: FairnessMetrics) -> pd.DataFrame:
    """Convert per-user fairness metrics to a DataFrame for display or export."""
    columns = ["user_id", "name", "shifts", "nights", "weekends", "holidays", "cost", "accrual", "deviation"]
    return pd.DataFrame(
        [
            {
                "user_id": m.user_id,
                "name": m.user_name,
                "shifts": m.total_shifts,
                "nights": m.night_shifts,
                "weekends": m.weekend_shifts,
                "holidays": m.holiday_shifts,
                "cost": round(m.weighted_cost, 2),
                "accrual": round(m.accrual, 2),
                "deviation": round(m.deviation_from_mean, 2),
            }
            for m in metrics.user_metrics
        ],
        columns=columns,
    )


def accrual_deviations(accruals: Mapping[str, float]) -> Dict[str, float]:
    """Distance of each user's accrual from the roster mean."""
    mean = roster_mean(accruals)
    return {uid: accruals[uid] - mean for uid in accruals}


def accrue_roster(
    roster: Sequence[RotaUser],
    assignments: Iterable[ShiftAssignment],
    shift_types: ShiftTypeRegistry = DEFAULT_SHIFT_TYPES,
) -> List[RotaUser]:
    """Copies of ``roster`` with the cost of held shifts folded into ``fairness_accrual``."""
    accruals = user_accruals(assignments, roster, shift_types)
    return [replace(u, fairness_accrual=accruals[u.id]) for u in roster]
