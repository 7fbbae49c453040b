"""
Greedy Schedule Optimizer
=========================
Deterministic constructive generator: one pass over the requirements,
each slot given to the best-scoring eligible candidate.

Processing order is (date, heaviest shift first, input index). Candidates
are ranked by score (preference weight minus fairness penalty), then by
lowest running accrual, then by user id. Nothing is random and nothing
depends on the wall clock, so identical input gives identical output.
"""
import datetime as dt
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from oncall_rota.engine.metrics import compute_fairness_metrics, compute_preference_metrics
from oncall_rota.engine.rules import HeldShift, find_rest_conflict, is_unavailable
from oncall_rota.engine.scoring import fairness_penalty, preference_weight, roster_mean
from oncall_rota.engine.validation import validate_generation_inputs
from oncall_rota.models.config import EngineConfig
from oncall_rota.models.preference import ShiftPreference
from oncall_rota.models.schedule import (
    GenerationLogEntry,
    LogKind,
    RotaSchedule,
    ShiftAssignment,
    ShiftRequirement,
)
from oncall_rota.models.shift import DEFAULT_SHIFT_TYPES, ShiftType, ShiftTypeRegistry
from oncall_rota.models.user import RotaUser
from oncall_rota.utils.logging_setup import TRACE, EngineLogger, get_logger

logger = get_logger("oncall_rota.engine.optimizer")
slog = EngineLogger("oncall_rota.engine.optimizer")

# Exclusion reasons reported on unfilled slots
EXCLUDED_UNQUALIFIED = "unqualified"
EXCLUDED_LIMITATION = "limitation"
EXCLUDED_BOOKED = "already_booked"
EXCLUDED_UNAVAILABLE = "unavailable"
EXCLUDED_REST = "rest_period"
EXCLUDED_MAX_SHIFTS = "max_shifts"


@dataclass
class GenerationResult:
    """Schedule plus the decision log that produced it."""
    schedule: RotaSchedule
    log: List[GenerationLogEntry] = field(default_factory=list)

    @property
    def unfilled(self) -> List[GenerationLogEntry]:
        return [e for e in self.log if e.kind == LogKind.UNFILLED]


@dataclass(frozen=True)
class _Candidate:
    user_id: str
    score: float
    preference: float
    penalty: float
    accrual: float

    @property
    def sort_key(self) -> Tuple[float, float, str]:
        return (-self.score, self.accrual, self.user_id)


def _describe(candidate: _Candidate) -> str:
    if candidate.penalty < 0:
        return "Balancing shift load"
    if candidate.preference > 0:
        return "Matches preference"
    if candidate.penalty > 0:
        return "Despite above-average load"
    return "Best available option"


class _RunState:
    """Mutable bookkeeping for one generation run."""

    def __init__(self, roster: Sequence[RotaUser]):
        self.accruals: Dict[str, float] = {u.id: u.fairness_accrual for u in roster}
        self.booked: Set[Tuple[str, dt.date]] = set()
        self.held: Dict[str, List[HeldShift]] = {u.id: [] for u in roster}

    def commit(self, user_id: str, day: dt.date, shift_type: ShiftType):
        self.accruals[user_id] += shift_type.fairness_weight
        self.booked.add((user_id, day))
        self.held[user_id].append((day, shift_type))


class OptimizationEngine:
    """
    Greedy rota generator.

    Args:
        config: Weight tables and hard-rule settings
        shift_types: Registry of shift type reference data
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        shift_types: Optional[ShiftTypeRegistry] = None,
    ):
        self.config = config or EngineConfig()
        self.shift_types = shift_types if shift_types is not None else DEFAULT_SHIFT_TYPES

    def _ordered(self, requirements: Sequence[ShiftRequirement]) -> List[Tuple[int, ShiftRequirement]]:
        return sorted(
            enumerate(requirements),
            key=lambda item: (item[1].date, -self.shift_types[item[1].shift_type].fairness_weight, item[0]),
        )

    def _exclusion(
        self,
        user: RotaUser,
        req: ShiftRequirement,
        shift_type: ShiftType,
        prefs: Sequence[ShiftPreference],
        state: _RunState,
    ) -> Optional[str]:
        """Why ``user`` cannot take the slot, or None if eligible."""
        if not user.is_qualified_for(shift_type, req.min_tier):
            return EXCLUDED_UNQUALIFIED
        if user.is_limited_from(req.shift_type):
            return EXCLUDED_LIMITATION
        if (user.id, req.date) in state.booked:
            return EXCLUDED_BOOKED
        if is_unavailable(user, req.date, req.shift_type, prefs):
            return EXCLUDED_UNAVAILABLE
        if find_rest_conflict(user, req.date, shift_type, state.held[user.id], self.config) is not None:
            return EXCLUDED_REST
        if (
            not self.config.allow_overtime
            and user.max_shifts is not None
            and len(state.held[user.id]) >= user.max_shifts
        ):
            return EXCLUDED_MAX_SHIFTS
        return None

    def _candidates(
        self,
        roster: Sequence[RotaUser],
        req: ShiftRequirement,
        shift_type: ShiftType,
        prefs_by_user: Dict[str, List[ShiftPreference]],
        state: _RunState,
    ) -> Tuple[List[_Candidate], Counter]:
        excluded: Counter = Counter()
        candidates = []
        mean = roster_mean(state.accruals)
        for user in roster:
            prefs = prefs_by_user.get(user.id, [])
            reason = self._exclusion(user, req, shift_type, prefs, state)
            if reason is not None:
                excluded[reason] += 1
                logger.log(TRACE, f"  ✗ {user.id}: {reason}")
                continue
            accrual = state.accruals[user.id]
            pref = preference_weight(prefs, req.date, req.shift_type, self.config)
            penalty = fairness_penalty(accrual, mean, shift_type, self.config)
            candidates.append(_Candidate(user.id, pref - penalty, pref, penalty, accrual))
        candidates.sort(key=lambda c: c.sort_key)
        return candidates, excluded

    def generate(
        self,
        roster: Sequence[RotaUser],
        requirements: Sequence[ShiftRequirement],
        preferences: Sequence[ShiftPreference] = (),
        schedule_id: Optional[str] = None,
    ) -> GenerationResult:
        """
        Build a schedule for ``requirements`` from ``roster``.

        Returns:
            GenerationResult; unfilled slots appear as ``unfilled`` log
            entries, never as exceptions.

        Raises:
            ValidationError: if the input is malformed (nothing is generated)
        """
        validate_generation_inputs(roster, requirements, preferences, self.shift_types)

        slog.phase("Schedule Generation")
        slog.step(f"{len(requirements)} requirements, {len(roster)} users, {len(preferences)} preferences")

        roster = sorted(roster, key=lambda u: u.id)
        prefs_by_user: Dict[str, List[ShiftPreference]] = {}
        for p in preferences:
            prefs_by_user.setdefault(p.user_id, []).append(p)

        period_start = min((r.date for r in requirements), default=None)
        period_end = max((r.date for r in requirements), default=None)
        if schedule_id is None:
            schedule_id = f"rota-{period_start}-{period_end}"

        state = _RunState(roster)
        assignments: List[ShiftAssignment] = []
        log: List[GenerationLogEntry] = [GenerationLogEntry(
            kind=LogKind.INFO,
            message=f"Generating {sum(r.count for r in requirements)} slots "
                    f"from {len(requirements)} requirements for {len(roster)} users",
            details={"requirements": len(requirements), "users": len(roster)},
        )]

        for index, req in self._ordered(requirements):
            shift_type = self.shift_types[req.shift_type]
            slog.enter(f"{req.date.isoformat()} {req.shift_type} ×{req.count}")
            for slot in range(req.count):
                candidates, excluded = self._candidates(roster, req, shift_type, prefs_by_user, state)

                if not candidates:
                    missing = req.count - slot
                    log.append(GenerationLogEntry(
                        kind=LogKind.UNFILLED,
                        message=f"No eligible candidate for {req.shift_type} on {req.date.isoformat()} "
                                f"({missing} of {req.count} unfilled)",
                        date=req.date,
                        shift_type=req.shift_type,
                        details={
                            "requirement_index": index,
                            "requested": req.count,
                            "filled": slot,
                            "missing": missing,
                            "excluded": dict(sorted(excluded.items())),
                        },
                    ))
                    slog.constraint(f"{req.date.isoformat()} {req.shift_type}", False, f"{missing} unfilled")
                    break

                best = candidates[0]
                runner_up = candidates[1] if len(candidates) > 1 else None
                backup = runner_up.user_id if runner_up is not None and shift_type.requires_backup else None
                reason = _describe(best)
                assignments.append(ShiftAssignment(
                    id=f"{req.date.isoformat()}:{req.shift_type}:{index}:{slot}",
                    user_id=best.user_id,
                    date=req.date,
                    shift_type=req.shift_type,
                    preference_score=best.preference,
                    fairness_penalty=best.penalty,
                    reason=reason,
                    min_tier=req.min_tier,
                    backup_user_id=backup,
                ))
                state.commit(best.user_id, req.date, shift_type)

                message = f"Assigned {best.user_id} to {req.shift_type} on {req.date.isoformat()}: {reason}"
                if runner_up is not None:
                    message += f" (runner-up {runner_up.user_id})"
                log.append(GenerationLogEntry(
                    kind=LogKind.ASSIGNED,
                    message=message,
                    date=req.date,
                    shift_type=req.shift_type,
                    user_id=best.user_id,
                    details={
                        "requirement_index": index,
                        "slot": slot,
                        "score": best.score,
                        "candidates": len(candidates),
                        "runner_up": runner_up.user_id if runner_up else None,
                        "runner_up_score": runner_up.score if runner_up else None,
                        "backup": backup,
                    },
                ))
                slog.detail(best.user_id, f"score={best.score:.2f} ({reason})")
            slog.exit()

        unfilled = sum(e.details["missing"] for e in log if e.kind == LogKind.UNFILLED)
        log.append(GenerationLogEntry(
            kind=LogKind.INFO,
            message=f"Filled {len(assignments)} slots, {unfilled} unfilled",
            details={"assigned": len(assignments), "unfilled": unfilled},
        ))

        schedule = RotaSchedule(
            id=schedule_id,
            period_start=period_start,
            period_end=period_end,
            assignments=assignments,
            generation_log=list(log),
            fairness_metrics=compute_fairness_metrics(assignments, roster, self.shift_types, self.config.holidays),
            preference_metrics=compute_preference_metrics(assignments, preferences, roster, self.config),
        )
        slog.step(f"Done: {len(assignments)} assigned, {unfilled} unfilled, "
                  f"fairness {schedule.fairness_metrics.overall_score:.1f}")
        if unfilled:
            logger.warning(f"{unfilled} slot(s) left unfilled in {schedule_id}")
        return GenerationResult(schedule=schedule, log=log)


def generate_schedule(
    roster: Sequence[RotaUser],
    requirements: Sequence[ShiftRequirement],
    preferences: Sequence[ShiftPreference] = (),
    config: Optional[EngineConfig] = None,
    shift_types: Optional[ShiftTypeRegistry] = None,
    schedule_id: Optional[str] = None,
) -> GenerationResult:
    """
    Main entry point - generate a rota schedule.

    Args:
        roster: Users eligible for the period
        requirements: Dated demand
        preferences: Staff preferences for the period
        config: Engine configuration (defaults if omitted)
        shift_types: Shift type registry (the default catalogue if omitted)
        schedule_id: Identifier for the schedule (derived from the period if omitted)

    Returns:
        GenerationResult with the schedule and its generation log
    """
    engine = OptimizationEngine(config, shift_types)
    return engine.generate(roster, requirements, preferences, schedule_id=schedule_id)
