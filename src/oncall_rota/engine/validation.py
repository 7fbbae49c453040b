"""
Input Validation and Schedule Audit
===================================
``validate_generation_inputs`` rejects malformed input before any
assignment is attempted. ``check_schedule`` audits a finished schedule
against the hard rules and reports violations as data.
"""
from collections import Counter
from typing import Dict, List, Optional, Sequence

from oncall_rota.engine.rules import find_rest_conflict, is_unavailable
from oncall_rota.errors import ValidationError
from oncall_rota.models.config import EngineConfig
from oncall_rota.models.preference import ShiftPreference
from oncall_rota.models.schedule import ConstraintViolation, RotaSchedule, ShiftRequirement
from oncall_rota.models.shift import DEFAULT_SHIFT_TYPES, ShiftTypeRegistry
from oncall_rota.models.user import RotaUser
from oncall_rota.utils.logging_setup import get_logger

logger = get_logger("oncall_rota.engine.validation")


def validate_generation_inputs(
    roster: Sequence[RotaUser],
    requirements: Sequence[ShiftRequirement],
    preferences: Sequence[ShiftPreference],
    shift_types: ShiftTypeRegistry = DEFAULT_SHIFT_TYPES,
) -> None:
    """
    Fail fast on malformed generation input.

    Raises:
        ValidationError: listing every problem found
    """
    problems: List[str] = []

    if not roster:
        problems.append("roster is empty")

    ids = Counter(u.id for u in roster)
    if "" in ids:
        problems.append("roster contains a user with an empty id")
    for uid, n in sorted(ids.items()):
        if uid and n > 1:
            problems.append(f"duplicate user id {uid!r} ({n} times)")

    for i, req in enumerate(requirements):
        if req.shift_type not in shift_types:
            problems.append(f"requirement {i} ({req.date}) references unknown shift type {req.shift_type!r}")
        if req.count < 1:
            problems.append(f"requirement {i} ({req.date}, {req.shift_type}) has count {req.count}")

    for i, pref in enumerate(preferences):
        if pref.user_id not in ids:
            problems.append(f"preference {i} is for unknown user {pref.user_id!r}")
        if pref.shift_type is not None and pref.shift_type not in shift_types:
            problems.append(f"preference {i} references unknown shift type {pref.shift_type!r}")
        if pref.weekday is not None and not 0 <= pref.weekday <= 6:
            problems.append(f"preference {i} has weekday {pref.weekday} outside 0-6")

    if problems:
        logger.error(f"Rejected generation input: {len(problems)} problem(s)")
        raise ValidationError(problems)


def check_schedule(
    schedule: RotaSchedule,
    roster: Sequence[RotaUser],
    shift_types: ShiftTypeRegistry = DEFAULT_SHIFT_TYPES,
    config: Optional[EngineConfig] = None,
    preferences: Sequence[ShiftPreference] = (),
) -> List[ConstraintViolation]:
    """
    Audit a schedule against the hard rules.

    Args:
        schedule: Schedule to check (inactive assignments are ignored)
        roster: Users the schedule refers to
        shift_types: Registry for qualification and rest rules
        config: Engine configuration (default rest hours)
        preferences: Used to detect slots declared unavailable

    Returns:
        List of ConstraintViolation (empty when the schedule is clean)
    """
    config = config or EngineConfig()
    users: Dict[str, RotaUser] = {u.id: u for u in roster}
    prefs_by_user: Dict[str, List[ShiftPreference]] = {}
    for p in preferences:
        prefs_by_user.setdefault(p.user_id, []).append(p)

    violations: List[ConstraintViolation] = []
    seen = set()
    held: Dict[str, list] = {}

    for a in sorted(schedule.active_assignments(), key=lambda x: (x.date, x.shift_type, x.id)):
        user = users.get(a.user_id)
        if user is None:
            violations.append(ConstraintViolation(
                "unknown_user", f"{a.id}: user {a.user_id} is not on the roster", a.user_id, a.date))
            continue
        shift_type = shift_types[a.shift_type]

        if (a.user_id, a.date) in seen:
            violations.append(ConstraintViolation(
                "double_booking", f"{a.user_id} holds more than one shift on {a.date}", a.user_id, a.date))
        seen.add((a.user_id, a.date))

        if not user.is_qualified_for(shift_type, a.min_tier):
            violations.append(ConstraintViolation(
                "unqualified", f"{a.user_id} is not qualified for {a.shift_type}", a.user_id, a.date))
        if user.is_limited_from(a.shift_type):
            violations.append(ConstraintViolation(
                "limitation", f"{a.user_id} is limited from {a.shift_type}", a.user_id, a.date))

        if is_unavailable(user, a.date, a.shift_type, prefs_by_user.get(a.user_id, ())):
            violations.append(ConstraintViolation(
                "unavailable", f"{a.user_id} is unavailable on {a.date}", a.user_id, a.date))

        conflict = find_rest_conflict(user, a.date, shift_type, held.get(a.user_id, []), config)
        if conflict is not None:
            violations.append(ConstraintViolation(
                "rest_period",
                f"{a.user_id}: {conflict.gap_hours:.0f}h rest between {conflict.other_date} "
                f"and {a.date} (needs {conflict.required_hours}h)",
                a.user_id, a.date))
        held.setdefault(a.user_id, []).append((a.date, shift_type))

    if not config.allow_overtime:
        counts = Counter(a.user_id for a in schedule.active_assignments() if a.user_id in users)
        for uid in sorted(counts):
            cap = users[uid].max_shifts
            if cap is not None and counts[uid] > cap:
                violations.append(ConstraintViolation(
                    "max_shifts", f"{uid} holds {counts[uid]} shifts (limit {cap})", uid, None))

    if violations:
        logger.warning(f"Schedule {schedule.id}: {len(violations)} hard-rule violation(s)")
    return violations
