"""
Hard Rules
==========
Eligibility rules shared by the optimization engine, the swap service and
the schedule audit: availability and minimum rest between shifts.
"""
import datetime as dt
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

from oncall_rota.models.config import EngineConfig
from oncall_rota.models.preference import PreferenceLevel, ShiftPreference
from oncall_rota.models.shift import ShiftType
from oncall_rota.models.user import RotaUser

# (date, shift type) pair a user already holds
HeldShift = Tuple[dt.date, ShiftType]


@dataclass(frozen=True)
class RestConflict:
    """Two shifts of one user closer together than the required rest."""
    other_date: dt.date
    other_shift_type: str
    gap_hours: float
    required_hours: int


def required_rest(user: RotaUser, earlier: ShiftType, config: EngineConfig) -> int:
    """Hours of rest owed after ``earlier`` before the user's next shift."""
    user_rest = user.min_rest_hours if user.min_rest_hours is not None else config.default_min_rest_hours
    return max(user_rest, earlier.min_rest_after_hours)


def rest_gap(first: HeldShift, second: HeldShift) -> Tuple[float, HeldShift]:
    """Hours between the end of the earlier shift and the start of the later one."""
    (d1, s1), (d2, s2) = first, second
    if (s1.starts_at(d1), s1.code) > (s2.starts_at(d2), s2.code):
        first, second = second, first
        (d1, s1), (d2, s2) = first, second
    gap = (s2.starts_at(d2) - s1.ends_at(d1)).total_seconds() / 3600
    return gap, first


def find_rest_conflict(
    user: RotaUser,
    day: dt.date,
    shift_type: ShiftType,
    held: Iterable[HeldShift],
    config: EngineConfig,
) -> Optional[RestConflict]:
    """
    First held shift (in date order) that would break the rest rule with a
    new shift on ``day``. Shifts on the same date are not considered here;
    that is a double booking.
    """
    for other_day, other_type in sorted(held, key=lambda h: (h[0], h[1].start_hour, h[1].code)):
        if other_day == day:
            continue
        gap, earlier = rest_gap((day, shift_type), (other_day, other_type))
        needed = required_rest(user, earlier[1], config)
        if gap < needed:
            return RestConflict(other_day, other_type.code, gap, needed)
    return None


def is_unavailable(
    user: RotaUser,
    day: dt.date,
    shift_code: str,
    preferences: Sequence[ShiftPreference] = (),
) -> bool:
    """On approved leave, or has declared the slot unavailable."""
    if user.is_on_leave(day):
        return True
    return any(
        p.level == PreferenceLevel.UNAVAILABLE and p.matches(day, shift_code)
        for p in preferences
    )
