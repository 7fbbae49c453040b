"""Staff shift preferences."""
import datetime as dt
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class PreferenceLevel(str, Enum):
    """How much a user wants (or cannot take) a slot."""
    STRONGLY_PREFER = "strongly_prefer"
    PREFER = "prefer"
    NEUTRAL = "neutral"
    AVOID = "avoid"
    UNAVAILABLE = "unavailable"  # Excludes the candidate entirely

    @property
    def is_positive(self) -> bool:
        return self in (PreferenceLevel.STRONGLY_PREFER, PreferenceLevel.PREFER)

    @classmethod
    def from_string(cls, s: str) -> "PreferenceLevel":
        """Parse a level, accepting a few aliases."""
        mapping = {
            "must_have": cls.STRONGLY_PREFER,
            "highly_preferred": cls.PREFER,
            "indifferent": cls.NEUTRAL,
            "must_avoid": cls.AVOID,
            "off": cls.UNAVAILABLE,
        }
        key = str(s).strip().lower().replace("-", "_").replace(" ", "_")
        if key in mapping:
            return mapping[key]
        return cls(key)


@dataclass(frozen=True)
class ShiftPreference:
    """
    A user's stated preference for a slot.

    Any combination of ``date``, ``shift_type`` and ``weekday`` (Monday=0)
    may be set; a preference matches a slot when every field it sets
    matches. A preference with none of them set applies to every slot.
    """
    user_id: str
    level: PreferenceLevel
    date: Optional[dt.date] = None
    shift_type: Optional[str] = None
    weekday: Optional[int] = None
    reason: str = ""

    def matches(self, day: dt.date, shift_type: str) -> bool:
        if self.date is not None and self.date != day:
            return False
        if self.shift_type is not None and self.shift_type != shift_type:
            return False
        if self.weekday is not None and self.weekday != day.weekday():
            return False
        return True

    @property
    def is_date_specific(self) -> bool:
        return self.date is not None

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "level": self.level.value,
            "date": self.date.isoformat() if self.date else None,
            "shift_type": self.shift_type,
            "weekday": self.weekday,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "ShiftPreference":
        raw_date = d.get("date")
        raw_weekday = d.get("weekday")
        return cls(
            user_id=str(d["user_id"]).strip(),
            level=PreferenceLevel.from_string(d.get("level", "neutral")),
            date=dt.date.fromisoformat(str(raw_date)) if raw_date else None,
            shift_type=d.get("shift_type") or None,
            weekday=int(raw_weekday) if raw_weekday not in (None, "") else None,
            reason=str(d.get("reason", "") or ""),
        )
