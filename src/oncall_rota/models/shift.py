"""Shift type definitions and calendar helpers."""
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, FrozenSet, Iterable, Mapping

# Python weekday numbers (Monday=0)
SATURDAY = 5
SUNDAY = 6


@dataclass(frozen=True)
class ShiftType:
    """Reference data for one category of shift."""
    code: str
    name: str
    start_hour: int = 8
    duration_hours: int = 12
    min_tier: int = 1
    fairness_weight: float = 1.0  # Higher = more burden
    min_rest_after_hours: int = 10
    is_night: bool = False
    requires_backup: bool = False  # Runner-up is named as standby
    required_certifications: FrozenSet[str] = field(default_factory=frozenset)

    def starts_at(self, day: date) -> datetime:
        """Start of this shift on a given date."""
        return datetime.combine(day, time(hour=self.start_hour))

    def ends_at(self, day: date) -> datetime:
        """End of this shift when it starts on a given date."""
        return self.starts_at(day) + timedelta(hours=self.duration_hours)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "name": self.name,
            "start_hour": self.start_hour,
            "duration_hours": self.duration_hours,
            "min_tier": self.min_tier,
            "fairness_weight": self.fairness_weight,
            "min_rest_after_hours": self.min_rest_after_hours,
            "is_night": self.is_night,
            "requires_backup": self.requires_backup,
            "required_certifications": sorted(self.required_certifications),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "ShiftType":
        return cls(
            code=str(d["code"]).strip(),
            name=str(d.get("name", d["code"])),
            start_hour=int(d.get("start_hour", 8)),
            duration_hours=int(d.get("duration_hours", 12)),
            min_tier=int(d.get("min_tier", 1)),
            fairness_weight=float(d.get("fairness_weight", 1.0)),
            min_rest_after_hours=int(d.get("min_rest_after_hours", 10)),
            is_night=bool(d.get("is_night", False)),
            requires_backup=bool(d.get("requires_backup", False)),
            required_certifications=frozenset(d.get("required_certifications", ())),
        )


ShiftTypeRegistry = Mapping[str, ShiftType]


def build_registry(shift_types: Iterable[ShiftType]) -> Dict[str, ShiftType]:
    """Index shift types by code."""
    return {st.code: st for st in shift_types}


# Department shift catalogue
DEFAULT_SHIFT_TYPES: Dict[str, ShiftType] = build_registry([
    ShiftType("general_oncall", "General On-Call", start_hour=8, duration_hours=12,
              min_tier=2, fairness_weight=1.0, min_rest_after_hours=10, requires_backup=True),
    ShiftType("senior_backup", "Senior Backup", start_hour=8, duration_hours=12,
              min_tier=4, fairness_weight=0.8, min_rest_after_hours=10,
              required_certifications=frozenset({"senior_qualified"})),
    ShiftType("clinic_duty", "Clinic Duty", start_hour=8, duration_hours=8,
              min_tier=1, fairness_weight=0.5, min_rest_after_hours=8),
    ShiftType("or_assist", "OR Assist", start_hour=8, duration_hours=10,
              min_tier=2, fairness_weight=0.7, min_rest_after_hours=10,
              required_certifications=frozenset({"or_trained"})),
    ShiftType("emergency_cover", "Emergency Cover", start_hour=8, duration_hours=12,
              min_tier=3, fairness_weight=1.2, min_rest_after_hours=12,
              required_certifications=frozenset({"emergency_trained"}), requires_backup=True),
    ShiftType("weekend_oncall", "Weekend On-Call", start_hour=8, duration_hours=24,
              min_tier=2, fairness_weight=1.5, min_rest_after_hours=12, requires_backup=True),
    ShiftType("night_shift", "Night Shift", start_hour=20, duration_hours=12,
              min_tier=2, fairness_weight=1.3, min_rest_after_hours=12, is_night=True,
              requires_backup=True),
    ShiftType("holiday_cover", "Holiday Cover", start_hour=8, duration_hours=24,
              min_tier=2, fairness_weight=2.0, min_rest_after_hours=12, requires_backup=True),
])


def is_weekend(day: date) -> bool:
    """True for Saturday and Sunday."""
    return day.weekday() in (SATURDAY, SUNDAY)


def iter_dates(start: date, end: date):
    """Yield every date from start to end inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
