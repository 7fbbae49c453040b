"""Roster member model."""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import FrozenSet, List, Optional

from .shift import ShiftType


class Seniority(str, Enum):
    """Training grades, ordered from most junior."""
    PGY1 = "PGY1"
    PGY2 = "PGY2"
    PGY3 = "PGY3"
    PGY4 = "PGY4"
    FELLOW = "Fellow"
    ATTENDING = "Attending"
    CONSULTANT = "Consultant"

    @property
    def tier(self) -> int:
        """Numeric rank, 1 for PGY1 up to 7 for Consultant."""
        return list(Seniority).index(self) + 1

    @classmethod
    def from_string(cls, s: str) -> "Seniority":
        key = str(s).strip().lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        raise ValueError(f"Unknown seniority: {s!r}")


@dataclass(frozen=True)
class DateRange:
    """Inclusive date range, e.g. approved leave."""
    start: date
    end: date
    reason: str = ""

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass
class RotaUser:
    """A staff member eligible for scheduling."""

    id: str
    name: str
    seniority: Seniority = Seniority.PGY2
    qualifications: FrozenSet[str] = field(default_factory=frozenset)  # Shift type codes
    fairness_accrual: float = 0.0  # Historical weighted cost of burdensome shifts

    certifications: FrozenSet[str] = field(default_factory=frozenset)
    approved_leave: List[DateRange] = field(default_factory=list)
    min_rest_hours: Optional[int] = None  # None = use engine default
    max_shifts: Optional[int] = None  # Per scheduling period
    limitations: FrozenSet[str] = field(default_factory=frozenset)  # Shift type codes the user must not work

    email: str = ""
    department: str = ""

    def __post_init__(self):
        self.id = str(self.id).strip()
        self.name = str(self.name).strip()
        if isinstance(self.seniority, str) and not isinstance(self.seniority, Seniority):
            self.seniority = Seniority.from_string(self.seniority)
        self.qualifications = frozenset(self.qualifications)
        self.certifications = frozenset(self.certifications)
        self.limitations = frozenset(self.limitations)
        if self.max_shifts is not None and self.max_shifts < 0:
            self.max_shifts = None

    @property
    def tier(self) -> int:
        return self.seniority.tier

    def is_limited_from(self, shift_code: str) -> bool:
        return shift_code in self.limitations

    def is_qualified_for(self, shift_type: ShiftType, min_tier: Optional[int] = None) -> bool:
        """Qualification code, seniority tier and certifications all match."""
        if shift_type.code not in self.qualifications:
            return False
        if self.tier < max(shift_type.min_tier, min_tier or 0):
            return False
        return shift_type.required_certifications <= self.certifications

    def is_on_leave(self, day: date) -> bool:
        return any(leave.contains(day) for leave in self.approved_leave)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "seniority": self.seniority.value,
            "qualifications": sorted(self.qualifications),
            "fairness_accrual": self.fairness_accrual,
            "certifications": sorted(self.certifications),
            "approved_leave": [
                {"start": r.start.isoformat(), "end": r.end.isoformat(), "reason": r.reason}
                for r in self.approved_leave
            ],
            "min_rest_hours": self.min_rest_hours,
            "max_shifts": self.max_shifts,
            "limitations": sorted(self.limitations),
            "email": self.email,
            "department": self.department,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "RotaUser":
        leave = [
            DateRange(
                start=date.fromisoformat(str(r["start"])),
                end=date.fromisoformat(str(r["end"])),
                reason=str(r.get("reason", "")),
            )
            for r in d.get("approved_leave", [])
        ]
        return cls(
            id=d["id"],
            name=d.get("name", d["id"]),
            seniority=d.get("seniority", Seniority.PGY2.value),
            qualifications=frozenset(d.get("qualifications", ())),
            fairness_accrual=float(d.get("fairness_accrual", 0.0)),
            certifications=frozenset(d.get("certifications", ())),
            approved_leave=leave,
            min_rest_hours=d.get("min_rest_hours"),
            max_shifts=d.get("max_shifts"),
            limitations=frozenset(d.get("limitations", ())),
            email=str(d.get("email", "")),
            department=str(d.get("department", "")),
        )
