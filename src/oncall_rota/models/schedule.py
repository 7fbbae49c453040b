"""Schedule, requirement and assignment models."""
import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from .metrics import FairnessMetrics, PreferenceMetrics


@dataclass(frozen=True)
class ShiftRequirement:
    """Demand for ``count`` staff on one date for one shift type."""
    date: dt.date
    shift_type: str
    count: int = 1
    min_tier: Optional[int] = None  # Overrides the shift type minimum when higher

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "shift_type": self.shift_type,
            "count": self.count,
            "min_tier": self.min_tier,
        }


@dataclass(frozen=True)
class RequirementTemplate:
    """Recurring demand, expanded into dated requirements over a period."""
    shift_type: str
    count: int = 1
    weekdays: Optional[Tuple[int, ...]] = None  # Monday=0; None = every day
    only_weekends: bool = False
    only_holidays: bool = False
    exclude_holidays: bool = False
    min_tier: Optional[int] = None


class AssignmentStatus(str, Enum):
    ASSIGNED = "assigned"
    CONFIRMED = "confirmed"
    SWAPPED = "swapped"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        return self is not AssignmentStatus.CANCELLED


@dataclass(frozen=True)
class SwapRecord:
    """One completed hand-over of an assignment."""
    from_user_id: str
    to_user_id: str
    listing_id: str = ""
    on: Optional[dt.date] = None


@dataclass(frozen=True)
class ShiftAssignment:
    """One user working one shift type on one date."""
    id: str
    user_id: str
    date: dt.date
    shift_type: str
    status: AssignmentStatus = AssignmentStatus.ASSIGNED
    original_user_id: Optional[str] = None
    swap_history: Tuple[SwapRecord, ...] = ()
    preference_score: float = 0.0
    fairness_penalty: float = 0.0
    reason: str = ""
    min_tier: Optional[int] = None  # Requirement override the holder had to meet
    backup_user_id: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "date": self.date.isoformat(),
            "shift_type": self.shift_type,
            "status": self.status.value,
            "original_user_id": self.original_user_id,
            "swaps": len(self.swap_history),
            "preference_score": round(self.preference_score, 4),
            "fairness_penalty": round(self.fairness_penalty, 4),
            "reason": self.reason,
            "min_tier": self.min_tier,
            "backup_user_id": self.backup_user_id,
        }


class LogKind(str, Enum):
    INFO = "info"
    ASSIGNED = "assigned"
    UNFILLED = "unfilled"
    WARNING = "warning"


@dataclass(frozen=True)
class GenerationLogEntry:
    """One auditable decision taken while generating a schedule."""
    kind: LogKind
    message: str
    date: Optional[dt.date] = None
    shift_type: Optional[str] = None
    user_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict, hash=False)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "date": self.date.isoformat() if self.date else None,
            "shift_type": self.shift_type,
            "user_id": self.user_id,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class ConstraintViolation:
    """A hard rule broken by a schedule. Reported as data, never raised."""
    code: str  # "double_booking", "unqualified", "unknown_user", "rest_period", "unavailable", "max_shifts", "limitation"
    message: str
    user_id: Optional[str] = None
    date: Optional[dt.date] = None


class ScheduleStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


@dataclass
class RotaSchedule:
    """Full assignment set for a scheduling period."""

    id: str
    period_start: Optional[dt.date] = None
    period_end: Optional[dt.date] = None
    assignments: List[ShiftAssignment] = field(default_factory=list)
    generation_log: List[GenerationLogEntry] = field(default_factory=list)
    fairness_metrics: FairnessMetrics = field(default_factory=FairnessMetrics)
    preference_metrics: PreferenceMetrics = field(default_factory=PreferenceMetrics)
    version: int = 1
    status: ScheduleStatus = ScheduleStatus.DRAFT

    def get_assignment(self, assignment_id: str) -> Optional[ShiftAssignment]:
        for a in self.assignments:
            if a.id == assignment_id:
                return a
        return None

    def active_assignments(self) -> List[ShiftAssignment]:
        return [a for a in self.assignments if a.is_active]

    def get_user_assignments(self, user_id: str) -> List[ShiftAssignment]:
        """Active assignments held by a user, in date order."""
        return sorted(
            (a for a in self.assignments if a.is_active and a.user_id == user_id),
            key=lambda a: (a.date, a.shift_type, a.id),
        )

    def unfilled_entries(self) -> List[GenerationLogEntry]:
        return [e for e in self.generation_log if e.kind == LogKind.UNFILLED]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a plain dictionary (metrics excluded)."""
        return {
            "id": self.id,
            "period_start": self.period_start.isoformat() if self.period_start else None,
            "period_end": self.period_end.isoformat() if self.period_end else None,
            "version": self.version,
            "status": self.status.value,
            "assignments": [a.to_dict() for a in self.assignments],
            "generation_log": [e.to_dict() for e in self.generation_log],
        }

    def to_dataframe(self) -> pd.DataFrame:
        """Convert assignments to a DataFrame."""
        columns = ["id", "user_id", "date", "shift_type", "status", "original_user_id", "backup_user_id"]
        if not self.assignments:
            return pd.DataFrame(columns=columns)
        rows = [
            {
                "id": a.id,
                "user_id": a.user_id,
                "date": a.date.isoformat(),
                "shift_type": a.shift_type,
                "status": a.status.value,
                "original_user_id": a.original_user_id or "",
                "backup_user_id": a.backup_user_id or "",
            }
            for a in self.assignments
        ]
        return pd.DataFrame(rows, columns=columns)

    def to_matrix(self) -> pd.DataFrame:
        """User × date matrix of shift type codes."""
        df = self.to_dataframe()
        df = df[df["status"] != AssignmentStatus.CANCELLED.value]
        if df.empty:
            return pd.DataFrame()
        return df.pivot_table(
            index="user_id",
            columns="date",
            values="shift_type",
            aggfunc=lambda x: "/".join(sorted(set(str(v) for v in x))),
            fill_value="",
        )

    def summary(self) -> Dict[str, Any]:
        """Get summary dictionary for display."""
        return {
            "id": self.id,
            "version": self.version,
            "status": self.status.value,
            "assignments": len(self.active_assignments()),
            "unfilled": sum(e.details.get("missing", 1) for e in self.unfilled_entries()),
            "fairness": round(self.fairness_metrics.overall_score, 2),
            "preferences": round(self.preference_metrics.overall_fulfillment, 2),
        }
