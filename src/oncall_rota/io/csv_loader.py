"""CSV loading and saving for rosters, requirements, preferences and schedules."""
import datetime as dt
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd

from oncall_rota.models.preference import ShiftPreference
from oncall_rota.models.schedule import RotaSchedule, ShiftRequirement
from oncall_rota.models.user import DateRange, RotaUser
from oncall_rota.repository import RotaRepository
from oncall_rota.utils.logging_setup import get_logger

logger = get_logger("oncall_rota.io.csv_loader")

Source = Union[str, Path, pd.DataFrame]

LIST_SEPARATOR = ";"
ROSTER_COLUMNS = [
    "id", "name", "seniority", "qualifications", "fairness_accrual", "certifications",
    "leave", "min_rest_hours", "max_shifts", "limitations", "email", "department",
]


def _safe_int(value, default: Optional[int] = None) -> Optional[int]:
    """Safely convert value to int."""
    try:
        return int(float(value))
    except (ValueError, TypeError):
        return default


def _safe_float(value, default: float = 0.0) -> float:
    try:
        return float(value)
    except (ValueError, TypeError):
        return default


def _split(value) -> List[str]:
    return [v.strip() for v in str(value).split(LIST_SEPARATOR) if v.strip()]


def _parse_leave(value) -> List[DateRange]:
    """Parse ``start:end;start:end`` (a single date means one day)."""
    ranges = []
    for chunk in _split(value):
        start, _, end = chunk.partition(":")
        start_date = dt.date.fromisoformat(start.strip())
        end_date = dt.date.fromisoformat(end.strip()) if end.strip() else start_date
        ranges.append(DateRange(start_date, end_date))
    return ranges


def _read(source: Source) -> pd.DataFrame:
    if isinstance(source, pd.DataFrame):
        df = source.copy()
    else:
        df = pd.read_csv(source, dtype=str)
    return df.fillna("")


def _require(df: pd.DataFrame, *columns: str):
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(f"CSV must have column(s): {', '.join(missing)}")


def load_roster(source: Source) -> List[RotaUser]:
    """
    Load the roster from a CSV file or DataFrame.

    Lists (qualifications, certifications, limitations) are ``;``-separated; leave is
    ``start:end`` ranges separated by ``;``. Rows without an id are skipped.
    """
    df = _read(source)
    _require(df, "id")

    users = []
    for _, row in df.iterrows():
        uid = str(row["id"]).strip()
        if not uid:
            continue
        users.append(RotaUser(
            id=uid,
            name=str(row.get("name", "")).strip() or uid,
            seniority=str(row.get("seniority", "")).strip() or "PGY2",
            qualifications=frozenset(_split(row.get("qualifications", ""))),
            fairness_accrual=_safe_float(row.get("fairness_accrual")),
            certifications=frozenset(_split(row.get("certifications", ""))),
            approved_leave=_parse_leave(row.get("leave", "")),
            min_rest_hours=_safe_int(row.get("min_rest_hours")),
            max_shifts=_safe_int(row.get("max_shifts")),
            limitations=frozenset(_split(row.get("limitations", ""))),
            email=str(row.get("email", "")).strip(),
            department=str(row.get("department", "")).strip(),
        ))
    logger.info(f"Loaded {len(users)} users")
    return users


def save_roster(users: List[RotaUser], path: Union[str, Path]) -> None:
    """Save the roster in the format ``load_roster`` reads."""
    rows = [
        {
            "id": u.id,
            "name": u.name,
            "seniority": u.seniority.value,
            "qualifications": LIST_SEPARATOR.join(sorted(u.qualifications)),
            "fairness_accrual": u.fairness_accrual,
            "certifications": LIST_SEPARATOR.join(sorted(u.certifications)),
            "leave": LIST_SEPARATOR.join(f"{r.start.isoformat()}:{r.end.isoformat()}" for r in u.approved_leave),
            "min_rest_hours": "" if u.min_rest_hours is None else u.min_rest_hours,
            "max_shifts": "" if u.max_shifts is None else u.max_shifts,
            "limitations": LIST_SEPARATOR.join(sorted(u.limitations)),
            "email": u.email,
            "department": u.department,
        }
        for u in users
    ]
    pd.DataFrame(rows, columns=ROSTER_COLUMNS).to_csv(path, index=False)


def load_requirements(source: Source) -> List[ShiftRequirement]:
    """Load dated requirements (``date``, ``shift_type``, ``count``, ``min_tier``)."""
    df = _read(source)
    _require(df, "date", "shift_type")

    requirements = []
    for _, row in df.iterrows():
        if not str(row["date"]).strip():
            continue
        requirements.append(ShiftRequirement(
            date=dt.date.fromisoformat(str(row["date"]).strip()),
            shift_type=str(row["shift_type"]).strip(),
            count=_safe_int(row.get("count"), 1),
            min_tier=_safe_int(row.get("min_tier")),
        ))
    logger.info(f"Loaded {len(requirements)} requirements")
    return requirements


def load_preferences(source: Source) -> List[ShiftPreference]:
    """Load preferences (``user_id``, ``level`` and optional ``date``, ``shift_type``, ``weekday``, ``reason``)."""
    df = _read(source)
    _require(df, "user_id", "level")

    prefs = [
        ShiftPreference.from_dict({k: (str(v).strip() or None) for k, v in row.items()})
        for _, row in df.iterrows()
        if str(row["user_id"]).strip()
    ]
    logger.info(f"Loaded {len(prefs)} preferences")
    return prefs


def save_schedule(schedule: RotaSchedule, path: Union[str, Path]) -> None:
    """Save schedule assignments as CSV."""
    schedule.to_dataframe().to_csv(path, index=False)
    logger.info(f"Saved {len(schedule.assignments)} assignments to {path}")


class CsvRepository(RotaRepository):
    """
    Repository backed by a directory of CSV files.

    Reads ``roster.csv`` and ``preferences.csv``; writes each saved schedule
    to ``schedule_<id>.csv``.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def load_roster(self) -> List[RotaUser]:
        return load_roster(self.directory / "roster.csv")

    def load_preferences(self, user_id: str) -> List[ShiftPreference]:
        path = self.directory / "preferences.csv"
        if not path.exists():
            return []
        return [p for p in load_preferences(path) if p.user_id == user_id]

    def save_schedule(self, schedule: RotaSchedule) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        save_schedule(schedule, self.schedule_path(schedule.id))

    def schedule_path(self, schedule_id: str) -> Path:
        return self.directory / f"schedule_{schedule_id}.csv"
