"""Pytest configuration and fixtures."""
import datetime as dt
import logging
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from oncall_rota.models.config import EngineConfig
from oncall_rota.models.schedule import RotaSchedule, ShiftAssignment, ShiftRequirement
from oncall_rota.models.user import RotaUser

MONDAY = dt.date(2025, 3, 3)
DEFAULT_QUALIFICATIONS = frozenset({"general_oncall", "night_shift", "clinic_duty", "weekend_oncall"})


def day(offset: int) -> dt.date:
    """Date ``offset`` days after Monday 3 March 2025."""
    return MONDAY + dt.timedelta(days=offset)


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Drop handlers added by setup_logging so they do not outlive a test."""
    yield
    logging.getLogger("oncall_rota").handlers.clear()


@pytest.fixture
def make_user():
    """Factory for roster members, qualified for the common shifts by default."""
    def _make(user_id: str, **kwargs) -> RotaUser:
        kwargs.setdefault("name", user_id.title())
        kwargs.setdefault("seniority", "PGY3")
        kwargs.setdefault("qualifications", DEFAULT_QUALIFICATIONS)
        return RotaUser(id=user_id, **kwargs)
    return _make


@pytest.fixture
def roster(make_user):
    """Four interchangeable users with no history."""
    return [make_user(uid) for uid in ("alice", "bob", "carol", "dave")]


@pytest.fixture
def week_requirements():
    """One general on-call and one night shift every weekday."""
    reqs = []
    for offset in range(5):
        reqs.append(ShiftRequirement(day(offset), "general_oncall"))
        reqs.append(ShiftRequirement(day(offset), "night_shift"))
    return reqs


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def make_schedule():
    """Factory for hand-built schedules: (id, user, day offset, shift type) tuples."""
    def _make(*rows, schedule_id: str = "test-rota") -> RotaSchedule:
        return RotaSchedule(
            id=schedule_id,
            period_start=MONDAY,
            period_end=day(6),
            assignments=[
                ShiftAssignment(id=aid, user_id=uid, date=day(offset), shift_type=code)
                for aid, uid, offset, code in rows
            ],
        )
    return _make
