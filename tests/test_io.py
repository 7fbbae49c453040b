"""Tests for CSV loading and saving."""
import pandas as pd
import pytest

from conftest import day
from oncall_rota.io.csv_loader import (
    CsvRepository,
    load_preferences,
    load_requirements,
    load_roster,
    save_roster,
    save_schedule,
)
from oncall_rota.models.preference import PreferenceLevel
from oncall_rota.models.user import DateRange, Seniority


class TestLoadRoster:

    def test_from_dataframe(self):
        df = pd.DataFrame([
            {"id": "u1", "name": "Ann", "seniority": "Fellow", "qualifications": "general_oncall;night_shift"},
            {"id": "u2", "name": "", "seniority": "", "qualifications": ""},
        ])
        users = load_roster(df)

        assert [u.id for u in users] == ["u1", "u2"]
        assert users[0].seniority == Seniority.FELLOW
        assert users[0].qualifications == frozenset({"general_oncall", "night_shift"})
        # blanks fall back to defaults
        assert users[1].name == "u2"
        assert users[1].seniority == Seniority.PGY2

    def test_leave_and_caps(self):
        df = pd.DataFrame([{
            "id": "u1", "leave": "2025-03-04:2025-03-06;2025-03-09",
            "max_shifts": "4", "min_rest_hours": "", "fairness_accrual": "2.5",
        }])
        user = load_roster(df)[0]

        assert user.approved_leave == [DateRange(day(1), day(3)), DateRange(day(6), day(6))]
        assert user.max_shifts == 4
        assert user.min_rest_hours is None
        assert user.fairness_accrual == 2.5

    def test_rows_without_id_skipped(self):
        users = load_roster(pd.DataFrame({"id": ["u1", "", "u3"]}))
        assert [u.id for u in users] == ["u1", "u3"]

    def test_missing_id_column(self):
        with pytest.raises(ValueError, match="id"):
            load_roster(pd.DataFrame({"name": ["Ann"]}))

    def test_save_and_load(self, tmp_path, make_user):
        users = [
            make_user("alice", certifications={"or_trained"}, approved_leave=[DateRange(day(1), day(2))]),
            make_user("bob", max_shifts=3, fairness_accrual=1.5, email="bob@example.org",
                      limitations={"night_shift", "weekend_oncall"}),
        ]
        path = tmp_path / "roster.csv"
        save_roster(users, path)

        assert load_roster(path) == users


class TestLoadRequirements:

    def test_count_defaults_to_one(self):
        df = pd.DataFrame([
            {"date": "2025-03-03", "shift_type": "general_oncall", "count": "", "min_tier": ""},
            {"date": "2025-03-04", "shift_type": "senior_backup", "count": "2", "min_tier": "5"},
        ])
        reqs = load_requirements(df)

        assert reqs[0].date == day(0)
        assert reqs[0].count == 1
        assert reqs[0].min_tier is None
        assert reqs[1].count == 2
        assert reqs[1].min_tier == 5

    def test_missing_columns(self):
        with pytest.raises(ValueError, match="shift_type"):
            load_requirements(pd.DataFrame({"date": ["2025-03-03"]}))


class TestLoadPreferences:

    def test_optional_columns(self, tmp_path):
        path = tmp_path / "prefs.csv"
        path.write_text(
            "user_id,level,date,shift_type,weekday,reason\n"
            "alice,prefer,,night_shift,,\n"
            "bob,unavailable,2025-03-05,,,wedding\n"
            "carol,avoid,,,4,\n",
            encoding="utf-8",
        )
        prefs = load_preferences(path)

        assert [p.level for p in prefs] == [PreferenceLevel.PREFER, PreferenceLevel.UNAVAILABLE, PreferenceLevel.AVOID]
        assert prefs[0].shift_type == "night_shift" and prefs[0].date is None
        assert prefs[1].date == day(2)
        assert prefs[1].reason == "wedding"
        assert prefs[2].weekday == 4


class TestSaveSchedule:

    def test_writes_assignment_rows(self, tmp_path, make_schedule):
        schedule = make_schedule(("x1", "alice", 0, "general_oncall"), ("x2", "bob", 1, "night_shift"))
        path = tmp_path / "schedule.csv"
        save_schedule(schedule, path)

        df = pd.read_csv(path, dtype=str)
        assert list(df["id"]) == ["x1", "x2"]
        assert list(df["date"]) == ["2025-03-03", "2025-03-04"]


class TestCsvRepository:

    def test_roundtrip(self, tmp_path, make_user, make_schedule):
        save_roster([make_user("alice"), make_user("bob")], tmp_path / "roster.csv")
        (tmp_path / "preferences.csv").write_text(
            "user_id,level,shift_type\nalice,prefer,night_shift\nbob,avoid,night_shift\n",
            encoding="utf-8",
        )
        repo = CsvRepository(tmp_path)

        assert [u.id for u in repo.load_roster()] == ["alice", "bob"]
        assert [p.level for p in repo.load_preferences("bob")] == [PreferenceLevel.AVOID]

        schedule = make_schedule(("x1", "alice", 0, "general_oncall"))
        repo.save_schedule(schedule)
        assert repo.schedule_path("test-rota").exists()

    def test_no_preferences_file(self, tmp_path):
        assert CsvRepository(tmp_path).load_preferences("alice") == []
