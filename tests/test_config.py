"""Tests for engine configuration and its validated loader."""
import datetime as dt
import json

import pydantic
import pytest

from oncall_rota.errors import ValidationError
from oncall_rota.models.config import EngineConfig
from oncall_rota.models.preference import PreferenceLevel
from oncall_rota.models.validated import ValidatedEngineConfig, load_config


class TestEngineConfig:

    def test_defaults(self):
        cfg = EngineConfig()
        assert cfg.preference_weight(PreferenceLevel.STRONGLY_PREFER) == 50.0
        assert cfg.preference_weight(PreferenceLevel.AVOID) == -50.0
        assert cfg.preference_weight(PreferenceLevel.UNAVAILABLE) == 0.0
        assert cfg.fairness_penalty_factor == 10.0
        assert cfg.default_min_rest_hours == 10
        assert not cfg.is_holiday(dt.date(2025, 12, 25))

    def test_from_dict(self):
        cfg = EngineConfig.from_dict({
            "preference_weights": {"prefer": 30},
            "holidays": ["2025-12-25"],
            "allow_overtime": True,
            "not_a_setting": 1,
        })
        assert cfg.preference_weight(PreferenceLevel.PREFER) == 30.0
        assert cfg.preference_weight(PreferenceLevel.STRONGLY_PREFER) == 50.0
        assert cfg.is_holiday(dt.date(2025, 12, 25))
        assert cfg.allow_overtime is True

    def test_from_dict_ignores_method_names(self):
        cfg = EngineConfig.from_dict({"is_holiday": 1, "to_dict": "x", "preference_weight": 3})
        assert cfg == EngineConfig()
        assert not cfg.is_holiday(dt.date(2025, 12, 25))

    def test_dict_roundtrip(self):
        cfg = EngineConfig(holidays=frozenset({dt.date(2025, 1, 1)}), fairness_drift_threshold=2.0)
        assert EngineConfig.from_dict(cfg.to_dict()) == cfg


class TestLoadConfig:

    def test_none_gives_defaults(self):
        assert load_config() == EngineConfig()

    def test_from_dict(self):
        cfg = load_config({"fairness_penalty_factor": 5, "holidays": ["2025-04-18"]})
        assert cfg.fairness_penalty_factor == 5.0
        assert cfg.holidays == frozenset({dt.date(2025, 4, 18)})

    def test_from_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"default_min_rest_hours": 12}), encoding="utf-8")
        assert load_config(path).default_min_rest_hours == 12

    def test_unreadable_file(self, tmp_path):
        with pytest.raises(ValidationError, match="cannot read config"):
            load_config(tmp_path / "missing.json")

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ValidationError):
            load_config(path)

    def test_out_of_range_reports_field(self):
        with pytest.raises(ValidationError) as exc:
            load_config({"default_min_rest_hours": 100})
        assert any(p.startswith("default_min_rest_hours") for p in exc.value.problems)

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError):
            load_config({"max_nights": 3})

    def test_unavailable_cannot_be_weighted(self):
        with pytest.raises(ValidationError, match="unavailable"):
            load_config({"preference_weights": {"unavailable": -1000}})

    def test_unknown_level(self):
        with pytest.raises(ValidationError, match="unknown preference level"):
            load_config({"preference_weights": {"meh": 1}})

    def test_weights_must_be_ordered(self):
        with pytest.raises(ValidationError, match="decrease"):
            load_config({"preference_weights": {"prefer": 60, "strongly_prefer": 50}})


class TestValidatedEngineConfig:

    def test_from_dataclass(self):
        cfg = EngineConfig(holidays=frozenset({dt.date(2025, 1, 1)}), warn_weekend_swaps=False)
        validated = ValidatedEngineConfig.from_dataclass(cfg)
        assert validated.holidays == [dt.date(2025, 1, 1)]
        assert validated.to_dataclass() == cfg

    def test_validate_assignment(self):
        validated = ValidatedEngineConfig()
        with pytest.raises(pydantic.ValidationError):
            validated.fairness_drift_threshold = 0
