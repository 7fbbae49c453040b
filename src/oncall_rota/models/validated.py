"""
Pydantic Validated Models
=========================
Strict validation layer for configuration arriving from outside the
process (JSON files, CLI, API payloads).

Usage:
    from oncall_rota.models.validated import load_config

    config = load_config("rota_config.json")

The engine itself works with the plain ``EngineConfig`` dataclass;
``ValidatedEngineConfig`` converts to and from it.
"""
import datetime as dt
import json
from pathlib import Path
from typing import Dict, List, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from oncall_rota.errors import ValidationError
from oncall_rota.models.config import EngineConfig
from oncall_rota.models.preference import PreferenceLevel


class ValidatedEngineConfig(BaseModel):
    """
    Pydantic-validated engine configuration.

    Use this for strict validation at API boundaries.
    Can be converted to/from the dataclass EngineConfig.
    """
    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    preference_weights: Dict[str, float] = Field(
        default_factory=lambda: {
            k.value: v for k, v in EngineConfig().preference_weights.items()
        }
    )
    date_preference_multiplier: float = Field(default=2.0, ge=0, le=10)

    fairness_penalty_factor: float = Field(default=10.0, ge=0, le=1000)
    fairness_drift_threshold: float = Field(default=3.0, gt=0)

    default_min_rest_hours: int = Field(default=10, ge=0, le=72)
    allow_overtime: bool = Field(default=False)

    holidays: List[dt.date] = Field(default_factory=list)
    warn_weekend_swaps: bool = Field(default=True)

    @field_validator("preference_weights")
    @classmethod
    def validate_levels(cls, v: Dict[str, float]) -> Dict[str, float]:
        """Keys must be scoring preference levels."""
        normalized = {}
        for key, weight in v.items():
            try:
                level = PreferenceLevel.from_string(key)
            except ValueError:
                raise ValueError(f"unknown preference level: {key!r}") from None
            if level == PreferenceLevel.UNAVAILABLE:
                raise ValueError("'unavailable' excludes candidates and cannot carry a weight")
            normalized[level.value] = weight
        return normalized

    @model_validator(mode="after")
    def validate_ordering(self):
        """Stronger preferences must never weigh less than weaker ones."""
        w = self.preference_weights
        order = [
            PreferenceLevel.STRONGLY_PREFER,
            PreferenceLevel.PREFER,
            PreferenceLevel.NEUTRAL,
            PreferenceLevel.AVOID,
        ]
        present = [w[level.value] for level in order if level.value in w]
        if any(a < b for a, b in zip(present, present[1:])):
            raise ValueError("preference weights must decrease from strongly_prefer to avoid")
        return self

    def to_dataclass(self) -> EngineConfig:
        """Convert to dataclass EngineConfig for engine compatibility."""
        return EngineConfig.from_dict(self.model_dump())

    @classmethod
    def from_dataclass(cls, config: EngineConfig) -> "ValidatedEngineConfig":
        """Create from dataclass EngineConfig."""
        data = config.to_dict()
        data["holidays"] = sorted(config.holidays)
        return cls(**data)


def load_config(source: Union[str, Path, Dict, None] = None) -> EngineConfig:
    """
    Load and validate configuration.

    Args:
        source: Path to a JSON file, a dictionary, or None for defaults

    Returns:
        EngineConfig

    Raises:
        ValidationError: if the configuration is malformed
    """
    if source is None:
        return EngineConfig()
    if isinstance(source, dict):
        data = source
    else:
        try:
            data = json.loads(Path(source).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ValidationError([f"cannot read config {source}: {e}"]) from e
    if not isinstance(data, dict):
        raise ValidationError(["config must be a JSON object"])
    try:
        return ValidatedEngineConfig(**data).to_dataclass()
    except pydantic.ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        ]
        raise ValidationError(problems) from e
