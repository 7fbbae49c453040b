# oncall_rota/models - Data models for the rota system
from .config import EngineConfig
from .metrics import FairnessMetrics, PreferenceMetrics, SatisfactionScore, UserFairnessMetric, UserPreferenceScore
from .preference import PreferenceLevel, ShiftPreference
from .schedule import (
    AssignmentStatus,
    ConstraintViolation,
    GenerationLogEntry,
    LogKind,
    RequirementTemplate,
    RotaSchedule,
    ScheduleStatus,
    ShiftAssignment,
    ShiftRequirement,
    SwapRecord,
)
from .shift import DEFAULT_SHIFT_TYPES, ShiftType, build_registry, is_weekend
from .swap import (
    ListingStatus,
    ProposedSwap,
    SwapErrorCode,
    SwapListing,
    SwapOutcome,
    SwapValidation,
    SwapValidationError,
    SwapValidationWarning,
    SwapWarningCode,
)
from .user import DateRange, RotaUser, Seniority

__all__ = [
    "RotaUser", "Seniority", "DateRange",
    "ShiftType", "DEFAULT_SHIFT_TYPES", "build_registry", "is_weekend",
    "PreferenceLevel", "ShiftPreference",
    "ShiftRequirement", "RequirementTemplate", "ShiftAssignment", "AssignmentStatus",
    "SwapRecord", "ConstraintViolation", "GenerationLogEntry", "LogKind", "RotaSchedule", "ScheduleStatus",
    "FairnessMetrics", "UserFairnessMetric", "PreferenceMetrics", "UserPreferenceScore", "SatisfactionScore",
    "SwapListing", "ListingStatus", "ProposedSwap", "SwapOutcome", "SwapValidation",
    "SwapValidationError", "SwapValidationWarning", "SwapErrorCode", "SwapWarningCode",
    "EngineConfig",
]
