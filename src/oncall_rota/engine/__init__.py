# oncall_rota/engine - Greedy schedule generation and metrics
from .metrics import (
    compute_fairness_metrics,
    compute_preference_metrics,
    fairness_to_dataframe,
    user_accruals,
)
from .optimizer import GenerationResult, OptimizationEngine, generate_schedule
from .requirements import expand_requirements
from .rules import find_rest_conflict, is_unavailable, required_rest
from .validation import check_schedule, validate_generation_inputs

__all__ = [
    "generate_schedule",
    "OptimizationEngine",
    "GenerationResult",
    "expand_requirements",
    "validate_generation_inputs",
    "check_schedule",
    "compute_fairness_metrics",
    "compute_preference_metrics",
    "fairness_to_dataframe",
    "user_accruals",
    "find_rest_conflict",
    "is_unavailable",
    "required_rest",
]
