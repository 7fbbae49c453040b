# oncall_rota - Fair on-call rota generation and shift swaps
from .engine import GenerationResult, OptimizationEngine, check_schedule, generate_schedule
from .errors import (
    ListingOwnershipError,
    RotaError,
    StaleScheduleError,
    UnknownEntityError,
    ValidationError,
)
from .repository import InMemoryRepository, RotaRepository
from .store import RotaStore, StoreEvent
from .swap import (
    apply_swap,
    cancel_swap_listing,
    create_swap_listing,
    expire_listings,
    process_swap_acceptance,
    validate_swap,
)

__version__ = "0.1.0"

__all__ = [
    "generate_schedule", "OptimizationEngine", "GenerationResult", "check_schedule",
    "validate_swap", "apply_swap", "create_swap_listing", "process_swap_acceptance",
    "cancel_swap_listing", "expire_listings",
    "RotaStore", "StoreEvent", "RotaRepository", "InMemoryRepository",
    "RotaError", "ValidationError", "ListingOwnershipError", "StaleScheduleError", "UnknownEntityError",
]
