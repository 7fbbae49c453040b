# oncall_rota/swap - Swap validation, execution and listings
from .service import (
    apply_swap,
    cancel_swap_listing,
    create_swap_listing,
    expire_listings,
    process_swap_acceptance,
    validate_swap,
)

__all__ = [
    "validate_swap",
    "apply_swap",
    "create_swap_listing",
    "process_swap_acceptance",
    "cancel_swap_listing",
    "expire_listings",
]
