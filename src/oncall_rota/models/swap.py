"""Swap marketplace and swap validation models."""
import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional

from .schedule import RotaSchedule


class ListingStatus(str, Enum):
    OPEN = "open"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class SwapListing:
    """An offer to give away (or exchange) an assigned shift."""
    id: str
    assignment_id: str
    user_id: str
    date: dt.date
    shift_type: str
    eligible_shift_types: FrozenSet[str] = field(default_factory=frozenset)  # Empty = any
    status: ListingStatus = ListingStatus.OPEN
    listed_on: Optional[dt.date] = None
    expires_on: Optional[dt.date] = None
    reason: str = ""
    accepted_by: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.status == ListingStatus.OPEN

    def is_expired(self, today: dt.date) -> bool:
        return self.expires_on is not None and today > self.expires_on

    def accepts(self, shift_type: str) -> bool:
        """True if an offered shift of this type may be exchanged for the listing."""
        return not self.eligible_shift_types or shift_type in self.eligible_shift_types


@dataclass(frozen=True)
class ProposedSwap:
    """
    Hand ``assignment_id`` from ``from_user_id`` to ``to_user_id``.

    When ``counter_assignment_id`` is set the exchange is mutual: the
    counter assignment, held by ``to_user_id``, goes to ``from_user_id``.
    """
    assignment_id: str
    from_user_id: str
    to_user_id: str
    counter_assignment_id: Optional[str] = None

    def inverse(self) -> "ProposedSwap":
        """The swap that undoes this one once it has been applied."""
        if self.counter_assignment_id is None:
            return ProposedSwap(self.assignment_id, self.to_user_id, self.from_user_id)
        return ProposedSwap(
            assignment_id=self.counter_assignment_id,
            from_user_id=self.from_user_id,
            to_user_id=self.to_user_id,
            counter_assignment_id=self.assignment_id,
        )


class SwapErrorCode(str, Enum):
    USER_NOT_FOUND = "USER_NOT_FOUND"
    SAME_USER = "SAME_USER"
    ASSIGNMENT_NOT_FOUND = "ASSIGNMENT_NOT_FOUND"
    ASSIGNMENT_INACTIVE = "ASSIGNMENT_INACTIVE"
    ASSIGNMENT_STALE = "ASSIGNMENT_STALE"
    SHIFT_IN_PAST = "SHIFT_IN_PAST"
    QUALIFICATION_MISMATCH = "QUALIFICATION_MISMATCH"
    USER_LIMITATION = "USER_LIMITATION"
    USER_UNAVAILABLE = "USER_UNAVAILABLE"
    DOUBLE_BOOKING = "DOUBLE_BOOKING"
    REST_PERIOD_VIOLATION = "REST_PERIOD_VIOLATION"
    MAX_SHIFTS_EXCEEDED = "MAX_SHIFTS_EXCEEDED"
    LISTING_CLOSED = "LISTING_CLOSED"
    LISTING_EXPIRED = "LISTING_EXPIRED"
    SHIFT_TYPE_NOT_ACCEPTED = "SHIFT_TYPE_NOT_ACCEPTED"


class SwapWarningCode(str, Enum):
    FAIRNESS_DRIFT = "FAIRNESS_DRIFT"
    WEEKEND_SHIFT = "WEEKEND_SHIFT"
    HOLIDAY_SHIFT = "HOLIDAY_SHIFT"


@dataclass(frozen=True)
class SwapValidationError:
    code: SwapErrorCode
    message: str
    user_id: Optional[str] = None
    assignment_id: Optional[str] = None


@dataclass(frozen=True)
class SwapValidationWarning:
    code: SwapWarningCode
    message: str
    user_id: Optional[str] = None


@dataclass
class SwapValidation:
    """Outcome of validating a proposed swap. Only errors block."""
    errors: List[SwapValidationError] = field(default_factory=list)
    warnings: List[SwapValidationWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def error_codes(self) -> List[SwapErrorCode]:
        return [e.code for e in self.errors]

    def warning_codes(self) -> List[SwapWarningCode]:
        return [w.code for w in self.warnings]

    def add_error(self, code: SwapErrorCode, message: str, user_id: str = None,
                  assignment_id: str = None):
        self.errors.append(SwapValidationError(code, message, user_id, assignment_id))

    def add_warning(self, code: SwapWarningCode, message: str, user_id: str = None):
        self.warnings.append(SwapValidationWarning(code, message, user_id))


@dataclass
class SwapOutcome:
    """Result of accepting a listing: either a new schedule or the failed validation."""
    ok: bool
    validation: SwapValidation
    schedule: Optional[RotaSchedule] = None
    listing: Optional[SwapListing] = None
