"""
Swap Service
============
Validates and executes exchanges of assigned shifts, and manages the
listings through which staff offer shifts to each other.

Every function here is pure: schedules, listings and users passed in are
never mutated; updated copies are returned instead.
"""
import datetime as dt
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from oncall_rota.engine.metrics import (
    accrual_deviations,
    compute_fairness_metrics,
    compute_preference_metrics,
    user_accruals,
)
from oncall_rota.engine.rules import find_rest_conflict, is_unavailable
from oncall_rota.errors import ListingOwnershipError, ValidationError
from oncall_rota.models.config import EngineConfig
from oncall_rota.models.preference import ShiftPreference
from oncall_rota.models.schedule import (
    AssignmentStatus,
    GenerationLogEntry,
    LogKind,
    RotaSchedule,
    ShiftAssignment,
    SwapRecord,
)
from oncall_rota.models.shift import DEFAULT_SHIFT_TYPES, ShiftTypeRegistry, is_weekend
from oncall_rota.models.swap import (
    ListingStatus,
    ProposedSwap,
    SwapErrorCode,
    SwapListing,
    SwapOutcome,
    SwapValidation,
    SwapWarningCode,
)
from oncall_rota.models.user import RotaUser
from oncall_rota.utils.structured_logging import get_structured_logger

log = get_structured_logger("oncall_rota.swap")

# (assignment, receiving user id)
Move = Tuple[ShiftAssignment, str]


def _moves(schedule: RotaSchedule, swap: ProposedSwap) -> List[Move]:
    moves = [(schedule.get_assignment(swap.assignment_id), swap.to_user_id)]
    if swap.counter_assignment_id is not None:
        moves.append((schedule.get_assignment(swap.counter_assignment_id), swap.from_user_id))
    return moves


def _swapped_assignments(schedule: RotaSchedule, moves: Sequence[Move]) -> List[ShiftAssignment]:
    """Assignments as they would look after the moves, without history."""
    receivers = {a.id: to_user for a, to_user in moves}
    return [
        replace(a, user_id=receivers[a.id]) if a.id in receivers else a
        for a in schedule.assignments
    ]


def _check_structure(
    schedule: RotaSchedule,
    swap: ProposedSwap,
    users: Dict[str, RotaUser],
    validation: SwapValidation,
):
    for uid in (swap.from_user_id, swap.to_user_id):
        if uid not in users:
            validation.add_error(SwapErrorCode.USER_NOT_FOUND, f"User {uid} is not on the roster", user_id=uid)
    if swap.from_user_id == swap.to_user_id:
        validation.add_error(SwapErrorCode.SAME_USER, "Cannot swap a shift with yourself",
                             user_id=swap.from_user_id)

    expected = [(swap.assignment_id, swap.from_user_id)]
    if swap.counter_assignment_id is not None:
        expected.append((swap.counter_assignment_id, swap.to_user_id))
    for assignment_id, holder in expected:
        a = schedule.get_assignment(assignment_id)
        if a is None:
            validation.add_error(SwapErrorCode.ASSIGNMENT_NOT_FOUND,
                                 f"Assignment {assignment_id} does not exist", assignment_id=assignment_id)
        elif not a.is_active:
            validation.add_error(SwapErrorCode.ASSIGNMENT_INACTIVE,
                                 f"Assignment {assignment_id} is {a.status.value}", assignment_id=assignment_id)
        elif a.user_id != holder:
            validation.add_error(SwapErrorCode.ASSIGNMENT_STALE,
                                 f"Assignment {assignment_id} is now held by {a.user_id}, not {holder}",
                                 user_id=holder, assignment_id=assignment_id)


def _fairness_warnings(
    schedule: RotaSchedule,
    after: List[ShiftAssignment],
    swap: ProposedSwap,
    roster: Sequence[RotaUser],
    shift_types: ShiftTypeRegistry,
    config: EngineConfig,
    validation: SwapValidation,
):
    before = accrual_deviations(user_accruals(schedule.assignments, roster, shift_types))
    after_devs = accrual_deviations(user_accruals(after, roster, shift_types))
    for uid in (swap.from_user_id, swap.to_user_id):
        dev_before, dev_after = before[uid], after_devs[uid]
        if abs(dev_after) > config.fairness_drift_threshold and abs(dev_after) > abs(dev_before):
            validation.add_warning(
                SwapWarningCode.FAIRNESS_DRIFT,
                f"{uid} would be {dev_after:+.1f} from the roster mean "
                f"(threshold {config.fairness_drift_threshold:.1f})",
                user_id=uid,
            )


def validate_swap(
    schedule: RotaSchedule,
    swap: ProposedSwap,
    roster: Sequence[RotaUser],
    config: Optional[EngineConfig] = None,
    shift_types: Optional[ShiftTypeRegistry] = None,
    today: Optional[dt.date] = None,
    preferences: Sequence[ShiftPreference] = (),
) -> SwapValidation:
    """
    Check a proposed swap against the live schedule.

    Args:
        schedule: Current schedule
        swap: The proposed hand-over or exchange
        roster: Current users
        config: Engine configuration (rest hours, drift threshold)
        shift_types: Shift type registry
        today: Shifts before this date cannot be swapped (not checked if None)
        preferences: Used to detect slots the receiver declared unavailable

    Returns:
        SwapValidation; ``ok`` is False when any error was found.
        Warnings never block.

    Raises:
        ValidationError: if an assignment references a shift type missing
            from the registry
    """
    config = config or EngineConfig()
    shift_types = shift_types if shift_types is not None else DEFAULT_SHIFT_TYPES
    users = {u.id: u for u in roster}
    validation = SwapValidation()

    _check_structure(schedule, swap, users, validation)
    if not validation.ok:
        return validation

    moves = _moves(schedule, swap)
    unknown = sorted({a.shift_type for a, _ in moves if a.shift_type not in shift_types})
    if unknown:
        raise ValidationError([f"unknown shift type {code!r}" for code in unknown])

    after = _swapped_assignments(schedule, moves)
    moving_ids = {a.id for a, _ in moves}

    for a, to_user in moves:
        user = users[to_user]
        shift_type = shift_types[a.shift_type]
        label = f"{a.shift_type} on {a.date.isoformat()}"

        if today is not None and a.date < today:
            validation.add_error(SwapErrorCode.SHIFT_IN_PAST, f"{label} is in the past",
                                 user_id=to_user, assignment_id=a.id)
            continue
        if not user.is_qualified_for(shift_type, a.min_tier):
            validation.add_error(SwapErrorCode.QUALIFICATION_MISMATCH,
                                 f"{to_user} is not qualified for {a.shift_type}",
                                 user_id=to_user, assignment_id=a.id)
        if user.is_limited_from(a.shift_type):
            validation.add_error(SwapErrorCode.USER_LIMITATION,
                                 f"{to_user} has a limitation preventing {a.shift_type} shifts",
                                 user_id=to_user, assignment_id=a.id)
        user_prefs = [p for p in preferences if p.user_id == to_user]
        if is_unavailable(user, a.date, a.shift_type, user_prefs):
            validation.add_error(SwapErrorCode.USER_UNAVAILABLE, f"{to_user} is unavailable for {label}",
                                 user_id=to_user, assignment_id=a.id)

        others = [o for o in after if o.is_active and o.user_id == to_user and o.id != a.id]
        if any(o.date == a.date for o in others):
            validation.add_error(SwapErrorCode.DOUBLE_BOOKING,
                                 f"{to_user} already works on {a.date.isoformat()}",
                                 user_id=to_user, assignment_id=a.id)
        held = [(o.date, shift_types[o.shift_type]) for o in others if o.shift_type in shift_types]
        conflict = find_rest_conflict(user, a.date, shift_type, held, config)
        if conflict is not None:
            validation.add_error(
                SwapErrorCode.REST_PERIOD_VIOLATION,
                f"{to_user} would have {conflict.gap_hours:.0f}h rest between {conflict.other_shift_type} "
                f"on {conflict.other_date.isoformat()} and {label} (needs {conflict.required_hours}h)",
                user_id=to_user, assignment_id=a.id,
            )
        if not config.allow_overtime and user.max_shifts is not None and len(others) >= user.max_shifts:
            validation.add_error(SwapErrorCode.MAX_SHIFTS_EXCEEDED,
                                 f"{to_user} already holds {len(others)} of {user.max_shifts} shifts",
                                 user_id=to_user, assignment_id=a.id)

        if config.warn_weekend_swaps and is_weekend(a.date):
            validation.add_warning(SwapWarningCode.WEEKEND_SHIFT, f"{label} is a weekend shift", user_id=to_user)
        if config.is_holiday(a.date):
            validation.add_warning(SwapWarningCode.HOLIDAY_SHIFT, f"{label} is a public holiday", user_id=to_user)

    _fairness_warnings(schedule, after, swap, roster, shift_types, config, validation)

    log.debug("swap_validated", assignment_id=swap.assignment_id, from_user=swap.from_user_id,
              to_user=swap.to_user_id, ok=validation.ok, errors=[c.value for c in validation.error_codes()],
              moving=sorted(moving_ids))
    return validation


def apply_swap(
    schedule: RotaSchedule,
    swap: ProposedSwap,
    roster: Sequence[RotaUser],
    shift_types: Optional[ShiftTypeRegistry] = None,
    preferences: Optional[Sequence[ShiftPreference]] = None,
    config: Optional[EngineConfig] = None,
    listing_id: str = "",
    on: Optional[dt.date] = None,
) -> RotaSchedule:
    """
    Execute a swap without validating it.

    Returns a new schedule one version ahead with the moved assignments
    marked ``swapped`` and fairness metrics recomputed. Preference metrics
    are recomputed only when ``preferences`` is given.
    """
    shift_types = shift_types if shift_types is not None else DEFAULT_SHIFT_TYPES
    moves = _moves(schedule, swap)
    missing = [aid for (a, _), aid in zip(moves, (swap.assignment_id, swap.counter_assignment_id)) if a is None]
    if missing:
        raise ValidationError([f"assignment {aid!r} does not exist" for aid in missing])

    receivers = {a.id: to_user for a, to_user in moves}
    assignments = []
    entries = []
    for a in schedule.assignments:
        to_user = receivers.get(a.id)
        if to_user is None:
            assignments.append(a)
            continue
        assignments.append(replace(
            a,
            user_id=to_user,
            status=AssignmentStatus.SWAPPED,
            original_user_id=a.original_user_id or a.user_id,
            backup_user_id=None if a.backup_user_id == to_user else a.backup_user_id,
            swap_history=a.swap_history + (SwapRecord(a.user_id, to_user, listing_id, on),),
        ))
        entries.append(GenerationLogEntry(
            kind=LogKind.INFO,
            message=f"Swapped {a.shift_type} on {a.date.isoformat()} from {a.user_id} to {to_user}",
            date=a.date,
            shift_type=a.shift_type,
            user_id=to_user,
            details={"assignment_id": a.id, "from_user": a.user_id, "listing_id": listing_id},
        ))

    holidays = config.holidays if config is not None else ()
    if preferences is not None:
        preference_metrics = compute_preference_metrics(assignments, preferences, roster, config)
    else:
        preference_metrics = schedule.preference_metrics

    return replace(
        schedule,
        assignments=assignments,
        generation_log=list(schedule.generation_log) + entries,
        fairness_metrics=compute_fairness_metrics(assignments, roster, shift_types, holidays),
        preference_metrics=preference_metrics,
        version=schedule.version + 1,
    )


def create_swap_listing(
    assignment: ShiftAssignment,
    user: RotaUser,
    eligible_shift_types: Iterable[str] = (),
    listed_on: Optional[dt.date] = None,
    expires_on: Optional[dt.date] = None,
    reason: str = "",
    listing_id: Optional[str] = None,
) -> SwapListing:
    """
    Offer an assignment on the swap board.

    Only the current holder may list a shift. The listing expires the day
    before the shift unless ``expires_on`` says otherwise.

    Raises:
        ListingOwnershipError: if ``user`` does not hold ``assignment``
    """
    if assignment.user_id != user.id or not assignment.is_active:
        raise ListingOwnershipError(f"{user.id} does not hold assignment {assignment.id}")

    listing = SwapListing(
        id=listing_id or f"swap-{assignment.id}-{user.id}",
        assignment_id=assignment.id,
        user_id=user.id,
        date=assignment.date,
        shift_type=assignment.shift_type,
        eligible_shift_types=frozenset(eligible_shift_types),
        listed_on=listed_on,
        expires_on=expires_on if expires_on is not None else assignment.date - dt.timedelta(days=1),
        reason=reason,
    )
    log.info("listing_created", listing_id=listing.id, assignment_id=assignment.id, user_id=user.id)
    return listing


def process_swap_acceptance(
    listing: SwapListing,
    accepting_user: RotaUser,
    schedule: RotaSchedule,
    roster: Sequence[RotaUser],
    offered_assignment_id: Optional[str] = None,
    config: Optional[EngineConfig] = None,
    shift_types: Optional[ShiftTypeRegistry] = None,
    today: Optional[dt.date] = None,
    preferences: Optional[Sequence[ShiftPreference]] = None,
) -> SwapOutcome:
    """
    Accept a listing, re-validating against the live schedule.

    Args:
        listing: The listing being accepted
        accepting_user: User taking the listed shift
        schedule: Current schedule (may have changed since listing)
        roster: Current users
        offered_assignment_id: Assignment the accepting user gives back, if
            this is an exchange rather than a give-away
        config: Engine configuration
        shift_types: Shift type registry
        today: Reference date for expiry and past-shift checks
        preferences: Current preferences (availability checks, metrics)

    Returns:
        SwapOutcome. On success it carries the new schedule and the accepted
        listing; on failure only the validation, and nothing has changed.
    """
    validation = SwapValidation()
    if not listing.is_open:
        validation.add_error(SwapErrorCode.LISTING_CLOSED, f"Listing {listing.id} is {listing.status.value}",
                             assignment_id=listing.assignment_id)
    elif today is not None and listing.is_expired(today):
        validation.add_error(SwapErrorCode.LISTING_EXPIRED, f"Listing {listing.id} expired on {listing.expires_on}",
                             assignment_id=listing.assignment_id)

    if offered_assignment_id is not None:
        offered = schedule.get_assignment(offered_assignment_id)
        if offered is not None and not listing.accepts(offered.shift_type):
            validation.add_error(
                SwapErrorCode.SHIFT_TYPE_NOT_ACCEPTED,
                f"Listing {listing.id} does not accept {offered.shift_type}",
                user_id=accepting_user.id, assignment_id=offered_assignment_id,
            )

    if validation.ok:
        swap = ProposedSwap(
            assignment_id=listing.assignment_id,
            from_user_id=listing.user_id,
            to_user_id=accepting_user.id,
            counter_assignment_id=offered_assignment_id,
        )
        result = validate_swap(schedule, swap, roster, config, shift_types, today, preferences or ())
        validation.errors.extend(result.errors)
        validation.warnings.extend(result.warnings)

    if not validation.ok:
        log.info("swap_rejected", listing_id=listing.id, user_id=accepting_user.id,
                 errors=[c.value for c in validation.error_codes()])
        return SwapOutcome(ok=False, validation=validation)

    new_schedule = apply_swap(schedule, swap, roster, shift_types, preferences, config,
                              listing_id=listing.id, on=today)
    accepted = replace(listing, status=ListingStatus.ACCEPTED, accepted_by=accepting_user.id)
    log.info("swap_accepted", listing_id=listing.id, user_id=accepting_user.id,
             version=new_schedule.version, warnings=[c.value for c in validation.warning_codes()])
    return SwapOutcome(ok=True, validation=validation, schedule=new_schedule, listing=accepted)


def cancel_swap_listing(listing: SwapListing, user: RotaUser) -> SwapListing:
    """
    Withdraw a listing. Closed listings are returned unchanged.

    Raises:
        ListingOwnershipError: if ``user`` did not create the listing
    """
    if listing.user_id != user.id:
        raise ListingOwnershipError(f"{user.id} cannot cancel listing {listing.id}")
    if not listing.is_open:
        return listing
    log.info("listing_cancelled", listing_id=listing.id, user_id=user.id)
    return replace(listing, status=ListingStatus.CANCELLED)


def expire_listings(listings: Iterable[SwapListing], today: dt.date) -> List[SwapListing]:
    """Mark open listings past their expiry date as expired."""
    result = []
    for listing in listings:
        if listing.is_open and listing.is_expired(today):
            listing = replace(listing, status=ListingStatus.EXPIRED)
            log.info("listing_expired", listing_id=listing.id)
        result.append(listing)
    return result
