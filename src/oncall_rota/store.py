"""
Rota Store
==========
In-process owner of the roster, preferences, current schedule and swap
listings. Reads go through derived views; every change goes through an
action, is committed with an optimistic version check, and is announced
to subscribers as a ``StoreEvent``.
"""
import datetime as dt
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from oncall_rota.engine.metrics import accrue_roster
from oncall_rota.engine.optimizer import GenerationResult, generate_schedule
from oncall_rota.engine.requirements import expand_requirements
from oncall_rota.errors import StaleScheduleError, UnknownEntityError, ValidationError
from oncall_rota.models.config import EngineConfig
from oncall_rota.models.metrics import SatisfactionScore, UserFairnessMetric
from oncall_rota.models.preference import ShiftPreference
from oncall_rota.models.schedule import RequirementTemplate, RotaSchedule, ShiftAssignment, ShiftRequirement
from oncall_rota.models.shift import DEFAULT_SHIFT_TYPES, ShiftTypeRegistry
from oncall_rota.models.swap import ListingStatus, ProposedSwap, SwapListing, SwapOutcome
from oncall_rota.models.user import RotaUser
from oncall_rota.repository import RotaRepository
from oncall_rota.swap.service import (
    cancel_swap_listing,
    create_swap_listing,
    expire_listings,
    process_swap_acceptance,
    validate_swap,
)
from oncall_rota.utils.structured_logging import get_structured_logger

log = get_structured_logger("oncall_rota.store")

Clock = Callable[[], dt.date]
Subscriber = Callable[["StoreEvent"], None]

# Event kinds
ROSTER_LOADED = "roster_loaded"
PREFERENCES_SUBMITTED = "preferences_submitted"
SCHEDULE_COMMITTED = "schedule_committed"
LISTING_CREATED = "listing_created"
LISTING_CANCELLED = "listing_cancelled"
LISTINGS_EXPIRED = "listings_expired"
SWAP_ACCEPTED = "swap_accepted"
SWAP_REJECTED = "swap_rejected"
SATISFACTION_SUBMITTED = "satisfaction_submitted"


def _overlaps(schedule: RotaSchedule, start: Optional[dt.date], end: Optional[dt.date]) -> bool:
    if None in (schedule.period_start, schedule.period_end, start, end):
        return True
    return start <= schedule.period_end and schedule.period_start <= end


@dataclass(frozen=True)
class StoreEvent:
    kind: str
    payload: Dict[str, Any] = field(default_factory=dict, hash=False)


class RotaStore:
    """
    State holder and coordinator for the engine and the swap service.

    Args:
        repository: Where the roster and preferences come from and where
            committed schedules go
        config: Engine configuration
        shift_types: Shift type registry
        clock: Returns "today"; injected so tests control it
    """

    def __init__(
        self,
        repository: RotaRepository,
        config: Optional[EngineConfig] = None,
        shift_types: Optional[ShiftTypeRegistry] = None,
        clock: Clock = dt.date.today,
    ):
        self.repository = repository
        self.config = config or EngineConfig()
        self.shift_types = shift_types if shift_types is not None else DEFAULT_SHIFT_TYPES
        self.clock = clock

        self.roster: List[RotaUser] = []
        # Accruals as they stood before the current schedule's period
        self._period_roster: List[RotaUser] = []
        self.preferences: Dict[str, List[ShiftPreference]] = {}
        self.schedule: Optional[RotaSchedule] = None
        self.listings: Dict[str, SwapListing] = {}
        self.satisfaction: Dict[Tuple[str, str], SatisfactionScore] = {}
        self._subscribers: List[Subscriber] = []

    # --- subscriptions ---------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for every event. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, kind: str, **payload):
        event = StoreEvent(kind, payload)
        log.info(kind, **payload)
        for callback in list(self._subscribers):
            callback(event)

    # --- lookups ---------------------------------------------------------

    @property
    def version(self) -> int:
        """Version of the current schedule (0 before the first commit)."""
        return self.schedule.version if self.schedule else 0

    def get_user(self, user_id: str) -> RotaUser:
        for u in self.roster:
            if u.id == user_id:
                return u
        raise UnknownEntityError(f"Unknown user {user_id!r}")

    def get_listing(self, listing_id: str) -> SwapListing:
        if listing_id not in self.listings:
            raise UnknownEntityError(f"Unknown listing {listing_id!r}")
        return self.listings[listing_id]

    def _require_schedule(self) -> RotaSchedule:
        if self.schedule is None:
            raise UnknownEntityError("No schedule has been generated")
        return self.schedule

    def all_preferences(self) -> List[ShiftPreference]:
        """Preferences of every roster user, in roster order."""
        return [p for u in self.roster for p in self.preferences.get(u.id, [])]

    # --- views -----------------------------------------------------------

    def my_assignments(self, user_id: str) -> List[ShiftAssignment]:
        if self.schedule is None:
            return []
        return self.schedule.get_user_assignments(user_id)

    def next_shift(self, user_id: str) -> Optional[ShiftAssignment]:
        """First assignment on or after today."""
        today = self.clock()
        for a in self.my_assignments(user_id):
            if a.date >= today:
                return a
        return None

    def my_fairness(self, user_id: str) -> Optional[UserFairnessMetric]:
        if self.schedule is None:
            return None
        return self.schedule.fairness_metrics.for_user(user_id)

    def available_swaps(self, user_id: str) -> List[SwapListing]:
        """Open listings by others that ``user_id`` could take right now."""
        if self.schedule is None:
            return []
        today = self.clock()
        prefs = self.all_preferences()
        available = []
        for listing in self._sorted_listings():
            if not listing.is_open or listing.is_expired(today) or listing.user_id == user_id:
                continue
            swap = ProposedSwap(listing.assignment_id, listing.user_id, user_id)
            validation = validate_swap(self.schedule, swap, self._period_roster, self.config,
                                       self.shift_types, today, prefs)
            if validation.ok:
                available.append(listing)
        return available

    def my_listings(self, user_id: str) -> List[SwapListing]:
        return [x for x in self._sorted_listings() if x.user_id == user_id]

    def my_backups(self, user_id: str) -> List[ShiftAssignment]:
        """Active assignments on which ``user_id`` is the named backup."""
        if self.schedule is None:
            return []
        return sorted(
            (a for a in self.schedule.active_assignments() if a.backup_user_id == user_id),
            key=lambda a: (a.date, a.shift_type, a.id),
        )

    def average_satisfaction(self) -> Optional[float]:
        """Mean score submitted for the current schedule, or None if nobody rated it."""
        if self.schedule is None:
            return None
        scores = [s.score for (schedule_id, _), s in self.satisfaction.items() if schedule_id == self.schedule.id]
        if not scores:
            return None
        return sum(scores) / len(scores)

    def _sorted_listings(self) -> List[SwapListing]:
        return sorted(self.listings.values(), key=lambda x: (x.date, x.id))

    # --- actions ---------------------------------------------------------

    def load(self):
        """Pull the roster and each user's preferences from the repository."""
        self.roster = self.repository.load_roster()
        self._period_roster = list(self.roster)
        self.preferences = {u.id: self.repository.load_preferences(u.id) for u in self.roster}
        self._publish(ROSTER_LOADED, users=len(self.roster),
                      preferences=sum(len(p) for p in self.preferences.values()))

    def submit_preferences(self, user_id: str, preferences: Iterable[ShiftPreference]):
        """
        Replace a user's preferences for the next generation.

        Raises:
            UnknownEntityError: if the user is not on the roster
            ValidationError: if a preference belongs to someone else
        """
        self.get_user(user_id)
        preferences = list(preferences)
        foreign = [p for p in preferences if p.user_id != user_id]
        if foreign:
            raise ValidationError([f"preference for {p.user_id!r} submitted by {user_id!r}" for p in foreign])
        self.preferences[user_id] = preferences
        self._publish(PREFERENCES_SUBMITTED, user_id=user_id, count=len(preferences))

    def generate(self, requirements: Sequence[ShiftRequirement], schedule_id: Optional[str] = None) -> GenerationResult:
        """
        Generate a schedule from the current state and commit it.

        Regenerating a period that overlaps the current schedule starts
        from the accruals that schedule started from, so its shifts are
        not counted twice. Open listings point at the replaced schedule
        and are cancelled.
        """
        base_version = self.version
        start = min((r.date for r in requirements), default=None)
        end = max((r.date for r in requirements), default=None)
        if self.schedule is not None and _overlaps(self.schedule, start, end):
            base_roster = self._period_roster
        else:
            base_roster = self.roster
        result = generate_schedule(
            base_roster, requirements, self.all_preferences(),
            config=self.config, shift_types=self.shift_types, schedule_id=schedule_id,
        )
        schedule = replace(result.schedule, version=base_version + 1)
        self.commit(schedule, base_version)
        for listing in self._sorted_listings():
            if listing.is_open:
                self.listings[listing.id] = replace(listing, status=ListingStatus.CANCELLED)
                self._publish(LISTING_CANCELLED, listing_id=listing.id, user_id=listing.user_id)
        return GenerationResult(schedule=schedule, log=result.log)

    def generate_period(
        self,
        start: dt.date,
        end: dt.date,
        templates: Sequence[RequirementTemplate],
        schedule_id: Optional[str] = None,
    ) -> GenerationResult:
        """Expand recurring templates over ``start``..``end`` and generate."""
        requirements = expand_requirements(templates, start, end, self.config.holidays)
        return self.generate(requirements, schedule_id)

    def commit(self, schedule: RotaSchedule, base_version: int):
        """
        Make ``schedule`` current and persist it.

        Roster accruals are recomputed from the period base plus the
        shifts held in ``schedule``. A schedule for a later period first
        moves the base forward to the accruals of the previous one.

        Raises:
            StaleScheduleError: if the current version is not ``base_version``
        """
        if base_version != self.version:
            raise StaleScheduleError(base_version, self.version)
        if self.schedule is not None and not _overlaps(self.schedule, schedule.period_start, schedule.period_end):
            self._period_roster = self.roster
        self.schedule = schedule
        self.roster = accrue_roster(self._period_roster, schedule.assignments, self.shift_types)
        self.repository.save_schedule(schedule)
        self._publish(SCHEDULE_COMMITTED, schedule_id=schedule.id, version=schedule.version)

    def list_shift_for_swap(
        self,
        user_id: str,
        assignment_id: str,
        eligible_shift_types: Iterable[str] = (),
        reason: str = "",
        expires_on: Optional[dt.date] = None,
    ) -> SwapListing:
        """
        Put one of the user's assignments on the swap board.

        Raises:
            UnknownEntityError: for an unknown user or assignment
            ListingOwnershipError: if the user does not hold the assignment
        """
        user = self.get_user(user_id)
        assignment = self._require_schedule().get_assignment(assignment_id)
        if assignment is None:
            raise UnknownEntityError(f"Unknown assignment {assignment_id!r}")
        listing = create_swap_listing(
            assignment, user, eligible_shift_types,
            listed_on=self.clock(), expires_on=expires_on, reason=reason,
        )
        existing = self.listings.get(listing.id)
        if existing is not None and existing.is_open:
            return existing
        self.listings[listing.id] = listing
        self._publish(LISTING_CREATED, listing_id=listing.id, user_id=user_id, assignment_id=assignment_id)
        return listing

    def accept_swap(self, listing_id: str, user_id: str, offered_assignment_id: Optional[str] = None) -> SwapOutcome:
        """
        Accept a listing on behalf of ``user_id``.

        Re-validated against the live schedule; on failure nothing changes
        and the outcome carries the validation errors.
        """
        listing = self.get_listing(listing_id)
        user = self.get_user(user_id)
        schedule = self._require_schedule()
        base_version = schedule.version

        outcome = process_swap_acceptance(
            listing, user, schedule, self._period_roster,
            offered_assignment_id=offered_assignment_id,
            config=self.config,
            shift_types=self.shift_types,
            today=self.clock(),
            preferences=self.all_preferences(),
        )
        if not outcome.ok:
            self._publish(SWAP_REJECTED, listing_id=listing_id, user_id=user_id,
                          errors=[c.value for c in outcome.validation.error_codes()])
            return outcome

        self.commit(outcome.schedule, base_version)
        self.listings[listing_id] = outcome.listing
        moved = {listing.assignment_id, offered_assignment_id}
        for other in list(self.listings.values()):
            if other.id != listing_id and other.is_open and other.assignment_id in moved:
                self.listings[other.id] = replace(other, status=ListingStatus.CANCELLED)
        self._publish(SWAP_ACCEPTED, listing_id=listing_id, user_id=user_id, version=outcome.schedule.version)
        return outcome

    def submit_satisfaction(self, user_id: str, score: int, feedback: str = "") -> SatisfactionScore:
        """
        Record a user's 1-5 rating of the current schedule. A later rating replaces an earlier one.

        Raises:
            UnknownEntityError: for an unknown user or when there is no schedule
            ValidationError: if the score is not an integer from 1 to 5
        """
        self.get_user(user_id)
        schedule = self._require_schedule()
        if isinstance(score, bool) or not isinstance(score, int) or not 1 <= score <= 5:
            raise ValidationError([f"satisfaction score must be an integer from 1 to 5, got {score!r}"])
        entry = SatisfactionScore(schedule.id, user_id, score, feedback, submitted_on=self.clock())
        self.satisfaction[(schedule.id, user_id)] = entry
        self._publish(SATISFACTION_SUBMITTED, schedule_id=schedule.id, user_id=user_id, score=score)
        return entry

    def cancel_listing(self, listing_id: str, user_id: str) -> SwapListing:
        listing = cancel_swap_listing(self.get_listing(listing_id), self.get_user(user_id))
        if listing is not self.listings[listing_id]:
            self.listings[listing_id] = listing
            self._publish(LISTING_CANCELLED, listing_id=listing_id, user_id=user_id)
        return listing

    def expire_listings(self) -> List[SwapListing]:
        """Expire open listings past their date. Returns the newly expired ones."""
        before = self.listings
        updated = expire_listings(self._sorted_listings(), self.clock())
        self.listings = {x.id: x for x in updated}
        expired = [x for x in updated if x.status != before[x.id].status]
        if expired:
            self._publish(LISTINGS_EXPIRED, listing_ids=[x.id for x in expired])
        return expired
