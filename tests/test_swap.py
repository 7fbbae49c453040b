"""Tests for swap validation, execution and listings."""
from dataclasses import replace

import pytest

from conftest import day
from oncall_rota.engine.optimizer import generate_schedule
from oncall_rota.engine.validation import check_schedule
from oncall_rota.errors import ListingOwnershipError, ValidationError
from oncall_rota.models.config import EngineConfig
from oncall_rota.models.preference import PreferenceLevel, ShiftPreference
from oncall_rota.models.schedule import AssignmentStatus, LogKind, ShiftRequirement
from oncall_rota.models.swap import ListingStatus, ProposedSwap, SwapErrorCode, SwapWarningCode
from oncall_rota.swap.service import (
    apply_swap,
    cancel_swap_listing,
    create_swap_listing,
    expire_listings,
    process_swap_acceptance,
    validate_swap,
)

SATURDAY_BEFORE = day(-2)


@pytest.fixture
def team(make_user):
    return [
        make_user("alice"),
        make_user("bob"),
        make_user("carol"),
        make_user("dave"),
        make_user("nina", qualifications={"clinic_duty"}),
    ]


@pytest.fixture
def schedule(make_schedule):
    return make_schedule(
        ("a1", "alice", 0, "general_oncall"),
        ("b1", "bob", 1, "general_oncall"),
        ("c1", "carol", 0, "clinic_duty"),
        ("d1", "dave", 0, "night_shift"),
        ("w1", "alice", 5, "weekend_oncall"),
    )


def _users(team):
    return {u.id: u for u in team}


class TestValidateSwap:

    def test_valid_handover(self, schedule, team):
        validation = validate_swap(schedule, ProposedSwap("a1", "alice", "bob"), team)
        assert validation.ok
        assert validation.errors == []
        assert validation.warnings == []

    def test_qualification_mismatch(self, schedule, team):
        before = schedule.to_dict()
        validation = validate_swap(schedule, ProposedSwap("a1", "alice", "nina"), team)

        assert not validation.ok
        assert validation.error_codes() == [SwapErrorCode.QUALIFICATION_MISMATCH]
        assert validation.errors[0].user_id == "nina"
        assert schedule.to_dict() == before

    def test_same_day_double_booking(self, schedule, team):
        validation = validate_swap(schedule, ProposedSwap("a1", "alice", "carol"), team)
        assert validation.error_codes() == [SwapErrorCode.DOUBLE_BOOKING]

    def test_night_then_day_breaks_rest(self, schedule, team):
        validation = validate_swap(schedule, ProposedSwap("b1", "bob", "dave"), team)
        assert validation.error_codes() == [SwapErrorCode.REST_PERIOD_VIOLATION]
        assert "needs 12h" in validation.errors[0].message

    def test_fairness_drift_warns_but_allows(self, schedule, team):
        config = EngineConfig(fairness_drift_threshold=0.5)
        validation = validate_swap(schedule, ProposedSwap("a1", "alice", "bob"), team, config=config)

        assert validation.ok
        assert SwapWarningCode.FAIRNESS_DRIFT in validation.warning_codes()
        assert "bob" in {w.user_id for w in validation.warnings}

    def test_weekend_warning(self, schedule, team):
        validation = validate_swap(schedule, ProposedSwap("w1", "alice", "bob"), team)
        assert validation.ok
        assert validation.warning_codes() == [SwapWarningCode.WEEKEND_SHIFT]

    def test_weekend_warning_can_be_disabled(self, schedule, team):
        config = EngineConfig(warn_weekend_swaps=False)
        validation = validate_swap(schedule, ProposedSwap("w1", "alice", "bob"), team, config=config)
        assert validation.warnings == []

    def test_holiday_warning(self, schedule, team):
        config = EngineConfig(holidays=frozenset({day(0)}))
        validation = validate_swap(schedule, ProposedSwap("a1", "alice", "bob"), team, config=config)
        assert validation.warning_codes() == [SwapWarningCode.HOLIDAY_SHIFT]

    def test_unknown_user(self, schedule, team):
        validation = validate_swap(schedule, ProposedSwap("a1", "alice", "mallory"), team)
        assert validation.error_codes() == [SwapErrorCode.USER_NOT_FOUND]

    def test_same_user(self, schedule, team):
        validation = validate_swap(schedule, ProposedSwap("a1", "alice", "alice"), team)
        assert SwapErrorCode.SAME_USER in validation.error_codes()

    def test_missing_assignment(self, schedule, team):
        validation = validate_swap(schedule, ProposedSwap("zz", "alice", "bob"), team)
        assert validation.error_codes() == [SwapErrorCode.ASSIGNMENT_NOT_FOUND]

    def test_cancelled_assignment(self, make_schedule, team):
        schedule = make_schedule(("a1", "alice", 0, "general_oncall"))
        schedule.assignments[0] = replace(schedule.assignments[0], status=AssignmentStatus.CANCELLED)
        validation = validate_swap(schedule, ProposedSwap("a1", "alice", "bob"), team)
        assert validation.error_codes() == [SwapErrorCode.ASSIGNMENT_INACTIVE]

    def test_stale_holder(self, schedule, team):
        validation = validate_swap(schedule, ProposedSwap("a1", "bob", "carol"), team)
        assert validation.error_codes() == [SwapErrorCode.ASSIGNMENT_STALE]

    def test_shift_in_past(self, schedule, team):
        validation = validate_swap(schedule, ProposedSwap("a1", "alice", "bob"), team, today=day(1))
        assert validation.error_codes() == [SwapErrorCode.SHIFT_IN_PAST]

    def test_receiver_unavailable(self, schedule, team):
        prefs = [ShiftPreference("bob", PreferenceLevel.UNAVAILABLE, date=day(0))]
        validation = validate_swap(schedule, ProposedSwap("a1", "alice", "bob"), team, preferences=prefs)
        assert validation.error_codes() == [SwapErrorCode.USER_UNAVAILABLE]

    def test_mutual_exchange(self, schedule, team):
        swap = ProposedSwap("a1", "alice", "bob", counter_assignment_id="b1")
        assert validate_swap(schedule, swap, team).ok

    def test_exchange_counter_must_belong_to_receiver(self, schedule, team):
        swap = ProposedSwap("a1", "alice", "bob", counter_assignment_id="c1")
        assert validate_swap(schedule, swap, team).error_codes() == [SwapErrorCode.ASSIGNMENT_STALE]

    def test_unknown_shift_type_raises(self, make_schedule, team):
        schedule = make_schedule(("z1", "alice", 2, "teleport_duty"))
        with pytest.raises(ValidationError, match="teleport_duty"):
            validate_swap(schedule, ProposedSwap("z1", "alice", "bob"), team)

    def test_validation_is_idempotent(self, schedule, team):
        swap = ProposedSwap("b1", "bob", "dave")
        assert validate_swap(schedule, swap, team) == validate_swap(schedule, swap, team)

    def test_receiver_limitation(self, schedule, team):
        team = [replace(u, limitations=frozenset({"general_oncall"})) if u.id == "bob" else u for u in team]
        validation = validate_swap(schedule, ProposedSwap("a1", "alice", "bob"), team)
        assert validation.error_codes() == [SwapErrorCode.USER_LIMITATION]


class TestShiftCapAndTier:

    @pytest.fixture
    def capped(self, team):
        return [replace(u, max_shifts=1) if u.id == "bob" else u for u in team]

    def test_receiver_at_cap(self, schedule, capped):
        validation = validate_swap(schedule, ProposedSwap("a1", "alice", "bob"), capped)
        assert validation.error_codes() == [SwapErrorCode.MAX_SHIFTS_EXCEEDED]
        assert "1 of 1" in validation.errors[0].message

    def test_overtime_lifts_cap(self, schedule, capped):
        config = EngineConfig(allow_overtime=True)
        assert validate_swap(schedule, ProposedSwap("a1", "alice", "bob"), capped, config=config).ok

    def test_exchange_at_cap_is_allowed(self, schedule, capped):
        swap = ProposedSwap("a1", "alice", "bob", counter_assignment_id="b1")
        assert validate_swap(schedule, swap, capped).ok

    def test_requirement_tier_carried_into_swap(self, make_user):
        roster = [make_user("senior", seniority="Attending"), make_user("junior", seniority="PGY2")]
        result = generate_schedule(roster, [ShiftRequirement(day(0), "general_oncall", min_tier=6)])
        held = result.schedule.assignments[0]
        assert held.user_id == "senior"
        assert held.min_tier == 6

        validation = validate_swap(result.schedule, ProposedSwap(held.id, "senior", "junior"), roster)
        assert validation.error_codes() == [SwapErrorCode.QUALIFICATION_MISMATCH]

        forced = replace(result.schedule, assignments=[replace(held, user_id="junior")])
        assert [v.code for v in check_schedule(forced, roster)] == ["unqualified"]

    def test_backup_cleared_when_backup_takes_shift(self, schedule, team):
        schedule.assignments[0] = replace(schedule.assignments[0], backup_user_id="bob")
        schedule.assignments[1] = replace(schedule.assignments[1], backup_user_id="carol")

        updated = apply_swap(schedule, ProposedSwap("a1", "alice", "bob"), team)
        assert updated.get_assignment("a1").backup_user_id is None
        assert updated.get_assignment("b1").backup_user_id == "carol"

        other = apply_swap(schedule, ProposedSwap("b1", "bob", "alice"), team)
        assert other.get_assignment("b1").backup_user_id == "carol"


class TestApplySwap:

    def test_returns_new_version(self, schedule, team):
        updated = apply_swap(schedule, ProposedSwap("a1", "alice", "bob"), team)

        assert updated.version == schedule.version + 1
        moved = updated.get_assignment("a1")
        assert moved.user_id == "bob"
        assert moved.status == AssignmentStatus.SWAPPED
        assert moved.original_user_id == "alice"
        assert moved.swap_history[0].from_user_id == "alice"
        # Original untouched
        assert schedule.get_assignment("a1").user_id == "alice"
        assert schedule.get_assignment("a1").status == AssignmentStatus.ASSIGNED

    def test_metrics_recomputed(self, schedule, team):
        updated = apply_swap(schedule, ProposedSwap("a1", "alice", "bob"), team)
        assert updated.fairness_metrics.for_user("bob").total_shifts == 2
        assert updated.fairness_metrics.for_user("alice").total_shifts == 1

    def test_preference_metrics_with_preferences(self, schedule, team):
        prefs = [ShiftPreference("bob", PreferenceLevel.PREFER, date=day(0))]
        updated = apply_swap(schedule, ProposedSwap("a1", "alice", "bob"), team, preferences=prefs)
        assert updated.preference_metrics.for_user("bob").positive_met == 1

    def test_swap_logged(self, schedule, team):
        updated = apply_swap(schedule, ProposedSwap("a1", "alice", "bob"), team, listing_id="l1")
        entry = updated.generation_log[-1]
        assert entry.kind == LogKind.INFO
        assert entry.details == {"assignment_id": "a1", "from_user": "alice", "listing_id": "l1"}
        assert len(schedule.generation_log) == 0

    def test_round_trip_restores_holders(self, schedule, team):
        swap = ProposedSwap("a1", "alice", "bob", counter_assignment_id="b1")
        once = apply_swap(schedule, swap, team)
        assert validate_swap(once, swap.inverse(), team).ok
        twice = apply_swap(once, swap.inverse(), team)

        holders = {a.id: a.user_id for a in twice.assignments}
        assert holders == {a.id: a.user_id for a in schedule.assignments}
        assert twice.version == schedule.version + 2
        assert len(twice.get_assignment("a1").swap_history) == 2

    def test_handover_round_trip(self, schedule, team):
        swap = ProposedSwap("a1", "alice", "bob")
        twice = apply_swap(apply_swap(schedule, swap, team), swap.inverse(), team)
        assert twice.get_assignment("a1").user_id == "alice"

    def test_missing_assignment_raises(self, schedule, team):
        with pytest.raises(ValidationError):
            apply_swap(schedule, ProposedSwap("zz", "alice", "bob"), team)


class TestListings:

    def test_create_by_holder(self, schedule, team):
        users = _users(team)
        listing = create_swap_listing(schedule.get_assignment("a1"), users["alice"], reason="conference")

        assert listing.status == ListingStatus.OPEN
        assert listing.id == "swap-a1-alice"
        assert listing.expires_on == day(-1)
        assert listing.date == day(0)
        assert listing.reason == "conference"

    def test_create_by_non_holder(self, schedule, team):
        with pytest.raises(ListingOwnershipError):
            create_swap_listing(schedule.get_assignment("a1"), _users(team)["bob"])

    def test_cancel(self, schedule, team):
        users = _users(team)
        listing = create_swap_listing(schedule.get_assignment("a1"), users["alice"])

        cancelled = cancel_swap_listing(listing, users["alice"])
        assert cancelled.status == ListingStatus.CANCELLED
        assert cancel_swap_listing(cancelled, users["alice"]) is cancelled
        with pytest.raises(ListingOwnershipError):
            cancel_swap_listing(listing, users["bob"])

    def test_expire(self, schedule, team):
        users = _users(team)
        soon = create_swap_listing(schedule.get_assignment("a1"), users["alice"])
        later = create_swap_listing(schedule.get_assignment("w1"), users["alice"])

        result = expire_listings([soon, later], today=day(0))
        assert [x.status for x in result] == [ListingStatus.EXPIRED, ListingStatus.OPEN]


class TestProcessSwapAcceptance:

    def _listing(self, schedule, team, assignment_id="a1", **kwargs):
        assignment = schedule.get_assignment(assignment_id)
        return create_swap_listing(assignment, _users(team)[assignment.user_id], **kwargs)

    def test_accept(self, schedule, team):
        listing = self._listing(schedule, team)
        outcome = process_swap_acceptance(listing, _users(team)["bob"], schedule, team, today=SATURDAY_BEFORE)

        assert outcome.ok
        assert outcome.schedule.version == 2
        assert outcome.schedule.get_assignment("a1").user_id == "bob"
        assert outcome.schedule.get_assignment("a1").swap_history[0].listing_id == listing.id
        assert outcome.listing.status == ListingStatus.ACCEPTED
        assert outcome.listing.accepted_by == "bob"
        assert listing.status == ListingStatus.OPEN

    def test_unqualified_acceptor(self, schedule, team):
        before = schedule.to_dict()
        listing = self._listing(schedule, team)
        outcome = process_swap_acceptance(listing, _users(team)["nina"], schedule, team)

        assert not outcome.ok
        assert outcome.schedule is None
        assert outcome.listing is None
        assert outcome.validation.error_codes() == [SwapErrorCode.QUALIFICATION_MISMATCH]
        assert schedule.to_dict() == before

    def test_stale_listing(self, schedule, team):
        listing = self._listing(schedule, team)
        moved_on = apply_swap(schedule, ProposedSwap("a1", "alice", "bob"), team)
        before = moved_on.to_dict()

        outcome = process_swap_acceptance(listing, _users(team)["dave"], moved_on, team)
        assert not outcome.ok
        assert outcome.validation.error_codes() == [SwapErrorCode.ASSIGNMENT_STALE]
        assert moved_on.to_dict() == before

    def test_closed_listing(self, schedule, team):
        users = _users(team)
        listing = cancel_swap_listing(self._listing(schedule, team), users["alice"])
        outcome = process_swap_acceptance(listing, users["bob"], schedule, team)
        assert outcome.validation.error_codes() == [SwapErrorCode.LISTING_CLOSED]

    def test_expired_listing(self, schedule, team):
        listing = self._listing(schedule, team)
        outcome = process_swap_acceptance(listing, _users(team)["bob"], schedule, team, today=day(0))
        assert outcome.validation.error_codes() == [SwapErrorCode.LISTING_EXPIRED]

    def test_exchange(self, schedule, team):
        listing = self._listing(schedule, team, eligible_shift_types={"general_oncall"})
        outcome = process_swap_acceptance(listing, _users(team)["bob"], schedule, team,
                                          offered_assignment_id="b1", today=SATURDAY_BEFORE)
        assert outcome.ok
        assert outcome.schedule.get_assignment("a1").user_id == "bob"
        assert outcome.schedule.get_assignment("b1").user_id == "alice"

    def test_offered_type_not_accepted(self, schedule, team):
        listing = self._listing(schedule, team, eligible_shift_types={"night_shift"})
        outcome = process_swap_acceptance(listing, _users(team)["bob"], schedule, team, offered_assignment_id="b1")
        assert outcome.validation.error_codes() == [SwapErrorCode.SHIFT_TYPE_NOT_ACCEPTED]
