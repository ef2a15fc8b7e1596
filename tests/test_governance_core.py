"""
Governance Core Test Suite

Coverage:
  - Host collaborators: ManualHeightSource, InMemoryLedger
  - Membership & Reputation Registry
  - Vote Ledger
  - Treasury Controller (deposit, guarded disbursement)
  - Proposal record and state transitions
  - ProposalBook lifecycle: create / vote / execute, genesis phase,
    disbursement-failure policies
"""

import os
import sys
from unittest.mock import MagicMock

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from bitgov.chain import InMemoryLedger, ManualHeightSource
from bitgov.constants import (
    GOVERNANCE_INITIAL_REPUTATION,
    GOVERNANCE_MEMBER_STARTING_REPUTATION,
    GOVERNANCE_MIN_REPUTATION_TO_PROPOSE,
    GOVERNANCE_ORGANIZATION_ACCOUNT,
    GOVERNANCE_VOTING_PERIOD,
)
from bitgov.events import (
    DepositEvent,
    DisbursementEvent,
    EventLog,
    MemberAdmittedEvent,
    ProposalConcludedEvent,
    ProposalCreatedEvent,
    VoteCastEvent,
)
from bitgov.exceptions import (
    AlreadyExistsError,
    AlreadyVotedError,
    DelayNotMetError,
    ExpiredError,
    InsufficientFundsError,
    InsufficientReputationError,
    InvalidParameterError,
    NotActiveError,
    NotFoundError,
    NotMemberError,
    UnauthorizedError,
)
from bitgov.governance.members import Member, MemberRegistry
from bitgov.governance.proposals import (
    DisbursementFailurePolicy,
    ExecutionOutcome,
    Proposal,
    ProposalBook,
    ProposalEffect,
    ProposalLifecycleError,
    ProposalStatus,
)
from bitgov.governance.treasury import Treasury
from bitgov.governance.voting import Vote, VoteLedger, VoteRecord


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

ALICE = "SP" + "A1" * 19
BOB = "SP" + "B2" * 19
CAROL = "SP" + "C3" * 19
DAVE = "SP" + "D4" * 19
MALLORY = "SP" + "EE" * 19
ORG = GOVERNANCE_ORGANIZATION_ACCOUNT
PERIOD = GOVERNANCE_VOTING_PERIOD


class Harness:
    """Wires the four components together the same way the DAO does."""

    def __init__(self, policy=DisbursementFailurePolicy.ABORT, balances=None):
        self.events = EventLog()
        self.heights = ManualHeightSource()
        self.ledger = InMemoryLedger(balances or {})
        self.registry = MemberRegistry(self.events)
        self.votes = VoteLedger()
        self.treasury = Treasury(self.ledger, self.events)
        self.book = ProposalBook(
            registry=self.registry,
            votes=self.votes,
            treasury=self.treasury,
            height_source=self.heights,
            events=self.events,
            disbursement_policy=policy,
        )

    def founded(self):
        self.registry.initialize(ALICE, self.heights.current_height())
        return self

    def past_window(self, pid):
        p = self.book.get(pid)
        self.heights.advance(p.end_height - self.heights.current_height() + 1)


def make_proposal(pid=0, title="Test Proposal", proposer=ALICE, start=0, **kwargs) -> Proposal:
    """Helper to create a bare proposal record for testing."""
    return Proposal(
        id=pid,
        proposer=proposer,
        title=title,
        description="Test description",
        start_height=start,
        end_height=start + PERIOD,
        **kwargs,
    )


# ══════════════════════════════════════════════════════════════════════
#  HOST COLLABORATORS
# ══════════════════════════════════════════════════════════════════════


class TestManualHeightSource:

    def test_starts_at_zero(self):
        assert ManualHeightSource().current_height() == 0

    def test_advance(self):
        h = ManualHeightSource(10)
        assert h.advance(5) == 15
        assert h.current_height() == 15

    def test_cannot_go_backwards(self):
        with pytest.raises(InvalidParameterError):
            ManualHeightSource().advance(-1)

    def test_negative_start_raises(self):
        with pytest.raises(InvalidParameterError):
            ManualHeightSource(-3)


class TestInMemoryLedger:

    def test_transfer(self):
        ledger = InMemoryLedger({ALICE: 100})
        ledger.transfer(ALICE, BOB, 40)
        assert ledger.balance_of(ALICE) == 60
        assert ledger.balance_of(BOB) == 40

    def test_insufficient_funds_is_atomic(self):
        ledger = InMemoryLedger({ALICE: 10})
        with pytest.raises(InsufficientFundsError):
            ledger.transfer(ALICE, BOB, 11)
        assert ledger.balance_of(ALICE) == 10
        assert ledger.balance_of(BOB) == 0

    def test_zero_transfer_raises(self):
        ledger = InMemoryLedger({ALICE: 10})
        with pytest.raises(InvalidParameterError):
            ledger.transfer(ALICE, BOB, 0)

    def test_snapshot_revert(self):
        ledger = InMemoryLedger({ALICE: 10})
        snap = ledger.snapshot()
        ledger.transfer(ALICE, BOB, 10)
        ledger.revert(snap)
        assert ledger.balance_of(ALICE) == 10
        assert ledger.balance_of(BOB) == 0


# ══════════════════════════════════════════════════════════════════════
#  MEMBERSHIP & REPUTATION REGISTRY
# ══════════════════════════════════════════════════════════════════════


class TestMemberRegistry:

    def test_initialize_admits_founder(self):
        reg = MemberRegistry()
        member = reg.initialize(ALICE, 7)
        assert member == Member(ALICE, GOVERNANCE_INITIAL_REPUTATION, 7)
        assert reg.founder == ALICE
        assert reg.initialized

    def test_initialize_twice_raises(self):
        reg = MemberRegistry()
        reg.initialize(ALICE, 0)
        with pytest.raises(AlreadyExistsError):
            reg.initialize(BOB, 0)
        assert not reg.is_member(BOB)

    def test_admit_and_reputation_of(self):
        reg = MemberRegistry()
        reg.admit(BOB, 25, 3)
        assert reg.reputation_of(BOB) == 25
        assert reg.get(BOB).joined_at == 3

    def test_admit_existing_raises(self):
        reg = MemberRegistry()
        reg.admit(BOB, 25, 3)
        with pytest.raises(AlreadyExistsError):
            reg.admit(BOB, 50, 4)
        assert reg.reputation_of(BOB) == 25

    def test_negative_reputation_raises(self):
        with pytest.raises(InvalidParameterError, match="negative"):
            MemberRegistry().admit(BOB, -1, 0)

    def test_reputation_of_non_member_raises(self):
        with pytest.raises(NotMemberError):
            MemberRegistry().reputation_of(MALLORY)

    def test_get_absent_is_none(self):
        assert MemberRegistry().get(MALLORY) is None

    def test_admission_emits_event(self):
        events = EventLog()
        reg = MemberRegistry(events)
        reg.admit(BOB, 10, 5, via_proposal=2)
        (event,) = events.of_type(MemberAdmittedEvent)
        assert event.via_proposal == 2
        assert event.to_dict()["account"] == BOB

    def test_snapshot_restore(self):
        reg = MemberRegistry()
        snap = reg.take_snapshot()
        reg.initialize(ALICE, 0)
        reg.restore_snapshot(snap)
        assert not reg.initialized
        assert reg.count() == 0


# ══════════════════════════════════════════════════════════════════════
#  VOTE LEDGER
# ══════════════════════════════════════════════════════════════════════


class TestVoteLedger:

    def test_record_and_lookup(self):
        ledger = VoteLedger()
        rec = ledger.record(0, ALICE, True, 100, at_height=4)
        assert rec == VoteRecord(0, ALICE, True, 100, 4)
        assert ledger.lookup(0, ALICE) == rec
        assert ledger.lookup(0, BOB) is None

    def test_second_ballot_raises_regardless_of_outcome(self):
        ledger = VoteLedger()
        ledger.record(0, ALICE, True, 100)
        for outcome in (True, False):
            with pytest.raises(AlreadyVotedError):
                ledger.record(0, ALICE, outcome, 100)
        assert ledger.lookup(0, ALICE).outcome_for is True

    def test_same_voter_different_proposals(self):
        ledger = VoteLedger()
        ledger.record(0, ALICE, True, 100)
        ledger.record(1, ALICE, False, 100)
        assert len(ledger) == 2

    def test_votes_for_proposal(self):
        ledger = VoteLedger()
        ledger.record(0, ALICE, True, 100)
        ledger.record(0, BOB, False, 10)
        assert [v.voter for v in ledger.votes_for_proposal(0)] == [ALICE, BOB]
        assert ledger.voter_count(0) == 2
        assert ledger.voter_count(9) == 0

    def test_to_dict(self):
        rec = VoteLedger().record(3, BOB, False, 10)
        d = rec.to_dict()
        assert d["vote"] == "AGAINST"
        assert d["weight"] == 10

    def test_vote_names(self):
        assert Vote.name(Vote.FOR) == "FOR"
        assert Vote.name(Vote.AGAINST) == "AGAINST"


# ══════════════════════════════════════════════════════════════════════
#  TREASURY CONTROLLER
# ══════════════════════════════════════════════════════════════════════


class TestTreasury:

    def _make(self, balances=None):
        events = EventLog()
        ledger = InMemoryLedger(balances)
        return Treasury(ledger, events), ledger, events

    def test_deposit_from_anyone(self):
        treasury, ledger, events = self._make({MALLORY: 50})
        treasury.deposit(30, MALLORY)
        assert treasury.balance() == 30
        assert ledger.balance_of(MALLORY) == 20
        assert events.of_type(DepositEvent)[0].amount == 30

    def test_deposit_zero_raises(self):
        treasury, _, _ = self._make({ALICE: 50})
        with pytest.raises(InvalidParameterError):
            treasury.deposit(0, ALICE)

    def test_deposit_without_funds_raises(self):
        treasury, _, _ = self._make()
        with pytest.raises(InsufficientFundsError):
            treasury.deposit(10, ALICE)
        assert treasury.balance() == 0

    def test_disburse_outside_execution_raises(self):
        treasury, _, _ = self._make({ORG: 100})
        with pytest.raises(UnauthorizedError):
            treasury.disburse(10, BOB)
        assert treasury.balance() == 100

    def test_disburse_under_grant(self):
        treasury, ledger, events = self._make({ORG: 100})
        with treasury.execution_grant(4):
            treasury.disburse(60, BOB)
        assert treasury.balance() == 40
        assert ledger.balance_of(BOB) == 60
        assert events.of_type(DisbursementEvent)[0].proposal_id == 4

    def test_grant_is_scoped(self):
        treasury, _, _ = self._make({ORG: 100})
        with treasury.execution_grant(1):
            pass
        with pytest.raises(UnauthorizedError):
            treasury.disburse(1, BOB)

    def test_disburse_insufficient_funds(self):
        treasury, _, _ = self._make({ORG: 5})
        with treasury.execution_grant(0):
            with pytest.raises(InsufficientFundsError):
                treasury.disburse(6, BOB)
        assert treasury.balance() == 5


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL RECORD
# ══════════════════════════════════════════════════════════════════════


class TestProposal:

    def test_create_basic(self):
        p = make_proposal()
        assert p.status == ProposalStatus.ACTIVE
        assert p.votes_for == p.votes_against == 0
        assert not p.executed
        assert not p.is_terminal

    def test_missing_title_raises(self):
        with pytest.raises(InvalidParameterError, match="title"):
            make_proposal(title="")

    def test_votable_window_is_inclusive(self):
        p = make_proposal()
        assert p.is_votable(PERIOD)
        assert not p.is_votable(PERIOD + 1)

    def test_mark_passed(self):
        p = make_proposal()
        p.mark_passed(PERIOD + 1)
        assert p.status == ProposalStatus.PASSED
        assert p.executed
        assert p.concluded_at == PERIOD + 1

    def test_mark_failed(self):
        p = make_proposal()
        p.mark_failed(PERIOD + 1)
        assert p.status == ProposalStatus.FAILED
        assert not p.executed

    def test_terminal_states_are_final(self):
        p = make_proposal()
        p.mark_failed(PERIOD + 1)
        with pytest.raises(ProposalLifecycleError, match="Cannot transition"):
            p.mark_passed(PERIOD + 2)
        with pytest.raises(NotActiveError):
            p.mark_failed(PERIOD + 2)

    def test_history_tracking(self):
        p = make_proposal()
        p.mark_passed(PERIOD + 1)
        assert [h["to"] for h in p.history] == ["active", "passed"]

    def test_copy_is_independent(self):
        p = make_proposal()
        c = p.copy()
        c.votes_for = 99
        c.mark_passed(PERIOD + 1)
        assert p.votes_for == 0
        assert p.status == ProposalStatus.ACTIVE
        assert len(p.history) == 1

    def test_to_dict(self):
        p = make_proposal(effect=ProposalEffect(500, BOB))
        d = p.to_dict()
        assert d["status"] == "active"
        assert d["transferAmount"] == 500
        assert d["transferTo"] == BOB
        assert d["endHeight"] == PERIOD


class TestProposalEffect:

    def test_empty(self):
        assert ProposalEffect().is_empty

    def test_transfer_without_recipient_raises(self):
        with pytest.raises(InvalidParameterError, match="recipient"):
            ProposalEffect(transfer_amount=5).validate()

    def test_negative_amount_raises(self):
        with pytest.raises(InvalidParameterError):
            ProposalEffect(transfer_amount=-1, transfer_to=BOB).validate()

    def test_recipient_without_amount_is_no_transfer(self):
        effect = ProposalEffect(transfer_amount=0, transfer_to=BOB)
        effect.validate()
        assert not effect.has_transfer


# ══════════════════════════════════════════════════════════════════════
#  LIFECYCLE: CREATE
# ══════════════════════════════════════════════════════════════════════


class TestCreate:

    def test_ids_start_at_zero_and_increase(self):
        h = Harness().founded()
        ids = [h.book.create(ALICE, f"P{i}") for i in range(5)]
        assert ids == [0, 1, 2, 3, 4]
        assert h.book.count() == 5

    def test_window_from_current_height(self):
        h = Harness().founded()
        h.heights.advance(12)
        pid = h.book.create(ALICE, "Later")
        p = h.book.get(pid)
        assert p.start_height == 12
        assert p.end_height == 12 + PERIOD

    def test_non_member_raises(self):
        h = Harness().founded()
        with pytest.raises(NotMemberError):
            h.book.create(MALLORY, "Hostile")
        assert h.book.count() == 0

    def test_low_reputation_raises(self):
        h = Harness().founded()
        h.registry.admit(BOB, GOVERNANCE_MIN_REPUTATION_TO_PROPOSE - 1, 0)
        h.book.create(ALICE, "First")
        with pytest.raises(InsufficientReputationError):
            h.book.create(BOB, "Too weak")

    def test_threshold_reputation_may_propose(self):
        h = Harness().founded()
        h.registry.admit(BOB, GOVERNANCE_MIN_REPUTATION_TO_PROPOSE, 0)
        assert h.book.create(BOB, "Just enough") == 0

    def test_empty_title_raises(self):
        h = Harness().founded()
        with pytest.raises(InvalidParameterError):
            h.book.create(ALICE, "")

    def test_overlong_title_raises(self):
        h = Harness().founded()
        with pytest.raises(InvalidParameterError, match="Title"):
            h.book.create(ALICE, "x" * (h.book.max_title_length + 1))

    def test_overlong_description_raises(self):
        h = Harness().founded()
        with pytest.raises(InvalidParameterError, match="Description"):
            h.book.create(ALICE, "ok", "x" * (h.book.max_description_length + 1))

    def test_transfer_to_treasury_raises(self):
        h = Harness(balances={ORG: 1000}).founded()
        with pytest.raises(InvalidParameterError, match="itself"):
            h.book.create(ALICE, "Loop", effect=ProposalEffect(100, ORG))
        assert h.book.count() == 0
        assert h.book.genesis_open

    def test_zero_amount_to_treasury_is_not_a_transfer(self):
        h = Harness().founded()
        pid = h.book.create(ALICE, "No transfer", effect=ProposalEffect(0, ORG))
        assert not h.book.get(pid).effect.has_transfer

    def test_none_description_normalised(self):
        h = Harness().founded()
        pid = h.book.create(ALICE, "Terse", None)
        assert h.book.get(pid).description == ""

    def test_non_text_title_raises(self):
        h = Harness().founded()
        with pytest.raises(InvalidParameterError, match="text"):
            h.book.create(ALICE, 123)

    def test_creation_event(self):
        h = Harness().founded()
        h.book.create(ALICE, "Grant", effect=ProposalEffect(250, BOB))
        (event,) = h.events.of_type(ProposalCreatedEvent)
        assert (event.proposal_id, event.proposer, event.title, event.transfer_amount) == (
            0, ALICE, "Grant", 250,
        )


class TestGenesisPhase:
    """Bootstrap exemption is limited to the founder's first proposal."""

    def _low_rep_harness(self):
        h = Harness()
        h.registry = MemberRegistry(h.events, initial_reputation=0)
        h.book = ProposalBook(
            registry=h.registry,
            votes=h.votes,
            treasury=h.treasury,
            height_source=h.heights,
            events=h.events,
        )
        h.registry.initialize(ALICE, 0)
        h.registry.admit(BOB, 0, 0)
        return h

    def test_founder_first_proposal_is_exempt(self):
        h = self._low_rep_harness()
        assert h.book.genesis_open
        pid = h.book.create(ALICE, "Genesis")
        assert h.book.get(pid).genesis
        assert not h.book.genesis_open

    def test_other_member_is_not_exempt_during_genesis(self):
        h = self._low_rep_harness()
        with pytest.raises(InsufficientReputationError):
            h.book.create(BOB, "Sneaky")
        assert h.book.genesis_open

    def test_founder_not_exempt_after_first_proposal(self):
        h = self._low_rep_harness()
        h.book.create(ALICE, "Genesis")
        with pytest.raises(InsufficientReputationError):
            h.book.create(ALICE, "Second")

    def test_regular_proposal_not_flagged(self):
        h = Harness().founded()
        pid = h.book.create(ALICE, "Normal")
        assert not h.book.get(pid).genesis
        assert not h.book.genesis_open


# ══════════════════════════════════════════════════════════════════════
#  LIFECYCLE: VOTE
# ══════════════════════════════════════════════════════════════════════


class TestVote:

    def test_weighted_tally(self):
        h = Harness().founded()
        h.registry.admit(BOB, 30, 0)
        h.registry.admit(CAROL, 20, 0)
        pid = h.book.create(ALICE, "Tally")
        h.book.vote(pid, ALICE, True)
        h.book.vote(pid, BOB, False)
        h.book.vote(pid, CAROL, False)
        p = h.book.get(pid)
        assert p.votes_for == GOVERNANCE_INITIAL_REPUTATION
        assert p.votes_against == 50
        assert h.votes.lookup(pid, BOB).weight == 30

    def test_unknown_proposal_raises(self):
        h = Harness().founded()
        with pytest.raises(NotFoundError):
            h.book.vote(42, ALICE, True)

    def test_non_member_raises(self):
        h = Harness().founded()
        pid = h.book.create(ALICE, "Members only")
        with pytest.raises(NotMemberError):
            h.book.vote(pid, MALLORY, True)
        assert h.book.get(pid).votes_for == 0

    def test_double_vote_raises(self):
        h = Harness().founded()
        pid = h.book.create(ALICE, "Once")
        h.book.vote(pid, ALICE, True)
        with pytest.raises(AlreadyVotedError):
            h.book.vote(pid, ALICE, False)
        p = h.book.get(pid)
        assert p.votes_for == GOVERNANCE_INITIAL_REPUTATION
        assert p.votes_against == 0

    def test_vote_at_end_height_accepted(self):
        h = Harness().founded()
        pid = h.book.create(ALICE, "Edge")
        h.heights.advance(PERIOD)
        assert h.book.vote(pid, ALICE, True)

    def test_vote_after_end_height_expired(self):
        h = Harness().founded()
        pid = h.book.create(ALICE, "Late")
        h.heights.advance(PERIOD + 1)
        with pytest.raises(ExpiredError):
            h.book.vote(pid, ALICE, True)

    def test_vote_on_concluded_raises_not_active(self):
        h = Harness().founded()
        pid = h.book.create(ALICE, "Done")
        h.past_window(pid)
        h.book.execute(pid)
        with pytest.raises(NotActiveError):
            h.book.vote(pid, ALICE, True)

    def test_vote_event(self):
        h = Harness().founded()
        pid = h.book.create(ALICE, "Evented")
        h.book.vote(pid, ALICE, False)
        (event,) = h.events.of_type(VoteCastEvent)
        assert event.outcome_for is False
        assert event.weight == GOVERNANCE_INITIAL_REPUTATION


# ══════════════════════════════════════════════════════════════════════
#  LIFECYCLE: EXECUTE
# ══════════════════════════════════════════════════════════════════════


class TestExecute:

    def test_before_window_elapsed_raises(self):
        h = Harness().founded()
        pid = h.book.create(ALICE, "Early")
        h.book.vote(pid, ALICE, True)
        for _ in range(2):
            with pytest.raises(DelayNotMetError):
                h.book.execute(pid)
            h.heights.advance(PERIOD)
        # height now 2 * PERIOD > end_height
        assert h.book.execute(pid).passed

    def test_at_end_height_raises(self):
        h = Harness().founded()
        pid = h.book.create(ALICE, "Boundary")
        h.heights.advance(PERIOD)
        with pytest.raises(DelayNotMetError):
            h.book.execute(pid)

    def test_majority_passes(self):
        h = Harness().founded()
        pid = h.book.create(ALICE, "Yes")
        h.book.vote(pid, ALICE, True)
        h.past_window(pid)
        result = h.book.execute(pid)
        assert result.passed
        assert result.outcome == ExecutionOutcome.PASSED
        p = h.book.get(pid)
        assert p.status == ProposalStatus.PASSED
        assert p.executed

    def test_tie_fails(self):
        h = Harness().founded()
        h.registry.admit(BOB, GOVERNANCE_INITIAL_REPUTATION, 0)
        pid = h.book.create(ALICE, "Split")
        h.book.vote(pid, ALICE, True)
        h.book.vote(pid, BOB, False)
        h.past_window(pid)
        result = h.book.execute(pid)
        assert not result.passed
        assert h.book.get(pid).status == ProposalStatus.FAILED
        assert not h.book.get(pid).executed

    def test_no_votes_fails(self):
        h = Harness().founded()
        pid = h.book.create(ALICE, "Ignored")
        h.past_window(pid)
        assert h.book.execute(pid).outcome == ExecutionOutcome.FAILED

    def test_second_execute_raises_not_active(self):
        h = Harness().founded()
        pid = h.book.create(ALICE, "Once")
        h.past_window(pid)
        h.book.execute(pid)
        with pytest.raises(NotActiveError):
            h.book.execute(pid)

    def test_unknown_proposal_raises(self):
        with pytest.raises(NotFoundError):
            Harness().founded().book.execute(0)

    def test_transfer_effect(self):
        h = Harness(balances={ORG: 1000}).founded()
        pid = h.book.create(ALICE, "Pay", effect=ProposalEffect(400, CAROL))
        h.book.vote(pid, ALICE, True)
        h.past_window(pid)
        h.book.execute(pid)
        assert h.treasury.balance() == 600
        assert h.ledger.balance_of(CAROL) == 400

    def test_failed_proposal_applies_no_effect(self):
        h = Harness(balances={ORG: 1000}).founded()
        pid = h.book.create(
            ALICE, "Rejected", effect=ProposalEffect(400, CAROL, add_member=DAVE)
        )
        h.book.vote(pid, ALICE, False)
        h.past_window(pid)
        h.book.execute(pid)
        assert h.treasury.balance() == 1000
        assert not h.registry.is_member(DAVE)

    def test_membership_effect(self):
        h = Harness().founded()
        h.heights.advance(3)
        pid = h.book.create(ALICE, "Welcome Dave", effect=ProposalEffect(add_member=DAVE))
        h.book.vote(pid, ALICE, True)
        h.past_window(pid)
        h.book.execute(pid)
        member = h.registry.get(DAVE)
        assert member.reputation == GOVERNANCE_MEMBER_STARTING_REPUTATION
        assert member.joined_at == h.heights.current_height()
        admitted = h.events.of_type(MemberAdmittedEvent)[-1]
        assert admitted.via_proposal == pid

    def test_membership_effect_for_existing_member_is_noop(self):
        h = Harness().founded()
        h.registry.admit(BOB, 42, 0)
        pid = h.book.create(ALICE, "Again", effect=ProposalEffect(add_member=BOB))
        h.book.vote(pid, ALICE, True)
        h.past_window(pid)
        assert h.book.execute(pid).passed
        assert h.registry.reputation_of(BOB) == 42

    def test_conclusion_event(self):
        h = Harness().founded()
        pid = h.book.create(ALICE, "Evented")
        h.book.vote(pid, ALICE, True)
        h.past_window(pid)
        h.book.execute(pid)
        (event,) = h.events.of_type(ProposalConcludedEvent)
        assert event.passed
        assert event.votes_for == GOVERNANCE_INITIAL_REPUTATION
        assert event.votes_against == 0
        assert event.outcome == "passed"


class TestDisbursementFailurePolicy:

    def _underfunded(self, policy):
        h = Harness(policy=policy, balances={ORG: 100}).founded()
        pid = h.book.create(
            ALICE, "Too big", effect=ProposalEffect(500, CAROL, add_member=DAVE)
        )
        h.book.vote(pid, ALICE, True)
        h.past_window(pid)
        return h, pid

    def test_abort_raises_and_leaves_proposal_active(self):
        h, pid = self._underfunded(DisbursementFailurePolicy.ABORT)
        with pytest.raises(InsufficientFundsError):
            h.book.execute(pid)
        p = h.book.get(pid)
        assert p.status == ProposalStatus.ACTIVE
        assert not p.executed
        assert h.treasury.balance() == 100
        assert not h.registry.is_member(DAVE)
        assert not h.events.of_type(ProposalConcludedEvent)

    def test_abort_can_retry_after_funding(self):
        h, pid = self._underfunded(DisbursementFailurePolicy.ABORT)
        with pytest.raises(InsufficientFundsError):
            h.book.execute(pid)
        h.ledger.credit(ORG, 400)
        result = h.book.execute(pid)
        assert result.outcome == ExecutionOutcome.PASSED
        assert h.ledger.balance_of(CAROL) == 500

    def test_record_concludes_with_named_outcome(self):
        h, pid = self._underfunded(DisbursementFailurePolicy.RECORD)
        result = h.book.execute(pid)
        assert result.passed
        assert result.outcome == ExecutionOutcome.PASSED_DISBURSEMENT_FAILED
        p = h.book.get(pid)
        assert p.status == ProposalStatus.PASSED
        assert p.executed
        assert p.disbursement_failed
        assert h.treasury.balance() == 100
        assert h.registry.is_member(DAVE)
        (event,) = h.events.of_type(ProposalConcludedEvent)
        assert event.outcome == "passed_disbursement_failed"

    def test_record_does_not_mask_other_errors(self):
        h, pid = self._underfunded(DisbursementFailurePolicy.RECORD)
        h.treasury.disburse = MagicMock(side_effect=RuntimeError("ledger offline"))
        with pytest.raises(RuntimeError, match="ledger offline"):
            h.book.execute(pid)
