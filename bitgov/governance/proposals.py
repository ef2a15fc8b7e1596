"""
Proposal Store & Lifecycle

Defines the proposal record, its effect, and the state machine that takes
a proposal from creation through reputation-weighted voting to a single
execution:

    ACTIVE ──execute──▶ PASSED   (votes_for > votes_against)
       └─────execute──▶ FAILED   (otherwise, ties included)

PASSED and FAILED are terminal. On PASSED the proposal's effect is applied
in the same call: a treasury transfer and/or admission of a new member.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from ..chain import HeightSource
from ..constants import (
    GOVERNANCE_DISBURSEMENT_POLICY,
    GOVERNANCE_MAX_DESCRIPTION_LENGTH,
    GOVERNANCE_MAX_TITLE_LENGTH,
    GOVERNANCE_MEMBER_STARTING_REPUTATION,
    GOVERNANCE_MIN_REPUTATION_TO_PROPOSE,
    GOVERNANCE_VOTING_PERIOD,
    STATUS_ACTIVE,
    STATUS_FAILED,
    STATUS_PASSED,
)
from ..events import EventLog, ProposalConcludedEvent, ProposalCreatedEvent, VoteCastEvent
from ..exceptions import (
    DelayNotMetError,
    ExpiredError,
    InsufficientFundsError,
    InsufficientReputationError,
    InvalidParameterError,
    NotActiveError,
    NotFoundError,
    NotMemberError,
)
from ..logger import get_logger
from .members import MemberRegistry
from .treasury import Treasury
from .voting import Vote, VoteLedger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class ProposalStatus(str, Enum):
    """Lifecycle stage."""
    ACTIVE = STATUS_ACTIVE
    PASSED = STATUS_PASSED
    FAILED = STATUS_FAILED


_VALID_TRANSITIONS: Dict[ProposalStatus, set] = {
    ProposalStatus.ACTIVE: {ProposalStatus.PASSED, ProposalStatus.FAILED},
    # Terminal states
    ProposalStatus.PASSED: set(),
    ProposalStatus.FAILED: set(),
}


class ExecutionOutcome(str, Enum):
    """Named result of an Execute call."""
    PASSED = "passed"
    FAILED = "failed"
    PASSED_DISBURSEMENT_FAILED = "passed_disbursement_failed"


class DisbursementFailurePolicy(str, Enum):
    """
    What Execute does when a passed proposal's treasury transfer fails.

    ABORT:  the whole execution fails with InsufficientFundsError and the
            proposal stays ACTIVE, so it can be executed again once the
            treasury is funded.
    RECORD: the proposal still concludes PASSED and executed, the
            membership effect still applies, and the call reports
            ExecutionOutcome.PASSED_DISBURSEMENT_FAILED.
    """
    ABORT = "abort"
    RECORD = "record"


class ProposalLifecycleError(NotActiveError):
    """Raised on illegal state transitions."""


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ProposalEffect:
    """What a passed proposal does. Both parts are optional."""
    transfer_amount: int = 0
    transfer_to: Optional[str] = None
    add_member: Optional[str] = None

    def validate(self):
        if not isinstance(self.transfer_amount, int) or isinstance(self.transfer_amount, bool):
            raise InvalidParameterError("Transfer amount must be an integer")
        if self.transfer_amount < 0:
            raise InvalidParameterError("Transfer amount cannot be negative")
        if self.transfer_amount > 0 and not self.transfer_to:
            raise InvalidParameterError("A transfer needs a recipient")
        if self.add_member is not None and not self.add_member:
            raise InvalidParameterError("Member account cannot be empty")

    @property
    def has_transfer(self) -> bool:
        return self.transfer_amount > 0 and bool(self.transfer_to)

    @property
    def is_empty(self) -> bool:
        return not self.has_transfer and self.add_member is None


@dataclass
class Proposal:
    """
    Governance proposal.

    Fields:
        id:                  Monotonic identifier, starting at 0
        proposer:            Member that created the proposal
        title:               Short title
        description:         Rationale
        start_height:        Height at creation
        end_height:          Last height at which ballots are accepted
        votes_for:           Sum of FOR ballot weights
        votes_against:       Sum of AGAINST ballot weights
        status:              Current lifecycle stage
        executed:            True once the proposal concluded PASSED
        effect:              Treasury transfer and/or membership grant
        genesis:             Created under the founder's bootstrap exemption
        disbursement_failed: Passed, but the treasury transfer did not go through
    """
    id: int
    proposer: str
    title: str
    description: str
    start_height: int
    end_height: int
    effect: ProposalEffect = field(default_factory=ProposalEffect)
    votes_for: int = 0
    votes_against: int = 0
    status: ProposalStatus = ProposalStatus.ACTIVE
    executed: bool = False
    genesis: bool = False
    disbursement_failed: bool = False
    concluded_at: Optional[int] = None
    _history: List[Dict[str, Any]] = field(default_factory=list, repr=False)

    def __post_init__(self):
        if not self.title:
            raise InvalidParameterError("Proposal title cannot be empty")
        if not self.proposer:
            raise InvalidParameterError("Proposer address is required")
        if self.end_height < self.start_height:
            raise InvalidParameterError("Voting window ends before it starts")
        if not self._history:
            self._record_transition(self.status, "created", self.start_height)

    # ── Properties ────────────────────────────────────────────────────

    @property
    def transfer_amount(self) -> int:
        return self.effect.transfer_amount

    @property
    def transfer_to(self) -> Optional[str]:
        return self.effect.transfer_to

    @property
    def add_member(self) -> Optional[str]:
        return self.effect.add_member

    @property
    def is_terminal(self) -> bool:
        return self.status in (ProposalStatus.PASSED, ProposalStatus.FAILED)

    def is_votable(self, height: int) -> bool:
        return self.status == ProposalStatus.ACTIVE and height <= self.end_height

    @property
    def history(self) -> List[Dict[str, Any]]:
        return list(self._history)

    # ── State transitions ─────────────────────────────────────────────

    def _record_transition(self, new_status: ProposalStatus, reason: str, height: int):
        self._history.append({
            "from": self.status.value if self._history else "INIT",
            "to": new_status.value,
            "reason": reason,
            "height": height,
        })

    def transition_to(self, new_status: ProposalStatus, reason: str, height: int):
        """
        Advance proposal to *new_status*.

        Raises ProposalLifecycleError on invalid transitions.
        """
        allowed = _VALID_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise ProposalLifecycleError(
                f"Cannot transition from {self.status.name} → {new_status.name}"
            )
        old = self.status
        self._record_transition(new_status, reason, height)
        self.status = new_status
        self.concluded_at = height
        logger.info(
            f"Proposal #{self.id} ({self.title}): "
            f"{old.name} → {new_status.name} | {reason}"
        )

    def mark_passed(self, height: int):
        self.transition_to(ProposalStatus.PASSED, "Majority for", height)
        self.executed = True

    def mark_failed(self, height: int):
        self.transition_to(ProposalStatus.FAILED, "No majority for", height)

    def copy(self) -> "Proposal":
        return replace(self, _history=list(self._history))

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "proposer": self.proposer,
            "title": self.title,
            "description": self.description,
            "startHeight": self.start_height,
            "endHeight": self.end_height,
            "votesFor": self.votes_for,
            "votesAgainst": self.votes_against,
            "status": self.status.value,
            "executed": self.executed,
            "transferAmount": self.transfer_amount,
            "transferTo": self.transfer_to,
            "addMember": self.add_member,
            "genesis": self.genesis,
            "disbursementFailed": self.disbursement_failed,
            "concludedAt": self.concluded_at,
        }

    def __repr__(self) -> str:
        return (
            f"<Proposal #{self.id} '{self.title}' "
            f"status={self.status.name} for={self.votes_for} against={self.votes_against}>"
        )


@dataclass(frozen=True)
class ExecutionResult:
    """What Execute reports back to the caller."""
    proposal_id: int
    outcome: ExecutionOutcome
    votes_for: int
    votes_against: int

    @property
    def passed(self) -> bool:
        return self.outcome != ExecutionOutcome.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "passed": self.passed,
            "outcome": self.outcome.value,
            "votesFor": self.votes_for,
            "votesAgainst": self.votes_against,
        }


# ══════════════════════════════════════════════════════════════════════
#  LIFECYCLE
# ══════════════════════════════════════════════════════════════════════

class ProposalBook:
    """
    Proposal store and lifecycle engine.

    Responsibilities:
        - Gate creation on membership and reputation
        - Accept reputation-weighted ballots inside the voting window
        - Resolve proposals once the window has elapsed and apply effects

    The *genesis phase* is open from construction until the first proposal
    is created. While it is open the DAO founder, and only the founder,
    may propose regardless of reputation.
    """

    def __init__(
        self,
        registry: MemberRegistry,
        votes: VoteLedger,
        treasury: Treasury,
        height_source: HeightSource,
        events: Optional[EventLog] = None,
        voting_period: int = GOVERNANCE_VOTING_PERIOD,
        min_reputation_to_propose: int = GOVERNANCE_MIN_REPUTATION_TO_PROPOSE,
        member_starting_reputation: int = GOVERNANCE_MEMBER_STARTING_REPUTATION,
        disbursement_policy: DisbursementFailurePolicy = DisbursementFailurePolicy(
            GOVERNANCE_DISBURSEMENT_POLICY
        ),
        max_title_length: int = GOVERNANCE_MAX_TITLE_LENGTH,
        max_description_length: int = GOVERNANCE_MAX_DESCRIPTION_LENGTH,
    ):
        self._registry = registry
        self._votes = votes
        self._treasury = treasury
        self._heights = height_source
        self._events = events if events is not None else EventLog()

        self.voting_period = voting_period
        self.min_reputation_to_propose = min_reputation_to_propose
        self.member_starting_reputation = member_starting_reputation
        self.disbursement_policy = DisbursementFailurePolicy(disbursement_policy)
        self.max_title_length = max_title_length
        self.max_description_length = max_description_length

        self._proposals: Dict[int, Proposal] = {}
        self._next_id = 0
        self._genesis_open = True

    # ── Create ────────────────────────────────────────────────────────

    def create(
        self,
        proposer: str,
        title: str,
        description: Optional[str] = "",
        effect: Optional[ProposalEffect] = None,
    ) -> int:
        """Open a new proposal for voting and return its ID."""
        effect = effect or ProposalEffect()

        reputation = self._registry.reputation_of(proposer)  # NotMemberError

        if description is None:
            description = ""
        if not isinstance(title, str) or not isinstance(description, str):
            raise InvalidParameterError("Proposal title and description must be text")
        if not title:
            raise InvalidParameterError("Proposal title cannot be empty")
        if len(title) > self.max_title_length:
            raise InvalidParameterError(
                f"Title longer than {self.max_title_length} characters"
            )
        if len(description) > self.max_description_length:
            raise InvalidParameterError(
                f"Description longer than {self.max_description_length} characters"
            )
        effect.validate()
        if effect.has_transfer and effect.transfer_to == self._treasury.organization_account:
            raise InvalidParameterError("Treasury cannot transfer to itself")

        genesis = False
        if reputation < self.min_reputation_to_propose:
            if self.genesis_open and proposer == self._registry.founder:
                genesis = True
            else:
                raise InsufficientReputationError(
                    f"{proposer} has reputation {reputation}, "
                    f"needs {self.min_reputation_to_propose} to propose"
                )

        height = self._heights.current_height()
        pid = self._next_id
        proposal = Proposal(
            id=pid,
            proposer=proposer,
            title=title,
            description=description,
            start_height=height,
            end_height=height + self.voting_period,
            effect=effect,
            genesis=genesis,
        )
        self._proposals[pid] = proposal
        self._next_id += 1
        self._genesis_open = False

        self._events.emit(ProposalCreatedEvent(
            proposal_id=pid,
            proposer=proposer,
            title=title,
            transfer_amount=effect.transfer_amount,
            height=height,
        ))
        logger.info(
            f"Proposal #{pid} created by {proposer}: '{title}' "
            f"(voting until height={proposal.end_height})"
        )
        return pid

    # ── Vote ──────────────────────────────────────────────────────────

    def vote(self, proposal_id: int, voter: str, outcome_for: bool) -> bool:
        """Cast *voter*'s reputation-weighted ballot on an active proposal."""
        proposal = self.get_or_raise(proposal_id)
        if proposal.status != ProposalStatus.ACTIVE:
            raise NotActiveError(
                f"Proposal #{proposal_id} is not active (status={proposal.status.value})"
            )

        height = self._heights.current_height()
        if height > proposal.end_height:
            raise ExpiredError(
                f"Voting for proposal #{proposal_id} ended at height {proposal.end_height}"
            )

        weight = self._registry.reputation_of(voter)  # NotMemberError
        self._votes.record(proposal_id, voter, outcome_for, weight, at_height=height)

        if outcome_for:
            proposal.votes_for += weight
        else:
            proposal.votes_against += weight

        self._events.emit(VoteCastEvent(
            proposal_id=proposal_id,
            voter=voter,
            outcome_for=bool(outcome_for),
            weight=weight,
            height=height,
        ))
        logger.info(
            f"Vote: {voter} → {Vote.name(outcome_for)} on Proposal #{proposal_id} "
            f"(weight={weight})"
        )
        return True

    # ── Execute ───────────────────────────────────────────────────────

    def execute(self, proposal_id: int) -> ExecutionResult:
        """
        Conclude a proposal whose voting window has elapsed.

        Checks:
            1. Proposal exists and is ACTIVE
            2. Current height is strictly past end_height
        Then resolves the tally and, on a pass, applies the effect.
        """
        proposal = self.get_or_raise(proposal_id)
        if proposal.status != ProposalStatus.ACTIVE:
            raise NotActiveError(
                f"Proposal #{proposal_id} already concluded "
                f"(status={proposal.status.value})"
            )

        height = self._heights.current_height()
        if height <= proposal.end_height:
            raise DelayNotMetError(
                f"Proposal #{proposal_id} is open until height {proposal.end_height} "
                f"(current height={height})"
            )

        if proposal.votes_for > proposal.votes_against:
            outcome = self._apply_effect(proposal, height)
            proposal.mark_passed(height)
        else:
            outcome = ExecutionOutcome.FAILED
            proposal.mark_failed(height)

        self._events.emit(ProposalConcludedEvent(
            proposal_id=proposal_id,
            passed=outcome != ExecutionOutcome.FAILED,
            votes_for=proposal.votes_for,
            votes_against=proposal.votes_against,
            outcome=outcome.value,
            height=height,
        ))
        logger.info(
            f"Proposal #{proposal_id}: {outcome.value.upper()} "
            f"(for={proposal.votes_for}, against={proposal.votes_against})"
        )
        return ExecutionResult(
            proposal_id=proposal_id,
            outcome=outcome,
            votes_for=proposal.votes_for,
            votes_against=proposal.votes_against,
        )

    def _apply_effect(self, proposal: Proposal, height: int) -> ExecutionOutcome:
        outcome = ExecutionOutcome.PASSED

        if proposal.effect.has_transfer:
            try:
                with self._treasury.execution_grant(proposal.id):
                    self._treasury.disburse(
                        proposal.transfer_amount, proposal.transfer_to, at_height=height
                    )
            except InsufficientFundsError as e:
                if self.disbursement_policy == DisbursementFailurePolicy.ABORT:
                    logger.warning(
                        f"Proposal #{proposal.id}: execution aborted, "
                        f"treasury cannot pay amount={proposal.transfer_amount} ({e})"
                    )
                    raise
                proposal.disbursement_failed = True
                outcome = ExecutionOutcome.PASSED_DISBURSEMENT_FAILED
                logger.warning(
                    f"Proposal #{proposal.id}: passed but disbursement of "
                    f"amount={proposal.transfer_amount} to {proposal.transfer_to} failed ({e})"
                )

        new_member = proposal.add_member
        if new_member is not None:
            if self._registry.is_member(new_member):
                logger.info(
                    f"Proposal #{proposal.id}: {new_member} is already a member"
                )
            else:
                self._registry.admit(
                    new_member,
                    self.member_starting_reputation,
                    height,
                    via_proposal=proposal.id,
                )

        return outcome

    # ── Queries ───────────────────────────────────────────────────────

    def get(self, proposal_id: int) -> Optional[Proposal]:
        return self._proposals.get(proposal_id)

    def get_or_raise(self, proposal_id: int) -> Proposal:
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            raise NotFoundError(f"Proposal #{proposal_id} not found")
        return proposal

    def count(self) -> int:
        """Number of proposals ever created (also the next ID)."""
        return self._next_id

    def all(self) -> List[Proposal]:
        return [self._proposals[pid] for pid in sorted(self._proposals)]

    def active(self) -> List[Proposal]:
        return [p for p in self.all() if p.status == ProposalStatus.ACTIVE]

    @property
    def genesis_open(self) -> bool:
        return self._genesis_open and self._registry.initialized

    # ── Snapshot ──────────────────────────────────────────────────────

    def take_snapshot(self) -> Dict[str, Any]:
        return {
            "proposals": {pid: p.copy() for pid, p in self._proposals.items()},
            "next_id": self._next_id,
            "genesis_open": self._genesis_open,
        }

    def restore_snapshot(self, snapshot: Dict[str, Any]) -> None:
        self._proposals = snapshot["proposals"]
        self._next_id = snapshot["next_id"]
        self._genesis_open = snapshot["genesis_open"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalCount": self._next_id,
            "genesisOpen": self.genesis_open,
            "votingPeriod": self.voting_period,
            "minReputationToPropose": self.min_reputation_to_propose,
            "disbursementPolicy": self.disbursement_policy.value,
            "proposals": {pid: p.to_dict() for pid, p in self._proposals.items()},
        }

    def __repr__(self) -> str:
        return f"<ProposalBook proposals={self._next_id}>"
