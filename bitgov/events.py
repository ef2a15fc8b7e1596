"""
Governance Events

Every state-changing operation emits one of the events below into an
append-only EventLog. External indexers subscribe to the log; the core
never reads it back.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

from .logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class MemberAdmittedEvent:
    """Emitted when an account becomes a member."""
    account: str
    reputation: int
    height: int
    via_proposal: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "MemberAdmitted",
            "account": self.account,
            "reputation": self.reputation,
            "height": self.height,
            "viaProposal": self.via_proposal,
        }


@dataclass(frozen=True)
class ProposalCreatedEvent:
    """Emitted when a proposal opens for voting."""
    proposal_id: int
    proposer: str
    title: str
    transfer_amount: int
    height: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ProposalCreated",
            "proposalId": self.proposal_id,
            "proposer": self.proposer,
            "title": self.title,
            "transferAmount": self.transfer_amount,
            "height": self.height,
        }


@dataclass(frozen=True)
class VoteCastEvent:
    """Emitted for every accepted ballot."""
    proposal_id: int
    voter: str
    outcome_for: bool
    weight: int
    height: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "VoteCast",
            "proposalId": self.proposal_id,
            "voter": self.voter,
            "vote": "FOR" if self.outcome_for else "AGAINST",
            "weight": self.weight,
            "height": self.height,
        }


@dataclass(frozen=True)
class ProposalConcludedEvent:
    """Emitted once per proposal when Execute resolves it."""
    proposal_id: int
    passed: bool
    votes_for: int
    votes_against: int
    outcome: str
    height: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ProposalConcluded",
            "proposalId": self.proposal_id,
            "passed": self.passed,
            "votesFor": self.votes_for,
            "votesAgainst": self.votes_against,
            "outcome": self.outcome,
            "height": self.height,
        }


@dataclass(frozen=True)
class DepositEvent:
    """Emitted when any account funds the treasury."""
    sender: str
    amount: int
    height: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Deposit",
            "from": self.sender,
            "amount": self.amount,
            "height": self.height,
        }


@dataclass(frozen=True)
class DisbursementEvent:
    """Emitted when a passed proposal pays out of the treasury."""
    proposal_id: int
    recipient: str
    amount: int
    height: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Disbursement",
            "proposalId": self.proposal_id,
            "to": self.recipient,
            "amount": self.amount,
            "height": self.height,
        }


# ══════════════════════════════════════════════════════════════════════
#  EVENT LOG
# ══════════════════════════════════════════════════════════════════════

class EventLog:
    """
    Append-only log of governance events.

    Inside a :meth:`batch` block events are held back; they are appended
    and delivered to subscribers only when the block exits cleanly, and
    dropped if it raises. Outside a batch, :meth:`emit` publishes at once.
    """

    def __init__(self):
        self._events: List[Any] = []
        self._pending: List[Any] = []
        self._depth = 0
        self._subscribers: List[Callable[[Any], None]] = []
        self._lock = threading.RLock()

    # ── Subscribers ───────────────────────────────────────────────────

    def subscribe(self, callback: Callable[[Any], None]) -> None:
        """Register *callback* to receive every published event."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[Any], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    # ── Emission ──────────────────────────────────────────────────────

    def emit(self, event: Any) -> None:
        with self._lock:
            if self._depth > 0:
                self._pending.append(event)
            else:
                self._publish([event])

    @contextmanager
    def batch(self) -> Iterator["EventLog"]:
        """Group emissions into one all-or-nothing publication."""
        with self._lock:
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._depth -= 1
                if self._depth == 0:
                    dropped = len(self._pending)
                    self._pending = []
                    if dropped:
                        logger.debug(f"Discarded {dropped} unpublished event(s)")
                raise
            else:
                self._depth -= 1
                if self._depth == 0:
                    pending, self._pending = self._pending, []
                    self._publish(pending)

    def _publish(self, events: List[Any]) -> None:
        self._events.extend(events)
        for event in events:
            for callback in list(self._subscribers):
                try:
                    callback(event)
                except Exception:
                    # Event is already committed
                    logger.exception(
                        f"Event subscriber {callback!r} failed on {type(event).__name__}"
                    )

    # ── Queries ───────────────────────────────────────────────────────

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    def of_type(self, event_type: type) -> List[Any]:
        return [e for e in self._events if isinstance(e, event_type)]

    def __len__(self) -> int:
        return len(self._events)

    def to_dict(self) -> Dict[str, Any]:
        return {"events": [e.to_dict() for e in self._events]}

    def __repr__(self) -> str:
        return f"<EventLog events={len(self._events)} pending={len(self._pending)}>"
