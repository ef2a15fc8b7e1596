"""
BitGov DAO

Public surface of the governance state machine. Each mutating call is one
logical transaction: it runs under the DAO lock against a snapshot of all
component state, and either commits entirely (state plus events) or is
rolled back entirely.

    >>> dao = Dao(ledger=InMemoryLedger({"alice": 1_000}))
    >>> dao.initialize_dao("alice")
    >>> pid = dao.create_proposal("alice", "Fund docs", "", transfer_amount=0)
"""

import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Dict, Iterator, List, Optional

from .chain import HeightSource, InMemoryLedger, Ledger, ManualHeightSource
from .config import GovernanceConfig
from .events import EventLog
from .governance import (
    ExecutionResult,
    Member,
    MemberRegistry,
    Proposal,
    ProposalBook,
    ProposalEffect,
    Treasury,
    VoteLedger,
    VoteRecord,
)
from .logger import get_logger

logger = get_logger(__name__)


class Dao:
    """
    Reputation-weighted DAO.

    Args:
        ledger:        Host ledger holding member and treasury balances
        height_source: Host chain height
        config:        Governance rules; copied, so later edits have no effect
        events:        Event log to write to (a fresh one by default)
    """

    def __init__(
        self,
        ledger: Optional[Ledger] = None,
        height_source: Optional[HeightSource] = None,
        config: Optional[GovernanceConfig] = None,
        events: Optional[EventLog] = None,
    ):
        self._config = replace(config) if config is not None else GovernanceConfig()
        self._config.validate()

        self.ledger = ledger if ledger is not None else InMemoryLedger()
        self.heights = height_source if height_source is not None else ManualHeightSource()
        self.event_log = events if events is not None else EventLog()

        self._members = MemberRegistry(self.event_log, self._config.initial_reputation)
        self._votes = VoteLedger()
        self._treasury = Treasury(
            self.ledger, self.event_log, self._config.organization_account
        )
        self._proposals = ProposalBook(
            registry=self._members,
            votes=self._votes,
            treasury=self._treasury,
            height_source=self.heights,
            events=self.event_log,
            voting_period=self._config.voting_period,
            min_reputation_to_propose=self._config.min_reputation_to_propose,
            member_starting_reputation=self._config.member_starting_reputation,
            disbursement_policy=self._config.policy,
            max_title_length=self._config.max_title_length,
            max_description_length=self._config.max_description_length,
        )
        self._lock = threading.RLock()

    # ── Transactions ──────────────────────────────────────────────────

    def _take_snapshot(self) -> Dict[str, Any]:
        return {
            "members": self._members.take_snapshot(),
            "votes": self._votes.take_snapshot(),
            "treasury": self._treasury.take_snapshot(),
            "proposals": self._proposals.take_snapshot(),
        }

    def _restore_snapshot(self, snapshot: Dict[str, Any]) -> None:
        self._members.restore_snapshot(snapshot["members"])
        self._votes.restore_snapshot(snapshot["votes"])
        self._treasury.restore_snapshot(snapshot["treasury"])
        self._proposals.restore_snapshot(snapshot["proposals"])

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[None]:
        with self._lock:
            snapshot = self._take_snapshot()
            try:
                with self.event_log.batch():
                    yield
            except BaseException as e:
                self._restore_snapshot(snapshot)
                logger.debug(f"{operation} rolled back: {type(e).__name__}: {e}")
                raise

    # ── Boundary operations ───────────────────────────────────────────

    def initialize_dao(self, caller: str) -> Member:
        """Admit *caller* as the founding member. One-time, global."""
        with self._transaction("initialize_dao"):
            return self._members.initialize(caller, self.heights.current_height())

    def create_proposal(
        self,
        caller: str,
        title: str,
        description: Optional[str] = "",
        transfer_amount: int = 0,
        transfer_to: Optional[str] = None,
        add_member: Optional[str] = None,
    ) -> int:
        effect = ProposalEffect(
            transfer_amount=transfer_amount,
            transfer_to=transfer_to,
            add_member=add_member,
        )
        with self._transaction("create_proposal"):
            return self._proposals.create(caller, title, description, effect)

    def vote(self, caller: str, proposal_id: int, outcome_for: bool) -> bool:
        with self._transaction("vote"):
            return self._proposals.vote(proposal_id, caller, outcome_for)

    def execute_proposal(self, caller: str, proposal_id: int) -> ExecutionResult:
        """Any account may trigger execution once the voting window has elapsed."""
        with self._transaction("execute_proposal"):
            result = self._proposals.execute(proposal_id)
            logger.debug(f"Proposal #{proposal_id} executed by {caller}")
            return result

    def deposit(self, caller: str, amount: int) -> bool:
        with self._transaction("deposit"):
            self._treasury.deposit(amount, caller, at_height=self.heights.current_height())
            return True

    # ── Read-only ─────────────────────────────────────────────────────

    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        with self._lock:
            proposal = self._proposals.get(proposal_id)
            return proposal.copy() if proposal is not None else None

    def get_vote(self, proposal_id: int, voter: str) -> Optional[VoteRecord]:
        with self._lock:
            return self._votes.lookup(proposal_id, voter)

    def get_member_info(self, account: str) -> Optional[Member]:
        with self._lock:
            return self._members.get(account)

    def get_treasury_balance(self) -> int:
        with self._lock:
            return self._treasury.balance()

    def get_proposal_count(self) -> int:
        with self._lock:
            return self._proposals.count()

    def current_height(self) -> int:
        return self.heights.current_height()

    @property
    def config(self) -> GovernanceConfig:
        return replace(self._config)

    @property
    def events(self) -> List[Any]:
        return self.event_log.events

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "height": self.heights.current_height(),
                "config": self._config.to_dict()["governance"],
                "members": self._members.to_dict(),
                "treasury": self._treasury.to_dict(),
                "governance": self._proposals.to_dict(),
                "ballots": len(self._votes),
            }

    def __repr__(self) -> str:
        return (
            f"<Dao members={self._members.count()} "
            f"proposals={self._proposals.count()} "
            f"treasury={self._treasury.balance()}>"
        )
