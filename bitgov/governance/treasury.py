"""
Treasury Controller

Holds the organization's pooled value in a single ledger account. Anyone
may deposit; value only leaves through a passed proposal's execution.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from ..chain import Ledger
from ..constants import GOVERNANCE_ORGANIZATION_ACCOUNT
from ..events import DepositEvent, DisbursementEvent, EventLog
from ..exceptions import InvalidParameterError, UnauthorizedError
from ..logger import get_logger

logger = get_logger(__name__)


class Treasury:
    """
    Pooled balance of the DAO.

    :meth:`disburse` is only permitted while the lifecycle holds an
    execution grant (see :meth:`execution_grant`); calling it from
    anywhere else raises UnauthorizedError.
    """

    def __init__(
        self,
        ledger: Ledger,
        events: Optional[EventLog] = None,
        organization_account: str = GOVERNANCE_ORGANIZATION_ACCOUNT,
    ):
        if not organization_account:
            raise InvalidParameterError("Organization account is required")
        self._ledger = ledger
        self._events = events if events is not None else EventLog()
        self.organization_account = organization_account
        self._granted_proposal: Optional[int] = None
        self._total_deposited = 0
        self._total_disbursed = 0

    # ── Deposits ──────────────────────────────────────────────────────

    def deposit(self, amount: int, sender: str, at_height: int = 0) -> None:
        """Move *amount* from *sender* into the treasury. No membership gate."""
        if amount <= 0:
            raise InvalidParameterError("Deposit amount must be positive")
        if not sender:
            raise InvalidParameterError("Depositor account is required")
        if sender == self.organization_account:
            raise InvalidParameterError("Treasury cannot deposit into itself")

        self._ledger.transfer(sender, self.organization_account, amount)
        self._total_deposited += amount
        self._events.emit(DepositEvent(sender=sender, amount=amount, height=at_height))
        logger.info(f"Treasury deposit from {sender}: amount={amount}")

    # ── Disbursement ──────────────────────────────────────────────────

    @contextmanager
    def execution_grant(self, proposal_id: int) -> Iterator["Treasury"]:
        """Authorize disbursements on behalf of *proposal_id* for the block's duration."""
        previous = self._granted_proposal
        self._granted_proposal = proposal_id
        try:
            yield self
        finally:
            self._granted_proposal = previous

    def disburse(self, amount: int, recipient: str, at_height: int = 0) -> None:
        if self._granted_proposal is None:
            raise UnauthorizedError(
                "Treasury disbursement requires a passed proposal execution"
            )
        if amount <= 0:
            raise InvalidParameterError("Disbursement amount must be positive")
        if not recipient:
            raise InvalidParameterError("Disbursement recipient is required")

        self._ledger.transfer(self.organization_account, recipient, amount)
        self._total_disbursed += amount
        self._events.emit(DisbursementEvent(
            proposal_id=self._granted_proposal,
            recipient=recipient,
            amount=amount,
            height=at_height,
        ))
        logger.info(
            f"Treasury disbursed amount={amount} to {recipient} "
            f"(Proposal #{self._granted_proposal})"
        )

    # ── Queries ───────────────────────────────────────────────────────

    def balance(self) -> int:
        return self._ledger.balance_of(self.organization_account)

    @property
    def total_deposited(self) -> int:
        return self._total_deposited

    @property
    def total_disbursed(self) -> int:
        return self._total_disbursed

    def take_snapshot(self) -> Dict[str, Any]:
        return {
            "ledger": self._ledger.snapshot(),
            "total_deposited": self._total_deposited,
            "total_disbursed": self._total_disbursed,
        }

    def restore_snapshot(self, snapshot: Dict[str, Any]) -> None:
        self._ledger.revert(snapshot["ledger"])
        self._total_deposited = snapshot["total_deposited"]
        self._total_disbursed = snapshot["total_disbursed"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "organizationAccount": self.organization_account,
            "balance": self.balance(),
            "totalDeposited": self._total_deposited,
            "totalDisbursed": self._total_disbursed,
        }

    def __repr__(self) -> str:
        return f"<Treasury account={self.organization_account} balance={self.balance()}>"
