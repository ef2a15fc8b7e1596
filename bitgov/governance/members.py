"""
Membership & Reputation Registry

Maps an account to its reputation and the height at which it joined.
Reputation is granted once, at admission, and is the sole source of
voting weight and proposing eligibility.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..constants import GOVERNANCE_INITIAL_REPUTATION
from ..events import EventLog, MemberAdmittedEvent
from ..exceptions import (
    AlreadyExistsError,
    InvalidParameterError,
    NotMemberError,
)
from ..logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Member:
    """A member record. Never mutated, never deleted."""
    account: str
    reputation: int
    joined_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account": self.account,
            "reputation": self.reputation,
            "joinedAt": self.joined_at,
        }


class MemberRegistry:
    """
    Account → Member mapping.

    The registry is seeded exactly once through :meth:`initialize`, which
    admits the founder; every later member arrives through :meth:`admit`
    on behalf of a passed membership proposal.
    """

    def __init__(
        self,
        events: Optional[EventLog] = None,
        initial_reputation: int = GOVERNANCE_INITIAL_REPUTATION,
    ):
        self._events = events if events is not None else EventLog()
        self._initial_reputation = initial_reputation
        self._members: Dict[str, Member] = {}
        self._founder: Optional[str] = None

    # ── Mutations ─────────────────────────────────────────────────────

    def initialize(self, founder: str, at_height: int) -> Member:
        """One-time self-admission of the DAO founder."""
        if self._founder is not None:
            raise AlreadyExistsError(
                f"DAO already initialized by {self._founder}"
            )
        member = self.admit(founder, self._initial_reputation, at_height)
        self._founder = founder
        logger.info(f"DAO initialized by {founder} at height={at_height}")
        return member

    def admit(
        self,
        account: str,
        reputation: int,
        at_height: int,
        via_proposal: Optional[int] = None,
    ) -> Member:
        if not account:
            raise InvalidParameterError("Member account is required")
        if reputation < 0:
            raise InvalidParameterError("Reputation cannot be negative")
        if account in self._members:
            raise AlreadyExistsError(f"{account} is already a member")

        member = Member(account=account, reputation=reputation, joined_at=at_height)
        self._members[account] = member
        self._events.emit(MemberAdmittedEvent(
            account=account,
            reputation=reputation,
            height=at_height,
            via_proposal=via_proposal,
        ))
        logger.info(f"Member admitted: {account} (reputation={reputation}, height={at_height})")
        return member

    # ── Queries ───────────────────────────────────────────────────────

    def get(self, account: str) -> Optional[Member]:
        return self._members.get(account)

    def is_member(self, account: str) -> bool:
        return account in self._members

    def reputation_of(self, account: str) -> int:
        member = self._members.get(account)
        if member is None:
            raise NotMemberError(f"{account} is not a member")
        return member.reputation

    @property
    def founder(self) -> Optional[str]:
        return self._founder

    @property
    def initialized(self) -> bool:
        return self._founder is not None

    def accounts(self) -> List[str]:
        return list(self._members)

    def count(self) -> int:
        return len(self._members)

    # ── Snapshot ──────────────────────────────────────────────────────

    def take_snapshot(self) -> Dict[str, Any]:
        return {"members": dict(self._members), "founder": self._founder}

    def restore_snapshot(self, snapshot: Dict[str, Any]) -> None:
        self._members = snapshot["members"]
        self._founder = snapshot["founder"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "founder": self._founder,
            "members": {a: m.to_dict() for a, m in self._members.items()},
        }

    def __repr__(self) -> str:
        return f"<MemberRegistry members={len(self._members)}>"
