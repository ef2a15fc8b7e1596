"""
BitGov Governance Core

Provides:
  - Member / MemberRegistry                                  (members.py)
  - Vote / VoteRecord / VoteLedger                           (voting.py)
  - Treasury                                                 (treasury.py)
  - Proposal / ProposalBook / ExecutionResult / policies     (proposals.py)
"""

from .members import (
    Member,
    MemberRegistry,
)
from .voting import (
    Vote,
    VoteLedger,
    VoteRecord,
)
from .treasury import (
    Treasury,
)
from .proposals import (
    DisbursementFailurePolicy,
    ExecutionOutcome,
    ExecutionResult,
    Proposal,
    ProposalBook,
    ProposalEffect,
    ProposalLifecycleError,
    ProposalStatus,
)

__all__ = [
    # Members
    "Member",
    "MemberRegistry",
    # Voting
    "Vote",
    "VoteLedger",
    "VoteRecord",
    # Treasury
    "Treasury",
    # Proposals
    "DisbursementFailurePolicy",
    "ExecutionOutcome",
    "ExecutionResult",
    "Proposal",
    "ProposalBook",
    "ProposalEffect",
    "ProposalLifecycleError",
    "ProposalStatus",
]
