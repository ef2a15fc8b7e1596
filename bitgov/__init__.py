"""
BitGov: reputation-weighted DAO governance.

Members propose, vote with their reputation, and passed proposals pay out
of the shared treasury or admit new members.
"""

__version__ = "1.0.0"

from .chain import HeightSource, InMemoryLedger, Ledger, ManualHeightSource
from .config import GovernanceConfig, load_config
from .dao import Dao
from .events import EventLog
from .exceptions import (
    AlreadyExistsError,
    AlreadyVotedError,
    BitGovError,
    ConfigurationError,
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
from .governance import (
    DisbursementFailurePolicy,
    ExecutionOutcome,
    ExecutionResult,
    Proposal,
    ProposalStatus,
)

__all__ = [
    "Dao",
    "EventLog",
    "GovernanceConfig",
    "load_config",
    # Host collaborators
    "HeightSource",
    "InMemoryLedger",
    "Ledger",
    "ManualHeightSource",
    # Governance types
    "DisbursementFailurePolicy",
    "ExecutionOutcome",
    "ExecutionResult",
    "Proposal",
    "ProposalStatus",
    # Errors
    "AlreadyExistsError",
    "AlreadyVotedError",
    "BitGovError",
    "ConfigurationError",
    "DelayNotMetError",
    "ExpiredError",
    "InsufficientFundsError",
    "InsufficientReputationError",
    "InvalidParameterError",
    "NotActiveError",
    "NotFoundError",
    "NotMemberError",
    "UnauthorizedError",
]
