"""
BitGov Exceptions

Custom exception classes for the governance state machine. Every error
carries the numeric code the on-chain contract reported for it.
"""

from .constants import (
    ERR_ALREADY_EXISTS,
    ERR_ALREADY_VOTED,
    ERR_DELAY_NOT_MET,
    ERR_EXPIRED,
    ERR_INSUFFICIENT_FUNDS,
    ERR_INSUFFICIENT_REPUTATION,
    ERR_INVALID_PARAMETER,
    ERR_NOT_ACTIVE,
    ERR_NOT_FOUND,
    ERR_NOT_MEMBER,
    ERR_UNAUTHORIZED,
)


class BitGovError(Exception):
    """Base exception for BitGov."""
    code: int = 0


class UnauthorizedError(BitGovError):
    """Caller may not perform this operation."""
    code = ERR_UNAUTHORIZED


class AlreadyExistsError(BitGovError):
    """Record already exists (e.g. DAO already initialized)."""
    code = ERR_ALREADY_EXISTS


class NotFoundError(BitGovError):
    """No proposal with the requested ID."""
    code = ERR_NOT_FOUND


class ExpiredError(BitGovError):
    """Voting window has closed."""
    code = ERR_EXPIRED


class NotActiveError(BitGovError):
    """Proposal already concluded."""
    code = ERR_NOT_ACTIVE


class AlreadyVotedError(BitGovError):
    """Voter already cast a ballot on this proposal."""
    code = ERR_ALREADY_VOTED


class InsufficientFundsError(BitGovError):
    """Ledger transfer could not be covered by the sender's balance."""
    code = ERR_INSUFFICIENT_FUNDS


class InvalidParameterError(BitGovError):
    """Malformed call argument."""
    code = ERR_INVALID_PARAMETER


class DelayNotMetError(BitGovError):
    """Execution attempted before the voting window elapsed."""
    code = ERR_DELAY_NOT_MET


class NotMemberError(BitGovError):
    """Account has no membership record."""
    code = ERR_NOT_MEMBER


class InsufficientReputationError(BitGovError):
    """Member reputation is below the proposing threshold."""
    code = ERR_INSUFFICIENT_REPUTATION


class ConfigurationError(ValueError):
    """Configuration error."""
    pass
