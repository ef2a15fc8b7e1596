"""
BitGov Constants

This module consolidates the governance constants and the environment
configuration used throughout the codebase. Constants are organized by
category for easy reference and maintenance.
"""
import ast

from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE VALUES BELOW DEFINE THE RULES OF THE ORGANIZATION. A RUNNING DAO
# TAKES ITS COPY AT CONSTRUCTION; CHANGING THEM AFTERWARDS HAS NO EFFECT ON IT.

# ==================================================================================
# GOVERNANCE PARAMETERS
# ==================================================================================
GOVERNANCE_VOTING_PERIOD = 144  # heights (~1 day of 10 minute blocks)
GOVERNANCE_MIN_REPUTATION_TO_PROPOSE = 10
GOVERNANCE_INITIAL_REPUTATION = 100  # granted to the DAO founder
GOVERNANCE_MEMBER_STARTING_REPUTATION = 10  # granted by a membership proposal

GOVERNANCE_MAX_TITLE_LENGTH = 100
GOVERNANCE_MAX_DESCRIPTION_LENGTH = 500

# Account that holds the pooled treasury balance on the host ledger
GOVERNANCE_ORGANIZATION_ACCOUNT = "bitgov.treasury"

# What Execute does when a passed proposal's treasury transfer fails
GOVERNANCE_DISBURSEMENT_POLICY = "abort"


# ==================================================================================
# PROPOSAL STATUS LABELS
# ==================================================================================
STATUS_ACTIVE = "active"
STATUS_PASSED = "passed"
STATUS_FAILED = "failed"


# ==================================================================================
# ERROR CODES
# ==================================================================================
# Numeric codes kept stable for indexers that consumed the on-chain contract.
ERR_UNAUTHORIZED = 100
ERR_ALREADY_EXISTS = 101
ERR_NOT_FOUND = 102
ERR_EXPIRED = 103
ERR_NOT_ACTIVE = 104
ERR_ALREADY_VOTED = 105
ERR_INSUFFICIENT_FUNDS = 106
ERR_INVALID_PARAMETER = 107
ERR_DELAY_NOT_MET = 108
ERR_NOT_MEMBER = 110
ERR_INSUFFICIENT_REPUTATION = 111


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    def __hash__(self):
        return hash(bool(self))


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
DEFAULTS = dict(LOGGER_DEFAULTS)
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
