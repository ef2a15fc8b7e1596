"""
BitGov TOML Configuration Loader

Loads the [governance] section of config.toml with environment variable
overrides. A DAO copies its configuration at construction; the rules of
the organization cannot be changed on a running instance.

Environment variable mapping:
    [governance] voting_period              → BITGOV_VOTING_PERIOD
    [governance] min_reputation_to_propose  → BITGOV_MIN_REPUTATION_TO_PROPOSE
    [governance] initial_reputation         → BITGOV_INITIAL_REPUTATION
    [governance] member_starting_reputation → BITGOV_MEMBER_STARTING_REPUTATION
    [governance] disbursement_policy        → BITGOV_DISBURSEMENT_POLICY
    [governance] organization_account       → BITGOV_ORGANIZATION_ACCOUNT
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import (
    GOVERNANCE_DISBURSEMENT_POLICY,
    GOVERNANCE_INITIAL_REPUTATION,
    GOVERNANCE_MAX_DESCRIPTION_LENGTH,
    GOVERNANCE_MAX_TITLE_LENGTH,
    GOVERNANCE_MEMBER_STARTING_REPUTATION,
    GOVERNANCE_MIN_REPUTATION_TO_PROPOSE,
    GOVERNANCE_ORGANIZATION_ACCOUNT,
    GOVERNANCE_VOTING_PERIOD,
)
from ..exceptions import ConfigurationError
from ..governance.proposals import DisbursementFailurePolicy

logger = logging.getLogger(__name__)


@dataclass
class GovernanceConfig:
    """[governance] section."""
    voting_period: int = GOVERNANCE_VOTING_PERIOD
    min_reputation_to_propose: int = GOVERNANCE_MIN_REPUTATION_TO_PROPOSE
    initial_reputation: int = GOVERNANCE_INITIAL_REPUTATION
    member_starting_reputation: int = GOVERNANCE_MEMBER_STARTING_REPUTATION
    disbursement_policy: str = GOVERNANCE_DISBURSEMENT_POLICY
    organization_account: str = GOVERNANCE_ORGANIZATION_ACCOUNT
    max_title_length: int = GOVERNANCE_MAX_TITLE_LENGTH
    max_description_length: int = GOVERNANCE_MAX_DESCRIPTION_LENGTH

    @property
    def policy(self) -> DisbursementFailurePolicy:
        return DisbursementFailurePolicy(self.disbursement_policy)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceConfig":
        """Create from a parsed TOML dict (either the whole file or its [governance] table)."""
        gov = data.get("governance", data)
        return cls(
            voting_period=gov.get("voting_period", GOVERNANCE_VOTING_PERIOD),
            min_reputation_to_propose=gov.get(
                "min_reputation_to_propose", GOVERNANCE_MIN_REPUTATION_TO_PROPOSE
            ),
            initial_reputation=gov.get("initial_reputation", GOVERNANCE_INITIAL_REPUTATION),
            member_starting_reputation=gov.get(
                "member_starting_reputation", GOVERNANCE_MEMBER_STARTING_REPUTATION
            ),
            disbursement_policy=str(
                gov.get("disbursement_policy", GOVERNANCE_DISBURSEMENT_POLICY)
            ).lower(),
            organization_account=gov.get(
                "organization_account", GOVERNANCE_ORGANIZATION_ACCOUNT
            ),
            max_title_length=gov.get("max_title_length", GOVERNANCE_MAX_TITLE_LENGTH),
            max_description_length=gov.get(
                "max_description_length", GOVERNANCE_MAX_DESCRIPTION_LENGTH
            ),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "GovernanceConfig":
        """
        Load configuration from a TOML file.

        Args:
            config_path: Path to config.toml

        Returns:
            GovernanceConfig instance (env overrides applied)
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            raw = tomli.load(f)

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("BITGOV_VOTING_PERIOD"):
            self.voting_period = _int_env("BITGOV_VOTING_PERIOD", v)
        if v := os.environ.get("BITGOV_MIN_REPUTATION_TO_PROPOSE"):
            self.min_reputation_to_propose = _int_env("BITGOV_MIN_REPUTATION_TO_PROPOSE", v)
        if v := os.environ.get("BITGOV_INITIAL_REPUTATION"):
            self.initial_reputation = _int_env("BITGOV_INITIAL_REPUTATION", v)
        if v := os.environ.get("BITGOV_MEMBER_STARTING_REPUTATION"):
            self.member_starting_reputation = _int_env("BITGOV_MEMBER_STARTING_REPUTATION", v)
        if v := os.environ.get("BITGOV_DISBURSEMENT_POLICY"):
            self.disbursement_policy = v.strip().lower()
        if v := os.environ.get("BITGOV_ORGANIZATION_ACCOUNT"):
            self.organization_account = v.strip()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate the configuration.

        Returns:
            True if valid

        Raises:
            ConfigurationError: on invalid config
        """
        for name in (
            "voting_period",
            "min_reputation_to_propose",
            "initial_reputation",
            "member_starting_reputation",
        ):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ConfigurationError(f"{name} must be a non-negative integer, got {value!r}")
        if self.max_title_length < 1 or self.max_description_length < 0:
            raise ConfigurationError("Title/description length limits are invalid")
        if self.disbursement_policy not in {p.value for p in DisbursementFailurePolicy}:
            raise ConfigurationError(
                f"Invalid disbursement_policy: {self.disbursement_policy}"
            )
        if not self.organization_account:
            raise ConfigurationError("organization_account is required")
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "governance": {
                "voting_period": self.voting_period,
                "min_reputation_to_propose": self.min_reputation_to_propose,
                "initial_reputation": self.initial_reputation,
                "member_starting_reputation": self.member_starting_reputation,
                "disbursement_policy": self.disbursement_policy,
                "organization_account": self.organization_account,
                "max_title_length": self.max_title_length,
                "max_description_length": self.max_description_length,
            }
        }


def _int_env(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> GovernanceConfig:
    """
    Load governance configuration.

    Resolution order:
        1. Explicit *path* argument
        2. BITGOV_CONFIG env var
        3. ./config.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("BITGOV_CONFIG", "config.toml")

    cfg = GovernanceConfig.from_file(path)
    cfg.validate()
    return cfg
