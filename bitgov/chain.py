"""
Host Ledger Collaborators

The governance core never orders transactions or moves value on its own.
It reads the current height from a HeightSource and moves value through a
Ledger. Both are supplied by the host chain; the in-memory versions here
back local simulations and the test-suite.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Dict

from .exceptions import InsufficientFundsError, InvalidParameterError
from .logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  HEIGHT SOURCE
# ══════════════════════════════════════════════════════════════════════

class HeightSource(ABC):
    """Monotonically increasing block height, read-only for the core."""

    @abstractmethod
    def current_height(self) -> int:
        """Return the height of the block currently being processed."""


class ManualHeightSource(HeightSource):
    """Height that only moves when told to (simulations / tests)."""

    def __init__(self, start_height: int = 0):
        if start_height < 0:
            raise InvalidParameterError("Start height cannot be negative")
        self._height = start_height
        self._lock = threading.Lock()

    def current_height(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        """Mine *blocks* empty blocks and return the new height."""
        if blocks < 0:
            raise InvalidParameterError("Height cannot move backwards")
        with self._lock:
            self._height += blocks
            return self._height

    def __repr__(self) -> str:
        return f"<ManualHeightSource height={self._height}>"


# ══════════════════════════════════════════════════════════════════════
#  LEDGER TRANSFER PRIMITIVE
# ══════════════════════════════════════════════════════════════════════

class Ledger(ABC):
    """
    Atomic value transfer between accounts.

    ``snapshot``/``revert`` let the DAO undo the transfers of a call that
    fails part-way, the same way the host chain discards a failed
    transaction's effects.
    """

    @abstractmethod
    def balance_of(self, account: str) -> int:
        """Current holdings of *account*."""

    @abstractmethod
    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        """Move *amount* or raise InsufficientFundsError; never partial."""

    @abstractmethod
    def snapshot(self) -> Any:
        """Opaque token describing the current balances."""

    @abstractmethod
    def revert(self, snapshot: Any) -> None:
        """Restore the balances captured by :meth:`snapshot`."""


class InMemoryLedger(Ledger):
    """Dict-backed ledger."""

    def __init__(self, balances: Dict[str, int] = None):
        self._balances: Dict[str, int] = {}
        self._lock = threading.Lock()
        for account, amount in (balances or {}).items():
            self.credit(account, amount)

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def credit(self, account: str, amount: int) -> None:
        """Mint *amount* into *account* (genesis funding / faucets)."""
        if amount < 0:
            raise InvalidParameterError("Credit amount cannot be negative")
        with self._lock:
            self._balances[account] = self._balances.get(account, 0) + amount

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        if amount <= 0:
            raise InvalidParameterError("Transfer amount must be positive")
        if sender == recipient:
            raise InvalidParameterError("Sender and recipient must differ")
        with self._lock:
            available = self._balances.get(sender, 0)
            if available < amount:
                raise InsufficientFundsError(
                    f"{sender} holds {available}, cannot transfer {amount}"
                )
            self._balances[sender] = available - amount
            self._balances[recipient] = self._balances.get(recipient, 0) + amount
        logger.debug(f"Transfer {sender} → {recipient} amount={amount}")

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._balances)

    def revert(self, snapshot: Dict[str, int]) -> None:
        with self._lock:
            self._balances = dict(snapshot)

    def to_dict(self) -> Dict[str, Any]:
        return {"balances": dict(self._balances)}

    def __repr__(self) -> str:
        return f"<InMemoryLedger accounts={len(self._balances)}>"
