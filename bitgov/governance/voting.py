"""
Vote Ledger

Records one ballot per (proposal, voter) pair. A ballot, once cast, is
permanent: the ledger never overwrites or removes an entry.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..exceptions import AlreadyVotedError, InvalidParameterError
from ..logger import get_logger

logger = get_logger(__name__)


class Vote:
    """Ballot outcome labels."""
    FOR = True
    AGAINST = False

    @staticmethod
    def name(outcome_for: bool) -> str:
        return "FOR" if outcome_for else "AGAINST"


@dataclass(frozen=True)
class VoteRecord:
    """A single cast ballot."""
    proposal_id: int
    voter: str
    outcome_for: bool
    weight: int       # voter reputation when the ballot was cast
    cast_at: int      # height

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "voter": self.voter,
            "vote": Vote.name(self.outcome_for),
            "weight": self.weight,
            "castAt": self.cast_at,
        }


class VoteLedger:
    """(proposal_id, voter) → VoteRecord, write-once."""

    def __init__(self):
        self._records: Dict[Tuple[int, str], VoteRecord] = {}
        self._by_proposal: Dict[int, List[Tuple[int, str]]] = {}

    def record(
        self,
        proposal_id: int,
        voter: str,
        outcome_for: bool,
        weight: int,
        at_height: int = 0,
    ) -> VoteRecord:
        if weight < 0:
            raise InvalidParameterError("Vote weight cannot be negative")
        key = (proposal_id, voter)
        if key in self._records:
            raise AlreadyVotedError(
                f"{voter} has already voted on proposal #{proposal_id}"
            )
        entry = VoteRecord(
            proposal_id=proposal_id,
            voter=voter,
            outcome_for=bool(outcome_for),
            weight=weight,
            cast_at=at_height,
        )
        self._records[key] = entry
        self._by_proposal.setdefault(proposal_id, []).append(key)
        return entry

    def lookup(self, proposal_id: int, voter: str) -> Optional[VoteRecord]:
        return self._records.get((proposal_id, voter))

    def has_voted(self, proposal_id: int, voter: str) -> bool:
        return (proposal_id, voter) in self._records

    def votes_for_proposal(self, proposal_id: int) -> List[VoteRecord]:
        return [self._records[k] for k in self._by_proposal.get(proposal_id, [])]

    def voter_count(self, proposal_id: int) -> int:
        return len(self._by_proposal.get(proposal_id, []))

    def take_snapshot(self) -> Dict[str, Any]:
        return {
            "records": dict(self._records),
            "by_proposal": {pid: list(keys) for pid, keys in self._by_proposal.items()},
        }

    def restore_snapshot(self, snapshot: Dict[str, Any]) -> None:
        self._records = snapshot["records"]
        self._by_proposal = snapshot["by_proposal"]

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"<VoteLedger ballots={len(self._records)}>"
