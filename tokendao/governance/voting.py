"""
Token-Weighted Vote Ledger

Implements:
  - 1 token = 1 vote, read from the balance oracle at cast time
  - Vote choices: For / Against / Abstain (abstain counts toward participation only)
  - One vote per (voter, proposal)
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import IntEnum
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from ..logger import get_logger
from ..constants import (
    GOVERNANCE_VOTE_ABSTAIN,
    GOVERNANCE_VOTE_AGAINST,
    GOVERNANCE_VOTE_FOR,
    REASON_ALREADY_VOTED,
    REASON_INVALID_CHOICE,
)
from .errors import AlreadyActedError, InvalidInputError
from .proposals import Proposal

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  VOTE DATA
# ══════════════════════════════════════════════════════════════════════

class VoteChoice(IntEnum):
    """Vote direction; values are the tri-state wire codes."""
    FOR = GOVERNANCE_VOTE_FOR
    AGAINST = GOVERNANCE_VOTE_AGAINST
    ABSTAIN = GOVERNANCE_VOTE_ABSTAIN

    @classmethod
    def parse(cls, value: Union["VoteChoice", bool, int, str]) -> "VoteChoice":
        """
        Accept a VoteChoice, a wire int (1 / -1 / 2), a choice name, or a
        bool from the direction entry point (True = FOR, False = AGAINST).

        Raises InvalidInputError("invalid choice") for anything else.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls.FOR if value else cls.AGAINST
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise InvalidInputError(REASON_INVALID_CHOICE) from None
        if isinstance(value, str) and value.upper() in cls.__members__:
            return cls[value.upper()]
        raise InvalidInputError(REASON_INVALID_CHOICE)

    @classmethod
    def is_valid(cls, value: Any) -> bool:
        try:
            cls.parse(value)
        except InvalidInputError:
            return False
        return True


@dataclass(frozen=True)
class VoteRecord:
    """An individual vote cast by a voter."""
    proposal_id: int
    voter: str
    choice: VoteChoice
    weight: Decimal
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "voter": self.voter,
            "choice": self.choice.name,
            "weight": str(self.weight),
            "timestamp": self.timestamp,
        }


# ══════════════════════════════════════════════════════════════════════
#  VOTE LEDGER
# ══════════════════════════════════════════════════════════════════════

class VoteLedger:
    """
    Per (voter, proposal) vote records.

    Responsibilities:
        - Reject a second vote by the same voter on the same proposal
        - Add the captured weight to exactly one of the proposal's tallies
        - Answer has-voted / which-choice queries
    """

    def __init__(self):
        self._records: Dict[Tuple[str, int], VoteRecord] = {}
        self._voters: Dict[int, Set[str]] = {}  # proposal_id → {voter_addresses}

    # ── Cast vote ─────────────────────────────────────────────────────

    def check_not_voted(self, voter: str, proposal_id: int):
        if (voter, proposal_id) in self._records:
            raise AlreadyActedError(REASON_ALREADY_VOTED)

    def record(
        self,
        proposal: Proposal,
        voter: str,
        choice: VoteChoice,
        weight: Decimal,
        timestamp: Optional[float] = None,
    ) -> VoteRecord:
        """
        Record a vote and credit its weight to the matching tally.

        Callers validate access, proposal state and deadline first.
        """
        pid = proposal.id
        self.check_not_voted(voter, pid)

        record = VoteRecord(
            proposal_id=pid,
            voter=voter,
            choice=choice,
            weight=weight,
            timestamp=timestamp if timestamp is not None else time.time(),
        )
        self._records[(voter, pid)] = record
        self._voters.setdefault(pid, set()).add(voter)

        if choice == VoteChoice.FOR:
            proposal.for_votes += weight
        elif choice == VoteChoice.AGAINST:
            proposal.against_votes += weight
        else:
            proposal.abstain_votes += weight

        logger.info(
            f"Vote: {voter} → {choice.name} on Proposal #{pid} (weight={weight})"
        )
        return record

    # ── Queries ───────────────────────────────────────────────────────

    def has_voted(self, voter: str, proposal_id: int) -> bool:
        return (voter, proposal_id) in self._records

    def get_record(self, voter: str, proposal_id: int) -> Optional[VoteRecord]:
        return self._records.get((voter, proposal_id))

    def get_choice(self, voter: str, proposal_id: int) -> Optional[VoteChoice]:
        record = self._records.get((voter, proposal_id))
        return record.choice if record else None

    def get_votes(self, proposal_id: int) -> List[VoteRecord]:
        return [r for (_, pid), r in self._records.items() if pid == proposal_id]

    def voter_count(self, proposal_id: int) -> int:
        return len(self._voters.get(proposal_id, set()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "votes": len(self._records),
            "proposals": {
                pid: len(voters) for pid, voters in self._voters.items()
            },
        }

    def __repr__(self) -> str:
        return f"<VoteLedger votes={len(self._records)}>"
