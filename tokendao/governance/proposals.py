"""
Treasury Proposals

Defines the proposal lifecycle states, the Proposal dataclass that tracks one
funding request from creation to its terminal state, and the ProposalStore
that hands out sequential ids.
"""

import copy
import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import IntEnum
from typing import Any, Dict, List, Optional

from ..logger import get_logger
from ..constants import (
    GOVERNANCE_NO_DEADLINE,
    REASON_WAS_CANCELLED,
    REASON_ALREADY_FINALIZED,
    REASON_UNKNOWN_PROPOSAL,
)
from .errors import InvalidInputError, ProposalLifecycleError

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class ProposalStatus(IntEnum):
    """Lifecycle stage."""
    ACTIVE = 0          # Accepting votes
    FINALIZED = 1       # Funds released to recipient
    CANCELLED = 2       # Rejected by Against quorum


# Valid forward transitions
_VALID_TRANSITIONS: Dict[ProposalStatus, set] = {
    ProposalStatus.ACTIVE:    {ProposalStatus.FINALIZED, ProposalStatus.CANCELLED},
    # Terminal states
    ProposalStatus.FINALIZED: set(),
    ProposalStatus.CANCELLED: set(),
}


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Proposal:
    """
    Funding proposal against the shared treasury.

    Fields:
        id:             Sequential identifier, starting at 1
        name:           Short title
        description:    Opaque text
        amount:         Treasury value requested; fixed at creation
        recipient:      Address paid on finalize
        creator:        Address that created the proposal
        for_votes:      Weight voted For
        against_votes:  Weight voted Against
        abstain_votes:  Weight that abstained (participation only)
        deadline:       Last timestamp at which votes are accepted (0 = none)
        finalized:      Terminal flag, set once by finalize
        cancelled:      Terminal flag, set once by cancel
    """
    id: int
    name: str
    description: str
    amount: Decimal
    recipient: str
    creator: str = ""
    for_votes: Decimal = field(default_factory=lambda: Decimal("0"))
    against_votes: Decimal = field(default_factory=lambda: Decimal("0"))
    abstain_votes: Decimal = field(default_factory=lambda: Decimal("0"))
    deadline: float = GOVERNANCE_NO_DEADLINE
    finalized: bool = False
    cancelled: bool = False
    created_at: float = field(default_factory=time.time)
    _history: List[Dict[str, Any]] = field(default_factory=list, repr=False)

    def __post_init__(self):
        if not self._history:
            self._history.append({
                "from": "INIT",
                "to": self.status.name,
                "reason": "created",
                "timestamp": self.created_at,
            })

    # ── Properties ────────────────────────────────────────────────────

    @property
    def status(self) -> ProposalStatus:
        if self.finalized:
            return ProposalStatus.FINALIZED
        if self.cancelled:
            return ProposalStatus.CANCELLED
        return ProposalStatus.ACTIVE

    @property
    def is_terminal(self) -> bool:
        return self.finalized or self.cancelled

    @property
    def has_deadline(self) -> bool:
        return self.deadline != GOVERNANCE_NO_DEADLINE

    @property
    def net_votes(self) -> Decimal:
        """For minus Against; abstentions are excluded."""
        return self.for_votes - self.against_votes

    @property
    def total_votes(self) -> Decimal:
        """All participating weight, abstentions included."""
        return self.for_votes + self.against_votes + self.abstain_votes

    @property
    def history(self) -> List[Dict[str, Any]]:
        return list(self._history)

    def deadline_passed(self, now: float) -> bool:
        return self.has_deadline and now > self.deadline

    # ── State transitions ─────────────────────────────────────────────

    def transition_to(
        self,
        new_status: ProposalStatus,
        reason: str = "",
        timestamp: Optional[float] = None,
    ):
        """
        Advance proposal to *new_status*, stamping the history entry with
        *timestamp* (the caller's clock) or the wall clock when omitted.

        Raises ProposalLifecycleError on invalid transitions.
        """
        old = self.status
        allowed = _VALID_TRANSITIONS.get(old, set())
        if new_status not in allowed:
            raise ProposalLifecycleError(
                REASON_ALREADY_FINALIZED if self.finalized else REASON_WAS_CANCELLED
            )
        self._history.append({
            "from": old.name,
            "to": new_status.name,
            "reason": reason,
            "timestamp": timestamp if timestamp is not None else time.time(),
        })
        if new_status == ProposalStatus.FINALIZED:
            self.finalized = True
        else:
            self.cancelled = True
        logger.info(
            f"Proposal #{self.id} ({self.name}): "
            f"{old.name} → {new_status.name} | {reason}"
        )

    def mark_finalized(self, timestamp: Optional[float] = None):
        self.transition_to(ProposalStatus.FINALIZED, "For quorum reached", timestamp)

    def mark_cancelled(self, timestamp: Optional[float] = None):
        self.transition_to(ProposalStatus.CANCELLED, "Against quorum reached", timestamp)

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "amount": str(self.amount),
            "recipient": self.recipient,
            "creator": self.creator,
            "forVotes": str(self.for_votes),
            "againstVotes": str(self.against_votes),
            "abstainVotes": str(self.abstain_votes),
            "netVotes": str(self.net_votes),
            "deadline": self.deadline,
            "finalized": self.finalized,
            "cancelled": self.cancelled,
            "status": self.status.name,
            "createdAt": self.created_at,
        }

    def __repr__(self) -> str:
        return (
            f"<Proposal #{self.id} '{self.name}' "
            f"amount={self.amount} status={self.status.name}>"
        )


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL STORE
# ══════════════════════════════════════════════════════════════════════

class ProposalStore:
    """
    Proposal records keyed by sequential id.

    Only the governance engine writes here.
    """

    def __init__(self):
        self._proposals: Dict[int, Proposal] = {}
        self._count = 0

    def create(
        self,
        name: str,
        description: str,
        amount: Decimal,
        recipient: str,
        creator: str,
        deadline: float = GOVERNANCE_NO_DEADLINE,
        created_at: Optional[float] = None,
    ) -> Proposal:
        """Allocate the next id and store a fresh ACTIVE proposal."""
        self._count += 1
        proposal = Proposal(
            id=self._count,
            name=name,
            description=description,
            amount=amount,
            recipient=recipient,
            creator=creator,
            deadline=deadline,
            created_at=created_at if created_at is not None else time.time(),
        )
        self._proposals[proposal.id] = proposal
        return proposal

    def get(self, proposal_id: int) -> Optional[Proposal]:
        return self._proposals.get(proposal_id)

    def get_or_raise(self, proposal_id: int) -> Proposal:
        proposal = self.get(proposal_id)
        if proposal is None:
            raise InvalidInputError(REASON_UNKNOWN_PROPOSAL)
        return proposal

    def restore(self, proposal: Proposal):
        """Put back a previously detached copy (rollback of a failed operation)."""
        self._proposals[proposal.id] = proposal

    @staticmethod
    def detach(proposal: Proposal) -> Proposal:
        return copy.deepcopy(proposal)

    @property
    def count(self) -> int:
        return self._count

    def all_proposals(self) -> List[Proposal]:
        return [self._proposals[pid] for pid in sorted(self._proposals)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalCount": self._count,
            "proposals": {pid: p.to_dict() for pid, p in self._proposals.items()},
        }

    def __repr__(self) -> str:
        return f"<ProposalStore proposals={self._count}>"
