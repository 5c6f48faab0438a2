"""
Quorum Evaluator

Stateless predicates comparing a proposal's tallies with one absolute
threshold in weighted units. Percentage policies are converted to an absolute
figure by the caller before the engine is built.

Two comparison policies exist and are never mixed:

  RAW  finalize: for_votes ≥ quorum           cancel: against_votes ≥ quorum
  NET  finalize: for − against ≥ quorum       cancel: against − for ≥ quorum
"""

from decimal import Decimal
from enum import IntEnum
from typing import Any, Dict, Union

from ..exceptions import ConfigurationError
from .proposals import Proposal


class QuorumPolicy(IntEnum):
    """How tallies are compared with the quorum."""
    RAW = 0     # Each side's own tally
    NET = 1     # Margin over the opposing side

    @classmethod
    def from_name(cls, name: Union[str, "QuorumPolicy"]) -> "QuorumPolicy":
        if isinstance(name, cls):
            return name
        try:
            return cls[str(name).strip().upper()]
        except KeyError:
            raise ConfigurationError(
                f"Unknown quorum policy {name!r}, expected one of "
                f"{[p.name.lower() for p in cls]}"
            ) from None


class QuorumEvaluator:
    """Decides whether a proposal may be finalized or cancelled."""

    def __init__(self, quorum: Decimal, policy: QuorumPolicy = QuorumPolicy.RAW):
        quorum = Decimal(quorum)
        if quorum <= 0:
            raise ConfigurationError("Quorum must be positive")
        self._quorum = quorum
        self._policy = QuorumPolicy.from_name(policy)

    @property
    def quorum(self) -> Decimal:
        return self._quorum

    @property
    def policy(self) -> QuorumPolicy:
        return self._policy

    def finalize_weight(self, proposal: Proposal) -> Decimal:
        if self._policy == QuorumPolicy.NET:
            return proposal.for_votes - proposal.against_votes
        return proposal.for_votes

    def cancel_weight(self, proposal: Proposal) -> Decimal:
        if self._policy == QuorumPolicy.NET:
            return proposal.against_votes - proposal.for_votes
        return proposal.against_votes

    def for_quorum_reached(self, proposal: Proposal) -> bool:
        return self.finalize_weight(proposal) >= self._quorum

    def against_quorum_reached(self, proposal: Proposal) -> bool:
        return self.cancel_weight(proposal) >= self._quorum

    def ready_to_finalize(self, proposal: Proposal) -> bool:
        return (
            not proposal.finalized
            and not proposal.cancelled
            and self.for_quorum_reached(proposal)
        )

    def ready_to_cancel(self, proposal: Proposal) -> bool:
        return not proposal.cancelled and self.against_quorum_reached(proposal)

    def to_dict(self) -> Dict[str, Any]:
        return {"quorum": str(self._quorum), "policy": self._policy.name}

    def __repr__(self) -> str:
        return f"<QuorumEvaluator quorum={self._quorum} policy={self._policy.name}>"
