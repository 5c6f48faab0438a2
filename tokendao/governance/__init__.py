"""
tokendao Treasury Governance

Provides:
  - ProposalStatus / Proposal / ProposalStore        (proposals.py)
  - VoteChoice / VoteRecord / VoteLedger             (voting.py)
  - QuorumPolicy / QuorumEvaluator                   (quorum.py)
  - Treasury                                         (treasury.py)
  - Propose / Vote / Finalize / Cancel / Comment events (events.py)
  - WeightMode / GovernanceEngine                    (engine.py)
"""

from .errors import (
    AccessDeniedError,
    AlreadyActedError,
    GovernanceError,
    InvalidInputError,
    ProposalLifecycleError,
    QuorumNotMetError,
    ReentrancyError,
    VotingClosedError,
)
from .proposals import (
    Proposal,
    ProposalStatus,
    ProposalStore,
)
from .voting import (
    VoteChoice,
    VoteLedger,
    VoteRecord,
)
from .quorum import (
    QuorumEvaluator,
    QuorumPolicy,
)
from .treasury import Treasury
from .events import (
    CancelEvent,
    CommentEvent,
    FinalizeEvent,
    GovernanceEvent,
    ProposeEvent,
    VoteEvent,
)
from .engine import (
    GovernanceEngine,
    WeightMode,
)

__all__ = [
    # Errors
    "AccessDeniedError",
    "AlreadyActedError",
    "GovernanceError",
    "InvalidInputError",
    "ProposalLifecycleError",
    "QuorumNotMetError",
    "ReentrancyError",
    "VotingClosedError",
    # Proposals
    "Proposal",
    "ProposalStatus",
    "ProposalStore",
    # Voting
    "VoteChoice",
    "VoteLedger",
    "VoteRecord",
    # Quorum
    "QuorumEvaluator",
    "QuorumPolicy",
    # Treasury
    "Treasury",
    # Events
    "CancelEvent",
    "CommentEvent",
    "FinalizeEvent",
    "GovernanceEvent",
    "ProposeEvent",
    "VoteEvent",
    # Engine
    "GovernanceEngine",
    "WeightMode",
]
