"""
Governance events.

One record is emitted per successful write entry point. The presentation
layer (dashboards, notifications, comment threads) consumes these.
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Union

from .voting import VoteChoice


@dataclass(frozen=True)
class ProposeEvent:
    """Emitted when a proposal is created."""
    proposal_id: int
    name: str
    description: str
    amount: Decimal
    recipient: str
    creator: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Propose",
            "id": self.proposal_id,
            "name": self.name,
            "description": self.description,
            "amount": str(self.amount),
            "recipient": self.recipient,
            "creator": self.creator,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class VoteEvent:
    """Emitted on every accepted vote."""
    proposal_id: int
    voter: str
    choice: VoteChoice
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Vote",
            "id": self.proposal_id,
            "voter": self.voter,
            "choice": int(self.choice),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class FinalizeEvent:
    """Emitted after funds are released."""
    proposal_id: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "Finalize", "id": self.proposal_id, "timestamp": self.timestamp}


@dataclass(frozen=True)
class CancelEvent:
    """Emitted when Against weight cancels a proposal."""
    proposal_id: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "Cancel", "id": self.proposal_id, "timestamp": self.timestamp}


@dataclass(frozen=True)
class CommentEvent:
    """Comment text handed to the presentation layer; not stored by the engine."""
    proposal_id: int
    author: str
    text: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Comment",
            "id": self.proposal_id,
            "author": self.author,
            "text": self.text,
            "timestamp": self.timestamp,
        }


GovernanceEvent = Union[ProposeEvent, VoteEvent, FinalizeEvent, CancelEvent, CommentEvent]
