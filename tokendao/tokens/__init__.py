"""
tokendao Voting Token

Provides:
  - BalanceOracle / SnapshotOracle : what the governance engine needs from a token
  - GovernanceToken                : in-memory fungible ledger implementing both
"""

from .token import (
    BalanceOracle,
    GovernanceToken,
    InsufficientBalanceError,
    SnapshotOracle,
    TokenError,
    TransferEvent,
)

__all__ = [
    "BalanceOracle",
    "GovernanceToken",
    "InsufficientBalanceError",
    "SnapshotOracle",
    "TokenError",
    "TransferEvent",
]
