"""
Governance Token — voting weight source

The governance engine never moves tokens; it only asks "how much weight does
this address hold right now?" and "how much weight exists in total?".
`BalanceOracle` captures exactly that contract. `GovernanceToken` is an
in-memory ledger implementing it, with just enough transfer support to seat
holders in tests and local deployments.
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Protocol, runtime_checkable

from ..logger import get_logger
from ..exceptions import DAOException

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class TokenError(DAOException):
    """Base exception for token operations."""


class InsufficientBalanceError(TokenError):
    """Raised when sender balance is too low."""


# ══════════════════════════════════════════════════════════════════════
#  ORACLE PROTOCOL
# ══════════════════════════════════════════════════════════════════════

@runtime_checkable
class BalanceOracle(Protocol):
    """Read-only view of voting weight."""

    @property
    def total_supply(self) -> Decimal: ...

    def balance_of(self, address: str) -> Decimal: ...


@runtime_checkable
class SnapshotOracle(BalanceOracle, Protocol):
    """Oracle that can freeze every balance at a point in time."""

    def snapshot(self) -> Dict[str, Decimal]: ...


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TransferEvent:
    """Emitted on every successful transfer."""
    token_symbol: str
    sender: str
    recipient: str
    amount: Decimal
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Transfer",
            "token": self.token_symbol,
            "from": self.sender,
            "to": self.recipient,
            "amount": str(self.amount),
            "timestamp": self.timestamp,
        }


# ══════════════════════════════════════════════════════════════════════
#  TOKEN
# ══════════════════════════════════════════════════════════════════════

class GovernanceToken:
    """
    Fungible voting token.

        - balance_of(address) → Decimal
        - total_supply → Decimal
        - transfer(sender, recipient, amount)
        - snapshot() → {address: balance}
    """

    def __init__(
        self,
        name: str,
        symbol: str,
        total_supply: Decimal = Decimal("0"),
        deployer: str = "",
    ):
        if not name:
            raise TokenError("Token name cannot be empty")
        if not symbol:
            raise TokenError("Token symbol cannot be empty")
        total_supply = Decimal(total_supply)
        if total_supply < 0:
            raise TokenError("Total supply cannot be negative")

        self.name = name
        self.symbol = symbol
        self.deployer = deployer
        self._total_supply = total_supply
        self._balances: Dict[str, Decimal] = {}
        self._events: List[TransferEvent] = []

        # Credit deployer with initial supply
        if total_supply > 0 and deployer:
            self._balances[deployer] = total_supply

        logger.info(f"Token deployed: {symbol} ({name}), supply={total_supply}")

    # ── Read-only views ───────────────────────────────────────────────

    @property
    def total_supply(self) -> Decimal:
        return self._total_supply

    def balance_of(self, address: str) -> Decimal:
        return self._balances.get(address, Decimal("0"))

    @property
    def events(self) -> List[TransferEvent]:
        return list(self._events)

    def snapshot(self) -> Dict[str, Decimal]:
        """Copy of every non-zero balance."""
        return {a: b for a, b in self._balances.items() if b > 0}

    # ── Transfers ─────────────────────────────────────────────────────

    def transfer(self, sender: str, recipient: str, amount: Decimal) -> TransferEvent:
        amount = Decimal(amount)
        if amount <= 0:
            raise TokenError("Transfer amount must be positive")
        if sender == recipient:
            raise TokenError("Cannot transfer to self")

        bal = self.balance_of(sender)
        if bal < amount:
            raise InsufficientBalanceError(
                f"{sender} balance {bal} < transfer amount {amount}"
            )

        self._balances[sender] = bal - amount
        self._balances[recipient] = self.balance_of(recipient) + amount

        event = TransferEvent(
            token_symbol=self.symbol,
            sender=sender,
            recipient=recipient,
            amount=amount,
        )
        self._events.append(event)
        logger.debug(f"Transfer: {sender} → {recipient} {amount} {self.symbol}")
        return event

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "totalSupply": str(self._total_supply),
            "deployer": self.deployer,
            "holders": len(self.snapshot()),
        }

    def __repr__(self) -> str:
        return f"<GovernanceToken {self.symbol} supply={self._total_supply}>"
