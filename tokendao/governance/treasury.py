"""
Treasury Custodian

Holds pooled value contributed by external funders and releases it exactly
once per finalized proposal. The governance engine is the only caller of
``release``, and only after the proposal's finalized flag is committed.
"""

import time
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from ..logger import get_logger
from ..constants import REASON_INSUFFICIENT_TREASURY, REASON_INVALID_AMOUNT
from .errors import InvalidInputError

logger = get_logger(__name__)

# (recipient, amount) → None; raising aborts the release
PayoutFn = Callable[[str, Decimal], None]


def parse_amount(amount: Any, positive: bool = False) -> Decimal:
    """
    Coerce *amount* to a finite, non-negative Decimal.

    Floats go through their shortest repr, so 0.1 stays 0.1. With
    *positive* set, zero is rejected as well.

    Raises:
        InvalidInputError: bools, non-numeric values, NaN, infinities,
                           negatives (and zero when *positive*)
    """
    if isinstance(amount, bool):
        raise InvalidInputError(REASON_INVALID_AMOUNT)
    try:
        value = Decimal(str(amount)) if isinstance(amount, float) else Decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInputError(REASON_INVALID_AMOUNT) from None
    if not value.is_finite() or value < 0 or (positive and value == 0):
        raise InvalidInputError(REASON_INVALID_AMOUNT)
    return value


class Treasury:
    """
    Pooled value awaiting governance decisions.

    Args:
        initial_balance: Value already held at construction
        payout_fn:       External settlement hook, called after the books
                         are updated; an exception rolls the release back
    """

    def __init__(
        self,
        initial_balance: Decimal = Decimal("0"),
        payout_fn: Optional[PayoutFn] = None,
    ):
        initial_balance = parse_amount(initial_balance)
        self._balance = initial_balance
        self._payout_fn = payout_fn
        self._disbursed: Dict[str, Decimal] = {}
        self._contributions: Dict[str, Decimal] = {}
        self._ledger: List[Dict[str, Any]] = []

    # ── Views ─────────────────────────────────────────────────────────

    @property
    def balance(self) -> Decimal:
        return self._balance

    def can_cover(self, amount: Decimal) -> bool:
        return amount <= self._balance

    def disbursed_to(self, recipient: str) -> Decimal:
        return self._disbursed.get(recipient, Decimal("0"))

    def contributed_by(self, funder: str) -> Decimal:
        return self._contributions.get(funder, Decimal("0"))

    @property
    def ledger(self) -> List[Dict[str, Any]]:
        return list(self._ledger)

    # ── Funding ───────────────────────────────────────────────────────

    def deposit(self, funder: str, amount: Decimal) -> Decimal:
        """Accept external funding. Returns the new balance."""
        amount = parse_amount(amount, positive=True)
        self._balance += amount
        self._contributions[funder] = self.contributed_by(funder) + amount
        self._ledger.append({
            "type": "deposit",
            "account": funder,
            "amount": str(amount),
            "timestamp": time.time(),
        })
        logger.info(f"Treasury: deposit {amount} from {funder} (balance={self._balance})")
        return self._balance

    # ── Release ───────────────────────────────────────────────────────

    def release(self, recipient: str, amount: Decimal, proposal_id: int) -> Decimal:
        """
        Pay *amount* to *recipient* for *proposal_id*.

        The balance is debited before the payout hook runs. If the hook
        raises, the debit is reversed and the exception propagates.
        """
        if amount > self._balance:
            raise InvalidInputError(REASON_INSUFFICIENT_TREASURY)

        self._balance -= amount
        self._disbursed[recipient] = self.disbursed_to(recipient) + amount

        if self._payout_fn is not None:
            try:
                self._payout_fn(recipient, amount)
            except Exception:
                self._balance += amount
                self._disbursed[recipient] -= amount
                logger.error(
                    f"Treasury: payout of {amount} to {recipient} for "
                    f"Proposal #{proposal_id} failed, release reverted"
                )
                raise

        self._ledger.append({
            "type": "release",
            "account": recipient,
            "amount": str(amount),
            "proposalId": proposal_id,
            "timestamp": time.time(),
        })
        logger.info(
            f"Treasury: released {amount} to {recipient} for Proposal #{proposal_id} "
            f"(balance={self._balance})"
        )
        return self._balance

    def to_dict(self) -> Dict[str, Any]:
        return {
            "balance": str(self._balance),
            "disbursed": {r: str(a) for r, a in self._disbursed.items()},
            "movements": len(self._ledger),
        }

    def __repr__(self) -> str:
        return f"<Treasury balance={self._balance}>"
