"""
Governance Engine

Orchestrates the proposal store, vote ledger, quorum evaluator and treasury.
It is the only writer of all four. Every entry point validates its full set
of preconditions before touching state, so a rejected call leaves nothing
behind; finalize additionally rolls back if the treasury payout fails.
"""

import math
import time
from contextlib import contextmanager
from decimal import Decimal
from enum import IntEnum
from typing import Any, Callable, Dict, List, Optional, Union

from ..logger import get_logger
from ..constants import (
    GOVERNANCE_NO_DEADLINE,
    GOVERNANCE_PARTICIPATION_MAX,
    GOVERNANCE_PARTICIPATION_MIN,
    REASON_ALREADY_CANCELLED,
    REASON_ALREADY_FINALIZED,
    REASON_CANCEL_QUORUM,
    REASON_DEADLINE_PASSED,
    REASON_EMPTY_COMMENT,
    REASON_FINALIZE_QUORUM,
    REASON_INSUFFICIENT_TREASURY,
    REASON_INVALID_DEADLINE,
    REASON_INVALID_RECIPIENT,
    REASON_NOT_TOKEN_HOLDER,
    REASON_REENTRANT_CALL,
    REASON_WAS_CANCELLED,
)
from ..exceptions import ConfigurationError
from ..tokens import BalanceOracle, SnapshotOracle
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
from .events import (
    CancelEvent,
    CommentEvent,
    FinalizeEvent,
    GovernanceEvent,
    ProposeEvent,
    VoteEvent,
)
from .proposals import Proposal, ProposalStore
from .quorum import QuorumEvaluator, QuorumPolicy
from .treasury import Treasury, parse_amount
from .voting import VoteChoice, VoteLedger, VoteRecord

logger = get_logger(__name__)


class WeightMode(IntEnum):
    """When a voter's weight is read."""
    LIVE = 0        # Balance at the moment the vote is cast
    SNAPSHOT = 1    # Balance when the proposal was created

    @classmethod
    def from_name(cls, name: Union[str, "WeightMode"]) -> "WeightMode":
        if isinstance(name, cls):
            return name
        try:
            return cls[str(name).strip().upper()]
        except KeyError:
            raise ConfigurationError(
                f"Unknown vote weight mode {name!r}, expected one of "
                f"{[m.name.lower() for m in cls]}"
            ) from None


class GovernanceEngine:
    """
    Token-weighted treasury governance.

    Write entry points:
        create_proposal, vote (+ vote_direction), finalize_proposal,
        cancel_proposal, add_comment

    Args:
        token:          Balance oracle supplying voting weight and total supply
        quorum:         Absolute weight needed to finalize or cancel
        treasury:       Custodian of pooled funds (a fresh empty one by default)
        quorum_policy:  RAW (default) or NET comparison, see quorum.py
        weight_mode:    LIVE (default) or SNAPSHOT vote weights
        clock:          Callable returning the current unix time
    """

    def __init__(
        self,
        token: BalanceOracle,
        quorum: Decimal,
        treasury: Optional[Treasury] = None,
        quorum_policy: Union[QuorumPolicy, str] = QuorumPolicy.RAW,
        weight_mode: Union[WeightMode, str] = WeightMode.LIVE,
        clock: Optional[Callable[[], float]] = None,
    ):
        weight_mode = WeightMode.from_name(weight_mode)
        if weight_mode == WeightMode.SNAPSHOT and not isinstance(token, SnapshotOracle):
            raise ConfigurationError("Snapshot vote weights need an oracle with snapshot()")

        self._token = token
        self._evaluator = QuorumEvaluator(quorum, quorum_policy)
        self._treasury = treasury if treasury is not None else Treasury()
        self._weight_mode = weight_mode
        self._clock = clock or time.time

        self._store = ProposalStore()
        self._ledger = VoteLedger()
        self._snapshots: Dict[int, Dict[str, Decimal]] = {}
        self._events: List[GovernanceEvent] = []
        self._busy = False

        logger.info(
            f"Governance engine ready: quorum={self._evaluator.quorum} "
            f"policy={self._evaluator.policy.name} weights={weight_mode.name}"
        )

    @classmethod
    def from_config(
        cls,
        token: BalanceOracle,
        config,
        treasury: Optional[Treasury] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> "GovernanceEngine":
        """Build an engine from a loaded DAOConfig."""
        gov = config.governance
        return cls(
            token=token,
            quorum=gov.quorum,
            treasury=treasury,
            quorum_policy=gov.quorum_policy,
            weight_mode=gov.vote_weight,
            clock=clock,
        )

    # ── Guards ────────────────────────────────────────────────────────

    @contextmanager
    def _entrypoint(self, action: str):
        """Serialize entry points; a nested call is rejected outright."""
        if self._busy:
            logger.warning(f"{action} rejected: {REASON_REENTRANT_CALL}")
            raise ReentrancyError(REASON_REENTRANT_CALL)
        self._busy = True
        try:
            yield
        except GovernanceError as e:
            logger.warning(f"{action} rejected: {e.reason}")
            raise
        finally:
            self._busy = False

    def _weight_of(self, address: str) -> Decimal:
        return Decimal(self._token.balance_of(address))

    def _require_holder(self, address: str) -> Decimal:
        weight = self._weight_of(address)
        if weight <= 0:
            raise AccessDeniedError(REASON_NOT_TOKEN_HOLDER)
        return weight

    def _vote_weight(self, voter: str, proposal: Proposal) -> Decimal:
        if self._weight_mode == WeightMode.SNAPSHOT:
            return self._snapshots.get(proposal.id, {}).get(voter, Decimal("0"))
        return self._weight_of(voter)

    @staticmethod
    def _parse_deadline(deadline: Any) -> float:
        # 0 and None both mean "no deadline"
        if deadline is None:
            return GOVERNANCE_NO_DEADLINE
        if isinstance(deadline, bool) or not isinstance(deadline, (int, float, Decimal)):
            raise InvalidInputError(REASON_INVALID_DEADLINE)
        deadline = float(deadline)
        if not math.isfinite(deadline):
            raise InvalidInputError(REASON_INVALID_DEADLINE)
        return deadline or GOVERNANCE_NO_DEADLINE

    def _emit(self, event: GovernanceEvent):
        self._events.append(event)

    # ── Create ────────────────────────────────────────────────────────

    def create_proposal(
        self,
        creator: str,
        name: str,
        description: str,
        amount: Union[Decimal, int, str],
        recipient: str,
        deadline: float = GOVERNANCE_NO_DEADLINE,
    ) -> int:
        """
        Open a funding proposal and return its id.

        Raises:
            AccessDeniedError:  creator holds no tokens
            InvalidInputError:  bad amount, amount above the treasury balance,
                                missing recipient, or deadline not in the future
        """
        with self._entrypoint("create_proposal"):
            self._require_holder(creator)

            amount = parse_amount(amount)
            if not self._treasury.can_cover(amount):
                raise InvalidInputError(REASON_INSUFFICIENT_TREASURY)
            if not recipient:
                raise InvalidInputError(REASON_INVALID_RECIPIENT)

            now = self._clock()
            deadline = self._parse_deadline(deadline)
            if deadline != GOVERNANCE_NO_DEADLINE and deadline <= now:
                raise InvalidInputError(REASON_INVALID_DEADLINE)

            # Before the id is allocated
            snapshot = None
            if self._weight_mode == WeightMode.SNAPSHOT:
                snapshot = self._token.snapshot()

            proposal = self._store.create(
                name=name,
                description=description,
                amount=amount,
                recipient=recipient,
                creator=creator,
                deadline=deadline,
                created_at=now,
            )
            if snapshot is not None:
                self._snapshots[proposal.id] = snapshot

            self._emit(ProposeEvent(
                proposal_id=proposal.id,
                name=name,
                description=description,
                amount=amount,
                recipient=recipient,
                creator=creator,
                timestamp=now,
            ))
            logger.info(
                f"Proposal #{proposal.id} created by {creator}: "
                f"{amount} → {recipient} (deadline={deadline})"
            )
            return proposal.id

    # ── Vote ──────────────────────────────────────────────────────────

    def vote(
        self,
        voter: str,
        proposal_id: int,
        choice: Union[VoteChoice, int, bool, str] = VoteChoice.FOR,
    ) -> VoteRecord:
        """
        Cast a weighted vote. Omitting *choice* votes FOR.

        Raises:
            AccessDeniedError:       voter holds no weight
            InvalidInputError:       invalid choice or unknown proposal
            ProposalLifecycleError:  proposal already finalized or cancelled
            AlreadyActedError:       voter already voted on this proposal
            VotingClosedError:       deadline has passed
        """
        with self._entrypoint("vote"):
            self._require_holder(voter)
            choice = VoteChoice.parse(choice)
            proposal = self._store.get_or_raise(proposal_id)

            if proposal.finalized:
                raise ProposalLifecycleError(REASON_ALREADY_FINALIZED)
            if proposal.cancelled:
                raise ProposalLifecycleError(REASON_WAS_CANCELLED)
            self._ledger.check_not_voted(voter, proposal.id)

            now = self._clock()
            if proposal.deadline_passed(now):
                raise VotingClosedError(REASON_DEADLINE_PASSED)

            weight = self._vote_weight(voter, proposal)
            if weight <= 0:
                raise AccessDeniedError(REASON_NOT_TOKEN_HOLDER)

            record = self._ledger.record(proposal, voter, choice, weight, timestamp=now)
            self._emit(VoteEvent(
                proposal_id=proposal.id,
                voter=voter,
                choice=choice,
                timestamp=now,
            ))
            return record

    def vote_direction(self, voter: str, proposal_id: int, support: bool) -> VoteRecord:
        """Two-way vote: True is FOR, False is AGAINST."""
        return self.vote(voter, proposal_id, VoteChoice.FOR if support else VoteChoice.AGAINST)

    # ── Finalize / cancel ─────────────────────────────────────────────

    def finalize_proposal(self, caller: str, proposal_id: int) -> FinalizeEvent:
        """
        Release the proposal's amount to its recipient.

        The finalized flag is committed before the treasury pays out. If the
        payout raises, the proposal and treasury are restored and the error
        propagates.
        """
        with self._entrypoint("finalize_proposal"):
            self._require_holder(caller)
            proposal = self._store.get_or_raise(proposal_id)

            if proposal.finalized:
                raise AlreadyActedError(REASON_ALREADY_FINALIZED)
            if proposal.cancelled:
                raise ProposalLifecycleError(REASON_WAS_CANCELLED)
            if not self._evaluator.ready_to_finalize(proposal):
                raise QuorumNotMetError(REASON_FINALIZE_QUORUM)
            if not self._treasury.can_cover(proposal.amount):
                raise InvalidInputError(REASON_INSUFFICIENT_TREASURY)

            now = self._clock()
            backup = self._store.detach(proposal)
            proposal.mark_finalized(now)
            try:
                self._treasury.release(proposal.recipient, proposal.amount, proposal.id)
            except Exception:
                self._store.restore(backup)
                logger.error(f"Proposal #{proposal.id}: payout failed, finalize rolled back")
                raise

            event = FinalizeEvent(proposal_id=proposal.id, timestamp=now)
            self._emit(event)
            return event

    def cancel_proposal(self, caller: str, proposal_id: int) -> CancelEvent:
        """Reject the proposal once Against weight reaches quorum. No funds move."""
        with self._entrypoint("cancel_proposal"):
            self._require_holder(caller)
            proposal = self._store.get_or_raise(proposal_id)

            if proposal.cancelled:
                raise AlreadyActedError(REASON_ALREADY_CANCELLED)
            if proposal.finalized:
                raise ProposalLifecycleError(REASON_ALREADY_FINALIZED)
            if not self._evaluator.ready_to_cancel(proposal):
                raise QuorumNotMetError(REASON_CANCEL_QUORUM)

            now = self._clock()
            proposal.mark_cancelled(now)

            event = CancelEvent(proposal_id=proposal.id, timestamp=now)
            self._emit(event)
            return event

    # ── Comments ──────────────────────────────────────────────────────

    def add_comment(self, author: str, proposal_id: int, text: str) -> CommentEvent:
        """Hand a holder's comment to the presentation layer as an event."""
        with self._entrypoint("add_comment"):
            self._require_holder(author)
            proposal = self._store.get_or_raise(proposal_id)
            if not text or not text.strip():
                raise InvalidInputError(REASON_EMPTY_COMMENT)

            event = CommentEvent(
                proposal_id=proposal.id,
                author=author,
                text=text,
                timestamp=self._clock(),
            )
            self._emit(event)
            return event

    # ── Read accessors ────────────────────────────────────────────────

    @property
    def proposal_count(self) -> int:
        return self._store.count

    def proposals(self, proposal_id: int) -> Proposal:
        """Detached copy of the full proposal record."""
        return self._store.detach(self._store.get_or_raise(proposal_id))

    def all_proposals(self) -> List[Proposal]:
        return [self._store.detach(p) for p in self._store.all_proposals()]

    def proposal_for_votes(self, proposal_id: int) -> Decimal:
        return self._store.get_or_raise(proposal_id).for_votes

    def proposal_against_votes(self, proposal_id: int) -> Decimal:
        return self._store.get_or_raise(proposal_id).against_votes

    def proposal_abstain_votes(self, proposal_id: int) -> Decimal:
        return self._store.get_or_raise(proposal_id).abstain_votes

    def net_votes(self, proposal_id: int) -> Decimal:
        return self._store.get_or_raise(proposal_id).net_votes

    def has_voted(self, address: str, proposal_id: int) -> bool:
        return self._ledger.has_voted(address, proposal_id)

    def get_vote_choice(self, address: str, proposal_id: int) -> Optional[VoteChoice]:
        return self._ledger.get_choice(address, proposal_id)

    def get_votes(self, proposal_id: int) -> List[VoteRecord]:
        return self._ledger.get_votes(proposal_id)

    def ready_to_finalize(self, proposal_id: int) -> bool:
        return self._evaluator.ready_to_finalize(self._store.get_or_raise(proposal_id))

    def ready_to_cancel(self, proposal_id: int) -> bool:
        return self._evaluator.ready_to_cancel(self._store.get_or_raise(proposal_id))

    def get_participation_rate(self, proposal_id: int) -> Decimal:
        """
        Percentage of total supply that voted (For, Against or Abstain),
        clamped to [0, 100]. Zero when the supply is zero.
        """
        proposal = self._store.get_or_raise(proposal_id)
        supply = Decimal(self._token.total_supply)
        if supply <= 0:
            return GOVERNANCE_PARTICIPATION_MIN
        rate = proposal.total_votes / supply * 100
        return max(GOVERNANCE_PARTICIPATION_MIN, min(GOVERNANCE_PARTICIPATION_MAX, rate))

    @property
    def quorum(self) -> Decimal:
        return self._evaluator.quorum

    @property
    def quorum_policy(self) -> QuorumPolicy:
        return self._evaluator.policy

    @property
    def weight_mode(self) -> WeightMode:
        return self._weight_mode

    @property
    def token(self) -> BalanceOracle:
        return self._token

    @property
    def treasury(self) -> Treasury:
        return self._treasury

    @property
    def events(self) -> List[GovernanceEvent]:
        return list(self._events)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quorum": self._evaluator.to_dict(),
            "weightMode": self._weight_mode.name,
            "treasury": self._treasury.to_dict(),
            "proposals": self._store.to_dict(),
            "votes": self._ledger.to_dict(),
            "events": len(self._events),
        }

    def __repr__(self) -> str:
        return (
            f"<GovernanceEngine proposals={self._store.count} "
            f"quorum={self._evaluator.quorum} treasury={self._treasury.balance}>"
        )
