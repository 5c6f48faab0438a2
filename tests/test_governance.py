"""
Treasury Governance Test Suite

Coverage:
  - Proposal creation: access, amount, recipient and deadline checks
  - Weighted voting: For / Against / Abstain, one vote per holder, deadlines
  - Finalize: For quorum, treasury payout, payout rollback, reentrancy guard
  - Cancel: Against quorum, terminal-state rules
  - Quorum policies (RAW / NET) and weight modes (LIVE / SNAPSHOT)
  - Participation rate, comments, read accessors
"""

import logging
import sys
import os
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from tokendao.config import DAOConfig, GovernanceSectionConfig
from tokendao.exceptions import ConfigurationError
from tokendao.governance import (
    AccessDeniedError,
    AlreadyActedError,
    CancelEvent,
    CommentEvent,
    FinalizeEvent,
    GovernanceEngine,
    GovernanceError,
    InvalidInputError,
    ProposalLifecycleError,
    ProposalStatus,
    ProposeEvent,
    QuorumNotMetError,
    QuorumPolicy,
    ReentrancyError,
    Treasury,
    VoteChoice,
    VoteEvent,
    VotingClosedError,
    WeightMode,
)
from tokendao.tokens import GovernanceToken


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

DEPLOYER = "0x" + "00" * 20
ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20
DAVE = "0x" + "d4" * 20
EVE = "0x" + "e5" * 20
OUTSIDER = "0x" + "ff" * 20
RECIPIENT = "0x" + "9e" * 20

INVESTORS = [ALICE, BOB, CAROL, DAVE, EVE]
SUPPLY = Decimal("1000000")
SHARE = Decimal("200000")
# Half the supply plus one base unit
QUORUM = Decimal("500000.000000000000000001")
START = 1_700_000_000.0


class FakeClock:
    """Manually advanced unix clock."""

    def __init__(self, now: float = START):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FixedOracle:
    """Every address holds *balance*; supply is whatever the test says."""

    def __init__(self, supply: Decimal, balance: Decimal):
        self._supply = Decimal(supply)
        self._balance = Decimal(balance)

    @property
    def total_supply(self) -> Decimal:
        return self._supply

    def balance_of(self, address: str) -> Decimal:
        return self._balance


def make_token(holders=INVESTORS, share=SHARE) -> GovernanceToken:
    """Five investors holding 20% each of a 1,000,000 supply."""
    token = GovernanceToken(name="DAO Token", symbol="DAO", total_supply=SUPPLY, deployer=DEPLOYER)
    for holder in holders:
        token.transfer(DEPLOYER, holder, share)
    return token


def make_engine(
    token=None,
    quorum=QUORUM,
    treasury_balance=Decimal("100"),
    clock=None,
    payout_fn=None,
    **kwargs,
) -> GovernanceEngine:
    return GovernanceEngine(
        token=token if token is not None else make_token(),
        quorum=quorum,
        treasury=Treasury(treasury_balance, payout_fn=payout_fn),
        clock=clock or FakeClock(),
        **kwargs,
    )


def propose(engine, creator=ALICE, amount=Decimal("50"), deadline=0, name="Seed round") -> int:
    return engine.create_proposal(
        creator, name, "Fund the seed round", amount, RECIPIENT, deadline
    )


def cast(engine, pid, voters, choice):
    for voter in voters:
        engine.vote(voter, pid, choice)


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL CREATION
# ══════════════════════════════════════════════════════════════════════


class TestCreateProposal:
    """create_proposal() checks and effects."""

    def test_create_basic(self):
        engine = make_engine()
        pid = propose(engine)
        assert pid == 1
        assert engine.proposal_count == 1

        p = engine.proposals(pid)
        assert p.name == "Seed round"
        assert p.amount == Decimal("50")
        assert p.recipient == RECIPIENT
        assert p.creator == ALICE
        assert p.for_votes == p.against_votes == p.abstain_votes == Decimal("0")
        assert p.status == ProposalStatus.ACTIVE
        assert not p.finalized and not p.cancelled

    def test_ids_are_sequential(self):
        engine = make_engine()
        assert [propose(engine) for _ in range(3)] == [1, 2, 3]
        assert engine.proposal_count == 3

    def test_emits_propose_event(self):
        engine = make_engine()
        pid = propose(engine)
        event = engine.events[-1]
        assert isinstance(event, ProposeEvent)
        assert event.proposal_id == pid
        assert event.amount == Decimal("50")
        assert event.to_dict()["event"] == "Propose"

    def test_non_holder_rejected(self):
        engine = make_engine()
        with pytest.raises(AccessDeniedError, match="must be token holder"):
            propose(engine, creator=OUTSIDER)
        assert engine.proposal_count == 0
        assert engine.events == []

    def test_access_checked_before_amount(self):
        engine = make_engine()
        with pytest.raises(AccessDeniedError):
            propose(engine, creator=OUTSIDER, amount=Decimal("-1"))

    def test_negative_amount_rejected(self):
        engine = make_engine()
        with pytest.raises(InvalidInputError, match="invalid amount"):
            propose(engine, amount=Decimal("-1"))

    def test_garbage_amount_rejected(self):
        engine = make_engine()
        with pytest.raises(InvalidInputError, match="invalid amount"):
            propose(engine, amount="lots")

    def test_zero_amount_allowed(self):
        engine = make_engine()
        pid = propose(engine, amount=Decimal("0"))
        assert engine.proposals(pid).amount == Decimal("0")

    def test_amount_above_treasury_rejected(self):
        engine = make_engine(treasury_balance=Decimal("100"))
        with pytest.raises(InvalidInputError, match="insufficient treasury balance"):
            propose(engine, amount=Decimal("100.01"))
        assert engine.proposal_count == 0

    def test_amount_equal_to_treasury_allowed(self):
        engine = make_engine(treasury_balance=Decimal("100"))
        assert propose(engine, amount=Decimal("100")) == 1

    def test_empty_recipient_rejected(self):
        engine = make_engine()
        with pytest.raises(InvalidInputError, match="invalid recipient"):
            engine.create_proposal(ALICE, "x", "y", Decimal("1"), "")

    def test_past_deadline_rejected(self):
        clock = FakeClock()
        engine = make_engine(clock=clock)
        with pytest.raises(InvalidInputError, match="deadline must be in the future"):
            propose(engine, deadline=clock.now - 1)

    def test_deadline_equal_to_now_rejected(self):
        clock = FakeClock()
        engine = make_engine(clock=clock)
        with pytest.raises(InvalidInputError, match="deadline"):
            propose(engine, deadline=clock.now)

    def test_future_deadline_stored(self):
        clock = FakeClock()
        engine = make_engine(clock=clock)
        pid = propose(engine, deadline=clock.now + 3600)
        p = engine.proposals(pid)
        assert p.has_deadline
        assert p.deadline == clock.now + 3600

    def test_zero_deadline_means_no_deadline(self):
        engine = make_engine()
        pid = propose(engine, deadline=0)
        assert not engine.proposals(pid).has_deadline

    @pytest.mark.parametrize(
        "deadline", [float("nan"), float("inf"), "2000", True, [START + 60]]
    )
    def test_non_numeric_deadline_rejected(self, deadline):
        engine = make_engine()
        with pytest.raises(InvalidInputError, match="deadline must be in the future"):
            propose(engine, deadline=deadline)
        assert engine.proposal_count == 0
        assert engine.events == []

    def test_decimal_deadline_accepted(self):
        clock = FakeClock()
        engine = make_engine(clock=clock)
        pid = propose(engine, deadline=Decimal(str(clock.now + 60)))
        assert engine.proposals(pid).deadline == clock.now + 60

    def test_float_amount_keeps_short_form(self):
        engine = make_engine()
        pid = propose(engine, amount=0.1)
        assert engine.proposals(pid).amount == Decimal("0.1")

    def test_rejection_logged_as_warning(self, caplog):
        engine = make_engine()
        with caplog.at_level(logging.WARNING):
            with pytest.raises(AccessDeniedError):
                propose(engine, creator=OUTSIDER)
        assert "create_proposal rejected: must be token holder" in caplog.text


# ══════════════════════════════════════════════════════════════════════
#  VOTING
# ══════════════════════════════════════════════════════════════════════


class TestVote:
    """vote() / vote_direction() and the one-vote rule."""

    def test_for_vote_adds_balance(self):
        engine = make_engine()
        pid = propose(engine)
        record = engine.vote(ALICE, pid, VoteChoice.FOR)
        assert record.weight == SHARE
        assert engine.proposal_for_votes(pid) == SHARE
        assert engine.net_votes(pid) == SHARE

    def test_against_and_abstain(self):
        engine = make_engine()
        pid = propose(engine)
        engine.vote(ALICE, pid, VoteChoice.AGAINST)
        engine.vote(BOB, pid, VoteChoice.ABSTAIN)
        assert engine.proposal_against_votes(pid) == SHARE
        assert engine.proposal_abstain_votes(pid) == SHARE
        assert engine.proposal_for_votes(pid) == Decimal("0")
        assert engine.net_votes(pid) == -SHARE

    def test_wire_codes_accepted(self):
        engine = make_engine()
        pid = propose(engine)
        engine.vote(ALICE, pid, 1)
        engine.vote(BOB, pid, -1)
        engine.vote(CAROL, pid, 2)
        assert engine.get_vote_choice(ALICE, pid) == VoteChoice.FOR
        assert engine.get_vote_choice(BOB, pid) == VoteChoice.AGAINST
        assert engine.get_vote_choice(CAROL, pid) == VoteChoice.ABSTAIN

    def test_default_choice_is_for(self):
        engine = make_engine()
        pid = propose(engine)
        engine.vote(ALICE, pid)
        assert engine.get_vote_choice(ALICE, pid) == VoteChoice.FOR

    def test_vote_direction(self):
        engine = make_engine()
        pid = propose(engine)
        engine.vote_direction(ALICE, pid, True)
        engine.vote_direction(BOB, pid, False)
        assert engine.proposal_for_votes(pid) == SHARE
        assert engine.proposal_against_votes(pid) == SHARE

    @pytest.mark.parametrize("choice", [0, 3, -2, "maybe", None])
    def test_invalid_choice_rejected(self, choice):
        engine = make_engine()
        pid = propose(engine)
        with pytest.raises(InvalidInputError, match="invalid choice"):
            engine.vote(ALICE, pid, choice)
        assert not engine.has_voted(ALICE, pid)

    def test_unknown_proposal_rejected(self):
        engine = make_engine()
        with pytest.raises(InvalidInputError, match="proposal does not exist"):
            engine.vote(ALICE, 42, VoteChoice.FOR)

    def test_non_holder_rejected(self):
        engine = make_engine()
        pid = propose(engine)
        with pytest.raises(AccessDeniedError):
            engine.vote(OUTSIDER, pid, VoteChoice.FOR)

    def test_second_vote_rejected(self):
        engine = make_engine()
        pid = propose(engine)
        engine.vote(ALICE, pid, VoteChoice.FOR)
        with pytest.raises(AlreadyActedError, match="already voted"):
            engine.vote(ALICE, pid, VoteChoice.AGAINST)
        # Only the first vote counts
        assert engine.proposal_for_votes(pid) == SHARE
        assert engine.proposal_against_votes(pid) == Decimal("0")
        assert engine.get_vote_choice(ALICE, pid) == VoteChoice.FOR

    def test_same_voter_different_proposals(self):
        engine = make_engine()
        p1, p2 = propose(engine), propose(engine)
        engine.vote(ALICE, p1, VoteChoice.FOR)
        engine.vote(ALICE, p2, VoteChoice.AGAINST)
        assert engine.has_voted(ALICE, p1) and engine.has_voted(ALICE, p2)

    def test_has_voted_and_choice_before_voting(self):
        engine = make_engine()
        pid = propose(engine)
        assert engine.has_voted(ALICE, pid) is False
        assert engine.get_vote_choice(ALICE, pid) is None

    def test_emits_vote_event(self):
        engine = make_engine()
        pid = propose(engine)
        engine.vote(BOB, pid, VoteChoice.AGAINST)
        event = engine.events[-1]
        assert isinstance(event, VoteEvent)
        assert event.voter == BOB
        assert event.to_dict()["choice"] == -1

    def test_live_weight_read_at_cast_time(self):
        token = make_token()
        engine = make_engine(token=token)
        pid = propose(engine)
        token.transfer(BOB, ALICE, Decimal("50000"))
        engine.vote(ALICE, pid, VoteChoice.FOR)
        assert engine.proposal_for_votes(pid) == Decimal("250000")

    def test_transfer_after_vote_does_not_change_tally(self):
        token = make_token()
        engine = make_engine(token=token)
        pid = propose(engine)
        engine.vote(ALICE, pid, VoteChoice.FOR)
        token.transfer(ALICE, OUTSIDER, SHARE)
        assert engine.proposal_for_votes(pid) == SHARE


class TestVoteDeadline:
    """Votes are accepted up to and including the deadline."""

    def test_vote_before_and_after_deadline(self):
        clock = FakeClock()
        engine = make_engine(clock=clock)
        pid = propose(engine, deadline=clock.now + 3600)

        engine.vote(ALICE, pid, VoteChoice.FOR)
        assert engine.proposal_for_votes(pid) == SHARE

        clock.advance(3601)
        with pytest.raises(VotingClosedError, match="voting deadline has passed"):
            engine.vote(BOB, pid, VoteChoice.FOR)
        assert engine.proposal_for_votes(pid) == SHARE
        assert not engine.has_voted(BOB, pid)

    def test_vote_exactly_at_deadline_accepted(self):
        clock = FakeClock()
        engine = make_engine(clock=clock)
        pid = propose(engine, deadline=clock.now + 60)
        clock.advance(60)
        engine.vote(ALICE, pid, VoteChoice.FOR)
        assert engine.has_voted(ALICE, pid)

    def test_no_deadline_never_closes(self):
        clock = FakeClock()
        engine = make_engine(clock=clock)
        pid = propose(engine)
        clock.advance(10 * 365 * 24 * 3600)
        engine.vote(ALICE, pid, VoteChoice.FOR)
        assert engine.has_voted(ALICE, pid)

    def test_duplicate_checked_before_deadline(self):
        clock = FakeClock()
        engine = make_engine(clock=clock)
        pid = propose(engine, deadline=clock.now + 60)
        engine.vote(ALICE, pid, VoteChoice.FOR)
        clock.advance(120)
        with pytest.raises(AlreadyActedError):
            engine.vote(ALICE, pid, VoteChoice.FOR)

    def test_finalize_allowed_after_deadline(self):
        clock = FakeClock()
        engine = make_engine(clock=clock)
        pid = propose(engine, deadline=clock.now + 60)
        cast(engine, pid, [ALICE, BOB, CAROL], VoteChoice.FOR)
        clock.advance(120)
        engine.finalize_proposal(ALICE, pid)
        assert engine.proposals(pid).finalized


# ══════════════════════════════════════════════════════════════════════
#  FINALIZE
# ══════════════════════════════════════════════════════════════════════


class TestFinalize:
    """finalize_proposal(): For quorum, payout, terminal state."""

    def test_three_of_five_for_finalizes(self):
        engine = make_engine(treasury_balance=Decimal("100"))
        pid = propose(engine, amount=Decimal("50"))
        cast(engine, pid, [ALICE, BOB, CAROL], VoteChoice.FOR)
        assert engine.proposal_for_votes(pid) == Decimal("600000")

        event = engine.finalize_proposal(DAVE, pid)
        assert isinstance(event, FinalizeEvent)
        p = engine.proposals(pid)
        assert p.finalized
        assert p.status == ProposalStatus.FINALIZED
        assert engine.treasury.balance == Decimal("50")
        assert engine.treasury.disbursed_to(RECIPIENT) == Decimal("50")

    def test_two_of_five_for_is_short_of_quorum(self):
        engine = make_engine()
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB], VoteChoice.FOR)
        with pytest.raises(QuorumNotMetError, match="must reach quorum to finalize proposal"):
            engine.finalize_proposal(ALICE, pid)
        assert not engine.proposals(pid).finalized
        assert engine.treasury.balance == Decimal("100")

    def test_quorum_is_inclusive(self):
        engine = make_engine(quorum=Decimal("400000"))
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB], VoteChoice.FOR)
        engine.finalize_proposal(ALICE, pid)
        assert engine.proposals(pid).finalized

    def test_abstain_does_not_count_toward_quorum(self):
        engine = make_engine()
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB], VoteChoice.FOR)
        cast(engine, pid, [CAROL, DAVE, EVE], VoteChoice.ABSTAIN)
        with pytest.raises(QuorumNotMetError):
            engine.finalize_proposal(ALICE, pid)

    def test_history_uses_engine_clock(self):
        clock = FakeClock()
        engine = make_engine(clock=clock)
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB, CAROL], VoteChoice.FOR)
        clock.advance(90)
        event = engine.finalize_proposal(ALICE, pid)
        entry = engine.proposals(pid).history[-1]
        assert entry["to"] == "FINALIZED"
        assert entry["timestamp"] == event.timestamp == START + 90

    def test_finalize_twice_rejected(self):
        engine = make_engine()
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB, CAROL], VoteChoice.FOR)
        engine.finalize_proposal(ALICE, pid)
        with pytest.raises(AlreadyActedError, match="proposal already finalized"):
            engine.finalize_proposal(ALICE, pid)
        assert engine.treasury.balance == Decimal("50")

    def test_non_holder_cannot_finalize(self):
        engine = make_engine()
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB, CAROL], VoteChoice.FOR)
        with pytest.raises(AccessDeniedError):
            engine.finalize_proposal(OUTSIDER, pid)

    def test_unknown_proposal(self):
        engine = make_engine()
        with pytest.raises(InvalidInputError, match="proposal does not exist"):
            engine.finalize_proposal(ALICE, 7)

    def test_vote_after_finalize_rejected(self):
        engine = make_engine()
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB, CAROL], VoteChoice.FOR)
        engine.finalize_proposal(ALICE, pid)
        with pytest.raises(ProposalLifecycleError, match="proposal already finalized"):
            engine.vote(DAVE, pid, VoteChoice.AGAINST)

    def test_treasury_drained_by_earlier_proposal(self):
        engine = make_engine(treasury_balance=Decimal("100"))
        p1 = propose(engine, amount=Decimal("60"))
        p2 = propose(engine, amount=Decimal("60"))
        cast(engine, p1, [ALICE, BOB, CAROL], VoteChoice.FOR)
        cast(engine, p2, [ALICE, BOB, CAROL], VoteChoice.FOR)

        engine.finalize_proposal(ALICE, p1)
        with pytest.raises(InvalidInputError, match="insufficient treasury balance"):
            engine.finalize_proposal(ALICE, p2)
        assert not engine.proposals(p2).finalized
        assert engine.treasury.balance == Decimal("40")

    def test_payout_hook_receives_recipient_and_amount(self):
        payout = MagicMock()
        engine = make_engine(payout_fn=payout)
        pid = propose(engine, amount=Decimal("25"))
        cast(engine, pid, [ALICE, BOB, CAROL], VoteChoice.FOR)
        engine.finalize_proposal(ALICE, pid)
        payout.assert_called_once_with(RECIPIENT, Decimal("25"))

    def test_failed_payout_rolls_back(self):
        payout = MagicMock(side_effect=RuntimeError("bank offline"))
        engine = make_engine(payout_fn=payout)
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB, CAROL], VoteChoice.FOR)

        with pytest.raises(RuntimeError, match="bank offline"):
            engine.finalize_proposal(ALICE, pid)

        p = engine.proposals(pid)
        assert not p.finalized
        assert p.for_votes == Decimal("600000")
        assert engine.treasury.balance == Decimal("100")
        assert engine.treasury.disbursed_to(RECIPIENT) == Decimal("0")
        assert not any(isinstance(e, FinalizeEvent) for e in engine.events)

        # Retry once the payout path recovers
        payout.side_effect = None
        engine.finalize_proposal(ALICE, pid)
        assert engine.proposals(pid).finalized
        assert engine.treasury.balance == Decimal("50")

    def test_reentrant_finalize_from_payout_rejected(self):
        holder = {}
        attempts = []

        def payout(recipient, amount):
            if not attempts:
                attempts.append(recipient)
                holder["engine"].finalize_proposal(ALICE, 1)

        engine = make_engine(payout_fn=payout)
        holder["engine"] = engine
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB, CAROL], VoteChoice.FOR)

        with pytest.raises(ReentrancyError, match="reentrant call"):
            engine.finalize_proposal(ALICE, pid)
        assert not engine.proposals(pid).finalized
        assert engine.treasury.balance == Decimal("100")

        # Guard is released; a clean retry pays exactly once
        engine.finalize_proposal(ALICE, pid)
        assert engine.treasury.balance == Decimal("50")
        assert engine.treasury.disbursed_to(RECIPIENT) == Decimal("50")

    def test_reentrant_vote_from_payout_rejected(self):
        holder = {}

        def payout(recipient, amount):
            holder["engine"].vote(DAVE, 1, VoteChoice.AGAINST)

        engine = make_engine(payout_fn=payout)
        holder["engine"] = engine
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB, CAROL], VoteChoice.FOR)

        with pytest.raises(ReentrancyError):
            engine.finalize_proposal(ALICE, pid)
        assert not engine.has_voted(DAVE, pid)


# ══════════════════════════════════════════════════════════════════════
#  CANCEL
# ══════════════════════════════════════════════════════════════════════


class TestCancel:
    """cancel_proposal(): Against quorum, no funds move."""

    def test_three_of_five_against_cancels(self):
        engine = make_engine()
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB, CAROL], VoteChoice.AGAINST)

        event = engine.cancel_proposal(DAVE, pid)
        assert isinstance(event, CancelEvent)
        p = engine.proposals(pid)
        assert p.cancelled
        assert p.status == ProposalStatus.CANCELLED
        assert engine.treasury.balance == Decimal("100")

    def test_history_uses_engine_clock(self):
        clock = FakeClock()
        engine = make_engine(clock=clock)
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB, CAROL], VoteChoice.AGAINST)
        clock.advance(45)
        event = engine.cancel_proposal(DAVE, pid)
        history = engine.proposals(pid).history
        assert [h["timestamp"] for h in history] == [START, START + 45]
        assert event.timestamp == START + 45

    def test_finalize_after_cancel_rejected(self):
        engine = make_engine()
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB, CAROL], VoteChoice.AGAINST)
        engine.cancel_proposal(DAVE, pid)
        with pytest.raises(ProposalLifecycleError, match="proposal was cancelled"):
            engine.finalize_proposal(DAVE, pid)

    def test_vote_after_cancel_rejected(self):
        engine = make_engine()
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB, CAROL], VoteChoice.AGAINST)
        engine.cancel_proposal(DAVE, pid)
        with pytest.raises(ProposalLifecycleError, match="proposal was cancelled"):
            engine.vote(DAVE, pid, VoteChoice.FOR)

    def test_against_short_of_quorum(self):
        engine = make_engine()
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB], VoteChoice.AGAINST)
        with pytest.raises(
            QuorumNotMetError, match="against votes must reach quorum to cancel proposal"
        ):
            engine.cancel_proposal(ALICE, pid)
        assert not engine.proposals(pid).cancelled

    def test_cancel_twice_rejected(self):
        engine = make_engine()
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB, CAROL], VoteChoice.AGAINST)
        engine.cancel_proposal(ALICE, pid)
        with pytest.raises(AlreadyActedError, match="proposal already cancelled"):
            engine.cancel_proposal(ALICE, pid)

    def test_cancel_after_finalize_rejected(self):
        engine = make_engine(quorum=Decimal("200000"))
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB], VoteChoice.FOR)
        cast(engine, pid, [CAROL], VoteChoice.AGAINST)
        engine.finalize_proposal(ALICE, pid)
        with pytest.raises(ProposalLifecycleError, match="proposal already finalized"):
            engine.cancel_proposal(CAROL, pid)
        p = engine.proposals(pid)
        assert p.finalized and not p.cancelled

    def test_non_holder_cannot_cancel(self):
        engine = make_engine()
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB, CAROL], VoteChoice.AGAINST)
        with pytest.raises(AccessDeniedError):
            engine.cancel_proposal(OUTSIDER, pid)


# ══════════════════════════════════════════════════════════════════════
#  QUORUM POLICY / WEIGHT MODE
# ══════════════════════════════════════════════════════════════════════


class TestQuorumPolicy:
    """RAW and NET diverge when both sides are large."""

    def _split_vote(self, policy, quorum):
        engine = make_engine(quorum=quorum, quorum_policy=policy)
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB, CAROL], VoteChoice.FOR)
        cast(engine, pid, [DAVE, EVE], VoteChoice.AGAINST)
        return engine, pid

    def test_raw_finalizes_on_for_tally(self):
        engine, pid = self._split_vote(QuorumPolicy.RAW, QUORUM)
        engine.finalize_proposal(ALICE, pid)
        assert engine.proposals(pid).finalized

    def test_net_requires_margin(self):
        engine, pid = self._split_vote(QuorumPolicy.NET, QUORUM)
        assert engine.net_votes(pid) == Decimal("200000")
        with pytest.raises(QuorumNotMetError):
            engine.finalize_proposal(ALICE, pid)

    def test_net_finalizes_with_enough_margin(self):
        engine, pid = self._split_vote("net", Decimal("200000"))
        engine.finalize_proposal(ALICE, pid)
        assert engine.proposals(pid).finalized

    def test_raw_cancel_ignores_for_votes(self):
        engine, pid = self._split_vote(QuorumPolicy.RAW, Decimal("400000"))
        assert engine.ready_to_cancel(pid)

    def test_net_cancel_needs_against_margin(self):
        engine, pid = self._split_vote(QuorumPolicy.NET, Decimal("100000"))
        assert not engine.ready_to_cancel(pid)
        with pytest.raises(QuorumNotMetError):
            engine.cancel_proposal(DAVE, pid)

    def test_unknown_policy_rejected(self):
        with pytest.raises(ConfigurationError):
            make_engine(quorum_policy="weighted")

    def test_zero_quorum_rejected(self):
        with pytest.raises(ConfigurationError):
            make_engine(quorum=Decimal("0"))


class TestSnapshotWeights:
    """SNAPSHOT mode uses balances captured at proposal creation."""

    def test_transfer_after_creation_ignored(self):
        token = make_token()
        engine = make_engine(token=token, weight_mode=WeightMode.SNAPSHOT)
        pid = propose(engine)
        token.transfer(BOB, ALICE, Decimal("100000"))
        engine.vote(ALICE, pid, VoteChoice.FOR)
        assert engine.proposal_for_votes(pid) == SHARE

    def test_new_holder_has_no_snapshot_weight(self):
        token = make_token()
        engine = make_engine(token=token, weight_mode="snapshot")
        pid = propose(engine)
        token.transfer(ALICE, OUTSIDER, Decimal("1000"))
        with pytest.raises(AccessDeniedError):
            engine.vote(OUTSIDER, pid, VoteChoice.FOR)

    def test_live_mode_sees_transfers(self):
        token = make_token()
        engine = make_engine(token=token, weight_mode=WeightMode.LIVE)
        pid = propose(engine)
        token.transfer(BOB, ALICE, Decimal("100000"))
        engine.vote(ALICE, pid, VoteChoice.FOR)
        assert engine.proposal_for_votes(pid) == Decimal("300000")

    def test_failing_snapshot_allocates_nothing(self):
        token = make_token()
        engine = make_engine(token=token, weight_mode=WeightMode.SNAPSHOT)
        token.snapshot = MagicMock(side_effect=RuntimeError("oracle offline"))
        with pytest.raises(RuntimeError):
            propose(engine)
        assert engine.proposal_count == 0
        assert engine.events == []

        del token.snapshot
        assert propose(engine) == 1

    def test_snapshot_needs_snapshot_oracle(self):
        oracle = FixedOracle(SUPPLY, SHARE)
        with pytest.raises(ConfigurationError):
            make_engine(token=oracle, weight_mode=WeightMode.SNAPSHOT)

    def test_unknown_weight_mode_rejected(self):
        with pytest.raises(ConfigurationError):
            make_engine(weight_mode="quadratic")


# ══════════════════════════════════════════════════════════════════════
#  PARTICIPATION / COMMENTS / ACCESSORS
# ══════════════════════════════════════════════════════════════════════


class TestParticipationRate:

    def test_counts_all_choices(self):
        engine = make_engine()
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB], VoteChoice.FOR)
        engine.vote(CAROL, pid, VoteChoice.AGAINST)
        engine.vote(DAVE, pid, VoteChoice.ABSTAIN)
        assert engine.get_participation_rate(pid) == Decimal("80")

    def test_no_votes_is_zero(self):
        engine = make_engine()
        pid = propose(engine)
        assert engine.get_participation_rate(pid) == Decimal("0")

    def test_zero_supply_is_zero(self):
        engine = make_engine(token=FixedOracle(Decimal("0"), Decimal("10")))
        pid = propose(engine)
        engine.vote(ALICE, pid, VoteChoice.FOR)
        assert engine.get_participation_rate(pid) == Decimal("0")

    def test_clamped_to_one_hundred(self):
        engine = make_engine(token=FixedOracle(Decimal("100"), Decimal("80")))
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB], VoteChoice.FOR)
        assert engine.get_participation_rate(pid) == Decimal("100")


class TestAddComment:

    def test_comment_emits_event(self):
        engine = make_engine()
        pid = propose(engine)
        event = engine.add_comment(BOB, pid, "Looks good to me")
        assert isinstance(event, CommentEvent)
        assert engine.events[-1] == event
        assert event.to_dict()["text"] == "Looks good to me"

    @pytest.mark.parametrize("text", ["", "   "])
    def test_empty_comment_rejected(self, text):
        engine = make_engine()
        pid = propose(engine)
        with pytest.raises(InvalidInputError, match="comment cannot be empty"):
            engine.add_comment(BOB, pid, text)

    def test_non_holder_cannot_comment(self):
        engine = make_engine()
        pid = propose(engine)
        with pytest.raises(AccessDeniedError):
            engine.add_comment(OUTSIDER, pid, "spam")

    def test_unknown_proposal(self):
        engine = make_engine()
        with pytest.raises(InvalidInputError, match="proposal does not exist"):
            engine.add_comment(BOB, 3, "hello")

    def test_comment_does_not_touch_tallies(self):
        engine = make_engine()
        pid = propose(engine)
        engine.add_comment(BOB, pid, "hello")
        assert engine.proposals(pid).total_votes == Decimal("0")
        assert not engine.has_voted(BOB, pid)


class TestAccessors:

    def test_proposals_returns_detached_copy(self):
        engine = make_engine()
        pid = propose(engine)
        copy = engine.proposals(pid)
        copy.for_votes = Decimal("999999")
        copy.finalized = True
        assert engine.proposal_for_votes(pid) == Decimal("0")
        assert not engine.proposals(pid).finalized

    def test_unknown_proposal_read(self):
        engine = make_engine()
        with pytest.raises(InvalidInputError):
            engine.proposals(1)

    def test_quorum_token_treasury(self):
        token = make_token()
        engine = make_engine(token=token)
        assert engine.quorum == QUORUM
        assert engine.token is token
        assert engine.treasury.balance == Decimal("100")

    def test_events_in_order(self):
        engine = make_engine()
        pid = propose(engine)
        cast(engine, pid, [ALICE, BOB, CAROL], VoteChoice.FOR)
        engine.finalize_proposal(ALICE, pid)
        kinds = [e.to_dict()["event"] for e in engine.events]
        assert kinds == ["Propose", "Vote", "Vote", "Vote", "Finalize"]

    def test_rejections_emit_nothing(self):
        engine = make_engine()
        pid = propose(engine)
        before = len(engine.events)
        for call in (
            lambda: engine.vote(OUTSIDER, pid),
            lambda: engine.finalize_proposal(ALICE, pid),
            lambda: engine.cancel_proposal(ALICE, pid),
            lambda: engine.add_comment(ALICE, pid, ""),
        ):
            with pytest.raises(GovernanceError):
                call()
        assert len(engine.events) == before

    def test_get_votes(self):
        engine = make_engine()
        pid = propose(engine)
        engine.vote(ALICE, pid, VoteChoice.FOR)
        engine.vote(BOB, pid, VoteChoice.ABSTAIN)
        voters = {r.voter for r in engine.get_votes(pid)}
        assert voters == {ALICE, BOB}

    def test_to_dict_and_repr(self):
        engine = make_engine()
        propose(engine)
        d = engine.to_dict()
        assert d["proposals"]["proposalCount"] == 1
        assert d["quorum"]["policy"] == "RAW"
        assert d["weightMode"] == "LIVE"
        assert "GovernanceEngine" in repr(engine)


class TestTallyInvariants:
    """Tallies always equal the sum of recorded weights."""

    def test_tallies_match_records(self):
        engine = make_engine()
        pid = propose(engine)
        engine.vote(ALICE, pid, VoteChoice.FOR)
        engine.vote(BOB, pid, VoteChoice.AGAINST)
        engine.vote(CAROL, pid, VoteChoice.ABSTAIN)
        engine.vote(DAVE, pid, VoteChoice.FOR)
        with pytest.raises(AlreadyActedError):
            engine.vote(DAVE, pid, VoteChoice.AGAINST)

        records = engine.get_votes(pid)
        by_choice = {c: sum((r.weight for r in records if r.choice == c), Decimal("0"))
                     for c in VoteChoice}
        p = engine.proposals(pid)
        assert p.for_votes == by_choice[VoteChoice.FOR]
        assert p.against_votes == by_choice[VoteChoice.AGAINST]
        assert p.abstain_votes == by_choice[VoteChoice.ABSTAIN]
        assert p.net_votes == p.for_votes - p.against_votes

    def test_terminal_flags_exclusive(self):
        engine = make_engine(quorum=Decimal("200000"))
        p1, p2 = propose(engine), propose(engine)
        cast(engine, p1, [ALICE, BOB], VoteChoice.FOR)
        cast(engine, p2, [ALICE, BOB], VoteChoice.AGAINST)
        engine.finalize_proposal(ALICE, p1)
        engine.cancel_proposal(ALICE, p2)
        for pid in (p1, p2):
            p = engine.proposals(pid)
            assert not (p.finalized and p.cancelled)


class TestFromConfig:

    def test_from_config(self):
        cfg = DAOConfig(governance=GovernanceSectionConfig(
            quorum=Decimal("100"),
            quorum_policy="net",
            vote_weight="snapshot",
        ))
        engine = GovernanceEngine.from_config(make_token(), cfg, clock=FakeClock())
        assert engine.quorum == Decimal("100")
        assert engine.quorum_policy == QuorumPolicy.NET
        assert engine.weight_mode == WeightMode.SNAPSHOT
        assert engine.treasury.balance == Decimal("0")
