"""
tokendao dao_* RPC Methods

Governance read accessors and write entry points over JSON-RPC.
Amounts and tallies are returned as decimal strings.
"""

from typing import Any, Dict, Optional, Union

from ..server import RPCModule, rpc_method, RPCError, RPCErrorCode
from ...governance import GovernanceEngine


def _proposal_id(value: Union[int, str]) -> int:
    """Accept an int or a decimal / 0x-hex string."""
    if isinstance(value, bool):
        raise RPCError(RPCErrorCode.INVALID_PARAMS, f"Invalid proposal id: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16) if value.lower().startswith("0x") else int(value)
        except ValueError:
            pass
    raise RPCError(RPCErrorCode.INVALID_PARAMS, f"Invalid proposal id: {value!r}")


class DAOModule(RPCModule):
    """
    Treasury governance RPC methods (dao_* namespace).

    The module context is the GovernanceEngine instance.
    """

    namespace = "dao"

    @property
    def _engine(self) -> GovernanceEngine:
        if self.context is None:
            raise RPCError(RPCErrorCode.INTERNAL_ERROR, "Governance engine not available")
        return self.context

    # ── Reads ─────────────────────────────────────────────────────────

    @rpc_method
    async def proposalCount(self) -> int:
        return self._engine.proposal_count

    @rpc_method
    async def proposals(self, proposalId: Union[int, str]) -> Dict[str, Any]:
        """Full proposal record."""
        return self._engine.proposals(_proposal_id(proposalId)).to_dict()

    @rpc_method
    async def proposalForVotes(self, proposalId: Union[int, str]) -> str:
        return str(self._engine.proposal_for_votes(_proposal_id(proposalId)))

    @rpc_method
    async def proposalAgainstVotes(self, proposalId: Union[int, str]) -> str:
        return str(self._engine.proposal_against_votes(_proposal_id(proposalId)))

    @rpc_method
    async def proposalAbstainVotes(self, proposalId: Union[int, str]) -> str:
        return str(self._engine.proposal_abstain_votes(_proposal_id(proposalId)))

    @rpc_method
    async def netVotes(self, proposalId: Union[int, str]) -> str:
        return str(self._engine.net_votes(_proposal_id(proposalId)))

    @rpc_method
    async def hasVoted(self, address: str, proposalId: Union[int, str]) -> bool:
        return self._engine.has_voted(address, _proposal_id(proposalId))

    @rpc_method
    async def getVoteChoice(self, address: str, proposalId: Union[int, str]) -> Optional[int]:
        """Wire code of the recorded choice (1 / -1 / 2), or null."""
        choice = self._engine.get_vote_choice(address, _proposal_id(proposalId))
        return int(choice) if choice is not None else None

    @rpc_method
    async def quorum(self) -> str:
        return str(self._engine.quorum)

    @rpc_method
    async def token(self) -> Dict[str, Any]:
        token = self._engine.token
        if hasattr(token, "to_dict"):
            return token.to_dict()
        return {"totalSupply": str(token.total_supply)}

    @rpc_method
    async def treasuryBalance(self) -> str:
        return str(self._engine.treasury.balance)

    @rpc_method
    async def getParticipationRate(self, proposalId: Union[int, str]) -> str:
        """Percentage of total supply that voted, 0 to 100."""
        return str(self._engine.get_participation_rate(_proposal_id(proposalId)))

    # ── Writes ────────────────────────────────────────────────────────

    @rpc_method
    async def createProposal(
        self,
        creator: str,
        name: str,
        description: str,
        amount: Union[int, str],
        recipient: str,
        deadline: float = 0,
    ) -> int:
        """
        Returns:
            The new proposal id
        """
        return self._engine.create_proposal(
            creator, name, description, amount, recipient, deadline
        )

    @rpc_method
    async def vote(
        self,
        voter: str,
        proposalId: Union[int, str],
        choice: Union[int, bool, str] = 1,
    ) -> Dict[str, Any]:
        """
        Cast a vote. *choice* is a wire code (1 / -1 / 2), a choice name,
        or a bool (true = For, false = Against); omitted means For.
        """
        return self._engine.vote(voter, _proposal_id(proposalId), choice).to_dict()

    @rpc_method
    async def finalizeProposal(self, caller: str, proposalId: Union[int, str]) -> Dict[str, Any]:
        return self._engine.finalize_proposal(caller, _proposal_id(proposalId)).to_dict()

    @rpc_method
    async def cancelProposal(self, caller: str, proposalId: Union[int, str]) -> Dict[str, Any]:
        return self._engine.cancel_proposal(caller, _proposal_id(proposalId)).to_dict()

    @rpc_method
    async def addComment(self, author: str, proposalId: Union[int, str], text: str) -> Dict[str, Any]:
        return self._engine.add_comment(author, _proposal_id(proposalId), text).to_dict()
