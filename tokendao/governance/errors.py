"""
Governance exceptions.

Every error carries a stable ``reason`` string (see tokendao.constants,
REASON_*) that callers match on exactly.
"""

from ..exceptions import DAOException


class GovernanceError(DAOException):
    """Base governance exception."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class AccessDeniedError(GovernanceError):
    """Caller holds zero voting weight."""


class AlreadyActedError(GovernanceError):
    """Duplicate vote, finalize or cancel."""


class QuorumNotMetError(GovernanceError):
    """Insufficient For (finalize) or Against (cancel) weight."""


class InvalidInputError(GovernanceError):
    """Bad choice, bad amount, unknown proposal or past deadline at creation."""


class VotingClosedError(GovernanceError):
    """Vote cast after the proposal's deadline."""


class ProposalLifecycleError(GovernanceError):
    """Raised on illegal state transitions."""


class ReentrancyError(GovernanceError):
    """Entry point invoked while another is still running."""
