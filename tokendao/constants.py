"""
tokendao Constants

Logger settings read from .env, vote wire codes, and the rejection reasons
returned by the governance engine.
"""

from decimal import Decimal
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# ==================================================================================
# GOVERNANCE CONSTANTS
# ==================================================================================
# Wire codes of the tri-state vote entry point
GOVERNANCE_VOTE_FOR = 1
GOVERNANCE_VOTE_AGAINST = -1
GOVERNANCE_VOTE_ABSTAIN = 2

# Sentinel for "no voting deadline"
GOVERNANCE_NO_DEADLINE = 0

# Participation rate is reported as a percentage clamped to this range
GOVERNANCE_PARTICIPATION_MIN = Decimal("0")
GOVERNANCE_PARTICIPATION_MAX = Decimal("100")

GOVERNANCE_QUORUM_POLICIES = ("raw", "net")
GOVERNANCE_WEIGHT_MODES = ("live", "snapshot")


# ==================================================================================
# GOVERNANCE REVERT REASONS
# ==================================================================================
# Callers and tests match on these strings exactly. Do not reword.
REASON_NOT_TOKEN_HOLDER = "must be token holder"
REASON_INVALID_AMOUNT = "invalid amount"
REASON_INSUFFICIENT_TREASURY = "insufficient treasury balance"
REASON_INVALID_RECIPIENT = "invalid recipient"
REASON_INVALID_DEADLINE = "deadline must be in the future or zero for no deadline"
REASON_UNKNOWN_PROPOSAL = "proposal does not exist"
REASON_ALREADY_VOTED = "already voted"
REASON_DEADLINE_PASSED = "voting deadline has passed"
REASON_INVALID_CHOICE = "invalid choice"
REASON_FINALIZE_QUORUM = "must reach quorum to finalize proposal"
REASON_CANCEL_QUORUM = "against votes must reach quorum to cancel proposal"
REASON_ALREADY_FINALIZED = "proposal already finalized"
REASON_ALREADY_CANCELLED = "proposal already cancelled"
REASON_WAS_CANCELLED = "proposal was cancelled"
REASON_EMPTY_COMMENT = "comment cannot be empty"
REASON_REENTRANT_CALL = "reentrant call"

# ==================================================================================
# .env SETTINGS
# ==================================================================================
class ConfigString(str):
    """A setting read from .env that remembers its built-in default."""

    def __new__(cls, value, default):
        obj = super().__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default


class ConfigBool(int):
    """Boolean setting read from .env; behaves as 0/1 and remembers its default."""

    def __new__(cls, value, default):
        obj = super().__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return repr(bool(self))

    __str__ = __repr__

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__


def parse_bool(value):
    """Turn "true" / "false" (any casing) into a bool; pass anything else through."""
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return value


def _setting(key: str):
    default = LOGGER_DEFAULTS[key]
    raw = _config.get(key)
    # dotenv_values maps a bare "KEY" line to None; treat it as unset
    value = default if raw is None else raw
    if isinstance(parse_bool(default), bool):
        parsed = parse_bool(value)
        if not isinstance(parsed, bool):
            parsed = parse_bool(default)
        return ConfigBool(parsed, parse_bool(default))
    return ConfigString(value, default)


LOG_LEVEL = _setting('LOG_LEVEL')
LOG_FORMAT = _setting('LOG_FORMAT')
LOG_DATE_FORMAT = _setting('LOG_DATE_FORMAT')
LOG_CONSOLE_HIGHLIGHTING = _setting('LOG_CONSOLE_HIGHLIGHTING')
LOG_FILE_OUTPUT = _setting('LOG_FILE_OUTPUT')
