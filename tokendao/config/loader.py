"""
tokendao TOML Configuration Loader

Loads the governance and logging sections of dao.toml with environment
variable overrides (dataclass + from_dict + from_file).

Environment variable mapping:
    [governance] quorum         → DAO_QUORUM
    [governance] quorum_policy  → DAO_QUORUM_POLICY
    [governance] vote_weight    → DAO_VOTE_WEIGHT
    [logging] level             → DAO_LOG_LEVEL
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import GOVERNANCE_QUORUM_POLICIES, GOVERNANCE_WEIGHT_MODES, parse_bool
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Half of a 1,000,000 supply plus one base unit
DEFAULT_QUORUM = Decimal("500000.000000000000000001")

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _to_decimal(value: Any, name: str) -> Decimal:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None


def _to_bool(value: Any, name: str) -> bool:
    value = parse_bool(value)
    if not isinstance(value, bool):
        raise ConfigurationError(f"{name} must be true or false, got {value!r}")
    return value


# ---------------------------------------------------------------------------
# Section dataclasses, one per [section] of dao.example.toml
# ---------------------------------------------------------------------------


@dataclass
class GovernanceSectionConfig:
    """[governance] section."""
    quorum: Decimal = DEFAULT_QUORUM
    quorum_policy: str = "raw"
    vote_weight: str = "live"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceSectionConfig":
        return cls(
            quorum=_to_decimal(data.get("quorum", DEFAULT_QUORUM), "quorum"),
            quorum_policy=str(data.get("quorum_policy", "raw")).lower(),
            vote_weight=str(data.get("vote_weight", "live")).lower(),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("DAO_QUORUM"):
            self.quorum = _to_decimal(v, "DAO_QUORUM")
        if v := os.environ.get("DAO_QUORUM_POLICY"):
            self.quorum_policy = v.strip().lower()
        if v := os.environ.get("DAO_VOTE_WEIGHT"):
            self.vote_weight = v.strip().lower()


@dataclass
class LoggingSectionConfig:
    """[logging] section."""
    level: str = "INFO"
    file_output: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingSectionConfig":
        return cls(
            level=str(data.get("level", "INFO")).upper(),
            file_output=_to_bool(data.get("file_output", False), "file_output"),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("DAO_LOG_LEVEL"):
            self.level = v.strip().upper()


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


@dataclass
class DAOConfig:
    """
    Unified governance configuration.

    Environment variables take precedence over TOML values.
    """
    governance: GovernanceSectionConfig = field(default_factory=GovernanceSectionConfig)
    logging: LoggingSectionConfig = field(default_factory=LoggingSectionConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DAOConfig":
        """Create DAOConfig from a parsed TOML dict."""
        return cls(
            governance=GovernanceSectionConfig.from_dict(data.get("governance", {})),
            logging=LoggingSectionConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "DAOConfig":
        """
        Load configuration from a TOML file.

        A missing file yields defaults (with env overrides); a malformed
        one raises ConfigurationError.
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            try:
                raw = tomli.load(f)
            except tomli.TOMLDecodeError as e:
                raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.governance.apply_env()
        self.logging.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        gov = self.governance
        if not gov.quorum.is_finite() or gov.quorum <= 0:
            raise ConfigurationError("quorum must be > 0")
        if gov.quorum_policy not in GOVERNANCE_QUORUM_POLICIES:
            raise ConfigurationError(f"Invalid quorum_policy: {gov.quorum_policy}")
        if gov.vote_weight not in GOVERNANCE_WEIGHT_MODES:
            raise ConfigurationError(f"Invalid vote_weight: {gov.vote_weight}")
        if self.logging.level not in _LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.logging.level}")
        return True

    # --- logging ----------------------------------------------------------

    def apply_logging(self) -> None:
        """Re-apply the [logging] section to the process-wide log setup."""
        from ..logger import configure_logging
        configure_logging(level=self.logging.level, file_output=self.logging.file_output)

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "governance": {
                "quorum": str(self.governance.quorum),
                "quorum_policy": self.governance.quorum_policy,
                "vote_weight": self.governance.vote_weight,
            },
            "logging": {
                "level": self.logging.level,
                "file_output": self.logging.file_output,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> DAOConfig:
    """
    Load and validate governance configuration.

    Resolution order:
        1. Explicit *path* argument
        2. DAO_CONFIG env var
        3. ./dao.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("DAO_CONFIG", "dao.toml")

    cfg = DAOConfig.from_file(path)
    cfg.validate()
    return cfg
