"""
tokendao Logging
================

Every module obtains its logger through ``get_logger(__name__)``. The first
call configures the root logger once for the whole process:

  - console output through ``rich`` with governance-aware highlighting
    (or a plain stream handler when highlighting is switched off in .env)
  - optional rotating file output under ``logs/tokendao.log``

Proposal names, descriptions and comments are free text supplied by token
holders, so every handler formats through ``TerminalSafeFormatter``.

Usage:
    >>> from tokendao.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Proposal #1 created")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_LEVEL,
    LOG_FORMAT,
    LOG_DATE_FORMAT,
    LOG_MAX_FILE_SIZE,
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_FILE_OUTPUT,
)


PROJECT_ROOT = Path(__file__).parent.parent
LOG_FILE_PATH = PROJECT_ROOT / "logs" / "tokendao.log"

DAO_THEME = Theme(
    {
        "dao.address":        "cyan",
        "dao.choice_for":     "bold green",
        "dao.choice_against": "bold red",
        "dao.choice_abstain": "bold dim",
        "dao.level_critical": "bold red reverse",
        "dao.level_error":    "bold red",
        "dao.level_warning":  "bold yellow",
        "dao.level_info":     "bold green",
        "dao.level_debug":    "bold dim",
        "dao.logger_name":    "magenta",
        "dao.proposal":       "bold magenta",
        "dao.status":         "bold yellow",
        "dao.amount":         "bold blue",
        "dao.timestamp":      "bold cyan",
    }
)


# ══════════════════════════════════════════════════════════════════════
#  FORMATTING
# ══════════════════════════════════════════════════════════════════════

class TerminalSafeFormatter(logging.Formatter):
    """
    Formatter that drops terminal escape sequences and control characters.

    A proposal titled with ANSI codes or an embedded carriage return must
    not be able to recolour the console or overwrite an earlier log line.
    """

    _ESCAPES = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b[@-Z\\-_]")
    # C0 controls and DEL, keeping tab and newline
    _CONTROLS = re.compile(r"[\x00-\x08\x0B-\x1F\x7F]")

    @classmethod
    def sanitize(cls, text: str) -> str:
        if not text:
            return text
        return cls._CONTROLS.sub("", cls._ESCAPES.sub("", text))

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class DAOLogHighlighter(RegexHighlighter):
    """Colours proposal ids, vote choices, lifecycle states and addresses."""

    base_style = "dao."
    highlights = [
        r"(?P<timestamp>^(.*?)UTC)",
        r"(?P<level_critical>\bCRITICAL\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_warning>\bWARNING\b)",
        r"(?P<level_info>\bINFO\b)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"\-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<proposal>Proposal #\d+)",
        r"(?P<status>\b(ACTIVE|FINALIZED|CANCELLED)\b)",
        r"(?P<choice_for>\bFOR\b)",
        r"(?P<choice_against>\bAGAINST\b)",
        r"(?P<choice_abstain>\bABSTAIN\b)",
        r"(?P<address>\b0x[0-9a-fA-F]{6,}\b)",
        r"(?P<amount>\b(?:weight|balance)=[\d.]+)",
    ]


def _warn(message: str):
    # Logging is not up yet, so report straight to stderr
    print(f"tokendao.logger - {message}", file=sys.stderr)


def _checked_format(log_format: str) -> str:
    """Return *log_format* if a probe record formats cleanly, else the default."""
    default = str(LOG_FORMAT.default())
    if not log_format:
        return default
    probe = logging.LogRecord("probe", logging.INFO, "", 0, "probe", (), None)
    try:
        rendered = logging.Formatter(fmt=str(log_format)).format(probe)
    except (ValueError, KeyError, TypeError) as e:
        _warn(f"invalid LOG_FORMAT ({e}), using default")
        return default
    if "%(" in rendered:
        _warn("LOG_FORMAT left unformatted specifiers, using default")
        return default
    return str(log_format)


def _checked_date_format(date_format: str) -> str:
    """Return *date_format* if strftime accepts it and it contains a directive."""
    default = str(LOG_DATE_FORMAT.default())
    if not date_format or "%" not in str(date_format):
        return default
    try:
        time.strftime(str(date_format))
    except ValueError:
        _warn("invalid LOG_DATE_FORMAT, using default")
        return default
    return str(date_format)


# ══════════════════════════════════════════════════════════════════════
#  MANAGER
# ══════════════════════════════════════════════════════════════════════

class LogManager:
    """
    Process-wide logging setup, created once (singleton).

    ``configure`` is idempotent; ``reconfigure`` replaces the handlers, e.g.
    after dao.toml has been loaded.
    """

    _instance: Optional["LogManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._configured = False
        return cls._instance

    @property
    def is_configured(self) -> bool:
        return self._configured

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Install handlers on the root logger.

        Args:
            log_level:      Level name; defaults to LOG_LEVEL from .env
            log_file:       Log file path; defaults to logs/tokendao.log
            console_output: Emit to the terminal
            file_output:    Emit to a rotating file; defaults to LOG_FILE_OUTPUT
        """
        with self._lock:
            if self._configured:
                return

            level = getattr(logging, str(log_level or LOG_LEVEL).upper(), logging.INFO)
            formatter = TerminalSafeFormatter(
                fmt=_checked_format(LOG_FORMAT),
                datefmt=_checked_date_format(LOG_DATE_FORMAT) + " UTC",
            )
            formatter.converter = time.gmtime

            handlers: List[logging.Handler] = []
            if console_output:
                handlers.append(self._console_handler())
            if file_output is None:
                file_output = bool(LOG_FILE_OUTPUT)
            if file_output:
                handlers.append(self._file_handler(log_file or LOG_FILE_PATH))

            root = logging.getLogger()
            root.setLevel(level)
            root.handlers.clear()
            for handler in handlers:
                handler.setLevel(level)
                handler.setFormatter(formatter)
                root.addHandler(handler)

            self._configured = True

    @staticmethod
    def _console_handler() -> logging.Handler:
        if not LOG_CONSOLE_HIGHLIGHTING:
            return logging.StreamHandler(sys.stdout)
        return RichHandler(
            console=Console(theme=DAO_THEME, highlight=False),
            highlighter=DAOLogHighlighter(),
            keywords=[],
            rich_tracebacks=True,
            show_time=False,
            show_level=False,
            show_path=False,
            markup=False,
        )

    @staticmethod
    def _file_handler(path: Path) -> logging.Handler:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.handlers.RotatingFileHandler(
            filename=str(path),
            maxBytes=LOG_MAX_FILE_SIZE,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )

    def reconfigure(self, **kwargs) -> None:
        """Discard the current handlers and configure again."""
        with self._lock:
            self._configured = False
        self.configure(**kwargs)

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Logger for *name*, configuring the logging system on first use."""
    return _manager.get_logger(name)


def configure_logging(level: Optional[str] = None, file_output: Optional[bool] = None) -> None:
    """Re-apply logging settings, typically from a loaded DAOConfig."""
    _manager.reconfigure(log_level=level, file_output=file_output)


_manager.configure()
