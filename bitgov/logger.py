"""
BitGov Logging
==============

One process-wide logging setup for BitGov: a themed ``rich`` console
handler that colours proposals, heights and amounts, and an optional
rotating file under ``logs/``. Every record passes through
:class:`TerminalSafeFormatter`, since proposal titles are caller-supplied.

    >>> from bitgov.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Proposal #0 created")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_DATE_FORMAT,
    LOG_FILE_OUTPUT,
    LOG_FORMAT,
    LOG_LEVEL,
    LOG_MAX_FILE_SIZE,
)

LOG_FILE_PATH = Path(__file__).parent.parent / "logs" / "bitgov.log"

GOVERNANCE_THEME = Theme({
    "bitgov.amount":         "bold yellow",
    "bitgov.arrow":          "bold yellow",
    "bitgov.failed":         "bold red",
    "bitgov.height":         "bold dim",
    "bitgov.level_critical": "bold red reverse",
    "bitgov.level_debug":    "bold dim",
    "bitgov.level_error":    "bold red",
    "bitgov.level_info":     "bold green",
    "bitgov.level_warning":  "bold yellow",
    "bitgov.logger_name":    "magenta",
    "bitgov.passed":         "bold green",
    "bitgov.proposal":       "bold magenta",
    "bitgov.timestamp":      "bold cyan",
})


def _report(problem: str) -> None:
    # Logging is not up yet, so complaints about its settings go to stderr
    print(f"{time.strftime('%Y-%m-%dT%H:%M:%S')} bitgov.logger: {problem}", file=sys.stderr)


class LogManager:
    """Singleton owning the root logger's handlers."""

    _instance: Optional["LogManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._configured = False
                    cls._instance = instance
        return cls._instance

    # ── Settings validation ───────────────────────────────────────────

    @staticmethod
    def validate_log_format(log_format: str) -> str:
        """Return *log_format* if a sample record renders with it, else LOG_FORMAT's default."""
        fallback = str(LOG_FORMAT.default())
        if not log_format:
            return fallback
        sample = logging.LogRecord("bitgov", logging.INFO, "", 0, "sample", (), None)
        try:
            logging.Formatter(fmt=str(log_format)).format(sample)
        except (ValueError, KeyError, TypeError) as e:
            _report(f"unusable LOG_FORMAT {log_format!r} ({e}), using default")
            return fallback
        return str(log_format)

    @staticmethod
    def validate_date_format(date_format: str) -> str:
        """Return *date_format* if it holds a strftime directive and renders, else the default."""
        fallback = str(LOG_DATE_FORMAT.default())
        if not date_format or "%" not in str(date_format):
            if date_format:
                _report(f"LOG_DATE_FORMAT {date_format!r} has no directives, using default")
            return fallback
        try:
            time.strftime(str(date_format), time.gmtime(0))
        except ValueError as e:
            _report(f"unusable LOG_DATE_FORMAT {date_format!r} ({e}), using default")
            return fallback
        return str(date_format)

    # ── Handlers ──────────────────────────────────────────────────────

    @staticmethod
    def _console_handler() -> logging.Handler:
        if not LOG_CONSOLE_HIGHLIGHTING:
            return logging.StreamHandler(sys.stdout)
        return RichHandler(
            console=Console(theme=GOVERNANCE_THEME, highlight=False),
            highlighter=BitGovLogHighlighter(),
            keywords=[],
            rich_tracebacks=True,
            show_path=False,
            show_time=False,
            show_level=False,
            markup=False,
        )

    @staticmethod
    def _file_handler(log_file: Path) -> logging.Handler:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        return logging.handlers.RotatingFileHandler(
            filename=str(log_file),
            maxBytes=LOG_MAX_FILE_SIZE,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Attach handlers to the root logger. Only the first call has an effect.

        Args:
            log_level:      Level name; defaults to LOG_LEVEL.
            log_file:       Rotating log path; defaults to logs/bitgov.log.
            console_output: Attach the console handler.
            file_output:    Attach the file handler; defaults to LOG_FILE_OUTPUT.
        """
        with self._lock:
            if self._configured:
                return

            level = getattr(logging, str(log_level or LOG_LEVEL).upper(), logging.INFO)
            formatter = TerminalSafeFormatter(
                fmt=self.validate_log_format(LOG_FORMAT),
                datefmt=self.validate_date_format(LOG_DATE_FORMAT) + " UTC",
            )
            formatter.converter = time.gmtime

            handlers = []
            if console_output:
                handlers.append(self._console_handler())
            if bool(LOG_FILE_OUTPUT) if file_output is None else file_output:
                handlers.append(self._file_handler(log_file or LOG_FILE_PATH))

            root = logging.getLogger()
            root.setLevel(level)
            for handler in handlers:
                handler.setLevel(level)
                handler.setFormatter(formatter)
                root.addHandler(handler)

            self._configured = True

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)

    @property
    def is_configured(self) -> bool:
        return self._configured


class TerminalSafeFormatter(logging.Formatter):
    """Formatter that drops ANSI escapes and control characters (CWE-117)."""

    _ANSI = r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b[@-Z\\-_]"
    _CONTROL = r"[\x00-\x08\x0B-\x1F\x7F]"  # keeps \t and \n, drops \r

    @classmethod
    def sanitize(cls, text: str) -> str:
        if not text:
            return text
        return re.sub(cls._CONTROL, "", re.sub(cls._ANSI, "", text))

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class BitGovLogHighlighter(RegexHighlighter):
    """Colours governance log lines."""

    base_style = "bitgov."
    highlights = [
        r"(?P<arrow>-->|<--|→)",
        r"(?P<level_critical>\bCRITICAL\b)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_info>\bINFO\b)",
        r"(?P<level_warning>\bWARNING\b)",
        r"-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<proposal>Proposal #\d+)",
        r"(?P<height>\bheight=\d+)",
        r"(?P<amount>\bamount=\d+)",
        r"(?P<passed>\bPASSED\b)",
        r"(?P<failed>\bFAILED\b)",
        r"(?P<timestamp>^.*?UTC)",
    ]


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Module-level accessor; configures logging on first use."""
    return _manager.get_logger(name)


_manager.configure()
