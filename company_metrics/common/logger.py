"""
Centralized logging configuration for the company metrics resolver.

Provides structured logging with run_id and strategy tagging so the
interleaved output of concurrent metric cascades stays readable.
"""

import logging
import os
import sys
from typing import Optional


# Global debug mode flag - can be set via environment or CLI --debug
_GLOBAL_DEBUG_MODE = (
    os.getenv("DEBUG_MODE", "false").lower() == "true"
    or os.getenv("DEBUG_SCRAPER", "false").lower() == "true"
)


def set_global_debug_mode(enabled: bool) -> None:
    """Set global debug mode (used by CLI --debug)."""
    global _GLOBAL_DEBUG_MODE
    _GLOBAL_DEBUG_MODE = enabled


def is_debug_mode() -> bool:
    """Check if debug mode is enabled globally."""
    return _GLOBAL_DEBUG_MODE


class ResolutionLogger:
    """
    Logger for one resolution run.

    Adds contextual information like run_id and strategy to all log messages.
    """

    def __init__(
        self,
        name: str,
        run_id: Optional[str] = None,
        strategy: Optional[str] = None,
        debug_mode: Optional[bool] = None
    ):
        """
        Args:
            name: Logger name (usually __name__)
            run_id: Optional run identifier for correlation
            strategy: Optional strategy / metric tag
            debug_mode: If True, enables DEBUG level for this logger.
                       If None, uses global debug mode setting.
        """
        self.logger = logging.getLogger(name)
        self.run_id = run_id
        self.strategy = strategy

        self._debug_mode = debug_mode if debug_mode is not None else is_debug_mode()
        if self._debug_mode:
            self.logger.setLevel(logging.DEBUG)

    def bind(self, strategy: str) -> "ResolutionLogger":
        """Same run, different strategy tag."""
        return ResolutionLogger(self.logger.name, self.run_id, strategy, self._debug_mode)

    def _format_message(self, message: str) -> str:
        prefix_parts = []
        if self.run_id:
            prefix_parts.append(f"[run:{self.run_id[:8]}]")
        if self.strategy:
            prefix_parts.append(f"[{self.strategy}]")

        if prefix_parts:
            return f"{' '.join(prefix_parts)} {message}"
        return message

    def debug(self, message: str, **kwargs):
        self.logger.debug(self._format_message(message), **kwargs)

    def info(self, message: str, **kwargs):
        self.logger.info(self._format_message(message), **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(self._format_message(message), **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(self._format_message(message), **kwargs)


def setup_logging(level: str = "INFO", format: str = "simple") -> None:
    """
    Configure global logging settings.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format: Log format ("simple" or "json")
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # stderr keeps stdout clean for the CLI's JSON output
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)

    if format == "json":
        formatter = logging.Formatter(
            '{"time": "%(asctime)s", "level": "%(levelname)s", "name": "%(name)s", "message": "%(message)s"}'
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    # Third-party chatter
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))
    logging.getLogger("httpcore").setLevel(max(log_level, logging.WARNING))


def get_logger(
    name: str,
    run_id: Optional[str] = None,
    strategy: Optional[str] = None,
    debug_mode: Optional[bool] = None
) -> ResolutionLogger:
    """Get a run-scoped logger instance."""
    return ResolutionLogger(name, run_id, strategy, debug_mode)
