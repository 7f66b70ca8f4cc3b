"""
Configuration loader for the company metrics resolver.

Loads all settings from environment variables (.env file).
Validates settings and provides type-safe access.
"""

import os
from typing import Dict, List

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() not in ("false", "0", "no", "off")


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


class Config:
    """
    Centralized configuration for the resolver.

    All values loaded from environment variables - NO SECRETS IN CODE.
    """

    # ===== LinkedIn session =====
    LI_AT: str = os.getenv("LI_AT") or os.getenv("LINKEDIN_LI_AT", "")
    # Optional companion cookies sent alongside li_at
    COMPANION_COOKIES: Dict[str, str] = {
        name: os.getenv(env_name, "")
        for name, env_name in (
            ("bcookie", "LI_BCOOKIE"),
            ("bscookie", "LI_BSCOOKIE"),
            ("liap", "LI_LIAP"),
            ("li_rm", "LI_RM"),
            ("lidc", "LI_LIDC"),
            ("li_mc", "LI_MC"),
            ("li_sugr", "LI_SUGR"),
        )
    }
    # Netscape-format cookie export (optional, supplies expiry for health checks)
    LINKEDIN_COOKIE_FILE: str = os.getenv("LINKEDIN_COOKIE_FILE", "")
    USER_AGENT: str = os.getenv(
        "PLAYWRIGHT_UA",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
    )

    # ===== Browser =====
    HEADLESS: bool = _env_bool("HEADLESS", True)
    STORAGE_STATE_PATH: str = os.getenv("STORAGE_STATE_PATH", "./storageState.json")
    NAVIGATION_TIMEOUT_MS: int = _env_int("NAVIGATION_TIMEOUT_MS", 45000)

    # ===== Timeouts & retries =====
    REQUEST_TIMEOUT_SECONDS: float = _env_float(
        "REQUEST_TIMEOUT_SECONDS", _env_int("VOYAGER_TIMEOUT_MS", 12000) / 1000.0
    )
    HTTP_MAX_ATTEMPTS: int = _env_int("HTTP_MAX_ATTEMPTS", 2)
    NAVIGATION_MAX_ATTEMPTS: int = _env_int("NAVIGATION_MAX_ATTEMPTS", 3)
    RETRY_BACKOFF_SECONDS: float = _env_float("RETRY_BACKOFF_SECONDS", 2.0)

    # ===== Pacing (human cadence) =====
    PACING_MIN_SECONDS: float = _env_float("PACING_MIN_SECONDS", 1.0)
    PACING_MAX_SECONDS: float = _env_float("PACING_MAX_SECONDS", 3.0)
    STRATEGY_PAUSE_SECONDS: float = _env_float("STRATEGY_PAUSE_SECONDS", 1.5)

    # ===== Heuristics =====
    # Totals below this are treated as noise (the upstream returns 0/1 placeholders)
    MIN_PLAUSIBLE_TOTAL: int = _env_int("MIN_PLAUSIBLE_TOTAL", 1)

    # ===== Strategy selection =====
    STRATEGY_MODE: str = os.getenv("STRATEGY_MODE", "auto")
    SKIP_RENDERED: bool = _env_bool("SKIP_RENDERED", False)

    # ===== Logging =====
    DEBUG_MODE: bool = _env_bool("DEBUG_MODE", False) or _env_bool("DEBUG_SCRAPER", False)
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "simple")

    @classmethod
    def has_credentials(cls) -> bool:
        return bool(cls.LI_AT or cls.LINKEDIN_COOKIE_FILE)

    @classmethod
    def validate(cls) -> List[str]:
        """
        Check configuration consistency.

        Nothing here is fatal: without credentials only the rendered
        strategy runs. Returns human-readable warnings.
        """
        warnings = []
        if not cls.has_credentials():
            warnings.append(
                "No LinkedIn session configured (LI_AT / LINKEDIN_COOKIE_FILE); "
                "structured and semi-structured strategies are disabled."
            )
        if cls.PACING_MAX_SECONDS < cls.PACING_MIN_SECONDS:
            warnings.append("PACING_MAX_SECONDS is below PACING_MIN_SECONDS; bounds will be swapped.")
        if cls.REQUEST_TIMEOUT_SECONDS <= 0:
            warnings.append("REQUEST_TIMEOUT_SECONDS must be positive.")
        if cls.MIN_PLAUSIBLE_TOTAL < 0:
            warnings.append("MIN_PLAUSIBLE_TOTAL is negative; every total will be accepted.")
        return warnings

    @classmethod
    def get_summary(cls) -> Dict[str, object]:
        """Configuration snapshot with secrets masked (for --debug output)."""
        return {
            "has_li_at": bool(cls.LI_AT),
            "cookie_file": cls.LINKEDIN_COOKIE_FILE or None,
            "headless": cls.HEADLESS,
            "request_timeout_seconds": cls.REQUEST_TIMEOUT_SECONDS,
            "navigation_timeout_ms": cls.NAVIGATION_TIMEOUT_MS,
            "pacing_seconds": (cls.PACING_MIN_SECONDS, cls.PACING_MAX_SECONDS),
            "strategy_mode": cls.STRATEGY_MODE,
            "skip_rendered": cls.SKIP_RENDERED,
            "min_plausible_total": cls.MIN_PLAUSIBLE_TOTAL,
        }
