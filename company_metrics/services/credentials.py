"""
LinkedIn credential provider.

The resolver only reads credentials: it builds request headers and browser
cookies from a session that something else (a person exporting cookies, a
login job) keeps fresh. Nothing here writes, refreshes or persists them.

Sources, merged in order (later wins):
- Netscape-format cookie file exported from a browser (LINKEDIN_COOKIE_FILE)
- LI_AT / LINKEDIN_LI_AT and companion LI_* environment variables
"""

import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from company_metrics.common.config import Config

logger = logging.getLogger(__name__)

REQUIRED_COOKIES = ["li_at"]
OPTIONAL_COOKIES = ["bcookie", "bscookie", "liap", "li_rm", "lidc", "li_mc", "li_sugr"]

LINKEDIN_COOKIE_DOMAIN = ".linkedin.com"


@dataclass(frozen=True)
class AuthHeaders:
    """Header material for one outbound request."""
    cookie: str
    anti_forgery_token: str
    user_agent: str


def generate_csrf_token() -> str:
    """Fresh anti-forgery token in LinkedIn's ajax:<hex> form."""
    return f"ajax:{secrets.token_hex(8)}"


def load_cookie_file(path: str) -> Dict[str, Dict[str, object]]:
    """
    Parse a Netscape-format cookie file.

    Netscape format: domain  flag  path  secure  expiry  name  value
    Lines starting with # are comments (except #HttpOnly_ prefixed rows).
    Empty lines are skipped.

    Returns:
        name -> {"value": str, "expires": int}; expires 0 means session cookie
    """
    cookie_file = Path(path)
    if not cookie_file.exists():
        raise FileNotFoundError(f"Cookie file not found: {path}")

    cookies: Dict[str, Dict[str, object]] = {}
    for line in cookie_file.read_text().splitlines():
        line = line.strip()
        if line.startswith("#HttpOnly_"):
            line = line[len("#HttpOnly_"):]
        elif not line or line.startswith("#"):
            continue
        parts = line.split("\t")
        if len(parts) < 7:
            continue
        domain, name, value = parts[0], parts[5], parts[6]
        if "linkedin.com" not in domain:
            continue
        expires = int(parts[4]) if parts[4].isdigit() else 0
        cookies[name] = {"value": value, "expires": expires}

    logger.info(f"Loaded {len(cookies)} LinkedIn cookies from {path}")
    return cookies


class CredentialProvider(ABC):
    """Read-only capability: header building plus a freshness signal."""

    @abstractmethod
    def build_auth_headers(self) -> AuthHeaders:
        """Cookie string, fresh anti-forgery token and user agent."""

    @abstractmethod
    def is_healthy(self) -> bool:
        """True when the session looks usable (present and not expired)."""

    @abstractmethod
    def browser_cookies(self) -> List[Dict[str, object]]:
        """Cookies in the browser engine's add_cookies() shape."""

    @property
    def has_credentials(self) -> bool:
        return self.is_healthy()


class EnvCredentialProvider(CredentialProvider):
    """Credentials from the environment and an optional cookie export."""

    def __init__(
        self,
        li_at: Optional[str] = None,
        companion_cookies: Optional[Dict[str, str]] = None,
        cookie_file: Optional[str] = None,
        user_agent: Optional[str] = None,
    ):
        self.user_agent = user_agent or Config.USER_AGENT
        self._cookies: Dict[str, str] = {}
        self._expiry: Dict[str, int] = {}

        path = cookie_file if cookie_file is not None else Config.LINKEDIN_COOKIE_FILE
        if path:
            try:
                for name, data in load_cookie_file(path).items():
                    if name in REQUIRED_COOKIES + OPTIONAL_COOKIES:
                        self._cookies[name] = str(data["value"])
                        self._expiry[name] = int(data["expires"])
            except FileNotFoundError as e:
                logger.warning(f"{e}; continuing with environment cookies only")

        companions = companion_cookies if companion_cookies is not None else Config.COMPANION_COOKIES
        for name, value in companions.items():
            if value:
                self._cookies[name] = value

        token = li_at if li_at is not None else Config.LI_AT
        if token:
            self._cookies["li_at"] = token
            # Environment tokens carry no expiry information
            self._expiry.pop("li_at", None)

    @property
    def cookies(self) -> Dict[str, str]:
        return dict(self._cookies)

    def validate(self) -> dict:
        """
        Check that required cookies exist and are not expired.

        Returns:
            Dict with 'valid', 'missing', 'expired', 'present' keys.
        """
        result = {"valid": True, "missing": [], "expired": [], "present": []}
        now_ts = int(datetime.now(timezone.utc).timestamp())

        for name in REQUIRED_COOKIES:
            expiry = self._expiry.get(name, 0)
            if not self._cookies.get(name):
                result["missing"].append(name)
                result["valid"] = False
            elif 0 < expiry < now_ts:
                result["expired"].append(name)
                result["valid"] = False
            else:
                result["present"].append(name)

        return result

    def is_healthy(self) -> bool:
        return self.validate()["valid"]

    def build_auth_headers(self) -> AuthHeaders:
        csrf = generate_csrf_token()
        # JSESSIONID must echo the csrf token for LinkedIn to accept it
        parts = [f'JSESSIONID="{csrf}"']
        parts.extend(f"{name}={value}" for name, value in self._cookies.items())
        return AuthHeaders(cookie="; ".join(parts), anti_forgery_token=csrf, user_agent=self.user_agent)

    def browser_cookies(self) -> List[Dict[str, object]]:
        cookies = []
        for name, value in self._cookies.items():
            cookie = {
                "name": name,
                "value": value,
                "domain": LINKEDIN_COOKIE_DOMAIN,
                "path": "/",
                "httpOnly": True,
                "secure": True,
                "sameSite": "Lax",
            }
            if self._expiry.get(name):
                cookie["expires"] = self._expiry[name]
            cookies.append(cookie)
        return cookies


class AnonymousCredentialProvider(CredentialProvider):
    """No session: only public pages are reachable."""

    def __init__(self, user_agent: Optional[str] = None):
        self.user_agent = user_agent or Config.USER_AGENT

    def build_auth_headers(self) -> AuthHeaders:
        return AuthHeaders(cookie="", anti_forgery_token=generate_csrf_token(), user_agent=self.user_agent)

    def is_healthy(self) -> bool:
        return False

    def browser_cookies(self) -> List[Dict[str, object]]:
        return []


def default_credential_provider() -> CredentialProvider:
    """EnvCredentialProvider when a session is configured, else anonymous."""
    if Config.has_credentials():
        return EnvCredentialProvider()
    return AnonymousCredentialProvider()


def voyager_headers(auth: AuthHeaders, referer: str = "https://www.linkedin.com/") -> Dict[str, str]:
    """Headers the Voyager JSON endpoints expect from a logged-in web client."""
    headers = {
        "accept": "application/vnd.linkedin.normalized+json+2.1",
        "accept-language": "en-US,en;q=0.9",
        "csrf-token": auth.anti_forgery_token,
        "x-restli-protocol-version": "2.0.0",
        "user-agent": auth.user_agent,
        "referer": referer,
        "sec-fetch-dest": "empty",
        "sec-fetch-mode": "cors",
        "sec-fetch-site": "same-origin",
    }
    if auth.cookie:
        headers["cookie"] = auth.cookie
    return headers


def page_headers(auth: AuthHeaders) -> Dict[str, str]:
    """Browser-like headers for plain HTML page fetches."""
    headers = {
        "User-Agent": auth.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Upgrade-Insecure-Requests": "1",
    }
    if auth.cookie:
        headers["Cookie"] = auth.cookie
    return headers
