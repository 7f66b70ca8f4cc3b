"""
Global fixtures for all unit tests.

This conftest provides autouse fixtures that prevent real external calls:
- Environment variable isolation (no LinkedIn session leaks into tests)
- Zero-delay pacing and retry backoff (tests never sleep)

Plus shared fakes: an httpx.MockTransport-backed UpstreamClient factory, a
resolution context factory and an in-memory rendered page.
"""

import os
import re
from contextlib import asynccontextmanager
from typing import Callable, Dict, List, Optional

import httpx
import pytest

# Set test environment BEFORE any imports so Config never sees real values
for _name in ("LI_AT", "LINKEDIN_LI_AT", "LINKEDIN_COOKIE_FILE", "STRATEGY_MODE", "SKIP_RENDERED"):
    os.environ[_name] = ""

from company_metrics.common.config import Config  # noqa: E402
from company_metrics.common.deadline import Deadline  # noqa: E402
from company_metrics.common.error_handling import AttemptLog  # noqa: E402
from company_metrics.common.pacing import no_pacing  # noqa: E402
from company_metrics.common.retry import no_retry  # noqa: E402
from company_metrics.common.types import (  # noqa: E402
    OrganizationIdentity,
    ResolutionMethod,
)
from company_metrics.services.credentials import (  # noqa: E402
    AnonymousCredentialProvider,
    EnvCredentialProvider,
)
from company_metrics.services.identity_resolver import normalize_reference  # noqa: E402
from company_metrics.services.strategy_base import ResolutionContext  # noqa: E402
from company_metrics.services.upstream_client import UpstreamClient  # noqa: E402


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """
    Isolate tests from real credentials and human-cadence delays.

    This prevents:
    - A developer's LI_AT being sent anywhere
    - Pacing / backoff sleeps slowing the suite down
    - A stray storageState.json being loaded into a browser context
    """
    monkeypatch.setattr(Config, "LI_AT", "")
    monkeypatch.setattr(Config, "LINKEDIN_COOKIE_FILE", "")
    monkeypatch.setattr(Config, "COMPANION_COOKIES", {})
    monkeypatch.setattr(Config, "STORAGE_STATE_PATH", "")
    monkeypatch.setattr(Config, "PACING_MIN_SECONDS", 0.0)
    monkeypatch.setattr(Config, "PACING_MAX_SECONDS", 0.0)
    monkeypatch.setattr(Config, "STRATEGY_PAUSE_SECONDS", 0.0)
    monkeypatch.setattr(Config, "RETRY_BACKOFF_SECONDS", 0.0)
    monkeypatch.setattr(Config, "STRATEGY_MODE", "auto")
    monkeypatch.setattr(Config, "SKIP_RENDERED", False)
    monkeypatch.setattr(Config, "MIN_PLAUSIBLE_TOTAL", 1)


@pytest.fixture
def credentials():
    """Healthy session built from an explicit li_at token."""
    return EnvCredentialProvider(li_at="test-li-at", companion_cookies={}, cookie_file="")


@pytest.fixture
def anonymous():
    return AnonymousCredentialProvider()


@pytest.fixture
def pacer():
    return no_pacing()


@pytest.fixture
def make_client():
    """
    Build an UpstreamClient whose transport is a handler function.

    Usage:
        client = make_client(lambda request: httpx.Response(200, json={}))
    """

    def _make(handler: Callable[[httpx.Request], httpx.Response], retries: bool = False) -> UpstreamClient:
        transport = httpx.MockTransport(handler)
        inner = httpx.AsyncClient(transport=transport, follow_redirects=True)
        policy = None if retries else no_retry()
        return UpstreamClient(client=inner, timeout=5.0, retry_policy=policy)

    return _make


@pytest.fixture
def make_context(credentials):
    """Resolution context for a fixed organization (acme / 1234)."""

    def _make(creds=None, org_id: str = "1234", slug: str = "acme", deadline: Optional[Deadline] = None):
        return ResolutionContext(
            reference=normalize_reference(slug),
            identity=OrganizationIdentity(org_id, ResolutionMethod.STRUCTURED_LOOKUP),
            credentials=creds or credentials,
            attempts=AttemptLog(),
            deadline=deadline or Deadline.none(),
            run_id="testrun0",
        )

    return _make


class FakePage:
    """In-memory stand-in for RenderedPage."""

    def __init__(self, site: "FakeSite"):
        self.site = site
        self.url = ""
        self.navigation_timeout_ms = 45000
        self.listeners: List[Callable] = []
        self.clicked: List[str] = []
        self.closed = False

    @property
    def current_url(self) -> str:
        return self.site.redirects.get(self.url, self.url)

    async def goto(self, url: str, timeout_ms: Optional[int] = None) -> Optional[int]:
        self.url = url
        self.site.visits.append(url)
        error = self.site.errors.get(url)
        if error is not None:
            raise error
        for response_url, payload in self.site.network.get(url, []):
            for listener in self.listeners:
                listener(response_url, payload)
        return self.site.statuses.get(url, 200)

    async def settle(self) -> None:
        pass

    async def wait_for_selector(self, selector: str, timeout_ms: int = 15000) -> bool:
        return True

    async def wait(self, ms: int) -> None:
        pass

    async def body_text(self) -> str:
        return self.site.texts.get(self.url, "")

    async def html(self) -> str:
        return self.site.markup.get(self.url, "")

    async def click_first_text(self, texts) -> Optional[str]:
        self.clicked.extend(texts)
        return None

    async def count_nodes(self, selector: str) -> int:
        return self.site.nodes.get(self.url, 0)

    def on_json_response(self, callback) -> None:
        self.listeners.append(callback)

    async def close(self) -> None:
        self.closed = True


class FakeSite:
    """Scripted pages keyed by URL, served through FakePage."""

    def __init__(self):
        self.texts: Dict[str, str] = {}
        self.markup: Dict[str, str] = {}
        self.nodes: Dict[str, int] = {}
        self.statuses: Dict[str, int] = {}
        self.redirects: Dict[str, str] = {}
        self.errors: Dict[str, Exception] = {}
        self.network: Dict[str, list] = {}
        self.visits: List[str] = []
        self.pages: List[FakePage] = []

    def page(self, pattern: str) -> Optional[str]:
        """First visited URL matching a regex."""
        return next((u for u in self.visits if re.search(pattern, u)), None)

    @asynccontextmanager
    async def open_page(self):
        page = FakePage(self)
        self.pages.append(page)
        try:
            yield page
        finally:
            await page.close()


@pytest.fixture
def fake_site():
    return FakeSite()
