"""
Rendered-Page Strategy

Last-resort channel: load LinkedIn pages in a real browser and read the
numbers a visitor would see. Works without a session for public pages,
and better with one.

Employee count:
1. /company/{slug}/people/ text, then a DOM scan of prominent elements
2. /company/{slug}/about/ company-size band (RANGE_ONLY)
3. people search filtered by organization ID

Job count:
1. /company/{slug}/jobs/ text, then prominent headings
2. company root navigation link "Jobs (N)"
3. jobs search filtered by organization ID

Search fallback: JSON responses observed while the search page loads are
scanned with deep_find_totals (largest total wins), then "N results" text,
then the number of rendered result nodes (APPROXIMATE).
"""

import logging
import re
from typing import Awaitable, Callable, List, Optional, Sequence

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from company_metrics.common.config import Config
from company_metrics.common.deadline import Deadline
from company_metrics.common.error_handling import (
    SHORT_CIRCUIT_ERRORS,
    AttemptLog,
    AuthRequiredError,
    CompanyMetricsError,
    UpstreamBlockedError,
    UpstreamError,
    UpstreamThrottledError,
    UpstreamTimeoutError,
)
from company_metrics.common.json_utils import METRIC_TOTAL_KEYS, max_total
from company_metrics.common.logger import ResolutionLogger, get_logger
from company_metrics.common.pacing import Pacer
from company_metrics.common.patterns import (
    EMPLOYEE_TEXT_RULES,
    JOB_HEADING_RULES,
    JOB_NAV_RULES,
    JOB_TEXT_RULES,
    SEARCH_RESULT_RULES,
    PatternRule,
    find_size_band,
    first_match,
    first_match_in,
)
from company_metrics.common.retry import RetryPolicy
from company_metrics.common.types import (
    Confidence,
    MetricCandidate,
    MetricKind,
    StrategyName,
)
from company_metrics.services.browser_session import BrowserSession, BrowserSessionProvider, RenderedPage
from company_metrics.services.strategy_base import MetricStrategy, ResolutionContext
from company_metrics.services.upstream_client import BLOCKED_STATUSES, is_auth_wall

logger = logging.getLogger(__name__)

# Consent / GDPR banner buttons, tried in order
BANNER_BUTTON_TEXTS = ("Accept", "I agree", "Agree", "Allow all", "Got it", "OK")

# Elements likely to hold a headline count
PROMINENT_SELECTOR = (
    'h1, h2, h3, header, [aria-live], '
    '[class*="count" i], [data-test*="count" i], '
    '[class*="result" i], [data-test*="result" i]'
)
EMPLOYEE_LINK_SELECTOR = "a, button"
JOBS_NAV_SELECTOR = 'a[href*="/jobs/"]'

JOBS_SEARCH_URL = "https://www.linkedin.com/jobs/search/?f_C={id}&refresh=true"
PEOPLE_SEARCH_URL = (
    "https://www.linkedin.com/search/results/people/"
    "?currentCompany=%5B%22{id}%22%5D&origin=COMPANY_PAGE_CANNED_SEARCH"
)

SEARCH_URLS = {
    MetricKind.EMPLOYEE_COUNT: PEOPLE_SEARCH_URL,
    MetricKind.JOB_COUNT: JOBS_SEARCH_URL,
}

# Which intercepted responses may carry the metric's total
INTERCEPT_URL_PATTERNS = {
    MetricKind.EMPLOYEE_COUNT: re.compile(r"voyager|graphql|search/cluster|search/blended", re.IGNORECASE),
    MetricKind.JOB_COUNT: re.compile(r"voyager|graphql|jobs/search|jobsSearch", re.IGNORECASE),
}

RESULT_NODE_SELECTORS = {
    MetricKind.EMPLOYEE_COUNT: "ul.reusable-search__entity-result-list li",
    MetricKind.JOB_COUNT: "ul.scaffold-layout__list-container li",
}

SEARCH_HEADING_RULES = {
    MetricKind.EMPLOYEE_COUNT: SEARCH_RESULT_RULES,
    MetricKind.JOB_COUNT: JOB_HEADING_RULES,
}


def element_texts(html: Optional[str], selector: str) -> List[str]:
    """Whitespace-collapsed text of every element matching a CSS selector."""
    if not html:
        return []
    soup = BeautifulSoup(html, "html.parser")
    texts = []
    for node in soup.select(selector):
        text = re.sub(r"\s+", " ", node.get_text(" ", strip=True)).strip()
        if text:
            texts.append(text)
    return texts


class RenderedPageStrategy(MetricStrategy):
    """Metric candidates scraped from browser-rendered pages."""

    name = StrategyName.RENDERED
    requires_credentials = False

    def __init__(
        self,
        session_provider: BrowserSessionProvider,
        pacer: Optional[Pacer] = None,
        retry_policy: Optional[RetryPolicy] = None,
        min_total: Optional[int] = None,
        settle_ms: int = 2000,
    ):
        self.session_provider = session_provider
        self.pacer = pacer or Pacer(Config.PACING_MIN_SECONDS, Config.PACING_MAX_SECONDS)
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=Config.NAVIGATION_MAX_ATTEMPTS,
            backoff_seconds=Config.RETRY_BACKOFF_SECONDS,
        )
        self.min_total = Config.MIN_PLAUSIBLE_TOTAL if min_total is None else min_total
        self.settle_ms = settle_ms

    async def collect(self, metric: MetricKind, context: ResolutionContext) -> List[MetricCandidate]:
        session = await self.session_provider.get_session()
        return await self.scrape_metric(
            session, context.reference.url, metric, context.organization_id, context
        )

    async def scrape_metric(
        self,
        session: BrowserSession,
        canonical_url: str,
        metric: MetricKind,
        org_id: Optional[str],
        context: Optional[ResolutionContext] = None,
    ) -> List[MetricCandidate]:
        """
        Scrape one metric from rendered pages.

        Args:
            session: Shared browser session
            canonical_url: "https://www.linkedin.com/company/<slug>/"
            metric: Which metric to scrape
            org_id: Organization ID for the search fallback (skipped when None)
            context: Resolution context for attempt logging and the deadline

        Returns:
            Candidates found (empty list when nothing matched)

        Raises:
            AuthRequiredError: A navigation landed on a login/challenge page
        """
        run = _ScrapeRun(
            session=session,
            metric=metric,
            attempts=context.attempts if context else AttemptLog(),
            deadline=context.deadline if context else Deadline.none(),
            log=context.logger(__name__, self.name.value) if context else get_logger(__name__, strategy=self.name.value),
        )
        if metric == MetricKind.EMPLOYEE_COUNT:
            return await self._employee_candidates(run, canonical_url, org_id)
        return await self._job_candidates(run, canonical_url, org_id)

    async def _employee_candidates(
        self, run: "_ScrapeRun", canonical_url: str, org_id: Optional[str]
    ) -> List[MetricCandidate]:
        candidates: List[MetricCandidate] = []

        people = await self._visit(
            run, f"{canonical_url}people/", "people-page",
            lambda page: self._scan_page(page, run.metric, EMPLOYEE_TEXT_RULES, [
                (PROMINENT_SELECTOR, EMPLOYEE_TEXT_RULES),
                (EMPLOYEE_LINK_SELECTOR, EMPLOYEE_TEXT_RULES),
            ]),
        )
        if people:
            return [people]

        band = await self._visit(run, f"{canonical_url}about/", "about-page", self._about_band)
        if band:
            run.log.info(f"Company size band {band.range} from about page")
            candidates.append(band)

        if org_id:
            found = await self._search_fallback(run, org_id)
            if found:
                candidates.append(found)
        return candidates

    async def _job_candidates(
        self, run: "_ScrapeRun", canonical_url: str, org_id: Optional[str]
    ) -> List[MetricCandidate]:
        jobs = await self._visit(
            run, f"{canonical_url}jobs/", "jobs-page",
            lambda page: self._scan_page(page, run.metric, JOB_TEXT_RULES, [
                (PROMINENT_SELECTOR, JOB_HEADING_RULES),
            ]),
        )
        if jobs:
            return [jobs]

        nav = await self._visit(
            run, canonical_url, "company-nav",
            lambda page: self._scan_page(page, run.metric, (), [(JOBS_NAV_SELECTOR, JOB_NAV_RULES)]),
        )
        if nav:
            return [nav]

        if org_id:
            found = await self._search_fallback(run, org_id)
            if found:
                return [found]
        return []

    async def navigate(self, page: RenderedPage, url: str, deadline: Optional[Deadline] = None) -> None:
        """
        Load url under the navigation retry policy, then dismiss banners.

        Raises:
            AuthRequiredError: Landed on a login/authwall/checkpoint page
            UpstreamThrottledError / UpstreamBlockedError: 429 / 403 / 999
            UpstreamTimeoutError / UpstreamError: navigation kept failing
        """
        deadline = deadline or Deadline.none()

        async def _go() -> None:
            timeout = deadline.call_timeout(page.navigation_timeout_ms / 1000.0, f"navigation to {url}")
            try:
                status = await page.goto(url, timeout_ms=int(timeout * 1000))
            except PlaywrightTimeoutError as e:
                raise UpstreamTimeoutError(f"Navigation timeout for {url}") from e
            except PlaywrightError as e:
                raise UpstreamError(f"Navigation failed for {url}: {e}") from e

            if status == 429:
                raise UpstreamThrottledError(status, url, f"HTTP 429 for {url} (rate limited)")
            if status in BLOCKED_STATUSES:
                raise UpstreamBlockedError(status, url, f"HTTP {status} for {url} (access denied)")
            await page.settle()
            if is_auth_wall(page.current_url):
                raise AuthRequiredError(f"Redirected to login/challenge page ({page.current_url}) for {url}")

        # An exhausted deadline is final
        policy = self.retry_policy.with_predicate(lambda exc: not deadline.expired)
        await policy.run(_go)
        await page.click_first_text(BANNER_BUTTON_TEXTS)

    async def _visit(
        self,
        run: "_ScrapeRun",
        url: str,
        operation: str,
        extract: Callable[[RenderedPage], Awaitable[Optional[MetricCandidate]]],
        listener=None,
    ) -> Optional[MetricCandidate]:
        """
        Open a page, navigate, run extract; failures other than auth,
        throttling and blocking degrade to None.
        """
        await self.pacer.pause(f"before {operation}")
        try:
            with run.attempts.track(self.name.value, run.metric.value, operation):
                async with run.session.open_page() as page:
                    if listener is not None:
                        page.on_json_response(listener)
                    await self.navigate(page, url, run.deadline)
                    return await extract(page)
        except (AuthRequiredError,) + SHORT_CIRCUIT_ERRORS:
            raise
        except (CompanyMetricsError, PlaywrightError) as e:
            run.log.info(f"{operation} gave no data: {e}")
            return None

    def _candidate(self, metric: MetricKind, value: int, confidence: Confidence, detail: str) -> MetricCandidate:
        return MetricCandidate(metric, self.name, confidence, value=value, detail=detail)

    async def _scan_page(
        self,
        page: RenderedPage,
        metric: MetricKind,
        text_rules: Sequence[PatternRule],
        dom_scans: Sequence[tuple],
    ) -> Optional[MetricCandidate]:
        """Rendered text against text_rules, then (selector, rules) DOM scans."""
        hit = first_match(await page.body_text(), text_rules, minimum=self.min_total)
        if hit:
            return self._candidate(metric, hit.value, hit.rule.confidence, f"text:{hit.rule.label}")

        html = await page.html()
        for selector, rules in dom_scans:
            hit = first_match_in(element_texts(html, selector), rules, minimum=self.min_total)
            if hit:
                return self._candidate(metric, hit.value, hit.rule.confidence, f"dom:{hit.rule.label}")
        return None

    async def _about_band(self, page: RenderedPage) -> Optional[MetricCandidate]:
        band = find_size_band(await page.body_text())
        if not band:
            return None
        return MetricCandidate(
            MetricKind.EMPLOYEE_COUNT, self.name, Confidence.RANGE_ONLY, range=band, detail="about:company-size"
        )

    async def _search_fallback(self, run: "_ScrapeRun", org_id: str) -> Optional[MetricCandidate]:
        """Search UI filtered by organization ID: network totals, headings, text, node count."""
        metric = run.metric
        url_pattern = INTERCEPT_URL_PATTERNS[metric]
        keys = METRIC_TOTAL_KEYS[metric]
        observed: List[int] = []

        def listener(url: str, payload) -> None:
            if not url_pattern.search(url):
                return
            total = max_total(payload, keys, minimum=self.min_total)
            if total is not None:
                run.log.debug(f"Network total {total} from {url}")
                observed.append(total)

        async def extract(page: RenderedPage) -> Optional[MetricCandidate]:
            await page.wait_for_selector("main, #main-content")
            await page.wait(self.settle_ms)
            if observed:
                return self._candidate(metric, max(observed), Confidence.SEARCH_TOTAL, "search:network")

            found = await self._scan_page(
                page, metric, (), [("h1, h2, h3, header, [aria-live]", SEARCH_HEADING_RULES[metric])]
            )
            if found:
                found.detail = found.detail.replace("dom:", "search:")
                return found

            hit = first_match(await page.body_text(), SEARCH_RESULT_RULES, minimum=self.min_total)
            if hit:
                return self._candidate(metric, hit.value, Confidence.SEARCH_TOTAL, f"search:{hit.rule.label}")

            nodes = await page.count_nodes(RESULT_NODE_SELECTORS[metric])
            if nodes >= max(self.min_total, 1):
                return self._candidate(metric, nodes, Confidence.APPROXIMATE, "search:result-nodes")
            return None

        search_url = SEARCH_URLS[metric].format(id=org_id)
        found = await self._visit(run, search_url, "search", extract, listener=listener)
        if found:
            run.log.info(f"{metric.value} {found.value} via {found.detail}")
        return found


class _ScrapeRun:
    """Per-call scrape state."""

    def __init__(
        self,
        session: BrowserSession,
        metric: MetricKind,
        attempts: AttemptLog,
        deadline: Deadline,
        log: ResolutionLogger,
    ):
        self.session = session
        self.metric = metric
        self.attempts = attempts
        self.deadline = deadline
        self.log = log
