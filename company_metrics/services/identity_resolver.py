"""
Identity Resolver

Turns a loose company reference into a canonical company URL plus vanity
slug, then resolves LinkedIn's internal organization ID.

Supported references:
- Bare slug: "microsoft"
- Relative path: "company/microsoft", "/company/microsoft/life"
- Host without scheme: "linkedin.com/company/microsoft"
- Full URL, any LinkedIn subdomain: "https://uk.linkedin.com/company/microsoft?trk=x"

Organization-ID lookup steps (each only if the prior found nothing):
1. structured-lookup  Voyager vanityName lookup, then GraphQL entityUrn query
2. page-scan          canonical company page markup
3. about-page-scan    the about/ sub-page markup
"""

import logging
import re
from typing import Awaitable, Callable, List, Optional, Tuple
from urllib.parse import quote, urlparse

from company_metrics.common.config import Config
from company_metrics.common.deadline import Deadline
from company_metrics.common.error_handling import (
    CompanyMetricsError,
    InvalidReferenceError,
    OrganizationNotResolvedError,
)
from company_metrics.common.json_utils import find_org_id, find_org_id_in_json
from company_metrics.common.logger import get_logger
from company_metrics.common.pacing import Pacer
from company_metrics.common.types import CompanyReference, OrganizationIdentity, ResolutionMethod
from company_metrics.services.credentials import CredentialProvider, page_headers, voyager_headers
from company_metrics.services.structured_strategy import StructuredQueryClient
from company_metrics.services.upstream_client import UpstreamClient

logger = logging.getLogger(__name__)

CANONICAL_HOST = "www.linkedin.com"
VANITY_LOOKUP_URL = "https://www.linkedin.com/voyager/api/organization/companies?vanityName={slug}"

_BARE_SLUG = re.compile(r"^[A-Za-z0-9_-]+$")
_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)


def _is_linkedin_host(host: str) -> bool:
    host = host.lower().rstrip(".")
    return host == "linkedin.com" or host.endswith(".linkedin.com")


def normalize_reference(raw: str) -> CompanyReference:
    """
    Normalize a caller reference to a canonical company URL and slug.

    Args:
        raw: Bare slug, relative path or URL

    Returns:
        CompanyReference with url "https://www.linkedin.com/company/<slug>/"

    Raises:
        InvalidReferenceError: Empty input, non-LinkedIn host or no slug
    """
    if raw is None or not str(raw).strip():
        raise InvalidReferenceError("Company reference is empty")
    text = str(raw).strip()

    if _BARE_SLUG.match(text):
        slug = text
    else:
        if not _SCHEME.match(text):
            first_segment = text.lstrip("/").split("/", 1)[0]
            if text.startswith("/") or "." not in first_segment:
                text = f"https://{CANONICAL_HOST}/{text.lstrip('/')}"
            else:
                text = f"https://{text}"

        parsed = urlparse(text)
        if parsed.scheme.lower() not in ("http", "https"):
            raise InvalidReferenceError(f"Unsupported URL scheme in company reference: {raw}")
        if not _is_linkedin_host(parsed.hostname or ""):
            raise InvalidReferenceError(f"Not a LinkedIn URL: {raw}")

        slug = _slug_from_path(parsed.path)
        if not slug:
            raise InvalidReferenceError(f"No company slug in reference: {raw}")

    slug = slug.strip("/").lower()
    return CompanyReference(raw=str(raw), url=f"https://{CANONICAL_HOST}/company/{slug}/", slug=slug)


def _slug_from_path(path: str) -> Optional[str]:
    parts = [p for p in path.split("/") if p]
    if not parts:
        return None
    for index, part in enumerate(parts):
        if part.lower() == "company":
            return parts[index + 1] if index + 1 < len(parts) else None
    return parts[0]


def extract_slug(url: str) -> Optional[str]:
    """Slug of any accepted reference, or None when it cannot be normalized."""
    try:
        return normalize_reference(url).slug
    except InvalidReferenceError:
        return None


LookupStep = Tuple[ResolutionMethod, Callable[[], Awaitable[Optional[str]]]]


class IdentityResolver:
    """Resolves organization IDs; one lookup per call, never cached."""

    def __init__(
        self,
        client: UpstreamClient,
        pacer: Optional[Pacer] = None,
        query_client: Optional[StructuredQueryClient] = None,
    ):
        self.client = client
        self.pacer = pacer or Pacer(Config.PACING_MIN_SECONDS, Config.PACING_MAX_SECONDS)
        self.query_client = query_client or StructuredQueryClient(client, self.pacer)

    async def resolve_org_id(
        self,
        reference: CompanyReference,
        credentials: CredentialProvider,
        deadline: Optional[Deadline] = None,
        run_id: Optional[str] = None,
    ) -> OrganizationIdentity:
        """
        Resolve the internal organization ID for a normalized reference.

        Raises:
            OrganizationNotResolvedError: Every step failed; `.errors` holds each reason
        """
        deadline = deadline or Deadline.none()
        log = get_logger(__name__, run_id=run_id, strategy="identity")
        errors: List[str] = []

        steps: List[LookupStep] = [
            (ResolutionMethod.STRUCTURED_LOOKUP, lambda: self._lookup_structured(reference, credentials, deadline, errors)),
            (ResolutionMethod.PAGE_SCAN, lambda: self._scan_company_page(reference, credentials, deadline)),
            (ResolutionMethod.ABOUT_PAGE_SCAN, lambda: self._scan_about_page(reference, credentials, deadline)),
        ]

        for method, step in steps:
            try:
                org_id = await step()
            except CompanyMetricsError as e:
                log.info(f"{method.value} failed: {e}")
                errors.append(f"{method.value}: {e}")
                continue
            if org_id:
                log.info(f"Resolved {reference.slug} -> {org_id} via {method.value}")
                return OrganizationIdentity(organization_id=org_id, method=method)
            if method != ResolutionMethod.STRUCTURED_LOOKUP:
                errors.append(f"{method.value}: no organization ID found in page content")

        log.warning(f"Could not resolve {reference.slug}")
        raise OrganizationNotResolvedError(reference.url, errors)

    async def _lookup_structured(
        self,
        reference: CompanyReference,
        credentials: CredentialProvider,
        deadline: Deadline,
        errors: List[str],
    ) -> Optional[str]:
        """Voyager vanityName lookup, then the GraphQL entity-URN query."""
        step = ResolutionMethod.STRUCTURED_LOOKUP.value
        if not credentials.is_healthy():
            errors.append(f"{step}: skipped, no LinkedIn session")
            return None

        try:
            url = VANITY_LOOKUP_URL.format(slug=quote(reference.slug, safe=""))
            headers = voyager_headers(credentials.build_auth_headers(), referer=reference.url)
            payload = await self.client.fetch_json(url, headers=headers, deadline=deadline)
            org_id = find_org_id_in_json(payload)
            if org_id:
                return org_id
            errors.append(f"{step}: no organization ID in vanity lookup response")
        except CompanyMetricsError as e:
            errors.append(f"{step}: vanity lookup failed: {e}")

        try:
            data = await self.query_client.execute(
                "organization_urn", {"universalName": reference.slug}, credentials, deadline
            )
        except CompanyMetricsError as e:
            errors.append(f"{step}: entity URN query failed: {e}")
            return None

        org_id = find_org_id_in_json(data)
        if not org_id:
            errors.append(f"{step}: no organization ID in entity URN response")
        return org_id

    async def _scan_markup(self, url: str, credentials: CredentialProvider, deadline: Deadline) -> Optional[str]:
        await self.pacer.pause(f"before {url}")
        headers = page_headers(credentials.build_auth_headers())
        html = await self.client.fetch_text(url, headers=headers, deadline=deadline)
        return find_org_id(html)

    async def _scan_company_page(
        self,
        reference: CompanyReference,
        credentials: CredentialProvider,
        deadline: Deadline,
    ) -> Optional[str]:
        return await self._scan_markup(reference.url, credentials, deadline)

    async def _scan_about_page(
        self,
        reference: CompanyReference,
        credentials: CredentialProvider,
        deadline: Deadline,
    ) -> Optional[str]:
        return await self._scan_markup(reference.about_url, credentials, deadline)
