"""Case service client - API key authentication with page-numbered listing."""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Mapping, Optional

import requests

from casebridge.auth.api_key import APIKeyAuth
from casebridge.clients.base import BaseAPIClient
from casebridge.clients.pagination import (
    DEFAULT_MAX_PAGES,
    DEFAULT_PAGE_DELAY_MS,
    DEFAULT_PAGE_SIZE,
    FIRST_PAGE,
    CasePage,
    Continuation,
    FetchResult,
    PaginatedFetcher,
)
from casebridge.config import Settings
from casebridge.transform.duplicates import row_query_values

logger = logging.getLogger(__name__)

CASES_ENDPOINT = "cases"
IDENTITY_FIELDS = "fname_injured,lname_injured,email_injured"


@dataclass(frozen=True)
class CaseQuery:
    """Filters accepted by the case list endpoint."""

    litigation_id: Optional[str] = None
    status_id: Optional[str] = None
    fname_injured: Optional[str] = None
    lname_injured: Optional[str] = None
    email_injured: Optional[str] = None
    phone: Optional[str] = None
    created_at_start: Optional[str] = None
    created_at_end: Optional[str] = None
    tag: Optional[str] = None
    company_uuid: Optional[str] = None
    fields: Optional[str] = None

    def to_params(self) -> dict:
        """Query parameters for the supplied filters only."""
        return {key: value for key, value in asdict(self).items() if value}


def parse_case_page(body: Any) -> CasePage:
    """Split a list response into records and its continuation signal.

    Accepts ``{"data": [...], "total": ..., "last_page": ...}`` envelopes as
    well as bare lists.
    """
    if isinstance(body, list):
        return CasePage(items=body)
    if not isinstance(body, dict):
        return CasePage()

    items = body.get("data")
    if not isinstance(items, list):
        items = []
    return CasePage(items=items, continuation=Continuation.from_response(body))


class CaseServiceClient(BaseAPIClient):
    """Client for the remote case-management API.

    Features:
    - API key authentication (``API-Key`` header)
    - Page-numbered listing with total / last-page / short-page detection
    - Client-side request window plus 429 back-off
    - Read retries with exponential backoff
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        timeout: int = 30,
        page_size: int = DEFAULT_PAGE_SIZE,
        page_delay_ms: int = DEFAULT_PAGE_DELAY_MS,
        max_pages: int = DEFAULT_MAX_PAGES,
        company_uuid: Optional[str] = None,
        session: Optional[requests.Session] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """Initialize case service client.

        Args:
            base_url: API base URL
            api_key: API key (required)
            timeout: Per-request timeout in seconds
            page_size: Records per list page
            page_delay_ms: Pause between list pages
            max_pages: Page ceiling per fetch
            company_uuid: Company scope applied to duplicate lookups
            session: Optional pre-built session (tests)
            sleep: Sleep function for waits (tests)
        """
        self.api_key_auth = APIKeyAuth(
            api_key=api_key,
            key_name="API-Key",
        )

        super().__init__(base_url=base_url, timeout=timeout, session=session, sleep=sleep)

        self.page_size = page_size
        self.page_delay_ms = page_delay_ms
        self.max_pages = max_pages
        self.company_uuid = company_uuid

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "CaseServiceClient":
        return cls(
            base_url=settings.base_url,
            api_key=settings.api_key,
            timeout=settings.timeout,
            page_size=settings.page_size,
            page_delay_ms=settings.page_delay_ms,
            max_pages=settings.max_pages,
            company_uuid=settings.overrides.company_uuid,
            **kwargs,
        )

    def get_auth_headers(self) -> dict:
        """Get API key authorization headers."""
        return self.api_key_auth.get_auth_header()

    def create_case(self, payload: dict) -> dict:
        """Create one case.

        Raises:
            requests.HTTPError: If the API rejects the payload
            requests.RequestException: On transport failures
        """
        return self.post(CASES_ENDPOINT, json_data=payload)

    def list_cases(self, params: dict) -> CasePage:
        """Request a single page of cases."""
        return parse_case_page(self.get(CASES_ENDPOINT, params=params))

    def fetch_cases(
        self,
        query: Optional[CaseQuery] = None,
        max_pages: Optional[int] = None,
        raise_on_error: bool = False,
    ) -> FetchResult:
        """Fetch every page of cases matching the query.

        Args:
            query: Filters for the list endpoint
            max_pages: Override the page ceiling for this fetch
            raise_on_error: Propagate request errors instead of returning partial data

        Returns:
            FetchResult with all accumulated records
        """
        params = (query or CaseQuery()).to_params()
        logger.info("Fetching cases", extra={"params": params})

        fetcher = PaginatedFetcher(
            list_page=self.list_cases,
            page_size=self.page_size,
            first_page=FIRST_PAGE,
            page_delay_ms=self.page_delay_ms,
            max_pages=max_pages or self.max_pages,
            sleep=self.sleep,
        )
        result = fetcher.fetch_all(params, raise_on_error=raise_on_error)

        logger.info(
            f"Fetched {len(result.records)} cases",
            extra={
                "record_count": len(result.records),
                "pages_fetched": result.pages_fetched,
                "complete": result.complete,
            },
        )
        return result

    def fetch_identities(self, max_pages: Optional[int] = None) -> FetchResult:
        """Fetch all company cases, trimmed to the duplicate-matching fields."""
        query = CaseQuery(company_uuid=self.company_uuid, fields=IDENTITY_FIELDS)
        return self.fetch_cases(query, max_pages=max_pages)

    def lookup_row(self, row: Mapping[str, Any]) -> list[dict]:
        """Cases sharing an upload row's identity fields, for per-row duplicate checks.

        Raises:
            requests.RequestException: If any page request fails, so a
                partial answer is never mistaken for "no duplicate"
        """
        query = CaseQuery(company_uuid=self.company_uuid, **row_query_values(row))
        result = self.fetch_cases(query, raise_on_error=True)
        if not result.complete:
            raise RuntimeError(
                f"Lookup stopped after {result.pages_fetched} pages ({result.stop_reason})"
            )
        return result.records
