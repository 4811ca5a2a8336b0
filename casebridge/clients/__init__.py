"""Client for the remote case-management API.

Handles:
- Authentication
- Pagination
- Rate limiting
- Retries with exponential backoff
"""

from .base import BaseAPIClient, RequestMetrics, error_message_from_exception
from .case_client import CaseQuery, CaseServiceClient, parse_case_page
from .pagination import (
    CasePage,
    Continuation,
    ContinuationKind,
    FetchResult,
    PaginatedFetcher,
)

__all__ = [
    "BaseAPIClient",
    "RequestMetrics",
    "error_message_from_exception",
    "CaseQuery",
    "CaseServiceClient",
    "parse_case_page",
    "CasePage",
    "Continuation",
    "ContinuationKind",
    "FetchResult",
    "PaginatedFetcher",
]
