"""Page-by-page retrieval of list endpoints into one in-memory collection.

List responses advertise "more pages" in different ways: a total record
count, a last page number, or nothing at all (a full page implies there may
be more). :class:`Continuation` captures whichever signal a response carries
so the fetch loop itself never changes.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

# The case API numbers pages from 1
FIRST_PAGE = 1
DEFAULT_PAGE_SIZE = 100
DEFAULT_PAGE_DELAY_MS = 200
DEFAULT_MAX_PAGES = 100


class ContinuationKind(Enum):
    """Which end-of-data signal a page response carries."""

    TOTAL_COUNT = "total_count"
    LAST_PAGE = "last_page"
    PAGE_SIZE = "page_size"


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Continuation:
    """Signal used to decide whether another page should be requested."""

    kind: ContinuationKind = ContinuationKind.PAGE_SIZE
    value: Optional[int] = None

    @classmethod
    def total_count(cls, total: int) -> "Continuation":
        return cls(ContinuationKind.TOTAL_COUNT, total)

    @classmethod
    def last_page(cls, last_page: int) -> "Continuation":
        return cls(ContinuationKind.LAST_PAGE, last_page)

    @classmethod
    def from_response(cls, body: Any) -> "Continuation":
        """Pick the strongest signal present in a list response.

        Priority is total count, then last page, then the page-size
        heuristic. Top-level keys win over a nested ``meta`` object.
        """
        if not isinstance(body, dict):
            return cls()

        sources = [body]
        if isinstance(body.get("meta"), dict):
            sources.append(body["meta"])

        for source in sources:
            total = _as_int(source.get("total"))
            if total is not None:
                return cls.total_count(total)
        for source in sources:
            last_page = _as_int(source.get("last_page"))
            if last_page is not None:
                return cls.last_page(last_page)
        return cls()

    def has_more(
        self,
        accumulated: int,
        page: int,
        page_item_count: int,
        page_size: int,
    ) -> bool:
        """Whether another page should be requested after ``page``.

        Args:
            accumulated: Records collected so far, this page included
            page: Cursor of the page just received
            page_item_count: Records on the page just received
            page_size: Configured page size
        """
        if self.kind is ContinuationKind.TOTAL_COUNT:
            return accumulated < self.value
        if self.kind is ContinuationKind.LAST_PAGE:
            return page < self.value
        return page_item_count >= page_size


@dataclass
class CasePage:
    """One page of a list response."""

    items: list[dict] = field(default_factory=list)
    continuation: Continuation = field(default_factory=Continuation)


@dataclass
class FetchResult:
    """Accumulated records plus how the fetch ended.

    ``complete`` is False when the loop stopped on the safety ceiling or a
    request failure; such results are best-effort and must not be read as
    "no such record exists".
    """

    records: list[dict] = field(default_factory=list)
    pages_fetched: int = 0
    complete: bool = True
    stop_reason: str = "exhausted"
    error: Optional[str] = None


class PaginatedFetcher:
    """Sequentially request pages and accumulate every record.

    One request is in flight at a time, with a short pause between pages so
    the remote rate limiter is not tripped.
    """

    def __init__(
        self,
        list_page: Callable[[dict], CasePage],
        page_size: int = DEFAULT_PAGE_SIZE,
        first_page: int = FIRST_PAGE,
        page_delay_ms: int = DEFAULT_PAGE_DELAY_MS,
        max_pages: int = DEFAULT_MAX_PAGES,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """Initialize fetcher.

        Args:
            list_page: Performs one page request for the given params
            page_size: Records per page (sent as ``limit``)
            first_page: Cursor of the first page (API convention)
            page_delay_ms: Pause between consecutive page requests
            max_pages: Hard ceiling on page requests per fetch
            sleep: Sleep function (injectable for tests)
        """
        self.list_page = list_page
        self.page_size = page_size
        self.first_page = first_page
        self.page_delay_ms = page_delay_ms
        self.max_pages = max_pages
        self.sleep = sleep or time.sleep

    def fetch_all(
        self,
        base_params: Optional[dict] = None,
        raise_on_error: bool = False,
    ) -> FetchResult:
        """Fetch every page for the given query.

        Args:
            base_params: Query parameters sent with every page request
            raise_on_error: Propagate request failures instead of returning
                the partial accumulator

        Returns:
            FetchResult with records in received order
        """
        base_params = dict(base_params or {})
        result = FetchResult()
        page = self.first_page

        while True:
            params = {**base_params, "page": page, "limit": self.page_size}
            try:
                case_page = self.list_page(params)
            except Exception as e:
                if raise_on_error:
                    raise
                logger.error(
                    f"Page {page} request failed, returning partial result",
                    extra={"page": page, "record_count": len(result.records), "error": str(e)},
                )
                result.complete = False
                result.stop_reason = "error"
                result.error = str(e)
                break

            result.pages_fetched += 1
            items = case_page.items

            logger.debug(
                f"Page {page}: {len(items)} records",
                extra={"page": page, "page_record_count": len(items)},
            )

            if not items:
                break

            result.records.extend(items)

            more = case_page.continuation.has_more(
                accumulated=len(result.records),
                page=page,
                page_item_count=len(items),
                page_size=self.page_size,
            )
            if not more:
                break

            if result.pages_fetched >= self.max_pages:
                logger.warning(
                    f"Reached maximum page limit ({self.max_pages})",
                    extra={"max_pages": self.max_pages, "record_count": len(result.records)},
                )
                result.complete = False
                result.stop_reason = "max_pages"
                break

            page += 1
            self.sleep(self.page_delay_ms / 1000)

        logger.info(
            f"Pagination complete: {len(result.records)} records in {result.pages_fetched} pages",
            extra={
                "record_count": len(result.records),
                "pages_fetched": result.pages_fetched,
                "complete": result.complete,
                "stop_reason": result.stop_reason,
            },
        )
        return result
