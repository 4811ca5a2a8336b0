"""Command-line entrypoint: rows → case service, and case retrieval.

Usage:
    casebridge upload cases.csv
    casebridge upload cases.csv --skip-duplicates --duplicate-mode query
    casebridge check-duplicates cases.json
    casebridge cases --litigation-id 12 --created-from 2025-01-01 --output cases.csv
"""

import argparse
import json
import logging
import sys
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from casebridge.batch import BatchReport, BatchSubmitter
from casebridge.clients import CaseQuery, CaseServiceClient
from casebridge.config import ConfigurationError, Settings, load_settings
from casebridge.transform import (
    CaseFilter,
    DuplicateReport,
    RowTransformer,
    filter_cases,
    find_duplicates,
    find_duplicates_by_query,
)
from casebridge.utils import (
    PipelineLogger,
    RowSourceError,
    read_rows,
    setup_logging,
    timed_operation,
    write_cases,
)

logger = logging.getLogger(__name__)

DUPLICATE_MODES = ("bulk", "query")

EXIT_OK = 0
EXIT_PARTIAL = 1
EXIT_CONFIG = 2

Rows = Sequence[Mapping[str, Any]]


def _load_rows(source: Union[str, Path, Rows]) -> list:
    if isinstance(source, (str, Path)):
        return read_rows(source)
    return list(source)


def _new_batch_id() -> str:
    return uuid.uuid4().hex[:12]


def check_duplicates(
    rows: Rows,
    client: CaseServiceClient,
    mode: str = "bulk",
    lookup_workers: int = 10,
    max_pages: Optional[int] = None,
) -> DuplicateReport:
    """Find rows that already exist remotely.

    Args:
        rows: Upload rows
        client: Case service client
        mode: "bulk" fetches every company case once and matches in memory;
            "query" issues one filtered lookup per row on a bounded pool
        lookup_workers: Concurrent lookups in query mode
        max_pages: Page ceiling override for the bulk fetch

    Returns:
        DuplicateReport (0-based row indices)
    """
    if mode not in DUPLICATE_MODES:
        raise ValueError(f"Unknown duplicate mode: {mode}")

    if mode == "query":
        return find_duplicates_by_query(rows, client.lookup_row, max_workers=lookup_workers)

    fetched = client.fetch_identities(max_pages=max_pages)
    duplicates = find_duplicates(rows, fetched.records)
    report = DuplicateReport(
        duplicates=sorted(duplicates),
        complete=fetched.complete,
        error=fetched.error,
    )
    if not fetched.complete:
        logger.warning(
            "Duplicate check used a partial case list; unflagged rows may still exist remotely",
            extra={"stop_reason": fetched.stop_reason, "record_count": len(fetched.records)},
        )
    return report


def run_duplicate_check(
    source: Union[str, Path, Rows],
    settings: Optional[Settings] = None,
    client: Optional[CaseServiceClient] = None,
    mode: str = "bulk",
    max_pages: Optional[int] = None,
    batch_id: Optional[str] = None,
) -> dict:
    """Check an upload file (or rows) for existing cases.

    Returns:
        ``{"duplicates": [...], "unchecked": [...], "complete": bool}``
    """
    settings = settings or load_settings()
    client = client or CaseServiceClient.from_settings(settings)
    pipeline = PipelineLogger("check_duplicates", batch_id or _new_batch_id())

    rows = _load_rows(source)
    if not rows:
        return DuplicateReport().to_dict()

    pipeline.start("duplicates", row_count=len(rows))
    report = check_duplicates(
        rows,
        client,
        mode=mode,
        lookup_workers=settings.lookup_workers,
        max_pages=max_pages,
    )
    log_step = pipeline.success if report.complete else pipeline.partial
    log_step("duplicates", row_count=len(rows), duplicate_count=len(report.duplicates))

    return report.to_dict()


def run_upload(
    source: Union[str, Path, Rows],
    settings: Optional[Settings] = None,
    client: Optional[CaseServiceClient] = None,
    skip_duplicates: bool = False,
    duplicate_mode: str = "bulk",
    max_pages: Optional[int] = None,
    batch_id: Optional[str] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> dict:
    """Upload rows to the case service.

    Configuration is validated before any row is read; after that, row
    failures are collected and never stop the batch.

    Args:
        source: CSV/JSON path or already-parsed rows
        settings: Settings (loaded from env if omitted)
        client: Case service client (built from settings if omitted)
        skip_duplicates: Leave out rows that already exist remotely
        duplicate_mode: "bulk" or "query" duplicate detection
        max_pages: Page ceiling override for duplicate detection
        batch_id: Optional run identifier
        sleep: Sleep function used for pacing (tests)

    Returns:
        Report dict: message, totalRows, successCount, failureCount, failures
    """
    settings = settings or load_settings()
    client = client or CaseServiceClient.from_settings(settings)
    batch_id = batch_id or _new_batch_id()
    pipeline = PipelineLogger("upload", batch_id)

    rows = _load_rows(source)
    start_time = datetime.now(timezone.utc)

    logger.info(
        "Starting upload",
        extra={"batch_id": batch_id, "row_count": len(rows), "skip_duplicates": skip_duplicates}
    )

    indices = list(range(len(rows)))
    skipped: list[int] = []
    duplicate_report = None

    if skip_duplicates and rows:
        pipeline.start("duplicates", row_count=len(rows))
        duplicate_report = check_duplicates(
            rows,
            client,
            mode=duplicate_mode,
            lookup_workers=settings.lookup_workers,
            max_pages=max_pages,
        )
        skipped = duplicate_report.duplicates
        skipped_set = set(skipped)
        indices = [i for i in indices if i not in skipped_set]
        log_step = pipeline.success if duplicate_report.complete else pipeline.partial
        log_step("duplicates", row_count=len(rows), duplicate_count=len(skipped))

    submitter = BatchSubmitter(
        transformer=RowTransformer(overrides=settings.overrides),
        create=client.create_case,
        pace_ms=settings.pace_ms,
        sleep=sleep,
        on_progress=lambda done, total: pipeline.log_progress("submit", done, total),
    )

    pipeline.start("submit", row_count=len(indices))
    outcomes = submitter.submit_all([rows[i] for i in indices], row_indices=indices)
    report = BatchReport.from_outcomes(outcomes, total_rows=len(rows), skipped_rows=skipped)

    log_step = pipeline.partial if report.failure_count else pipeline.success
    log_step(
        "submit",
        row_count=report.total_rows,
        success_count=report.success_count,
        failure_count=report.failure_count,
    )

    result = report.to_dict()
    result["batchId"] = batch_id
    if duplicate_report is not None:
        result["duplicateCheck"] = duplicate_report.to_dict()

    duration_seconds = (datetime.now(timezone.utc) - start_time).total_seconds()
    logger.info(
        f"{report.message} in {duration_seconds:.2f}s",
        extra={"batch_id": batch_id, "metrics": client.metrics.to_dict()},
    )
    return result


def run_case_query(
    query: Optional[CaseQuery] = None,
    criteria: Optional[CaseFilter] = None,
    settings: Optional[Settings] = None,
    client: Optional[CaseServiceClient] = None,
    output: Optional[Union[str, Path]] = None,
    fmt: Optional[str] = None,
    max_pages: Optional[int] = None,
    batch_id: Optional[str] = None,
) -> dict:
    """Fetch all matching cases, refine them locally and optionally export.

    Returns:
        ``{"cases": [...], "total": n, "complete": bool}`` plus ``export``
        metadata when an output path was given
    """
    settings = settings or load_settings()
    client = client or CaseServiceClient.from_settings(settings)
    query = query or CaseQuery()
    criteria = criteria or CaseFilter()
    pipeline = PipelineLogger("cases", batch_id or _new_batch_id())

    if settings.overrides.company_uuid and not query.company_uuid:
        query = replace(query, company_uuid=settings.overrides.company_uuid)

    pipeline.start("fetch")
    with timed_operation("fetch_cases", logger) as timer:
        fetched = client.fetch_cases(query, max_pages=max_pages)

    cases = filter_cases(fetched.records, criteria)
    result = {
        "cases": cases,
        "total": len(cases),
        "complete": fetched.complete,
    }
    if fetched.error:
        result["error"] = fetched.error
        pipeline.error("fetch", fetched.error, record_count=len(fetched.records))
    elif fetched.complete:
        pipeline.success("fetch", row_count=len(fetched.records), pages=fetched.pages_fetched)
    else:
        pipeline.partial("fetch", row_count=len(fetched.records), stop_reason=fetched.stop_reason)

    logger.info(
        f"Total cases fetched: {len(fetched.records)}, after filters: {len(cases)}",
        extra={
            "fetched_count": len(fetched.records),
            "result_count": len(cases),
            "duration_ms": round(timer.duration_ms, 2),
        },
    )

    if output:
        result["export"] = write_cases(cases, output, fmt)

    return result


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines",
    )
    parser.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help="Page ceiling for list requests (default: MAX_PAGES or 100)",
    )
    parser.add_argument(
        "--page-size",
        type=int,
        default=None,
        help="Records per list page (default: PAGE_SIZE or 100)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="casebridge",
        description="Upload tabular case records to the case service and query existing cases",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    upload_parser = subparsers.add_parser("upload", help="Create one case per row")
    upload_parser.add_argument("path", type=Path, help="CSV or JSON rows file")
    upload_parser.add_argument(
        "--skip-duplicates",
        action="store_true",
        help="Do not submit rows that already exist remotely",
    )
    upload_parser.add_argument(
        "--duplicate-mode",
        choices=DUPLICATE_MODES,
        default="bulk",
        help="Duplicate detection strategy (default: bulk)",
    )
    upload_parser.add_argument(
        "--report",
        type=Path,
        default=None,
        help="Also write the JSON report to this file",
    )
    _add_common_arguments(upload_parser)

    dup_parser = subparsers.add_parser("check-duplicates", help="Flag rows that already exist")
    dup_parser.add_argument("path", type=Path, help="CSV or JSON rows file")
    dup_parser.add_argument(
        "--mode",
        choices=DUPLICATE_MODES,
        default="bulk",
        help="Duplicate detection strategy (default: bulk)",
    )
    _add_common_arguments(dup_parser)

    cases_parser = subparsers.add_parser("cases", help="Fetch and filter existing cases")
    cases_parser.add_argument("--litigation-id")
    cases_parser.add_argument("--status-id")
    cases_parser.add_argument("--first-name")
    cases_parser.add_argument("--last-name")
    cases_parser.add_argument("--email")
    cases_parser.add_argument("--phone")
    cases_parser.add_argument("--created-from", help="YYYY-MM-DD, inclusive")
    cases_parser.add_argument("--created-to", help="YYYY-MM-DD, inclusive")
    cases_parser.add_argument("--tag", help="Comma-separated tag names")
    cases_parser.add_argument("--limit", type=int, default=None, help="Maximum cases to return")
    cases_parser.add_argument("--output", type=Path, default=None, help="Export file")
    cases_parser.add_argument(
        "--format",
        dest="fmt",
        choices=["json", "jsonl", "csv", "parquet"],
        default=None,
        help="Export format (default: from --output extension)",
    )
    _add_common_arguments(cases_parser)

    return parser


def _query_from_args(args: argparse.Namespace) -> tuple[CaseQuery, CaseFilter]:
    query = CaseQuery(
        litigation_id=args.litigation_id,
        status_id=args.status_id,
        fname_injured=args.first_name,
        lname_injured=args.last_name,
        email_injured=args.email,
        phone=args.phone,
        created_at_start=args.created_from,
        created_at_end=args.created_to,
        tag=args.tag,
    )
    criteria = CaseFilter(
        first_name=args.first_name,
        last_name=args.last_name,
        email=args.email,
        phone=args.phone,
        litigation_id=args.litigation_id,
        status_id=args.status_id,
        created_from=args.created_from,
        created_to=args.created_to,
        tags=args.tag,
        limit=args.limit,
    )
    return query, criteria


def _emit(result: dict) -> None:
    json.dump(result, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level, json_format=args.json_logs)

    client = None
    try:
        settings = load_settings(require_api_key=True)
        if args.page_size is not None:
            if args.page_size < 1:
                raise ConfigurationError("--page-size must be at least 1")
            settings = replace(settings, page_size=args.page_size)
        client = CaseServiceClient.from_settings(settings)

        if args.command == "upload":
            result = run_upload(
                args.path,
                settings=settings,
                client=client,
                skip_duplicates=args.skip_duplicates,
                duplicate_mode=args.duplicate_mode,
                max_pages=args.max_pages,
            )
            if args.report:
                args.report.parent.mkdir(parents=True, exist_ok=True)
                args.report.write_text(json.dumps(result, indent=2, default=str), encoding="utf-8")
            _emit(result)
            duplicate_check = result.get("duplicateCheck", {})
            if result["failureCount"] or not duplicate_check.get("complete", True):
                return EXIT_PARTIAL
            return EXIT_OK

        if args.command == "check-duplicates":
            result = run_duplicate_check(
                args.path,
                settings=settings,
                client=client,
                mode=args.mode,
                max_pages=args.max_pages,
            )
            _emit(result)
            return EXIT_OK if result["complete"] else EXIT_PARTIAL

        query, criteria = _query_from_args(args)
        if criteria.is_empty:
            parser.error("cases: enter at least one search criterion")
        result = run_case_query(
            query,
            criteria,
            settings=settings,
            client=client,
            output=args.output,
            fmt=args.fmt,
            max_pages=args.max_pages,
        )
        if args.output:
            _emit({k: v for k, v in result.items() if k != "cases"})
        else:
            _emit(result)
        return EXIT_OK if result["complete"] else EXIT_PARTIAL

    except (ConfigurationError, RowSourceError) as e:
        logger.error(str(e))
        return EXIT_CONFIG
    finally:
        if client is not None:
            client.close()


if __name__ == "__main__":
    sys.exit(main())
