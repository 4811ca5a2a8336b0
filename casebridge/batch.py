"""Rate-paced sequential submission of rows to the case service.

Rows are transformed, validated and created one at a time, with a fixed
pause between consecutive rows so the write rate stays under the remote
ceiling regardless of response latency. A failing row is recorded and the
batch moves on.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from casebridge.clients.base import error_message_from_exception
from casebridge.config import DEFAULT_PACE_MS
from casebridge.transform.normalize import validate_required_fields
from casebridge.transform.rows import RowTransformer

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("litigation_id", "status_id")
PROGRESS_EVERY = 10


@dataclass(frozen=True)
class SubmissionSuccess:
    """A row the remote service accepted."""

    row_index: int
    record: Any

    ok = True


@dataclass(frozen=True)
class SubmissionFailure:
    """A row that was rejected locally or by the remote service."""

    row_index: int
    error: str

    ok = False


SubmissionOutcome = Union[SubmissionSuccess, SubmissionFailure]


@dataclass
class BatchReport:
    """Aggregate result of one batch, in the shape callers consume."""

    total_rows: int
    success_count: int
    failure_count: int
    failures: list[dict] = field(default_factory=list)
    skipped_rows: list[int] = field(default_factory=list)

    @classmethod
    def from_outcomes(
        cls,
        outcomes: Sequence[SubmissionOutcome],
        total_rows: Optional[int] = None,
        skipped_rows: Optional[Sequence[int]] = None,
    ) -> "BatchReport":
        """Summarize outcomes.

        Args:
            outcomes: Per-row outcomes in submission order
            total_rows: Rows in the input (defaults to len(outcomes))
            skipped_rows: 0-based indices deliberately not submitted

        Returns:
            BatchReport with 1-based row numbers
        """
        failures = [
            {"row": outcome.row_index + 1, "error": outcome.error}
            for outcome in outcomes
            if not outcome.ok
        ]
        return cls(
            total_rows=len(outcomes) if total_rows is None else total_rows,
            success_count=sum(1 for outcome in outcomes if outcome.ok),
            failure_count=len(failures),
            failures=failures,
            skipped_rows=[index + 1 for index in (skipped_rows or [])],
        )

    @property
    def message(self) -> str:
        return (
            f"Processed {self.total_rows} rows. "
            f"Success: {self.success_count}, Failures: {self.failure_count}"
        )

    def to_dict(self) -> dict:
        data = {
            "message": self.message,
            "totalRows": self.total_rows,
            "successCount": self.success_count,
            "failureCount": self.failure_count,
            "failures": self.failures,
        }
        if self.skipped_rows:
            data["skippedRows"] = self.skipped_rows
        return data


class BatchSubmitter:
    """Submit rows one at a time with a fixed pause between them."""

    def __init__(
        self,
        transformer: RowTransformer,
        create: Callable[[dict], Any],
        pace_ms: int = DEFAULT_PACE_MS,
        sleep: Optional[Callable[[float], None]] = None,
        required_fields: Sequence[str] = REQUIRED_FIELDS,
        progress_every: int = PROGRESS_EVERY,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ):
        """Initialize submitter.

        Args:
            transformer: Row to payload converter
            create: Remote create call; raises on failure
            pace_ms: Pause between consecutive rows (400 ms = 150/minute)
            sleep: Sleep function (injectable for tests)
            required_fields: Payload fields checked before any remote call
            progress_every: Emit progress after this many rows
            on_progress: Optional callback receiving (processed, total)
        """
        self.transformer = transformer
        self.create = create
        self.pace_ms = pace_ms
        self.sleep = sleep or time.sleep
        self.required_fields = tuple(required_fields)
        self.progress_every = progress_every
        self.on_progress = on_progress

    def submit_row(self, row: Mapping[str, Any], row_index: int) -> SubmissionOutcome:
        """Transform, validate and create a single row."""
        payload = self.transformer.transform(row)

        validation = validate_required_fields(payload, self.required_fields)
        if not validation.is_valid:
            error = validation.errors[0]
            logger.warning(
                f"Row {row_index + 1} failed validation: {error}",
                extra={"row_index": row_index, "error": error},
            )
            return SubmissionFailure(row_index=row_index, error=error)

        try:
            record = self.create(payload)
        except Exception as e:
            error = error_message_from_exception(e)
            logger.error(
                f"Error creating case at row {row_index + 1}: {error}",
                extra={
                    "row_index": row_index,
                    "error": error,
                    "exception": e.__class__.__name__,
                },
            )
            return SubmissionFailure(row_index=row_index, error=error)

        return SubmissionSuccess(row_index=row_index, record=record)

    def submit_all(
        self,
        rows: Sequence[Mapping[str, Any]],
        row_indices: Optional[Sequence[int]] = None,
    ) -> list[SubmissionOutcome]:
        """Submit every row in order.

        Args:
            rows: Raw rows in input order
            row_indices: Original positions reported in outcomes (defaults
                to each row's position in ``rows``)

        Returns:
            One outcome per row, in input order
        """
        if row_indices is None:
            row_indices = range(len(rows))
        elif len(row_indices) != len(rows):
            raise ValueError("row_indices must have one entry per row")

        total = len(rows)
        outcomes: list[SubmissionOutcome] = []

        logger.info(
            f"Submitting {total} rows",
            extra={"row_count": total, "pace_ms": self.pace_ms},
        )

        for position, (row, row_index) in enumerate(zip(rows, row_indices)):
            outcomes.append(self.submit_row(row, row_index))

            processed = position + 1
            if processed < total:
                self.sleep(self.pace_ms / 1000)

            if self.progress_every and processed % self.progress_every == 0:
                logger.info(
                    f"Progress: {processed}/{total} cases processed",
                    extra={"processed": processed, "row_count": total},
                )
                if self.on_progress:
                    self.on_progress(processed, total)

        success_count = sum(1 for outcome in outcomes if outcome.ok)
        logger.info(
            f"Batch complete: {success_count} succeeded, {total - success_count} failed",
            extra={
                "row_count": total,
                "success_count": success_count,
                "failure_count": total - success_count,
            },
        )
        return outcomes
