"""Structured step logging for upload, duplicate-check and fetch runs.

Every record carries the same core fields:
- source (which command produced it)
- batch_id
- step
- row_count
- duration_ms
- status
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union

logger = logging.getLogger(__name__)


@dataclass
class PipelineLogContext:
    """Context attached to each structured step record."""

    source: str
    batch_id: str
    step: str = ""
    row_count: int = 0
    duration_ms: Optional[float] = None
    status: str = "started"
    error: Optional[str] = None
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["timestamp"] = datetime.now(timezone.utc).isoformat()
        return {k: v for k, v in data.items() if v is not None}


class PipelineLogger:
    """Structured logger for one command run."""

    def __init__(self, source: str, batch_id: str):
        """Initialize pipeline logger.

        Args:
            source: Command name (e.g. 'upload', 'check_duplicates', 'cases')
            batch_id: Unique run identifier
        """
        self.source = source
        self.batch_id = batch_id
        self.logger = logging.getLogger(f"casebridge.pipeline.{source}")
        self._start_times: dict[str, float] = {}
        self._durations: dict[str, float] = {}

    def _log(self, level: int, step: str, **kwargs) -> None:
        ctx = PipelineLogContext(
            source=self.source,
            batch_id=self.batch_id,
            step=step,
            **kwargs
        )
        self.logger.log(level, f"{self.source}.{step} {ctx.status}", extra=ctx.to_dict())

    def _elapsed_ms(self, step: str) -> Optional[float]:
        started = self._start_times.get(step)
        if started is None:
            return None
        duration = round((time.time() - started) * 1000, 2)
        self._durations[step] = duration
        return duration

    def start(self, step: str, row_count: int = 0) -> None:
        """Log step start."""
        self._start_times[step] = time.time()
        self._log(logging.INFO, step, status="started", row_count=row_count)

    def success(self, step: str, row_count: int = 0, **details) -> None:
        """Log step success."""
        self._log(
            logging.INFO,
            step,
            status="success",
            row_count=row_count,
            duration_ms=self._elapsed_ms(step),
            details=details,
        )

    def partial(self, step: str, row_count: int = 0, **details) -> None:
        """Log a step that finished with some failures or partial data."""
        self._log(
            logging.WARNING,
            step,
            status="partial",
            row_count=row_count,
            duration_ms=self._elapsed_ms(step),
            details=details,
        )

    def error(self, step: str, error: Union[Exception, str], **details) -> None:
        """Log step error."""
        self._log(
            logging.ERROR,
            step,
            status="error",
            error=str(error),
            duration_ms=self._elapsed_ms(step),
            details=details,
        )

    def log_progress(self, step: str, processed: int, total: int) -> None:
        """Log intermediate progress of a long step."""
        self._log(
            logging.INFO,
            step,
            status="progress",
            row_count=processed,
            details={"total": total},
        )

    def get_metrics(self) -> dict:
        """Per-step durations recorded so far."""
        return {
            "source": self.source,
            "batch_id": self.batch_id,
            "step_durations_ms": dict(self._durations),
        }


@contextmanager
def timed_operation(name: str, logger: logging.Logger = None):
    """Context manager to time an operation.

    Usage:
        with timed_operation("fetch_cases") as timer:
            result = client.fetch_cases()
        print(f"Took {timer.duration_ms}ms")

    Args:
        name: Operation name for logging
        logger: Optional logger instance

    Yields:
        Timer object with duration_ms attribute
    """
    class Timer:
        def __init__(self):
            self.start_time = time.time()
            self.end_time = None
            self.duration_ms = 0

    timer = Timer()

    try:
        yield timer
    finally:
        timer.end_time = time.time()
        timer.duration_ms = (timer.end_time - timer.start_time) * 1000

        if logger:
            logger.debug(
                f"Operation '{name}' completed",
                extra={"operation": name, "duration_ms": timer.duration_ms}
            )
