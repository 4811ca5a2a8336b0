"""Utility modules for the case bridge.

Includes:
- Logging configuration
- Structured step logging
- Row source readers and case exporters
"""

from .logging_config import setup_logging, get_logger, JsonFormatter
from .file_io import (
    RowSourceError,
    read_rows,
    read_csv_rows,
    read_json_rows,
    write_cases,
    write_jsonl,
    write_parquet,
)
from .pipeline_logger import PipelineLogger, timed_operation

__all__ = [
    "setup_logging",
    "get_logger",
    "JsonFormatter",
    "RowSourceError",
    "read_rows",
    "read_csv_rows",
    "read_json_rows",
    "write_cases",
    "write_jsonl",
    "write_parquet",
    "PipelineLogger",
    "timed_operation",
]
