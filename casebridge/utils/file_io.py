"""File I/O for upload rows and case exports."""

import csv
import json
import logging
from pathlib import Path
from typing import Any, Optional, Union

from casebridge.transform.flatten import collect_columns, flatten_records

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("json", "jsonl", "csv", "parquet")


class RowSourceError(ValueError):
    """Raised when an upload file cannot be read as rows."""


def read_csv_rows(file_path: Union[str, Path]) -> list[dict]:
    """Read a CSV file into string-keyed rows.

    The first line is the header; header names are trimmed. Missing trailing
    cells read as empty strings.

    Args:
        file_path: Path to CSV file

    Returns:
        List of rows in file order
    """
    try:
        with open(file_path, "r", encoding="utf-8-sig", newline="") as f:
            reader = csv.DictReader(f)
            if reader.fieldnames is None:
                raise RowSourceError(f"CSV file is empty: {file_path}")

            headers = [name.strip() for name in reader.fieldnames]
            rows = []
            for raw in reader:
                values = [raw.get(name) for name in reader.fieldnames]
                rows.append({
                    header: "" if value is None else value
                    for header, value in zip(headers, values)
                })
    except UnicodeDecodeError as e:
        raise RowSourceError(f"{file_path} is not valid UTF-8: {e}") from e
    except csv.Error as e:
        raise RowSourceError(f"Malformed CSV in {file_path}: {e}") from e

    logger.debug(f"Read {len(rows)} rows from {file_path}")
    return rows


def read_json_rows(file_path: Union[str, Path]) -> list[dict]:
    """Read rows from JSON: a list of objects or ``{"rows": [...]}``.

    Args:
        file_path: Path to JSON file

    Returns:
        List of row objects
    """
    with open(file_path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except UnicodeDecodeError as e:
            raise RowSourceError(f"{file_path} is not valid UTF-8: {e}") from e
        except (ValueError, RecursionError) as e:
            raise RowSourceError(f"Invalid JSON in {file_path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("rows")
    if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
        raise RowSourceError(f"{file_path} must contain a list of row objects")

    logger.debug(f"Read {len(data)} rows from {file_path}")
    return data


def read_rows(file_path: Union[str, Path]) -> list[dict]:
    """Read upload rows, choosing the parser from the file extension."""
    path = Path(file_path)
    if not path.exists():
        raise RowSourceError(f"File not found: {path}")
    if path.suffix.lower() == ".json":
        return read_json_rows(path)
    return read_csv_rows(path)


def write_json(records: list[dict], output_path: Union[str, Path]) -> dict:
    """Write records as one pretty-printed JSON array."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(records, f, indent=2, default=str)

    return _export_metadata(output_path, records, "json")


def write_jsonl(records: list[dict], output_path: Union[str, Path]) -> dict:
    """Write records to a JSONL file, one record per line.

    Args:
        records: List of records to write
        output_path: Output file path

    Returns:
        Metadata dict with file info
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", encoding="utf-8") as f:
        for record in records:
            f.write(json.dumps(record, default=str) + "\n")

    return _export_metadata(output_path, records, "jsonl")


def write_csv(records: list[dict], output_path: Union[str, Path]) -> dict:
    """Write records to CSV, flattening nested objects and joining lists."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    flattened = flatten_records(records)
    columns = collect_columns(flattened)

    with open(output_path, "w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=columns, restval="")
        writer.writeheader()
        for record in flattened:
            writer.writerow({k: "" if v is None else v for k, v in record.items()})

    return _export_metadata(output_path, records, "csv")


def write_parquet(records: list[dict], output_path: Union[str, Path]) -> dict:
    """Write records to a Parquet file.

    Requires pyarrow to be installed (``pip install casebridge[parquet]``).

    Args:
        records: List of records to write
        output_path: Output file path

    Returns:
        Metadata dict with file info
    """
    try:
        import pyarrow as pa
        import pyarrow.parquet as pq
    except ImportError:
        raise ImportError("pyarrow is required for Parquet support")

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    # Flattened rows keep column types uniform across heterogeneous cases
    table = pa.Table.from_pylist(flatten_records(records))
    pq.write_table(table, output_path)

    return _export_metadata(output_path, records, "parquet")


def write_cases(
    records: list[dict],
    output_path: Union[str, Path],
    fmt: Optional[str] = None,
) -> dict:
    """Export case records in the requested (or extension-implied) format."""
    output_path = Path(output_path)
    fmt = (fmt or output_path.suffix.lstrip(".") or "json").lower()

    writers = {
        "json": write_json,
        "jsonl": write_jsonl,
        "csv": write_csv,
        "parquet": write_parquet,
    }
    if fmt not in writers:
        raise ValueError(f"Unsupported export format: {fmt} (expected one of {EXPORT_FORMATS})")

    return writers[fmt](records, output_path)


def _export_metadata(output_path: Path, records: list[Any], fmt: str) -> dict:
    metadata = {
        "file_path": str(output_path),
        "format": fmt,
        "record_count": len(records),
        "file_size_bytes": output_path.stat().st_size,
    }
    logger.info(
        f"Wrote {len(records)} records to {output_path}",
        extra=metadata
    )
    return metadata
