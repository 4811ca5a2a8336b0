"""Value normalization and payload validation helpers."""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

logger = logging.getLogger(__name__)

# Timestamp layouts seen in case records returned by the API
TIMESTAMP_FORMATS = [
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y",
]


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a timestamp into an aware UTC datetime.

    Args:
        value: Timestamp value (string, int/float epoch, or datetime)

    Returns:
        Parsed datetime, or None if the value cannot be interpreted
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value

    if isinstance(value, (int, float)):
        # Milliseconds if beyond year 3000 in seconds
        if value > 32503680000:
            value = value / 1000
        return datetime.fromtimestamp(value, tz=timezone.utc)

    if isinstance(value, str):
        text = value.strip()
        for fmt in TIMESTAMP_FORMATS:
            try:
                dt = datetime.strptime(text, fmt)
            except ValueError:
                continue
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return dt

        logger.debug(f"Could not parse timestamp: {value}")
        return None

    return None


def normalize_string(value: Any) -> Optional[str]:
    """Normalize string value."""
    if value is None:
        return None

    if isinstance(value, str):
        return value.strip()

    return str(value)


def normalize_match_value(value: Any) -> str:
    """Case-folded, trimmed form used for identity comparisons.

    Missing values normalize to the empty string.
    """
    text = normalize_string(value)
    if not text:
        return ""
    return text.casefold()


def digits_only(value: Any) -> str:
    """Strip everything but digits (phone comparisons)."""
    return re.sub(r"\D", "", normalize_string(value) or "")


# ============================================
# Validation
# ============================================

@dataclass
class ValidationResult:
    """Result of payload validation."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    record: Optional[dict] = None


def validate_required_fields(
    record: dict,
    required_fields: Sequence[str],
) -> ValidationResult:
    """Validate that required fields are present and not null.

    Args:
        record: The payload to validate
        required_fields: Required field names, in reporting order

    Returns:
        ValidationResult with is_valid flag and any errors
    """
    errors = []

    for field_name in required_fields:
        if field_name not in record:
            errors.append(f"Missing required field: {field_name}")
        elif record[field_name] is None:
            errors.append(f"Null value for required field: {field_name}")
        elif isinstance(record[field_name], str) and not record[field_name].strip():
            errors.append(f"Empty value for required field: {field_name}")

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        record=record if len(errors) == 0 else None,
    )
