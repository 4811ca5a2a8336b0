"""Data transformation modules.

Handles:
- Row to payload coercion
- Loosely-structured object parsing
- Payload validation
- Duplicate detection
- Case filtering and flattening for export
"""

from .rows import FieldKind, RowTransformer, DEFAULT_FIELD_RULES
from .loose_object import (
    LooseObjectStrategy,
    QuotedJsonStrategy,
    KeyValuePairsStrategy,
    parse_loose_object,
)
from .normalize import (
    parse_timestamp,
    normalize_match_value,
    validate_required_fields,
    ValidationResult,
)
from .duplicates import (
    CaseIdentity,
    DuplicateReport,
    find_duplicates,
    find_duplicates_by_query,
    row_identity,
    record_identity,
)
from .filters import CaseFilter, filter_cases
from .flatten import flatten_json, flatten_records

__all__ = [
    # Rows
    "FieldKind",
    "RowTransformer",
    "DEFAULT_FIELD_RULES",
    # Loose objects
    "LooseObjectStrategy",
    "QuotedJsonStrategy",
    "KeyValuePairsStrategy",
    "parse_loose_object",
    # Normalization / validation
    "parse_timestamp",
    "normalize_match_value",
    "validate_required_fields",
    "ValidationResult",
    # Duplicates
    "CaseIdentity",
    "DuplicateReport",
    "find_duplicates",
    "find_duplicates_by_query",
    "row_identity",
    "record_identity",
    # Filtering / export
    "CaseFilter",
    "filter_cases",
    "flatten_json",
    "flatten_records",
]
