"""Duplicate detection of upload rows against existing remote cases.

A row is a duplicate when some existing case agrees with it on every
identity field the row actually supplies (first name, last name, email),
compared case-insensitively after trimming. Fields the row leaves empty act
as wildcards; rows with no identity at all are never flagged.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from casebridge.transform.normalize import normalize_match_value

logger = logging.getLogger(__name__)

DEFAULT_LOOKUP_WORKERS = 10

# Row columns checked in order for each identity component
ROW_IDENTITY_FIELDS = {
    "fname": ("fname_injured", "fname"),
    "lname": ("lname_injured", "lname"),
    "email": ("email_injured", "email"),
}

RECORD_IDENTITY_FIELDS = {
    "fname": "fname_injured",
    "lname": "lname_injured",
    "email": "email_injured",
}


@dataclass(frozen=True)
class CaseIdentity:
    """Normalized (first name, last name, email) triple."""

    fname: str = ""
    lname: str = ""
    email: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.fname or self.lname or self.email)

    @property
    def is_complete(self) -> bool:
        return bool(self.fname and self.lname and self.email)

    def matches(self, other: "CaseIdentity") -> bool:
        """True if every non-empty component of self equals other's."""
        return (
            (not self.fname or self.fname == other.fname)
            and (not self.lname or self.lname == other.lname)
            and (not self.email or self.email == other.email)
        )


def _first_present(row: Mapping[str, Any], names: Sequence[str]) -> Any:
    for name in names:
        value = row.get(name)
        if value:
            return value
    return ""


def row_query_values(row: Mapping[str, Any]) -> dict[str, str]:
    """Trimmed identity values of a row keyed by case record field, for remote search."""
    values = {}
    for component, names in ROW_IDENTITY_FIELDS.items():
        value = _first_present(row, names)
        text = str(value).strip() if value else ""
        if text:
            values[RECORD_IDENTITY_FIELDS[component]] = text
    return values


def row_identity(row: Mapping[str, Any]) -> CaseIdentity:
    """Identity of an upload row (``*_injured`` columns win over bare ones)."""
    return CaseIdentity(
        **{
            component: normalize_match_value(_first_present(row, names))
            for component, names in ROW_IDENTITY_FIELDS.items()
        }
    )


def record_identity(record: Mapping[str, Any]) -> CaseIdentity:
    """Identity of a case record returned by the API."""
    return CaseIdentity(
        **{
            component: normalize_match_value(record.get(name))
            for component, name in RECORD_IDENTITY_FIELDS.items()
        }
    )


def has_match(identity: CaseIdentity, candidates: Iterable[CaseIdentity]) -> bool:
    return any(identity.matches(candidate) for candidate in candidates)


def find_duplicates(
    rows: Sequence[Mapping[str, Any]],
    existing: Iterable[Mapping[str, Any]],
) -> set[int]:
    """Flag rows that already exist among the given case records.

    Args:
        rows: Upload rows in input order
        existing: Case records fetched from the API

    Returns:
        0-based indices of duplicate rows
    """
    identities = [record_identity(record) for record in existing]
    exact = set(identities)
    duplicates: set[int] = set()

    for index, row in enumerate(rows):
        identity = row_identity(row)
        if identity.is_empty:
            continue

        # Fully specified rows can use the exact lookup
        if identity.is_complete:
            found = identity in exact
        else:
            found = has_match(identity, identities)

        if found:
            duplicates.add(index)

    logger.info(
        f"Duplicate check flagged {len(duplicates)} of {len(rows)} rows",
        extra={
            "row_count": len(rows),
            "existing_count": len(identities),
            "duplicate_count": len(duplicates),
        },
    )
    return duplicates


@dataclass
class DuplicateReport:
    """Outcome of a duplicate check.

    ``complete`` is False whenever the comparison data was partial, in which
    case rows missing from ``duplicates`` are not known to be new.
    """

    duplicates: list[int] = field(default_factory=list)
    unchecked: list[int] = field(default_factory=list)
    complete: bool = True
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "duplicates": self.duplicates,
            "unchecked": self.unchecked,
            "complete": self.complete,
        }
        if self.error:
            data["error"] = self.error
        return data


def find_duplicates_by_query(
    rows: Sequence[Mapping[str, Any]],
    lookup: Callable[[Mapping[str, Any]], list[dict]],
    max_workers: int = DEFAULT_LOOKUP_WORKERS,
) -> DuplicateReport:
    """Check each row with its own remote lookup, on a bounded thread pool.

    Args:
        rows: Upload rows in input order
        lookup: Returns candidate case records for a row
        max_workers: Maximum concurrent lookups

    Returns:
        DuplicateReport; rows whose lookup failed are listed as unchecked
    """
    identities = [row_identity(row) for row in rows]
    results: list[Optional[bool]] = [False] * len(rows)

    def check(index: int) -> None:
        identity = identities[index]
        try:
            candidates = lookup(rows[index])
        except Exception as e:
            logger.warning(
                f"Duplicate lookup failed for row {index}",
                extra={"row_index": index, "error": str(e)},
            )
            results[index] = None
            return
        results[index] = has_match(
            identity, (record_identity(record) for record in candidates)
        )

    pending = [i for i, identity in enumerate(identities) if not identity.is_empty]
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        list(executor.map(check, pending))

    report = DuplicateReport(
        duplicates=[i for i, flagged in enumerate(results) if flagged],
        unchecked=[i for i, flagged in enumerate(results) if flagged is None],
    )
    report.complete = not report.unchecked

    logger.info(
        f"Per-row duplicate check flagged {len(report.duplicates)} of {len(rows)} rows",
        extra={
            "row_count": len(rows),
            "lookup_count": len(pending),
            "duplicate_count": len(report.duplicates),
            "unchecked_count": len(report.unchecked),
        },
    )
    return report
