"""Client-side refinement of fetched case records.

The list endpoint applies the query filters loosely; these checks narrow the
fetched set to what was actually asked for.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, time, timezone
from typing import Any, Mapping, Optional, Sequence

from casebridge.transform.normalize import (
    digits_only,
    normalize_match_value,
    normalize_string,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

CREATED_DATE_FIELDS = ("created_date", "created_at")


@dataclass(frozen=True)
class CaseFilter:
    """User-supplied search criteria."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    litigation_id: Optional[str] = None
    status_id: Optional[str] = None
    created_from: Optional[str] = None
    created_to: Optional[str] = None
    tags: Optional[str] = None
    limit: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return not any(
            getattr(self, name)
            for name in (
                "first_name", "last_name", "email", "phone", "litigation_id",
                "status_id", "created_from", "created_to", "tags",
            )
        )


def _contains(record: Mapping[str, Any], fields: Sequence[str], needle: str) -> bool:
    return any(needle in normalize_match_value(record.get(name)) for name in fields)


def _tag_names(record: Mapping[str, Any]) -> list[str]:
    tags = record.get("tags") or []
    if not isinstance(tags, list):
        tags = [tags]
    names = []
    for tag in tags:
        if isinstance(tag, Mapping):
            tag = tag.get("name")
        names.append(normalize_match_value(tag))
    return names


def _created_at(record: Mapping[str, Any]) -> Optional[datetime]:
    for name in CREATED_DATE_FIELDS:
        parsed = parse_timestamp(record.get(name))
        if parsed is not None:
            return parsed
    return None


def _day_bound(value: str, end_of_day: bool) -> Optional[datetime]:
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    bound = time.max if end_of_day else time.min
    return datetime.combine(parsed.date(), bound, tzinfo=timezone.utc)


def matches_filter(record: Mapping[str, Any], criteria: CaseFilter) -> bool:
    """True if a case record satisfies every supplied criterion."""
    if criteria.first_name:
        needle = normalize_match_value(criteria.first_name)
        if not _contains(record, ("fname", "fname_injured"), needle):
            return False

    if criteria.last_name:
        needle = normalize_match_value(criteria.last_name)
        if not _contains(record, ("lname", "lname_injured"), needle):
            return False

    if criteria.email:
        wanted = normalize_match_value(criteria.email)
        emails = {normalize_match_value(record.get(name)) for name in ("email", "email_injured")}
        if wanted not in emails:
            return False

    if criteria.phone:
        wanted = digits_only(criteria.phone)
        if wanted and wanted not in digits_only(record.get("phone")):
            return False

    if criteria.litigation_id:
        if normalize_string(record.get("litigation_id")) != criteria.litigation_id.strip():
            return False

    if criteria.status_id:
        if normalize_string(record.get("status_id")) != criteria.status_id.strip():
            return False

    if criteria.created_from or criteria.created_to:
        created = _created_at(record)
        if created is None:
            return False
        if criteria.created_from:
            start = _day_bound(criteria.created_from, end_of_day=False)
            if start and created < start:
                return False
        if criteria.created_to:
            end = _day_bound(criteria.created_to, end_of_day=True)
            if end and created > end:
                return False

    if criteria.tags:
        wanted_tags = [normalize_match_value(t) for t in criteria.tags.split(",")]
        wanted_tags = [t for t in wanted_tags if t]
        case_tags = _tag_names(record)
        if wanted_tags and not any(w in c for w in wanted_tags for c in case_tags):
            return False

    return True


def filter_cases(records: Sequence[Mapping[str, Any]], criteria: CaseFilter) -> list:
    """Apply criteria to fetched records, then the optional result limit."""
    filtered = [r for r in records if matches_filter(r, criteria)]
    if criteria.limit is not None:
        filtered = filtered[: criteria.limit]

    logger.debug(
        f"Filtered {len(records)} cases down to {len(filtered)}",
        extra={"input_count": len(records), "output_count": len(filtered)},
    )
    return filtered
