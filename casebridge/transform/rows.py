"""Row → case payload transformation.

Turns one raw tabular row (string-keyed, string-valued) into the JSON payload
the case API expects. Malformed values never raise: they degrade to a
best-effort value or pass through raw, and the remote API's own validation
reports them per row.
"""

import logging
import re
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from casebridge.config import DefaultOverrides
from casebridge.transform.loose_object import LooseObjectStrategy, parse_loose_object

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"[+-]?\d+")


class FieldKind(Enum):
    """How a row field is coerced into the payload."""

    PLAIN = "plain"
    DATE = "date"
    STRING_ARRAY = "string_array"
    INTEGER_ARRAY = "integer_array"
    OBJECT = "object"


DEFAULT_FIELD_RULES: dict[str, FieldKind] = {
    "birthday_injured": FieldKind.DATE,
    "birthday": FieldKind.DATE,
    "date_of_accident": FieldKind.DATE,
    "incident_date": FieldKind.DATE,
    "products": FieldKind.STRING_ARRAY,
    "tags": FieldKind.STRING_ARRAY,
    "conditions": FieldKind.INTEGER_ARRAY,
    "information": FieldKind.INTEGER_ARRAY,
    "meta": FieldKind.OBJECT,
}


def format_date(value: str) -> str:
    """Convert ``M/D/YYYY`` to ``YYYY-MM-DD``.

    Anything that does not split into exactly three ``/``-separated parts is
    returned unchanged. The parts themselves are not validated.
    """
    parts = value.split("/")
    if len(parts) != 3:
        return value

    month, day, year = parts
    return f"{year}-{month.rjust(2, '0')}-{day.rjust(2, '0')}"


def clean_array_item(item: str) -> str:
    """Trim an array item and drop one wrapping ``[`` / ``]``."""
    item = item.strip()
    if item.startswith("["):
        item = item[1:]
    if item.endswith("]"):
        item = item[:-1]
    return item.strip()


def split_array(value: str) -> list[str]:
    """Split on commas first, then clean each item independently.

    ``"[a, b],c"`` becomes ``["a", "b", "c"]``: brackets are not treated as
    grouping.
    """
    return [clean_array_item(item) for item in value.split(",")]


def parse_int(value: str) -> Optional[int]:
    """Parse the leading base-10 integer of a string, or None."""
    match = _LEADING_INT.match(value.strip())
    if not match:
        return None
    return int(match.group(0))


def split_int_array(value: str) -> list[int]:
    """Split like :func:`split_array` and keep only items that parse as ints."""
    numbers = []
    for item in split_array(value):
        number = parse_int(item)
        if number is not None:
            numbers.append(number)
    return numbers


class RowTransformer:
    """Convert raw rows into case payloads.

    Field handling is driven by a rule table (``field name -> FieldKind``);
    names missing from the table are PLAIN. Configured default overrides are
    applied last and always win over row values.
    """

    def __init__(
        self,
        field_rules: Optional[Mapping[str, FieldKind]] = None,
        overrides: Optional[DefaultOverrides] = None,
        object_strategies: Optional[Sequence[LooseObjectStrategy]] = None,
    ):
        """Initialize transformer.

        Args:
            field_rules: Field name to kind mapping (defaults to DEFAULT_FIELD_RULES)
            overrides: Values forced onto every payload
            object_strategies: Ordered parsers for OBJECT fields
        """
        self.field_rules = dict(DEFAULT_FIELD_RULES if field_rules is None else field_rules)
        self.overrides = overrides or DefaultOverrides()
        self.object_strategies = object_strategies

    def rule_for(self, field_name: str) -> FieldKind:
        return self.field_rules.get(field_name, FieldKind.PLAIN)

    def transform_value(self, field_name: str, value: Any) -> Any:
        """Coerce a single non-empty value according to its field rule."""
        if not isinstance(value, str):
            # Pre-parsed JSON rows may already carry typed values
            return value

        kind = self.rule_for(field_name)

        if kind is FieldKind.DATE:
            return format_date(value)
        if kind is FieldKind.STRING_ARRAY:
            return split_array(value)
        if kind is FieldKind.INTEGER_ARRAY:
            return split_int_array(value)
        if kind is FieldKind.OBJECT:
            parsed = parse_loose_object(value, self.object_strategies)
            if parsed is None:
                logger.debug(
                    "Keeping unparsable object field as raw text",
                    extra={"field": field_name},
                )
                return value
            return parsed
        return value

    def transform(self, row: Mapping[str, Any]) -> dict:
        """Build a payload from one raw row.

        Args:
            row: Field name to raw value mapping

        Returns:
            Payload dict ready to POST
        """
        payload: dict[str, Any] = {}

        for field_name, value in row.items():
            if value is None or value == "":
                continue
            payload[field_name] = self.transform_value(field_name, value)

        payload.update(self.overrides.as_payload())
        return payload
