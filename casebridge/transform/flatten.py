"""Flattening of nested case records for tabular export."""

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

LIST_SEPARATOR = "; "


def _cell(value: Any) -> Any:
    """Render a list into a single cell; dict items are JSON-encoded."""
    if isinstance(value, list):
        return LIST_SEPARATOR.join(
            json.dumps(item, default=str) if isinstance(item, (dict, list)) else str(item)
            for item in value
        )
    return value


def flatten_json(
    nested_dict: dict,
    parent_key: str = "",
    separator: str = "_",
    max_depth: int = 10,
) -> dict:
    """Flatten a nested case record.

    Args:
        nested_dict: The nested dictionary to flatten
        parent_key: Prefix for flattened keys
        separator: Separator between nested key levels
        max_depth: Maximum nesting depth to flatten

    Returns:
        Flattened dictionary with concatenated keys and list values joined

    Example:
        >>> flatten_json({"meta": {"gender": "Male"}, "conditions": [1, 2]})
        {"meta_gender": "Male", "conditions": "1; 2"}
    """
    items: list[tuple[str, Any]] = []

    for key, value in nested_dict.items():
        new_key = f"{parent_key}{separator}{key}" if parent_key else key

        if isinstance(value, dict) and max_depth > 0:
            items.extend(
                flatten_json(
                    value,
                    parent_key=new_key,
                    separator=separator,
                    max_depth=max_depth - 1,
                ).items()
            )
        elif isinstance(value, dict):
            items.append((new_key, json.dumps(value, default=str)))
        else:
            items.append((new_key, _cell(value)))

    return dict(items)


def flatten_records(
    records: list[dict],
    separator: str = "_",
    max_depth: int = 10,
) -> list[dict]:
    """Flatten a list of case records.

    Args:
        records: List of nested dictionaries
        separator: Separator between nested key levels
        max_depth: Maximum nesting depth to flatten

    Returns:
        List of flattened dictionaries
    """
    flattened = [
        flatten_json(record, separator=separator, max_depth=max_depth)
        for record in records
    ]
    logger.debug(f"Flattened {len(flattened)} records")
    return flattened


def collect_columns(records: list[dict]) -> list[str]:
    """Union of keys across records, in first-seen order."""
    columns: dict[str, None] = {}
    for record in records:
        for key in record:
            columns.setdefault(key, None)
    return list(columns)
