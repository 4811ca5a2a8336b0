"""Parsers for loosely-structured object fields such as ``meta``.

Spreadsheet users type objects as ``{gender: Male, age: 30}`` rather than
strict JSON. Each strategy tries one interpretation and returns ``None`` when
it does not apply, so callers can chain them in order.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

# A bare ``key: value`` pair that opens right after "{" or ",", terminated by
# "," or "}". Start anchor and greedy groups keep substitution linear.
_BARE_PAIR = re.compile(r'(?<=[{,])([^{}:,"]*):([^{}:,"]*)(?=[,}])')


def _quote_pair(match: re.Match) -> str:
    key = match.group(1).strip()
    if not key:
        return match.group(0)
    return f'"{key}":"{match.group(2).strip()}"'


class LooseObjectStrategy(ABC):
    """One way of turning object-like text into a flat mapping."""

    name: str = ""

    @abstractmethod
    def try_parse(self, text: str) -> Optional[dict]:
        """Return the parsed mapping, or None if this strategy does not apply."""
        pass


class QuotedJsonStrategy(LooseObjectStrategy):
    """Quote bare keys and values, then parse the result as strict JSON.

    Text that is already valid JSON passes through untouched.
    """

    name = "quoted_json"

    def try_parse(self, text: str) -> Optional[dict]:
        stripped = text.strip()
        if not (stripped.startswith("{") and stripped.endswith("}")):
            return None

        json_text = _BARE_PAIR.sub(_quote_pair, stripped)
        try:
            parsed = json.loads(json_text)
        except (ValueError, RecursionError):
            # Malformed or too deeply nested for the decoder
            return None

        if not isinstance(parsed, dict):
            return None
        return parsed


class KeyValuePairsStrategy(LooseObjectStrategy):
    """Split ``k: v, k2: v2`` on commas and the first colon of each pair.

    Pairs without both a key and a value are discarded. If nothing survives
    the strategy reports failure.
    """

    name = "key_value_pairs"

    def try_parse(self, text: str) -> Optional[dict]:
        body = re.sub(r"[{}]", "", text).strip()
        result: dict[str, str] = {}

        for pair in body.split(","):
            key, sep, value = pair.partition(":")
            key = key.strip()
            value = value.strip()
            if sep and key and value:
                result[key] = value

        return result or None


DEFAULT_STRATEGIES: tuple[LooseObjectStrategy, ...] = (
    QuotedJsonStrategy(),
    KeyValuePairsStrategy(),
)


def parse_loose_object(
    text: str,
    strategies: Optional[Sequence[LooseObjectStrategy]] = None,
) -> Optional[dict]:
    """Run strategies in order and return the first successful parse.

    Args:
        text: Raw field value
        strategies: Ordered strategies (defaults to DEFAULT_STRATEGIES)

    Returns:
        Parsed mapping, or None if every strategy failed
    """
    for strategy in strategies or DEFAULT_STRATEGIES:
        try:
            parsed = strategy.try_parse(text)
        except Exception as e:
            # An object field never fails its row; a raising strategy is a miss
            logger.warning(
                f"Loose object strategy {strategy.name!r} failed",
                extra={"strategy": strategy.name, "error": str(e)},
            )
            continue
        if parsed is not None:
            logger.debug(
                "Parsed loose object",
                extra={"strategy": strategy.name, "key_count": len(parsed)},
            )
            return parsed
    return None
