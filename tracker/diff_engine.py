"""
Diff engine comparing a fresh observation with the last known values.

This module provides:
- Classification of an observation (identical, incomplete, regressive, accepted)
- Percent-change formatting per counter
- Notification message assembly with MarkdownV2 escaping
"""

import re
from typing import Mapping, Optional

from tracker.models import COUNTER_LABELS, Classification, CounterRecord, ValueSet

# Characters Telegram MarkdownV2 reserves; '*' is left alone for bold item names
RESERVED_CHARS = "_[]()~`>#+-=|{}.!"

_RESERVED_PATTERN = re.compile("([" + re.escape(RESERVED_CHARS) + "])")
_ESCAPED_PATTERN = re.compile(r"\\([" + re.escape(RESERVED_CHARS) + "])")


def filter_disabled(values: Mapping[str, CounterRecord]) -> ValueSet:
    """Drop rows whose item name is empty or blank (disabled rows upstream)."""
    return {name: record for name, record in values.items() if name and name.strip()}


def _is_not_smaller(observed: CounterRecord, known: CounterRecord) -> bool:
    return any(
        getattr(observed, field) >= getattr(known, field)
        for field in COUNTER_LABELS
    )


def classify(
    observed: Mapping[str, CounterRecord],
    known: Mapping[str, CounterRecord],
    raw_count: Optional[int] = None
) -> Classification:
    """
    Classify an observation against the last known values.

    Args:
        observed: Raw observation, possibly including disabled rows
        known: Last known values
        raw_count: Row count reported by the source, when larger than the mapping

    Returns:
        INCOMPLETE when rows were dropped, IDENTICAL when nothing changed,
        ACCEPTED when any item is new or any counter did not decrease,
        REGRESSIVE otherwise.
    """
    values = filter_disabled(observed)
    seen = len(observed) if raw_count is None else max(raw_count, len(observed))

    if seen > len(values):
        return Classification.INCOMPLETE

    if values == dict(known):
        return Classification.IDENTICAL

    # One new item or one non-decreasing counter accepts the whole batch
    for name, record in values.items():
        known_record = known.get(name)
        if known_record is None or _is_not_smaller(record, known_record):
            return Classification.ACCEPTED

    return Classification.REGRESSIVE


def percent_diff(current: int, known: Optional[int]) -> str:
    """Return '(+X.XX%)' / '(-X.XX%)', or '' when known is missing, zero or unchanged."""
    if not known or current == known:
        return ""
    percentage = abs((current - known) * 100 / known)
    operator = "+" if current > known else "-"
    return f"({operator}{percentage:.2f}%)"


def compose_message(
    observed: Mapping[str, CounterRecord],
    known: Mapping[str, CounterRecord]
) -> str:
    """Build the unescaped notification text, one block per item."""
    blocks = []
    for name, record in filter_disabled(observed).items():
        known_record = known.get(name)
        lines = [f"*{name}:*"]
        for field, label in COUNTER_LABELS.items():
            current = getattr(record, field)
            previous = getattr(known_record, field) if known_record else None
            diff = percent_diff(current, previous)
            lines.append(f"{label}: {current} {diff}" if diff else f"{label}: {current}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def escape_reserved_chars(text: str) -> str:
    """Prefix every MarkdownV2 reserved character with a backslash."""
    return _RESERVED_PATTERN.sub(r"\\\1", text)


def unescape_reserved_chars(text: str) -> str:
    """Reverse escape_reserved_chars."""
    return _ESCAPED_PATTERN.sub(r"\1", text)


def format_message(
    observed: Mapping[str, CounterRecord],
    known: Mapping[str, CounterRecord]
) -> str:
    """Notification body ready to send with parse_mode=MarkdownV2."""
    return escape_reserved_chars(compose_message(observed, known))
