"""Text formatting helpers for catalog content."""

from hnplus.formatters.text import (
    age_to_text,
    format_currency,
    format_ordinal,
    parse_currency,
    parse_int,
    seconds_to_time,
)

__all__ = [
    "age_to_text",
    "format_currency",
    "format_ordinal",
    "parse_currency",
    "parse_int",
    "seconds_to_time",
]
