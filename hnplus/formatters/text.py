"""Number, time and season formatting used throughout the catalog pages.

HarnessNation ages horses one year per three-month season, so most date
arithmetic here works in seasons rather than calendar years.
"""

import re
from datetime import datetime, timezone
from typing import Optional

_AGE_WORDS = [
    "Zero", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight",
    "Nine", "Ten", "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen",
    "Sixteen", "Seventeen", "Eighteen", "Nineteen", "Twenty", "Twenty-One",
]

_NON_NUMERIC_RE = re.compile(r"[^\d.]")

# Months per racing season
SEASON_MONTHS = 3


def age_to_text(age: int) -> str:
    """Spell out an age: 2 -> 'Two'. Ages past twenty-one stay numeric."""
    if age is None:
        raise TypeError("age must be an integer")
    if 0 <= age < len(_AGE_WORDS):
        return _AGE_WORDS[age]
    return str(age)


def format_ordinal(value: int) -> str:
    """1 -> '1st', 2 -> '2nd', 11 -> '11th', 21 -> '21st'."""
    if 11 <= value % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(value % 10, "th")
    return f"{value}{suffix}"


def parse_currency(value: str | int | float | None) -> Optional[float]:
    """'$1,234.50' -> 1234.5. Returns None for None, 0.0 for text with no digits."""
    if value is None:
        return None
    cleaned = _NON_NUMERIC_RE.sub("", str(value))
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def parse_int(value: str | int | float | None) -> Optional[int]:
    """'1,234' -> 1234, truncating any fraction."""
    parsed = parse_currency(value)
    return None if parsed is None else int(parsed)


def format_currency(value: float) -> str:
    """Whole-dollar US currency: 1234.5 -> '$1,235'."""
    return f"${round(value or 0):,}"


def seconds_to_time(seconds: float) -> str:
    """114.25 -> '1:54.25'."""
    minutes, remainder = divmod(round(seconds * 100), 6000)
    return f"{minutes}:{remainder / 100:05.2f}"


def season_index(value: datetime) -> int:
    return value.year * (12 // SEASON_MONTHS) + (value.month - 1) // SEASON_MONTHS


def get_current_season(now: Optional[datetime] = None) -> datetime:
    """Start of the season containing ``now`` (UTC)."""
    now = now or datetime.now(timezone.utc)
    month = (now.month - 1) // SEASON_MONTHS * SEASON_MONTHS + 1
    return datetime(now.year, month, 1, tzinfo=now.tzinfo)


def seasons_between(start: datetime, end: datetime) -> int:
    """Whole seasons from ``start`` to ``end``."""
    if start is None or end is None:
        raise TypeError("seasons_between requires two dates")
    return season_index(end) - season_index(start)


def shift_seasons(value: datetime, seasons: int) -> datetime:
    """Move a season start by ``seasons`` (negative steps back in time)."""
    index = season_index(value) + seasons
    year, quarter = divmod(index, 12 // SEASON_MONTHS)
    return value.replace(year=year, month=quarter * SEASON_MONTHS + 1, day=1)


def format_season(value: datetime) -> str:
    """Season label as printed in production records: 'Apr 2025'."""
    return value.strftime("%b %Y")
