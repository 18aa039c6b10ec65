"""Race records and the queries catalog pages make against them."""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional

from hnplus.formatters.text import seasons_between, seconds_to_time

# Share of the purse paid to each finishing position
PAYOUTS = {1: 0.50, 2: 0.25, 3: 0.12, 4: 0.08, 5: 0.05}

_AGE_TAG_RE = re.compile(r"^\s*(\d+)\s*yo\s*$", re.IGNORECASE)
_OPEN_RE = re.compile(r"^(Maiden )?Open$", re.IGNORECASE)
_PREFERRED_RE = re.compile(r"^(Maiden )?(Open|Preferred)$", re.IGNORECASE)


@dataclass(frozen=True)
class Race:
    """A single start from a horse's race history."""

    id: Optional[int] = None
    name: Optional[str] = None
    stake: bool = False
    elim: bool = False
    age: Optional[str] = None
    condition: Optional[str] = None
    gait: Optional[str] = None
    track: Optional[str] = None
    purse: float = 0.0
    finish: Optional[int] = None
    time: Optional[float] = None
    date: Optional[datetime] = None

    @property
    def exact_age(self) -> Optional[int]:
        """Age from a '2yo'-style bracket tag, None for open/aged races."""
        match = _AGE_TAG_RE.match(self.age or "")
        return int(match.group(1)) if match else None

    def get_earnings(self) -> float:
        if not self.finish:
            return 0.0
        return (self.purse or 0) * PAYOUTS.get(self.finish, 0.0)


class RaceList(list):
    """Race history, most recent first, unique by race id."""

    def __init__(self, races: Iterable[Race] = ()):
        super().__init__()
        self.extend(races)

    def _contains_id(self, race: Race) -> bool:
        return race.id is not None and any(r.id == race.id for r in self)

    def append(self, race: Race) -> None:
        if not self._contains_id(race):
            super().append(race)

    def extend(self, races: Iterable[Race]) -> None:
        for race in races:
            self.append(race)

    def find_fastest_win(self, predicate: Optional[Callable[[Race], bool]] = None) -> Optional[Race]:
        return self.find_fastest_race(lambda r: r.finish == 1 and (predicate is None or predicate(r)))

    def find_fastest_race(self, predicate: Optional[Callable[[Race], bool]] = None) -> Optional[Race]:
        fastest = None
        for race in self:
            if not race.time or (predicate is not None and not predicate(race)):
                continue
            if fastest is None or race.time < fastest.time:
                fastest = race
        return fastest

    def get_wins(self) -> int:
        return sum(1 for r in self if r.finish == 1)

    def get_earnings(self) -> float:
        return sum(r.get_earnings() for r in self)

    def find_age_ref(self) -> Optional[Race]:
        """Most recent race with an exact age bracket and a date."""
        for race in self:
            if race.exact_age is not None and race.date is not None:
                return race
        return None

    def find_age(self, race: Optional[Race], ref: Optional[Race] = None) -> Optional[int]:
        """Age of the horse at ``race``, inferred from ``ref`` when the race is open-aged."""
        if race is None:
            return None
        if race.exact_age is not None:
            return race.exact_age
        ref = ref or self.find_age_ref()
        if ref is None or ref.date is None or race.date is None:
            return None
        return ref.exact_age + seasons_between(ref.date, race.date)

    def get_summary(self) -> tuple[int, int, int, int, float]:
        """(starts, 1st, 2nd, 3rd, earnings)."""
        return (
            len(self),
            sum(1 for r in self if r.finish == 1),
            sum(1 for r in self if r.finish == 2),
            sum(1 for r in self if r.finish == 3),
            self.get_earnings(),
        )


def is_key_race(race: Race, include_open: bool = False, include_preferred: bool = False) -> bool:
    """A stakes top-three placing, or optionally a win in an open/preferred class."""
    if race.stake and race.finish is not None and 1 <= race.finish <= 3:
        return True
    name = race.name or ""
    if include_open and race.finish == 1 and _OPEN_RE.match(name):
        return True
    if include_preferred and race.finish == 1 and _PREFERRED_RE.match(name):
        return True
    return False


def format_mark(race: Optional[Race], age: Optional[int] = None) -> str:
    """'p,2,1:55.40' style mark: gait initial, age, time."""
    if race is None or race.time is None:
        return ""
    parts = []
    if race.gait:
        parts.append(race.gait[0].lower())
    if age is not None:
        parts.append(str(age))
    parts.append(seconds_to_time(race.time))
    return ",".join(parts)


def get_lifetime_mark(races: RaceList) -> str:
    """Mark of the fastest win, or '' for a horse that never won."""
    if races is None:
        raise TypeError("races must be a RaceList")
    fastest = races.find_fastest_win()
    if fastest is None:
        return ""
    return format_mark(fastest, races.find_age(fastest))
