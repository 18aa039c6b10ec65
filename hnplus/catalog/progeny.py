"""Progeny records and how prominently each one is featured."""

from dataclasses import dataclass
from typing import Iterable, Optional

from hnplus.catalog.paragraph import ParagraphPriority
from hnplus.racing import RaceList, is_key_race


@dataclass
class Progeny:
    """One row of a horse's progeny list."""

    id: int
    name: str
    sire_id: Optional[int] = None
    sire_name: str = ""
    age: int = 0
    gender: str = "gelding"
    stable: str = "retired"
    starts: int = 0
    wins: int = 0
    earnings: float = 0.0
    overall_award_winner: bool = False
    conference_award_winner: bool = False
    races: Optional[RaceList] = None

    @classmethod
    def from_row(cls, row: dict) -> "Progeny":
        return cls(**{k: v for k, v in row.items() if k in cls.__dataclass_fields__})

    @property
    def is_female(self) -> bool:
        return self.gender == "female"

    @property
    def is_male(self) -> bool:
        return self.gender in ("male", "gelding")

    @property
    def stakes_winner(self) -> bool:
        return any(r.stake and r.finish == 1 for r in self.races or ())

    @property
    def stakes_placed(self) -> bool:
        return any(r.stake and r.finish is not None and 1 <= r.finish <= 3 for r in self.races or ())

    @property
    def is_notable(self) -> bool:
        """Award winners and stakes winners get called out by name in summaries."""
        return self.overall_award_winner or self.conference_award_winner or self.stakes_winner

    def attach_races(self, races: RaceList) -> None:
        """Attach race history; earnings are recomputed from it."""
        self.races = races
        self.earnings = races.get_earnings()
        self.starts = len(races)
        self.wins = races.get_wins()


def _sort_key(progeny: Progeny):
    return (-progeny.earnings, -progeny.age, progeny.name.casefold())


def sort_progeny(progeny: Iterable[Progeny]) -> list[Progeny]:
    """Earnings descending, then age descending, then name (case-insensitive)."""
    return sorted(progeny, key=_sort_key)


def get_paragraph_priority(subject_id: int, foal_count: int, progeny: Progeny) -> ParagraphPriority:
    """Priority of a foal's paragraph within her dam's section."""
    if progeny.id == subject_id or foal_count == 1:
        return ParagraphPriority.REQUIRED

    races = progeny.races or RaceList()

    if progeny.stakes_winner:
        return ParagraphPriority.VERY_HIGH

    if progeny.overall_award_winner or any(is_key_race(r) for r in races):
        return ParagraphPriority.HIGH

    earnings_per_start = progeny.earnings / len(races) if races else 0.0

    if progeny.conference_award_winner or progeny.earnings >= 500_000 or earnings_per_start >= 20_000:
        return ParagraphPriority.MEDIUM

    if (
        1 < progeny.age < 4
        or progeny.earnings >= 250_000
        or earnings_per_start >= 15_000
        or races.get_wins() > 0
    ):
        return ParagraphPriority.LOW

    if progeny.age > 1:
        return ParagraphPriority.VERY_LOW

    return ParagraphPriority.ONLY_IF_NEEDED
