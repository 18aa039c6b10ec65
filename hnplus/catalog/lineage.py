"""Pedigree tree walking and memoized ancestor lookups.

A lineage is a flat list laid out as an implicit binary tree: slots 0 and 1
are the sire and dam, and the parents of slot ``i`` sit at ``2i + 2`` (sire)
and ``2i + 3`` (dam). The dam line (dam, second dam, third dam...) falls on
slots 1, 5, 13, ... which are exactly the indices where ``index + 3`` is a
power of two.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from hnplus.catalog.progeny import Progeny
from hnplus.config import settings
from hnplus.racing import RaceList, get_lifetime_mark
from hnplus.scrapers.harnessnation import HarnessNationClient
from hnplus.scrapers.parsers import (
    HorseProfile,
    has_next_page,
    parse_pedigree,
    parse_profile,
    parse_progeny_list,
    parse_race_history,
)

logger = logging.getLogger(__name__)

PEDIGREE_GENERATIONS = 3

# Upper bound on race history pages followed for one horse
MAX_RACE_PAGES = 50


def lineage_length(generations: int = PEDIGREE_GENERATIONS) -> int:
    return 2 ** (generations + 1) - 2


def is_dam_line_slot(index: int) -> bool:
    """True for the slots holding the dam, second dam, third dam and so on."""
    n = index + 3
    return n >= 4 and n & (n - 1) == 0


def generation_of(index: int) -> int:
    """1 for parents, 2 for grandparents, ..."""
    if index < 0:
        raise ValueError(f"Invalid lineage index: {index}")
    return (index + 2).bit_length() - 1


def sire_slot(index: int) -> int:
    return 2 * index + 2


def dam_slot(index: int) -> int:
    return 2 * index + 3


@dataclass(eq=False)
class Ancestor:
    """One horse in the pedigree grid. ``id`` is None for unknown ancestors."""

    id: Optional[int] = None
    name: str = "Unknown"
    sire_id: Optional[int] = None
    dam_id: Optional[int] = None
    lifetime_mark: Optional[str] = None
    progeny: list[Progeny] = field(default_factory=list)
    races: Optional[RaceList] = None
    profile: Optional[HorseProfile] = None

    @property
    def is_unknown(self) -> bool:
        return self.id is None


def parse_lineage(html: str, generations: int = PEDIGREE_GENERATIONS) -> list[Ancestor]:
    """Build the lineage array from a pedigree document.

    Slots past the end of the document are filled with unknown ancestors. A
    horse appearing in several slots (inbreeding) is the same ``Ancestor``.
    """
    seen: dict[int, Ancestor] = {}
    lineage = []

    for horse_id, name in parse_pedigree(html)[:lineage_length(generations)]:
        if horse_id is None:
            lineage.append(Ancestor(name=name or "Unknown"))
        else:
            lineage.append(seen.setdefault(horse_id, Ancestor(id=horse_id, name=name)))

    while len(lineage) < lineage_length(generations):
        lineage.append(Ancestor())

    return lineage


def dam_line(lineage: list[Ancestor]) -> list[tuple[int, Ancestor]]:
    """Known dam-line ancestors in lineage order, each once, with their generation."""
    dams = []
    for index, ancestor in enumerate(lineage):
        if is_dam_line_slot(index) and not ancestor.is_unknown and all(a is not ancestor for _, a in dams):
            dams.append((generation_of(index), ancestor))
    return dams


class AncestorResolver:
    """Fetches and memoizes everything the catalog needs to know about a horse.

    Each lookup is keyed by horse id and stored as a task, so concurrent
    requests for the same horse share a single fetch.
    """

    def __init__(
        self,
        client: HarnessNationClient,
        token: Optional[str] = None,
        batch_size: Optional[int] = None,
    ):
        self.client = client
        self.token = token
        self.batch_size = batch_size or settings.fetch_batch_size
        self._races: dict[int, asyncio.Task] = {}
        self._profiles: dict[int, asyncio.Task] = {}
        self._progeny: dict[int, asyncio.Task] = {}

    def _memoize(self, cache: dict[int, asyncio.Task], horse_id: int, factory) -> asyncio.Task:
        task = cache.get(horse_id)
        if task is None:
            task = cache[horse_id] = asyncio.ensure_future(factory(horse_id))
        return task

    async def races(self, horse_id: int) -> RaceList:
        return await self._memoize(self._races, horse_id, self._fetch_races)

    async def profile(self, horse_id: int) -> HorseProfile:
        return await self._memoize(self._profiles, horse_id, self._fetch_profile)

    async def progeny(self, horse_id: int) -> list[Progeny]:
        """Progeny list rows. Callers get fresh objects and may attach races to them."""
        rows = await self._memoize(self._progeny, horse_id, self._fetch_progeny)
        return [Progeny.from_row(row) for row in rows]

    async def lineage(self, horse_id: int) -> list[Ancestor]:
        return parse_lineage(await self.client.get_pedigree(horse_id, self.token))

    async def _fetch_races(self, horse_id: int) -> RaceList:
        races = RaceList()
        for page in range(1, MAX_RACE_PAGES + 1):
            html = await self.client.get_race_history(horse_id, self.token, page)
            races.extend(parse_race_history(html))
            if not has_next_page(html):
                break
        return races

    async def _fetch_profile(self, horse_id: int) -> HorseProfile:
        return parse_profile(await self.client.get_horse(horse_id))

    async def _fetch_progeny(self, horse_id: int) -> list[dict]:
        return parse_progeny_list(await self.client.get_progeny_list(horse_id, self.token))

    async def attach_races(self, progeny: list[Progeny]) -> None:
        """Fetch race histories for a list of progeny, a few at a time."""
        for start in range(0, len(progeny), self.batch_size):
            batch = progeny[start:start + self.batch_size]
            histories = await asyncio.gather(*(self.races(p.id) for p in batch))
            for foal, races in zip(batch, histories):
                foal.attach_races(races)

    async def _resolve_slot(self, lineage: list[Ancestor], index: int) -> None:
        ancestor = lineage[index]
        if ancestor.is_unknown:
            return

        dam_line_slot = is_dam_line_slot(index)
        if ancestor.lifetime_mark is not None and not dam_line_slot:
            return

        races = await self.races(ancestor.id)
        if ancestor.sire_id is None and sire_slot(index) < len(lineage):
            ancestor.sire_id = lineage[sire_slot(index)].id
        if ancestor.dam_id is None and dam_slot(index) < len(lineage):
            ancestor.dam_id = lineage[dam_slot(index)].id
        ancestor.lifetime_mark = get_lifetime_mark(races)

        if dam_line_slot:
            ancestor.races = races
            ancestor.progeny, ancestor.profile = await asyncio.gather(
                self.progeny(ancestor.id),
                self.profile(ancestor.id),
            )
            if ancestor.sire_id is None:
                ancestor.sire_id = ancestor.profile.sire_id

    async def populate(self, lineage: list[Ancestor]) -> list[tuple[int, Ancestor]]:
        """Resolve every slot of ``lineage`` in small concurrent batches.

        Returns ``(generation, dam)`` for each dam-line ancestor, in lineage order.
        """
        for start in range(0, len(lineage), self.batch_size):
            indices = range(start, min(start + self.batch_size, len(lineage)))
            await asyncio.gather(*(self._resolve_slot(lineage, i) for i in indices))
        return dam_line(lineage)
