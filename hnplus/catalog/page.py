"""One sale-catalog page: header, pedigree grid and dam-line narrative."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from reportlab.lib.pagesizes import LETTER

from hnplus.catalog.layout import FontMap, FontMetrics, PageCursor, default_metrics
from hnplus.catalog.lineage import (
    PEDIGREE_GENERATIONS,
    Ancestor,
    AncestorResolver,
    is_dam_line_slot,
)
from hnplus.catalog.narrative import (
    add_broodmare_lines,
    build_dam_paragraphs,
    production_record,
    sire_record,
)
from hnplus.catalog.paragraph import Paragraph, ParagraphPriority
from hnplus.catalog.progeny import Progeny, sort_progeny
from hnplus.catalog.pruning import PARAGRAPH_GAP, prune
from hnplus.errors import HorseMismatchError
from hnplus.formatters.text import age_to_text
from hnplus.racing import RaceList, get_lifetime_mark
from hnplus.scrapers.parsers import HorseProfile

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = LETTER
MARGIN_TOP = MARGIN_BOTTOM = 34.87
MARGIN_LEFT = MARGIN_RIGHT = 99
CONTENT_WIDTH = PAGE_WIDTH - MARGIN_LEFT - MARGIN_RIGHT

GRID_FONT_SIZE = 7
# Pedigree grid row height as a multiple of the grid font height
GRID_ROW_SCALE = 1.703297

# Winners whose race histories are looked up when picking a stallion's notable progeny
MAX_NOTABLE_LOOKUPS = 12


def fit_grid_text(text: str, width: float, pad: bool, metrics: FontMetrics = default_metrics) -> str:
    """Truncate ``text`` with '...' to fit ``width``, then optionally pad it out with a leader."""
    def measure(value: str) -> float:
        return metrics.width(value, FontMap.NORMAL, GRID_FONT_SIZE)

    while measure(text) > width and len(text) > 3:
        text = text[:-4] + "..."

    while pad and measure(text) < width:
        text += "-" if text.endswith("-") or text.endswith("  ") else " "

    return text


@dataclass
class PedigreePage:
    """Everything needed to draw one horse's catalog page."""

    profile: HorseProfile
    races: RaceList
    lineage: list[Ancestor]
    paragraphs: list[Paragraph] = field(default_factory=list)
    hip_number: Optional[int] = None

    @property
    def lifetime_mark(self) -> str:
        return get_lifetime_mark(self.races)

    def render(self, cursor: PageCursor, metrics: FontMetrics = default_metrics) -> list[Paragraph]:
        """Draw the page and return the paragraphs that survived pruning."""
        cursor.move_to(MARGIN_LEFT, cursor.height - MARGIN_TOP)
        self._draw_header(cursor, metrics)
        self._draw_grid(cursor, metrics)

        cursor.move_left(cursor.x - MARGIN_LEFT)
        cursor.move_down(8.9 * metrics.height(FontMap.BOLD, GRID_FONT_SIZE))

        paragraphs = prune(self.paragraphs, cursor.y - MARGIN_BOTTOM, PARAGRAPH_GAP)
        if len(paragraphs) < len(self.paragraphs):
            logger.info(
                f"{self.profile.name}: dropped {len(self.paragraphs) - len(paragraphs)} paragraphs to fit the page"
            )

        for paragraph in paragraphs:
            paragraph.write(cursor)
            cursor.move_down(paragraph.get_height() + PARAGRAPH_GAP)

        return paragraphs

    def _draw_header(self, cursor: PageCursor, metrics: FontMetrics) -> None:
        profile = self.profile

        cursor.move_down(metrics.height(FontMap.NORMAL, 8.5) - 1.7)
        if profile.owner:
            cursor.draw_text_centered(f"Consigned by {profile.owner.upper()}", FontMap.NORMAL, 8.5)

        if self.hip_number is not None:
            cursor.draw_text(
                str(self.hip_number),
                FontMap.BOLD,
                24,
                x=MARGIN_LEFT,
                y=cursor.y - 1.95 * metrics.height(FontMap.BOLD, 16),
            )

        cursor.move_down(metrics.height(FontMap.BOLD, 16) - 1.75)
        cursor.draw_text_centered((profile.name or "").upper(), FontMap.BOLD, 16)

        mark = self.lifetime_mark
        age = profile.age or 0
        if mark or age:
            fastest_win = self.races.find_fastest_win()
            year = f"-'{fastest_win.date.year % 100:02d}" if fastest_win and fastest_win.date else ""
            if age == 1:
                age_text = "(Yearling)"
            elif age > 0:
                age_text = f"({age_to_text(age)} Year Old)"
            else:
                age_text = ""
            cursor.move_down(metrics.height(FontMap.NORMAL, 10) + 2)
            cursor.draw_text_centered(f"{mark}{year} {age_text}".strip(), FontMap.NORMAL, 10)

        cursor.move_down(metrics.height(FontMap.BOLD, 8.5) + 1)
        details = [(profile.color or "").upper(), (profile.gender or "").upper()]
        if profile.foaled:
            details.append(f"Foaled {profile.foaled}")
        cursor.draw_text_centered(" ".join(d for d in details if d), FontMap.BOLD, 8.5)

        cursor.move_down(metrics.height(FontMap.BOLD, 8.5))
        cursor.draw_text_centered(f"Horse ID. {profile.id}", FontMap.BOLD, 8.5)

    def _draw_grid(self, cursor: PageCursor, metrics: FontMetrics) -> None:
        """Three generations, each column's entries centred on the horses they descend to."""
        cursor.move_right(1)
        cursor.move_down(8.3 * metrics.height(FontMap.BOLD, GRID_FONT_SIZE))
        cursor.draw_text(f"{(self.profile.name or '').upper()} {self.lifetime_mark}".strip(),
                         FontMap.BOLD, GRID_FONT_SIZE)
        cursor.move_right(18)

        row_height = metrics.height(FontMap.NORMAL, GRID_FONT_SIZE) * GRID_ROW_SCALE
        column = row = 0

        for index, ancestor in enumerate(self.lineage):
            rows = 2 ** (column + 1)
            row_span = 2 ** PEDIGREE_GENERATIONS / rows
            offset_row = round((rows - 1) / 2 - row)
            offset_y = (2 * offset_row - 1) * row_span * row_height / 2 - (0 if column == 0 else 1)
            column_width = CONTENT_WIDTH / PEDIGREE_GENERATIONS - (14.5 if column == 0 else 0)

            text = f"{ancestor.name or ''} {ancestor.lifetime_mark or ''}".strip() or "Unknown"
            text = fit_grid_text(text, column_width, column < PEDIGREE_GENERATIONS - 1, metrics)
            cursor.draw_text(text, FontMap.NORMAL, GRID_FONT_SIZE, y=cursor.y + offset_y)

            if is_dam_line_slot(index):
                column += 1
                row = 0
                cursor.move_right(column_width + 6)
            else:
                row += 1


class PedigreePageBuilder:
    """Gathers the data for a page and turns it into paragraphs.

    Args:
        resolver: Shared memoizing lookup; reuse one across a catalog run.
        full_pedigree: Also list the notable produce of the dam line's daughters.
    """

    def __init__(self, resolver: AncestorResolver, full_pedigree: bool = False, now: Optional[datetime] = None):
        self.resolver = resolver
        self.full_pedigree = full_pedigree
        self.now = now

    async def build(self, horse_id: int, hip_number: Optional[int] = None) -> PedigreePage:
        profile = await self.resolver.profile(horse_id)
        if profile.id != horse_id:
            raise HorseMismatchError(horse_id)

        races, lineage = await asyncio.gather(
            self.resolver.races(horse_id),
            self.resolver.lineage(horse_id),
        )
        dams = await self.resolver.populate(lineage)
        dam_line_ids = {dam.id for _, dam in dams}
        names = {a.id: a.name for a in lineage if not a.is_unknown}

        paragraphs: list[Paragraph] = []
        for generation, dam in dams:
            await self.resolver.attach_races(dam.progeny)
            dam.progeny = sort_progeny(dam.progeny)
            sire_name = names.get(dam.sire_id) or (dam.profile.sire_name if dam.profile else None)

            section, foals = build_dam_paragraphs(profile, dam, generation, sire_name, dam_line_ids, CONTENT_WIDTH)
            if self.full_pedigree:
                await self._expand_broodmares(profile, dam, foals, dam_line_ids)
            paragraphs.extend(section)

        paragraphs.extend(await self._closing_section(profile))

        logger.info(f"Built page for {profile.name} ({horse_id}): {len(paragraphs)} paragraphs")
        return PedigreePage(profile, races, lineage, paragraphs, hip_number)

    async def _progeny_with_notables(self, horse_id: int) -> list[Progeny]:
        """Progeny list with race histories attached to the winners, richest first."""
        progeny = sort_progeny(await self.resolver.progeny(horse_id))
        winners = [p for p in progeny if p.wins > 0][:MAX_NOTABLE_LOOKUPS]
        await self.resolver.attach_races(winners)
        return progeny

    async def _expand_broodmares(
        self,
        subject: HorseProfile,
        dam: Ancestor,
        foals: dict[int, Paragraph],
        dam_line_ids: set[int],
    ) -> None:
        """Add 'Dam of' and 'Granddam of' lines for the dam's daughters. Two levels only."""
        for daughter in dam.progeny:
            if not daughter.is_female or daughter.id == subject.id or daughter.id in dam_line_ids:
                continue
            if daughter.id not in foals:
                continue

            produce = await self._progeny_with_notables(daughter.id)
            grand_produce: list[Progeny] = []
            for granddaughter in (p for p in produce if p.is_female):
                grand_produce.extend(await self._progeny_with_notables(granddaughter.id))

            paragraph = foals[daughter.id]
            if add_broodmare_lines(paragraph, produce, grand_produce):
                paragraph.priority = max(paragraph.priority, ParagraphPriority.HIGH)

    async def _closing_section(self, profile: HorseProfile) -> list[Paragraph]:
        if profile.is_male:
            return sire_record(await self._progeny_with_notables(profile.id), CONTENT_WIDTH)

        progeny = await self.resolver.progeny(profile.id)
        await self.resolver.attach_races(progeny)
        return production_record(progeny, CONTENT_WIDTH, self.now)
