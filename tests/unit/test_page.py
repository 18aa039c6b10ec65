"""Tests for pedigree page assembly and drawing."""

from unittest.mock import MagicMock

import pytest

from conftest import profile_html
from hnplus.catalog.layout import PageCursor
from hnplus.catalog.lineage import AncestorResolver
from hnplus.catalog.page import PAGE_HEIGHT, PAGE_WIDTH, PedigreePage, PedigreePageBuilder, fit_grid_text
from hnplus.catalog.paragraph import Paragraph, ParagraphKind, ParagraphPriority
from hnplus.errors import HorseMismatchError
from hnplus.racing import RaceList
from hnplus.scrapers.parsers import HorseProfile


class FixedMetrics:
    def width(self, text, font, size):
        return len(text) * size / 2

    def height(self, font, size):
        return size


def _text(paragraph) -> str:
    return "".join(c.text for c in paragraph.components)


def _drawn(canvas) -> list[str]:
    return [c.args[2] for c in canvas.drawString.call_args_list]


class TestFitGridText:
    def test_truncates_with_ellipsis(self):
        text = fit_grid_text("A very long name", 35, False, FixedMetrics())
        assert text == "A very ..."

    def test_pads_with_leader(self):
        assert fit_grid_text("Short", 35, True, FixedMetrics()) == "Short  ---"

    def test_short_text_unpadded(self):
        assert fit_grid_text("Short", 35, False, FixedMetrics()) == "Short"

    def test_tiny_width_keeps_ellipsis(self):
        assert fit_grid_text("Anything", 1, False, FixedMetrics()) == "..."


class TestPedigreePageBuilder:
    @pytest.fixture
    def builder(self, client):
        return PedigreePageBuilder(AncestorResolver(client, "tok-123"))

    @pytest.mark.asyncio
    async def test_dam_sections(self, builder, family_site):
        page = await builder.build(100, hip_number=7)
        texts = [_text(p) for p in page.paragraphs]
        headings = [t for p, t in zip(page.paragraphs, texts) if p.kind == ParagraphKind.HEADING]

        assert page.profile.name == "Young Gun"
        assert page.hip_number == 7
        assert headings == ["1st Dam", "2nd Dam", "3rd Dam"]

        first_dam = texts.index("1st Dam")
        assert texts[first_dam + 1].startswith("Dam One p,2,1:56.20 ($10,000) by Dam Sire.")
        assert texts[first_dam + 1].endswith(" From 3 previous foals, dam of 2 winners including:")
        assert texts[first_dam + 2].startswith("STAKE STAR")
        assert texts[first_dam + 3].startswith("Fast Filly (M)")
        assert texts[first_dam + 4].startswith("Slow Colt")

    @pytest.mark.asyncio
    async def test_yearling_not_listed_under_own_dam(self, builder, family_site):
        page = await builder.build(100)
        assert not any(_text(p).startswith("Young Gun") for p in page.paragraphs)

    @pytest.mark.asyncio
    async def test_dam_line_foals_as_above(self, builder, family_site):
        page = await builder.build(100)
        texts = [_text(p) for p in page.paragraphs]

        second_dam = texts.index("2nd Dam")
        assert "by Great Sire." in texts[second_dam + 1]
        assert any(t.startswith("Dam One (M)") and t.endswith("As above.") for t in texts[second_dam:])

    @pytest.mark.asyncio
    async def test_profile_mismatch(self, builder, site):
        site.profiles[55] = profile_html(56, "Somebody Else")
        with pytest.raises(HorseMismatchError, match="could not parse info for horse 55"):
            await builder.build(55)

    @pytest.mark.asyncio
    async def test_mare_gets_production_record(self, client, family_site):
        builder = PedigreePageBuilder(AncestorResolver(client, "tok-123"))
        page = await builder.build(1)
        texts = [_text(p) for p in page.paragraphs]

        assert "Production Record" in texts
        record = texts.index("Production Record")
        assert "STAKE STAR" in texts[record + 1]

    @pytest.mark.asyncio
    async def test_full_pedigree_lists_daughters_produce(self, client, family_site):
        family_site.progeny[201] = (
            '<table><tr><td><a href="/horse/401"><span>Grand Champ</span></a>'
            '<img src="trophyhorse.png"></td><td>3</td><td><i class="fas fa-mars"></i></td>'
            "<td>M</td><td>-</td><td>4 - 0 - 0 - 0</td><td>$5,000</td></tr></table>"
        )
        builder = PedigreePageBuilder(AncestorResolver(client, "tok-123"), full_pedigree=True)
        page = await builder.build(100)

        daughter = next(p for p in page.paragraphs if _text(p).startswith("Fast Filly"))
        assert _text(daughter).endswith(" Dam of: Grand Champ.")
        assert daughter.priority >= ParagraphPriority.HIGH


class TestPedigreePageRender:
    def _page(self, paragraphs=()) -> PedigreePage:
        profile = HorseProfile(id=100, name="Young Gun", owner="Acme", age=1, color="Bay", gender="Colt",
                               foaled="March 3, 2024")
        return PedigreePage(profile, RaceList(), lineage=[], paragraphs=list(paragraphs), hip_number=7)

    def test_header(self):
        canvas = MagicMock()
        self._page().render(PageCursor(canvas, PAGE_WIDTH, PAGE_HEIGHT))
        drawn = _drawn(canvas)

        assert "Consigned by ACME" in drawn
        assert "7" in drawn
        assert "YOUNG GUN" in drawn
        assert "(Yearling)" in drawn
        assert "BAY COLT Foaled March 3, 2024" in drawn
        assert "Horse ID. 100" in drawn

    def test_overflowing_paragraphs_pruned(self):
        required = Paragraph(ParagraphPriority.REQUIRED)
        required.add("1st Dam")
        fillers = []
        for i in range(200):
            filler = Paragraph(ParagraphPriority.LOW)
            filler.add(f"Filler paragraph number {i}")
            fillers.append(filler)

        kept = self._page([required, *fillers]).render(PageCursor(MagicMock(), PAGE_WIDTH, PAGE_HEIGHT))

        assert required in kept
        assert 1 < len(kept) < 201
