"""Catalog narrative: dam sections, foal lines and the closing record.

Everything here is pure text assembly over already-fetched data. The page
builder does the fetching and hands over profiles, race lists and progeny.
"""

import re
from collections import defaultdict
from datetime import datetime
from typing import Collection, Optional, Sequence

from reportlab.lib.pagesizes import LETTER

from hnplus.catalog.layout import FontMap
from hnplus.catalog.lineage import Ancestor
from hnplus.catalog.paragraph import Paragraph, ParagraphKind, ParagraphPriority
from hnplus.catalog.progeny import Progeny, get_paragraph_priority
from hnplus.formatters.text import (
    format_currency,
    format_ordinal,
    format_season,
    get_current_season,
    seconds_to_time,
    shift_seasons,
)
from hnplus.racing import Race, RaceList, format_mark, is_key_race
from hnplus.scrapers.parsers import HorseProfile

# Indent of wrapped lines; foal lines start at half of it
INDENT = 18

FINISH_TEXT = {1: "winner of", 2: "second in", 3: "third in"}


def _strip_maiden(name: Optional[str]) -> str:
    return (name or "").replace("Maiden ", "")


def format_mark_string(races: RaceList, age_ref: Optional[Race] = None) -> str:
    """Marks at two and three, the lifetime mark, a beaten time and earnings.

    e.g. 'p,2,1:55.40; 3,1:52.00; BT1:51.20 ($104,500)'
    """
    age_ref = age_ref or races.find_age_ref()
    fastest_win = races.find_fastest_win()
    at_two = races.find_fastest_win(lambda r: races.find_age(r, age_ref) == 2)
    at_three = races.find_fastest_win(lambda r: races.find_age(r, age_ref) == 3)
    fastest_race = races.find_fastest_race()
    starts, *_, earnings = races.get_summary()

    marks = [format_mark(at_two, 2), format_mark(at_three, 3)]
    if fastest_win is not None and fastest_win not in (at_two, at_three):
        marks.append(format_mark(fastest_win, races.find_age(fastest_win, age_ref)))
    if fastest_race is not None and fastest_race.finish != 1:
        marks.append(f"BT{seconds_to_time(fastest_race.time)}")

    text = "; ".join(m for m in marks if m.strip())

    # A gait letter is only printed the first time it appears
    for mark, ages in ((at_two, "2"), (at_three, "23")):
        if mark is not None and mark.gait:
            text = re.sub(rf"{re.escape(mark.gait[0])},([^{ages}],)", r"\1", text, flags=re.IGNORECASE)

    parts = [text]
    if starts >= 1:
        parts.append(f"({format_currency(earnings)})")
    return " ".join(p for p in parts if p.strip())


def _key_races(races: RaceList) -> list[Race]:
    return sorted(
        (r for r in races if is_key_race(r)),
        key=lambda r: (not r.stake, r.finish or 99, -(r.purse or 0)),
    )


def _stake_group_text(group: list[Race]) -> str:
    name = group[0].name
    text = " and ".join(
        f"{FINISH_TEXT.get(r.finish, '').replace('of', 'in')} {'elim' if r.elim else 'final'} of {r.name}"
        for r in group
    ).strip()
    # 'winner in elim of X and winner in final of X' -> 'winner in elim and final of X'
    text = re.sub(r"^(\S+) (in .*? and) \1", r"\1 \2", text)
    text = text.replace(f" of {name} and ", " and ", 1)
    return text.replace(" and in ", " and ", 1)


def format_key_race_string(races: RaceList, age_ref: Optional[Race] = None) -> str:
    """Stakes placings grouped by age: 'At 2, winner in elim and final of X.'"""
    age_ref = age_ref or races.find_age_ref()
    by_age: dict[Optional[int], list[Race]] = defaultdict(list)
    for race in _key_races(races):
        by_age[races.find_age(race, age_ref)].append(race)

    output = []
    for age in sorted(by_age, key=lambda a: 99 if a is None else a):
        remaining = by_age[age]
        buffer = []

        while remaining:
            race = remaining[0]
            group = [r for r in remaining if _strip_maiden(r.name) == _strip_maiden(race.name)]
            finish = FINISH_TEXT.get(race.finish, "")

            if race.stake:
                buffer.append(_stake_group_text(group))
            elif len(group) > 1:
                buffer.append(f"{finish} {_strip_maiden(race.name)} (x{len(group)})".strip())
            else:
                buffer.append(f"{finish} {_strip_maiden(race.name)}".strip())

            remaining = [r for r in remaining if r not in group]

        text = "; ".join(buffer)
        output.append(f"At {age}, {text}." if age is not None else f"{text[:1].upper()}{text[1:]}.")

    return " ".join(output).strip()


def format_wins(races: RaceList, age_ref: Optional[Race] = None) -> str:
    """'3 wins, 2 thru 4' style summary, or '' without a win."""
    wins = races.get_wins()
    if wins == 0:
        return ""

    age_ref = age_ref or races.find_age_ref()
    text = f"{wins} {'win' if wins == 1 else 'wins'}"
    first = races.find_age(races[-1], age_ref)
    last = races.find_age(races[0], age_ref)

    if first and last:
        if first != last:
            text += f", {first} {'thru' if last - first > 1 else 'and'} {last}"
        else:
            text += f", at {first}"
    return text


def _add_name(paragraph: Paragraph, name: str, races: Optional[RaceList]) -> None:
    races = races or RaceList()
    stakes_winner = any(r.stake and r.finish == 1 for r in races)
    stakes_placed = any(r.stake and r.finish is not None and 1 <= r.finish <= 3 for r in races)
    paragraph.add(name.upper() if stakes_winner else name, FontMap.BOLD if stakes_placed else FontMap.NORMAL)


def _add_awards(paragraph: Paragraph, overall: bool, conference: bool) -> None:
    if overall:
        paragraph.add(" Overall Award Winner.", FontMap.BOLD)
    elif conference:
        paragraph.add(" Conference Award Winner.", FontMap.BOLD)


def dam_heading(generation: int, max_width: float = LETTER[0]) -> Paragraph:
    paragraph = Paragraph(ParagraphPriority.REQUIRED, FontMap.BOLD, max_width=max_width, indent=INDENT,
                          kind=ParagraphKind.HEADING)
    paragraph.add(f"{format_ordinal(generation)} Dam")
    return paragraph


def dam_biography(
    subject: HorseProfile,
    dam: Ancestor,
    generation: int,
    sire_name: Optional[str],
    max_width: float = LETTER[0],
) -> Paragraph:
    """The dam's own record followed by her production summary."""
    races = dam.races or RaceList()
    profile = dam.profile or HorseProfile()
    age_ref = races.find_age_ref()
    paragraph = Paragraph(ParagraphPriority.REQUIRED, FontMap.NORMAL, max_width=max_width, indent=INDENT,
                          kind=ParagraphKind.BIOGRAPHY)

    _add_name(paragraph, dam.name, races)
    mark = format_mark_string(races, age_ref)
    if mark:
        paragraph.add(f" {mark}")
    paragraph.add(f" by {sire_name}." if sire_name else ".")

    wins = format_wins(races, age_ref)
    if wins:
        paragraph.add(f" {wins}.")

    _add_awards(paragraph, profile.overall_award_winner, profile.conference_award_winner)

    key_races = format_key_race_string(races, age_ref)
    if key_races:
        paragraph.add(f" {key_races}")

    others = [p for p in dam.progeny if p.id != subject.id]
    has_subject = len(others) < len(dam.progeny)
    yearling = generation == 1 and subject.age == 1
    gender = (subject.gender or "").lower()

    if generation == 1 and not others:
        paragraph.add(" This is her first foal.")
        return paragraph

    if yearling and gender in ("colt", "gelding") and not any(p.is_male for p in others):
        paragraph.add(" First colt.", FontMap.BOLD)
    elif yearling and gender == "filly" and not any(p.is_female for p in others):
        paragraph.add(" First filly.", FontMap.BOLD)

    if dam.progeny:
        previous = yearling and has_subject
        count = len(dam.progeny) - (1 if previous else 0)
        winners = sum(1 for p in dam.progeny if p.races and p.races.get_wins() > 0)
        text = (
            f" From {count}{' previous' if previous else ''} {'foal' if count == 1 else 'foals'},"
            f" dam of {winners} winners including:"
        )
        paragraph.add(re.sub(r" [01] winners including", "", text))

    return paragraph


def foal_paragraph(
    foal: Progeny,
    priority: ParagraphPriority,
    dam_line_ids: Collection[int] = (),
    max_width: float = LETTER[0],
    prefix: Optional[str] = None,
    kind: str = ParagraphKind.FOAL,
) -> Paragraph:
    """One line of a dam's produce. Foals that head a later dam section are 'As above.'"""
    races = foal.races or RaceList()
    age_ref = races.find_age_ref()

    paragraph = Paragraph(priority, FontMap.NORMAL, max_width=max_width, indent=INDENT,
                          first_line_indent=0 if prefix else INDENT / 2, kind=kind)
    if prefix:
        paragraph.add(prefix, FontMap.BOLD)
    _add_name(paragraph, foal.name, races)
    if foal.is_female:
        paragraph.add(" (M)")

    mark = format_mark_string(races, age_ref)
    sire = f"({foal.sire_name})." if foal.sire_name else "."
    paragraph.add(f" {mark} {sire}" if mark else f" {sire}")

    if foal.id in dam_line_ids:
        paragraph.add(" As above.")
        return paragraph

    wins = format_wins(races, age_ref)
    if wins:
        paragraph.add(f" {wins}.")

    _add_awards(paragraph, foal.overall_award_winner, foal.conference_award_winner)

    key_races = format_key_race_string(races, age_ref)
    if key_races:
        paragraph.add(f" {key_races}")

    if foal.age < 4:
        paragraph.add(f" Now {foal.age}.")

    return paragraph


def build_dam_paragraphs(
    subject: HorseProfile,
    dam: Ancestor,
    generation: int,
    sire_name: Optional[str],
    dam_line_ids: Collection[int],
    max_width: float = LETTER[0],
) -> tuple[list[Paragraph], dict[int, Paragraph]]:
    """Heading, biography and one paragraph per foal for a dam-line ancestor.

    ``dam.progeny`` must already be sorted and carry race histories. Also
    returns the foal paragraphs keyed by foal id.
    """
    paragraphs = [
        dam_heading(generation, max_width),
        dam_biography(subject, dam, generation, sire_name, max_width),
    ]
    foals = {}

    for foal in dam.progeny:
        if subject.age < 2 and foal.id == subject.id:
            continue
        priority = get_paragraph_priority(subject.id, len(dam.progeny), foal)
        foals[foal.id] = foal_paragraph(foal, priority, dam_line_ids, max_width)
        paragraphs.append(foals[foal.id])

    return paragraphs, foals


def _notable_name(progeny: Progeny) -> str:
    mark = format_mark(progeny.races.find_fastest_win()) if progeny.races else ""
    name = progeny.name.upper() if progeny.stakes_winner else progeny.name
    return f"{name} {mark}".strip()


def add_broodmare_lines(
    paragraph: Paragraph,
    foals: Sequence[Progeny],
    grandfoals: Sequence[Progeny] = (),
) -> bool:
    """Append 'Dam of: ...' and 'Granddam of: ...' to a daughter's foal line.

    Returns True if anything was added.
    """
    added = False
    for label, produce in (("Dam of", foals), ("Granddam of", grandfoals)):
        notable = [p for p in produce if p.is_notable]
        if notable:
            paragraph.add(f" {label}: {', '.join(_notable_name(p) for p in notable)}.")
            added = True
    return added


def sire_record(progeny: Sequence[Progeny], max_width: float = LETTER[0]) -> list[Paragraph]:
    """Summary of a stallion's offspring and the notable ones among them."""
    if not progeny:
        return []

    starters = sum(1 for p in progeny if p.starts > 0)
    winners = sum(1 for p in progeny if p.wins > 0)
    earnings = sum(p.earnings for p in progeny)

    heading = Paragraph(ParagraphPriority.VERY_HIGH, FontMap.BOLD, max_width=max_width, indent=INDENT,
                        kind=ParagraphKind.SECTION)
    heading.add("Progeny Record")

    summary = Paragraph(ParagraphPriority.VERY_HIGH, FontMap.NORMAL, max_width=max_width, indent=INDENT,
                        kind=ParagraphKind.SECTION)
    summary.add(
        f"Sire of {len(progeny)} {'foal' if len(progeny) == 1 else 'foals'},"
        f" {starters} {'starter' if starters == 1 else 'starters'},"
        f" {winners} {'winner' if winners == 1 else 'winners'},"
        f" with earnings of {format_currency(earnings)}."
    )

    paragraphs = [heading, summary]
    notable = [p for p in progeny if p.is_notable]
    if notable:
        line = Paragraph(ParagraphPriority.VERY_HIGH, FontMap.NORMAL, max_width=max_width, indent=INDENT,
                         first_line_indent=INDENT / 2, kind=ParagraphKind.SECTION)
        line.add("Including: ")
        line.add(", ".join(_notable_name(p) for p in notable), FontMap.BOLD)
        line.add(".")
        paragraphs.append(line)

    return paragraphs


def production_record(
    progeny: Sequence[Progeny],
    max_width: float = LETTER[0],
    now: Optional[datetime] = None,
) -> list[Paragraph]:
    """A mare's offspring oldest first, each dated by the season it was foaled."""
    if not progeny:
        return []

    season = get_current_season(now)
    entries = []

    for foal in sorted(progeny, key=lambda p: (-p.age, p.name.casefold())):
        entries.append(foal_paragraph(
            foal,
            ParagraphPriority.HIGH if foal.is_notable else ParagraphPriority.LOW,
            max_width=max_width,
            prefix=f"{format_season(shift_seasons(season, -foal.age))}: ",
            kind=ParagraphKind.SECTION,
        ))

    # Sits ahead of its entries at their top priority, so it outlasts them
    heading = Paragraph(max(p.priority for p in entries), FontMap.BOLD, max_width=max_width, indent=INDENT,
                        kind=ParagraphKind.SECTION)
    heading.add("Production Record")
    return [heading, *entries]
