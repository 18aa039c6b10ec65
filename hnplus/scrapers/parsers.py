"""Parsers for HarnessNation horse, race history, pedigree and progeny pages."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from bs4 import BeautifulSoup, Tag

from hnplus.formatters.text import parse_currency, parse_int
from hnplus.racing import Race, RaceList

logger = logging.getLogger(__name__)

HORSE_LINK_RE = re.compile(r"horse/(\d+)")
PEDIGREE_ENTRY_RE = re.compile(r"<a[^>]*horse/(\d+)[^>]*>\s*(.*?)\s*</a[^>]*>|\b(Unknown)\b", re.IGNORECASE | re.DOTALL)
FOALED_RE = re.compile(r"Foaled:\s*(\w+ \d+)(?:st|nd|rd|th)?(, \d{4})", re.IGNORECASE)
RECORD_RE = re.compile(r"([\d,]+)\s*-\s*([\d,]+)\s*-\s*([\d,]+)\s*-\s*([\d,]+)")
TIME_RE = re.compile(r"^(?:(\d+):)?(\d+(?:\.\d+)?)$")
TAGS_RE = re.compile(r"<[^>]+>")

OVERALL_AWARD_ICON = re.compile(r"trophyhorse\.png", re.IGNORECASE)
CONFERENCE_AWARD_ICON = re.compile(r"trophyhorse_silver\.png", re.IGNORECASE)

GENDER_ICONS = {"mars": "male", "venus": "female", "neuter": "gelding"}
STABLES = {"m": "main", "b": "breeding"}


@dataclass
class HorseProfile:
    """Fields scraped from a horse's profile page."""

    id: Optional[int] = None
    name: Optional[str] = None
    sire_id: Optional[int] = None
    sire_name: Optional[str] = None
    dam_id: Optional[int] = None
    owner: Optional[str] = None
    age: int = 0
    color: Optional[str] = None
    gender: Optional[str] = None
    foaled: Optional[str] = None
    overall_award_winner: bool = False
    conference_award_winner: bool = False

    @property
    def is_male(self) -> bool:
        return (self.gender or "").lower() in ("colt", "stallion", "horse", "gelding", "male")


def _clean(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    return " ".join(text.strip().split()) or None


def _labelled(soup: BeautifulSoup, label: str) -> Optional[Tag]:
    """The <b>Label:</b> element on a profile page."""
    pattern = re.compile(rf"^\s*{re.escape(label)}\s*:?\s*$", re.IGNORECASE)
    return soup.find("b", string=pattern)


def _labelled_link(soup: BeautifulSoup, label: str) -> tuple[Optional[int], Optional[str]]:
    bold = _labelled(soup, label)
    link = bold.find_next("a") if bold else None
    if link is None:
        return None, None
    match = HORSE_LINK_RE.search(link.get("href", ""))
    return (int(match.group(1)) if match else None), _clean(link.get_text())


def _labelled_text(soup: BeautifulSoup, label: str) -> Optional[str]:
    bold = _labelled(soup, label)
    if bold is None:
        return None
    sibling = bold.next_sibling
    while sibling is not None and not (isinstance(sibling, str) and sibling.strip()):
        if isinstance(sibling, Tag) and sibling.name == "br":
            return None
        sibling = sibling.next_sibling
    return _clean(sibling) if sibling is not None else None


def parse_profile(html: str) -> HorseProfile:
    """Parse a /horse/{id} profile page."""
    soup = BeautifulSoup(html, "lxml")
    profile = HorseProfile()

    id_input = soup.find("input", attrs={"name": "horseId"})
    if id_input is not None and (id_input.get("value") or "").isdigit():
        profile.id = int(id_input["value"])

    heading = soup.find("h1")
    if heading is not None:
        profile.name = _clean(heading.get_text())

    profile.sire_id, profile.sire_name = _labelled_link(soup, "Sire")
    profile.dam_id, _ = _labelled_link(soup, "Dam")

    owner = _labelled(soup, "Owner")
    owner_link = owner.find_next("a") if owner else None
    profile.owner = _clean(owner_link.get_text()) if owner_link else None

    profile.age = parse_int(_labelled_text(soup, "Age") or "0") or 0
    profile.color = _labelled_text(soup, "Coat Color")
    gender = _labelled_text(soup, "Gender")
    profile.gender = gender.split()[0] if gender else None

    text = soup.get_text(" ")
    foaled = FOALED_RE.search(text)
    if foaled:
        profile.foaled = f"{foaled.group(1)}{foaled.group(2)}"

    profile.overall_award_winner = soup.find("img", src=OVERALL_AWARD_ICON) is not None
    profile.conference_award_winner = soup.find("img", src=CONFERENCE_AWARD_ICON) is not None

    return profile


def parse_race_time(value: Optional[str]) -> Optional[float]:
    """'1:52.40' -> 112.4."""
    match = TIME_RE.match((value or "").strip())
    if not match:
        return None
    minutes, seconds = match.groups()
    return int(minutes or 0) * 60 + float(seconds)


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    value = _clean(value)
    if not value:
        return None
    for fmt in ("%Y-%m-%d", "%m/%d/%Y", "%b %d, %Y"):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    logger.debug(f"Unrecognised race date: {value}")
    return None


def _cell(row: Tag, name: str) -> Optional[Tag]:
    return row.find("td", class_=name)


def _cell_text(row: Tag, name: str) -> Optional[str]:
    cell = _cell(row, name)
    return _clean(cell.get_text(" ")) if cell is not None else None


def parse_race_history(html: str) -> RaceList:
    """Parse one page of a horse's race history."""
    soup = BeautifulSoup(html, "lxml")
    races = RaceList()

    for row in soup.select("tr[data-race-id]"):
        name_cell = _cell(row, "race")
        link = name_cell.find("a") if name_cell is not None else None
        finish = parse_int(_cell_text(row, "finish") or "")

        races.append(Race(
            id=int(row["data-race-id"]),
            name=_clean(link.get_text()) if link else _cell_text(row, "race"),
            stake=name_cell is not None and name_cell.find(class_="badge-stake") is not None,
            elim=name_cell is not None and name_cell.find(class_="badge-elim") is not None,
            age=_cell_text(row, "age"),
            condition=_cell_text(row, "condition"),
            gait=(_cell_text(row, "gait") or "").lower() or None,
            track=_cell_text(row, "track"),
            purse=parse_currency(_cell_text(row, "purse") or "0") or 0.0,
            finish=finish or None,
            time=parse_race_time(_cell_text(row, "time")),
            date=_parse_date(_cell_text(row, "date")),
        ))

    return races


def has_next_page(html: str) -> bool:
    """True when a race history page links to a further page."""
    soup = BeautifulSoup(html, "lxml")
    return soup.find("a", attrs={"rel": "next"}) is not None


def parse_pedigree(html: str) -> list[tuple[Optional[int], str]]:
    """Ordered (id, name) pairs from a pedigree document. Missing ancestors have id None."""
    entries = []
    for match in PEDIGREE_ENTRY_RE.finditer(html):
        horse_id, name, unknown = match.groups()
        if unknown:
            entries.append((None, "Unknown"))
        else:
            entries.append((int(horse_id), _clean(TAGS_RE.sub("", name)) or "Unknown"))
    return entries


def parse_progeny_list(html: str) -> list[dict]:
    """Rows of a progeny list: id, name, sire, age, gender, stable, record and award flags."""
    soup = BeautifulSoup(html, "lxml")
    rows = []
    seen: set[int] = set()

    for row in soup.find_all("tr"):
        cells = row.find_all("td")
        if len(cells) < 7:
            continue

        links = [a for a in cells[0].find_all("a") if HORSE_LINK_RE.search(a.get("href", ""))]
        if not links:
            continue

        progeny_id = int(HORSE_LINK_RE.search(links[0]["href"]).group(1))
        if progeny_id in seen:
            continue
        seen.add(progeny_id)

        sire_id, sire_name = None, None
        if len(links) > 1:
            sire_id = int(HORSE_LINK_RE.search(links[1]["href"]).group(1))
            sire_name = _clean(links[1].get_text())

        icon = cells[2].find("i")
        icon_classes = " ".join(icon.get("class", [])) if icon is not None else ""
        gender = next((g for key, g in GENDER_ICONS.items() if f"fa-{key}" in icon_classes), "gelding")

        record = RECORD_RE.search(cells[5].get_text(" "))
        starts, wins = (parse_int(record.group(1)), parse_int(record.group(2))) if record else (0, 0)

        rows.append({
            "id": progeny_id,
            "name": _clean(links[0].get_text()) or "",
            "sire_id": sire_id,
            "sire_name": sire_name or "",
            "age": parse_int(cells[1].get_text()) or 0,
            "gender": gender,
            "stable": STABLES.get((_clean(cells[3].get_text()) or "").lower(), "retired"),
            "starts": starts,
            "wins": wins,
            "earnings": parse_currency(cells[6].get_text()) or 0.0,
            "overall_award_winner": row.find("img", src=OVERALL_AWARD_ICON) is not None,
            "conference_award_winner": row.find("img", src=CONFERENCE_AWARD_ICON) is not None,
        })

    return rows
