"""Shared test fixtures for hnplus."""

from collections import Counter
from typing import AsyncGenerator, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from hnplus.errors import ScraperError
from hnplus.models import Base
from hnplus.scrapers.cache import NullResponseCache
from hnplus.scrapers.harnessnation import HarnessNationClient
from hnplus.scrapers.throttle import RequestThrottle

BASE_URL = "https://hn.test"


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# HarnessNation page builders
# ---------------------------------------------------------------------------

def profile_html(
    horse_id: int,
    name: str,
    sire: tuple[int, str] = (900, "Big Sire"),
    dam: tuple[int, str] = (1, "Dam One"),
    owner: str = "Stable Owner",
    age: int = 3,
    color: str = "Bay",
    gender: str = "Colt",
    foaled: str = "March 3rd, 2022",
    awards: str = "",
) -> str:
    return f"""
    <html><body>
    <h1>{name}</h1>
    <form><input type="hidden" name="horseId" value="{horse_id}"></form>
    <p>
      <b>Sire:</b> <a href="/horse/{sire[0]}">{sire[1]}</a><br>
      <b>Dam:</b> <a href="/horse/{dam[0]}">{dam[1]}</a><br>
      <b>Owner:</b> <a href="/stable/77">{owner}</a><br>
      <b>Age:</b> {age}<br>
      <b>Coat Color:</b> {color}<br>
      <b>Gender:</b> {gender}<br>
      Foaled: {foaled}<br>
      {awards}
    </p>
    </body></html>
    """


def race_row(
    race_id: int,
    name: str,
    finish: int,
    time: str = "1:55.00",
    age: str = "3yo",
    date: str = "2025-04-01",
    purse: str = "$20,000",
    gait: str = "Pace",
    stake: bool = False,
    elim: bool = False,
) -> str:
    badges = ('<span class="badge-stake">S</span>' if stake else "") + (
        '<span class="badge-elim">E</span>' if elim else ""
    )
    return (
        f'<tr data-race-id="{race_id}">'
        f'<td class="date">{date}</td>'
        f'<td class="race"><a href="/race/{race_id}">{name}</a> {badges}</td>'
        f'<td class="age">{age}</td><td class="condition">Fast</td><td class="gait">{gait}</td>'
        f'<td class="track">Dirt</td><td class="purse">{purse}</td><td class="finish">{finish}</td>'
        f'<td class="time">{time}</td></tr>'
    )


def race_history_html(rows: list[str], next_page: bool = False) -> str:
    pager = '<a rel="next" href="?page=2">Next</a>' if next_page else ""
    return f"<html><body><table>{''.join(rows)}</table>{pager}</body></html>"


def pedigree_html(entries: list[Optional[tuple[int, str]]]) -> str:
    cells = [
        f'<td><a href="/horse/{e[0]}">{e[1]}</a></td>' if e else "<td>Unknown</td>"
        for e in entries
    ]
    return f"<table><tr>{''.join(cells)}</tr></table>"


def progeny_row(
    horse_id: int,
    name: str,
    age: int = 4,
    gender: str = "venus",
    wins: int = 0,
    starts: int = 5,
    earnings: str = "$10,000",
    sire: tuple[int, str] = (900, "Big Sire"),
    stable: str = "B",
    award: str = "",
) -> str:
    return (
        f'<tr><td><a href="/horse/{horse_id}"><span>{name}</span></a> {award}<br>'
        f'<a href="/horse/{sire[0]}">{sire[1]}</a></td>'
        f'<td>{age}</td><td><i class="fas fa-{gender}"></i></td><td>{stable}</td><td>-</td>'
        f"<td>{starts} - {wins} - 0 - 0</td><td>{earnings}</td></tr>"
    )


def progeny_html(rows: list[str]) -> str:
    return f"<table><tbody>{''.join(rows)}</tbody></table>"


DASHBOARD_HTML = "<script>xhr.setRequestHeader('X-CSRF-TOKEN', 'tok-123');</script>"


class FakeSite:
    """Serves canned HarnessNation pages in place of the network and counts requests."""

    def __init__(self):
        self.profiles: dict[int, str] = {}
        self.pedigrees: dict[int, str] = {}
        self.race_pages: dict[int, list[str]] = {}
        self.progeny: dict[int, str] = {}
        self.calls: Counter = Counter()
        self.status_codes: list[int] = []

    async def fetch(self, url: str, method: str = "GET", data: Optional[dict] = None, **kwargs) -> str:
        path = url[len(BASE_URL):]
        horse_id = int(data["horseId"]) if data and "horseId" in data else None
        self.calls[path, horse_id] += 1

        if self.status_codes:
            status = self.status_codes.pop(0)
            raise ScraperError(f"HTTP {status}: {url}", status_code=status)

        if path == "/stable/dashboard":
            return DASHBOARD_HTML
        if path.startswith("/horse/") and method == "GET":
            horse_id = int(path.rsplit("/", 1)[1])
            return self.profiles.get(horse_id, "<html><h1>Missing</h1></html>")
        if path == "/horse/pedigree":
            return self.pedigrees.get(horse_id, "")
        if path == "/horse/api/race-history":
            pages = self.race_pages.get(horse_id, [race_history_html([])])
            return pages[int(data.get("page", 1)) - 1]
        if path == "/api/progeny/list":
            return self.progeny.get(horse_id, progeny_html([]))
        raise ScraperError(f"HTTP 404: {url}", status_code=404)


@pytest.fixture
def site() -> FakeSite:
    return FakeSite()


@pytest.fixture
def client(site) -> HarnessNationClient:
    """Client with no cache and a throttle that never cools down."""
    hn = HarnessNationClient(
        cache=NullResponseCache(),
        throttle=RequestThrottle(batch_size=0, cooldown=0),
        base_url=BASE_URL,
    )
    hn.fetch = site.fetch
    return hn


@pytest.fixture
def family_site(site) -> FakeSite:
    """A yearling colt out of a mare with three other foals, three generations deep."""
    subject, dam, granddam, great_granddam = 100, 1, 5, 13

    site.profiles[subject] = profile_html(subject, "Young Gun", dam=(dam, "Dam One"), age=1, gender="Colt")
    site.profiles[dam] = profile_html(dam, "Dam One", sire=(902, "Dam Sire"), dam=(granddam, "Second Dam"),
                                      age=9, gender="Mare")
    site.profiles[granddam] = profile_html(granddam, "Second Dam", age=15, gender="Mare")
    site.profiles[great_granddam] = profile_html(great_granddam, "Third Dam", age=21, gender="Mare")

    # sire, dam, sire's sire, sire's dam, dam's sire, dam's dam, then the third generation
    site.pedigrees[subject] = pedigree_html([
        (900, "Big Sire"), (dam, "Dam One"),
        (910, "Top Sire"), (911, "Sire Dam"), (902, "Dam Sire"), (granddam, "Second Dam"),
        (920, "Old Sire"), None, (921, "Older Sire"), (922, "Older Dam"),
        (923, "Grand Sire"), (924, "Grand Dam"), (925, "Great Sire"), (great_granddam, "Third Dam"),
    ])

    site.progeny[dam] = progeny_html([
        progeny_row(subject, "Young Gun", age=1, gender="mars", starts=0, earnings="$0"),
        progeny_row(201, "Fast Filly", age=4, wins=3, earnings="$250,000"),
        progeny_row(202, "Slow Colt", age=5, gender="mars", wins=0, earnings="$1,000"),
        progeny_row(203, "Stake Star", age=6, gender="neuter", wins=4, earnings="$400,000",
                    award='<img src="/img/trophyhorse.png">'),
    ])
    site.progeny[granddam] = progeny_html([
        progeny_row(dam, "Dam One", age=9, wins=1),
        progeny_row(301, "Uncle Bob", age=11, gender="mars", wins=2, earnings="$90,000"),
    ])
    site.progeny[great_granddam] = progeny_html([progeny_row(granddam, "Second Dam", age=15)])

    site.race_pages[201] = [race_history_html([
        race_row(1, "Open", 1, "1:52.00", age="open", date="2025-10-01"),
        race_row(2, "Filly Classic", 2, "1:53.00", age="3yo", date="2025-04-01", stake=True),
    ])]
    site.race_pages[203] = [race_history_html([
        race_row(3, "Big Derby", 1, "1:50.00", age="3yo", date="2024-04-01", stake=True, purse="$500,000"),
        race_row(4, "Big Derby", 1, "1:51.00", age="3yo", date="2024-03-25", stake=True, elim=True),
    ])]
    site.race_pages[dam] = [race_history_html([
        race_row(5, "Maiden", 1, "1:56.20", age="2yo", date="2018-04-01"),
    ])]

    return site
