"""Tests for race records, race lists and marks."""

from datetime import datetime

import pytest

from hnplus.racing import Race, RaceList, format_mark, get_lifetime_mark, is_key_race


def _race(race_id=None, finish=1, time=115.0, age="3yo", date=None, **kwargs) -> Race:
    return Race(id=race_id, finish=finish, time=time, age=age, date=date, gait="pace", **kwargs)


class TestRaceEarnings:
    def test_winner_takes_half(self):
        assert Race(purse=50000, finish=1).get_earnings() == 25000

    def test_outside_payouts_earns_nothing(self):
        assert Race(purse=50000, finish=6).get_earnings() == 0

    @pytest.mark.parametrize("finish", [None, 0])
    def test_no_finish_earns_nothing(self, finish):
        assert Race(purse=50000, finish=finish).get_earnings() == 0

    def test_exact_age(self):
        assert Race(age="2yo").exact_age == 2
        assert Race(age="Open").exact_age is None


class TestRaceList:
    def test_unique_by_id(self):
        races = RaceList([_race(1), _race(1), _race(2)])
        assert [r.id for r in races] == [1, 2]

    def test_races_without_id_are_kept(self):
        races = RaceList([_race(), _race()])
        assert len(races) == 2

    def test_fastest_win_ignores_losses(self):
        races = RaceList([_race(1, finish=2, time=110.0), _race(2, time=114.0), _race(3, time=116.0)])
        assert races.find_fastest_win().id == 2
        assert races.find_fastest_race().id == 1

    def test_summary(self):
        races = RaceList([
            _race(1, finish=1, purse=10000),
            _race(2, finish=2, purse=10000),
            _race(3, finish=3, purse=10000),
            _race(4, finish=7, purse=10000),
        ])
        summary = races.get_summary()
        assert summary[:4] == (4, 1, 1, 1)
        assert summary[4] == pytest.approx(8700)

    def test_find_age_from_reference(self):
        ref = _race(1, age="2yo", date=datetime(2024, 4, 1))
        open_race = _race(2, age="Open", date=datetime(2025, 4, 1))
        races = RaceList([open_race, ref])
        assert races.find_age(open_race) == 6

    def test_find_age_without_reference(self):
        open_race = _race(2, age="Open", date=datetime(2025, 4, 1))
        assert RaceList([open_race]).find_age(open_race) is None


class TestKeyRaces:
    def test_stakes_placing(self):
        assert is_key_race(Race(stake=True, finish=3))
        assert not is_key_race(Race(stake=True, finish=4))

    def test_open_win_only_when_asked(self):
        race = Race(name="Open", finish=1)
        assert not is_key_race(race)
        assert is_key_race(race, include_open=True)

    def test_preferred_win(self):
        assert is_key_race(Race(name="Maiden Preferred", finish=1), include_preferred=True)


class TestMarks:
    def test_format_mark(self):
        assert format_mark(_race(time=115.4), 2) == "p,2,1:55.40"

    def test_no_time_no_mark(self):
        assert format_mark(_race(time=None)) == ""

    def test_lifetime_mark(self):
        races = RaceList([_race(1, time=113.2, age="3yo"), _race(2, finish=2, time=111.0)])
        assert get_lifetime_mark(races) == "p,3,1:53.20"

    def test_lifetime_mark_maiden(self):
        assert get_lifetime_mark(RaceList([_race(1, finish=4)])) == ""

    def test_lifetime_mark_requires_list(self):
        with pytest.raises(TypeError):
            get_lifetime_mark(None)
