# tests/test_roster.py

import asyncio

from kcagenda.config import LOL, VALORANT
from kcagenda.resolvers.roster import RosterResolver, parse_lol_roster_html, parse_valorant_roster_html
from tests.helpers import FakeSession


def _lol_roster_html(players):
    cells = "".join(
        f'<td><span title="{position}"></span><a href="/wiki/{name}">{name}</a></td>'
        for position, name in players
    )
    return f"""
    <html><body>
      <table>
        <tr><th>Roster</th></tr>
        <tr><td>Active</td></tr>
        <tr>{cells}</tr>
      </table>
    </body></html>
    """


KC_PLAYERS = [
    ("Top", "Canna"),
    ("Jungle", "Yike"),
    ("Mid", "Vladi"),
    ("Bot", "Caliste"),
    ("Support", "Targamas"),
]

VALORANT_HTML = """
<html><body>
  <table class="wikitable wikitable-striped roster-card">
    <tr><td class="ID">marteen</td><td class="Name">Martin</td></tr>
    <tr><td class="ID">sheydos</td></tr>
    <tr><td class="ID">tomaszy</td></tr>
    <tr><td class="ID">sheydos</td></tr>
  </table>
</body></html>
"""


class TestRosterParsing:

    def test_lol_roster_pairs_positions_and_names(self):
        players = parse_lol_roster_html(_lol_roster_html(KC_PLAYERS))
        assert [(p.position, p.name) for p in players] == KC_PLAYERS

    def test_lol_roster_one_player_per_position_and_capped(self):
        html = _lol_roster_html(KC_PLAYERS[:1] + [("Top", "Substitute")] + KC_PLAYERS[1:] + [("Coach", "Striker")])
        players = parse_lol_roster_html(html)
        assert len(players) == 5
        assert players[0].name == "Canna"
        assert "Substitute" not in [p.name for p in players]

    def test_lol_roster_without_table(self):
        assert parse_lol_roster_html("<html><body><p>No roster</p></body></html>") == []

    def test_valorant_roster_reads_ids_without_positions(self):
        players = parse_valorant_roster_html(VALORANT_HTML)
        assert [p.name for p in players] == ["marteen", "sheydos", "tomaszy"]
        assert all(p.position is None for p in players)


class TestRosterResolver:

    def test_same_team_fetched_once_per_run(self):
        session = FakeSession({"/wiki/Karmine_Corp": _lol_roster_html(KC_PLAYERS)})
        resolver = RosterResolver(session)

        async def run():
            first = await resolver.resolve("Karmine Corp", LOL)
            second = await resolver.resolve("Karmine Corp", LOL)
            return first, second

        first, second = asyncio.run(run())
        assert session.fetches("/wiki/Karmine_Corp") == 1
        assert [p.name for p in first] == [p.name for p in second]
        first[0].name = "changed"
        assert second[0].name == "Canna"

    def test_corrected_names_share_the_cache(self):
        session = FakeSession({"/wiki/Karmine_Corp_Blue": _lol_roster_html(KC_PLAYERS)})
        resolver = RosterResolver(session)

        async def run():
            await resolver.resolve("KC Blue", LOL, "LFL")
            return await resolver.resolve("Karmine Corp Blue", LOL, "LFL")

        players = asyncio.run(run())
        assert len(players) == 5
        assert len(session.calls) == 1

    def test_placeholder_team_is_not_fetched(self):
        session = FakeSession()
        players = asyncio.run(RosterResolver(session).resolve("TBD", LOL))
        assert players == []
        assert session.calls == []

    def test_missing_table_and_timeout_give_empty_roster(self):
        session = FakeSession(timeouts=["Slow_Team"])
        resolver = RosterResolver(session)

        async def run():
            return await resolver.resolve("Unknown Team", LOL), await resolver.resolve("Slow Team", LOL)

        missing, slow = asyncio.run(run())
        assert missing == []
        assert slow == []

    def test_valorant_roster_from_liquipedia(self):
        session = FakeSession({"liquipedia.net/valorant/Karmine_Corp": VALORANT_HTML})
        players = asyncio.run(RosterResolver(session).resolve("KARMINE CORP", VALORANT, "VCT EMEA"))
        assert len(players) == 3
        assert session.calls == ["https://liquipedia.net/valorant/Karmine_Corp"]
