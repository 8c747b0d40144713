# tests/test_head_to_head.py

import asyncio

import pytest

from kcagenda.resolvers.head_to_head import (
    HeadToHeadResolver,
    HistoryRow,
    compute_head_to_head,
    match_history_url,
    parse_match_history_html,
    series_outcomes,
    side_win_percentages,
    winrate_vs_opponent,
)
from tests.helpers import FakeSession


def _history_row(date, result, side, opponent, bans=(), picks=()):
    ban_spans = "".join(f'<span title="{c}"></span>' for c in bans)
    pick_spans = "".join(f'<span title="{c}"></span>' for c in picks)
    return (
        f"<tr><td>{date}</td><td>LEC 2025</td><td>Patch</td><td>{result}</td><td>{side}</td>"
        f'<td><a href="/wiki/{opponent}" title="{opponent}">{opponent[:3]}</a></td>'
        f"<td>{ban_spans}</td><td>{pick_spans}</td><td>K</td><td>D</td><td>extra</td></tr>"
    )


def _history_html(rows):
    body = "".join(rows)
    return f"""
    <html><body>
      <table class="wikitable">
        <tr><th>Date</th></tr>
        {body}
      </table>
    </body></html>
    """


HISTORY_HTML = _history_html([
    _history_row("2025-03-01", "Win", "Red", "G2 Esports", bans=("Azir", "Vi")),
    _history_row("2025-03-01", "Loss", "Blue", "G2 Esports", bans=("Azir", "Rell")),
    _history_row("2025-03-08", "Win", "Red", "Fnatic", bans=("Jax",)),
])


class TestHistoryParsing:

    def test_rows_and_opponent_titles(self):
        rows = parse_match_history_html(HISTORY_HTML)
        assert len(rows) == 3
        first = rows[0]
        assert (first.date, first.result, first.side, first.opponent) == ("2025-03-01", "Win", "Red", "G2 Esports")
        assert first.champions == ["Azir", "Vi"]
        assert first.is_win
        assert first.day.isoformat() == "2025-03-01"

    def test_page_without_table(self):
        assert parse_match_history_html("<html><body></body></html>") is None

    def test_history_url(self):
        url = match_history_url("Karmine Corp Blue", 2025)
        assert "MHG%5Bstartdate%5D=2025-01-01" in url
        assert "MHG%5Bteam%5D=Karmine+Corp+Blue" in url


class TestAggregates:

    def test_side_percentages_use_all_games(self):
        rows = [
            HistoryRow("2025-01-01", "Win", "Red", "A"),
            HistoryRow("2025-01-02", "Win", "Red", "B"),
            HistoryRow("2025-01-03", "Win", "Blue", "C"),
        ]
        red, blue = side_win_percentages(rows)
        assert red == pytest.approx(2 / 3)
        assert blue == pytest.approx(1 / 3)

    def test_side_percentages_without_games(self):
        assert side_win_percentages([]) == (0.0, 0.0)

    def test_split_series_counts_as_loss(self):
        rows = [
            HistoryRow("2025-03-01", "Win", "Red", "G2 Esports"),
            HistoryRow("2025-03-01", "Loss", "Blue", "G2 Esports"),
        ]
        assert series_outcomes(rows) == [False]
        assert winrate_vs_opponent(rows) == 0.0

    def test_series_won_on_majority(self):
        rows = [
            HistoryRow("2025-03-01", "Win", "Red", "G2 Esports"),
            HistoryRow("2025-03-01", "Loss", "Blue", "G2 Esports"),
            HistoryRow("2025-03-01", "Win", "Red", "G2 Esports"),
            HistoryRow("2025-04-01", "Loss", "Red", "G2 Esports"),
        ]
        assert series_outcomes(rows) == [True, False]
        assert winrate_vs_opponent(rows) == 0.5

    def test_compute_head_to_head(self):
        rows = parse_match_history_html(HISTORY_HTML)
        stats = compute_head_to_head(rows, "G2 Esports")
        assert stats.win_by_red_side_percentage == pytest.approx(2 / 3)
        assert stats.win_by_blue_side_percentage == pytest.approx(1 / 3)
        assert stats.winrate_vs_other_team_percentage == 0.0
        assert stats.top_three_champions[0] == ("Azir", 2)
        assert len(stats.top_three_champions) == 3

    def test_unknown_opponent_leaves_optional_fields_out(self):
        stats = compute_head_to_head(parse_match_history_html(HISTORY_HTML), "Team Heretics")
        assert stats.winrate_vs_other_team_percentage is None
        assert "topThreeChampions" not in stats.to_dict()


class TestHeadToHeadResolver:

    def test_history_fetched_once_for_several_opponents(self):
        session = FakeSession({"MatchHistoryGame": HISTORY_HTML})
        resolver = HeadToHeadResolver(session)

        async def run():
            g2 = await resolver.resolve("Karmine Corp", "G2 Esports", 2025)
            fnc = await resolver.resolve("Karmine Corp", "Fnatic", 2025)
            return g2, fnc

        g2, fnc = asyncio.run(run())
        assert session.fetches("MatchHistoryGame") == 1
        assert g2.winrate_vs_other_team_percentage == 0.0
        assert fnc.winrate_vs_other_team_percentage == 1.0

    def test_missing_history_gives_defaults(self):
        stats = asyncio.run(HeadToHeadResolver(FakeSession()).resolve("Karmine Corp", "G2 Esports", 2025))
        assert stats.to_dict() == {"winByRedSidePercentage": 0.0, "winByBlueSidePercentage": 0.0}
