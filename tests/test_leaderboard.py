import pytest

from scorehub.game.leaderboard import build_leaderboard, normalize, total_score
from scorehub.game.protocol import GameBest

from fakes import score


def test_higher_typing_ranks_first():
    rows = [score("slow", "typing", 60), score("fast", "typing", 80)]
    board = build_leaderboard(rows)
    assert [e.playerId for e in board] == ["fast", "slow"]
    assert board[0].totalScore == pytest.approx(240.0)


def test_reaction_keeps_lowest_time():
    rows = [score("p1", "reaction", 150), score("p1", "reaction", 120)]
    (entry,) = build_leaderboard(rows)
    assert entry.games == [GameBest("reaction", 120)]
    assert entry.totalScore == pytest.approx(2 * (500 - 120))


def test_one_best_entry_per_game():
    rows = [
        score("p1", "typing", 40),
        score("p1", "pattern", 12),
        score("p1", "typing", 90),
        score("p1", "pattern", 7),
        score("p1", "reaction", 300),
        score("p1", "reaction", 250),
    ]
    (entry,) = build_leaderboard(rows)
    best = {g.game: g.score for g in entry.games}
    assert best == {"typing": 90, "pattern": 12, "reaction": 250}
    assert len(entry.games) == 3
    assert entry.totalScore == pytest.approx(3 * 90 + 2.5 * 12 + 2 * 250)


def test_slow_reaction_contributes_nothing():
    assert normalize("reaction", 800) == 0.0
    assert total_score([GameBest("reaction", 800)]) == 0.0


def test_filter_game():
    rows = [score("p1", "typing", 100), score("p2", "pattern", 150), score("p1", "pattern", 10)]
    board = build_leaderboard(rows, filter_game="pattern")
    assert [e.playerId for e in board] == ["p2", "p1"]
    assert all(g.game == "pattern" for e in board for g in e.games)


def test_truncates_and_sorts():
    rows = [score(f"p{i}", "typing", i) for i in range(30)]
    board = build_leaderboard(rows)
    assert len(board) == 20
    totals = [e.totalScore for e in board]
    assert totals == sorted(totals, reverse=True)
    assert board[0].playerId == "p29"


def test_ties_keep_discovery_order_and_repeat():
    rows = [score("b", "typing", 50), score("a", "typing", 50), score("c", "pattern", 60)]
    first = build_leaderboard(rows)
    assert [e.playerId for e in first] == ["b", "a", "c"]
    assert build_leaderboard(rows) == first


def test_name_from_first_row_seen():
    rows = [score("p1", "typing", 50, name="Newest"), score("p1", "typing", 40, name="Older")]
    (entry,) = build_leaderboard(rows)
    assert entry.playerName == "Newest"
