"""Weighted leaderboard from raw score rows."""

from __future__ import annotations

from typing import Iterable

from scorehub.game.protocol import GameBest, LeaderboardEntry, Score

WEIGHTS = {"reaction": 2.0, "typing": 3.0, "pattern": 2.5}

# Reaction times above this contribute nothing.
REACTION_CEILING = 500


def lower_is_better(game: str) -> bool:
    return game == "reaction"


def normalize(game: str, value: int) -> float:
    if game == "reaction":
        return float(max(0, REACTION_CEILING - value))
    return float(value)


def total_score(games: Iterable[GameBest]) -> float:
    return sum(WEIGHTS.get(g.game, 0.0) * normalize(g.game, g.score) for g in games)


def build_leaderboard(rows: Iterable[Score], filter_game: str | None = None, limit: int = 20) -> list[LeaderboardEntry]:
    """Rank players by weighted best-per-game scores.

    Players appear in discovery order before sorting, and the sort is stable,
    so equal totals keep that order.
    """
    best: dict[str, dict[str, int]] = {}
    names: dict[str, str] = {}

    for row in rows:
        if filter_game and row.game != filter_game:
            continue
        games = best.setdefault(row.playerId, {})
        names.setdefault(row.playerId, row.playerName)
        cur = games.get(row.game)
        if cur is None:
            games[row.game] = row.score
        elif lower_is_better(row.game):
            games[row.game] = min(cur, row.score)
        else:
            games[row.game] = max(cur, row.score)

    entries = []
    for player_id, games in best.items():
        bests = [GameBest(game=g, score=v) for g, v in games.items()]
        entries.append(
            LeaderboardEntry(
                playerId=player_id,
                playerName=names[player_id],
                totalScore=total_score(bests),
                games=bests,
            )
        )

    entries.sort(key=lambda e: e.totalScore, reverse=True)
    return entries[: int(limit)]
