"""SQLite persistence for the score log."""

from __future__ import annotations

import logging
import os
import sqlite3

from scorehub.game.protocol import Score

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


_COLUMNS = "player_id, player_name, game, score, timestamp"


def _row_to_score(row) -> Score:
    return Score(playerId=row[0], playerName=row[1], game=row[2], score=row[3], timestamp=row[4])


class SqliteStore:
    """Append-only score log; there is no update or delete."""

    def __init__(self, path: str):
        self.path = path
        self.conn: sqlite3.Connection | None = None

    def init(self) -> None:
        if self.path != ":memory:":
            parent = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(parent, exist_ok=True)
        try:
            self.conn = sqlite3.connect(self.path, check_same_thread=False)
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS scores (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  player_id TEXT NOT NULL,
                  player_name TEXT NOT NULL,
                  game TEXT NOT NULL,
                  score INTEGER NOT NULL,
                  timestamp INTEGER NOT NULL
                )
                """
            )
            self.conn.execute("CREATE INDEX IF NOT EXISTS idx_player ON scores(player_id)")
            self.conn.execute("CREATE INDEX IF NOT EXISTS idx_game ON scores(game)")
            self.conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"cannot open {self.path}: {e}") from e
        logger.info("score log at %s", self.path)

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None

    def _require(self) -> sqlite3.Connection:
        if not self.conn:
            raise StorageError("store is not open")
        return self.conn

    def append(self, score: Score) -> Score:
        conn = self._require()
        try:
            conn.execute(
                f"INSERT INTO scores ({_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
                (score.playerId, score.playerName, score.game, int(score.score), int(score.timestamp)),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"append failed: {e}") from e
        return score

    def _select(self, limit: int) -> list[Score]:
        conn = self._require()
        try:
            cur = conn.execute(
                f"SELECT {_COLUMNS} FROM scores ORDER BY timestamp DESC, id DESC LIMIT ?",
                (int(limit),),
            )
            return [_row_to_score(row) for row in cur.fetchall()]
        except sqlite3.Error as e:
            raise StorageError(f"query failed: {e}") from e

    def recent_scores(self, limit: int = 50) -> list[Score]:
        """Most recent first."""
        return self._select(limit)

    def aggregation_rows(self, limit: int = 500) -> list[Score]:
        return self._select(limit)
