"""In-memory score log (no persistence)."""

from __future__ import annotations

from scorehub.game.protocol import Score


class MemoryStore:
    def __init__(self):
        self._scores: list[Score] = []

    def init(self) -> None:
        pass

    def close(self) -> None:
        pass

    def append(self, score: Score) -> Score:
        self._scores.append(score)
        return score

    def _newest_first(self, limit: int) -> list[Score]:
        # Stable sort over insertion order keeps later inserts first on equal timestamps.
        ordered = sorted(reversed(self._scores), key=lambda s: s.timestamp, reverse=True)
        return ordered[: int(limit)]

    def recent_scores(self, limit: int = 50) -> list[Score]:
        return self._newest_first(limit)

    def aggregation_rows(self, limit: int = 500) -> list[Score]:
        return self._newest_first(limit)
