"""Score bounds + event window."""

from __future__ import annotations

from typing import Callable

from scorehub.game.protocol import Score, now_ms
from scorehub.net.rate_limit import SubmissionLedger

# game -> ((min, reason if below), (max, reason if above)); bounds are inclusive.
BOUNDS: dict[str, tuple[tuple[int, str], tuple[int, str]]] = {
    "reaction": ((50, "Reaction time too fast"), (5000, "Reaction time too slow")),
    "typing": ((0, "Invalid typing score"), (300, "WPM too high")),
    "pattern": ((0, "Invalid pattern score"), (200, "Pattern score too high")),
}

EVENT_ENDED = "Event ended"


def is_event_over(now_ms: int, event_end: int | None) -> bool:
    return event_end is not None and now_ms >= event_end


def check_content(score: Score) -> str | None:
    """Return a rejection reason for an out-of-range score, else None."""
    bounds = BOUNDS.get(score.game)
    if bounds is None:
        return f"Unknown game: {score.game}"
    (lo, too_low), (hi, too_high) = bounds
    if score.score < lo:
        return too_low
    if score.score > hi:
        return too_high
    return None


class ScoreValidator:
    """Decides whether a submission is accepted.

    Order of checks: event window, content bounds, then rate limit. An
    accepted submission is recorded in the ledger by the same call, so two
    submissions for one (player, game) inside the window cannot both pass.
    """

    def __init__(
        self,
        ledger: SubmissionLedger,
        event_end: int | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.ledger = ledger
        self.event_end = event_end
        self.clock = clock

    def validate(self, score: Score) -> tuple[str | None, int]:
        """Return (reason, stamp); reason is None when accepted."""
        now = self.clock()
        if is_event_over(now, self.event_end):
            return EVENT_ENDED, now
        reason = check_content(score)
        if reason:
            return reason, now
        if not self.ledger.try_record((score.playerId, score.game), now):
            return self.ledger.reason, now
        return None, now

    def release(self, score: Score, stamp: int) -> None:
        """Undo the ledger record of an accepted submission that was never stored."""
        self.ledger.release((score.playerId, score.game), stamp)
