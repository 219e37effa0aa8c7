"""Per-player, per-game submission spacing."""

from __future__ import annotations


class SubmissionLedger:
    """Last accepted submission time for each (playerId, game).

    In-memory only; a restart forgets everything. Not thread-safe: callers
    run on the event loop thread, where a single call cannot interleave.
    """

    def __init__(self, window_ms: int = 5000):
        self.window_ms = int(window_ms)
        self._last: dict[tuple[str, str], int] = {}

    @property
    def reason(self) -> str:
        return f"Rate limited - wait {self.window_ms / 1000:g}s between scores"

    def allow(self, key: tuple[str, str], now_ms: int) -> bool:
        last = self._last.get(key)
        return last is None or now_ms - last >= self.window_ms

    def try_record(self, key: tuple[str, str], now_ms: int) -> bool:
        """Check and record in one step; False means the key is still cooling down."""
        if not self.allow(key, now_ms):
            return False
        self._last[key] = now_ms
        return True

    def release(self, key: tuple[str, str], now_ms: int) -> None:
        # Only undo our own record, never a later one.
        if self._last.get(key) == now_ms:
            del self._last[key]

    def __len__(self) -> int:
        return len(self._last)
