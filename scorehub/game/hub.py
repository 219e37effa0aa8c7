"""Live set, submissions, broadcast fan-out.

Every method here is synchronous and must run on the event loop thread. That
is what serializes mutations of the live set, the rate-limit ledger and the
score log: no call can interleave with another. Outbound traffic goes through
each connection's bounded outbox, so no method ever waits on a socket.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable

from scorehub.game import protocol
from scorehub.game.config import HubConfig
from scorehub.game.leaderboard import build_leaderboard
from scorehub.game.protocol import LeaderboardEntry, Player, Score
from scorehub.game.validation import ScoreValidator
from scorehub.net.rate_limit import SubmissionLedger
from scorehub.storage.sqlite import StorageError

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Connection:
    conn_id: str
    player: Player
    created_at: float
    outbox: asyncio.Queue = field(repr=False)
    closed: bool = False

    def send(self, text: str) -> bool:
        if self.closed:
            return False
        try:
            self.outbox.put_nowait(text)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            # Wake the writer; if the outbox is full it sees `closed` on its next item.
            self.outbox.put_nowait(None)
        except asyncio.QueueFull:
            pass


class ScoreHub:
    def __init__(
        self,
        config: HubConfig,
        store,
        clock: Callable[[], int] = protocol.now_ms,
    ):
        self.config = config
        self.store = store
        self.validator = ScoreValidator(
            SubmissionLedger(config.rate_limit_ms),
            event_end=config.event_end,
            clock=clock,
        )
        self._conns: dict[str, Connection] = {}
        # player id -> the connection currently representing that player
        self._live: dict[str, Connection] = {}

    # -- queries --

    def players(self) -> list[Player]:
        return [c.player for c in self._live.values()]

    def recent_scores(self) -> list[Score]:
        return self.store.recent_scores(limit=self.config.recent_limit)

    def query_leaderboard(self, filter_game: str | None = None) -> list[LeaderboardEntry]:
        rows = self.store.aggregation_rows(limit=self.config.aggregation_limit)
        return build_leaderboard(rows, filter_game=filter_game, limit=self.config.leaderboard_size)

    # -- presence --

    def connect(self, player: Player) -> Connection:
        conn = Connection(
            conn_id=uuid.uuid4().hex,
            player=player,
            created_at=time.time(),
            outbox=asyncio.Queue(maxsize=self.config.send_queue_size),
        )
        prev = self._live.get(player.id)
        if prev is not None:
            # Same participant reconnecting; the old socket goes away without a leave.
            logger.info("player %s reconnected, replacing %s", player.id, prev.conn_id)
            prev.close()

        self._conns[conn.conn_id] = conn
        self._live[player.id] = conn
        logger.info("connect %s (%s) as %s", player.id, player.name, conn.conn_id)

        self._broadcast(protocol.dumps("join", player=player.to_dict()), exclude=conn)
        self._send_snapshot(conn)
        return conn

    def _send_snapshot(self, conn: Connection) -> None:
        conn.send(protocol.dumps("players", players=[p.to_dict() for p in self.players()]))
        try:
            scores = self.recent_scores()
            entries = self.query_leaderboard()
        except StorageError:
            logger.exception("snapshot read failed for %s", conn.conn_id)
            scores, entries = [], []
        if scores:
            conn.send(protocol.dumps("scores", scores=[s.to_dict() for s in scores]))
        conn.send(protocol.dumps("leaderboard", entries=[e.to_dict() for e in entries]))

    def disconnect(self, conn: Connection) -> None:
        # Idempotent.
        if self._conns.pop(conn.conn_id, None) is None:
            return
        conn.close()
        if self._live.get(conn.player.id) is not conn:
            return
        del self._live[conn.player.id]
        logger.info("disconnect %s (%s)", conn.player.id, conn.conn_id)
        self._broadcast(protocol.dumps("leave", playerId=conn.player.id))

    def announce_playing(self, conn: Connection, game: str) -> bool:
        if conn.conn_id not in self._conns:
            return False
        self._broadcast(protocol.dumps("playing", player=conn.player.to_dict(), game=game))
        return True

    # -- scoring --

    def submit(self, score: Score) -> str | None:
        """Validate, persist and broadcast one submission.

        Returns the rejection reason, or None when accepted. Raises
        StorageError when the score could not be written; nothing is
        broadcast in that case.
        """
        reason, stamp = self.validator.validate(score)
        if reason:
            logger.debug("rejected %s/%s=%s: %s", score.playerId, score.game, score.score, reason)
            return reason

        try:
            self.store.append(score)
        except StorageError:
            self.validator.release(score, stamp)
            logger.exception("could not store score from %s", score.playerId)
            raise

        self._broadcast(protocol.dumps("score", score=score.to_dict()))
        try:
            entries = self.query_leaderboard()
        except StorageError:
            logger.exception("leaderboard rebuild failed")
            return None
        self._broadcast(protocol.dumps("leaderboard", entries=[e.to_dict() for e in entries]))
        return None

    # -- fan-out --

    def _broadcast(self, text: str, exclude: Connection | None = None) -> None:
        for conn in list(self._conns.values()):
            if conn is exclude:
                continue
            if not conn.send(text) and not conn.closed:
                logger.warning("dropping slow connection %s (%s)", conn.conn_id, conn.player.id)
                conn.close()

    def close_all(self) -> None:
        for conn in list(self._conns.values()):
            conn.close()
