"""Client-side realtime link: connect, watch, reconnect.

`ConnectionManager` is a small state machine. Every state change goes through
`_transition`, which looks the (state, event) pair up in `TRANSITIONS` and
refuses anything not listed there. The transport is injected, so the machine
runs against a fake in tests.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

import aiohttp
from yarl import URL

from scorehub.client.transport import open_ws
from scorehub.game import protocol
from scorehub.game.config import ClientConfig
from scorehub.game.protocol import LeaderboardEntry, Player, Score

logger = logging.getLogger(__name__)


class State(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


TRANSITIONS: dict[tuple[State, str], State] = {
    (State.DISCONNECTED, "connect"): State.CONNECTING,
    (State.CONNECTING, "opened"): State.CONNECTED,
    (State.CONNECTING, "failed"): State.DISCONNECTED,
    (State.CONNECTED, "lost"): State.DISCONNECTED,
    (State.CONNECTING, "close"): State.DISCONNECTED,
    (State.CONNECTED, "close"): State.DISCONNECTED,
    (State.DISCONNECTED, "close"): State.DISCONNECTED,
}

# Errors that mean "the link is down", as opposed to bugs.
TRANSPORT_ERRORS = (aiohttp.ClientError, OSError, asyncio.TimeoutError)


@dataclass(frozen=True)
class StatusChanged:
    old: State
    new: State


@dataclass
class ClientView:
    """Last known presence/score state; kept (stale) while offline."""

    players: list[Player] = field(default_factory=list)
    recent_scores: list[Score] = field(default_factory=list)
    leaderboard: list[LeaderboardEntry] = field(default_factory=list)

    def apply(self, msg: Any, recent_limit: int = 50) -> None:
        if isinstance(msg, protocol.PlayerList):
            self.players = list(msg.players)
        elif isinstance(msg, protocol.Joined):
            if not any(p.id == msg.player.id for p in self.players):
                self.players = [*self.players, msg.player]
        elif isinstance(msg, protocol.Left):
            self.players = [p for p in self.players if p.id != msg.playerId]
        elif isinstance(msg, protocol.RecentScores):
            self.recent_scores = list(msg.scores[:recent_limit])
        elif isinstance(msg, protocol.ScorePosted):
            # Most recent first, same as the server's snapshot.
            self.recent_scores = [msg.score, *self.recent_scores][:recent_limit]
        elif isinstance(msg, protocol.Leaderboard):
            self.leaderboard = list(msg.entries)


Opener = Callable[[str], Awaitable[Any]]


class ConnectionManager:
    def __init__(self, player: Player, config: ClientConfig | None = None, opener: Opener | None = None):
        self.player = player
        self.config = config or ClientConfig()
        self._open = opener or open_ws

        self.state = State.DISCONNECTED
        self.attempts = 0
        self.view = ClientView()

        # Bumped by every connect() and disconnect(); an open attempt whose
        # stamp no longer matches has been superseded and its outcome is dropped.
        self._generation = 0
        self._transport = None
        self._reader: asyncio.Task | None = None
        self._reconnect: asyncio.Task | None = None
        self._subscribers: list[asyncio.Queue] = []

    @property
    def connected(self) -> bool:
        return self.state is State.CONNECTED

    @property
    def url(self) -> URL:
        return URL(self.config.ws_base).with_query(id=self.player.id, name=self.player.name)

    # -- event stream --

    def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue()
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        if q in self._subscribers:
            self._subscribers.remove(q)

    def _emit(self, event: Any) -> None:
        for q in self._subscribers:
            q.put_nowait(event)

    # -- state machine --

    def _transition(self, event: str) -> bool:
        new = TRANSITIONS.get((self.state, event))
        if new is None:
            logger.debug("ignoring %r while %s", event, self.state.value)
            return False
        old, self.state = self.state, new
        if old is not new:
            logger.debug("%s -> %s (%s)", old.value, new.value, event)
            self._emit(StatusChanged(old, new))
        return True

    async def connect(self) -> None:
        if not self._transition("connect"):
            return
        self._cancel_reconnect()
        self._generation += 1
        gen = self._generation

        try:
            transport = await self._open(str(self.url))
        except TRANSPORT_ERRORS as e:
            if gen != self._generation:
                return
            logger.info("connect to %s failed: %s", self.config.server, e)
            if self._transition("failed"):
                self._schedule_reconnect()
            return
        except Exception:
            if gen == self._generation:
                self._transition("failed")
            raise

        if gen != self._generation or not self._transition("opened"):
            # disconnect() (and maybe a newer connect()) ran while the link was opening.
            await transport.close()
            return
        self._transport = transport
        self.attempts = 0
        self._reader = asyncio.create_task(self._read(transport))

    async def _read(self, transport) -> None:
        try:
            async for text in transport:
                self._on_text(text)
        except TRANSPORT_ERRORS as e:
            logger.info("link error: %s", e)

        if transport is not self._transport:
            return
        self._transport = None
        self._reader = None
        if self._transition("lost"):
            self._schedule_reconnect()
        await transport.close()

    def _on_text(self, text: str) -> None:
        try:
            msg = protocol.parse_server_message(text)
        except protocol.ProtocolError as e:
            logger.debug("discarding malformed message: %s", e)
            return
        self.view.apply(msg, self.config.recent_limit)
        self._emit(msg)

    def _schedule_reconnect(self) -> None:
        if self.attempts >= self.config.max_reconnect_attempts:
            logger.warning("giving up after %d reconnect attempts", self.attempts)
            return
        self.attempts += 1
        logger.info("reconnecting in %.1fs (attempt %d)", self.config.reconnect_delay, self.attempts)
        self._reconnect = asyncio.create_task(self._reconnect_later())

    async def _reconnect_later(self) -> None:
        await asyncio.sleep(self.config.reconnect_delay)
        self._reconnect = None
        await self.connect()

    def _cancel_reconnect(self) -> None:
        task, self._reconnect = self._reconnect, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def disconnect(self) -> None:
        """Close the link for good; only an explicit connect() reopens it."""
        self.attempts = self.config.max_reconnect_attempts
        self._generation += 1
        self._cancel_reconnect()
        transport, self._transport = self._transport, None
        reader, self._reader = self._reader, None
        self._transition("close")
        self.view = ClientView()

        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
        if transport is not None:
            await transport.close()

    # -- outbound --

    async def _send(self, msg_type: str, **payload: Any) -> bool:
        transport = self._transport
        if not self.connected or transport is None:
            return False
        try:
            await transport.send(protocol.dumps(msg_type, **payload))
        except TRANSPORT_ERRORS as e:
            logger.info("send failed: %s", e)
            return False
        return True

    async def submit_score(self, score: Score) -> bool:
        """Send now if connected; otherwise drop. Nothing is queued or retried."""
        return await self._send("score", score=score.to_dict())

    async def send_playing(self, game: str) -> bool:
        return await self._send("playing", player=self.player.to_dict(), game=game)
