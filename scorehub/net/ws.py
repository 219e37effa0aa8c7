"""WebSocket handlers."""

from __future__ import annotations

import asyncio
import logging

from aiohttp import WSMsgType, web

from scorehub.game import protocol
from scorehub.game.hub import Connection, ScoreHub
from scorehub.game.protocol import Player
from scorehub.storage.sqlite import StorageError

logger = logging.getLogger(__name__)


class WsHub:
    def __init__(self, hub: ScoreHub):
        self.hub = hub
        self._sockets: dict[str, web.WebSocketResponse] = {}

    def _origin_allowed(self, origin: str | None) -> bool:
        cfg = self.hub.config
        if cfg.cors_allow_all:
            return True
        if not origin:
            return False
        return origin in cfg.cors_allowed_origins

    async def handle(self, request: web.Request) -> web.StreamResponse:
        if not self._origin_allowed(request.headers.get("Origin")):
            raise web.HTTPForbidden(text="origin not allowed")

        ws = web.WebSocketResponse(heartbeat=self.hub.config.heartbeat_sec, max_msg_size=64_000)
        await ws.prepare(request)

        player = Player.from_handshake(request.query.get("id"), request.query.get("name"))
        conn = self.hub.connect(player)
        self._sockets[conn.conn_id] = ws
        writer = asyncio.create_task(self._writer(conn, ws))

        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    await self._on_text(conn, msg.data)
                elif msg.type == WSMsgType.ERROR:
                    logger.info("socket error on %s: %s", conn.conn_id, ws.exception())
                    break
        finally:
            self.hub.disconnect(conn)
            self._sockets.pop(conn.conn_id, None)
            await writer
        return ws

    async def _writer(self, conn: Connection, ws: web.WebSocketResponse) -> None:
        """Drain one connection's outbox in order; the hub never awaits this."""
        try:
            while True:
                text = await conn.outbox.get()
                if text is None or conn.closed:
                    break
                await ws.send_str(text)
        except (ConnectionResetError, RuntimeError) as e:
            # Socket went away mid-send; the read loop will notice and clean up.
            logger.info("send to %s failed: %s", conn.conn_id, e)
        finally:
            conn.close()
            if not ws.closed:
                await ws.close()

    async def _on_text(self, conn: Connection, text: str) -> None:
        try:
            msg_type, data = protocol.loads(text)
            if msg_type not in protocol.VALID_C2S:
                raise protocol.ProtocolError("invalid type")

            if msg_type == "score":
                score = protocol.Score.parse(data.get("score"))
                try:
                    # Rejections are dropped on the socket path.
                    self.hub.submit(score)
                except StorageError:
                    conn.send(protocol.dumps("error", message="storage unavailable"))
                return

            if msg_type == "playing":
                game = data.get("game")
                if game not in protocol.GAMES:
                    raise protocol.ProtocolError("playing.game invalid")
                self.hub.announce_playing(conn, game)
                return
        except protocol.ProtocolError as e:
            logger.debug("discarding message from %s: %s", conn.conn_id, e)
            conn.send(protocol.dumps("error", message=str(e)))

    async def close_all(self) -> None:
        self.hub.close_all()
        for ws in list(self._sockets.values()):
            await ws.close()
