"""HTTP + WebSocket entrypoint.

The realtime link is served at `/ws` (and at `/` for upgrade requests); the
request/response surface is `/leaderboard`, `/scores` and `/health`.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from aiohttp import web

from scorehub.game import protocol
from scorehub.game.config import HubConfig
from scorehub.game.hub import ScoreHub
from scorehub.net.ws import WsHub
from scorehub.storage.memory import MemoryStore
from scorehub.storage.sqlite import SqliteStore, StorageError

logger = logging.getLogger(__name__)


class ScoreService:
    def __init__(self, config: HubConfig, store=None, clock: Callable[[], int] | None = None):
        self.config = config

        if store is None:
            store = SqliteStore(self.config.sqlite_path) if self.config.sqlite_enabled else MemoryStore()
        self.store = store

        self.hub = ScoreHub(config, self.store, clock=clock or protocol.now_ms)
        self.ws = WsHub(self.hub)

    async def start(self) -> None:
        self.store.init()
        logger.info("score service %s started", self.config.server_version)

    async def stop(self) -> None:
        await self.ws.close_all()
        self.store.close()
        logger.info("score service stopped")


def _cors_headers(config: HubConfig, origin: str | None) -> dict[str, str]:
    if not origin:
        return {}
    if config.cors_allow_all:
        return {"Access-Control-Allow-Origin": origin, "Vary": "Origin"}
    if origin in config.cors_allowed_origins:
        return {"Access-Control-Allow-Origin": origin, "Vary": "Origin"}
    return {}


@web.middleware
async def cors_middleware(request: web.Request, handler):
    if request.method == "OPTIONS":
        origin = request.headers.get("Origin")
        headers = {
            **_cors_headers(request.app["config"], origin),
            "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type",
            "Access-Control-Max-Age": "86400",
        }
        return web.Response(status=204, headers=headers)

    resp = await handler(request)

    # aiohttp finalizes WS headers during `prepare()`; leave them alone.
    if isinstance(resp, web.WebSocketResponse):
        return resp

    origin = request.headers.get("Origin")
    for k, v in _cors_headers(request.app["config"], origin).items():
        resp.headers[k] = v
    return resp


def _fail(status: int, error: str) -> web.Response:
    return web.json_response({"ok": False, "error": error}, status=status)


def create_app(config: HubConfig, store=None, clock: Callable[[], int] | None = None) -> web.Application:
    app = web.Application(middlewares=[cors_middleware])
    svc = ScoreService(config, store=store, clock=clock)

    app["config"] = config
    app["svc"] = svc

    async def on_startup(_: web.Application):
        await svc.start()

    async def on_shutdown(_: web.Application):
        await svc.stop()

    app.on_startup.append(on_startup)
    app.on_shutdown.append(on_shutdown)

    async def health(_: web.Request):
        return web.Response(text=config.health_text)

    async def root(request: web.Request):
        if web.WebSocketResponse().can_prepare(request).ok:
            return await svc.ws.handle(request)
        return web.Response(text=config.health_text)

    async def leaderboard(request: web.Request):
        game = request.query.get("game") or None
        if game is not None and game not in protocol.GAMES:
            return web.json_response([])
        try:
            entries = svc.hub.query_leaderboard(filter_game=game)
        except StorageError:
            logger.exception("leaderboard query failed")
            return web.json_response([])
        return web.json_response([e.to_dict() for e in entries])

    async def recent_scores(_: web.Request):
        try:
            scores = svc.hub.recent_scores()
        except StorageError:
            logger.exception("recent scores query failed")
            return web.json_response([])
        return web.json_response([s.to_dict() for s in scores])

    async def post_score(request: web.Request):
        body: Any = None
        if request.can_read_body:
            try:
                body = await request.json()
            except ValueError:
                return _fail(400, "invalid json")
        try:
            score = protocol.Score.parse(body)
        except protocol.ProtocolError as e:
            return _fail(400, str(e))
        try:
            reason = svc.hub.submit(score)
        except StorageError:
            return _fail(500, "storage unavailable")
        if reason:
            return _fail(400, reason)
        return web.json_response({"ok": True})

    async def ws_handler(request: web.Request):
        return await svc.ws.handle(request)

    async def preflight(_: web.Request):
        # Answered by cors_middleware; the route only has to exist.
        return web.Response(status=204)

    app.router.add_get("/", root)
    app.router.add_get("/health", health)
    app.router.add_get("/leaderboard", leaderboard)
    app.router.add_get("/scores", recent_scores)
    app.router.add_post("/scores", post_score)
    app.router.add_get("/ws", ws_handler)
    app.router.add_route("OPTIONS", "/{tail:.*}", preflight)

    return app


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = HubConfig.from_env()
    app = create_app(config)
    logger.info("listening on %s:%s", config.host, config.port)
    web.run_app(app, host=config.host, port=config.port, print=None)


if __name__ == "__main__":
    main()
