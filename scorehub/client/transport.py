"""aiohttp-backed realtime link used by the connection manager."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator

import aiohttp


class WsTransport:
    """One open WebSocket. Iterating yields text frames until the link closes."""

    def __init__(self, session: aiohttp.ClientSession, ws: aiohttp.ClientWebSocketResponse):
        self._session = session
        self._ws = ws

    async def send(self, text: str) -> None:
        await self._ws.send_str(text)

    def __aiter__(self) -> AsyncIterator[str]:
        return self._frames()

    async def _frames(self) -> AsyncIterator[str]:
        async for msg in self._ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                yield msg.data
            elif msg.type == aiohttp.WSMsgType.ERROR:
                break

    async def close(self) -> None:
        try:
            await self._ws.close()
        finally:
            await self._session.close()


async def open_ws(url: str, heartbeat: float = 10.0, timeout: float = 10.0) -> WsTransport:
    session = aiohttp.ClientSession()
    try:
        ws = await asyncio.wait_for(session.ws_connect(url, heartbeat=heartbeat), timeout)
    except BaseException:
        await session.close()
        raise
    return WsTransport(session, ws)
