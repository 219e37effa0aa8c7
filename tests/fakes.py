import asyncio
import json

from scorehub.game.protocol import Score
from scorehub.storage.memory import MemoryStore
from scorehub.storage.sqlite import StorageError

T0 = 1_767_225_600_000  # 2026-01-01T00:00:00Z


class FakeClock:
    def __init__(self, start: int = T0):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def score(player="p1", game="reaction", value=180, name=None, ts=T0) -> Score:
    return Score(playerId=player, playerName=name or player, game=game, score=value, timestamp=ts)


def drain(conn) -> list[dict]:
    """Pop everything queued for a hub connection, decoded."""
    out = []
    while not conn.outbox.empty():
        text = conn.outbox.get_nowait()
        if text is not None:
            out.append(json.loads(text))
    return out


class FailingStore(MemoryStore):
    def append(self, score):
        raise StorageError("disk full")


class FakeTransport:
    def __init__(self):
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent: list[dict] = []
        self.closed = False

    def feed(self, msg) -> None:
        self.incoming.put_nowait(msg if isinstance(msg, str) else json.dumps(msg))

    def drop(self) -> None:
        """Server-side close."""
        self.incoming.put_nowait(None)

    async def send(self, text: str) -> None:
        if self.closed:
            raise ConnectionResetError("closed")
        self.sent.append(json.loads(text))

    def __aiter__(self):
        return self._frames()

    async def _frames(self):
        while True:
            item = await self.incoming.get()
            if item is None:
                return
            yield item

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.incoming.put_nowait(None)


class FakeOpener:
    """Hands out scripted results: a transport, or an exception to raise."""

    def __init__(self, *results):
        self.results = list(results)
        self.urls: list[str] = []
        self.gate: asyncio.Event | None = None

    @property
    def calls(self) -> int:
        return len(self.urls)

    async def __call__(self, url: str):
        self.urls.append(url)
        if self.gate is not None:
            await self.gate.wait()
        if not self.results:
            raise ConnectionRefusedError("no server")
        result = self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result
