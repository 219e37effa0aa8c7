import asyncio

import pytest

from scorehub.game.config import HubConfig
from scorehub.game.hub import ScoreHub
from scorehub.storage.memory import MemoryStore

from fakes import FakeClock


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def config():
    return HubConfig(sqlite_enabled=False, send_queue_size=16)


@pytest.fixture()
def store():
    return MemoryStore()


@pytest.fixture()
def hub(config, store, clock):
    return ScoreHub(config, store, clock=clock)


@pytest.fixture()
def eventually():
    async def wait(cond, timeout: float = 2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not cond():
            if loop.time() > deadline:
                raise AssertionError("condition not met in time")
            await asyncio.sleep(0.005)

    return wait
