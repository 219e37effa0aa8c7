"""Request/response helpers for screens that don't hold a live link."""

from __future__ import annotations

import logging

import aiohttp

from scorehub.game import protocol
from scorehub.game.config import ClientConfig
from scorehub.game.protocol import LeaderboardEntry, Score

logger = logging.getLogger(__name__)

_ERRORS = (aiohttp.ClientError, OSError, ValueError, protocol.ProtocolError)


async def fetch_leaderboard(config: ClientConfig, game: str | None = None) -> list[LeaderboardEntry]:
    params = {"game": game} if game else None
    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(f"{config.http_base}/leaderboard", params=params) as resp:
                if resp.status != 200:
                    return []
                return [LeaderboardEntry.parse(e) for e in await resp.json()]
    except _ERRORS as e:
        logger.info("leaderboard fetch failed: %s", e)
        return []


async def fetch_scores(config: ClientConfig) -> list[Score]:
    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(f"{config.http_base}/scores") as resp:
                if resp.status != 200:
                    return []
                return [Score.parse(s) for s in await resp.json()]
    except _ERRORS as e:
        logger.info("scores fetch failed: %s", e)
        return []


async def post_score(config: ClientConfig, score: Score) -> bool:
    try:
        async with aiohttp.ClientSession() as session:
            async with session.post(f"{config.http_base}/scores", json=score.to_dict()) as resp:
                return resp.status == 200
    except (aiohttp.ClientError, OSError) as e:
        logger.info("score post failed: %s", e)
        return False
