"""Message schemas + validation.

Wire format (one JSON object per WebSocket text frame):
  {"type": "score", "score": {...}}
"""

from __future__ import annotations

import json
import math
import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any


class ProtocolError(Exception):
    pass


GAMES = ("reaction", "typing", "pattern")
MAX_NAME_LEN = 16
DEFAULT_NAME = "anon"


def now_ms() -> int:
    return int(time.time() * 1000)


def dumps(msg_type: str, **payload: Any) -> str:
    return json.dumps({"type": msg_type, **payload}, separators=(",", ":"))


def loads(text: str) -> tuple[str, dict[str, Any]]:
    try:
        obj = json.loads(text)
    except ValueError as e:
        raise ProtocolError(f"invalid json: {e}")

    if not isinstance(obj, dict):
        raise ProtocolError("message must be object")
    t = obj.get("type")
    if not isinstance(t, str):
        raise ProtocolError("missing type")
    return t, obj


def _str(v: Any) -> str | None:
    if isinstance(v, str) and v.strip():
        return v.strip()
    return None


INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def _int64(v: Any) -> bool:
    """A JSON number that fits a signed 64-bit column."""
    # bool is an int subclass; json also admits NaN/Infinity and arbitrarily long ints.
    if isinstance(v, bool):
        return False
    if isinstance(v, float) and not math.isfinite(v):
        return False
    if not isinstance(v, (int, float)):
        return False
    return INT64_MIN <= v <= INT64_MAX


def _game(v: Any) -> str:
    if v not in GAMES:
        raise ProtocolError(f"game must be one of {', '.join(GAMES)}")
    return v


def clean_name(v: Any) -> str:
    return (_str(v) or DEFAULT_NAME)[:MAX_NAME_LEN]


@dataclass(frozen=True)
class Player:
    id: str
    name: str

    @classmethod
    def parse(cls, data: Any) -> "Player":
        if not isinstance(data, dict):
            raise ProtocolError("player must be object")
        pid = _str(data.get("id"))
        if not pid:
            raise ProtocolError("player.id required")
        return cls(id=pid, name=clean_name(data.get("name")))

    @classmethod
    def from_handshake(cls, pid: str | None, name: str | None) -> "Player":
        return cls(id=_str(pid) or str(uuid.uuid4()), name=clean_name(name))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Score:
    playerId: str
    playerName: str
    game: str
    score: int
    timestamp: int

    @classmethod
    def parse(cls, data: Any) -> "Score":
        if not isinstance(data, dict):
            raise ProtocolError("score must be object")
        pid = _str(data.get("playerId"))
        if not pid:
            raise ProtocolError("score.playerId required")
        raw = data.get("score")
        if not _int64(raw) or raw != int(raw):
            raise ProtocolError("score.score must be an integer")
        ts = data.get("timestamp")
        if ts is None:
            ts = now_ms()
        elif not _int64(ts):
            raise ProtocolError("score.timestamp must be epoch ms within int64")
        return cls(
            playerId=pid,
            playerName=clean_name(data.get("playerName")),
            game=_game(data.get("game")),
            score=int(raw),
            timestamp=int(ts),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class GameBest:
    game: str
    score: int


@dataclass
class LeaderboardEntry:
    playerId: str
    playerName: str
    totalScore: float = 0.0
    games: list[GameBest] = field(default_factory=list)

    @classmethod
    def parse(cls, data: Any) -> "LeaderboardEntry":
        if not isinstance(data, dict):
            raise ProtocolError("entry must be object")
        games = []
        for g in data.get("games") or []:
            if isinstance(g, dict) and g.get("game") in GAMES and _int64(g.get("score")):
                games.append(GameBest(game=g["game"], score=int(g["score"])))
        total = data.get("totalScore")
        return cls(
            playerId=str(data.get("playerId", "")),
            playerName=str(data.get("playerName", "")),
            totalScore=float(total) if _int64(total) else 0.0,
            games=games,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# Parsed server→client messages, as surfaced by the client event stream.


@dataclass(frozen=True)
class Joined:
    player: Player


@dataclass(frozen=True)
class Left:
    playerId: str


@dataclass(frozen=True)
class ScorePosted:
    score: Score


@dataclass(frozen=True)
class Playing:
    player: Player
    game: str

    @classmethod
    def parse(cls, data: dict[str, Any]) -> "Playing":
        return cls(player=Player.parse(data.get("player")), game=_game(data.get("game")))


@dataclass(frozen=True)
class PlayerList:
    players: list[Player]


@dataclass(frozen=True)
class RecentScores:
    scores: list[Score]


@dataclass(frozen=True)
class Leaderboard:
    entries: list[LeaderboardEntry]


@dataclass(frozen=True)
class ServerError:
    message: str


def _list(data: dict[str, Any], key: str) -> list[Any]:
    v = data.get(key)
    if not isinstance(v, list):
        raise ProtocolError(f"{key} must be a list")
    return v


def parse_server_message(text: str):
    """Decode a server→client frame into one of the message dataclasses above."""
    t, data = loads(text)
    if t == "join":
        return Joined(player=Player.parse(data.get("player")))
    if t == "leave":
        pid = _str(data.get("playerId"))
        if not pid:
            raise ProtocolError("leave.playerId required")
        return Left(playerId=pid)
    if t == "score":
        return ScorePosted(score=Score.parse(data.get("score")))
    if t == "playing":
        return Playing.parse(data)
    if t == "players":
        return PlayerList(players=[Player.parse(p) for p in _list(data, "players")])
    if t == "scores":
        return RecentScores(scores=[Score.parse(s) for s in _list(data, "scores")])
    if t == "leaderboard":
        return Leaderboard(entries=[LeaderboardEntry.parse(e) for e in _list(data, "entries")])
    if t == "error":
        return ServerError(message=str(data.get("message", "")))
    raise ProtocolError(f"unknown type: {t}")


VALID_C2S = {"score", "playing"}
