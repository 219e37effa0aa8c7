import json

import pytest

from scorehub.game import protocol
from scorehub.game.protocol import Player, ProtocolError, Score


def test_dumps_is_flat():
    assert json.loads(protocol.dumps("leave", playerId="x")) == {"type": "leave", "playerId": "x"}


@pytest.mark.parametrize("text", ["not json", "[1, 2]", '{"score": {}}'])
def test_loads_rejects_malformed(text):
    with pytest.raises(ProtocolError):
        protocol.loads(text)


def test_score_parse_defaults_and_truncation():
    s = Score.parse({"playerId": "p1", "playerName": "  A very long player name  ", "game": "typing", "score": 72})
    assert s.playerName == "A very long play"
    assert s.score == 72
    assert s.timestamp > 0


@pytest.mark.parametrize(
    "data",
    [
        None,
        {"game": "typing", "score": 1},
        {"playerId": "p1", "game": "chess", "score": 1},
        {"playerId": "p1", "game": "typing", "score": "fast"},
        {"playerId": "p1", "game": "typing", "score": 1.5},
        {"playerId": "p1", "game": "typing", "score": True},
        {"playerId": "p1", "game": "typing", "score": float("nan")},
        {"playerId": "p1", "game": "typing", "score": 10**400},
        {"playerId": "p1", "game": "typing", "score": 2**63},
        {"playerId": "p1", "game": "typing", "score": 60, "timestamp": 1e20},
        {"playerId": "p1", "game": "typing", "score": 60, "timestamp": float("inf")},
        {"playerId": "p1", "game": "typing", "score": 60, "timestamp": "now"},
    ],
)
def test_score_parse_rejects(data):
    with pytest.raises(ProtocolError):
        Score.parse(data)


def test_handshake_defaults():
    p = Player.from_handshake(None, None)
    assert p.name == "anon"
    assert len(p.id) == 36
    assert Player.from_handshake("abc", "Bob") == Player("abc", "Bob")


def test_parse_server_messages():
    msg = protocol.parse_server_message(
        protocol.dumps(
            "leaderboard",
            entries=[{"playerId": "p", "playerName": "P", "totalScore": 10, "games": [{"game": "typing", "score": 5}]}],
        )
    )
    assert isinstance(msg, protocol.Leaderboard)
    assert msg.entries[0].games == [protocol.GameBest("typing", 5)]

    assert protocol.parse_server_message('{"type":"leave","playerId":"p"}') == protocol.Left("p")
    with pytest.raises(ProtocolError):
        protocol.parse_server_message('{"type":"players","players":"nope"}')
    with pytest.raises(ProtocolError):
        protocol.parse_server_message('{"type":"mystery"}')


def test_score_parse_accepts_int64_edges():
    s = Score.parse({"playerId": "p1", "game": "typing", "score": 2**63 - 1, "timestamp": -(2**63)})
    assert s.score == 2**63 - 1
    assert s.timestamp == -(2**63)
