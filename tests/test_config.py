from scorehub.game.config import ClientConfig, HubConfig, parse_instant_ms


def test_from_env(monkeypatch):
    monkeypatch.setenv("SCOREHUB_PORT", "4000")
    monkeypatch.setenv("SCOREHUB_SQLITE", "off")
    monkeypatch.setenv("SCOREHUB_CORS_ORIGINS", "http://a.test, http://b.test")
    monkeypatch.setenv("SCOREHUB_EVENT_END", "2026-01-01T12:00:00Z")
    cfg = HubConfig.from_env()
    assert cfg.port == 4000
    assert cfg.sqlite_enabled is False
    assert cfg.cors_allowed_origins == ["http://a.test", "http://b.test"]
    assert cfg.event_end == 1_767_268_800_000
    assert cfg.health_text == "r26 ws server - ws://localhost:4000"


def test_defaults_never_close_event(monkeypatch):
    monkeypatch.delenv("SCOREHUB_EVENT_END", raising=False)
    assert HubConfig.from_env().event_end is None
    assert parse_instant_ms("1700000000000") == 1_700_000_000_000


def test_client_urls(monkeypatch):
    monkeypatch.setenv("SCOREHUB_SERVER", "scores.example:443")
    monkeypatch.setenv("SCOREHUB_SECURE", "1")
    cfg = ClientConfig.from_env()
    assert cfg.ws_base == "wss://scores.example:443/ws"
    assert cfg.http_base == "https://scores.example:443"
