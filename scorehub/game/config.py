"""Ports, limits, persistence, event window."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone


def parse_instant_ms(v: str | None) -> int | None:
    """Parse an ISO-8601 instant or a raw epoch-ms integer."""
    if v is None or not v.strip():
        return None
    v = v.strip()
    if v.isdigit():
        return int(v)
    dt = datetime.fromisoformat(v.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def _parse_bool(v: str | None, default: bool) -> bool:
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class HubConfig:
    server_version: str = "0.1.0"

    # Network
    host: str = "0.0.0.0"
    port: int = 3026
    public_host: str | None = None
    cors_allow_all: bool = True
    cors_allowed_origins: list[str] = field(default_factory=list)
    heartbeat_sec: float = 10.0
    # Per-connection outbound buffer; a receiver that falls this far behind is dropped.
    send_queue_size: int = 256

    # Scoring window
    event_end: int | None = None  # epoch ms; None means the event never closes
    rate_limit_ms: int = 5000
    recent_limit: int = 50
    aggregation_limit: int = 500
    leaderboard_size: int = 20

    # Persistence
    sqlite_enabled: bool = True
    sqlite_path: str = "data/scores.db"

    @property
    def health_text(self) -> str:
        return f"r26 ws server - ws://{self.public_host or f'localhost:{self.port}'}"

    @classmethod
    def from_env(cls) -> "HubConfig":
        cfg = cls()
        cfg.host = os.environ.get("SCOREHUB_HOST", cfg.host)
        cfg.port = int(os.environ.get("SCOREHUB_PORT", str(cfg.port)))
        cfg.public_host = os.environ.get("SCOREHUB_PUBLIC_HOST", cfg.public_host)
        cfg.cors_allow_all = _parse_bool(os.environ.get("SCOREHUB_CORS_ALLOW_ALL"), cfg.cors_allow_all)
        origins = os.environ.get("SCOREHUB_CORS_ORIGINS")
        if origins:
            cfg.cors_allowed_origins = [o.strip() for o in origins.split(",") if o.strip()]
        cfg.sqlite_enabled = _parse_bool(os.environ.get("SCOREHUB_SQLITE"), cfg.sqlite_enabled)
        cfg.sqlite_path = os.environ.get("SCOREHUB_DB", cfg.sqlite_path)
        cfg.event_end = parse_instant_ms(os.environ.get("SCOREHUB_EVENT_END"))
        if os.environ.get("SCOREHUB_RATE_LIMIT_MS"):
            cfg.rate_limit_ms = int(os.environ["SCOREHUB_RATE_LIMIT_MS"])
        if os.environ.get("SCOREHUB_SEND_QUEUE"):
            cfg.send_queue_size = int(os.environ["SCOREHUB_SEND_QUEUE"])
        return cfg


@dataclass
class ClientConfig:
    server: str = "localhost:3026"
    secure: bool = False
    reconnect_delay: float = 3.0
    max_reconnect_attempts: int = 5
    recent_limit: int = 50

    @property
    def ws_base(self) -> str:
        return f"{'wss' if self.secure else 'ws'}://{self.server}/ws"

    @property
    def http_base(self) -> str:
        return f"{'https' if self.secure else 'http'}://{self.server}"

    @classmethod
    def from_env(cls) -> "ClientConfig":
        cfg = cls()
        cfg.server = os.environ.get("SCOREHUB_SERVER", cfg.server)
        cfg.secure = _parse_bool(os.environ.get("SCOREHUB_SECURE"), cfg.secure)
        return cfg
