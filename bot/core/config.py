from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv


class ConfigError(RuntimeError):
    pass


DEFAULT_EXTENSIONS = [
    "cogs.events",
    "cogs.panels",
    "cogs.tickets",
    "cogs.community",
]


@dataclass(slots=True)
class DiscordConfig:
    token: str
    prefix: str = "!"
    application_id: int | None = None
    guild_id: int | None = None
    sync_commands_on_start: bool = True
    status_text: str = "Support tickets"
    activity_type: str = "watching"


@dataclass(slots=True)
class StorageConfig:
    panels_file: str = "data/panels.json"


@dataclass(slots=True)
class TicketConfig:
    close_delay_seconds: float = 3.0
    channel_name_max_length: int = 90
    open_cooldown_seconds: int = 0


@dataclass(slots=True)
class TranscriptConfig:
    page_size: int = 100
    max_messages: int = 2000
    timeout_seconds: float = 30.0


@dataclass(slots=True)
class RedisConfig:
    enabled: bool = False
    url: str = "redis://localhost:6379/0"


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    directory: str = "logs"
    file_name: str = "bot.log"
    max_bytes: int = 5_000_000
    backup_count: int = 5
    json_console: bool = False


@dataclass(slots=True)
class FastApiConfig:
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 3000
    api_key: str = ""


@dataclass(slots=True)
class AppConfig:
    discord: DiscordConfig
    storage: StorageConfig = field(default_factory=StorageConfig)
    tickets: TicketConfig = field(default_factory=TicketConfig)
    transcripts: TranscriptConfig = field(default_factory=TranscriptConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    fastapi: FastApiConfig = field(default_factory=FastApiConfig)
    enabled_extensions: list[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))


def _get_env_str(key: str, fallback: str | None = None) -> str | None:
    value = os.getenv(key)
    if value is None:
        return fallback
    cleaned = value.strip()
    return cleaned if cleaned else fallback


def _first_env(*keys: str, fallback: Any = None) -> Any:
    for key in keys:
        value = _get_env_str(key)
        if value is not None:
            return value
    return fallback


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _as_int(value: Any, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _deep_get(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    node: Any = data
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")
    return raw


def load_config(config_path: Path) -> AppConfig:
    env_path = config_path.parent.parent / ".env"
    load_dotenv(env_path)
    raw = _load_yaml(config_path)

    discord_token = _first_env("DISCORD_TOKEN", "TOKEN", fallback=_deep_get(raw, "discord", "token"))
    if not discord_token or "${" in str(discord_token):
        raise ConfigError("DISCORD_TOKEN is required")

    discord_cfg = DiscordConfig(
        token=str(discord_token),
        prefix=str(_get_env_str("BOT_PREFIX", _deep_get(raw, "discord", "prefix", default="!"))),
        application_id=_as_optional_int(
            _first_env(
                "DISCORD_APPLICATION_ID",
                "CLIENT_ID",
                fallback=_deep_get(raw, "discord", "application_id"),
            )
        ),
        guild_id=_as_optional_int(
            _first_env("DISCORD_GUILD_ID", "GUILD_ID", fallback=_deep_get(raw, "discord", "guild_id"))
        ),
        sync_commands_on_start=_as_bool(
            _get_env_str("SYNC_COMMANDS"),
            _as_bool(_deep_get(raw, "discord", "sync_commands_on_start"), True),
        ),
        status_text=str(_deep_get(raw, "discord", "status_text", default="Support tickets")),
        activity_type=str(_deep_get(raw, "discord", "activity_type", default="watching")),
    )

    storage_cfg = StorageConfig(
        panels_file=str(
            _get_env_str("PANELS_FILE", _deep_get(raw, "storage", "panels_file", default="data/panels.json"))
        ),
    )

    ticket_cfg = TicketConfig(
        close_delay_seconds=max(0.0, _as_float(_deep_get(raw, "tickets", "close_delay_seconds"), 3.0)),
        channel_name_max_length=min(
            100, max(1, _as_int(_deep_get(raw, "tickets", "channel_name_max_length"), 90))
        ),
        open_cooldown_seconds=max(0, _as_int(_deep_get(raw, "tickets", "open_cooldown_seconds"), 0)),
    )

    transcript_cfg = TranscriptConfig(
        page_size=min(100, max(1, _as_int(_deep_get(raw, "transcripts", "page_size"), 100))),
        max_messages=max(1, _as_int(_deep_get(raw, "transcripts", "max_messages"), 2000)),
        timeout_seconds=max(0.0, _as_float(_deep_get(raw, "transcripts", "timeout_seconds"), 30.0)),
    )

    redis_cfg = RedisConfig(
        enabled=_as_bool(_get_env_str("REDIS_ENABLED"), _as_bool(_deep_get(raw, "redis", "enabled"), False)),
        url=str(_get_env_str("REDIS_URL", _deep_get(raw, "redis", "url", default="redis://localhost:6379/0"))),
    )

    logging_cfg = LoggingConfig(
        level=str(_get_env_str("LOG_LEVEL", _deep_get(raw, "logging", "level", default="INFO"))),
        directory=str(_deep_get(raw, "logging", "directory", default="logs")),
        file_name=str(_deep_get(raw, "logging", "file_name", default="bot.log")),
        max_bytes=_as_int(_deep_get(raw, "logging", "max_bytes"), 5_000_000),
        backup_count=_as_int(_deep_get(raw, "logging", "backup_count"), 5),
        json_console=_as_bool(_deep_get(raw, "logging", "json_console"), False),
    )

    fastapi_cfg = FastApiConfig(
        enabled=_as_bool(_deep_get(raw, "fastapi", "enabled"), True),
        host=str(_deep_get(raw, "fastapi", "host", default="0.0.0.0")),
        port=_as_int(_get_env_str("PORT", None), _as_int(_deep_get(raw, "fastapi", "port"), 3000)),
        api_key=str(_get_env_str("API_KEY", _deep_get(raw, "fastapi", "api_key", default=""))),
    )

    enabled_extensions = [
        str(ext) for ext in list(_deep_get(raw, "enabled_extensions", default=DEFAULT_EXTENSIONS))
    ]

    return AppConfig(
        discord=discord_cfg,
        storage=storage_cfg,
        tickets=ticket_cfg,
        transcripts=transcript_cfg,
        redis=redis_cfg,
        logging=logging_cfg,
        fastapi=fastapi_cfg,
        enabled_extensions=enabled_extensions,
    )
