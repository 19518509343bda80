from __future__ import annotations

from pathlib import Path

import pytest

from core.config import ConfigError, load_config

ENV_KEYS = (
    "DISCORD_TOKEN",
    "TOKEN",
    "DISCORD_GUILD_ID",
    "GUILD_ID",
    "PANELS_FILE",
    "PORT",
    "API_KEY",
    "REDIS_ENABLED",
    "BOT_PREFIX",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def _write_config(tmp_path: Path, body: str) -> Path:
    config_dir = tmp_path / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    config_path = config_dir / "config.yaml"
    config_path.write_text(body.strip(), encoding="utf-8")
    return config_path


def test_load_config_reads_yaml(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        """
discord:
  token: test-token
  prefix: "?"
  guild_id: 123456789012345678
storage:
  panels_file: data/custom.json
tickets:
  close_delay_seconds: 5
transcripts:
  page_size: 500
""",
    )

    cfg = load_config(config_path)

    assert cfg.discord.token == "test-token"
    assert cfg.discord.prefix == "?"
    assert cfg.discord.guild_id == 123456789012345678
    assert cfg.storage.panels_file == "data/custom.json"
    assert cfg.tickets.close_delay_seconds == 5.0
    assert cfg.transcripts.page_size == 100
    assert cfg.fastapi.port == 3000
    assert "cogs.panels" in cfg.enabled_extensions


def test_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = _write_config(
        tmp_path,
        """
discord:
  token: yaml-token
""",
    )
    monkeypatch.setenv("TOKEN", "fallback-token")
    monkeypatch.setenv("GUILD_ID", "42")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("API_KEY", "secret")
    monkeypatch.setenv("REDIS_ENABLED", "yes")

    cfg = load_config(config_path)

    assert cfg.discord.token == "fallback-token"
    assert cfg.discord.guild_id == 42
    assert cfg.fastapi.port == 8080
    assert cfg.fastapi.api_key == "secret"
    assert cfg.redis.enabled is True

    monkeypatch.setenv("DISCORD_TOKEN", "env-token")
    assert load_config(config_path).discord.token == "env-token"


def test_placeholder_token_is_rejected(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        """
discord:
  token: ${DISCORD_TOKEN}
""",
    )

    with pytest.raises(ConfigError):
        load_config(config_path)


def test_missing_or_invalid_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "config" / "absent.yaml")

    with pytest.raises(ConfigError):
        load_config(_write_config(tmp_path, "- just\n- a list"))
