from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from computress.config import Settings, load_env_file
from computress.errors import ConfigurationError

BASE_CONFIG = {
    "guild_id": 11,
    "mod_role_id": 22,
    "mod_channel_id": 33,
    "log_channel_id": 0,
    "name_approvals_channel_id": 44,
    "monitor_address": "127.0.0.1:9500",
    "ofapi_endpoint": "api.example.org",
}


def _write_config(tmp_path: Path, **overrides: object) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({**BASE_CONFIG, **overrides}), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def _discord_token(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DISCORD_TOKEN", "token")


def test_load_maps_zero_channels_to_unset(tmp_path: Path) -> None:
    settings = Settings.load(_write_config(tmp_path), env_path=tmp_path / ".env")

    assert settings.guild_id == 11
    assert settings.log_channel is None
    assert settings.name_approvals_channel == 44
    assert settings.discord_token == "token"


@pytest.mark.parametrize("key", ["guild_id", "mod_role_id", "mod_channel_id"])
def test_required_ids_must_be_set(tmp_path: Path, key: str) -> None:
    with pytest.raises(ConfigurationError, match=key):
        Settings.load(_write_config(tmp_path, **{key: 0}), env_path=tmp_path / ".env")


def test_missing_config_file_is_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="Config file missing"):
        Settings.load(tmp_path / "absent.json", env_path=tmp_path / ".env")


def test_unparseable_config_is_configuration_error(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        Settings.load(path, env_path=tmp_path / ".env")


def test_non_numeric_id_is_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="guild_id"):
        Settings.load(_write_config(tmp_path, guild_id="abc"), env_path=tmp_path / ".env")


def test_missing_discord_token_is_configuration_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DISCORD_TOKEN", raising=False)
    with pytest.raises(ConfigurationError, match="DISCORD_TOKEN"):
        Settings.load(_write_config(tmp_path), env_path=tmp_path / ".env")


def test_env_file_does_not_override_existing_variables(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COMPUTRESS_TEST_KEEP", "process")
    monkeypatch.delenv("COMPUTRESS_TEST_NEW", raising=False)
    env_path = tmp_path / ".env"
    env_path.write_text(
        "# comment\nCOMPUTRESS_TEST_KEEP=file\nCOMPUTRESS_TEST_NEW=\"quoted value\"\nnot a pair\n",
        encoding="utf-8",
    )

    assert load_env_file(env_path) is True
    assert os.environ["COMPUTRESS_TEST_KEEP"] == "process"
    assert os.environ["COMPUTRESS_TEST_NEW"] == "quoted value"
    monkeypatch.delenv("COMPUTRESS_TEST_NEW")


def test_missing_env_file_is_not_an_error(tmp_path: Path) -> None:
    assert load_env_file(tmp_path / ".env") is False
