from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from computress.errors import ConfigurationError

APP_NAME = "computress"
APP_VERSION = "0.4.0"
DEFAULT_CONFIG_PATH = Path("config.json")
DEFAULT_ENV_PATH = Path(".env")


@dataclass(frozen=True)
class Settings:
    discord_token: str
    guild_id: int
    mod_role_id: int
    mod_channel_id: int
    log_channel_id: int
    name_approvals_channel_id: int
    monitor_address: str
    ofapi_endpoint: str

    @property
    def log_channel(self) -> int | None:
        return _optional_channel(self.log_channel_id)

    @property
    def name_approvals_channel(self) -> int | None:
        return _optional_channel(self.name_approvals_channel_id)

    @staticmethod
    def load(config_path: Path = DEFAULT_CONFIG_PATH, env_path: Path = DEFAULT_ENV_PATH) -> "Settings":
        load_env_file(env_path)
        values = _read_config_file(config_path)
        token = os.environ.get("DISCORD_TOKEN", "").strip()
        if not token:
            raise ConfigurationError("DISCORD_TOKEN environment variable missing")
        settings = Settings(
            discord_token=token,
            guild_id=_int_value(values, "guild_id"),
            mod_role_id=_int_value(values, "mod_role_id"),
            mod_channel_id=_int_value(values, "mod_channel_id"),
            log_channel_id=_int_value(values, "log_channel_id"),
            name_approvals_channel_id=_int_value(values, "name_approvals_channel_id"),
            monitor_address=str(values.get("monitor_address", "")).strip(),
            ofapi_endpoint=str(values.get("ofapi_endpoint", "")).strip(),
        )
        problem = settings.validate()
        if problem:
            raise ConfigurationError(f"Invalid config: {problem}")
        return settings

    def validate(self) -> str | None:
        if self.guild_id == 0:
            return "guild_id must be set"
        if self.mod_role_id == 0:
            return "mod_role_id must be set"
        if self.mod_channel_id == 0:
            return "mod_channel_id must be set"
        if not self.monitor_address:
            return "monitor_address must be set"
        if not self.ofapi_endpoint:
            return "ofapi_endpoint must be set"
        return None


def load_env_file(path: Path) -> bool:
    """
    Export KEY=VALUE lines from `path` into the process environment.

    Variables that are already set win over the file. Returns False when the file is absent.
    """

    if not path.exists():
        return False
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        os.environ.setdefault(key.strip(), value)
    return True


def _read_config_file(path: Path) -> dict[str, object]:
    if not path.exists():
        raise ConfigurationError(f"Config file missing: {path}")
    try:
        values = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Error while parsing {path}: {exc}") from exc
    if not isinstance(values, dict):
        raise ConfigurationError(f"Error while parsing {path}: expected a JSON object")
    return values


def _int_value(values: dict[str, object], key: str) -> int:
    raw = values.get(key, 0)
    if isinstance(raw, bool):
        raise ConfigurationError(f"Invalid config: {key} must be an integer")
    try:
        value = int(raw or 0)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid config: {key} must be an integer") from exc
    if value < 0:
        raise ConfigurationError(f"Invalid config: {key} must not be negative")
    return value


def _optional_channel(channel_id: int) -> int | None:
    return channel_id if channel_id != 0 else None
