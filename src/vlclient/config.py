"""Client configuration: pydantic model plus TOML/environment loading."""

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from vlclient.errors import ConfigError

DEFAULT_CLOUD_URL = "https://api.moondream.ai/v1"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_RETRIES = 2

# Environment variables consulted for fields missing from the config file
ENV_VARS: dict[str, str] = {
    "api_key": "VL_API_KEY",
    "api_url": "VL_API_URL",
    "timeout": "VL_TIMEOUT",
    "retries": "VL_RETRIES",
}


class ClientConfig(BaseModel):
    """Immutable configuration for one client instance.

    Endpoint selection follows from ``api_url``: when set, requests go to that
    local server; otherwise they go to the cloud endpoint with ``api_key``.
    """

    model_config = ConfigDict(frozen=True)

    api_key: SecretStr | None = None
    api_url: str | None = None
    timeout: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    retries: int = Field(default=DEFAULT_RETRIES, ge=0)
    retry_backoff_ms: int = Field(default=0, ge=0)
    retry_max_backoff_ms: int = Field(default=2000, ge=0)

    @field_validator("api_url")
    @classmethod
    def _normalize_api_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip().rstrip("/")
        if not value:
            return None
        if not value.startswith(("http://", "https://")):
            raise ValueError("api_url must start with http:// or https://")
        return value

    @property
    def is_local(self) -> bool:
        return self.api_url is not None


def _get_default_config_paths() -> list[Path]:
    """Get ordered list of default config file locations."""
    return [
        Path("vlclient.toml"),  # Current directory
        Path("~/.config/vlclient/config.toml"),
    ]


def _read_config_file(path: Path | None) -> dict[str, Any]:
    config_path: Path | None = None
    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
    else:
        for default_path in _get_default_config_paths():
            expanded = default_path.expanduser()
            if expanded.exists():
                config_path = expanded
                break

    if config_path is None:
        return {}

    try:
        with config_path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid config file {config_path}: {e}") from e


def _resolve_env(raw: dict[str, Any]) -> dict[str, Any]:
    """Fill fields missing from the file with environment variables."""
    for key, env_var in ENV_VARS.items():
        if raw.get(key) is None:
            value = os.environ.get(env_var)
            if value:
                raw[key] = SecretStr(value) if key == "api_key" else value
    return raw


def load_config(path: Path | None = None, **overrides: Any) -> ClientConfig:
    """Load client configuration.

    Values come from the TOML file, then environment variables for fields
    the file leaves unset, then explicit non-None ``overrides`` (which win).

    Args:
        path: Explicit config file. If None, searches default locations and
            silently continues when none exists.
        **overrides: Field values that win over file and environment.

    Returns:
        Validated ClientConfig.

    Raises:
        ConfigError: If the file is missing/invalid or values fail validation.
    """
    raw = _resolve_env(_read_config_file(path))
    raw.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return ClientConfig.model_validate(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
