"""Configuration loading and validation for the threadterm client."""

from __future__ import annotations

from copy import deepcopy
import logging
import os
from pathlib import Path
import tomllib
from typing import Any, Literal
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .exceptions import ConfigValidationError

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "threadterm"
CONFIG_PATH = CONFIG_DIR / "config.toml"

VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _require_text(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("Expected a string value.")
    normalized = value.strip()
    if not normalized:
        raise ValueError("String value must not be empty.")
    return normalized


class AppConfig(BaseModel):
    """Application metadata and terminal integration options."""

    model_config = ConfigDict(populate_by_name=True)
    title: str = "threadterm"
    window_class: str = Field(default="threadterm", alias="class")
    current_user_id: str = ""

    @field_validator("title", "window_class", mode="before")
    @classmethod
    def _validate_non_empty_string(cls, value: Any) -> str:
        return _require_text(value)

    @field_validator("current_user_id", mode="before")
    @classmethod
    def _normalize_user_id(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("current_user_id must be a string.")
        return value.strip()


class ApiConfig(BaseModel):
    """Messaging backend endpoint and request policy."""

    base_url: str = "http://localhost:3000/api"
    channel_id: str = "general"
    page_size: int = Field(default=50, ge=1, le=500)
    timeout: int = Field(default=30, ge=1, le=600)
    retries: int = Field(default=2, ge=0, le=10)
    retry_backoff_seconds: float = Field(default=0.5, ge=0.0, le=60.0)

    @field_validator("base_url", "channel_id", mode="before")
    @classmethod
    def _validate_required_string(cls, value: Any) -> str:
        return _require_text(value)

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class TimelineConfig(BaseModel):
    """Thread assembly and read-tracking behaviour."""

    grouping_window_seconds: int = Field(default=420, ge=0, le=86_400)
    orphan_policy: Literal["drop", "promote"] = "drop"
    mark_read: bool = True

    @field_validator("orphan_policy", mode="before")
    @classmethod
    def _normalize_policy(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("orphan_policy must be a string.")
        return value.strip().lower()


class ComposerConfig(BaseModel):
    """Message composition settings."""

    mention_max_length: int = Field(default=20, ge=1, le=256)
    mention_anchor_offset: int = Field(default=280, ge=0, le=10_000)
    code_block_language: str = "python"
    max_upload_bytes: int = Field(default=25 * 1024 * 1024, ge=1)

    @field_validator("code_block_language", mode="before")
    @classmethod
    def _normalize_language(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("code_block_language must be a string.")
        return value.strip()


class KeybindsConfig(BaseModel):
    """Keyboard action mapping."""

    send_message: str = "ctrl+s"
    bold: str = "ctrl+b"
    italic: str = "alt+i"
    inline_code: str = "ctrl+g"
    code_block: str = "ctrl+shift+g"
    link: str = "ctrl+t"
    bullet_list: str = "ctrl+l"
    numbered_list: str = "ctrl+shift+l"
    quote: str = "ctrl+shift+q"
    attach_file: str = "ctrl+o"
    load_older: str = "f5"
    reply: str = "ctrl+r"
    react: str = "f2"
    quit: str = "ctrl+q"

    @field_validator("*", mode="before")
    @classmethod
    def _validate_keybind(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Keybind must be a string.")
        return _require_text(value)


class SecurityConfig(BaseModel):
    """Security policy for remote host access."""

    allow_remote_hosts: bool = False
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "::1"]

    @field_validator("allowed_hosts", mode="before")
    @classmethod
    def _validate_allowed_hosts(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            raise ValueError("allowed_hosts must be a list.")
        normalized_hosts = [
            item.strip().lower()
            for item in value
            if isinstance(item, str) and item.strip()
        ]
        if not normalized_hosts:
            raise ValueError("allowed_hosts must contain at least one host.")
        return normalized_hosts


class LoggingConfig(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = "~/.local/state/threadterm/app.log"

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Logging level must be a string.")
        normalized = value.strip().upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level {normalized!r}.")
        return normalized

    @field_validator("log_file_path", mode="before")
    @classmethod
    def _validate_log_file_path(cls, value: Any) -> str:
        return _require_text(value)


class Config(BaseModel):
    """Root configuration model for all sections."""

    model_config = ConfigDict(populate_by_name=True)
    app: AppConfig = AppConfig()
    api: ApiConfig = ApiConfig()
    timeline: TimelineConfig = TimelineConfig()
    composer: ComposerConfig = ComposerConfig()
    keybinds: KeybindsConfig = KeybindsConfig()
    security: SecurityConfig = SecurityConfig()
    logging: LoggingConfig = LoggingConfig()

    @model_validator(mode="after")
    def _validate_security_policy(self) -> Config:
        parsed = urlparse(self.api.base_url)
        scheme = parsed.scheme.lower()
        hostname = (parsed.hostname or "").strip().lower()

        if scheme not in {"http", "https"}:
            raise ValueError("api.base_url must use http or https scheme.")
        if not hostname:
            raise ValueError("api.base_url must include a hostname.")
        if not self.security.allow_remote_hosts and hostname not in set(
            self.security.allowed_hosts
        ):
            raise ValueError(
                "api.base_url is not in security.allowed_hosts while allow_remote_hosts is false."
            )
        return self


DEFAULT_CONFIG: dict[str, dict[str, Any]] = Config().model_dump(by_alias=True)


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Ensure that the config directory exists and return its path."""
    directory = config_dir or CONFIG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create config directory %s: %s", directory, exc)
    return directory


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override values onto base values."""
    merged: dict[str, Any] = deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _enforce_private_permissions(path: Path) -> None:
    """Best-effort enforcement of private file permissions on POSIX systems."""
    if os.name != "posix" or not path.exists():
        return
    try:
        path.chmod(0o600)
    except OSError as exc:
        LOGGER.warning("Unable to enforce 0600 permissions for %s: %s", path, exc)


def _validate_config(raw: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Validate merged config and fall back to safe defaults when possible."""
    try:
        config = Config.model_validate(raw)
        return config.model_dump(by_alias=True)
    except ValidationError as exc:
        LOGGER.warning("Configuration validation failed, using safe defaults: %s", exc)
        return deepcopy(DEFAULT_CONFIG)
    except Exception as exc:  # noqa: BLE001 - unexpected model construction failure.
        raise ConfigValidationError(f"Unable to validate configuration: {exc}") from exc


def load_config(config_path: Path | None = None) -> dict[str, dict[str, Any]]:
    """
    Load configuration from TOML, merge with defaults, and validate.

    The optional ``config_path`` argument is intended for tests and tooling.
    """
    target_path = config_path or CONFIG_PATH
    ensure_config_dir(target_path.parent)

    raw_data: dict[str, Any] = {}
    if target_path.exists():
        _enforce_private_permissions(target_path)
        try:
            raw_data = tomllib.loads(target_path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            LOGGER.warning("Failed to parse config at %s: %s", target_path, exc)
            raw_data = {}

    merged = _deep_merge(DEFAULT_CONFIG, raw_data)
    return _validate_config(merged)
