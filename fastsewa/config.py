"""Configuration management for the booking admin service."""
from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

_PROJECT_ROOT = Path(__file__).resolve().parent.parent

_ENV_PREFIX = "FASTSEWA_"
CONFIG_ENV_VAR = "FASTSEWA_CONFIG"

_DEFAULT_SECRET = "change-me-fastsewa-development-signing-key"


def _resolve_path(value: object, base_path: Path | None) -> Path:
    raw = Path(str(value)).expanduser()
    if raw.is_absolute() or base_path is None:
        return raw.resolve(strict=False)
    return (base_path / raw).resolve(strict=False)


def resolve_data_dir(env_value: Optional[str]) -> Path:
    """Resolve the directory holding the users, bookings and services files."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (_PROJECT_ROOT / "data").resolve(strict=False)


def resolve_export_dir(env_value: Optional[str]) -> Path:
    """Resolve the directory generated spreadsheets are written to."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (_PROJECT_ROOT / "exports").resolve(strict=False)


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the store, credentials and bootstrap admin."""

    data_dir: Path
    export_dir: Path
    jwt_secret: str = _DEFAULT_SECRET
    jwt_algorithm: str = "HS256"
    token_ttl_hours: int = 24
    admin_username: str = "admin"
    admin_email: str = "admin@example.com"
    admin_password: str = "admin123"
    log_level: str = "INFO"

    @staticmethod
    def defaults() -> "Settings":
        return Settings(data_dir=resolve_data_dir(None), export_dir=resolve_export_dir(None))

    @staticmethod
    def from_dict(data: Mapping[str, Any], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw mapping data, e.g. a YAML document."""

        known = {item.name for item in fields(Settings)}
        unknown = set(data.keys()) - known
        if unknown:
            raise ValueError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")

        settings = Settings.defaults()
        updates: Dict[str, Any] = {}
        for key, value in data.items():
            if value is None:
                continue
            if key in {"data_dir", "export_dir"}:
                updates[key] = _resolve_path(value, base_path)
            elif key == "token_ttl_hours":
                updates[key] = int(value)
            else:
                updates[key] = str(value)
        return replace(settings, **updates)

    def with_env_overrides(self, environ: Mapping[str, str]) -> "Settings":
        updates: Dict[str, Any] = {}
        for item in fields(Settings):
            raw = environ.get(_ENV_PREFIX + item.name.upper())
            if raw is None or raw.strip() == "":
                continue
            if item.name in {"data_dir", "export_dir"}:
                updates[item.name] = Path(raw).expanduser().resolve(strict=False)
            elif item.name == "token_ttl_hours":
                try:
                    updates[item.name] = int(raw)
                except ValueError as exc:
                    raise ValueError(f"Invalid integer value {raw!r} for {item.name}") from exc
            else:
                updates[item.name] = raw.strip()
        return replace(self, **updates) if updates else self


def load_settings(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from an optional YAML file, then apply environment overrides."""

    env = os.environ if environ is None else environ
    if config_path is None and env.get(CONFIG_ENV_VAR):
        config_path = Path(env[CONFIG_ENV_VAR]).expanduser().resolve(strict=False)

    if config_path is not None:
        with config_path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
        if not isinstance(raw, Mapping):
            raise ValueError("Configuration file must contain a mapping at the top level")
        settings = Settings.from_dict(raw, base_path=config_path.parent)
    else:
        settings = Settings.defaults()

    return settings.with_env_overrides(env)


__all__ = [
    "CONFIG_ENV_VAR",
    "Settings",
    "load_settings",
    "resolve_data_dir",
    "resolve_export_dir",
]
