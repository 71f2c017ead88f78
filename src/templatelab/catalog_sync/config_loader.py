from __future__ import annotations

import os
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Callable, Union, get_args, get_type_hints

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]

from .config import SyncConfig

CONFIG_FILE_ENV = "TEMPLATELAB_SYNC_CONFIG_FILE"
ENV_PREFIX = "TEMPLATELAB_SYNC_"
DEFAULT_CONFIG_PATH = Path("configs/catalog_sync.toml")

# Unprefixed names kept for existing deployments.
TOKEN_ENV_ALIASES = ("HF_TOKEN", "HF_API_KEY")
INTERVAL_ENV_ALIAS = "SYNC_INTERVAL_MIN"
RESET_ENV_ALIAS = "SYNC_RESET_ON_START"
PORT_ENV_ALIAS = "FETCHER_PORT"

_SECRET_FIELDS = {"token"}

_SECTION_MAP: dict[str, list[str]] = {
    "registry": [
        "registry_base_url",
        "page_size",
        "sort",
        "direction",
        "request_timeout_s",
        "token",
    ],
    "storage": ["public_dir", "state_dir"],
    "sync": [
        "check_concurrency",
        "interval_min",
        "reset_on_start",
        "prune_unverified",
    ],
    "server": ["host", "port", "shutdown_timeout_s"],
}


def _field_types() -> dict[str, Any]:
    hints = get_type_hints(SyncConfig)
    return {f.name: hints[f.name] for f in fields(SyncConfig)}


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _coerce_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return int(str(value).strip())


def _coerce_float(value: Any) -> float:
    if isinstance(value, (int, float)):
        return float(value)
    return float(str(value).strip())


def _coerce_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _coerce_path(value: Any) -> Path:
    return Path(str(value)).expanduser()


def _coerce_optional(value: Any, caster: Callable[[Any], Any]) -> Any:
    if value in ("", None):
        return None
    return caster(value)


_CASTERS: dict[Any, Callable[[Any], Any]] = {
    bool: _coerce_bool,
    int: _coerce_int,
    float: _coerce_float,
    str: _coerce_str,
    Path: _coerce_path,
}


def _coerce_value(field_type: Any, value: Any) -> Any:
    origin = getattr(field_type, "__origin__", None)
    if origin is None:
        caster = _CASTERS.get(field_type)
        if caster:
            return caster(value)
        return value

    if origin is Union:
        args = [arg for arg in get_args(field_type) if arg is not type(None)]
        if len(args) == 1:
            caster = _CASTERS.get(args[0])
            if caster:
                return _coerce_optional(value, caster)
    return value


def config_file_path() -> Path:
    return Path(os.environ.get(CONFIG_FILE_ENV, DEFAULT_CONFIG_PATH)).expanduser()


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("rb") as fh:
        data = tomllib.load(fh)

    out: dict[str, Any] = {}
    for section, keys in _SECTION_MAP.items():
        section_values = data.get(section, {})
        if not isinstance(section_values, dict):
            continue
        for key in keys:
            if key in section_values:
                out[key] = section_values[key]
    return out


def _default_config_dict() -> dict[str, Any]:
    data = asdict(SyncConfig())
    data.pop("config_file_path", None)
    return data


def _normalize(config: dict[str, Any]) -> dict[str, Any]:
    field_types = _field_types()
    normalized = {}
    for key, default_value in _default_config_dict().items():
        value = config.get(key, default_value)
        try:
            normalized[key] = _coerce_value(field_types[key], value)
        except (TypeError, ValueError):
            normalized[key] = default_value
    return normalized


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    env = os.environ
    field_types = _field_types()

    def env_value(name: str, key: str) -> None:
        raw = env.get(name)
        if raw is None:
            return
        try:
            config[key] = _coerce_value(field_types[key], raw)
        except (TypeError, ValueError):
            # Unparsable values keep whatever the file/defaults provided.
            pass

    env_value(INTERVAL_ENV_ALIAS, "interval_min")
    env_value(RESET_ENV_ALIAS, "reset_on_start")
    env_value(PORT_ENV_ALIAS, "port")
    for alias in TOKEN_ENV_ALIASES:
        if env.get(alias):
            config["token"] = env[alias]
            break

    for key in config:
        env_value(f"{ENV_PREFIX}{key.upper()}", key)
    return config


def load_sync_config() -> SyncConfig:
    path = config_file_path()
    normalized = _normalize(_read_config_file(path))
    normalized = _apply_env_overrides(normalized)
    cfg = SyncConfig(**normalized)
    cfg.config_file_path = str(path)
    return cfg


def list_env_overrides() -> dict[str, str]:
    names = {
        *TOKEN_ENV_ALIASES,
        INTERVAL_ENV_ALIAS,
        RESET_ENV_ALIAS,
        PORT_ENV_ALIAS,
    }
    secret_names = set(TOKEN_ENV_ALIASES) | {
        f"{ENV_PREFIX}{name.upper()}" for name in _SECRET_FIELDS
    }
    out: dict[str, str] = {}
    for key, value in os.environ.items():
        if key == CONFIG_FILE_ENV:
            continue
        if key in names or key.startswith(ENV_PREFIX):
            out[key] = "***" if key in secret_names and value else value
    return out
