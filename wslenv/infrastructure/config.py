"""Configuration: defaults < YAML file < environment < explicit overrides.

YAML file resolution: explicit path, then ``WSLENV_CONFIG``, then
``<install_root>/wslenv.yaml``. A missing default file is fine; an explicitly
named file that is missing or malformed is a ``ConfigError``.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
import os
from pathlib import Path, PureWindowsPath
from typing import Any, Mapping

import yaml

from wslenv.domain.errors import ConfigError
from wslenv.domain.install_layout import InstallLayout
from wslenv.domain.naming import DEFAULT_MAX_NAME_ATTEMPTS, validate_base_name

CONFIG_FILE_NAME = "wslenv.yaml"
ENV_CONFIG_PATH = "WSLENV_CONFIG"

_ENV_OVERRIDES = {
    "WSLENV_BASE_NAME": "base_name",
    "WSLENV_MAX_NAME_ATTEMPTS": "max_name_attempts",
    "WSLENV_WSL_EXECUTABLE": "wsl_executable",
}


@dataclass(frozen=True)
class WslEnvConfig:
    base_name: str = "wslenv"
    max_name_attempts: int = DEFAULT_MAX_NAME_ATTEMPTS
    local_data_dir: str = "local-data"
    archive_file_name: str = "distro-export.tar"
    state_file_name: str = "install_state.json"
    wsl_executable: str = "wsl.exe"
    event_retention_days: int = 30

    def layout(self, install_root: Path) -> InstallLayout:
        return InstallLayout(
            install_root=install_root,
            local_data_dir=self.local_data_dir,
            archive_file_name=self.archive_file_name,
            state_file_name=self.state_file_name,
        )


_FIELD_NAMES = frozenset(f.name for f in fields(WslEnvConfig))
_INT_FIELDS = frozenset({"max_name_attempts", "event_retention_days"})
_FILE_NAME_FIELDS = frozenset({"archive_file_name", "state_file_name"})


def _coerce(key: str, value: Any, *, source: str) -> Any:
    if key not in _FIELD_NAMES:
        raise ConfigError(detail=f"{source}: unknown setting {key!r}")
    if key in _INT_FIELDS:
        if isinstance(value, bool):
            raise ConfigError(detail=f"{source}: {key} must be an integer")
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ConfigError(detail=f"{source}: {key} must be an integer, got {value!r}") from None
        if number < 1:
            raise ConfigError(detail=f"{source}: {key} must be >= 1")
        return number
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(detail=f"{source}: {key} must be a non-empty string")
    text = value.strip()
    parts = PureWindowsPath(text)
    if key == "local_data_dir" and (parts.anchor or ".." in parts.parts):
        raise ConfigError(detail=f"{source}: {key} must be a relative path inside the install root, got {text!r}")
    if key in _FILE_NAME_FIELDS and (len(parts.parts) != 1 or parts.name in ("", ".", "..")):
        raise ConfigError(detail=f"{source}: {key} must be a plain file name, got {text!r}")
    return text


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(detail=f"config file unreadable ({path}): {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(detail=f"config file parse failed ({path}): {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(detail=f"config file must contain a mapping: {path}")
    return data


def resolve_config_path(install_root: Path, explicit: Path | None, env: Mapping[str, str]) -> tuple[Path | None, bool]:
    """Return ``(path, required)``; required paths must exist."""

    if explicit is not None:
        return explicit, True
    from_env = str(env.get(ENV_CONFIG_PATH, "")).strip()
    if from_env:
        return Path(from_env).expanduser(), True
    default = install_root / CONFIG_FILE_NAME
    return (default if default.is_file() else None), False


def load_config(
    install_root: Path,
    *,
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> WslEnvConfig:
    environment = os.environ if env is None else env
    config = WslEnvConfig()

    path, required = resolve_config_path(install_root, config_path, environment)
    if path is not None:
        if required and not path.is_file():
            raise ConfigError(detail=f"config file not found: {path}")
        values = {key: _coerce(key, value, source=str(path)) for key, value in _load_yaml(path).items()}
        config = replace(config, **values)

    env_values = {}
    for env_key, field_name in _ENV_OVERRIDES.items():
        raw = str(environment.get(env_key, "")).strip()
        if raw:
            env_values[field_name] = _coerce(field_name, raw, source=f"env:{env_key}")
    config = replace(config, **env_values)

    if overrides:
        explicit = {k: _coerce(k, v, source="override") for k, v in overrides.items() if v is not None}
        config = replace(config, **explicit)

    try:
        validate_base_name(config.base_name)
    except ValueError as exc:
        raise ConfigError(detail=str(exc)) from exc
    return config
