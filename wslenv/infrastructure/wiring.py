"""Composition root: bind the application ports to host implementations."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from wslenv.application.ports.registry import RegistrationRegistry
from wslenv.domain.install_layout import InstallLayout
from wslenv.infrastructure.config import WslEnvConfig, load_config
from wslenv.infrastructure.state_store import FileStateStore
from wslenv.infrastructure.wsl_registry import WslRegistry


@dataclass(frozen=True)
class Services:
    config: WslEnvConfig
    layout: InstallLayout
    store: FileStateStore
    registry: RegistrationRegistry


def build_services(
    install_root: Path,
    *,
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
    registry: RegistrationRegistry | None = None,
) -> Services:
    root = Path(install_root).expanduser().absolute()
    config = load_config(root, config_path=config_path, env=env, overrides=overrides)
    layout = config.layout(root)
    return Services(
        config=config,
        layout=layout,
        store=FileStateStore(layout.state_file),
        registry=registry if registry is not None else WslRegistry(wsl_executable=config.wsl_executable),
    )
