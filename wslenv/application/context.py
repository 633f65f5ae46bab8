"""Short-lived session context holding the resolved identifier.

The identifier is resolved once at program start and threaded through every
later call via this object rather than module state.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from wslenv.application.ports.registry import RegistrationRegistry
from wslenv.application.ports.state_store import StateStore
from wslenv.application.use_cases.name_arbiter import resolve_instance_name
from wslenv.domain.install_layout import InstallLayout
from wslenv.domain.naming import DEFAULT_MAX_NAME_ATTEMPTS


@dataclass(frozen=True)
class SessionContext:
    identifier: str
    layout: InstallLayout
    base_name: str

    @property
    def install_root(self) -> Path:
        return self.layout.install_root

    @property
    def expected_backing_disk(self) -> Path:
        return self.layout.backing_disk


def open_session(
    layout: InstallLayout,
    base_name: str,
    *,
    store: StateStore,
    registry: RegistrationRegistry,
    max_attempts: int = DEFAULT_MAX_NAME_ATTEMPTS,
) -> SessionContext:
    identifier = resolve_instance_name(
        base_name,
        layout.backing_disk,
        store=store,
        registry=registry,
        max_attempts=max_attempts,
    )
    return SessionContext(identifier=identifier, layout=layout, base_name=base_name)
