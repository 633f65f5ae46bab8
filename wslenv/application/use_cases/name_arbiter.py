"""Resolve a unique instance identifier for this installation.

Read-only: consults the state store and the registry, never mutates either.
"""

from __future__ import annotations

import logging
from pathlib import Path

from wslenv.application.ports.registry import RegistrationRegistry
from wslenv.application.ports.state_store import StateStore
from wslenv.domain.disk_paths import same_disk_path
from wslenv.domain.errors import NameExhaustedError
from wslenv.domain.naming import DEFAULT_MAX_NAME_ATTEMPTS, candidate_names, validate_base_name

logger = logging.getLogger(__name__)


def resolve_instance_name(
    base_name: str,
    expected_disk: Path,
    *,
    store: StateStore,
    registry: RegistrationRegistry,
    max_attempts: int = DEFAULT_MAX_NAME_ATTEMPTS,
) -> str:
    base = validate_base_name(base_name)

    # The state document wins while its disk is where we expect it, even if the
    # registration is currently missing; repair re-registers it under that name.
    loaded = store.load()
    if loaded.is_valid and loaded.document is not None and expected_disk.exists():
        owned = loaded.document.identifier
        logger.debug("identifier %s taken from state document (disk present at %s)", owned, expected_disk)
        return owned

    candidates = list(candidate_names(base, max_attempts))

    # A registration already pointing at our disk is ours, whatever its suffix.
    # Only one instance may ever be registered against a given disk.
    for candidate in candidates:
        if not registry.is_registered(candidate):
            continue
        reported = registry.backing_path(candidate)
        if same_disk_path(reported, expected_disk):
            logger.debug("identifier %s already registered at %s", candidate, reported)
            return candidate

    for candidate in candidates:
        if not registry.is_registered(candidate):
            logger.debug("identifier %s is free", candidate)
            return candidate
        logger.debug("identifier %s belongs to another installation (%s)", candidate, registry.backing_path(candidate))

    raise NameExhaustedError(
        detail=f"no free identifier for base {base!r} after {max_attempts} attempts",
        base_name=base,
        attempts=max_attempts,
    )
