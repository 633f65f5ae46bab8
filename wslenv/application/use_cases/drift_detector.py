"""Gather the three sources of truth and classify the current situation."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

from wslenv.application.context import SessionContext
from wslenv.application.ports.registry import RegistrationRegistry
from wslenv.application.ports.state_store import StateLoadResult, StateStore
from wslenv.domain.disk_paths import same_disk_path
from wslenv.domain.drift import DriftObservation, Scenario, classify_drift

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DriftReport:
    scenario: Scenario
    observation: DriftObservation
    reason_code: str
    detail: str
    state: StateLoadResult
    registered_path: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenario": self.scenario.value,
            "reasonCode": self.reason_code,
            "detail": self.detail,
            "stateStatus": self.state.status,
            "registeredPath": self.registered_path,
            "observation": self.observation.to_dict(),
        }


def observe(ctx: SessionContext, *, store: StateStore, registry: RegistrationRegistry) -> tuple[DriftObservation, StateLoadResult, str | None]:
    state = store.load()
    root_matches = False
    if state.is_valid and state.document is not None:
        root_matches = same_disk_path(state.document.install_root, ctx.install_root)

    registered = registry.is_registered(ctx.identifier)
    registered_path = registry.backing_path(ctx.identifier) if registered else None

    observation = DriftObservation(
        state_status=state.status,
        state_root_matches=root_matches,
        disk_present=ctx.layout.backing_disk.is_file(),
        archive_present=ctx.layout.portable_archive.is_file(),
        registered=registered,
        registered_path_matches=registered and same_disk_path(registered_path, ctx.expected_backing_disk),
    )
    return observation, state, registered_path


def detect_drift(ctx: SessionContext, *, store: StateStore, registry: RegistrationRegistry) -> DriftReport:
    observation, state, registered_path = observe(ctx, store=store, registry=registry)
    classification = classify_drift(observation)
    logger.info("instance %s classified as %s: %s", ctx.identifier, classification.scenario.value, classification.detail)
    return DriftReport(
        scenario=classification.scenario,
        observation=observation,
        reason_code=classification.reason_code,
        detail=classification.detail,
        state=state,
        registered_path=registered_path,
    )
