"""Drift scenarios and the classification table.

Classification is a pure function of a ``DriftObservation``. The rules are
evaluated top to bottom and the last one is a catch-all, so every observation
maps to exactly one scenario.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Literal

from wslenv.domain.reason_codes import (
    BLOCKED_INSTALLATION_CORRUPTED,
    BLOCKED_REGISTERED_DISK_MISSING,
    BLOCKED_STATE_UNREADABLE,
    REASON_CODE_NONE,
    WARN_STATE_PATHS_DRIFTED,
)

StateStatus = Literal["absent", "parse_error", "valid"]


class Scenario(str, Enum):
    NO_INSTALLATION = "NoInstallation"
    NEEDS_IMPORT = "NeedsImport"
    ALREADY_CORRECT = "AlreadyCorrect"
    NEEDS_RELOCATION_REPAIR = "NeedsRelocationRepair"
    CORRUPTED = "Corrupted"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class DriftObservation:
    """Snapshot of the three sources of truth for one identifier."""

    state_status: StateStatus
    state_root_matches: bool
    disk_present: bool
    archive_present: bool
    registered: bool
    registered_path_matches: bool

    @property
    def has_data(self) -> bool:
        return self.disk_present or self.archive_present

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Classification:
    scenario: Scenario
    reason_code: str
    detail: str


def classify_drift(observation: DriftObservation) -> Classification:
    obs = observation
    state_present = obs.state_status != "absent"

    if not obs.has_data:
        if not state_present:
            return Classification(Scenario.NO_INSTALLATION, REASON_CODE_NONE, "no state document and no backing disk")
        if obs.state_status == "parse_error":
            return Classification(
                Scenario.CORRUPTED,
                BLOCKED_STATE_UNREADABLE,
                "state document is unreadable and no backing disk is present",
            )
        return Classification(
            Scenario.CORRUPTED,
            BLOCKED_INSTALLATION_CORRUPTED,
            "state document present but backing disk is missing",
        )

    if not obs.registered:
        return Classification(Scenario.NEEDS_IMPORT, REASON_CODE_NONE, "backing data present but instance not registered")

    if obs.registered_path_matches and not obs.disk_present:
        return Classification(
            Scenario.CORRUPTED,
            BLOCKED_REGISTERED_DISK_MISSING,
            "instance registered at the expected path but the backing disk is missing",
        )

    if obs.registered_path_matches and obs.state_status == "valid" and obs.state_root_matches:
        return Classification(Scenario.ALREADY_CORRECT, REASON_CODE_NONE, "registry, state and disk agree")

    if obs.registered_path_matches:
        detail = "registration correct but state document is stale or missing"
    else:
        detail = "instance registered against a different backing disk"
    return Classification(Scenario.NEEDS_RELOCATION_REPAIR, WARN_STATE_PATHS_DRIFTED, detail)
