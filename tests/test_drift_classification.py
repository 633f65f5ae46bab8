from __future__ import annotations

import itertools

import pytest

from wslenv.domain.drift import DriftObservation, Scenario, classify_drift
from wslenv.domain.reason_codes import (
    BLOCKED_INSTALLATION_CORRUPTED,
    BLOCKED_REGISTERED_DISK_MISSING,
    BLOCKED_STATE_UNREADABLE,
    CANONICAL_REASON_CODES,
    REASON_CODE_NONE,
    WARN_STATE_PATHS_DRIFTED,
)


def _obs(**overrides) -> DriftObservation:
    values = dict(
        state_status="valid",
        state_root_matches=True,
        disk_present=True,
        archive_present=False,
        registered=True,
        registered_path_matches=True,
    )
    values.update(overrides)
    return DriftObservation(**values)


_ALL_OBSERVATIONS = [
    DriftObservation(status, root, disk, archive, registered, registered and path)
    for status, root, disk, archive, registered, path in itertools.product(
        ("absent", "parse_error", "valid"), (False, True), (False, True), (False, True), (False, True), (False, True)
    )
]


@pytest.mark.core
@pytest.mark.parametrize("observation", _ALL_OBSERVATIONS)
def test_every_observation_maps_to_exactly_one_scenario(observation: DriftObservation):
    result = classify_drift(observation)
    assert isinstance(result.scenario, Scenario)
    assert result.reason_code == REASON_CODE_NONE or result.reason_code in CANONICAL_REASON_CODES
    assert result.detail

    if result.scenario is Scenario.ALREADY_CORRECT:
        assert observation.registered_path_matches and observation.disk_present
        assert observation.state_status == "valid" and observation.state_root_matches
    if result.scenario in (Scenario.NEEDS_IMPORT, Scenario.ALREADY_CORRECT, Scenario.NEEDS_RELOCATION_REPAIR):
        assert observation.has_data
    if result.scenario is Scenario.NEEDS_IMPORT:
        assert not observation.registered


@pytest.mark.core
@pytest.mark.parametrize(
    "overrides,scenario,reason",
    [
        (dict(state_status="absent", disk_present=False, registered=False, registered_path_matches=False), Scenario.NO_INSTALLATION, REASON_CODE_NONE),
        (dict(state_status="parse_error", disk_present=False), Scenario.CORRUPTED, BLOCKED_STATE_UNREADABLE),
        (dict(disk_present=False, registered=False, registered_path_matches=False), Scenario.CORRUPTED, BLOCKED_INSTALLATION_CORRUPTED),
        (dict(registered=False, registered_path_matches=False, state_root_matches=False), Scenario.NEEDS_IMPORT, REASON_CODE_NONE),
        (dict(state_status="absent", disk_present=False, archive_present=True, registered=False, registered_path_matches=False), Scenario.NEEDS_IMPORT, REASON_CODE_NONE),
        (dict(disk_present=False, archive_present=True), Scenario.CORRUPTED, BLOCKED_REGISTERED_DISK_MISSING),
        (dict(), Scenario.ALREADY_CORRECT, REASON_CODE_NONE),
        (dict(state_root_matches=False), Scenario.NEEDS_RELOCATION_REPAIR, WARN_STATE_PATHS_DRIFTED),
        (dict(registered_path_matches=False), Scenario.NEEDS_RELOCATION_REPAIR, WARN_STATE_PATHS_DRIFTED),
        (dict(state_status="absent", state_root_matches=False), Scenario.NEEDS_RELOCATION_REPAIR, WARN_STATE_PATHS_DRIFTED),
    ],
)
def test_classification_table(overrides: dict, scenario: Scenario, reason: str):
    result = classify_drift(_obs(**overrides))
    assert result.scenario is scenario
    assert result.reason_code == reason


@pytest.mark.core
def test_unreadable_state_with_data_is_not_corrupted():
    result = classify_drift(_obs(state_status="parse_error", state_root_matches=False))
    assert result.scenario is Scenario.NEEDS_RELOCATION_REPAIR


@pytest.mark.core
def test_scenario_renders_as_its_value():
    assert str(Scenario.NEEDS_IMPORT) == "NeedsImport"
    assert _obs().to_dict()["disk_present"] is True
