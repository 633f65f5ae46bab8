from __future__ import annotations

from pathlib import Path

import pytest

from tests.fakes import state_for
from wslenv.domain.install_layout import InstallLayout
from wslenv.domain.state_document import STATE_SCHEMA, RelocationDescriptor, StateDocument, StateDocumentError


def _payload(**overrides):
    payload = {
        "identifier": "wslenv",
        "installRoot": "C:/App",
        "localDataRoot": "C:/App/local-data",
        "wslDir": "C:/App/local-data/wsl",
        "backingDiskPath": "C:/App/local-data/wsl/ext4.vhdx",
        "installMethod": "source-checkout",
        "linuxUsername": "dev",
        "flags": {"installComplete": True},
    }
    payload.update(overrides)
    return payload


@pytest.mark.core
def test_from_payload_keeps_unknown_fields_as_extras():
    doc = StateDocument.from_payload(_payload(futureField={"a": 1}))
    assert doc.extras == {"futureField": {"a": 1}}
    out = doc.to_payload()
    assert out["futureField"] == {"a": 1}
    assert out["schema"] == STATE_SCHEMA
    assert out["installMethod"] == "source-checkout"


@pytest.mark.core
@pytest.mark.parametrize(
    "payload",
    [
        [],
        _payload(identifier=""),
        _payload(installRoot=5),
        _payload(installMethod="zip"),
        _payload(flags=["x"]),
        {k: v for k, v in _payload().items() if k != "linuxUsername"},
    ],
)
def test_from_payload_rejects_malformed_documents(payload):
    with pytest.raises(StateDocumentError):
        StateDocument.from_payload(payload)


@pytest.mark.core
def test_empty_linux_username_is_accepted():
    assert StateDocument.from_payload(_payload(linuxUsername="")).linux_username == ""


@pytest.mark.core
def test_relocation_descriptor_lists_old_and_new_paths(tmp_path: Path):
    old = InstallLayout(install_root=tmp_path / "Old")
    new = InstallLayout(install_root=tmp_path / "New")
    descriptor = RelocationDescriptor.compute(state_for(old), new.derived_paths())

    assert not descriptor.is_noop
    assert {c.key for c in descriptor.drifted} == {"installRoot", "localDataRoot", "wslDir", "backingDiskPath"}
    moved = descriptor.apply(state_for(old))
    assert moved.install_root == str(new.install_root)
    assert moved.backing_disk_path == str(new.backing_disk)
    assert descriptor.to_dict()["installRoot"] == {"old": str(old.install_root), "new": str(new.install_root)}


@pytest.mark.core
def test_relocation_descriptor_is_noop_when_paths_match(tmp_path: Path):
    layout = InstallLayout(install_root=tmp_path / "App")
    descriptor = RelocationDescriptor.compute(state_for(layout), layout.derived_paths())
    assert descriptor.is_noop
    assert descriptor.to_dict() == {}


@pytest.mark.core
def test_with_flag_returns_updated_copy(tmp_path: Path):
    doc = state_for(InstallLayout(install_root=tmp_path))
    updated = doc.with_flag("mainApplicationPresent", True)
    assert updated.flags["mainApplicationPresent"] is True
    assert "mainApplicationPresent" not in doc.flags
