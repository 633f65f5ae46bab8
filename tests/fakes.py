"""In-memory registration registry for reconciliation tests."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from wslenv.application.ports.registry import CommandResult, InstanceInfo
from wslenv.domain.disk_paths import same_disk_path
from wslenv.domain.install_layout import DISK_FILE_NAME, InstallLayout
from wslenv.domain.state_document import StateDocument

FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

_MUTATING = {
    "register_in_place",
    "remove_registration_only",
    "unregister",
    "shutdown_all",
    "export_archive",
    "import_archive",
}


class FakeRegistry:
    """Registry keyed by instance name; values are backing-disk paths.

    ``import_archive`` materializes ``<dest_root>/ext4.vhdx`` like the
    host does, ``unregister`` deletes the disk, ``remove_registration_only``
    keeps it. Operations named in ``fail_on`` return a failed result.
    """

    def __init__(self, entries: dict[str, str] | None = None, *, fail_on: set[str] | None = None):
        self.entries: dict[str, str] = dict(entries or {})
        self.fail_on = set(fail_on or ())
        self.calls: list[tuple[str, ...]] = []

    @property
    def mutations(self) -> list[tuple[str, ...]]:
        return [call for call in self.calls if call[0] in _MUTATING]

    def _find(self, name: str) -> str | None:
        for key in self.entries:
            if key.casefold() == name.casefold():
                return key
        return None

    def _record(self, op: str, *args: object) -> CommandResult | None:
        self.calls.append((op, *(str(a) for a in args)))
        if op in self.fail_on:
            return CommandResult.failed(f"{op} refused by fake", exit_code=5)
        return None

    def list_instances(self) -> list[InstanceInfo]:
        return [InstanceInfo(name=name, state="Stopped", wsl_version=2) for name in self.entries]

    def is_registered(self, name: str) -> bool:
        return self._find(name) is not None

    def backing_path(self, name: str) -> str | None:
        key = self._find(name)
        return self.entries[key] if key is not None else None

    def register_in_place(self, name: str, disk_path: Path) -> CommandResult:
        failed = self._record("register_in_place", name, disk_path)
        if failed:
            return failed
        if self.is_registered(name):
            return CommandResult.failed(f"{name} already exists", exit_code=1)
        if not Path(disk_path).is_file():
            return CommandResult.failed(f"disk not found: {disk_path}", exit_code=1)
        self.entries[name] = str(disk_path)
        return CommandResult.ok()

    def remove_registration_only(self, name: str) -> CommandResult:
        failed = self._record("remove_registration_only", name)
        if failed:
            return failed
        key = self._find(name)
        if key is not None:
            del self.entries[key]
        return CommandResult.ok()

    def unregister(self, name: str) -> CommandResult:
        failed = self._record("unregister", name)
        if failed:
            return failed
        key = self._find(name)
        if key is None:
            return CommandResult.failed(f"{name} not registered", exit_code=1)
        Path(self.entries.pop(key)).unlink(missing_ok=True)
        return CommandResult.ok()

    def shutdown_all(self) -> CommandResult:
        return self._record("shutdown_all") or CommandResult.ok()

    def export_archive(self, name: str, dest_path: Path) -> CommandResult:
        failed = self._record("export_archive", name, dest_path)
        if failed:
            return failed
        if not self.is_registered(name):
            return CommandResult.failed(f"{name} not registered", exit_code=1)
        Path(dest_path).write_bytes(b"exported:" + name.encode("utf-8"))
        return CommandResult.ok()

    def import_archive(self, name: str, dest_root: Path, archive_path: Path) -> CommandResult:
        failed = self._record("import_archive", name, dest_root, archive_path)
        if failed:
            return failed
        if self.is_registered(name):
            return CommandResult.failed(f"{name} already exists", exit_code=1)
        disk = Path(dest_root) / DISK_FILE_NAME
        disk.parent.mkdir(parents=True, exist_ok=True)
        disk.write_bytes(Path(archive_path).read_bytes())
        self.entries[name] = str(disk)
        return CommandResult.ok()

    def registered_at(self, name: str, disk: Path) -> bool:
        return same_disk_path(self.backing_path(name), disk)


def write_disk(layout: InstallLayout, content: bytes = b"vhdx") -> Path:
    layout.wsl_dir.mkdir(parents=True, exist_ok=True)
    layout.backing_disk.write_bytes(content)
    return layout.backing_disk


def write_archive(layout: InstallLayout, content: bytes = b"tar") -> Path:
    layout.wsl_dir.mkdir(parents=True, exist_ok=True)
    layout.portable_archive.write_bytes(content)
    return layout.portable_archive


def state_for(layout: InstallLayout, identifier: str = "wslenv", **overrides) -> StateDocument:
    paths = layout.derived_paths()
    values = dict(
        identifier=identifier,
        install_root=paths["installRoot"],
        local_data_root=paths["localDataRoot"],
        wsl_dir=paths["wslDir"],
        backing_disk_path=paths["backingDiskPath"],
        install_method="package-manager",
        linux_username="dev",
        installed_at="2026-01-01T00:00:00+00:00",
        flags={"installComplete": True},
    )
    values.update(overrides)
    return StateDocument(**values)
