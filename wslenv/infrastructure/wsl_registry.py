"""WSL binding of the registration registry port.

Commands go through ``wsl.exe``. Backing-disk locations and metadata-only
removal go through the per-user ``Lxss`` registry keys, because
``wsl --unregister`` deletes the distribution's disk along with its
registration. The key access sits behind ``LxssKeyStore`` so a future safe
unregister primitive can replace it without touching reconciliation.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Protocol

from wslenv.application.ports.registry import CommandResult, InstanceInfo
from wslenv.domain.disk_paths import join_registry_path
from wslenv.infrastructure.host_command import CommandRunner, run_command

logger = logging.getLogger(__name__)

LXSS_KEY = r"Software\Microsoft\Windows\CurrentVersion\Lxss"
DEFAULT_VHD_FILE_NAME = "ext4.vhdx"


@dataclass(frozen=True)
class LxssEntry:
    guid: str
    name: str
    base_path: str
    vhd_file_name: str = DEFAULT_VHD_FILE_NAME

    @property
    def disk_path(self) -> str:
        return join_registry_path(self.base_path, self.vhd_file_name)


class LxssKeyStore(Protocol):
    def entries(self) -> list[LxssEntry]: ...
    def delete_entry(self, guid: str) -> None: ...
    def default_guid(self) -> str | None: ...
    def clear_default(self) -> None: ...


class WinregLxssKeyStore:
    """``HKCU\\...\\Lxss`` access through ``winreg`` (Windows only)."""

    def entries(self) -> list[LxssEntry]:
        import winreg

        found: list[LxssEntry] = []
        try:
            root = winreg.OpenKey(winreg.HKEY_CURRENT_USER, LXSS_KEY)
        except FileNotFoundError:
            return found
        with root:
            index = 0
            while True:
                try:
                    guid = winreg.EnumKey(root, index)
                except OSError:
                    break
                index += 1
                with winreg.OpenKey(root, guid) as sub:
                    name = _query(winreg, sub, "DistributionName")
                    base_path = _query(winreg, sub, "BasePath")
                    vhd = _query(winreg, sub, "VhdFileName") or DEFAULT_VHD_FILE_NAME
                if name and base_path:
                    found.append(LxssEntry(guid=guid, name=name, base_path=base_path, vhd_file_name=vhd))
        return found

    def delete_entry(self, guid: str) -> None:
        import winreg

        with winreg.OpenKey(winreg.HKEY_CURRENT_USER, LXSS_KEY, 0, winreg.KEY_ALL_ACCESS) as root:
            winreg.DeleteKey(root, guid)

    def default_guid(self) -> str | None:
        import winreg

        try:
            with winreg.OpenKey(winreg.HKEY_CURRENT_USER, LXSS_KEY) as root:
                return _query(winreg, root, "DefaultDistribution") or None
        except FileNotFoundError:
            return None

    def clear_default(self) -> None:
        import winreg

        with winreg.OpenKey(winreg.HKEY_CURRENT_USER, LXSS_KEY, 0, winreg.KEY_ALL_ACCESS) as root:
            winreg.DeleteValue(root, "DefaultDistribution")


def _query(winreg, key, value_name: str) -> str:
    try:
        value, _ = winreg.QueryValueEx(key, value_name)
    except FileNotFoundError:
        return ""
    return str(value)


def parse_list_output(text: str) -> list[InstanceInfo]:
    """Parse ``wsl --list --verbose`` output.

    ::

          NAME      STATE           VERSION
        * Ubuntu    Running         2
          wslenv    Stopped         2
    """

    instances: list[InstanceInfo] = []
    for raw_line in text.replace("\x00", "").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        is_default = line.startswith("*")
        tokens = line.lstrip("*").split()
        if not tokens or tokens[0].upper() == "NAME":
            continue
        version = int(tokens[2]) if len(tokens) >= 3 and tokens[2].isdigit() else None
        state = tokens[1] if len(tokens) >= 2 else "Unknown"
        instances.append(InstanceInfo(name=tokens[0], state=state, wsl_version=version, is_default=is_default))
    return instances


class WslRegistry:
    def __init__(
        self,
        *,
        wsl_executable: str = "wsl.exe",
        runner: CommandRunner = run_command,
        keys: LxssKeyStore | None = None,
    ):
        self.wsl_executable = wsl_executable
        self._runner = runner
        self._keys = keys if keys is not None else WinregLxssKeyStore()

    def _wsl(self, *args: str) -> CommandResult:
        return self._runner([self.wsl_executable, *args])

    def _entry(self, name: str) -> LxssEntry | None:
        wanted = name.casefold()
        for entry in self._keys.entries():
            if entry.name.casefold() == wanted:
                return entry
        return None

    def list_instances(self) -> list[InstanceInfo]:
        result = self._wsl("--list", "--verbose")
        if not result.success:
            # wsl.exe exits non-zero when no distribution is installed.
            logger.debug("wsl --list failed: %s", result.message)
            return []
        return parse_list_output(result.stdout)

    def is_registered(self, name: str) -> bool:
        return self._entry(name) is not None

    def backing_path(self, name: str) -> str | None:
        entry = self._entry(name)
        return entry.disk_path if entry is not None else None

    def register_in_place(self, name: str, disk_path: Path) -> CommandResult:
        return self._wsl("--import-in-place", name, str(disk_path))

    def remove_registration_only(self, name: str) -> CommandResult:
        entry = self._entry(name)
        if entry is None:
            return CommandResult.ok(f"{name} not registered")
        default_guid = self._keys.default_guid()
        try:
            self._keys.delete_entry(entry.guid)
        except OSError as exc:
            return CommandResult.failed(f"could not remove registry key for {name}: {exc}")
        if default_guid is not None and default_guid.casefold() == entry.guid.casefold():
            try:
                self._keys.clear_default()
            except OSError as exc:
                logger.warning("stale DefaultDistribution left in registry: %s", exc)
        return CommandResult.ok(f"registration for {name} removed, disk kept at {entry.disk_path}")

    def unregister(self, name: str) -> CommandResult:
        return self._wsl("--unregister", name)

    def shutdown_all(self) -> CommandResult:
        return self._wsl("--shutdown")

    def export_archive(self, name: str, dest_path: Path) -> CommandResult:
        args = ["--export", name, str(dest_path)]
        if dest_path.suffix.lower() == ".vhdx":
            args.append("--vhd")
        return self._wsl(*args)

    def import_archive(self, name: str, dest_root: Path, archive_path: Path) -> CommandResult:
        dest_root.mkdir(parents=True, exist_ok=True)
        args = ["--import", name, str(dest_root), str(archive_path), "--version", "2"]
        if archive_path.suffix.lower() == ".vhdx":
            args.append("--vhd")
        return self._wsl(*args)
