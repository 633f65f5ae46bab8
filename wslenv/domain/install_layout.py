"""Deterministic on-disk layout derived from the installation root.

All persisted artifacts live under ``<install_root>/<local_data_dir>/``::

    install_state.json
    logs/
    wsl/ext4.vhdx
    wsl/distro-export.tar
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

DERIVED_PATH_KEYS: tuple[str, ...] = ("installRoot", "localDataRoot", "wslDir", "backingDiskPath")

# Fixed by the host: importing a root filesystem always creates this file.
DISK_FILE_NAME = "ext4.vhdx"


@dataclass(frozen=True)
class InstallLayout:
    install_root: Path
    local_data_dir: str = "local-data"
    archive_file_name: str = "distro-export.tar"
    state_file_name: str = "install_state.json"

    @property
    def local_data_root(self) -> Path:
        return self.install_root / self.local_data_dir

    @property
    def wsl_dir(self) -> Path:
        return self.local_data_root / "wsl"

    @property
    def backing_disk(self) -> Path:
        return self.wsl_dir / DISK_FILE_NAME

    @property
    def portable_archive(self) -> Path:
        return self.wsl_dir / self.archive_file_name

    @property
    def state_file(self) -> Path:
        return self.local_data_root / self.state_file_name

    @property
    def logs_dir(self) -> Path:
        return self.local_data_root / "logs"

    def derived_paths(self) -> dict[str, str]:
        return {
            "installRoot": str(self.install_root),
            "localDataRoot": str(self.local_data_root),
            "wslDir": str(self.wsl_dir),
            "backingDiskPath": str(self.backing_disk),
        }

    def contains(self, path: Path) -> bool:
        """True when ``path`` lies strictly inside the installation root."""

        try:
            root = self.install_root.resolve()
            target = path.resolve()
        except OSError:
            return False
        return root in target.parents
