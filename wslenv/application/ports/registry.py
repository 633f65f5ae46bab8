"""Port for the host's environment-registration registry.

Concrete bindings live in infrastructure; reconciliation logic only sees this
contract, which is also what the in-memory test fake implements.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence


@dataclass(frozen=True)
class CommandResult:
    """Structured outcome of one host-tool invocation."""

    success: bool
    message: str
    exit_code: int
    argv: tuple[str, ...] = ()
    stdout: str = ""
    stderr: str = ""

    @classmethod
    def ok(cls, message: str = "ok", *, argv: Sequence[str] = ()) -> "CommandResult":
        return cls(success=True, message=message, exit_code=0, argv=tuple(argv))

    @classmethod
    def failed(cls, message: str, *, exit_code: int = 1, argv: Sequence[str] = ()) -> "CommandResult":
        return cls(success=False, message=message, exit_code=exit_code, argv=tuple(argv))


@dataclass(frozen=True)
class InstanceInfo:
    name: str
    state: str
    wsl_version: int | None = None
    is_default: bool = False

    @property
    def running(self) -> bool:
        return self.state.lower() == "running"


class RegistrationRegistry(Protocol):
    def list_instances(self) -> list[InstanceInfo]: ...

    def is_registered(self, name: str) -> bool: ...

    def backing_path(self, name: str) -> str | None:
        """Backing-disk path the host reports for ``name``, or None when unknown."""
        ...

    def register_in_place(self, name: str, disk_path: Path) -> CommandResult:
        """Register an existing disk file without copying it. Fails while the file is locked."""
        ...

    def remove_registration_only(self, name: str) -> CommandResult:
        """Drop registry metadata for ``name``; the backing disk stays on disk."""
        ...

    def unregister(self, name: str) -> CommandResult:
        """Destructive removal: the host deletes the backing disk as well."""
        ...

    def shutdown_all(self) -> CommandResult: ...

    def export_archive(self, name: str, dest_path: Path) -> CommandResult: ...

    def import_archive(self, name: str, dest_root: Path, archive_path: Path) -> CommandResult: ...
