"""Persisted declaration of what is currently installed, and where.

The document is one JSON object. Fields the current schema does not model are
kept in ``extras`` and written back verbatim, so an older installer never
strips data a newer one added.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal, Mapping, get_args

from wslenv.domain.install_layout import DERIVED_PATH_KEYS

STATE_SCHEMA = "wslenv.install-state.v1"

InstallMethod = Literal["package-manager", "source-checkout", "local-copy"]
INSTALL_METHODS: tuple[str, ...] = get_args(InstallMethod)

FLAG_INSTALL_COMPLETE = "installComplete"
FLAG_MAIN_APPLICATION_PRESENT = "mainApplicationPresent"

_PATH_ATTRIBUTES: dict[str, str] = {
    "installRoot": "install_root",
    "localDataRoot": "local_data_root",
    "wslDir": "wsl_dir",
    "backingDiskPath": "backing_disk_path",
}

_REQUIRED_STRING_KEYS = ("identifier", "installRoot", "localDataRoot", "installMethod", "linuxUsername")

KNOWN_KEYS: frozenset[str] = frozenset(
    {
        "schema",
        "identifier",
        "installRoot",
        "localDataRoot",
        "wslDir",
        "backingDiskPath",
        "installMethod",
        "linuxUsername",
        "installedAt",
        "importedAt",
        "updatedAt",
        "flags",
    }
)


class StateDocumentError(ValueError):
    pass


@dataclass(frozen=True)
class StateDocument:
    identifier: str
    install_root: str
    local_data_root: str
    wsl_dir: str
    backing_disk_path: str
    install_method: InstallMethod
    linux_username: str
    installed_at: str = ""
    imported_at: str = ""
    updated_at: str = ""
    flags: Mapping[str, bool] = field(default_factory=dict)
    extras: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> "StateDocument":
        if not isinstance(payload, dict):
            raise StateDocumentError("state document must be a JSON object")
        for key in _REQUIRED_STRING_KEYS:
            value = payload.get(key)
            if not isinstance(value, str):
                raise StateDocumentError(f"state document field {key!r} missing or not a string")
            if key != "linuxUsername" and not value.strip():
                raise StateDocumentError(f"state document field {key!r} must not be empty")
        method = payload["installMethod"]
        if method not in INSTALL_METHODS:
            raise StateDocumentError(f"unsupported installMethod: {method!r}")
        flags_raw = payload.get("flags", {})
        if not isinstance(flags_raw, dict):
            raise StateDocumentError("state document field 'flags' must be an object")
        return cls(
            identifier=payload["identifier"],
            install_root=payload["installRoot"],
            local_data_root=payload["localDataRoot"],
            wsl_dir=_optional_str(payload, "wslDir"),
            backing_disk_path=_optional_str(payload, "backingDiskPath"),
            install_method=method,
            linux_username=payload["linuxUsername"],
            installed_at=_optional_str(payload, "installedAt"),
            imported_at=_optional_str(payload, "importedAt"),
            updated_at=_optional_str(payload, "updatedAt"),
            flags={str(k): bool(v) for k, v in flags_raw.items()},
            extras={k: v for k, v in payload.items() if k not in KNOWN_KEYS},
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = dict(self.extras)
        payload.update(
            {
                "schema": STATE_SCHEMA,
                "identifier": self.identifier,
                "installRoot": self.install_root,
                "localDataRoot": self.local_data_root,
                "wslDir": self.wsl_dir,
                "backingDiskPath": self.backing_disk_path,
                "installMethod": self.install_method,
                "linuxUsername": self.linux_username,
                "installedAt": self.installed_at,
                "importedAt": self.imported_at,
                "updatedAt": self.updated_at,
                "flags": dict(self.flags),
            }
        )
        return payload

    def path_value(self, key: str) -> str:
        return getattr(self, _PATH_ATTRIBUTES[key])

    def with_flag(self, name: str, value: bool) -> "StateDocument":
        flags = dict(self.flags)
        flags[name] = value
        return replace(self, flags=flags)


def _optional_str(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key, "")
    return value if isinstance(value, str) else ""


@dataclass(frozen=True)
class PathChange:
    key: str
    old: str | None
    new: str

    @property
    def changed(self) -> bool:
        return self.old != self.new


@dataclass(frozen=True)
class RelocationDescriptor:
    """Old and new value for every derived path the state document records."""

    changes: tuple[PathChange, ...]

    @classmethod
    def compute(cls, document: StateDocument | None, new_paths: Mapping[str, str]) -> "RelocationDescriptor":
        changes = []
        for key in DERIVED_PATH_KEYS:
            old = document.path_value(key) if document is not None else None
            changes.append(PathChange(key=key, old=old, new=new_paths[key]))
        return cls(changes=tuple(changes))

    @property
    def drifted(self) -> tuple[PathChange, ...]:
        return tuple(change for change in self.changes if change.changed)

    @property
    def is_noop(self) -> bool:
        return not self.drifted

    def apply(self, document: StateDocument) -> StateDocument:
        updates = {_PATH_ATTRIBUTES[change.key]: change.new for change in self.changes}
        return replace(document, **updates)

    def to_dict(self) -> dict[str, dict[str, str | None]]:
        return {change.key: {"old": change.old, "new": change.new} for change in self.drifted}
