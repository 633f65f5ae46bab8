"""Fatal error taxonomy for installation reconciliation.

Recoverable external-tool failures travel as ``CommandResult`` values; only
conditions that make continuing meaningless are raised.
"""

from __future__ import annotations

from dataclasses import dataclass

from wslenv.domain.reason_codes import (
    BLOCKED_BACKING_DISK_MISSING,
    BLOCKED_CONFIG_INVALID,
    BLOCKED_INSTALL_PRECONDITION,
    BLOCKED_INSTALLATION_CORRUPTED,
    BLOCKED_NAME_EXHAUSTED,
    BLOCKED_PATH_OUTSIDE_INSTALL_ROOT,
    BLOCKED_REGISTRY_STEP_FAILED,
)


@dataclass(frozen=True)
class WslEnvError(Exception):
    """Base class; every fatal error carries a stable reason code."""

    reason_code: str
    detail: str = ""

    def __str__(self) -> str:
        return f"{self.reason_code}: {self.detail}"


@dataclass(frozen=True)
class NameExhaustedError(WslEnvError):
    reason_code: str = BLOCKED_NAME_EXHAUSTED
    base_name: str = ""
    attempts: int = 0


@dataclass(frozen=True)
class CorruptedInstallationError(WslEnvError):
    """State says something is installed but no data backs it."""

    reason_code: str = BLOCKED_INSTALLATION_CORRUPTED
    primary_action: str = "Run a fresh install (install.py --install <rootfs.tar>)."


@dataclass(frozen=True)
class MissingBackingDiskError(WslEnvError):
    reason_code: str = BLOCKED_BACKING_DISK_MISSING
    expected_path: str = ""


@dataclass(frozen=True)
class ReconcileStepError(WslEnvError):
    """A registry step failed; wraps the low-level result with its context."""

    reason_code: str = BLOCKED_REGISTRY_STEP_FAILED
    operation: str = ""
    scenario: str = ""
    exit_code: int | None = None

    def __str__(self) -> str:
        return f"{self.reason_code}: {self.operation} failed during {self.scenario} (exit={self.exit_code}): {self.detail}"


@dataclass(frozen=True)
class ConfigError(WslEnvError):
    reason_code: str = BLOCKED_CONFIG_INVALID


@dataclass(frozen=True)
class InstallPreconditionError(WslEnvError):
    reason_code: str = BLOCKED_INSTALL_PRECONDITION


@dataclass(frozen=True)
class UnsafeDeletionError(WslEnvError):
    reason_code: str = BLOCKED_PATH_OUTSIDE_INSTALL_ROOT
    target: str = ""
