"""Canonical reason-code registry for installation reconciliation.

Values are emitted in CLI output and in the reconcile event log; renaming one
is a breaking change for anything that parses those records.
"""

from __future__ import annotations

from typing import Final

# Sentinel used when an operation has no blocking/warning reason.
REASON_CODE_NONE: Final[str] = "none"

# Blocking reason codes.
BLOCKED_NAME_EXHAUSTED: Final[str] = "BLOCKED-NAME-EXHAUSTED"
BLOCKED_INSTALLATION_CORRUPTED: Final[str] = "BLOCKED-INSTALLATION-CORRUPTED"
BLOCKED_STATE_UNREADABLE: Final[str] = "BLOCKED-STATE-UNREADABLE"
BLOCKED_REGISTERED_DISK_MISSING: Final[str] = "BLOCKED-REGISTERED-DISK-MISSING"
BLOCKED_BACKING_DISK_MISSING: Final[str] = "BLOCKED-BACKING-DISK-MISSING"
BLOCKED_REGISTRY_STEP_FAILED: Final[str] = "BLOCKED-REGISTRY-STEP-FAILED"
BLOCKED_CONFIG_INVALID: Final[str] = "BLOCKED-CONFIG-INVALID"
BLOCKED_INSTALL_PRECONDITION: Final[str] = "BLOCKED-INSTALL-PRECONDITION"
BLOCKED_PATH_OUTSIDE_INSTALL_ROOT: Final[str] = "BLOCKED-PATH-OUTSIDE-INSTALL-ROOT"

# Warning reason codes.
WARN_STATE_PARSE_FAILED: Final[str] = "WARN-STATE-PARSE-FAILED"
WARN_ARCHIVE_CLEANUP_FAILED: Final[str] = "WARN-ARCHIVE-CLEANUP-FAILED"
WARN_STATE_PATHS_DRIFTED: Final[str] = "WARN-STATE-PATHS-DRIFTED"
WARN_EVENT_LOG_UNAVAILABLE: Final[str] = "WARN-EVENT-LOG-UNAVAILABLE"

CANONICAL_REASON_CODES: Final[tuple[str, ...]] = (
    BLOCKED_NAME_EXHAUSTED,
    BLOCKED_INSTALLATION_CORRUPTED,
    BLOCKED_STATE_UNREADABLE,
    BLOCKED_REGISTERED_DISK_MISSING,
    BLOCKED_BACKING_DISK_MISSING,
    BLOCKED_REGISTRY_STEP_FAILED,
    BLOCKED_CONFIG_INVALID,
    BLOCKED_INSTALL_PRECONDITION,
    BLOCKED_PATH_OUTSIDE_INSTALL_ROOT,
    WARN_STATE_PARSE_FAILED,
    WARN_ARCHIVE_CLEANUP_FAILED,
    WARN_STATE_PATHS_DRIFTED,
    WARN_EVENT_LOG_UNAVAILABLE,
)


def is_blocking(reason_code: str) -> bool:
    return reason_code.startswith("BLOCKED-")
