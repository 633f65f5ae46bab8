"""Export an instance to a portable archive, or import archive/raw disk.

When both an archive and a raw backing disk are present the archive wins: the
raw disk may be a partial copy, the archive is only written by a completed
export. The raw disk is moved aside, never deleted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from pathlib import Path
from typing import Literal

from wslenv.application.context import SessionContext
from wslenv.application.ports.registry import RegistrationRegistry
from wslenv.application.use_cases.registry_steps import RegistrySteps
from wslenv.domain.errors import MissingBackingDiskError, ReconcileStepError
from wslenv.domain.reason_codes import WARN_ARCHIVE_CLEANUP_FAILED

logger = logging.getLogger(__name__)

ImportSource = Literal["archive", "disk"]


@dataclass(frozen=True)
class ExportOutcome:
    identifier: str
    archive_path: Path
    actions: tuple[str, ...]


@dataclass(frozen=True)
class ImportOutcome:
    source: ImportSource
    archive_removed: bool
    superseded_disk: Path | None


def _stamp(now_utc: datetime | None) -> str:
    return (now_utc or datetime.now(timezone.utc)).strftime("%Y%m%d-%H%M%S")


def export_archive_name(identifier: str, now_utc: datetime | None = None) -> str:
    return f"{identifier}-{_stamp(now_utc)}.tar"


def export_instance(
    ctx: SessionContext,
    dest_dir: Path,
    *,
    registry: RegistrationRegistry,
    now_utc: datetime | None = None,
) -> ExportOutcome:
    """Shut everything down and serialize the instance; registration stays as is."""

    steps = RegistrySteps(registry=registry, scenario="export")
    steps.file_step("prepare_export_dir", lambda: dest_dir.mkdir(parents=True, exist_ok=True))
    archive_path = dest_dir / export_archive_name(ctx.identifier, now_utc)
    steps.shutdown_all()
    steps.export_archive(ctx.identifier, archive_path)
    logger.info("exported %s to %s", ctx.identifier, archive_path)
    return ExportOutcome(identifier=ctx.identifier, archive_path=archive_path, actions=tuple(steps.actions))


def import_instance(ctx: SessionContext, steps: RegistrySteps, *, now_utc: datetime | None = None) -> ImportOutcome:
    """Register the instance from the archive slot, or in place from the raw disk.

    The caller is responsible for ``shutdown_all()`` beforehand.
    """

    layout = ctx.layout
    archive = layout.portable_archive
    disk = layout.backing_disk

    if archive.is_file():
        superseded: Path | None = None
        if disk.exists():
            aside = disk.with_name(f"{disk.name}.superseded-{_stamp(now_utc)}")
            steps.file_step("move_aside", lambda: disk.rename(aside), label=f"move_aside:{disk.name}")
            superseded = aside
        try:
            steps.import_archive(ctx.identifier, layout.wsl_dir, archive)
        except ReconcileStepError:
            if superseded is not None and not disk.exists():
                _restore_superseded(superseded, disk)
            raise
        return ImportOutcome(source="archive", archive_removed=remove_imported_archive(archive, steps), superseded_disk=superseded)

    if disk.is_file():
        steps.register_in_place(ctx.identifier, disk)
        return ImportOutcome(source="disk", archive_removed=False, superseded_disk=None)

    raise MissingBackingDiskError(
        detail=f"neither archive nor backing disk present under {layout.wsl_dir}",
        expected_path=str(disk),
    )


def _restore_superseded(superseded: Path, disk: Path) -> None:
    try:
        superseded.rename(disk)
    except OSError as exc:
        logger.error("import failed and %s could not be moved back to %s: %s", superseded, disk, exc)
        return
    logger.warning("import failed; restored %s", disk)


def remove_imported_archive(archive: Path, steps: RegistrySteps) -> bool:
    """Best-effort removal of an archive whose content is already registered.

    After a successful import the disk is the source of truth; a leftover
    archive would win over it on the next import.
    """

    try:
        archive.unlink()
    except OSError as exc:
        logger.warning("%s: could not remove imported archive %s: %s", WARN_ARCHIVE_CLEANUP_FAILED, archive, exc)
        return False
    steps.note(f"remove_archive:{archive.name}")
    return True
