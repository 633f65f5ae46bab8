"""Install, uninstall and restore flows built on detection and reconciliation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from pathlib import Path
import shutil

from wslenv.application.context import SessionContext, open_session
from wslenv.application.ports.registry import RegistrationRegistry
from wslenv.application.ports.state_store import StateStore
from wslenv.application.use_cases.drift_detector import DriftReport, detect_drift
from wslenv.application.use_cases.reconcile import ReconcileOutcome, reconcile
from wslenv.application.use_cases.registry_steps import RegistrySteps, run_file_step
from wslenv.domain.disk_paths import same_disk_path
from wslenv.domain.drift import Scenario
from wslenv.domain.errors import InstallPreconditionError, UnsafeDeletionError
from wslenv.domain.install_layout import InstallLayout
from wslenv.domain.naming import DEFAULT_MAX_NAME_ATTEMPTS
from wslenv.domain.state_document import (
    FLAG_INSTALL_COMPLETE,
    FLAG_MAIN_APPLICATION_PRESENT,
    INSTALL_METHODS,
    InstallMethod,
    StateDocument,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StartupResult:
    context: SessionContext
    report: DriftReport
    outcome: ReconcileOutcome


@dataclass(frozen=True)
class InstallOutcome:
    identifier: str
    document: StateDocument
    actions: tuple[str, ...]


@dataclass(frozen=True)
class UninstallOutcome:
    identifier: str
    kept_data: bool
    actions: tuple[str, ...]
    removed: tuple[str, ...]
    errors: int


def startup(
    layout: InstallLayout,
    base_name: str,
    *,
    store: StateStore,
    registry: RegistrationRegistry,
    max_attempts: int = DEFAULT_MAX_NAME_ATTEMPTS,
    now_utc: datetime | None = None,
) -> StartupResult:
    """Resolve the identifier, classify, and repair. Run once per program start."""

    ctx = open_session(layout, base_name, store=store, registry=registry, max_attempts=max_attempts)
    report = detect_drift(ctx, store=store, registry=registry)
    outcome = reconcile(ctx, report, store=store, registry=registry, now_utc=now_utc)
    return StartupResult(context=ctx, report=report, outcome=outcome)


def install_fresh(
    ctx: SessionContext,
    rootfs: Path,
    *,
    install_method: InstallMethod,
    linux_username: str,
    store: StateStore,
    registry: RegistrationRegistry,
    now_utc: datetime | None = None,
) -> InstallOutcome:
    """Import a root filesystem tarball and create the state document."""

    if install_method not in INSTALL_METHODS:
        raise InstallPreconditionError(detail=f"unsupported install method: {install_method!r}")
    if not rootfs.is_file():
        raise InstallPreconditionError(detail=f"root filesystem archive not found: {rootfs}")
    report = detect_drift(ctx, store=store, registry=registry)
    if report.scenario is not Scenario.NO_INSTALLATION:
        raise InstallPreconditionError(
            detail=f"an installation is already present ({report.scenario.value}); repair or uninstall it first"
        )

    layout = ctx.layout
    steps = RegistrySteps(registry=registry, scenario="install")
    steps.file_step("prepare_wsl_dir", lambda: layout.wsl_dir.mkdir(parents=True, exist_ok=True))
    steps.import_archive(ctx.identifier, layout.wsl_dir, rootfs)

    paths = layout.derived_paths()
    document = StateDocument(
        identifier=ctx.identifier,
        install_root=paths["installRoot"],
        local_data_root=paths["localDataRoot"],
        wsl_dir=paths["wslDir"],
        backing_disk_path=paths["backingDiskPath"],
        install_method=install_method,
        linux_username=linux_username,
        installed_at=(now_utc or datetime.now(timezone.utc)).isoformat(timespec="seconds"),
        flags={FLAG_INSTALL_COMPLETE: True, FLAG_MAIN_APPLICATION_PRESENT: False},
    )
    saved = steps.file_step("save_state", lambda: store.save(document), label="save_state")
    logger.info("installed %s at %s", ctx.identifier, layout.backing_disk)
    return InstallOutcome(identifier=ctx.identifier, document=saved, actions=tuple(steps.actions))


def mark_flag(ctx: SessionContext, name: str, value: bool, *, store: StateStore) -> StateDocument:
    loaded = store.load()
    if not loaded.is_valid or loaded.document is None:
        raise InstallPreconditionError(detail=f"cannot set flag {name!r}: no readable state document ({loaded.status})")
    updated = loaded.document.with_flag(name, value)
    return run_file_step("save_state", "set_flag", lambda: store.save(updated))


def restore_from_archive(
    ctx: SessionContext,
    archive: Path,
    *,
    store: StateStore,
    registry: RegistrationRegistry,
    now_utc: datetime | None = None,
) -> ReconcileOutcome:
    """Place an external archive in the archive slot and import it."""

    if not archive.is_file():
        raise InstallPreconditionError(detail=f"archive not found: {archive}")
    if registry.is_registered(ctx.identifier):
        raise InstallPreconditionError(
            detail=f"instance {ctx.identifier} is registered; uninstall with --keep-data or pick another name first"
        )
    slot = ctx.layout.portable_archive
    run_file_step("stage_archive", "restore", lambda: _stage_archive(archive, slot))
    report = detect_drift(ctx, store=store, registry=registry)
    return reconcile(ctx, report, store=store, registry=registry, now_utc=now_utc)


def uninstall(
    ctx: SessionContext,
    *,
    keep_data: bool,
    store: StateStore,
    registry: RegistrationRegistry,
) -> UninstallOutcome:
    """Remove the registration; with ``keep_data`` the disk and state survive.

    An instance registered under our identifier but against another disk
    belongs to a different installation and is left alone.
    """

    layout = ctx.layout
    targets = [layout.portable_archive, layout.backing_disk]
    targets.extend(sorted(layout.wsl_dir.glob(f"{layout.backing_disk.name}.superseded-*")))
    if not keep_data:
        # Checked before any registry call: unregister deletes the disk too.
        for target in (*targets, layout.state_file, layout.wsl_dir):
            if not layout.contains(target):
                raise UnsafeDeletionError(detail="refusing to delete outside the install root", target=str(target))

    steps = RegistrySteps(registry=registry, scenario="uninstall")
    ours = registry.is_registered(ctx.identifier) and same_disk_path(
        registry.backing_path(ctx.identifier), layout.backing_disk
    )

    if keep_data:
        if ours:
            steps.shutdown_all()
            steps.remove_registration_only(ctx.identifier)
        return UninstallOutcome(ctx.identifier, True, tuple(steps.actions), (), 0)

    if ours:
        steps.shutdown_all()
        steps.unregister(ctx.identifier)

    removed: list[str] = []
    errors = 0
    for target in targets:
        if not target.exists():
            continue
        try:
            target.unlink()
        except OSError as exc:
            logger.error("failed removing %s: %s", target, exc)
            errors += 1
            continue
        removed.append(str(target))

    if steps.file_step("delete_state", store.delete):
        removed.append(str(layout.state_file))
    _try_remove_empty_dir(layout.wsl_dir)
    return UninstallOutcome(ctx.identifier, False, tuple(steps.actions), tuple(removed), errors)


def _stage_archive(archive: Path, slot: Path) -> None:
    slot.parent.mkdir(parents=True, exist_ok=True)
    if not (slot.exists() and slot.samefile(archive)):
        shutil.copy2(archive, slot)


def _try_remove_empty_dir(path: Path) -> None:
    if not path.is_dir():
        return
    try:
        if any(path.iterdir()):
            return
        path.rmdir()
    except OSError as exc:
        logger.debug("left directory %s in place: %s", path, exc)
