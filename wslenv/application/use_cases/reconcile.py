"""Bring state document, registry and backing disk back into agreement.

Each branch performs the smallest set of operations for its scenario and is
safe to re-run: once an installation is repaired, the next call classifies it
as AlreadyCorrect and touches nothing in the registry. A crash half-way through
leaves a situation the detector still classifies, so the next run resumes.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
import logging
from typing import Any

from wslenv.application.context import SessionContext
from wslenv.application.ports.registry import RegistrationRegistry
from wslenv.application.ports.state_store import StateStore
from wslenv.application.use_cases.drift_detector import DriftReport
from wslenv.application.use_cases.portability import import_instance, remove_imported_archive
from wslenv.application.use_cases.registry_steps import RegistrySteps
from wslenv.domain.drift import Scenario
from wslenv.domain.errors import CorruptedInstallationError, MissingBackingDiskError
from wslenv.domain.reason_codes import REASON_CODE_NONE, WARN_ARCHIVE_CLEANUP_FAILED
from wslenv.domain.state_document import FLAG_INSTALL_COMPLETE, RelocationDescriptor, StateDocument

logger = logging.getLogger(__name__)

DEFAULT_ADOPTED_INSTALL_METHOD = "local-copy"


@dataclass(frozen=True)
class ReconcileOutcome:
    scenario: Scenario
    identifier: str
    actions: tuple[str, ...] = ()
    registry_mutations: int = 0
    state_written: bool = False
    reason_code: str = REASON_CODE_NONE
    detail: str = ""
    relocation: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenario": self.scenario.value,
            "identifier": self.identifier,
            "actions": list(self.actions),
            "registryMutations": self.registry_mutations,
            "stateWritten": self.state_written,
            "reasonCode": self.reason_code,
            "detail": self.detail,
            "relocation": self.relocation,
        }


def reconcile(
    ctx: SessionContext,
    report: DriftReport,
    *,
    store: StateStore,
    registry: RegistrationRegistry,
    now_utc: datetime | None = None,
) -> ReconcileOutcome:
    scenario = report.scenario
    steps = RegistrySteps(registry=registry, scenario=scenario.value)

    if scenario is Scenario.NO_INSTALLATION:
        return ReconcileOutcome(scenario=scenario, identifier=ctx.identifier, reason_code=report.reason_code, detail=report.detail)

    if scenario is Scenario.CORRUPTED:
        raise CorruptedInstallationError(reason_code=report.reason_code, detail=report.detail)

    if scenario is Scenario.NEEDS_IMPORT:
        steps.shutdown_all()
        imported = import_instance(ctx, steps, now_utc=now_utc)
        descriptor, written = _rewrite_state(ctx, report, store, steps, imported=True, now_utc=now_utc)
        detail = f"imported from {imported.source}"
        if imported.superseded_disk is not None:
            detail += f"; previous disk kept at {imported.superseded_disk}"
        reason = report.reason_code
        if imported.source == "archive" and not imported.archive_removed:
            reason = WARN_ARCHIVE_CLEANUP_FAILED
        return _outcome(ctx, report, steps, descriptor, written, detail, reason_code=reason)

    if scenario is Scenario.NEEDS_RELOCATION_REPAIR:
        disk = ctx.expected_backing_disk
        if not disk.is_file():
            raise MissingBackingDiskError(
                detail=f"relocation repair needs the backing disk at {disk}",
                expected_path=str(disk),
            )
        observation = report.observation
        if observation.registered and not observation.registered_path_matches:
            steps.shutdown_all()
            steps.remove_registration_only(ctx.identifier)
            steps.register_in_place(ctx.identifier, disk)
        elif not observation.registered:
            steps.register_in_place(ctx.identifier, disk)
        descriptor, written = _rewrite_state(ctx, report, store, steps, imported=False, now_utc=now_utc)
        cleanup = _retry_archive_cleanup(ctx, report, steps)
        return _outcome(ctx, report, steps, descriptor, written, report.detail, reason_code=cleanup)

    # AlreadyCorrect: state rewritten only when derived paths drifted.
    document = report.state.document
    descriptor = RelocationDescriptor.compute(document, ctx.layout.derived_paths())
    if document is not None and descriptor.is_noop and document.identifier == ctx.identifier:
        cleanup = _retry_archive_cleanup(ctx, report, steps)
        if not steps.actions and cleanup is None:
            return ReconcileOutcome(scenario=scenario, identifier=ctx.identifier, reason_code=report.reason_code, detail=report.detail)
        return _outcome(ctx, report, steps, descriptor, False, "leftover archive cleanup", reason_code=cleanup)
    descriptor, written = _rewrite_state(ctx, report, store, steps, imported=False, now_utc=now_utc)
    cleanup = _retry_archive_cleanup(ctx, report, steps)
    return _outcome(ctx, report, steps, descriptor, written, "state document paths refreshed", reason_code=cleanup)


def _outcome(
    ctx: SessionContext,
    report: DriftReport,
    steps: RegistrySteps,
    descriptor: RelocationDescriptor,
    written: bool,
    detail: str,
    *,
    reason_code: str | None = None,
) -> ReconcileOutcome:
    return ReconcileOutcome(
        scenario=report.scenario,
        identifier=ctx.identifier,
        actions=tuple(steps.actions),
        registry_mutations=steps.mutations,
        state_written=written,
        reason_code=reason_code or report.reason_code,
        detail=detail,
        relocation=descriptor.to_dict(),
    )


def _retry_archive_cleanup(ctx: SessionContext, report: DriftReport, steps: RegistrySteps) -> str | None:
    """Remove an archive left behind by an earlier import whose cleanup failed.

    Only called once the registration points at our disk, so the archive is
    stale. Returns the warning code when it still cannot be removed.
    """

    if not report.observation.archive_present:
        return None
    if remove_imported_archive(ctx.layout.portable_archive, steps):
        return None
    return WARN_ARCHIVE_CLEANUP_FAILED


def _adopted_document(ctx: SessionContext) -> StateDocument:
    """Fresh document for data found without a readable state file."""

    paths = ctx.layout.derived_paths()
    return StateDocument(
        identifier=ctx.identifier,
        install_root=paths["installRoot"],
        local_data_root=paths["localDataRoot"],
        wsl_dir=paths["wslDir"],
        backing_disk_path=paths["backingDiskPath"],
        install_method=DEFAULT_ADOPTED_INSTALL_METHOD,
        linux_username="",
        flags={FLAG_INSTALL_COMPLETE: True},
    )


def _rewrite_state(
    ctx: SessionContext,
    report: DriftReport,
    store: StateStore,
    steps: RegistrySteps,
    *,
    imported: bool,
    now_utc: datetime | None,
) -> tuple[RelocationDescriptor, bool]:
    current = report.state.document if report.state.is_valid else None
    descriptor = RelocationDescriptor.compute(current, ctx.layout.derived_paths())
    base = current if current is not None else _adopted_document(ctx)
    document = replace(descriptor.apply(base), identifier=ctx.identifier)
    if imported:
        document = replace(document, imported_at=(now_utc or datetime.now(timezone.utc)).isoformat(timespec="seconds"))
    steps.file_step("save_state", lambda: store.save(document), label="save_state")
    if not descriptor.is_noop:
        logger.info("state document paths rewritten: %s", ", ".join(change.key for change in descriptor.drifted))
    return descriptor, True
