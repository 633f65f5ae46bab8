"""Registry and file mutation steps with failure wrapping and an action trail."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Callable, TypeVar

from wslenv.application.ports.registry import CommandResult, RegistrationRegistry
from wslenv.domain.errors import ReconcileStepError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_file_step(operation: str, scenario: str, fn: Callable[[], T]) -> T:
    """Run a filesystem step; an ``OSError`` surfaces as ``ReconcileStepError``."""

    try:
        return fn()
    except OSError as exc:
        logger.error("%s failed during %s: %s", operation, scenario, exc)
        raise ReconcileStepError(
            detail=str(exc),
            operation=operation,
            scenario=scenario,
            exit_code=exc.errno,
        ) from exc


@dataclass
class RegistrySteps:
    """Runs mutating registry calls for one operation.

    Every call is recorded in ``actions``; a failed call raises
    ``ReconcileStepError`` carrying the operation and scenario names.
    """

    registry: RegistrationRegistry
    scenario: str
    actions: list[str] = field(default_factory=list)
    mutations: int = 0

    def _run(self, operation: str, label: str, result: CommandResult) -> CommandResult:
        self.mutations += 1
        self.actions.append(label)
        if not result.success:
            logger.error("%s failed during %s: %s (exit=%s)", operation, self.scenario, result.message, result.exit_code)
            raise ReconcileStepError(
                detail=result.message,
                operation=operation,
                scenario=self.scenario,
                exit_code=result.exit_code,
            )
        logger.debug("%s ok during %s", label, self.scenario)
        return result

    def shutdown_all(self) -> CommandResult:
        return self._run("shutdown_all", "shutdown_all", self.registry.shutdown_all())

    def register_in_place(self, name: str, disk_path: Path) -> CommandResult:
        return self._run(
            "register_in_place",
            f"register_in_place:{name}",
            self.registry.register_in_place(name, disk_path),
        )

    def remove_registration_only(self, name: str) -> CommandResult:
        return self._run(
            "remove_registration_only",
            f"remove_registration_only:{name}",
            self.registry.remove_registration_only(name),
        )

    def unregister(self, name: str) -> CommandResult:
        return self._run("unregister", f"unregister:{name}", self.registry.unregister(name))

    def import_archive(self, name: str, dest_root: Path, archive_path: Path) -> CommandResult:
        return self._run(
            "import_archive",
            f"import_archive:{name}",
            self.registry.import_archive(name, dest_root, archive_path),
        )

    def export_archive(self, name: str, dest_path: Path) -> CommandResult:
        return self._run(
            "export_archive",
            f"export_archive:{name}",
            self.registry.export_archive(name, dest_path),
        )

    def file_step(self, operation: str, fn: Callable[[], T], *, label: str | None = None) -> T:
        """Run a file move or state write; recorded in the trail once it succeeded."""

        result = run_file_step(operation, self.scenario, fn)
        if label is not None:
            self.actions.append(label)
        return result

    def note(self, label: str) -> None:
        """Record a non-registry action in the trail."""

        self.actions.append(label)
