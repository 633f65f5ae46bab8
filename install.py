#!/usr/bin/env python3
"""
wslenv - Installer / reconciler for the application's WSL environment.

Keeps one WSL distribution consistent with its installation folder:
- detects drift between install_state.json, the WSL registry and ext4.vhdx
- repairs after the folder was copied to another machine or moved on disk
- fresh install from a root filesystem tarball
- export / restore of a portable archive
- uninstall (optionally keeping the disk and state for a later re-import)

Every repair is idempotent; running --repair twice changes nothing the second time.
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys

from wslenv.application.context import open_session
from wslenv.application.use_cases.drift_detector import detect_drift
from wslenv.application.use_cases.lifecycle import (
    install_fresh,
    mark_flag,
    restore_from_archive,
    startup,
    uninstall,
)
from wslenv.application.use_cases.portability import export_instance
from wslenv.domain.errors import (
    CorruptedInstallationError,
    ReconcileStepError,
    UnsafeDeletionError,
    WslEnvError,
)
from wslenv.domain.reason_codes import REASON_CODE_NONE, is_blocking
from wslenv.domain.state_document import INSTALL_METHODS
from wslenv.infrastructure.event_log import write_event
from wslenv.infrastructure.wiring import Services, build_services

VERSION = "1.0.0"

EXIT_OK = 0
EXIT_FATAL = 2
EXIT_REGISTRY_STEP = 3
EXIT_CORRUPTED = 4
EXIT_DELETE_ERRORS = 5


def eprint(*args, **kwargs):
    print(*args, file=sys.stderr, **kwargs)


def is_interactive() -> bool:
    return sys.stdin.isatty() and sys.stdout.isatty()


def exit_code_for(exc: WslEnvError) -> int:
    if isinstance(exc, ReconcileStepError):
        return EXIT_REGISTRY_STEP
    if isinstance(exc, CorruptedInstallationError):
        return EXIT_CORRUPTED
    if isinstance(exc, UnsafeDeletionError):
        return EXIT_DELETE_ERRORS
    # ConfigError, NameExhaustedError, MissingBackingDiskError, InstallPreconditionError
    return EXIT_FATAL


def record(services: Services, operation: str, identifier: str, result: str, reason_code: str, details) -> None:
    write_event(
        services.layout.logs_dir,
        operation=operation,
        identifier=identifier,
        result=result,
        reason_code=reason_code,
        details=details,
        retention_days=services.config.event_retention_days,
    )


def emit(payload: dict) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def cmd_status(services: Services, as_json: bool) -> int:
    ctx = open_session(
        services.layout,
        services.config.base_name,
        store=services.store,
        registry=services.registry,
        max_attempts=services.config.max_name_attempts,
    )
    report = detect_drift(ctx, store=services.store, registry=services.registry)
    if as_json:
        emit({"identifier": ctx.identifier, **report.to_dict()})
        return EXIT_OK
    print(f"Instance:     {ctx.identifier}")
    print(f"Install root: {ctx.install_root}")
    print(f"Backing disk: {ctx.expected_backing_disk}")
    print(f"Registered:   {report.registered_path or 'no'}")
    print(f"State file:   {report.state.status}")
    print(f"Scenario:     {report.scenario.value} ({report.detail})")
    return EXIT_OK


def cmd_repair(services: Services, as_json: bool) -> int:
    result = startup(
        services.layout,
        services.config.base_name,
        store=services.store,
        registry=services.registry,
        max_attempts=services.config.max_name_attempts,
    )
    outcome = result.outcome
    record(services, "reconcile", outcome.identifier, "ok", outcome.reason_code, outcome.to_dict())
    if as_json:
        emit(outcome.to_dict())
        return EXIT_OK
    print(f"🔍 {outcome.identifier}: {outcome.scenario.value}")
    if outcome.reason_code != REASON_CODE_NONE and not is_blocking(outcome.reason_code):
        print(f"  ⚠️  {outcome.reason_code}: {outcome.detail}")
    if not outcome.actions:
        print("  ✅ Nothing to do.")
    for action in outcome.actions:
        print(f"  ✅ {action}")
    for key, change in outcome.relocation.items():
        print(f"  ↪️  {key}: {change['old']} -> {change['new']}")
    return EXIT_OK


def cmd_install(services: Services, rootfs: Path, install_method: str, linux_user: str, as_json: bool) -> int:
    ctx = open_session(
        services.layout,
        services.config.base_name,
        store=services.store,
        registry=services.registry,
        max_attempts=services.config.max_name_attempts,
    )
    if not as_json:
        print(f"📦 Importing {rootfs} as {ctx.identifier} ...")
    outcome = install_fresh(
        ctx,
        rootfs,
        install_method=install_method,
        linux_username=linux_user,
        store=services.store,
        registry=services.registry,
    )
    record(services, "install", outcome.identifier, "ok", REASON_CODE_NONE, {"actions": list(outcome.actions)})
    if as_json:
        emit(outcome.document.to_payload())
    else:
        print(f"🎉 Installed {outcome.identifier} at {ctx.expected_backing_disk}")
    return EXIT_OK


def cmd_export(services: Services, dest_dir: Path, as_json: bool) -> int:
    result = startup(
        services.layout,
        services.config.base_name,
        store=services.store,
        registry=services.registry,
        max_attempts=services.config.max_name_attempts,
    )
    outcome = export_instance(result.context, dest_dir, registry=services.registry)
    record(services, "export", outcome.identifier, "ok", REASON_CODE_NONE, {"archive": str(outcome.archive_path)})
    if as_json:
        emit({"identifier": outcome.identifier, "archive": str(outcome.archive_path)})
    else:
        print(f"💾 Exported {outcome.identifier} -> {outcome.archive_path}")
    return EXIT_OK


def cmd_restore(services: Services, archive: Path, as_json: bool) -> int:
    ctx = open_session(
        services.layout,
        services.config.base_name,
        store=services.store,
        registry=services.registry,
        max_attempts=services.config.max_name_attempts,
    )
    outcome = restore_from_archive(ctx, archive, store=services.store, registry=services.registry)
    record(services, "restore", outcome.identifier, "ok", outcome.reason_code, outcome.to_dict())
    if as_json:
        emit(outcome.to_dict())
    else:
        print(f"♻️  Restored {outcome.identifier} from {archive}")
    return EXIT_OK


def cmd_uninstall(services: Services, keep_data: bool, force: bool) -> int:
    ctx = open_session(
        services.layout,
        services.config.base_name,
        store=services.store,
        registry=services.registry,
        max_attempts=services.config.max_name_attempts,
    )
    print(f"🧹 Uninstall {ctx.identifier} ({'keeping data' if keep_data else 'deleting disk and state'})")
    if not force and not keep_data:
        if not is_interactive():
            eprint("❌ Refusing to delete data without --force in a non-interactive session.")
            return EXIT_FATAL
        resp = input(f"Really delete {ctx.expected_backing_disk}? [y/N] ").strip().lower()
        if resp not in ("y", "yes"):
            print("Uninstall cancelled.")
            return EXIT_OK
    outcome = uninstall(ctx, keep_data=keep_data, store=services.store, registry=services.registry)
    for action in outcome.actions:
        print(f"  ✅ {action}")
    for path in outcome.removed:
        print(f"  ✅ Removed: {path}")
    record(services, "uninstall", outcome.identifier, "ok" if outcome.errors == 0 else "partial", REASON_CODE_NONE, {
        "keepData": keep_data,
        "removed": list(outcome.removed),
        "errors": outcome.errors,
    })
    if outcome.errors:
        eprint(f"❌ {outcome.errors} file(s) could not be removed.")
        return EXIT_DELETE_ERRORS
    print("\n✅ Uninstall complete.")
    return EXIT_OK


def cmd_set_flag(services: Services, assignment: str) -> int:
    name, sep, raw = assignment.partition("=")
    if not sep or raw.strip().lower() not in {"true", "false"}:
        eprint(f"❌ --set-flag expects NAME=true|false, got {assignment!r}")
        return EXIT_FATAL
    ctx = open_session(
        services.layout,
        services.config.base_name,
        store=services.store,
        registry=services.registry,
        max_attempts=services.config.max_name_attempts,
    )
    document = mark_flag(ctx, name.strip(), raw.strip().lower() == "true", store=services.store)
    print(f"✅ {name.strip()} = {document.flags[name.strip()]}")
    return EXIT_OK


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Detect and repair drift of the application's WSL environment.")
    p.add_argument(
        "--install-root",
        type=Path,
        default=Path(__file__).resolve().parent,
        help="Installation root (default: script directory).",
    )
    p.add_argument("--config", type=Path, default=None, help="YAML config file (default: <install-root>/wslenv.yaml).")
    p.add_argument("--base-name", default=None, help="Base instance name (default from config: wslenv).")

    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--status", action="store_true", help="Classify the current situation without changing anything.")
    mode.add_argument("--repair", action="store_true", help="Reconcile state, registry and disk (default action).")
    mode.add_argument("--install", type=Path, metavar="ROOTFS", default=None, help="Fresh install from a root filesystem tarball.")
    mode.add_argument("--export", type=Path, metavar="DIR", default=None, help="Export the instance to a portable archive in DIR.")
    mode.add_argument("--restore", type=Path, metavar="ARCHIVE", default=None, help="Import a portable archive as this installation.")
    mode.add_argument("--uninstall", action="store_true", help="Unregister the instance and delete its data.")
    mode.add_argument("--set-flag", metavar="NAME=BOOL", default=None, help="Set a completion flag in the state document.")

    p.add_argument("--install-method", choices=INSTALL_METHODS, default="package-manager", help="Recorded install method (--install).")
    p.add_argument("--linux-user", default="", help="Linux username recorded in the state document (--install).")
    p.add_argument("--keep-data", action="store_true", help="Uninstall: remove the registration only, keep disk and state.")
    p.add_argument("--force", action="store_true", help="Uninstall without prompting.")
    p.add_argument("--json", action="store_true", help="Print machine-readable results.")
    p.add_argument("--verbose", action="store_true", help="Debug logging to stderr.")
    return p.parse_args(argv)


def operation_name(args: argparse.Namespace) -> str:
    if args.status:
        return "status"
    if args.install is not None:
        return "install"
    if args.export is not None:
        return "export"
    if args.restore is not None:
        return "restore"
    if args.uninstall:
        return "uninstall"
    if args.set_flag is not None:
        return "set-flag"
    return "reconcile"


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.json:
        print("=" * 60)
        print("wslenv Installer")
        print(f"Installer Version: {VERSION}")
        print("=" * 60)

    operation = operation_name(args)
    services: Services | None = None
    try:
        services = build_services(args.install_root, config_path=args.config, overrides={"base_name": args.base_name})
        if operation == "status":
            return cmd_status(services, args.json)
        if operation == "install":
            return cmd_install(services, args.install, args.install_method, args.linux_user, args.json)
        if operation == "export":
            return cmd_export(services, args.export, args.json)
        if operation == "restore":
            return cmd_restore(services, args.restore, args.json)
        if operation == "uninstall":
            return cmd_uninstall(services, args.keep_data, args.force)
        if operation == "set-flag":
            return cmd_set_flag(services, args.set_flag)
        return cmd_repair(services, args.json)
    except WslEnvError as exc:
        eprint(f"❌ {exc}")
        if isinstance(exc, CorruptedInstallationError):
            eprint(f"   {exc.primary_action}")
        if services is not None and operation != "status":
            record(services, operation, services.config.base_name, "failed", exc.reason_code, {"detail": exc.detail})
        return exit_code_for(exc)


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
