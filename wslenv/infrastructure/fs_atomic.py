"""Crash-safe file writes: temp file in the target dir, fsync, ``os.replace``.

The target keeps its previous bytes until the replace succeeds. Replace is
retried briefly because antivirus scanners and indexers on Windows hold short
locks on freshly written files.
"""

from __future__ import annotations

import errno
import json
import os
from pathlib import Path
import shutil
import tempfile
import time
from typing import Any, Callable, TypeVar

T = TypeVar("T")

REPLACE_ATTEMPTS = 5
REPLACE_BACKOFF_MS = 50

_RETRYABLE_ERRNOS = {errno.EACCES, errno.EPERM, errno.EBUSY}


def is_retryable_replace_error(exc: OSError) -> bool:
    return getattr(exc, "errno", None) in _RETRYABLE_ERRNOS


def bounded_retry(fn: Callable[[], T], attempts: int = REPLACE_ATTEMPTS, backoff_ms: int = REPLACE_BACKOFF_MS) -> T:
    """Call ``fn``, retrying transient lock errors; ``fn`` always runs at least once."""

    remaining = max(attempts, 1)
    while True:
        remaining -= 1
        try:
            return fn()
        except OSError as exc:
            if remaining <= 0 or not is_retryable_replace_error(exc):
                raise
        time.sleep(backoff_ms / 1000.0)


def fsync_dir(path: Path) -> None:
    # Directory fsync is unsupported on Windows; durability there rests on os.replace.
    try:
        fd = os.open(str(path), os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


def atomic_write_bytes(path: Path, payload: bytes, *, attempts: int = REPLACE_ATTEMPTS, backoff_ms: int = REPLACE_BACKOFF_MS) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=str(path.parent),
            prefix=path.name + ".",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            temp_path = Path(tmp.name)
            tmp.write(payload)
            tmp.flush()
            os.fsync(tmp.fileno())

        def _replace() -> None:
            os.replace(str(temp_path), str(path))
            fsync_dir(path.parent)

        bounded_retry(_replace, attempts=attempts, backoff_ms=backoff_ms)
    finally:
        if temp_path is not None and temp_path.exists():
            temp_path.unlink(missing_ok=True)


def atomic_write_text(path: Path, text: str) -> None:
    atomic_write_bytes(path, text.replace("\r\n", "\n").encode("utf-8"))


def atomic_write_json(path: Path, obj: Any, *, indent: int = 2) -> None:
    atomic_write_text(path, json.dumps(obj, indent=indent, ensure_ascii=False) + "\n")


def copy_aside(path: Path, suffix: str) -> Path:
    """Keep a sibling copy of ``path`` (``<name>.<suffix>``) before it is replaced."""

    target = path.with_name(f"{path.name}.{suffix}")
    shutil.copy2(path, target)
    return target
