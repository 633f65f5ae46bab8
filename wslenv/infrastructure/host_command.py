"""Run host tools and fold the outcome into a ``CommandResult``."""

from __future__ import annotations

import logging
import os
import subprocess
from typing import Callable, Mapping, Sequence

from wslenv.application.ports.registry import CommandResult

logger = logging.getLogger(__name__)

EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124

CommandRunner = Callable[[Sequence[str]], CommandResult]


def decode_output(data: bytes | None) -> str:
    """Decode host tool output; wsl.exe writes UTF-16LE unless WSL_UTF8=1."""

    if not data:
        return ""
    if data.startswith(b"\xff\xfe"):
        return data[2:].decode("utf-16-le", errors="replace")
    if len(data) % 2 == 0 and b"\x00" in data[1::2]:
        return data.decode("utf-16-le", errors="replace")
    return data.decode("utf-8", errors="replace")


def run_command(
    argv: Sequence[str],
    *,
    timeout_seconds: float | None = None,
    env: Mapping[str, str] | None = None,
) -> CommandResult:
    """Run ``argv`` without a shell. Never raises for tool failures."""

    merged_env = dict(os.environ)
    merged_env.setdefault("WSL_UTF8", "1")
    if env:
        merged_env.update(env)
    args = tuple(str(a) for a in argv)
    logger.debug("exec %s", " ".join(args))
    try:
        proc = subprocess.run(
            list(args),
            capture_output=True,
            check=False,
            timeout=timeout_seconds,
            env=merged_env,
        )
    except FileNotFoundError:
        return CommandResult.failed(f"executable not found: {args[0]}", exit_code=EXIT_NOT_FOUND, argv=args)
    except subprocess.TimeoutExpired:
        return CommandResult.failed(f"timed out after {timeout_seconds}s: {' '.join(args)}", exit_code=EXIT_TIMEOUT, argv=args)

    stdout = decode_output(proc.stdout)
    stderr = decode_output(proc.stderr)
    if proc.returncode == 0:
        return CommandResult(success=True, message="ok", exit_code=0, argv=args, stdout=stdout, stderr=stderr)
    message = (stderr.strip() or stdout.strip() or f"exit code {proc.returncode}").replace("\x00", "")
    return CommandResult(success=False, message=message, exit_code=proc.returncode, argv=args, stdout=stdout, stderr=stderr)
