"""Instance identifier naming convention: ``base``, ``base_1``, ``base_2``, ..."""

from __future__ import annotations

import re
from typing import Iterator

DEFAULT_MAX_NAME_ATTEMPTS = 100

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,63}$")


def validate_base_name(base: str) -> str:
    token = str(base or "").strip()
    if not _NAME_PATTERN.fullmatch(token):
        raise ValueError(f"invalid instance base name: {base!r}; expected [A-Za-z0-9._-], max 64 chars")
    return token


def candidate_name(base: str, index: int) -> str:
    if index < 0:
        raise ValueError("candidate index must be >= 0")
    return base if index == 0 else f"{base}_{index}"


def candidate_names(base: str, max_attempts: int = DEFAULT_MAX_NAME_ATTEMPTS) -> Iterator[str]:
    """Yield at most ``max_attempts`` candidates in probe order."""

    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    for index in range(max_attempts):
        yield candidate_name(base, index)
