from __future__ import annotations

from pathlib import Path, PureWindowsPath

_EXTENDED_PREFIX = "\\\\?\\"
_EXTENDED_UNC_PREFIX = "\\\\?\\UNC\\"


def normalize_disk_path(raw: str | Path | None) -> str:
    """Comparison key for backing-disk paths reported by different sources.

    The host registry reports Windows paths (sometimes with the ``\\\\?\\``
    extended prefix); the state document stores whatever ``Path`` produced.
    Keys are separator-unified and case-folded.
    """

    token = str(raw or "").strip()
    if not token:
        return ""
    if token.startswith(_EXTENDED_UNC_PREFIX):
        token = "\\\\" + token[len(_EXTENDED_UNC_PREFIX):]
    elif token.startswith(_EXTENDED_PREFIX):
        token = token[len(_EXTENDED_PREFIX):]
    token = token.replace("\\", "/")
    while len(token) > 1 and token.endswith("/") and not token.endswith(":/"):
        token = token[:-1]
    return token.casefold()


def same_disk_path(left: str | Path | None, right: str | Path | None) -> bool:
    a = normalize_disk_path(left)
    return bool(a) and a == normalize_disk_path(right)


def join_registry_path(base_path: str, file_name: str) -> str:
    """Join a registry ``BasePath`` with a disk file name the way the host does."""

    base = base_path.strip()
    if base.startswith(_EXTENDED_PREFIX) and not base.startswith(_EXTENDED_UNC_PREFIX):
        base = base[len(_EXTENDED_PREFIX):]
    return str(PureWindowsPath(base) / file_name)
