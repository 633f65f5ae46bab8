"""JSON file repository for the installation state document.

Loading never raises for malformed content; it returns a three-way
``StateLoadResult`` so callers can tell "never installed" from "state file
damaged". A damaged file is copied aside before the first successful rewrite
replaces it, so its bytes are never silently lost.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
import json
import logging
from pathlib import Path
from typing import Any, Callable

from wslenv.application.ports.state_store import StateLoadResult
from wslenv.domain.reason_codes import WARN_STATE_PARSE_FAILED
from wslenv.domain.state_document import KNOWN_KEYS, StateDocument, StateDocumentError
from wslenv.infrastructure.fs_atomic import atomic_write_json, copy_aside

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FileStateStore:
    """Repository for ``<localDataRoot>/install_state.json``."""

    def __init__(self, path: Path, *, clock: Callable[[], datetime] = _utc_now):
        self.path = path
        self._clock = clock

    def _read_payload(self) -> tuple[Any, str]:
        """Return ``(payload, error)``; payload is None when unreadable."""

        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None, "absent"
        except (OSError, UnicodeDecodeError) as exc:
            return None, f"unreadable: {exc}"
        try:
            return json.loads(raw), ""
        except json.JSONDecodeError as exc:
            return None, f"invalid JSON: {exc}"

    def load(self) -> StateLoadResult:
        payload, error = self._read_payload()
        if error == "absent":
            return StateLoadResult(status="absent")
        if error:
            logger.warning("%s: state document %s treated as unreadable (%s)", WARN_STATE_PARSE_FAILED, self.path, error)
            return StateLoadResult(status="parse_error", detail=error)
        try:
            document = StateDocument.from_payload(payload)
        except StateDocumentError as exc:
            logger.warning("%s: state document %s failed validation (%s)", WARN_STATE_PARSE_FAILED, self.path, exc)
            return StateLoadResult(status="parse_error", detail=str(exc))
        return StateLoadResult(status="valid", document=document)

    def merge_unknown_fields(self, document: StateDocument) -> StateDocument:
        """Carry over on-disk fields this schema does not model.

        Caller-supplied extras win over on-disk values for the same key.
        """

        payload, error = self._read_payload()
        if error or not isinstance(payload, dict):
            return document
        carried = {k: v for k, v in payload.items() if k not in KNOWN_KEYS}
        if not carried:
            return document
        carried.update(document.extras)
        return replace(document, extras=carried)

    def save(self, document: StateDocument) -> StateDocument:
        """Atomically persist ``document`` stamped with ``updatedAt``; returns what was written."""

        merged = self.merge_unknown_fields(document)
        stamped = replace(merged, updated_at=self._clock().isoformat(timespec="seconds"))
        if self.path.exists() and self.load().status == "parse_error":
            kept = copy_aside(self.path, "unreadable-" + self._clock().strftime("%Y%m%d-%H%M%S"))
            logger.warning("kept unreadable state document as %s", kept)
        atomic_write_json(self.path, stamped.to_payload())
        return stamped

    def delete(self) -> bool:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        return True
