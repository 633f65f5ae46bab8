from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from wslenv.domain.drift import StateStatus
from wslenv.domain.state_document import StateDocument


@dataclass(frozen=True)
class StateLoadResult:
    """Three-way load outcome; ``document`` is set only when status is valid."""

    status: StateStatus
    document: StateDocument | None = None
    detail: str = ""

    @property
    def is_valid(self) -> bool:
        return self.status == "valid" and self.document is not None


class StateStore(Protocol):
    def load(self) -> StateLoadResult: ...

    def save(self, document: StateDocument) -> StateDocument: ...

    def merge_unknown_fields(self, document: StateDocument) -> StateDocument: ...

    def delete(self) -> bool: ...
