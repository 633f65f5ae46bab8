"""Per-event JSON audit records for reconcile, install, export and uninstall.

One file per event (no append) so a write is a single atomic replace:
``<localDataRoot>/logs/events-<YYYY-MM-DD>-<id>.json``. Writing is
best-effort; failures are logged and never abort the operation they describe.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
import logging
from pathlib import Path
import re
from typing import Any
import uuid

from wslenv.domain.reason_codes import REASON_CODE_NONE, WARN_EVENT_LOG_UNAVAILABLE
from wslenv.infrastructure.fs_atomic import atomic_write_json

logger = logging.getLogger(__name__)

EVENT_SCHEMA = "wslenv.event.v1"
DEFAULT_RETENTION_DAYS = 30

_EVENT_FILE = re.compile(r"^events-(\d{4}-\d{2}-\d{2})-[a-f0-9]{32}\.json$")


def _normalize_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(k): _normalize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_value(v) for v in value]
    return str(value)


def _extract_log_date(name: str) -> date | None:
    match = _EVENT_FILE.match(name)
    if not match:
        return None
    try:
        return datetime.strptime(match.group(1), "%Y-%m-%d").date()
    except ValueError:
        return None


def prune_old_events(log_dir: Path, keep_days: int, *, today: date | None = None) -> int:
    if keep_days <= 0 or not log_dir.is_dir():
        return 0
    cutoff = (today or datetime.now(timezone.utc).date()) - timedelta(days=keep_days)
    removed = 0
    for path in log_dir.glob("events-*.json"):
        day = _extract_log_date(path.name)
        if day is None or day >= cutoff:
            continue
        try:
            path.unlink()
            removed += 1
        except OSError as exc:
            logger.debug("could not prune %s: %s", path, exc)
    return removed


def write_event(
    log_dir: Path,
    *,
    operation: str,
    identifier: str,
    result: str,
    reason_code: str = REASON_CODE_NONE,
    details: Any = None,
    retention_days: int = DEFAULT_RETENTION_DAYS,
    now_utc: datetime | None = None,
) -> Path | None:
    now = now_utc or datetime.now(timezone.utc)
    event_id = uuid.uuid4().hex
    target = log_dir / f"events-{now.date().isoformat()}-{event_id}.json"
    record = {
        "schema": EVENT_SCHEMA,
        "eventId": event_id,
        "timestamp": now.isoformat(timespec="seconds"),
        "operation": operation,
        "identifier": identifier,
        "result": result,
        "reasonCode": reason_code,
        "details": _normalize_value(details),
    }
    try:
        atomic_write_json(target, record)
        prune_old_events(log_dir, retention_days, today=now.date())
    except OSError as exc:
        logger.warning("%s: event log unavailable at %s: %s", WARN_EVENT_LOG_UNAVAILABLE, log_dir, exc)
        return None
    return target
