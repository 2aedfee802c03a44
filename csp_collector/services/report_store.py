from __future__ import annotations

import json
import logging
import threading
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional

from csp_collector.schemas.report_models import CanonicalReport
from csp_collector.services import config_loader

logger = logging.getLogger(__name__)

# Set by tests or embedding code; None means "use the configured directory".
_STORAGE_DIR: Optional[Path] = None

_locks_guard = threading.Lock()
_day_locks: Dict[str, threading.Lock] = {}


class ReportStoreError(Exception):
    """The day's log could not be read or written."""


def _storage_dir() -> Path:
    if _STORAGE_DIR is not None:
        return Path(_STORAGE_DIR)
    return config_loader.storage_dir()


def _day_key(day: date) -> str:
    return day.strftime("%Y-%m-%d")


def _lock_for(day: date) -> threading.Lock:
    key = _day_key(day)
    with _locks_guard:
        lock = _day_locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _day_locks[key] = lock
        return lock


def path_for(day: date) -> Path:
    return _storage_dir() / f"csp-{_day_key(day)}.ndjson"


def ensure_storage_dir() -> Path:
    directory = _storage_dir()
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ReportStoreError(f"Cannot create storage directory {directory}: {exc}") from exc
    return directory


def serialize(record: CanonicalReport) -> str:
    # Compact, one line; json.dumps escapes any newline inside values.
    return json.dumps(record.model_dump(mode="json"), separators=(",", ":"), ensure_ascii=False)


def append(day: date, records: Iterable[CanonicalReport]) -> int:
    """Append records to the day's log as NDJSON and return how many were written.

    All lines are built before the file is opened and land in a single
    append-mode write, under a per-day lock, so concurrent submissions never
    interleave or overwrite each other. Existing content is never read back.
    """
    lines = [serialize(record) + "\n" for record in records]
    if not lines:
        return 0

    ensure_storage_dir()
    path = path_for(day)
    chunk = "".join(lines)

    with _lock_for(day):
        try:
            with path.open("a", encoding="utf-8") as fh:
                fh.write(chunk)
        except (OSError, UnicodeError) as exc:
            raise ReportStoreError(f"Cannot append to {path}: {exc}") from exc

    logger.debug(f"Appended {len(lines)} report(s) to {path.name}")
    return len(lines)


def read_records(day: date) -> Iterator[str]:
    """Yield the raw lines of the day's log as they were at scan start.

    A missing file yields nothing. A line still being written by a concurrent
    append may come back truncated; callers must tolerate unparseable lines.
    """
    path = path_for(day)
    if not path.exists():
        return iter(())
    try:
        contents = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ReportStoreError(f"Cannot read {path}: {exc}") from exc
    # Split on "\n" only; splitlines() also breaks on U+2028 and U+0085,
    # which may appear unescaped inside values.
    lines = contents.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return iter(lines)
