from __future__ import annotations

import json
import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

from csp_collector.services import config_loader

logger = logging.getLogger(__name__)

_SCHEDULE_FILENAME = ".rotation-schedule.json"

_started = False
_lock = threading.Lock()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _schedule_path() -> Path:
    return config_loader.storage_dir() / _SCHEDULE_FILENAME


def rotate_job() -> bool:
    """Rotation hook.

    Daily files roll over by name, so there is nothing to close yet. This is
    where pruning of old csp-*.ndjson files will go.
    """
    logger.info("CSP log rotation hook ran; daily files roll over by date")
    return True


def read_next_run() -> Optional[datetime]:
    path = _schedule_path()
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        value = data.get("next_run_at") if isinstance(data, dict) else None
        if not isinstance(value, str):
            return None
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        dt = datetime.fromisoformat(value)
    except (OSError, ValueError) as exc:
        logger.warning(f"Ignoring unreadable rotation schedule {path}: {exc}")
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def write_next_run(when: datetime) -> None:
    path = _schedule_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps({"next_run_at": when.isoformat().replace("+00:00", "Z")}),
            encoding="utf-8",
        )
    except OSError as exc:
        logger.warning(f"Failed to persist rotation schedule: {exc}")


def _first_run_at(now: datetime) -> datetime:
    existing = read_next_run()
    if existing is not None:
        # Overdue runs fire immediately instead of being skipped.
        return max(existing, now)
    first = now + timedelta(seconds=int(config_loader.get_setting("rotation_first_delay_seconds")))
    write_next_run(first)
    return first


def _run_loop(first_run: datetime, interval_seconds: int) -> None:
    next_run = first_run
    while True:
        delay = (next_run - _utcnow()).total_seconds()
        if delay > 0:
            time.sleep(delay)
        try:
            rotate_job()
        except Exception as exc:
            logger.warning(f"CSP log rotation failed: {exc}")
        next_run = _utcnow() + timedelta(seconds=interval_seconds)
        write_next_run(next_run)


def _start_worker(target: Callable[[], None]) -> None:
    t = threading.Thread(target=target, name="csp-log-rotation", daemon=True)
    t.start()


def ensure_rotation_scheduled() -> bool:
    """Register the recurring rotation timer once per process.

    The next run time is kept next to the logs, so a restart picks up the
    existing schedule rather than registering a fresh one. Returns True when
    this call registered the timer, False when it was already running.
    """
    global _started
    with _lock:
        if _started:
            return False
        _started = True

    first_run = _first_run_at(_utcnow())
    interval = int(config_loader.get_setting("rotation_interval_seconds"))
    _start_worker(lambda: _run_loop(first_run, interval))
    logger.info(f"CSP log rotation scheduled, next run at {first_run.isoformat()}")
    return True
