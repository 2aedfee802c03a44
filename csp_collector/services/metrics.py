"""
csp_collector/services/metrics.py

Thread-safe in-memory counters with JSON persistence.
Tracks what happened to every submission across the life of the service.

Public API:
    record_ingest(outcome)
    increment_counter(name, amount=1)
    get_metrics() -> dict
    rehydrate()
"""
from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from csp_collector.services import config_loader
from csp_collector.services.ingestion import IngestOutcome

logger = logging.getLogger(__name__)

# None means "<storage_dir>/metrics.json".
_METRICS_FILE: Optional[Path] = None
_lock = threading.Lock()

# ---------------------------------------------------------------------------
# Counter state
# ---------------------------------------------------------------------------

_DEFAULT_COUNTERS: Dict[str, Any] = {
    "submissions_total": 0,
    "bad_payload_total": 0,
    "reports_parsed_total": 0,
    "reports_written_total": 0,
    "noise_dropped_total": 0,
    "storage_failures_total": 0,
    "reports_by_directive": {},
}

_counters: Dict[str, Any] = json.loads(json.dumps(_DEFAULT_COUNTERS))


def _metrics_file() -> Path:
    if _METRICS_FILE is not None:
        return Path(_METRICS_FILE)
    return config_loader.storage_dir() / "metrics.json"


def _ensure_counter_shape() -> None:
    """Ensure all expected metric keys exist. Caller must hold _lock."""
    for key, value in _DEFAULT_COUNTERS.items():
        if key not in _counters:
            _counters[key] = json.loads(json.dumps(value))


def _persist() -> None:
    """Write current counters to the metrics file. Caller must hold _lock."""
    path = _metrics_file()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(_counters, indent=2), encoding="utf-8")
    except OSError as exc:
        logger.warning(f"Failed to persist metrics: {exc}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def record_ingest(outcome: IngestOutcome) -> None:
    """Update counters after a submission was processed."""
    with _lock:
        _ensure_counter_shape()
        _counters["submissions_total"] += 1
        if outcome.rejected:
            _counters["bad_payload_total"] += 1
        _counters["reports_parsed_total"] += outcome.parsed
        _counters["reports_written_total"] += outcome.accepted
        _counters["noise_dropped_total"] += outcome.noise_dropped

        by_directive = _counters["reports_by_directive"]
        for directive, count in outcome.directives.items():
            by_directive[directive] = by_directive.get(directive, 0) + count

        _persist()


def increment_counter(name: str, amount: int = 1) -> None:
    with _lock:
        _ensure_counter_shape()
        if name not in _counters:
            _counters[name] = 0
        if not isinstance(_counters.get(name), int):
            raise ValueError(f"Metric '{name}' is not an integer counter")
        _counters[name] += amount
        _persist()


def get_metrics() -> Dict[str, Any]:
    """Return a snapshot of current counters."""
    with _lock:
        _ensure_counter_shape()
        return json.loads(json.dumps(_counters))  # deep copy via JSON round-trip


def reset() -> None:
    with _lock:
        _counters.clear()
        _counters.update(json.loads(json.dumps(_DEFAULT_COUNTERS)))


def rehydrate() -> None:
    """Reload counters persisted by a previous process, if any."""
    path = _metrics_file()
    if not path.exists():
        return
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning(f"Failed to read {path}, starting from zero: {exc}")
        return

    if not isinstance(data, dict):
        logger.warning(f"Ignoring {path}: expected a JSON object")
        return

    with _lock:
        for key in _DEFAULT_COUNTERS:
            if key in data:
                _counters[key] = data[key]
        _ensure_counter_shape()
    logger.info(f"Metrics rehydrated from {path}")
