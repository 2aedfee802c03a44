"""
csp_collector/services/aggregation.py

Read-side counts over one day's NDJSON log.

Public API:
    summarize(day) -> {effective_directive: {blocked_uri: count}}
    top_offenders(day, limit=20) -> [(blocked_uri, count), ...]
    summarize_lines(lines) / count_blocked_uris(lines)

Unparseable lines are skipped without error so one corrupt line never
aborts a summary.
"""
from __future__ import annotations

import json
from collections import Counter
from datetime import date
from typing import Any, Dict, Iterable, Iterator, List, Tuple

from csp_collector.services import report_store

DEFAULT_TOP_LIMIT = 20
UNKNOWN = "unknown"


def _iter_records(lines: Iterable[str]) -> Iterator[Dict[str, Any]]:
    for line in lines:
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except (ValueError, RecursionError):
            continue
        if isinstance(record, dict):
            yield record


def _key(value: Any) -> str:
    return UNKNOWN if value is None else str(value)


def summarize_lines(lines: Iterable[str]) -> Dict[str, Dict[str, int]]:
    summary: Dict[str, Dict[str, int]] = {}
    for record in _iter_records(lines):
        directive = _key(record.get("effective_directive"))
        blocked = _key(record.get("blocked_uri"))
        by_uri = summary.setdefault(directive, {})
        by_uri[blocked] = by_uri.get(blocked, 0) + 1
    return summary


def count_blocked_uris(lines: Iterable[str]) -> Counter:
    counts: Counter = Counter()
    for record in _iter_records(lines):
        blocked = record.get("blocked_uri")
        # "0" counts as empty, like a missing value.
        if not blocked or blocked == "0":
            continue
        counts[str(blocked)] += 1
    return counts


def summarize(day: date) -> Dict[str, Dict[str, int]]:
    return summarize_lines(report_store.read_records(day))


def top_offenders(day: date, limit: int = DEFAULT_TOP_LIMIT) -> List[Tuple[str, int]]:
    """Most frequent blocked URIs, highest count first.

    Counter.most_common keeps first-seen order among equal counts.
    """
    if limit <= 0:
        return []
    return count_blocked_uris(report_store.read_records(day)).most_common(limit)
