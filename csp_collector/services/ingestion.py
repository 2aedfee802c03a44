from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from csp_collector.schemas.report_models import CanonicalReport
from csp_collector.services import config_loader
from csp_collector.services import noise
from csp_collector.services import report_store
from csp_collector.services.normalization import normalize_payload

logger = logging.getLogger(__name__)

_STRING_FIELDS = [
    "document_uri",
    "referrer",
    "violated_directive",
    "effective_directive",
    "blocked_uri",
    "source_file",
    "disposition",
    "original_policy",
    "script_sample",
]
_INT_FIELDS = ["line_number", "status_code"]

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ArrivalMetadata:
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    received_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class IngestOutcome:
    accepted: int
    rejected: bool
    parsed: int = 0
    noise_dropped: int = 0
    directives: Dict[str, int] = field(default_factory=dict)


def _coerce_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        if not match:
            return None
        try:
            return int(match.group(1))
        except ValueError:
            # Beyond the interpreter's integer string conversion limit.
            return None
    return None


def _coerce_str(value: Any, max_length: int) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    if not isinstance(value, str):
        value = str(value)
    # Lone surrogates from "\ud800"-style escapes cannot be written as UTF-8.
    value = value.encode("utf-8", "replace").decode("utf-8")
    return value[:max_length]


def _as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _format_ts(ts: datetime) -> str:
    return _as_utc(ts).isoformat(timespec="seconds").replace("+00:00", "Z")


def build_record(raw: Dict[str, Any], arrival: ArrivalMetadata) -> CanonicalReport:
    """Build the stored record from one normalized mapping plus receipt data.

    Fields the normalizer adds beyond the canonical set (user_agent_hint_brand)
    are not persisted.
    """
    max_length = int(config_loader.get_setting("max_field_length"))
    candidate: Dict[str, Any] = {
        "received_at": _format_ts(arrival.received_at),
        "user_agent": _coerce_str(arrival.user_agent, max_length),
        "ip": _coerce_str(arrival.ip, max_length),
    }
    for name in _STRING_FIELDS:
        candidate[name] = _coerce_str(raw.get(name), max_length)
    for name in _INT_FIELDS:
        candidate[name] = _coerce_int(raw.get(name))
    return CanonicalReport(**candidate)


def ingest(
    raw_body: Union[bytes, str, None],
    content_type: Optional[str],
    arrival: ArrivalMetadata,
) -> IngestOutcome:
    """Normalize, filter and store one submission.

    A payload with no usable report is rejected before the store is touched.
    A payload whose reports are all noise is accepted with nothing written.
    ReportStoreError from the append propagates to the caller.
    """
    raw_records = normalize_payload(raw_body, content_type)
    if not raw_records:
        return IngestOutcome(accepted=0, rejected=True)

    survivors: List[CanonicalReport] = []
    dropped = 0
    for raw in raw_records:
        # Classify the untruncated value.
        if noise.is_noise(raw.get("blocked_uri")):
            dropped += 1
            continue
        survivors.append(build_record(raw, arrival))

    written = report_store.append(_as_utc(arrival.received_at).date(), survivors)

    directives: Dict[str, int] = {}
    for record in survivors:
        key = record.effective_directive or "unknown"
        directives[key] = directives.get(key, 0) + 1

    if dropped:
        logger.info(f"Dropped {dropped} noise report(s) from {arrival.ip or 'unknown client'}")

    return IngestOutcome(
        accepted=written,
        rejected=False,
        parsed=len(raw_records),
        noise_dropped=dropped,
        directives=directives,
    )
