from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Union

from csp_collector.schemas.report_models import LEGACY_FIELD_MAP

REPORTING_API_CONTENT_TYPE = "application/reports+json"
CSP_VIOLATION_TYPE = "csp-violation"

SHAPE_REPORTING_API = "reporting_api"
SHAPE_LEGACY = "legacy"


def _decode_json(raw_body: Union[bytes, str, None]) -> Any:
    """Parse the request body. Returns None when it is not valid JSON."""
    if raw_body is None:
        return None
    if isinstance(raw_body, (bytes, bytearray)):
        try:
            raw_body = raw_body.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if not raw_body.strip():
        return None
    try:
        return json.loads(raw_body)
    except (ValueError, RecursionError):
        # JSONDecodeError, over-long integer literals, pathological nesting
        return None


def _looks_like_reporting_api(payload: Any) -> bool:
    # Reporting API bodies are a list of objects that each carry "type".
    return (
        isinstance(payload, list)
        and len(payload) > 0
        and isinstance(payload[0], dict)
        and "type" in payload[0]
    )


def detect_shape(payload: Any, content_type: Optional[str]) -> Optional[str]:
    """Pick the wire shape of an already-parsed payload.

    Shapes are tried in a fixed order: the Reporting API batch wins when the
    content type announces it or the body sniffs like one; otherwise any JSON
    object is treated as a legacy report. Anything else has no shape.
    """
    ct = (content_type or "").lower()
    if REPORTING_API_CONTENT_TYPE in ct or _looks_like_reporting_api(payload):
        return SHAPE_REPORTING_API
    if isinstance(payload, dict):
        return SHAPE_LEGACY
    return None


def map_legacy_fields(report: Dict[str, Any]) -> Dict[str, Any]:
    """Map hyphenated wire keys onto canonical keys.

    Every canonical key is present in the result; absent wire keys map to
    None and unknown wire keys are dropped.
    """
    return {canonical: report.get(wire) for wire, canonical in LEGACY_FIELD_MAP.items()}


def _normalize_reporting_item(item: Dict[str, Any]) -> Dict[str, Any]:
    body = item.get("body")
    if not isinstance(body, dict):
        body = {}
    out = map_legacy_fields(body)
    out["document_uri"] = item.get("url")
    out["user_agent_hint_brand"] = item.get("user_agent")
    return out


def _normalize_reporting_batch(payload: Any) -> List[Dict[str, Any]]:
    if not isinstance(payload, list):
        return []
    out: List[Dict[str, Any]] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        if item.get("type") != CSP_VIOLATION_TYPE:
            continue
        out.append(_normalize_reporting_item(item))
    return out


def _normalize_legacy(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    if "csp-report" in payload:
        report = payload["csp-report"]
        if not isinstance(report, dict):
            return []
        return [map_legacy_fields(report)]
    # Some browsers omit the wrapper.
    return [map_legacy_fields(payload)]


def normalize_payload(
    raw_body: Union[bytes, str, None],
    content_type: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Turn a submission body into zero or more raw violation mappings.

    An empty list means the body was malformed or of no known shape, or that a
    Reporting API batch held no csp-violation items.
    """
    payload = _decode_json(raw_body)
    if payload is None:
        return []

    shape = detect_shape(payload, content_type)
    if shape == SHAPE_REPORTING_API:
        return _normalize_reporting_batch(payload)
    if shape == SHAPE_LEGACY:
        return _normalize_legacy(payload)
    return []
