"""
tests/test_normalization.py

Wire-format detection and field mapping for legacy report-uri bodies and
Reporting API batches.
"""
from __future__ import annotations

import json

import pytest

from csp_collector.schemas.report_models import LEGACY_FIELD_MAP
from csp_collector.services.normalization import (
    SHAPE_LEGACY,
    SHAPE_REPORTING_API,
    detect_shape,
    map_legacy_fields,
    normalize_payload,
)

CANONICAL_KEYS = set(LEGACY_FIELD_MAP.values())


def _legacy_report() -> dict:
    return {
        "document-uri": "https://example.com/page",
        "referrer": "https://example.com/",
        "violated-directive": "script-src-elem",
        "effective-directive": "script-src-elem",
        "original-policy": "script-src 'self'; report-uri /csp/v1/report",
        "blocked-uri": "https://evil.test/x.js",
        "disposition": "enforce",
        "status-code": 200,
        "line-number": "17",
        "source-file": "https://example.com/app.js",
        "script-sample": "",
    }


# ---------------------------------------------------------------------------
# Legacy shape
# ---------------------------------------------------------------------------

def test_wrapped_legacy_report_yields_one_record():
    body = json.dumps({"csp-report": _legacy_report()})
    records = normalize_payload(body, "application/csp-report")

    assert len(records) == 1
    rec = records[0]
    assert rec["document_uri"] == "https://example.com/page"
    assert rec["blocked_uri"] == "https://evil.test/x.js"
    assert rec["effective_directive"] == "script-src-elem"
    assert rec["line_number"] == "17"
    assert rec["status_code"] == 200


def test_unwrapped_legacy_report_is_accepted():
    records = normalize_payload(json.dumps(_legacy_report()), "application/json")
    assert len(records) == 1
    assert records[0]["blocked_uri"] == "https://evil.test/x.js"


def test_mapping_always_produces_every_canonical_key():
    out = map_legacy_fields({"blocked-uri": "inline", "column-number": 4, "bogus": "x"})
    assert set(out.keys()) == CANONICAL_KEYS
    assert out["blocked_uri"] == "inline"
    assert out["document_uri"] is None
    assert "column-number" not in out and "bogus" not in out


def test_bytes_body_is_decoded():
    body = json.dumps({"csp-report": _legacy_report()}).encode("utf-8")
    assert len(normalize_payload(body, None)) == 1


def test_non_object_csp_report_wrapper_yields_nothing():
    assert normalize_payload(json.dumps({"csp-report": "oops"}), "application/csp-report") == []


# ---------------------------------------------------------------------------
# Reporting API shape
# ---------------------------------------------------------------------------

def _reporting_item(blocked: str, **extra) -> dict:
    item = {
        "type": "csp-violation",
        "age": 12,
        "url": "https://example.com/page",
        "user_agent": "Mozilla/5.0 Chrome/126",
        "body": {
            "document-uri": "https://example.com/ignored",
            "blocked-uri": blocked,
            "effective-directive": "img-src",
        },
    }
    item.update(extra)
    return item


def test_reporting_api_batch_keeps_only_csp_violations():
    batch = [
        _reporting_item("https://cdn.test/a.png"),
        {"type": "deprecation", "url": "https://example.com/", "body": {"id": "x"}},
        _reporting_item("https://cdn.test/b.png"),
    ]
    records = normalize_payload(json.dumps(batch), "application/reports+json")

    assert [r["blocked_uri"] for r in records] == ["https://cdn.test/a.png", "https://cdn.test/b.png"]


def test_reporting_api_item_overlays_url_and_user_agent():
    records = normalize_payload(json.dumps([_reporting_item("https://cdn.test/a.png")]), "application/reports+json")
    rec = records[0]
    assert rec["document_uri"] == "https://example.com/page"
    assert rec["user_agent_hint_brand"] == "Mozilla/5.0 Chrome/126"
    assert set(rec.keys()) == CANONICAL_KEYS | {"user_agent_hint_brand"}


def test_reporting_api_item_without_body_maps_to_nulls():
    records = normalize_payload(
        json.dumps([{"type": "csp-violation", "url": "https://example.com/"}]),
        "application/reports+json",
    )
    assert len(records) == 1
    assert records[0]["blocked_uri"] is None
    assert records[0]["document_uri"] == "https://example.com/"


def test_reporting_api_is_sniffed_without_content_type():
    body = json.dumps([_reporting_item("https://cdn.test/a.png")])
    assert detect_shape(json.loads(body), "text/plain") == SHAPE_REPORTING_API
    assert len(normalize_payload(body, "text/plain")) == 1


def test_content_type_match_is_case_insensitive_and_allows_parameters():
    payload = [_reporting_item("https://cdn.test/a.png")]
    assert detect_shape(payload, "Application/Reports+JSON; charset=utf-8") == SHAPE_REPORTING_API


def test_batch_without_csp_violations_yields_nothing():
    batch = [{"type": "intervention", "body": {}}]
    assert normalize_payload(json.dumps(batch), "application/reports+json") == []


def test_reports_content_type_with_object_body_yields_nothing():
    body = json.dumps({"csp-report": _legacy_report()})
    assert normalize_payload(body, "application/reports+json") == []


# ---------------------------------------------------------------------------
# Malformed input
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("body", [
    "not json",
    "",
    "   ",
    "{\"csp-report\": ",
    "null",
    "42",
    "\"a string\"",
    "[1, 2, 3]",
    "[]",
    b"\xff\xfe\x00",
])
def test_malformed_or_unknown_bodies_yield_nothing(body):
    assert normalize_payload(body, "application/json") == []


def test_detect_shape_of_scalar_is_none():
    assert detect_shape(3, None) is None
    assert detect_shape({"a": 1}, None) == SHAPE_LEGACY


def test_integer_literal_beyond_conversion_limit_yields_nothing():
    body = "{\"csp-report\": {\"line-number\": " + "9" * 5000 + "}}"
    assert normalize_payload(body, "application/csp-report") == []


def test_deeply_nested_body_yields_nothing():
    body = "[" * 100000 + "]" * 100000
    assert normalize_payload(body, "application/json") == []
    assert normalize_payload(body, "application/reports+json") == []
