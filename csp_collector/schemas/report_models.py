from typing import Optional

from pydantic import BaseModel, ConfigDict

# Locked canonical field list, in serialization order. The NDJSON log and the
# summary endpoints both depend on these names.
CANONICAL_FIELDS = [
    "received_at",          # ISO 8601 UTC, set at ingestion — required
    "user_agent",           # User-Agent header of the submitting request
    "document_uri",
    "referrer",
    "violated_directive",
    "effective_directive",
    "blocked_uri",
    "source_file",
    "line_number",          # int
    "disposition",          # "enforce" | "report", not validated
    "original_policy",
    "script_sample",
    "status_code",          # int
    "ip",                   # submitter network address
]

# Hyphenated keys of the legacy report-uri body, mapped to canonical names.
# The Reporting API delivers the same keys inside each item's "body".
LEGACY_FIELD_MAP = {
    "document-uri": "document_uri",
    "referrer": "referrer",
    "violated-directive": "violated_directive",
    "effective-directive": "effective_directive",
    "blocked-uri": "blocked_uri",
    "original-policy": "original_policy",
    "source-file": "source_file",
    "line-number": "line_number",
    "disposition": "disposition",
    "script-sample": "script_sample",
    "status-code": "status_code",
}


class CanonicalReport(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    received_at: str
    user_agent: Optional[str] = None
    document_uri: Optional[str] = None
    referrer: Optional[str] = None
    violated_directive: Optional[str] = None
    effective_directive: Optional[str] = None
    blocked_uri: Optional[str] = None
    source_file: Optional[str] = None
    line_number: Optional[int] = None
    disposition: Optional[str] = None
    original_policy: Optional[str] = None
    script_sample: Optional[str] = None
    status_code: Optional[int] = None
    ip: Optional[str] = None
