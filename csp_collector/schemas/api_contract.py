from __future__ import annotations

from typing import Dict, List, Literal

from pydantic import BaseModel, ConfigDict


class _ContractModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class IngestAcceptedResponse(_ContractModel):
    ok: Literal[True]
    written: int


class IngestRejectedResponse(_ContractModel):
    ok: Literal[False]
    reason: Literal["bad-payload", "payload-too-large", "storage-error"]


class TopOffender(_ContractModel):
    blocked_uri: str
    count: int


class TopOffendersResponse(_ContractModel):
    date: str
    limit: int
    offenders: List[TopOffender]


class RotateResponse(_ContractModel):
    ok: bool


class MetricsResponse(_ContractModel):
    submissions_total: int
    bad_payload_total: int
    reports_parsed_total: int
    reports_written_total: int
    noise_dropped_total: int
    storage_failures_total: int
    reports_by_directive: Dict[str, int]
