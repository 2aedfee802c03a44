from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Dict, Optional

from fastapi import APIRouter, HTTPException, Query

from csp_collector.schemas.api_contract import TopOffendersResponse
from csp_collector.services import aggregation
from csp_collector.services import config_loader
from csp_collector.services.report_store import ReportStoreError

router = APIRouter(prefix="/csp/v1", tags=["summary"])


def _today():
    return datetime.now(timezone.utc).date()


@router.get("/summary", response_model=Dict[str, Dict[str, int]])
def get_summary():
    try:
        return aggregation.summarize(_today())
    except ReportStoreError as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/top-offenders", response_model=TopOffendersResponse)
def get_top_offenders(limit: Annotated[Optional[int], Query(ge=1, le=500)] = None):
    if limit is None:
        limit = int(config_loader.get_setting("top_offenders_limit"))
    day = _today()
    try:
        ranked = aggregation.top_offenders(day, limit)
    except ReportStoreError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return {
        "date": day.isoformat(),
        "limit": limit,
        "offenders": [{"blocked_uri": uri, "count": count} for uri, count in ranked],
    }
