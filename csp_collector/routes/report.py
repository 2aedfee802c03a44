from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from typing import Optional
import logging

from csp_collector.services import config_loader
from csp_collector.services import ingestion
from csp_collector.services import metrics as metrics_service
from csp_collector.services import rotation
from csp_collector.services.report_store import ReportStoreError
from csp_collector.schemas.api_contract import (
    IngestAcceptedResponse,
    IngestRejectedResponse,
    RotateResponse,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/csp/v1", tags=["report"])


def get_client_ip(request: Request) -> Optional[str]:
    """Submitter address; the first X-Forwarded-For hop when proxies are trusted."""
    if config_loader.get_setting("trust_forwarded_for"):
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip() or None
    client = getattr(request, "client", None)
    return client.host if client else None


def _rejected(reason: str, status_code: int) -> JSONResponse:
    return JSONResponse({"ok": False, "reason": reason}, status_code=status_code)


def _safe_record(outcome: ingestion.IngestOutcome) -> None:
    try:
        metrics_service.record_ingest(outcome)
    except Exception as e:
        logger.warning(f"Metrics update failed: {e}")


@router.post(
    "/report",
    status_code=201,
    response_model=IngestAcceptedResponse,
    responses={
        400: {"model": IngestRejectedResponse},
        413: {"model": IngestRejectedResponse},
        500: {"model": IngestRejectedResponse},
    },
)
async def ingest_report(request: Request):
    max_size = int(config_loader.get_setting("max_report_size"))
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > max_size:
        logger.warning(f"CSP report too large: {content_length} bytes")
        return _rejected("payload-too-large", 413)

    raw = await request.body()
    if len(raw) > max_size:
        logger.warning(f"CSP report too large: {len(raw)} bytes")
        return _rejected("payload-too-large", 413)

    arrival = ingestion.ArrivalMetadata(
        ip=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )

    try:
        outcome = ingestion.ingest(raw, request.headers.get("content-type"), arrival)
    except ReportStoreError as e:
        logger.error(f"Storing CSP report failed: {e}")
        try:
            metrics_service.increment_counter("storage_failures_total")
        except Exception as metrics_exc:
            logger.warning(f"Metrics update failed: {metrics_exc}")
        return _rejected("storage-error", 500)

    _safe_record(outcome)

    if outcome.rejected:
        logger.warning(f"Rejected CSP submission from {arrival.ip or 'unknown client'}: bad payload")
        return _rejected("bad-payload", 400)

    logger.info(
        f"Accepted CSP submission: {outcome.parsed} parsed, "
        f"{outcome.accepted} written, {outcome.noise_dropped} noise"
    )
    return JSONResponse({"ok": True, "written": outcome.accepted}, status_code=201)


@router.post("/rotate", response_model=RotateResponse)
def manual_rotate():
    return {"ok": rotation.rotate_job()}
