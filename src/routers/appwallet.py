from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, Response, status

from src.db import kv_store
from src.domain.analytics import AnalyticsIngestor, parse_analytics_event
from src.domain.background import runner
from src.domain.errors import PayloadValidationError
from src.domain.ring_buffer import redact_identifier
from src.models.analytics import AnalyticsAck, AnalyticsOverview
from src.observability import incr_metric, log_event
from src.providers.registry import registry


router = APIRouter(prefix="/api/v1/appwallet", tags=["appwallet"])

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _request_id(request: Request | None) -> str | None:
    if not request:
        return None
    return getattr(getattr(request, "state", None), "request_id", None)


def _ingestor() -> AnalyticsIngestor:
    return AnalyticsIngestor(kv_store, registry)


@router.post("/analytics", response_model=AnalyticsAck)
async def ingest_analytics(request: Request, response: Response, background_tasks: BackgroundTasks):
    req_id = _request_id(request)
    raw_body = await request.body()
    try:
        event = parse_analytics_event(raw_body)
    except PayloadValidationError as exc:
        incr_metric("analytics.events.rejected")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"status": "error", "message": exc.message},
            headers={"Access-Control-Allow-Origin": "*"},
        ) from exc

    received_at = datetime.now(timezone.utc).isoformat()
    incr_metric("analytics.events.received", event_name=event.event_name)
    log_event(
        "analytics_received",
        request_id=req_id,
        event_name=event.event_name,
        device_id=redact_identifier(event.device_id),
    )
    background_tasks.add_task(
        runner.run,
        _ingestor().process,
        event,
        received_at,
        task_name="analytics_ingest",
        request_id=req_id,
    )
    response.headers["Access-Control-Allow-Origin"] = "*"
    return AnalyticsAck(received=event.event_name, device_id=redact_identifier(event.device_id))


@router.get("/analytics", response_model=AnalyticsOverview)
async def get_analytics_overview(response: Response):
    response.headers["Access-Control-Allow-Origin"] = "*"
    return await _ingestor().overview()


@router.options("/analytics")
async def analytics_preflight():
    return Response(status_code=status.HTTP_204_NO_CONTENT, headers=_CORS_HEADERS)
