from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse

from src.config import settings
from src.db import kv_store
from src.domain.background import runner
from src.domain.dispatcher import WebhookDispatcher
from src.domain.errors import RelayError, relay_error_detail
from src.domain.signatures import SIGNATURE_HEADER
from src.models.webhooks import WebhookConfig, WebhookSummary
from src.observability import incr_metric, log_event
from src.providers.registry import registry


router = APIRouter(prefix="/api/v1/webhook", tags=["webhooks"])


def _request_id(request: Request | None) -> str | None:
    if not request:
        return None
    return getattr(getattr(request, "state", None), "request_id", None)


def _dispatcher() -> WebhookDispatcher:
    return WebhookDispatcher(kv_store, registry, mode=settings.webhook_processing_mode)


@router.post("/{webhook_id}")
async def ingest_webhook(webhook_id: str, request: Request, background_tasks: BackgroundTasks):
    req_id = _request_id(request)
    raw_body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)
    dispatcher = _dispatcher()

    try:
        outcome = await dispatcher.handle(webhook_id, raw_body, signature, request_id=req_id)
    except RelayError as exc:
        raise HTTPException(status_code=exc.status_code, detail=relay_error_detail(exc)) from exc
    except Exception as exc:
        incr_metric("webhook.events.failed", reason="internal_error")
        log_event(
            "webhook_failed",
            level=logging.ERROR,
            request_id=req_id,
            webhook_id=webhook_id,
            error=str(exc),
        )
        try:
            if await kv_store.get_webhook(webhook_id) is not None:
                await dispatcher.record(webhook_id, event_type="unknown", status="error", message="Internal error")
        except Exception as log_exc:
            log_event(
                "event_log_write_failed",
                level=logging.ERROR,
                request_id=req_id,
                webhook_id=webhook_id,
                error=str(log_exc),
            )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        ) from exc

    if outcome.pending is not None:
        background_tasks.add_task(
            runner.run,
            dispatcher.execute,
            outcome.pending,
            task_name="webhook_dispatch",
            request_id=req_id,
        )
    if outcome.media_type == "text/plain":
        return PlainTextResponse(outcome.body, status_code=outcome.status_code)
    return JSONResponse(outcome.body, status_code=outcome.status_code)


@router.get("/{webhook_id}", response_model=WebhookSummary)
async def get_webhook_summary(webhook_id: str):
    data = await kv_store.get_webhook(webhook_id)
    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Webhook configuration not found")
    return WebhookSummary.from_config(webhook_id, WebhookConfig.model_validate(data))
