import logging
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from src.config import settings
from src.domain.background import runner
from src.observability import log_event
from src.routers import (
    admin,
    appwallet,
    webhooks,
)

logging.basicConfig(level=settings.log_level)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    drained = await runner.flush(settings.background_flush_timeout_seconds)
    if not drained:
        log_event(
            "background_flush_incomplete",
            level=logging.WARNING,
            in_flight=runner.in_flight,
        )


app = FastAPI(title="Pass Webhook Relay", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def attach_request_id(request: Request, call_next):
    request_id = (
        request.headers.get("X-Request-ID")
        or request.headers.get("X-Correlation-ID")
        or str(uuid4())
    )
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response

app.include_router(webhooks.router)
app.include_router(appwallet.router)
app.include_router(admin.router)


@app.get("/")
async def root():
    return {"status": "ok", "service": "pass-webhook-relay"}


@app.get("/health")
async def health():
    return {"status": "healthy"}
