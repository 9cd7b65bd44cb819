"""Inbound webhook pipeline: verify, route and dispatch one PassSlot event.

    RECEIVED -> CONFIG_LOOKUP -> VERIFY_HANDSHAKE | VERIFY_SIGNATURE
             -> ACTIVE_CHECK -> PROVIDER_RESOLVE -> PROVIDER_EXECUTE
             -> LOGGED -> RESPONDED

Every exit short of RESPONDED raises a `RelayError` after writing an event log
entry, except an unknown webhook id, which writes nothing. In background mode
the dispatcher returns as soon as the provider is resolved and hands a
`PendingDispatch` to the caller to run after the response is sent.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import ValidationError

from src.domain.errors import (
    AuthenticationFailure,
    ConfigurationError,
    IntegrationFailure,
    PayloadValidationError,
)
from src.domain.signatures import verify_signature
from src.models.webhooks import EventLogEntry, InboundEvent, WebhookConfig, WebhookDispatchResponse
from src.observability import incr_metric, log_event
from src.providers.base import Provider, ProviderResult
from src.providers.registry import ProviderRegistry
from src.store import KeyValueStore


PROCESSING_MODES = {"background", "sync"}

_ACCEPTED_BODY = WebhookDispatchResponse(success=True, message="Event accepted", status="accepted").model_dump(
    exclude_none=True
)


class DispatchStage(str, Enum):
    RECEIVED = "received"
    CONFIG_LOOKUP = "config_lookup"
    VERIFY_HANDSHAKE = "verify_handshake"
    VERIFY_SIGNATURE = "verify_signature"
    ACTIVE_CHECK = "active_check"
    PROVIDER_RESOLVE = "provider_resolve"
    PROVIDER_EXECUTE = "provider_execute"
    LOGGED = "logged"
    RESPONDED = "responded"


_REJECTION_STAGES = {
    "missing_signature": DispatchStage.VERIFY_SIGNATURE,
    "invalid_signature": DispatchStage.VERIFY_SIGNATURE,
    "inactive": DispatchStage.ACTIVE_CHECK,
    "unsupported_provider": DispatchStage.PROVIDER_RESOLVE,
}


class WebhookNotFound(ConfigurationError):
    default_status_code = 404


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class PendingDispatch:
    webhook_id: str
    event: dict[str, Any]
    event_type: str
    pass_serial: str | None
    provider: Provider
    provider_config: dict[str, Any]
    metadata: dict[str, Any]
    request_id: str | None = None


@dataclass
class DispatchOutcome:
    status_code: int
    body: dict[str, Any] | str
    stage: DispatchStage
    media_type: str = "application/json"
    pending: PendingDispatch | None = field(default=None, repr=False)


class WebhookDispatcher:
    def __init__(self, store: KeyValueStore, registry: ProviderRegistry, *, mode: str = "background"):
        if mode not in PROCESSING_MODES:
            raise ValueError(f"Unsupported webhook processing mode: {mode}")
        self.store = store
        self.registry = registry
        self.mode = mode

    async def handle(
        self,
        webhook_id: str,
        raw_body: bytes,
        signature: str | None,
        *,
        request_id: str | None = None,
    ) -> DispatchOutcome:
        incr_metric("webhook.events.received")
        config_data = await self.store.get_webhook(webhook_id)
        if config_data is None:
            log_event(
                "webhook_rejected",
                level=logging.WARNING,
                request_id=request_id,
                webhook_id=webhook_id,
                stage=DispatchStage.CONFIG_LOOKUP.value,
                reason="config_not_found",
            )
            incr_metric("webhook.events.rejected", reason="config_not_found")
            raise WebhookNotFound("Webhook configuration not found")
        config = WebhookConfig.model_validate(config_data)

        event = await self._parse_event(webhook_id, raw_body, request_id)
        event_type = event.type or "unknown"
        log_event(
            "webhook_received",
            request_id=request_id,
            webhook_id=webhook_id,
            business_name=config.business_name,
            event_type=event_type,
        )

        if event.is_handshake:
            token = event.data.get("token")
            await self.record(webhook_id, event_type=event_type, status="ok", message="Webhook verification handshake")
            incr_metric("webhook.events.handshake")
            log_event("webhook_handshake", request_id=request_id, webhook_id=webhook_id)
            return DispatchOutcome(
                status_code=200,
                body="" if token is None else str(token),
                stage=DispatchStage.VERIFY_HANDSHAKE,
                media_type="text/plain",
            )

        if not signature:
            await self._reject(webhook_id, event, request_id, status="error", reason="missing_signature")
            raise AuthenticationFailure("No signature provided", status_code=401)
        if not verify_signature(config.secret_key, raw_body, signature):
            await self._reject(webhook_id, event, request_id, status="error", reason="invalid_signature")
            raise AuthenticationFailure("Invalid signature", status_code=403)

        if not config.is_active:
            await self._reject(webhook_id, event, request_id, status="blocked", reason="inactive")
            raise ConfigurationError("Webhook is inactive", status_code=403)

        provider_name, provider_config = config.resolved_provider()
        provider = self.registry.get(provider_name)
        if provider is None:
            await self._reject(
                webhook_id,
                event,
                request_id,
                status="error",
                reason="unsupported_provider",
                message=f'Provider "{provider_name}" not supported',
                provider=provider_name,
            )
            raise ConfigurationError(f'Provider "{provider_name}" not supported', status_code=400)

        pending = PendingDispatch(
            webhook_id=webhook_id,
            event=event.model_dump(exclude_unset=True),
            event_type=event_type,
            pass_serial=event.pass_serial,
            provider=provider,
            provider_config=provider_config,
            metadata={
                "webhookId": webhook_id,
                "businessName": config.business_name,
                "receivedAt": _now_iso(),
            },
            request_id=request_id,
        )

        if self.mode == "background":
            incr_metric("webhook.events.accepted", provider=provider.name)
            log_event(
                "webhook_accepted",
                request_id=request_id,
                webhook_id=webhook_id,
                event_type=event_type,
                provider=provider.name,
            )
            return DispatchOutcome(
                status_code=200,
                body=dict(_ACCEPTED_BODY),
                stage=DispatchStage.PROVIDER_RESOLVE,
                pending=pending,
            )

        result = await self.execute(pending)
        if result is None:
            return DispatchOutcome(
                status_code=200,
                body=dict(_ACCEPTED_BODY),
                stage=DispatchStage.RESPONDED,
            )
        if not result.success:
            raise IntegrationFailure(result.message)
        return DispatchOutcome(
            status_code=200,
            body=WebhookDispatchResponse(
                success=True,
                message=result.message,
                status="processed",
                data=result.data,
            ).model_dump(exclude_none=True),
            stage=DispatchStage.RESPONDED,
        )

    async def execute(self, pending: PendingDispatch) -> ProviderResult | None:
        """Run the provider and record the outcome. Returns None if the provider raised."""
        provider_name = pending.provider.name
        try:
            result = await pending.provider.execute(pending.event, pending.provider_config, pending.metadata)
        except Exception as exc:
            incr_metric("webhook.events.failed", provider=provider_name, reason="provider_raised")
            log_event(
                "webhook_provider_raised",
                level=logging.ERROR,
                request_id=pending.request_id,
                webhook_id=pending.webhook_id,
                stage=DispatchStage.PROVIDER_EXECUTE.value,
                event_type=pending.event_type,
                provider=provider_name,
                error=str(exc),
            )
            await self._finish(pending, status="error", message=str(exc) or exc.__class__.__name__)
            return None

        if result.success:
            incr_metric("webhook.events.processed", provider=provider_name)
            log_event(
                "webhook_processed",
                request_id=pending.request_id,
                webhook_id=pending.webhook_id,
                event_type=pending.event_type,
                provider=provider_name,
                message=result.message,
            )
            await self._finish(pending, status="ok", message=result.message)
        else:
            incr_metric("webhook.events.failed", provider=provider_name, reason="provider_failure")
            log_event(
                "webhook_provider_failed",
                level=logging.WARNING,
                request_id=pending.request_id,
                webhook_id=pending.webhook_id,
                event_type=pending.event_type,
                provider=provider_name,
                message=result.message,
            )
            await self._finish(pending, status="error", message=result.message)
        return result

    async def record(
        self,
        webhook_id: str,
        *,
        event_type: str,
        status: str,
        message: str,
        provider: str | None = None,
        pass_serial: str | None = None,
    ) -> None:
        """Best-effort write to the webhook's event log; failures are only logged."""
        entry = EventLogEntry(
            time=_now_iso(),
            type=event_type or "unknown",
            status=status,
            message=message,
            provider=provider,
            pass_serial=pass_serial,
        )
        try:
            await self.store.append_event_log(webhook_id, entry.model_dump(by_alias=True, exclude_none=True))
        except Exception as exc:
            log_event(
                "event_log_write_failed",
                level=logging.ERROR,
                webhook_id=webhook_id,
                status=status,
                error=str(exc),
            )

    async def _parse_event(self, webhook_id: str, raw_body: bytes, request_id: str | None) -> InboundEvent:
        try:
            payload = json.loads(raw_body.decode("utf-8"))
            if not isinstance(payload, dict):
                raise ValueError("payload is not an object")
            return InboundEvent.model_validate(payload)
        except (UnicodeDecodeError, ValueError, ValidationError) as exc:
            log_event(
                "webhook_rejected",
                level=logging.WARNING,
                request_id=request_id,
                webhook_id=webhook_id,
                stage=DispatchStage.RECEIVED.value,
                reason="invalid_payload",
                error=str(exc),
            )
            incr_metric("webhook.events.rejected", reason="invalid_payload")
            await self.record(webhook_id, event_type="unknown", status="error", message="Invalid JSON payload")
            raise PayloadValidationError("Invalid JSON payload") from exc

    async def _reject(
        self,
        webhook_id: str,
        event: InboundEvent,
        request_id: str | None,
        *,
        status: str,
        reason: str,
        message: str | None = None,
        provider: str | None = None,
    ) -> None:
        messages = {
            "missing_signature": "No signature provided",
            "invalid_signature": "Invalid signature",
            "inactive": "Webhook is inactive",
        }
        incr_metric("webhook.events.rejected", reason=reason)
        log_event(
            "webhook_rejected",
            level=logging.WARNING,
            request_id=request_id,
            webhook_id=webhook_id,
            event_type=event.type or "unknown",
            stage=_REJECTION_STAGES[reason].value,
            reason=reason,
        )
        await self.record(
            webhook_id,
            event_type=event.type or "unknown",
            status=status,
            message=message or messages.get(reason, reason),
            provider=provider,
            pass_serial=event.pass_serial,
        )

    async def _finish(self, pending: PendingDispatch, *, status: str, message: str) -> None:
        await self.record(
            pending.webhook_id,
            event_type=pending.event_type,
            status=status,
            message=message,
            provider=pending.provider.name,
            pass_serial=pending.pass_serial,
        )
        try:
            await self.store.update_last_event(
                pending.webhook_id,
                event_type=pending.event_type,
                status=status,
                at=_now_iso(),
            )
        except Exception as exc:
            log_event(
                "webhook_metadata_write_failed",
                level=logging.ERROR,
                request_id=pending.request_id,
                webhook_id=pending.webhook_id,
                error=str(exc),
            )
