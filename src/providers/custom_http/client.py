from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import field_validator

from src.providers.base import (
    FieldDefinition,
    FieldOption,
    Provider,
    ProviderConfig,
    ProviderResult,
    parse_json_object,
)
from src.providers.templating import render_template, template_context


_PERSON_KEYS = ("firstName", "lastName", "name", "fullName", "email", "phone")


class CustomHttpConfig(ProviderConfig):
    url: str
    method: Literal["POST", "PUT", "PATCH"] = "POST"
    headers: str | dict[str, Any] | None = None
    bodyTemplate: str | None = None

    @field_validator("method", mode="before")
    @classmethod
    def _normalize_method(cls, value: Any) -> str:
        return str(value).strip().upper() if value else "POST"


def extract_person(data: dict[str, Any]) -> dict[str, Any]:
    """Best-effort pass holder details from the event data and its pass values."""
    person: dict[str, Any] = {}
    sources = [data]
    for nested in ("values", "placeholders", "person"):
        if isinstance(data.get(nested), dict):
            sources.append(data[nested])
    for source in sources:
        for key in _PERSON_KEYS:
            if key not in person and source.get(key) not in (None, ""):
                person[key] = source[key]
    if data.get("passSerialNumber") is not None:
        person["passSerialNumber"] = data["passSerialNumber"]
    if data.get("passTypeIdentifier") is not None:
        person["passTypeIdentifier"] = data["passTypeIdentifier"]
    return person


def build_envelope(event: dict[str, Any], metadata: dict[str, Any], provider_name: str) -> dict[str, Any]:
    data = event.get("data") if isinstance(event.get("data"), dict) else {}
    return {
        "event": {"type": event.get("type") or "unknown", "data": data},
        "person": extract_person(data),
        "source": {
            "webhookId": metadata.get("webhookId"),
            "businessName": metadata.get("businessName"),
            "receivedAt": metadata.get("receivedAt"),
            "provider": provider_name,
        },
    }


class CustomHttpProvider(Provider):
    name = "custom_http"
    label = "Custom HTTP"
    icon = "🌐"
    description = "Forwards the webhook payload to any HTTP endpoint that accepts webhooks."
    config_schema = [
        FieldDefinition(
            key="url",
            label="Target URL",
            type="text",
            required=True,
            placeholder="https://your-service.com/webhook",
        ),
        FieldDefinition(
            key="method",
            label="HTTP method",
            type="select",
            required=True,
            options=[
                FieldOption(value="POST", label="POST"),
                FieldOption(value="PUT", label="PUT"),
                FieldOption(value="PATCH", label="PATCH"),
            ],
        ),
        FieldDefinition(
            key="headers",
            label="Extra headers (JSON)",
            type="textarea",
            required=False,
            placeholder='{"Authorization": "Bearer xxx"}',
        ),
        FieldDefinition(
            key="bodyTemplate",
            label="Body template (JSON, use {{event}}, {{person}}, {{source}})",
            type="textarea",
            required=False,
            placeholder="Empty = send the enriched event",
        ),
    ]
    config_model = CustomHttpConfig

    async def run(
        self,
        event: dict[str, Any],
        config: CustomHttpConfig,
        metadata: dict[str, Any],
    ) -> ProviderResult:
        headers = {"Content-Type": "application/json"}
        headers.update({str(k): str(v) for k, v in parse_json_object(config.headers, field_name="headers").items()})

        envelope = build_envelope(event, metadata, self.name)
        if config.bodyTemplate:
            context = template_context(event, metadata, person=envelope["person"], source=envelope["source"])
            body = render_template(config.bodyTemplate, context)
        else:
            body = json.dumps(envelope)

        async with self.client() as client:
            response = await client.request(config.method, config.url, headers=headers, content=body)

        if not response.is_success:
            return ProviderResult(
                success=False,
                message=f"HTTP {response.status_code}: {response.text[:200]}",
            )
        return ProviderResult(success=True, message=f"Sent to {config.url} (HTTP {response.status_code})")
