from __future__ import annotations

from typing import Any, ClassVar

from src.providers.base import FieldDefinition, Provider, ProviderConfig, ProviderResult


class ZapierConfig(ProviderConfig):
    zapUrl: str


class WebhookUrlConfig(ProviderConfig):
    webhookUrl: str


class WorkflowForwarder(Provider):
    """POSTs the raw event JSON to a workflow tool's catch-hook URL."""

    url_field: ClassVar[str] = "webhookUrl"

    async def run(self, event: dict[str, Any], config: ProviderConfig, metadata: dict[str, Any]) -> ProviderResult:
        url = getattr(config, self.url_field)
        async with self.client() as client:
            response = await client.post(url, json=event)
        if not response.is_success:
            return ProviderResult(success=False, message=f"{self.label} responded HTTP {response.status_code}")
        return ProviderResult(success=True, message=f"Event sent to {self.label}")


class ZapierProvider(WorkflowForwarder):
    name = "zapier"
    label = "Zapier"
    icon = "⚡"
    description = "Sends the event to a Zap through a Webhooks by Zapier catch hook."
    url_field = "zapUrl"
    config_schema = [
        FieldDefinition(
            key="zapUrl",
            label="Zapier Webhook URL",
            type="text",
            required=True,
            placeholder="https://hooks.zapier.com/hooks/catch/...",
        ),
    ]
    config_model = ZapierConfig


class MakeProvider(WorkflowForwarder):
    name = "make"
    label = "Make (Integromat)"
    icon = "🔄"
    description = "Sends the event to a Make scenario through a Custom Webhook."
    config_schema = [
        FieldDefinition(
            key="webhookUrl",
            label="Make Webhook URL",
            type="text",
            required=True,
            placeholder="https://hook.make.com/...",
        ),
    ]
    config_model = WebhookUrlConfig


class N8nProvider(WorkflowForwarder):
    name = "n8n"
    label = "n8n"
    icon = "🔗"
    description = "Sends the event to an n8n workflow through a Webhook trigger."
    config_schema = [
        FieldDefinition(
            key="webhookUrl",
            label="n8n Webhook URL",
            type="text",
            required=True,
            placeholder="https://your-n8n.com/webhook/...",
        ),
    ]
    config_model = WebhookUrlConfig
