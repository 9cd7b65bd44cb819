from __future__ import annotations

import json
from typing import Any

from src.providers.base import FieldDefinition, Provider, ProviderConfig, ProviderResult
from src.providers.templating import render_template, template_context


class SlackConfig(ProviderConfig):
    webhookUrl: str
    messageTemplate: str | None = None


def default_message(event: dict[str, Any], metadata: dict[str, Any]) -> str:
    payload = event.get("data") if event.get("data") is not None else event
    lines = [
        ":incoming_envelope: *Webhook received*",
        f"Type: `{event.get('type') or 'unknown'}`",
    ]
    if metadata.get("businessName"):
        lines.append(f"Business: {metadata['businessName']}")
    lines.append(f"Data: ```{json.dumps(payload, indent=2)}```")
    return "\n".join(lines)


class SlackProvider(Provider):
    name = "slack"
    label = "Slack"
    icon = "💬"
    description = "Posts a notification to a Slack channel through an Incoming Webhook."
    config_schema = [
        FieldDefinition(
            key="webhookUrl",
            label="Slack Webhook URL",
            type="text",
            required=True,
            placeholder="https://hooks.slack.com/services/...",
        ),
        FieldDefinition(
            key="messageTemplate",
            label="Message template",
            type="textarea",
            required=False,
            placeholder="Empty = default message with the event data",
        ),
    ]
    config_model = SlackConfig

    async def run(self, event: dict[str, Any], config: SlackConfig, metadata: dict[str, Any]) -> ProviderResult:
        if config.messageTemplate:
            text = render_template(config.messageTemplate, template_context(event, metadata))
        else:
            text = default_message(event, metadata)

        async with self.client() as client:
            response = await client.post(config.webhookUrl, json={"text": text})
        if not response.is_success:
            return ProviderResult(success=False, message=f"Slack responded HTTP {response.status_code}")
        return ProviderResult(success=True, message="Notification sent to Slack")
