from __future__ import annotations

from typing import Any

from src.providers.base import FieldDefinition, Provider, ProviderConfig, ProviderResult
from src.providers.templating import render_template, template_context


WHATSAPP_GRAPH_API_BASE = "https://graph.facebook.com/v18.0"
DEFAULT_LANGUAGE_CODE = "es_MX"


class WhatsAppConfig(ProviderConfig):
    accessToken: str
    phoneNumberId: str
    recipientPhone: str
    templateName: str
    languageCode: str | None = None


class WhatsAppProvider(Provider):
    name = "whatsapp"
    label = "WhatsApp Business"
    icon = "📱"
    description = "Sends a template message through the WhatsApp Business (Meta Cloud) API."
    config_schema = [
        FieldDefinition(
            key="accessToken",
            label="Access Token (Meta)",
            type="password",
            required=True,
            placeholder="Permanent access token",
        ),
        FieldDefinition(
            key="phoneNumberId",
            label="Phone Number ID",
            type="text",
            required=True,
            placeholder="WhatsApp Business phone number ID",
        ),
        FieldDefinition(
            key="recipientPhone",
            label="Recipient phone (or {{event}} for dynamic)",
            type="text",
            required=True,
            placeholder="+521234567890",
        ),
        FieldDefinition(
            key="templateName",
            label="Template name",
            type="text",
            required=True,
            placeholder="hello_world",
        ),
        FieldDefinition(
            key="languageCode",
            label="Language code",
            type="text",
            required=False,
            placeholder=DEFAULT_LANGUAGE_CODE,
        ),
    ]
    config_model = WhatsAppConfig

    def __init__(self, transport=None, api_base: str = WHATSAPP_GRAPH_API_BASE):
        super().__init__(transport)
        self.api_base = api_base.rstrip("/")

    async def run(self, event: dict[str, Any], config: WhatsAppConfig, metadata: dict[str, Any]) -> ProviderResult:
        phone = config.recipientPhone
        if "{{" in phone:
            phone = render_template(phone, template_context(event, metadata))

        payload = {
            "messaging_product": "whatsapp",
            "to": phone,
            "type": "template",
            "template": {
                "name": config.templateName,
                "language": {"code": config.languageCode or DEFAULT_LANGUAGE_CODE},
            },
        }
        async with self.client() as client:
            response = await client.post(
                f"{self.api_base}/{config.phoneNumberId}/messages",
                headers={
                    "Authorization": f"Bearer {config.accessToken}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )
        if not response.is_success:
            return ProviderResult(success=False, message=f"WhatsApp API error: {response.text[:200]}")
        return ProviderResult(success=True, message=f"Message sent to {phone}")
