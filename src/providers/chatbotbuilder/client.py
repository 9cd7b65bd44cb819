from __future__ import annotations

from typing import Any

from src.providers.base import FieldDefinition, Provider, ProviderConfig, ProviderError, ProviderResult


CHATBOTBUILDER_API_BASE = "https://app.chatgptbuilder.io/api"


class ChatbotBuilderConfig(ProviderConfig):
    apiToken: str
    customFieldId: str
    flowId: str


def _headers(api_token: str) -> dict[str, str]:
    return {
        "accept": "application/json",
        "X-ACCESS-TOKEN": api_token,
    }


class ChatbotBuilderProvider(Provider):
    name = "chatbotbuilder"
    label = "ChatbotBuilder"
    icon = "🤖"
    description = (
        "Sends events to ChatbotBuilder (ChatGPTBuilder). Finds the user by a custom field "
        "and triggers a flow."
    )
    config_schema = [
        FieldDefinition(
            key="apiToken",
            label="API Token",
            type="password",
            required=True,
            placeholder="ChatbotBuilder access token",
        ),
        FieldDefinition(
            key="customFieldId",
            label="Custom Field ID (CUF)",
            type="number",
            required=True,
            placeholder="e.g. 12345",
        ),
        FieldDefinition(
            key="flowId",
            label="Flow ID",
            type="number",
            required=True,
            placeholder="e.g. 67890",
        ),
    ]
    config_model = ChatbotBuilderConfig

    def __init__(self, transport=None, api_base: str = CHATBOTBUILDER_API_BASE):
        super().__init__(transport)
        self.api_base = api_base.rstrip("/")

    async def run(
        self,
        event: dict[str, Any],
        config: ChatbotBuilderConfig,
        metadata: dict[str, Any],
    ) -> ProviderResult:
        data = event.get("data") if isinstance(event.get("data"), dict) else {}
        pass_serial = data.get("passSerialNumber")
        if not pass_serial:
            return ProviderResult(success=False, message="passSerialNumber not found in event")

        async with self.client() as client:
            lookup = await client.get(
                f"{self.api_base}/users/find_by_custom_field",
                params={"field_id": config.customFieldId, "value": str(pass_serial)},
                headers=_headers(config.apiToken),
            )
            if lookup.status_code >= 400:
                raise ProviderError(
                    f"ChatbotBuilder user lookup returned HTTP {lookup.status_code}: {lookup.text[:200]}"
                )
            try:
                payload = lookup.json()
            except ValueError as exc:
                raise ProviderError("ChatbotBuilder returned non-JSON response") from exc

            users = payload.get("data") if isinstance(payload, dict) else None
            if not users:
                return ProviderResult(
                    success=False,
                    message=f"User not found with custom field value {pass_serial}",
                )
            user_id = users[0].get("id")

            send = await client.post(
                f"{self.api_base}/users/{user_id}/send/{config.flowId}",
                headers=_headers(config.apiToken),
            )
            if send.status_code >= 400:
                raise ProviderError(
                    f"ChatbotBuilder send flow returned HTTP {send.status_code}: {send.text[:200]}"
                )

        return ProviderResult(
            success=True,
            message=f"Flow {config.flowId} sent to user {user_id}",
            data={"userId": user_id},
        )
