from __future__ import annotations

from typing import Any, Iterable

from src.providers.base import Provider
from src.providers.chatbotbuilder.client import ChatbotBuilderProvider
from src.providers.custom_http.client import CustomHttpProvider
from src.providers.slack.client import SlackProvider
from src.providers.whatsapp.client import WhatsAppProvider
from src.providers.workflow.client import MakeProvider, N8nProvider, ZapierProvider


class ProviderRegistry:
    """Read-only name -> provider table, assembled once at startup."""

    def __init__(self, providers: Iterable[Provider]):
        self._providers: dict[str, Provider] = {}
        for provider in providers:
            if provider.name in self._providers:
                raise ValueError(f"Duplicate provider name: {provider.name}")
            self._providers[provider.name] = provider

    def get(self, name: str | None) -> Provider | None:
        if not name:
            return None
        return self._providers.get(name)

    def names(self) -> list[str]:
        return list(self._providers)

    def catalog(self) -> list[dict[str, Any]]:
        return [provider.describe() for provider in self._providers.values()]


def build_default_registry() -> ProviderRegistry:
    return ProviderRegistry(
        [
            ChatbotBuilderProvider(),
            CustomHttpProvider(),
            ZapierProvider(),
            MakeProvider(),
            SlackProvider(),
            N8nProvider(),
            WhatsAppProvider(),
        ]
    )


registry = build_default_registry()
