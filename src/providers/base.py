"""Provider contract shared by every outbound integration.

A provider turns one inbound event into one outbound call. `execute` never
raises: config validation errors, HTTP errors and unexpected exceptions are all
captured into a failed `ProviderResult` so callers can classify outcomes the
same way for every provider.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Literal

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from src.config import settings
from src.observability import log_event


FieldType = Literal["text", "password", "number", "textarea", "select"]


class FieldOption(BaseModel):
    value: str
    label: str


class FieldDefinition(BaseModel):
    key: str
    label: str
    type: FieldType
    required: bool
    placeholder: str | None = None
    options: list[FieldOption] | None = None


class ProviderResult(BaseModel):
    success: bool
    message: str
    data: Any = None


class ProviderConfig(BaseModel):
    """Base for per-provider config models. Config keys stay camelCase."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class ProviderError(Exception):
    """Raised inside a provider to end execution with a failed result."""


class Provider(ABC):
    name: ClassVar[str]
    label: ClassVar[str]
    icon: ClassVar[str] = ""
    description: ClassVar[str] = ""
    config_schema: ClassVar[list[FieldDefinition]] = []
    config_model: ClassVar[type[ProviderConfig]] = ProviderConfig

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport

    def client(self) -> httpx.AsyncClient:
        kwargs: dict[str, Any] = {}
        if settings.provider_timeout_seconds is not None:
            kwargs["timeout"] = settings.provider_timeout_seconds
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.AsyncClient(**kwargs)

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "label": self.label,
            "icon": self.icon,
            "description": self.description,
            "configSchema": [field.model_dump(exclude_none=True) for field in self.config_schema],
        }

    async def execute(
        self,
        event: dict[str, Any],
        provider_config: dict[str, Any] | None,
        metadata: dict[str, Any] | None = None,
    ) -> ProviderResult:
        try:
            config = self.config_model.model_validate(provider_config or {})
        except ValidationError as exc:
            missing = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
            return ProviderResult(
                success=False,
                message=f"Invalid {self.name} config: {', '.join(missing) or 'malformed'}",
            )
        try:
            return await self.run(event, config, metadata or {})
        except ProviderError as exc:
            return ProviderResult(success=False, message=str(exc))
        except httpx.HTTPError as exc:
            return ProviderResult(success=False, message=f"{self.label} connectivity error: {exc}")
        except Exception as exc:
            log_event(
                "provider_execute_error",
                level=logging.ERROR,
                provider=self.name,
                error=str(exc),
            )
            return ProviderResult(success=False, message=f"{self.label} error: {exc}")

    @abstractmethod
    async def run(self, event: dict[str, Any], config: Any, metadata: dict[str, Any]) -> ProviderResult:
        """Perform the outbound call. May raise; `execute` turns errors into failed results."""


def parse_json_object(raw: str | dict[str, Any] | None, *, field_name: str) -> dict[str, Any]:
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ProviderError(f"Invalid {field_name} JSON") from exc
    if not isinstance(parsed, dict):
        raise ProviderError(f"Invalid {field_name} JSON")
    return parsed
