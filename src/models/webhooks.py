from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


LEGACY_PROVIDER = "chatbotbuilder"

EventLogStatus = Literal["ok", "error", "blocked"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WebhookConfig(CamelModel):
    """Stored tenant record. Extra keys are kept so rewrites do not drop them.

    Reads are lenient toward records written by older tooling: nulls fall back
    to defaults and numeric ids become strings.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        coerce_numbers_to_str=True,
    )

    id: str | None = None
    business_name: str = ""
    secret_key: str = ""
    provider: str | None = None
    provider_config: dict[str, Any] | None = None
    is_active: bool = False
    created_at: str | None = None
    last_event_at: str | None = None
    last_event_type: str | None = None
    last_event_status: str | None = None
    # Legacy chatbotbuilder fields from before provider routing existed.
    api_token: str | None = None
    custom_field_id: str | None = None
    flow_id: str | None = None

    @field_validator("business_name", "secret_key", mode="before")
    @classmethod
    def _null_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("is_active", mode="before")
    @classmethod
    def _null_flag(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("provider_config", mode="before")
    @classmethod
    def _mapping_only(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None

    def resolved_provider(self) -> tuple[str, dict[str, Any]]:
        name = self.provider or LEGACY_PROVIDER
        if self.provider_config is not None:
            return name, dict(self.provider_config)
        return name, {
            "apiToken": self.api_token,
            "customFieldId": self.custom_field_id,
            "flowId": self.flow_id,
        }


class InboundEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("data", mode="before")
    @classmethod
    def _empty_data(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def is_handshake(self) -> bool:
        if self.type == "webhook.verify":
            return True
        return not self.type and "token" in self.data

    @property
    def pass_serial(self) -> str | None:
        value = self.data.get("passSerialNumber")
        return str(value) if value is not None else None


class EventLogEntry(CamelModel):
    time: str
    type: str = "unknown"
    status: EventLogStatus
    message: str
    provider: str | None = None
    pass_serial: str | None = None


class WebhookSummary(CamelModel):
    id: str
    business_name: str
    provider: str
    is_active: bool
    last_event_at: str | None = None
    last_event_type: str | None = None
    last_event_status: str | None = None

    @classmethod
    def from_config(cls, webhook_id: str, config: WebhookConfig) -> "WebhookSummary":
        provider, _ = config.resolved_provider()
        return cls(
            id=webhook_id,
            business_name=config.business_name,
            provider=provider,
            is_active=config.is_active,
            last_event_at=config.last_event_at,
            last_event_type=config.last_event_type,
            last_event_status=config.last_event_status,
        )


class WebhookAdminView(WebhookSummary):
    provider_config: dict[str, Any] = Field(default_factory=dict)
    created_at: str | None = None

    @classmethod
    def from_config(cls, webhook_id: str, config: WebhookConfig) -> "WebhookAdminView":
        summary = WebhookSummary.from_config(webhook_id, config)
        _, provider_config = config.resolved_provider()
        return cls(
            **summary.model_dump(),
            provider_config=provider_config,
            created_at=config.created_at,
        )


class WebhookCreate(CamelModel):
    business_name: str = Field(min_length=1)
    secret_key: str = Field(min_length=1)
    provider: str = Field(min_length=1)
    provider_config: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True


class WebhookUpdate(CamelModel):
    business_name: str = Field(min_length=1)
    provider: str = Field(min_length=1)
    provider_config: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    secret_key: str | None = None


class WebhookDispatchResponse(BaseModel):
    success: bool
    message: str
    status: Literal["accepted", "processed"] | None = None
    data: Any = None
