from __future__ import annotations

import asyncio
import json

import httpx

from src.providers.base import ProviderResult
from src.providers.chatbotbuilder.client import ChatbotBuilderProvider
from src.providers.custom_http.client import CustomHttpProvider, extract_person
from src.providers.registry import ProviderRegistry, build_default_registry
from src.providers.slack.client import SlackProvider
from src.providers.templating import render_template
from src.providers.whatsapp.client import DEFAULT_LANGUAGE_CODE, WhatsAppProvider
from src.providers.workflow.client import MakeProvider, N8nProvider, ZapierProvider


METADATA = {"webhookId": "wh1", "businessName": "Cafe", "receivedAt": "2024-01-01T00:00:00+00:00"}


def _recording_transport(responses: list[httpx.Response]):
    calls: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return responses[min(len(calls), len(responses)) - 1]

    return httpx.MockTransport(_handler), calls


def _run(provider, event, config, metadata=METADATA) -> ProviderResult:
    return asyncio.run(provider.execute(event, config, metadata))


def test_default_registry_catalog_lists_every_provider():
    registry = build_default_registry()
    assert registry.names() == ["chatbotbuilder", "custom_http", "zapier", "make", "slack", "n8n", "whatsapp"]
    assert registry.get("nope") is None
    assert registry.get(None) is None

    catalog = {entry["name"]: entry for entry in registry.catalog()}
    assert [f["key"] for f in catalog["chatbotbuilder"]["configSchema"]] == ["apiToken", "customFieldId", "flowId"]
    method_field = catalog["custom_http"]["configSchema"][1]
    assert method_field["type"] == "select"
    assert [o["value"] for o in method_field["options"]] == ["POST", "PUT", "PATCH"]
    assert "placeholder" in catalog["zapier"]["configSchema"][0]


def test_registry_rejects_duplicate_names():
    try:
        ProviderRegistry([ZapierProvider(), ZapierProvider()])
    except ValueError as exc:
        assert "zapier" in str(exc)
    else:
        raise AssertionError("Expected ValueError for duplicate provider names")


def test_invalid_config_returns_failure_without_http():
    transport, calls = _recording_transport([httpx.Response(200)])
    result = _run(ZapierProvider(transport=transport), {"type": "x", "data": {}}, {})
    assert result.success is False
    assert "zapUrl" in result.message
    assert calls == []


def test_chatbotbuilder_finds_user_and_sends_flow():
    transport, calls = _recording_transport(
        [
            httpx.Response(200, json={"data": [{"id": 987}]}),
            httpx.Response(200, json={"success": True}),
        ]
    )
    provider = ChatbotBuilderProvider(transport=transport, api_base="https://cbb.example/api")
    result = _run(
        provider,
        {"type": "pass.created", "data": {"passSerialNumber": "SER-1"}},
        {"apiToken": "tok", "customFieldId": 123, "flowId": 456},
    )

    assert result.success is True
    assert result.data == {"userId": 987}
    assert calls[0].method == "GET"
    assert calls[0].url.path == "/api/users/find_by_custom_field"
    assert calls[0].url.params["field_id"] == "123"
    assert calls[0].url.params["value"] == "SER-1"
    assert calls[0].headers["X-ACCESS-TOKEN"] == "tok"
    assert calls[1].method == "POST"
    assert calls[1].url.path == "/api/users/987/send/456"


def test_chatbotbuilder_requires_pass_serial_and_user():
    transport, calls = _recording_transport([httpx.Response(200, json={"data": []})])
    provider = ChatbotBuilderProvider(transport=transport)
    config = {"apiToken": "tok", "customFieldId": "1", "flowId": "2"}

    missing = _run(provider, {"type": "pass.created", "data": {}}, config)
    assert missing.success is False
    assert missing.message == "passSerialNumber not found in event"
    assert calls == []

    no_user = _run(provider, {"type": "pass.created", "data": {"passSerialNumber": "S"}}, config)
    assert no_user.success is False
    assert "User not found" in no_user.message
    assert len(calls) == 1


def test_chatbotbuilder_http_error_is_captured():
    transport, _ = _recording_transport([httpx.Response(500, text="boom")])
    provider = ChatbotBuilderProvider(transport=transport)
    result = _run(
        provider,
        {"type": "pass.created", "data": {"passSerialNumber": "S"}},
        {"apiToken": "tok", "customFieldId": "1", "flowId": "2"},
    )
    assert result.success is False
    assert "HTTP 500" in result.message


def test_custom_http_sends_enriched_envelope_with_headers():
    transport, calls = _recording_transport([httpx.Response(201)])
    provider = CustomHttpProvider(transport=transport)
    event = {
        "type": "pass.created",
        "data": {"passSerialNumber": "SER-1", "values": {"firstName": "Ana", "email": "ana@example.com"}},
    }
    result = _run(
        provider,
        event,
        {"url": "https://hooks.example/in", "method": "put", "headers": '{"Authorization": "Bearer x"}'},
    )

    assert result.success is True
    assert result.message == "Sent to https://hooks.example/in (HTTP 201)"
    request = calls[0]
    assert request.method == "PUT"
    assert request.headers["Authorization"] == "Bearer x"
    body = json.loads(request.content)
    assert body["event"] == {"type": "pass.created", "data": event["data"]}
    assert body["person"] == {"firstName": "Ana", "email": "ana@example.com", "passSerialNumber": "SER-1"}
    assert body["source"]["webhookId"] == "wh1"
    assert body["source"]["provider"] == "custom_http"


def test_custom_http_renders_body_template():
    transport, calls = _recording_transport([httpx.Response(200)])
    provider = CustomHttpProvider(transport=transport)
    template = '{"serial": "{{data.passSerialNumber}}", "person": {{person}}, "biz": "{{source.businessName}}"}'
    result = _run(
        provider,
        {"type": "pass.updated", "data": {"passSerialNumber": "SER-9", "name": "Bo"}},
        {"url": "https://hooks.example/in", "bodyTemplate": template},
    )

    assert result.success is True
    body = json.loads(calls[0].content)
    assert body == {"serial": "SER-9", "person": {"name": "Bo", "passSerialNumber": "SER-9"}, "biz": "Cafe"}
    assert calls[0].method == "POST"


def test_custom_http_failure_paths():
    transport, calls = _recording_transport([httpx.Response(503, text="down")])
    provider = CustomHttpProvider(transport=transport)

    bad_headers = _run(provider, {"type": "x", "data": {}}, {"url": "https://h.example", "headers": "{nope"})
    assert bad_headers.success is False
    assert bad_headers.message == "Invalid headers JSON"
    assert calls == []

    non_2xx = _run(provider, {"type": "x", "data": {}}, {"url": "https://h.example"})
    assert non_2xx.success is False
    assert non_2xx.message == "HTTP 503: down"

    bad_method = _run(provider, {"type": "x", "data": {}}, {"url": "https://h.example", "method": "DELETE"})
    assert bad_method.success is False
    assert "method" in bad_method.message


def test_custom_http_connectivity_error_is_captured():
    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    provider = CustomHttpProvider(transport=httpx.MockTransport(_handler))
    result = _run(provider, {"type": "x", "data": {}}, {"url": "https://h.example"})
    assert result.success is False
    assert "connectivity error" in result.message


def test_workflow_forwarders_post_raw_event():
    event = {"type": "pass.created", "data": {"passSerialNumber": "S"}}
    for provider_cls, config in (
        (ZapierProvider, {"zapUrl": "https://hooks.zapier.example/1"}),
        (MakeProvider, {"webhookUrl": "https://hook.make.example/2"}),
        (N8nProvider, {"webhookUrl": "https://n8n.example/3"}),
    ):
        transport, calls = _recording_transport([httpx.Response(200)])
        result = _run(provider_cls(transport=transport), event, config)
        assert result.success is True
        assert result.message == f"Event sent to {provider_cls.label}"
        assert json.loads(calls[0].content) == event
        assert str(calls[0].url) == next(iter(config.values()))


def test_workflow_forwarder_reports_non_2xx():
    transport, _ = _recording_transport([httpx.Response(410)])
    result = _run(MakeProvider(transport=transport), {"type": "x"}, {"webhookUrl": "https://hook.make.example"})
    assert result.success is False
    assert result.message == "Make (Integromat) responded HTTP 410"


def test_slack_default_and_templated_messages():
    transport, calls = _recording_transport([httpx.Response(200)])
    provider = SlackProvider(transport=transport)
    event = {"type": "pass.created", "data": {"passSerialNumber": "SER-1"}}

    default = _run(provider, event, {"webhookUrl": "https://hooks.slack.example/x"})
    templated = _run(
        provider,
        event,
        {"webhookUrl": "https://hooks.slack.example/x", "messageTemplate": "{{type}} for {{passSerialNumber}}"},
    )

    assert default.success is True
    assert templated.success is True
    default_text = json.loads(calls[0].content)["text"]
    assert "`pass.created`" in default_text
    assert "Business: Cafe" in default_text
    assert "SER-1" in default_text
    assert json.loads(calls[1].content) == {"text": "pass.created for SER-1"}


def test_whatsapp_sends_template_with_dynamic_recipient():
    transport, calls = _recording_transport([httpx.Response(200, json={"messages": [{"id": "m1"}]})])
    provider = WhatsAppProvider(transport=transport, api_base="https://graph.example/v18.0")
    result = _run(
        provider,
        {"type": "pass.created", "data": {"phone": "+5215550000"}},
        {
            "accessToken": "meta-token",
            "phoneNumberId": 1122,
            "recipientPhone": "{{data.phone}}",
            "templateName": "hello_world",
        },
    )

    assert result.success is True
    assert result.message == "Message sent to +5215550000"
    request = calls[0]
    assert str(request.url) == "https://graph.example/v18.0/1122/messages"
    assert request.headers["Authorization"] == "Bearer meta-token"
    body = json.loads(request.content)
    assert body["to"] == "+5215550000"
    assert body["template"] == {"name": "hello_world", "language": {"code": DEFAULT_LANGUAGE_CODE}}


def test_whatsapp_api_error_is_failure():
    transport, _ = _recording_transport([httpx.Response(400, text='{"error":"bad template"}')])
    provider = WhatsAppProvider(transport=transport)
    result = _run(
        provider,
        {"type": "x", "data": {}},
        {"accessToken": "t", "phoneNumberId": "1", "recipientPhone": "+1", "templateName": "t", "languageCode": "en_US"},
    )
    assert result.success is False
    assert result.message.startswith("WhatsApp API error:")


def test_render_template_handles_missing_and_structured_values():
    context = {"event": {"type": "a"}, "data": {"n": 3}}
    assert render_template("{{event}}", context) == '{"type": "a"}'
    assert render_template("{{ data.n }}-{{data.missing}}-{{nope}}", context) == "3--"


def test_extract_person_prefers_top_level_fields():
    person = extract_person({"email": "top@example.com", "values": {"email": "nested@example.com", "phone": "+1"}})
    assert person == {"email": "top@example.com", "phone": "+1"}
