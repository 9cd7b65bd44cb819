from __future__ import annotations

import json
import re
from typing import Any


_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z0-9_.]+)\s*\}\}")


def _lookup(context: dict[str, Any], path: str) -> Any:
    value: Any = context
    for part in path.split("."):
        if isinstance(value, dict) and part in value:
            value = value[part]
        else:
            return None
    return value


def render_template(template: str, context: dict[str, Any]) -> str:
    """Substitute `{{name}}` and `{{dotted.path}}` placeholders.

    Mappings and lists render as JSON, scalars as text, unknown paths as an
    empty string. `{{event}}` is the whole event serialized as JSON.
    """

    def _replace(match: re.Match[str]) -> str:
        value = _lookup(context, match.group(1))
        if value is None:
            return ""
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        return str(value)

    return _PLACEHOLDER.sub(_replace, template)


def template_context(event: dict[str, Any], metadata: dict[str, Any], **extra: Any) -> dict[str, Any]:
    data = event.get("data") if isinstance(event.get("data"), dict) else {}
    context: dict[str, Any] = {
        "event": event,
        "type": event.get("type") or "unknown",
        "data": data,
        "passSerialNumber": data.get("passSerialNumber"),
    }
    context.update(metadata)
    context.update(extra)
    return context
