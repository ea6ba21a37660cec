from __future__ import annotations

from typing import Any

# Older stories were authored with verbose operator names.
COMPARISON_OPERATOR_ALIASES = {
    "equals": "eq",
    "not_equals": "neq",
    "greater_than": "gt",
    "less_than": "lt",
}
ARITHMETIC_OPERATOR_ALIASES = {
    "subtract": "sub",
    "multiply": "mul",
    "divide": "div",
}


def payload_field(raw: dict, snake_key: str, camel_key: str | None = None) -> Any:
    if snake_key in raw:
        return raw[snake_key]
    if camel_key and camel_key in raw:
        return raw[camel_key]
    return None


def payload_text(raw: dict, snake_key: str, camel_key: str | None = None) -> str | None:
    value = payload_field(raw, snake_key, camel_key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def payload_kind(raw: Any) -> str:
    if not isinstance(raw, dict):
        return ""
    return str(raw.get("type") or "").strip().lower()


def normalize_operator(value: Any, aliases: dict[str, str], default: str | None = None) -> str | None:
    if value is None:
        return default
    text = str(value).strip().lower()
    if not text:
        return default
    return aliases.get(text, text)
