# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

"""Cleaning of inbound chat-bot webhook payloads.

The intake platform posts flat JSON objects whose keys and values may carry
byte-order marks, zero-width characters, unresolved ``form_variable_*``
placeholders and un-escaped quotes typed by candidates.
"""

import json
import re
from collections.abc import Iterable, Mapping
from typing import Any

from loguru import logger

INVISIBLE_CHARS = re.compile("[\ufeff\u200b\u200c\u200d\u2060]")
PLACEHOLDER_TOKEN = re.compile(r"form_variable_[A-Z0-9]+")
STRING_LITERAL = re.compile(r'"(?:\\.|[^"\\])*"', re.DOTALL)
TRAILING_COMMA = re.compile(r",(\s*[}\]])")
BARE_KEY = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*:)")
LINK_TEXT = re.compile(r"<a[^>]*>(.*?)</a>", re.IGNORECASE | re.DOTALL)

KNOWN_FIELDS: frozenset[str] = frozenset(
    {
        "full_name_uzbek",
        "phone_number_uzbek",
        "age_uzbek",
        "city_uzbek",
        "degree",
        "position_uz",
        "username",
        "resume",
        "diploma",
        "phase2_q_1",
        "phase2_q_2",
        "phase2_q_3",
    }
)

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "'": "\\'",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def strip_invisible(text: str) -> str:
    """Remove byte-order marks and zero-width characters."""
    return INVISIBLE_CHARS.sub("", text)


def clean_field_name(name: str) -> str:
    return strip_invisible(name).strip()


def clean_field_value(value: Any) -> str:
    if value is None:
        return ""
    cleaned = strip_invisible(str(value))
    cleaned = PLACEHOLDER_TOKEN.sub("", cleaned)
    return cleaned.strip()


def sanitize_webhook_data(raw: Any, known_fields: Iterable[str] = KNOWN_FIELDS) -> dict[str, str]:
    """Sanitize a webhook payload down to its known, non-empty fields.

    Args:
        raw: The decoded payload. Anything but a mapping yields an empty result.
        known_fields: Field names to keep, matched after cleaning the raw key.

    Returns:
        dict[str, str]: Cleaned values keyed by field name. A key is present only
        when its cleaned value is non-empty.
    """
    if not isinstance(raw, Mapping):
        logger.warning(f"Webhook payload is not an object ({type(raw).__name__}); nothing to sanitize")
        return {}

    known = frozenset(known_fields)
    sanitized: dict[str, str] = {}

    for raw_key, raw_value in raw.items():
        key = clean_field_name(str(raw_key))
        if key not in known:
            logger.debug(f"Dropping unknown webhook field {key!r}")
            continue

        value = clean_field_value(raw_value)
        if not value:
            logger.debug(f"Webhook field {key!r} is empty after cleaning")
            continue

        sanitized[key] = value

    logger.info(f"Sanitized webhook payload: kept {len(sanitized)} of {len(raw)} fields")
    return sanitized


def _escape_inner_quotes(text: str) -> str:
    """Escape quotes that sit inside a string literal.

    A quote closes the current string only when the next non-blank character is
    structural (``,`` ``:`` ``}`` ``]``) or the input ends; any other quote is
    treated as literal text typed by a user. Raw newlines and tabs inside
    strings are escaped as well.
    """
    out: list[str] = []
    in_string = False
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if not in_string:
            out.append(ch)
            if ch == '"':
                in_string = True
        elif ch == "\\":
            out.append(text[i : i + 2])
            i += 2
            continue
        elif ch == '"':
            j = i + 1
            while j < n and text[j] in " \t\r\n":
                j += 1
            if j >= n or text[j] in ",:}]":
                in_string = False
                out.append(ch)
            else:
                out.append('\\"')
        elif ch in "\n\r\t":
            out.append(_ESCAPES[ch])
        else:
            out.append(ch)
        i += 1
    return "".join(out)


def _repair_structure(text: str) -> str:
    """Drop trailing commas and quote bare keys, outside of string literals only."""
    parts: list[str] = []
    last = 0
    for match in STRING_LITERAL.finditer(text):
        parts.append(_fix_segment(text[last : match.start()]))
        parts.append(match.group(0))
        last = match.end()
    parts.append(_fix_segment(text[last:]))
    return "".join(parts)


def _fix_segment(segment: str) -> str:
    segment = TRAILING_COMMA.sub(r"\1", segment)
    return BARE_KEY.sub(r'\1"\2"\3', segment)


def repair_json(text: str) -> str:
    """Apply the bounded set of structural repairs used by ``safe_json_parse``."""
    return _repair_structure(_escape_inner_quotes(text))


def safe_json_parse(text: str) -> Any:
    """Parse JSON, repairing common damage once before giving up.

    Returns:
        The decoded value, or ``text`` itself when neither the strict nor the
        repaired parse succeeds.
    """
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(f"Strict JSON parse failed ({e}); attempting repair")

    try:
        parsed = json.loads(repair_json(text), strict=False)
    except json.JSONDecodeError as e:
        logger.warning(f"Repaired JSON parse failed ({e}); returning raw text")
        return text

    logger.info("Repaired JSON parsed successfully")
    return parsed


def escape_json_value(value: str) -> str:
    return "".join(_ESCAPES.get(ch, ch) for ch in value).strip()


def safe_json_response(data: Any) -> Any:
    """Recursively escape every string value in ``data``.

    Mappings and lists are walked; other values are returned unchanged.
    """
    if isinstance(data, Mapping):
        return {key: _safe_value(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_safe_value(item) for item in data]
    return data


def _safe_value(value: Any) -> Any:
    if isinstance(value, str):
        return escape_json_value(value)
    return safe_json_response(value)


def normalize_phone(phone: str | None) -> str:
    """Normalize a phone number to E.164 with the +998 country code."""
    if not phone:
        return ""
    digits = re.sub(r"\D", "", phone)
    if not digits:
        return ""
    if digits.startswith("998"):
        return f"+{digits}"
    return f"+998{digits}"


def extract_link_text(value: str | None) -> str:
    """Return the inner text of an HTML anchor, or the value unchanged."""
    if not value:
        return ""
    match = LINK_TEXT.search(value)
    return match.group(1) if match else value
