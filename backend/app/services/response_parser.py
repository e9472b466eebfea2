"""Tolerant parsing of free-text lookup responses into field dictionaries.

Order of attempts:
1. Strip markdown code fences
2. Locate the first balanced JSON object/array and decode it
3. Fall back to "Label: value" lines
An unparseable response yields an empty dict, never an exception.
"""

import json
import re

FENCE_PATTERN = re.compile(r"```[a-zA-Z]*")

# Label spellings seen in free-text answers, mapped to result fields
FIELD_ALIASES = {
    "management_company": (
        "management company", "management_company", "hoa management company",
        "property management company", "managing company", "company",
    ),
    "decision_maker_name": (
        "decision maker", "decision_maker_name", "decision maker name",
        "contact name", "property manager", "community manager", "hoa president",
    ),
    "email": ("email", "email address", "contact email", "e-mail"),
    "phone": ("phone", "phone number", "telephone", "contact phone", "tel"),
    "street_address": ("street address", "street_address", "address", "street"),
    "city": ("city",),
    "county": ("county",),
    "state": ("state",),
    "zip_code": ("zip", "zip code", "zip_code", "postal code", "zipcode"),
}

_LABEL_TO_FIELD = {
    alias: field for field, aliases in FIELD_ALIASES.items() for alias in aliases
}

LINE_PATTERN = re.compile(r"^\s*(?:[-*•]\s*|\d+\.\s*)?\**\"?([A-Za-z_ \-]+?)\"?\**\s*[:=]\s*(.+?)\s*,?$")


def strip_code_fences(text: str) -> str:
    return FENCE_PATTERN.sub("", text).strip()


def find_json_block(text: str) -> str | None:
    """Return the first balanced {...} or [...] substring, respecting string literals."""
    start = None
    for i, ch in enumerate(text):
        if ch in "{[":
            start = i
            break
    if start is None:
        return None

    stack: list[str] = []
    in_string = False
    escaped = False
    pairs = {"{": "}", "[": "]"}

    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in pairs:
            stack.append(pairs[ch])
        elif ch in "}]":
            if not stack or stack.pop() != ch:
                return None
            if not stack:
                return text[start : i + 1]
    return None


def parse_structured(text: str) -> dict | None:
    """Decode the first JSON block. Arrays yield their first object."""
    block = find_json_block(text)
    if block is None:
        return None
    try:
        data = json.loads(block)
    except json.JSONDecodeError:
        return None
    if isinstance(data, list):
        data = next((item for item in data if isinstance(item, dict)), None)
    return data if isinstance(data, dict) else None


def _field_for_label(label: str) -> str | None:
    label = label.strip().lower().replace("-", " ")
    return _LABEL_TO_FIELD.get(label) or _LABEL_TO_FIELD.get(label.replace(" ", "_"))


def _map_keys(data: dict) -> dict:
    result = {}
    for key, value in data.items():
        field = key if key in FIELD_ALIASES else _field_for_label(str(key))
        if field and field not in result:
            result[field] = value
    return result


def parse_lines(text: str) -> dict:
    """Best-effort extraction from "Label: value" lines."""
    result: dict[str, str] = {}
    for line in text.splitlines():
        match = LINE_PATTERN.match(line)
        if not match:
            continue
        field = _field_for_label(match.group(1))
        if field and field not in result:
            value = match.group(2).strip().strip('"*').strip()
            if value:
                result[field] = value
    return result


def parse_lookup_response(text: str | None) -> dict:
    """Parse a lookup response into a raw field dict (keys from FIELD_ALIASES)."""
    if not text or not text.strip():
        return {}

    cleaned = strip_code_fences(text)

    data = parse_structured(cleaned)
    if data is not None:
        return _map_keys(data)

    return parse_lines(cleaned)
