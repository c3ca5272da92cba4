"""Decode source records into submission payloads.

A record yields exactly one of two payload variants:

* ``RESPONSE_TEXT`` when ``llm_response.full_response`` is present and is a
  string (an empty string included). The text is used verbatim.
* ``SERIALIZED_RECORD`` otherwise. The whole record is serialized as JSON,
  keeping key order; datetimes become ISO-8601 strings and any other value
  JSON cannot encode (ObjectId, Decimal128, UUID, ...) uses its ``str()`` form.

A non-string ``full_response`` is not coerced; it falls back to the second
variant.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import date, datetime

from insights_feeder.models import ItemPayload, PayloadKind

RESPONSE_CONTAINER_FIELD = "llm_response"
RESPONSE_TEXT_FIELD = "full_response"


def decode_payload(record: Mapping[str, object]) -> ItemPayload:
    """Resolve the payload variant for one source record."""

    container = record.get(RESPONSE_CONTAINER_FIELD)
    if isinstance(container, Mapping):
        text = container.get(RESPONSE_TEXT_FIELD)
        if isinstance(text, str):
            return ItemPayload(kind=PayloadKind.RESPONSE_TEXT, text=text)
    return ItemPayload(kind=PayloadKind.SERIALIZED_RECORD, text=serialize_record(record))


def serialize_record(record: Mapping[str, object]) -> str:
    return json.dumps(record, default=_json_default, ensure_ascii=False, separators=(",", ":"))


def _json_default(value: object) -> object:
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.hex()
    if isinstance(value, set | frozenset):
        return list(value)
    return str(value)
