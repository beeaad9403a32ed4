"""
Body Decoder

Turns a RawRequest into a FieldMap, dispatching on the declared content type:
- application/json (and +json): object flattened, containers merged
- application/x-www-form-urlencoded: query-string pairs
- multipart/form-data: form fields, files reduced to their filename
- anything else: JSON attempt, otherwise nothing

Decode failures are reported internally as a DecodeResult carrying a
DecodeError. decode_body() is the one place that turns such a failure into
an empty map; the rest of the pipeline never sees decode errors.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Dict, Optional, Tuple
from urllib.parse import parse_qsl

from starlette.datastructures import Headers, UploadFile
from starlette.formparsers import MultiPartException, MultiPartParser

from .aliases import CONTAINER_NAMES
from .models import FieldMap, RawRequest

logger = logging.getLogger(__name__)

JSON = "json"
FORM = "form"
MULTIPART = "multipart"
UNKNOWN = "unknown"


class DecodeError(Exception):
    """Raised inside the decoder when a body cannot be parsed."""

    def __init__(self, kind: str, message: str):
        self.kind = kind
        super().__init__(message)


@dataclass
class DecodeResult:
    """Outcome of decoding one body."""
    kind: str
    fields: FieldMap = field(default_factory=dict)
    error: Optional[DecodeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# =============================================================================
# VALUE HELPERS
# =============================================================================

def _scalar_to_str(value: Any) -> Optional[str]:
    """String form of a JSON scalar; None for null."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _flatten(value: Any, prefix: str, out: FieldMap) -> None:
    """Deep-flatten nested JSON using parent[child] / parent[index] keys."""
    if isinstance(value, dict):
        for k, v in value.items():
            _flatten(v, f"{prefix}[{k}]", out)
    elif isinstance(value, list):
        for i, v in enumerate(value):
            _flatten(v, f"{prefix}[{i}]", out)
    else:
        text = _scalar_to_str(value)
        if text is not None:
            out[prefix] = text


def _container_items(container: Any) -> Dict[str, str]:
    """
    Extract field values from a recognized container.

    Accepted shapes:
        {"name": "Dana"}
        {"name": {"id": "name", "value": "Dana", "title": "שם"}}
        [{"id": "name", "value": "Dana"}]
    Item titles/labels map to the value as well.
    """
    items: Dict[str, str] = {}

    def add_item(key: Optional[Any], item: Dict[str, Any]) -> None:
        value = _scalar_to_str(item.get("value"))
        if value is None:
            return
        ident = item.get("id") or item.get("name") or key
        if ident is not None:
            items.setdefault(str(ident), value)
        for label_key in ("title", "label"):
            label = item.get(label_key)
            if isinstance(label, str) and label.strip():
                items.setdefault(label.strip(), value)

    if isinstance(container, dict):
        for k, v in container.items():
            if isinstance(v, dict) and "value" in v:
                add_item(k, v)
            elif isinstance(v, (dict, list)):
                nested: FieldMap = {}
                _flatten(v, str(k), nested)
                for nk, nv in nested.items():
                    items.setdefault(nk, nv)
            else:
                text = _scalar_to_str(v)
                if text is not None:
                    items.setdefault(str(k), text)
    elif isinstance(container, list):
        for i, v in enumerate(container):
            if isinstance(v, dict) and "value" in v:
                add_item(i, v)
    return items


def _flatten_object(data: Dict[str, Any]) -> FieldMap:
    """Flatten a decoded JSON object into a FieldMap."""
    out: FieldMap = {}
    merged: Dict[str, str] = {}
    for key, value in data.items():
        key = str(key)
        if key in CONTAINER_NAMES and isinstance(value, (dict, list)):
            for ck, cv in _container_items(value).items():
                merged.setdefault(ck, cv)
            continue
        if isinstance(value, (dict, list)):
            _flatten(value, key, out)
            continue
        text = _scalar_to_str(value)
        if text is not None:
            out[key] = text
    # Top-level keys win over container keys
    for k, v in merged.items():
        out.setdefault(k, v)
    return out


def _merge_embedded_containers(fields: FieldMap) -> FieldMap:
    """JSON-decode container values posted as strings inside form bodies."""
    for name in CONTAINER_NAMES:
        raw = fields.get(name, "").strip()
        if not raw or raw[0] not in "{[":
            continue
        try:
            container = json.loads(raw)
            items = _container_items(container)
        except (ValueError, RecursionError):
            continue
        del fields[name]
        for k, v in items.items():
            fields.setdefault(k, v)
    return fields


# =============================================================================
# DECODERS
# =============================================================================

def _text(body: bytes, charset: str = "utf-8") -> str:
    try:
        return body.decode(charset, errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


def _media_type(content_type: str) -> Tuple[str, str]:
    """Split a content type into (media type, charset)."""
    parts = [p.strip() for p in (content_type or "").split(";")]
    media = parts[0].lower() if parts else ""
    charset = "utf-8"
    for p in parts[1:]:
        if p.lower().startswith("charset="):
            charset = p.split("=", 1)[1].strip().strip('"') or "utf-8"
    return media, charset


def classify(content_type: str) -> str:
    """Tag the body shape declared by the content type."""
    media, _ = _media_type(content_type)
    if media == "application/json" or media.endswith("+json"):
        return JSON
    if media == "application/x-www-form-urlencoded":
        return FORM
    if media == "multipart/form-data":
        return MULTIPART
    return UNKNOWN


def _decode_json(body: bytes, charset: str) -> FieldMap:
    text = _text(body, charset).strip()
    if not text:
        raise DecodeError(JSON, "empty body")
    try:
        data = json.loads(text)
    except ValueError as e:
        raise DecodeError(JSON, f"invalid JSON: {e}") from e
    except RecursionError as e:
        raise DecodeError(JSON, "JSON nested too deeply") from e
    if not isinstance(data, dict):
        raise DecodeError(JSON, f"expected a JSON object, got {type(data).__name__}")
    try:
        return _flatten_object(data)
    except RecursionError as e:
        raise DecodeError(JSON, "JSON nested too deeply") from e


def _decode_form(body: bytes, charset: str) -> FieldMap:
    pairs = parse_qsl(_text(body, charset), keep_blank_values=True)
    # Repeated keys: last value wins
    return _merge_embedded_containers({k: v for k, v in pairs})


async def _single_chunk(body: bytes) -> AsyncGenerator[bytes, None]:
    yield body


async def _decode_multipart(body: bytes, content_type: str) -> FieldMap:
    headers = Headers({"content-type": content_type})
    parser = MultiPartParser(headers, _single_chunk(body))
    try:
        form = await parser.parse()
    except (MultiPartException, KeyError, ValueError) as e:
        raise DecodeError(MULTIPART, f"invalid multipart body: {e}") from e

    fields: FieldMap = {}
    try:
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                fields[key] = value.filename or ""
            else:
                fields[key] = str(value)
    finally:
        await form.close()
    return _merge_embedded_containers(fields)


async def _decode(raw: RawRequest) -> DecodeResult:
    kind = classify(raw.content_type)
    _, charset = _media_type(raw.content_type)
    try:
        if kind == JSON:
            return DecodeResult(kind, _decode_json(raw.body, charset))
        if kind == FORM:
            return DecodeResult(kind, _decode_form(raw.body, charset))
        if kind == MULTIPART:
            return DecodeResult(kind, await _decode_multipart(raw.body, raw.content_type))
        # Unknown or missing content type: JSON is the only guess worth making
        return DecodeResult(kind, _decode_json(raw.body, charset))
    except DecodeError as e:
        return DecodeResult(kind, {}, e)


async def decode_body(raw: RawRequest) -> FieldMap:
    """
    Decode a request body into a FieldMap.

    Never raises for malformed input: a decode failure yields an empty map.

    Args:
        raw: The incoming request.

    Returns:
        Flat mapping of raw keys to string values.
    """
    result = await _decode(raw)
    if not result.ok:
        logger.debug(
            f"Body decode failed ({result.kind}, {len(raw.body)} bytes): {result.error}"
        )
        return {}
    return result.fields
