"""
Shared types and helpers for translating OTLP requests into Honeycomb events.
"""

import base64
import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional


CONTENT_TYPE_PROTOBUF = "application/protobuf"
CONTENT_TYPE_X_PROTOBUF = "application/x-protobuf"
CONTENT_TYPE_JSON = "application/json"
SUPPORTED_CONTENT_TYPES = (CONTENT_TYPE_PROTOBUF, CONTENT_TYPE_X_PROTOBUF, CONTENT_TYPE_JSON)

DEFAULT_SERVICE_NAME = "unknown_service"
DEFAULT_DATASET = "unknown_dataset"
DEFAULT_SAMPLE_RATE = 1
MAX_ATTRIBUTE_DEPTH = 5

_CLASSIC_KEY = re.compile(r"^[a-f0-9]{32}$")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class OTLPError(ValueError):
    """Raised when an OTLP request cannot be translated."""


class MissingAPIKeyError(OTLPError):
    def __init__(self):
        super().__init__("missing 'x-honeycomb-team' header")


class InvalidContentTypeError(OTLPError):
    def __init__(self, content_type: str):
        super().__init__(f"invalid content-type: {content_type!r}")
        self.content_type = content_type


@dataclass
class RequestInfo:
    """Request metadata the translation depends on."""
    api_key: str
    dataset: str = ""
    content_type: str = ""


@dataclass
class Event:
    """One Honeycomb event translated from a span, span event or link."""
    attributes: Dict[str, Any]
    timestamp: datetime
    sample_rate: int = DEFAULT_SAMPLE_RATE


@dataclass
class Batch:
    """Events bound for the same dataset."""
    dataset: str
    size_bytes: int = 0
    events: List[Event] = field(default_factory=list)


@dataclass
class TranslateOTLPRequestResult:
    request_size: int
    batches: List[Batch] = field(default_factory=list)


def validate_traces_headers(ri: RequestInfo):
    """Raise OTLPError if ``ri`` cannot be used to translate a trace request."""
    if not ri.api_key:
        raise MissingAPIKeyError()
    if ri.content_type not in SUPPORTED_CONTENT_TYPES:
        raise InvalidContentTypeError(ri.content_type)


def is_classic_key(api_key: str) -> bool:
    """Classic keys address a single dataset instead of an environment."""
    return bool(_CLASSIC_KEY.match(api_key))


def get_dataset(ri: RequestInfo, resource_attrs: Dict[str, Any]) -> str:
    """
    Pick the destination dataset for one resource.

    Classic keys use the dataset supplied with the request. Environment
    keys route by ``service.name``.
    """
    if is_classic_key(ri.api_key):
        return ri.dataset.strip() or DEFAULT_DATASET

    service_name = resource_attrs.get("service.name")
    if not isinstance(service_name, str):
        return DEFAULT_SERVICE_NAME

    service_name = service_name.strip()
    if not service_name or service_name.startswith(DEFAULT_SERVICE_NAME):
        return DEFAULT_SERVICE_NAME
    return service_name


def unix_nanos_to_datetime(nanos: int) -> datetime:
    return _EPOCH + timedelta(microseconds=nanos // 1000)


def bytes_to_id(value: bytes) -> str:
    return value.hex()


def _any_value_to_python(value, depth: int) -> Optional[Any]:
    kind = value.WhichOneof("value")
    if kind == "string_value":
        return value.string_value
    if kind == "bool_value":
        return value.bool_value
    if kind == "int_value":
        return value.int_value
    if kind == "double_value":
        return value.double_value
    if kind == "bytes_value":
        return base64.b64encode(value.bytes_value).decode("ascii")
    if kind == "array_value":
        return [_any_value_to_python(v, depth + 1) for v in value.array_value.values]
    if kind == "kvlist_value":
        return {kv.key: _any_value_to_python(kv.value, depth + 1) for kv in value.kvlist_value.values}
    return None


def _add_value(attrs: Dict[str, Any], key: str, value, depth: int):
    kind = value.WhichOneof("value")

    if kind == "kvlist_value" and depth < MAX_ATTRIBUTE_DEPTH:
        for kv in value.kvlist_value.values:
            if kv.key:
                _add_value(attrs, f"{key}.{kv.key}", kv.value, depth + 1)
        return

    converted = _any_value_to_python(value, depth)
    if converted is None:
        return
    if isinstance(converted, (list, dict)):
        converted = json.dumps(converted)
    attrs[key] = converted


def add_attributes_to_map(attrs: Dict[str, Any], key_values: Iterable):
    """Copy OTLP ``KeyValue`` attributes into ``attrs``, flattening kvlists."""
    for kv in key_values:
        if not kv.key:
            continue
        _add_value(attrs, kv.key, kv.value, 0)


def get_sample_rate(attrs: Dict[str, Any]) -> int:
    """
    Pop the sample rate attribute from ``attrs``.

    Returns:
        Sample rate, at least 1
    """
    for key in ("sampleRate", "SampleRate"):
        if key in attrs:
            raw = attrs.pop(key)
            break
    else:
        return DEFAULT_SAMPLE_RATE

    try:
        if isinstance(raw, bool):
            rate = DEFAULT_SAMPLE_RATE
        elif isinstance(raw, (int, float)):
            rate = int(raw)
        else:
            rate = int(float(str(raw).strip()))
    except (TypeError, ValueError):
        rate = DEFAULT_SAMPLE_RATE

    return max(rate, DEFAULT_SAMPLE_RATE)
