"""
Trace translator - OTLP JSON records to ExportTraceServiceRequest.

Records are parsed into the OTLP ``TracesData`` model, serialized to
protobuf bytes and read back as an ``ExportTraceServiceRequest``, which
is what the event translation works on.
"""

import base64
import binascii
import json
from typing import Any, Dict, Iterable, Iterator, List

from google.protobuf import json_format
from google.protobuf.message import DecodeError, EncodeError
from loguru import logger
from opentelemetry.proto.collector.trace.v1.trace_service_pb2 import ExportTraceServiceRequest
from opentelemetry.proto.trace.v1.trace_pb2 import TracesData
from prometheus_client import Counter

from .pipeline import STAGE_ERRORS


REQUESTS_TRANSLATED = Counter(
    'otlp_replayer_requests_translated_total',
    'Total trace export requests built from JSON records'
)

# OTLP/JSON writes ids as hex, protobuf JSON expects base64. Values are byte lengths.
_ID_FIELDS = {
    "traceId": 16,
    "trace_id": 16,
    "spanId": 8,
    "span_id": 8,
    "parentSpanId": 8,
    "parent_span_id": 8,
}

_LEGACY_KEYS = {
    "instrumentationLibrarySpans": "scopeSpans",
    "instrumentation_library_spans": "scope_spans",
    "instrumentationLibrary": "scope",
    "instrumentation_library": "scope",
}


def _hex_to_base64(value: str) -> str:
    return base64.b64encode(binascii.unhexlify(value)).decode("ascii")


def _convert_ids(item: Dict[str, Any]):
    for key, size in _ID_FIELDS.items():
        value = item.get(key)
        if isinstance(value, str) and value:
            if len(value) != size * 2:
                raise ValueError(f"invalid {key} {value!r}: expected {size * 2} hex characters")
            item[key] = _hex_to_base64(value)


def _rename_legacy(item: Dict[str, Any]):
    for old, new in _LEGACY_KEYS.items():
        if old in item:
            value = item.pop(old)
            item.setdefault(new, value)


def _objects(item: Dict[str, Any], *keys: str) -> List[Dict[str, Any]]:
    for key in keys:
        value = item.get(key)
        if isinstance(value, list):
            return [v for v in value if isinstance(v, dict)]
    return []


def normalize_otlp_json(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Rewrite an OTLP/JSON traces document into protobuf JSON mapping.

    Entries of the wrong shape are left alone for the protobuf parser to reject.

    Raises:
        ValueError: If an id is not valid hex or has the wrong length
    """
    for resource_spans in _objects(document, "resourceSpans", "resource_spans"):
        _rename_legacy(resource_spans)
        for scope_spans in _objects(resource_spans, "scopeSpans", "scope_spans"):
            _rename_legacy(scope_spans)
            for span in _objects(scope_spans, "spans"):
                _convert_ids(span)
                for link in _objects(span, "links"):
                    _convert_ids(link)
    return document


def unmarshal_traces(record: str) -> TracesData:
    """Parse one OTLP JSON record into the ``TracesData`` model."""
    document = json.loads(record)
    if not isinstance(document, dict):
        raise ValueError(f"expected a JSON object, got {type(document).__name__}")
    return json_format.ParseDict(normalize_otlp_json(document), TracesData(), ignore_unknown_fields=True)


def translate_collector_traces(records: Iterable[str]) -> Iterator[ExportTraceServiceRequest]:
    """
    Yield one ExportTraceServiceRequest per JSON record.

    Stops at the first record that fails any step; the failure is logged.
    """
    for record in records:
        try:
            traces = unmarshal_traces(record)
        except (ValueError, json_format.ParseError) as e:
            STAGE_ERRORS.labels(stage='unmarshal_traces').inc()
            logger.error(f"Failed to unmarshal traces: {e}")
            break

        try:
            payload = traces.SerializeToString()
        except EncodeError as e:
            STAGE_ERRORS.labels(stage='marshal_traces').inc()
            logger.error(f"Failed to marshal traces: {e}")
            break

        try:
            request = ExportTraceServiceRequest.FromString(payload)
        except DecodeError as e:
            STAGE_ERRORS.labels(stage='unmarshal_request').inc()
            logger.error(f"Failed to unmarshal ExportTraceServiceRequest: {e}")
            break

        REQUESTS_TRANSLATED.inc()
        yield request
