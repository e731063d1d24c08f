"""
Translate OTLP trace export requests into Honeycomb events.

Every span becomes one event. Span events and links become extra
events pointing back at their span. Events are grouped into one
Batch per resource, routed to that resource's dataset.
"""

from typing import Any, Dict

from opentelemetry.proto.collector.trace.v1.trace_service_pb2 import ExportTraceServiceRequest
from opentelemetry.proto.trace.v1.trace_pb2 import Span, Status

from .common import (
    Batch,
    Event,
    RequestInfo,
    TranslateOTLPRequestResult,
    add_attributes_to_map,
    bytes_to_id,
    get_dataset,
    get_sample_rate,
    unix_nanos_to_datetime,
    validate_traces_headers,
)


SPAN_KINDS = {
    Span.SPAN_KIND_CLIENT: "client",
    Span.SPAN_KIND_SERVER: "server",
    Span.SPAN_KIND_PRODUCER: "producer",
    Span.SPAN_KIND_CONSUMER: "consumer",
    Span.SPAN_KIND_INTERNAL: "internal",
}


def get_span_kind(kind: int) -> str:
    return SPAN_KINDS.get(kind, "unspecified")


def _scope_attributes(scope) -> Dict[str, Any]:
    attrs = {}
    if scope.name:
        attrs["library.name"] = scope.name
    if scope.version:
        attrs["library.version"] = scope.version
    add_attributes_to_map(attrs, scope.attributes)
    return attrs


def _span_event(span: Span, trace_id: str, span_id: str, shared: Dict[str, Any]) -> Event:
    attrs = {
        "trace.trace_id": trace_id,
        "trace.span_id": span_id,
        "name": span.name,
        "type": get_span_kind(span.kind),
        "span.kind": get_span_kind(span.kind),
        "duration_ms": (span.end_time_unix_nano - span.start_time_unix_nano) / 1e6,
        "status_code": span.status.code,
        "span.num_events": len(span.events),
        "span.num_links": len(span.links),
        "meta.signal_type": "trace",
    }
    if span.parent_span_id:
        attrs["trace.parent_id"] = bytes_to_id(span.parent_span_id)
    if span.status.code == Status.STATUS_CODE_ERROR:
        attrs["error"] = True
    if span.status.message:
        attrs["status_message"] = span.status.message
    if span.trace_state:
        attrs["trace.trace_state"] = span.trace_state

    attrs.update(shared)
    add_attributes_to_map(attrs, span.attributes)

    return Event(
        attributes=attrs,
        timestamp=unix_nanos_to_datetime(span.start_time_unix_nano),
        sample_rate=get_sample_rate(attrs),
    )


def _annotation_events(span: Span, trace_id: str, span_id: str, shared: Dict[str, Any], sample_rate: int):
    for span_event in span.events:
        attrs = {
            "trace.trace_id": trace_id,
            "trace.parent_id": span_id,
            "name": span_event.name,
            "parent_name": span.name,
            "meta.annotation_type": "span_event",
            "meta.signal_type": "trace",
        }
        attrs.update(shared)
        add_attributes_to_map(attrs, span_event.attributes)
        # annotations are sampled with their span; drop any rate of their own
        get_sample_rate(attrs)
        yield Event(
            attributes=attrs,
            timestamp=unix_nanos_to_datetime(span_event.time_unix_nano),
            sample_rate=sample_rate,
        )

    for link in span.links:
        attrs = {
            "trace.trace_id": trace_id,
            "trace.parent_id": span_id,
            "trace.link.trace_id": bytes_to_id(link.trace_id),
            "trace.link.span_id": bytes_to_id(link.span_id),
            "parent_name": span.name,
            "meta.annotation_type": "link",
            "meta.signal_type": "trace",
        }
        attrs.update(shared)
        add_attributes_to_map(attrs, link.attributes)
        # annotations are sampled with their span; drop any rate of their own
        get_sample_rate(attrs)
        yield Event(
            attributes=attrs,
            timestamp=unix_nanos_to_datetime(span.start_time_unix_nano),
            sample_rate=sample_rate,
        )


def translate_trace_request(request: ExportTraceServiceRequest, ri: RequestInfo) -> TranslateOTLPRequestResult:
    """
    Translate one trace export request.

    Args:
        request: Protocol-level trace export request
        ri: Request metadata; the API key only has to be non-empty

    Returns:
        One Batch per resource, in request order

    Raises:
        OTLPError: If ``ri`` is invalid
    """
    validate_traces_headers(ri)

    batches = []
    for resource_spans in request.resource_spans:
        resource_attrs = {}
        add_attributes_to_map(resource_attrs, resource_spans.resource.attributes)
        dataset = get_dataset(ri, resource_attrs)

        events = []
        for scope_spans in resource_spans.scope_spans:
            shared = dict(resource_attrs)
            shared.update(_scope_attributes(scope_spans.scope))

            for span in scope_spans.spans:
                trace_id = bytes_to_id(span.trace_id)
                span_id = bytes_to_id(span.span_id)
                span_event = _span_event(span, trace_id, span_id, shared)
                events.append(span_event)
                events.extend(_annotation_events(span, trace_id, span_id, shared, span_event.sample_rate))

        batches.append(Batch(
            dataset=dataset,
            size_bytes=resource_spans.ByteSize(),
            events=events,
        ))

    return TranslateOTLPRequestResult(request_size=request.ByteSize(), batches=batches)
