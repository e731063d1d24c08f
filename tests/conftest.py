"""
Shared fixtures: an in-memory libhoney transmission and OTLP JSON builders.
"""

import json
import queue

import libhoney
import pytest


class FakeTransmission:
    """Collects events instead of sending them over HTTP."""

    def __init__(self):
        self.events = []
        self.responses = queue.Queue()

    def start(self):
        pass

    def send(self, ev):
        self.events.append(ev)

    def flush(self):
        pass

    def close(self):
        self.responses.put(None)

    def get_response_queue(self):
        return self.responses


@pytest.fixture
def transmission():
    return FakeTransmission()


@pytest.fixture
def client(transmission):
    """Honeycomb client backed by the fake transmission."""
    hny = libhoney.Client(writekey="test", transmission_impl=transmission)
    yield hny
    hny.close()


def build_export_document(
    service_name: str = "checkout",
    span_name: str = "GET /cart",
    trace_id: str = "5b8efff798038103d269b633813fc60c",
    span_id: str = "eee19b7ec3c1b174",
    start_ns: int = 1_700_000_000_000_000_000,
    duration_ns: int = 25_000_000,
) -> dict:
    """One OTLP/JSON traces document holding a single span."""
    return {
        "resourceSpans": [{
            "resource": {
                "attributes": [
                    {"key": "service.name", "value": {"stringValue": service_name}},
                ]
            },
            "scopeSpans": [{
                "scope": {"name": "replay-tests", "version": "1.0.0"},
                "spans": [{
                    "traceId": trace_id,
                    "spanId": span_id,
                    "name": span_name,
                    "kind": 2,
                    "startTimeUnixNano": str(start_ns),
                    "endTimeUnixNano": str(start_ns + duration_ns),
                    "attributes": [
                        {"key": "http.method", "value": {"stringValue": "GET"}},
                        {"key": "http.status_code", "value": {"intValue": "200"}},
                    ],
                    "status": {},
                }],
            }],
        }]
    }


@pytest.fixture
def export_document():
    return build_export_document


@pytest.fixture
def export_file(tmp_path):
    """Write documents back to back, the way the exporter does."""
    def write(documents, name="traces.json"):
        path = tmp_path / name
        path.write_text("".join(json.dumps(doc) for doc in documents))
        return str(path)
    return write
