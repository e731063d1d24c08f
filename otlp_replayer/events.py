"""
Event translator - ExportTraceServiceRequest to batches of Honeycomb events.
"""

from typing import Iterable, Iterator

from loguru import logger
from opentelemetry.proto.collector.trace.v1.trace_service_pb2 import ExportTraceServiceRequest

from .otlp import OTLPError, RequestInfo, TranslateOTLPRequestResult, translate_trace_request
from .otlp.common import CONTENT_TYPE_PROTOBUF
from .pipeline import STAGE_ERRORS


# Translation needs a non-empty key but never authenticates with it
PLACEHOLDER_API_KEY = "junk"

REQUEST_INFO = RequestInfo(api_key=PLACEHOLDER_API_KEY, content_type=CONTENT_TYPE_PROTOBUF)


def translate_trace_requests(
    requests: Iterable[ExportTraceServiceRequest]
) -> Iterator[TranslateOTLPRequestResult]:
    """
    Yield the translation of each request, in order.

    Stops at the first request that cannot be translated.
    """
    for request in requests:
        try:
            result = translate_trace_request(request, REQUEST_INFO)
        except OTLPError as e:
            STAGE_ERRORS.labels(stage='translate').inc()
            logger.error(f"Failed to translate trace: {e}")
            break

        logger.trace(f"Translated request into {len(result.batches)} batches")
        yield result
