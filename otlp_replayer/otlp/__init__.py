"""
OTLP to Honeycomb event translation
"""

from .common import (
    Batch,
    Event,
    InvalidContentTypeError,
    MissingAPIKeyError,
    OTLPError,
    RequestInfo,
    TranslateOTLPRequestResult,
)
from .traces import translate_trace_request

__all__ = [
    "Batch",
    "Event",
    "InvalidContentTypeError",
    "MissingAPIKeyError",
    "OTLPError",
    "RequestInfo",
    "TranslateOTLPRequestResult",
    "translate_trace_request",
]
